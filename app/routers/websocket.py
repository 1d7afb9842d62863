"""WebSocket entry point for real-time delivery."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, WebSocket, status

from app.config import get_settings
from app.core.app_state import state
from app.core.auth import extract_bearer_token
from app.core.client import Client
from app.core.exceptions import AuthenticationError
from app.infra.logging_config import get_logger

logger = get_logger("websocket")

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    Authenticate, register with the hub and pump frames until disconnect.

    The token comes from ``?token=`` or an ``Authorization: Bearer`` header.
    Unauthenticated connections are refused with 1008 before accept.
    """
    token = token or extract_bearer_token(websocket.headers.get("authorization"))
    try:
        user_id = state.authenticator.authenticate(token)
    except AuthenticationError as e:
        logger.info("Refusing WebSocket connection: %s", e.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.code)
        return

    hub = state.hub
    if hub is None or not hub.running:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    await websocket.accept()
    s = get_settings()
    client = Client(
        hub,
        websocket,
        user_id,
        queue_size=s.outbound_queue_size,
        ping_interval=s.ws_ping_interval_seconds,
        pong_timeout=s.ws_pong_timeout_seconds,
        write_timeout=s.ws_write_timeout_seconds,
    )
    hub.register(client)
    await client.run()
