from __future__ import annotations

from contextlib import asynccontextmanager
from functools import partial
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.orm import sessionmaker

from app.commands.reconcile_event_buffer_command import ReconcileEventBufferCommand
from app.config import Settings, get_settings
from app.core.app_state import state
from app.core.auth import JWTAuthenticator
from app.core.contracts import EventBuffer
from app.core.hub import Hub
from app.db import SessionLocal
from app.infra.logging_config import LoggingConfig, get_logger
from app.infra.redis_client import get_redis_client
from app.routers import events, system, websocket
from app.services.directory_service import DatabaseGroupDirectory, DatabaseUserDirectory
from app.services.event_buffer import RedisEventBuffer
from app.services.event_service import SessionScopedEventStore
from app.utils.rate_limit import check_message_rate_limit
from app.workers.event_sweeper import EventSweeper

logger = get_logger("main")


def build_hub(
    buffer: EventBuffer,
    session_factory: sessionmaker = SessionLocal,
    settings: Optional[Settings] = None,
) -> Hub:
    s = settings or get_settings()
    rate_limiter = None
    if s.message_rate_limit_per_minute:
        rate_limiter = partial(
            check_message_rate_limit,
            redis_client=get_redis_client(),
            limit_per_minute=s.message_rate_limit_per_minute,
            namespace=s.redis_namespace,
        )
    return Hub(
        buffer=buffer,
        store=SessionScopedEventStore(session_factory),
        users=DatabaseUserDirectory(session_factory),
        groups=DatabaseGroupDirectory(session_factory),
        message_max_length=s.message_max_length,
        replay_on_connect=s.replay_on_connect,
        replay_limit=s.replay_limit,
        rate_limiter=rate_limiter,
    )


def create_app(
    testing: bool = False,
    event_buffer: Optional[EventBuffer] = None,
    session_factory: Optional[sessionmaker] = None,
) -> FastAPI:
    """
    Build the API. With ``testing`` the bearer token is read as a raw user id
    and the in-process sweeper is not started.
    """
    settings = get_settings()
    factory = session_factory or SessionLocal

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        LoggingConfig()
        buffer = event_buffer or RedisEventBuffer.from_settings()
        state.buffer = buffer
        state.authenticator = JWTAuthenticator.from_settings(settings)
        if testing:
            state.authenticator.disabled = True
        state.hub = build_hub(buffer, factory, settings)
        await state.hub.start()

        if settings.event_sweep_backend == "inline" and not testing:
            state.sweeper = EventSweeper(
                ReconcileEventBufferCommand(buffer, SessionScopedEventStore(factory)),
                interval=settings.event_sweep_interval_seconds,
                batch_size=settings.event_sweep_batch_size,
                timeout=settings.event_sweep_timeout_seconds,
            )
            state.sweeper.start()
        logger.info("%s ready (%s)", settings.app_name, settings.environment)
        try:
            yield
        finally:
            if state.sweeper is not None:
                await state.sweeper.stop()
                state.sweeper = None
            await state.hub.stop()
            state.hub = None
            state.buffer = None

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(websocket.router)
    app.include_router(events.router)
    app.include_router(system.router)
    return app


app = create_app()
