"""Undelivered events: catch-up fetch and acknowledgement over HTTP."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.exceptions import EventStoreError
from app.routers.utils.dependencies import get_current_user_id, get_event_inbox
from app.schemas.event import EventAckResponse, UndeliveredEventsResponse
from app.schemas.frame import EventAckRequest
from app.services.event_inbox_service import EventInboxService

router = APIRouter(
    prefix="/events",
    tags=["events"],
    responses={404: {"description": "Not found"}},
)


@router.get("/undelivered", response_model=UndeliveredEventsResponse)
def list_undelivered_events(
    cursor: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    user_id: UUID = Depends(get_current_user_id),
    inbox: EventInboxService = Depends(get_event_inbox),
) -> UndeliveredEventsResponse:
    """Events waiting for the caller, oldest first, created after ``cursor``."""
    try:
        events = inbox.fetch_undelivered(user_id, cursor, limit)
    except EventStoreError as e:
        raise e.to_http_exception()
    return UndeliveredEventsResponse(data=[e.to_wire() for e in events])


@router.post("/ack", response_model=EventAckResponse)
def acknowledge_events(
    data: EventAckRequest,
    user_id: UUID = Depends(get_current_user_id),
    inbox: EventInboxService = Depends(get_event_inbox),
) -> EventAckResponse:
    """Delete events the caller has received. Other users' ids are ignored."""
    try:
        deleted = inbox.acknowledge(user_id, data.event_ids)
    except EventStoreError as e:
        raise e.to_http_exception()
    return EventAckResponse(data={"deleted": deleted})
