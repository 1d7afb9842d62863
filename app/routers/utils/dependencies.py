from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.core.app_state import state
from app.core.auth import extract_bearer_token
from app.core.contracts import EventBuffer
from app.core.exceptions import AuthenticationError
from app.db import get_db
from app.services.event_inbox_service import EventInboxService
from app.services.event_service import EventService


def get_current_user_id(
    authorization: Optional[str] = Header(None),
) -> UUID:
    """FastAPI dependency resolving the bearer token to a user ID."""
    try:
        return state.authenticator.authenticate(extract_bearer_token(authorization))
    except AuthenticationError as e:
        raise e.to_http_exception()


def get_event_buffer() -> EventBuffer:
    if state.buffer is None:
        raise HTTPException(status_code=503, detail="Event buffer is not configured")
    return state.buffer


def get_event_inbox(
    buffer: EventBuffer = Depends(get_event_buffer),
    db: Session = Depends(get_db),
) -> EventInboxService:
    """FastAPI dependency for a user's undelivered-event inbox."""
    return EventInboxService(buffer, EventService(db))
