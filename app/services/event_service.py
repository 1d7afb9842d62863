"""Durable event store backed by the ``events`` table."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.exceptions import EventStoreError
from app.db import SessionLocal, db_session
from app.infra.logging_config import get_logger
from app.models.event import Event as EventModel
from app.schemas.event import Event, ensure_utc

logger = get_logger("event_store")


class EventService:
    """Stores events that could not be confirmed as delivered."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def store_event(self, event: Event) -> None:
        self.store_events([event])

    def store_events(self, events: Sequence[Event]) -> List[UUID]:
        """
        Insert events in one transaction.

        Ids already in the table are skipped, so a batch that was partly
        migrated before can be replayed. Returns the ids that are durable
        after the call (inserted or already present).
        """
        if not events:
            return []
        ids = [e.id for e in events]
        pending = {}
        try:
            existing = {
                row[0]
                for row in self._db.query(EventModel.id).filter(EventModel.id.in_(ids))
            }
            for event in events:
                if event.id not in existing:
                    pending.setdefault(event.id, event)
            for event in pending.values():
                self._db.add(self._to_row(event))
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            raise EventStoreError(
                "failed to store events", details={"count": len(pending)}
            ) from e
        return list(dict.fromkeys(ids))

    def fetch_undelivered(
        self, user_id: UUID, cursor: Optional[datetime] = None, limit: int = 100
    ) -> List[Event]:
        """Events for ``user_id`` created strictly after ``cursor``, oldest first."""
        query = self._db.query(EventModel).filter(EventModel.recipient_id == user_id)
        if cursor is not None:
            query = query.filter(EventModel.created_at > ensure_utc(cursor))
        try:
            rows = (
                query.order_by(EventModel.created_at.asc(), EventModel.id.asc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            raise EventStoreError("failed to fetch undelivered events") from e
        return [self._to_schema(row) for row in rows]

    def delete_event(self, event_id: UUID, recipient_id: Optional[UUID] = None) -> bool:
        return self.delete_events([event_id], recipient_id=recipient_id) > 0

    def delete_events(
        self, event_ids: Iterable[UUID], recipient_id: Optional[UUID] = None
    ) -> int:
        """Delete by id; with ``recipient_id`` only that user's events match."""
        ids = list(event_ids)
        if not ids:
            return 0
        query = self._db.query(EventModel).filter(EventModel.id.in_(ids))
        if recipient_id is not None:
            query = query.filter(EventModel.recipient_id == recipient_id)
        try:
            deleted = query.delete(synchronize_session=False)
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            raise EventStoreError("failed to delete events") from e
        return deleted

    @staticmethod
    def _to_row(event: Event) -> EventModel:
        return EventModel(
            id=event.id,
            type=event.type.value,
            payload=event.payload.model_dump(mode="json", by_alias=True),
            recipient_id=event.recipient_id,
            sender_id=event.sender_id,
            created_at=event.created_at,
        )

    @staticmethod
    def _to_schema(row: EventModel) -> Event:
        return Event(
            id=row.id,
            type=row.type,
            payload=row.payload,
            recipient_id=row.recipient_id,
            sender_id=row.sender_id,
            created_at=row.created_at,
        )


class SessionScopedEventStore:
    """
    EventService for code running outside a request.

    Each call opens and closes its own session, so one instance can be shared
    by the hub, the sweeper and Celery tasks.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def store_event(self, event: Event) -> None:
        with db_session(self._session_factory) as db:
            EventService(db).store_event(event)

    def store_events(self, events: Sequence[Event]) -> List[UUID]:
        with db_session(self._session_factory) as db:
            return EventService(db).store_events(events)

    def fetch_undelivered(
        self, user_id: UUID, cursor: Optional[datetime] = None, limit: int = 100
    ) -> List[Event]:
        with db_session(self._session_factory) as db:
            return EventService(db).fetch_undelivered(user_id, cursor, limit)

    def delete_event(self, event_id: UUID, recipient_id: Optional[UUID] = None) -> bool:
        with db_session(self._session_factory) as db:
            return EventService(db).delete_event(event_id, recipient_id)

    def delete_events(
        self, event_ids: Iterable[UUID], recipient_id: Optional[UUID] = None
    ) -> int:
        with db_session(self._session_factory) as db:
            return EventService(db).delete_events(event_ids, recipient_id)
