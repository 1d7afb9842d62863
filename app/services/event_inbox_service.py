"""A user's undelivered events, merged across the buffer and the durable store."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from app.core.contracts import DurableEventStore, EventBuffer
from app.schemas.event import Event, ensure_utc


class EventInboxService:
    def __init__(self, buffer: EventBuffer, store: DurableEventStore) -> None:
        self._buffer = buffer
        self._store = store

    def fetch_undelivered(
        self, user_id: UUID, cursor: Optional[datetime] = None, limit: int = 100
    ) -> List[Event]:
        """
        Events after ``cursor``, oldest first, at most ``limit``.

        An event caught mid-sweep can sit in both stores; it is returned once.
        """
        if cursor is not None:
            cursor = ensure_utc(cursor)
        merged: Dict[UUID, Event] = {}
        for event in self._store.fetch_undelivered(user_id, cursor, limit):
            merged[event.id] = event
        for event in self._buffer.read_all_for_user(user_id):
            if cursor is not None and event.created_at <= cursor:
                continue
            merged.setdefault(event.id, event)
        ordered = sorted(merged.values(), key=lambda e: (e.created_at, str(e.id)))
        return ordered[:limit]

    def acknowledge(self, user_id: UUID, event_ids: Iterable[UUID]) -> int:
        """Delete confirmed events owned by ``user_id`` from both stores."""
        ids = list(dict.fromkeys(event_ids))
        if not ids:
            return 0
        removed = self._buffer.remove_ids(user_id, ids)
        removed += self._store.delete_events(ids, recipient_id=user_id)
        return min(removed, len(ids))
