"""Command that moves buffered events into the durable event store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Set
from uuid import UUID

from app.core.contracts import DurableEventStore, EventBuffer
from app.core.exceptions import EventStoreError
from app.schemas.event import Event


@dataclass
class ReconcileResult:
    fetched: int = 0
    migrated: int = 0
    failed: int = 0
    failed_event_ids: List[UUID] = field(default_factory=list)


class ReconcileEventBufferCommand:
    """
    One sweep tick: read the oldest buffered events, store them durably, and
    drop from the buffer only the ones that made it. Anything that fails stays
    buffered for the next tick.
    """

    def __init__(self, buffer: EventBuffer, store: DurableEventStore) -> None:
        self.buffer = buffer
        self.store = store
        self.logger = logging.getLogger(__name__)

    def execute(self, limit: int = 500) -> ReconcileResult:
        """
        Args:
            limit: Maximum number of events to migrate in this tick

        Returns:
            ReconcileResult with fetched/migrated/failed counts
        """
        events = self.buffer.fetch_batch(limit)
        result = ReconcileResult(fetched=len(events))
        if not events:
            return result

        stored = self._store(events)
        migrated = [e for e in events if e.id in stored]
        result.migrated = len(migrated)
        result.failed_event_ids = [e.id for e in events if e.id not in stored]
        result.failed = len(result.failed_event_ids)

        if migrated:
            self.buffer.remove(migrated)
        if result.failed:
            self.logger.warning(
                "Event sweep left %d of %d events buffered", result.failed, result.fetched
            )
        else:
            self.logger.info("Event sweep migrated %d events", result.migrated)
        return result

    def _store(self, events: List[Event]) -> Set[UUID]:
        try:
            return set(self.store.store_events(events))
        except EventStoreError as e:
            self.logger.warning(
                "Batch insert of %d events failed, retrying one by one: %s", len(events), e
            )
        stored: Set[UUID] = set()
        for event in events:
            try:
                self.store.store_event(event)
            except EventStoreError as e:
                self.logger.error("Could not store event %s: %s", event.id, e)
                continue
            stored.add(event.id)
        return stored
