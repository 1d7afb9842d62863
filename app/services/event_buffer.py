"""
Redis buffer for events awaiting delivery or migration to the durable store.

Layout under the configured namespace:

    {ns}:event:{id}         event JSON (storage form), expires after the TTL
    {ns}:pending            ZSET of event ids scored by created_at (sweep order)
    {ns}:user:{recipient}   ZSET of that user's event ids, TTL refreshed on append

Index entries can outlive their event key; readers skip and prune them.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple
from uuid import UUID

import redis
from pydantic import ValidationError

from app.config import get_settings
from app.core.exceptions import EventStoreError
from app.infra.logging_config import get_logger
from app.infra.redis_client import get_redis_client
from app.schemas.event import Event

logger = get_logger("event_buffer")


@contextmanager
def _redis_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except redis.RedisError as e:
        raise EventStoreError(
            f"event buffer {operation} failed", details={"error": str(e)}
        ) from e


class RedisEventBuffer:
    def __init__(
        self,
        client: redis.Redis,
        namespace: str = "parley",
        ttl_seconds: int = 48 * 3600,
    ) -> None:
        self._redis = client
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_settings(cls, client: Optional[redis.Redis] = None) -> "RedisEventBuffer":
        s = get_settings()
        return cls(
            client or get_redis_client(),
            namespace=s.redis_namespace,
            ttl_seconds=s.event_buffer_ttl_seconds,
        )

    # keys

    @property
    def pending_key(self) -> str:
        return f"{self.namespace}:pending"

    def _event_key(self, event_id) -> str:
        return f"{self.namespace}:event:{event_id}"

    def _user_key(self, user_id) -> str:
        return f"{self.namespace}:user:{user_id}"

    # writes

    def append(self, event: Event) -> None:
        """Buffer one event. All keys are written in a single MULTI/EXEC."""
        member = str(event.id)
        score = event.created_at.timestamp()
        user_key = self._user_key(event.recipient_id)
        with _redis_errors("append"):
            pipe = self._redis.pipeline(transaction=True)
            pipe.set(self._event_key(member), event.to_storage_json(), ex=self.ttl_seconds)
            pipe.zadd(self.pending_key, {member: score})
            pipe.zadd(user_key, {member: score})
            pipe.expire(user_key, self.ttl_seconds)
            pipe.execute()

    def remove(self, events: Sequence[Event]) -> int:
        """Drop events from every key. Returns how many event keys were deleted."""
        if not events:
            return 0
        with _redis_errors("remove"):
            pipe = self._redis.pipeline(transaction=True)
            for event in events:
                member = str(event.id)
                pipe.delete(self._event_key(member))
                pipe.zrem(self.pending_key, member)
                pipe.zrem(self._user_key(event.recipient_id), member)
            results = pipe.execute()
        return sum(results[0::3])

    def remove_ids(self, user_id: UUID, event_ids: Iterable[UUID]) -> int:
        """Remove the given ids, ignoring any that are not ``user_id``'s."""
        members = list(dict.fromkeys(str(i) for i in event_ids))
        if not members:
            return 0
        user_key = self._user_key(user_id)
        with _redis_errors("remove_ids"):
            pipe = self._redis.pipeline(transaction=False)
            for member in members:
                pipe.zscore(user_key, member)
            owned = [m for m, score in zip(members, pipe.execute()) if score is not None]
            if not owned:
                return 0
            pipe = self._redis.pipeline(transaction=True)
            pipe.delete(*[self._event_key(m) for m in owned])
            pipe.zrem(self.pending_key, *owned)
            pipe.zrem(user_key, *owned)
            results = pipe.execute()
        return results[0]

    def clear_for_user(self, user_id: UUID) -> int:
        user_key = self._user_key(user_id)
        with _redis_errors("clear_for_user"):
            members = self._redis.zrange(user_key, 0, -1)
            pipe = self._redis.pipeline(transaction=True)
            if members:
                pipe.delete(*[self._event_key(m) for m in members])
                pipe.zrem(self.pending_key, *members)
            pipe.delete(user_key)
            pipe.execute()
        return len(members)

    # reads

    def read_all_for_user(self, user_id: UUID) -> List[Event]:
        """Every buffered event for ``user_id``, oldest first."""
        user_key = self._user_key(user_id)
        with _redis_errors("read_all_for_user"):
            members = self._redis.zrange(user_key, 0, -1)
            events, missing = self._load(members)
            if missing:
                self._redis.zrem(user_key, *missing)
        return events

    def fetch_batch(self, limit: int) -> List[Event]:
        """Up to ``limit`` of the oldest buffered events, across all users."""
        if limit <= 0:
            return []
        with _redis_errors("fetch_batch"):
            members = self._redis.zrange(self.pending_key, 0, limit - 1)
            events, missing = self._load(members)
            if missing:
                logger.info("Pruning %d expired entries from the pending index", len(missing))
                self._redis.zrem(self.pending_key, *missing)
        return events

    def count(self) -> int:
        with _redis_errors("count"):
            return int(self._redis.zcard(self.pending_key))

    def _load(self, members: List[str]) -> Tuple[List[Event], List[str]]:
        if not members:
            return [], []
        raws = self._redis.mget([self._event_key(m) for m in members])
        events: List[Event] = []
        missing: List[str] = []
        for member, raw in zip(members, raws):
            if raw is None:
                missing.append(member)
                continue
            try:
                events.append(Event.from_storage_json(raw))
            except ValidationError:
                logger.warning("Dropping unreadable buffered event %s", member)
                missing.append(member)
                self._redis.delete(self._event_key(member))
        return events, missing
