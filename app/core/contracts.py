"""
Narrow interfaces the hub and the services depend on.

Implementations live in app.services; tests pass fakes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol, Sequence
from uuid import UUID

from app.schemas.event import Event
from app.schemas.group import GroupInfo
from app.schemas.user import UserProfile


class UserDirectory(Protocol):
    def get_profile(self, user_id: UUID) -> Optional[UserProfile]: ...

    def get_profiles(self, user_ids: Iterable[UUID]) -> Dict[UUID, UserProfile]: ...

    def get_user_id_by_username(self, username: str) -> Optional[UUID]: ...


class GroupDirectory(Protocol):
    def get_group(self, group_id: UUID) -> Optional[GroupInfo]: ...

    def list_member_ids(self, group_id: UUID) -> List[UUID]: ...


class EventBuffer(Protocol):
    """Short-lived holding area for events awaiting delivery or migration."""

    def append(self, event: Event) -> None: ...

    def read_all_for_user(self, user_id: UUID) -> List[Event]: ...

    def clear_for_user(self, user_id: UUID) -> int: ...

    def fetch_batch(self, limit: int) -> List[Event]: ...

    def remove(self, events: Sequence[Event]) -> int: ...

    def remove_ids(self, user_id: UUID, event_ids: Iterable[UUID]) -> int: ...

    def count(self) -> int: ...


class DurableEventStore(Protocol):
    def store_event(self, event: Event) -> None: ...

    def store_events(self, events: Sequence[Event]) -> List[UUID]: ...

    def fetch_undelivered(
        self, user_id: UUID, cursor: Optional[datetime], limit: int
    ) -> List[Event]: ...

    def delete_event(self, event_id: UUID, recipient_id: Optional[UUID] = None) -> bool: ...

    def delete_events(
        self, event_ids: Iterable[UUID], recipient_id: Optional[UUID] = None
    ) -> int: ...


class Authenticator(Protocol):
    def authenticate(self, token: Optional[str]) -> UUID: ...
