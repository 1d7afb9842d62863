"""In-memory collaborators and a running hub for core tests."""

import json
from datetime import datetime
from typing import Dict, List, Optional, Set
from unittest.mock import MagicMock
from uuid import UUID

import pytest
import pytest_asyncio

from app.core.client import Client
from app.core.exceptions import EventStoreError
from app.core.hub import Hub
from app.schemas.group import GroupInfo
from app.schemas.user import UserProfile


class FakeUserDirectory:
    def __init__(self) -> None:
        self.profiles: Dict[UUID, UserProfile] = {}

    def add(self, profile: UserProfile) -> None:
        self.profiles[profile.id] = profile

    def get_profile(self, user_id):
        return self.profiles.get(user_id)

    def get_profiles(self, user_ids):
        return {i: self.profiles[i] for i in user_ids if i in self.profiles}

    def get_user_id_by_username(self, username):
        for profile in self.profiles.values():
            if profile.username == username:
                return profile.id
        return None


class FakeGroupDirectory:
    def __init__(self) -> None:
        self.groups: Dict[UUID, GroupInfo] = {}
        self.members: Dict[UUID, List[UUID]] = {}
        self.fail = False

    def add(self, group: GroupInfo, member_ids: List[UUID]) -> None:
        self.groups[group.id] = group
        self.members[group.id] = list(member_ids)

    def get_group(self, group_id):
        if self.fail:
            raise ConnectionError("directory unavailable")
        return self.groups.get(group_id)

    def list_member_ids(self, group_id):
        return list(self.members.get(group_id, []))


class InMemoryEventStore:
    """Durable store double; ``failing_ids`` and ``fail_batches`` simulate outages."""

    def __init__(self) -> None:
        self.events = {}
        self.failing_ids: Set[UUID] = set()
        self.fail_batches = False

    def store_event(self, event) -> None:
        if event.id in self.failing_ids:
            raise EventStoreError("insert failed")
        self.events[event.id] = event

    def store_events(self, events):
        if self.fail_batches:
            raise EventStoreError("batch insert failed")
        for event in events:
            self.store_event(event)
        return [e.id for e in events]

    def fetch_undelivered(self, user_id, cursor: Optional[datetime] = None, limit: int = 100):
        matching = [
            e
            for e in self.events.values()
            if e.recipient_id == user_id and (cursor is None or e.created_at > cursor)
        ]
        return sorted(matching, key=lambda e: e.created_at)[:limit]

    def delete_event(self, event_id, recipient_id=None):
        return self.delete_events([event_id], recipient_id) > 0

    def delete_events(self, event_ids, recipient_id=None):
        deleted = 0
        for event_id in list(event_ids):
            event = self.events.get(event_id)
            if event is None:
                continue
            if recipient_id is not None and event.recipient_id != recipient_id:
                continue
            del self.events[event_id]
            deleted += 1
        return deleted


def drain_frames(client: Client) -> List[dict]:
    """Pop every queued frame, skipping the close sentinel."""
    frames = []
    while not client._queue.empty():
        item = client._queue.get_nowait()
        if isinstance(item, str):
            frames.append(json.loads(item))
    return frames


@pytest.fixture
def user_directory():
    return FakeUserDirectory()


@pytest.fixture
def group_directory():
    return FakeGroupDirectory()


@pytest.fixture
def event_store():
    return InMemoryEventStore()


@pytest_asyncio.fixture
async def hub(event_buffer, event_store, user_directory, group_directory):
    hub = Hub(
        event_buffer,
        event_store,
        user_directory,
        group_directory,
        replay_on_connect=False,
    )
    await hub.start()
    yield hub
    await hub.stop()


@pytest.fixture
def make_client():
    """Client with a mock transport; pumps are not started."""

    def factory(hub, user_id, queue_size=256) -> Client:
        return Client(hub, MagicMock(), user_id, queue_size=queue_size)

    return factory
