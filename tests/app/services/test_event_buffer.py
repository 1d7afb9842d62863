"""Tests for the Redis event buffer."""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest
import redis

from app.core.exceptions import EventStoreError
from app.services.event_buffer import RedisEventBuffer


def test_append_and_read_for_user_oldest_first(event_buffer, make_message_event):
    user_id = uuid4()
    newer = make_message_event(recipient_id=user_id, minutes_ago=1)
    older = make_message_event(recipient_id=user_id, minutes_ago=5)
    event_buffer.append(newer)
    event_buffer.append(older)
    event_buffer.append(make_message_event())

    assert event_buffer.read_all_for_user(user_id) == [older, newer]
    assert event_buffer.count() == 3


def test_append_sets_ttl(event_buffer, redis_client, make_message_event):
    event = make_message_event()
    event_buffer.append(event)

    assert 0 < redis_client.ttl(f"test:event:{event.id}") <= 3600
    assert 0 < redis_client.ttl(f"test:user:{event.recipient_id}") <= 3600


def test_fetch_batch_returns_oldest_across_users(event_buffer, make_message_event):
    events = [make_message_event(minutes_ago=m) for m in (1, 9, 5)]
    for event in events:
        event_buffer.append(event)

    batch = event_buffer.fetch_batch(2)

    assert [e.id for e in batch] == [events[1].id, events[2].id]
    assert event_buffer.fetch_batch(0) == []


def test_expired_entries_are_pruned(event_buffer, redis_client, make_message_event):
    live = make_message_event(minutes_ago=1)
    expired = make_message_event(minutes_ago=2)
    event_buffer.append(live)
    event_buffer.append(expired)
    redis_client.delete(f"test:event:{expired.id}")

    assert event_buffer.fetch_batch(10) == [live]
    assert event_buffer.count() == 1
    assert event_buffer.read_all_for_user(expired.recipient_id) == []


def test_remove_clears_every_index(event_buffer, make_message_event):
    first = make_message_event()
    second = make_message_event()
    event_buffer.append(first)
    event_buffer.append(second)

    assert event_buffer.remove([first]) == 1

    assert event_buffer.read_all_for_user(first.recipient_id) == []
    assert event_buffer.fetch_batch(10) == [second]


def test_remove_ids_only_touches_owner(event_buffer, make_message_event):
    user_id = uuid4()
    mine = make_message_event(recipient_id=user_id)
    theirs = make_message_event()
    event_buffer.append(mine)
    event_buffer.append(theirs)

    assert event_buffer.remove_ids(user_id, [mine.id, theirs.id]) == 1
    assert event_buffer.read_all_for_user(user_id) == []
    assert event_buffer.read_all_for_user(theirs.recipient_id) == [theirs]
    assert event_buffer.remove_ids(user_id, []) == 0


def test_clear_for_user(event_buffer, make_message_event):
    user_id = uuid4()
    for minutes in (1, 2):
        event_buffer.append(make_message_event(recipient_id=user_id, minutes_ago=minutes))
    other = make_message_event()
    event_buffer.append(other)

    assert event_buffer.clear_for_user(user_id) == 2
    assert event_buffer.count() == 1
    assert event_buffer.fetch_batch(10) == [other]


def test_unreadable_entries_are_dropped(event_buffer, redis_client, make_message_event):
    event = make_message_event()
    event_buffer.append(event)
    redis_client.set(f"test:event:{event.id}", "{garbage")

    assert event_buffer.fetch_batch(10) == []
    assert event_buffer.count() == 0


def test_redis_errors_become_event_store_errors(make_message_event):
    client = MagicMock()
    client.pipeline.side_effect = redis.ConnectionError("refused")
    client.zcard.side_effect = redis.ConnectionError("refused")
    buffer = RedisEventBuffer(client, namespace="test")

    with pytest.raises(EventStoreError):
        buffer.append(make_message_event())
    with pytest.raises(EventStoreError):
        buffer.count()
