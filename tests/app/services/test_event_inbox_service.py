"""Tests for the merged undelivered-event inbox."""

from uuid import uuid4

from app.services.event_inbox_service import EventInboxService
from app.services.event_service import EventService


def test_fetch_merges_buffer_and_store(db, event_buffer, make_message_event):
    user_id = uuid4()
    durable = make_message_event(recipient_id=user_id, minutes_ago=10)
    buffered = make_message_event(recipient_id=user_id, minutes_ago=5)
    in_both = make_message_event(recipient_id=user_id, minutes_ago=1)
    store = EventService(db)
    store.store_events([durable, in_both])
    event_buffer.append(buffered)
    event_buffer.append(in_both)

    events = EventInboxService(event_buffer, store).fetch_undelivered(user_id)

    assert [e.id for e in events] == [durable.id, buffered.id, in_both.id]


def test_fetch_applies_cursor_and_limit(db, event_buffer, make_message_event):
    user_id = uuid4()
    events = [make_message_event(recipient_id=user_id, minutes_ago=m) for m in (4, 3, 2, 1)]
    store = EventService(db)
    store.store_events(events[:2])
    for event in events[2:]:
        event_buffer.append(event)
    inbox = EventInboxService(event_buffer, store)

    page = inbox.fetch_undelivered(user_id, cursor=events[0].created_at, limit=2)

    assert [e.id for e in page] == [events[1].id, events[2].id]


def test_acknowledge_deletes_from_both_stores(db, event_buffer, make_message_event):
    user_id = uuid4()
    durable = make_message_event(recipient_id=user_id, minutes_ago=2)
    buffered = make_message_event(recipient_id=user_id, minutes_ago=1)
    foreign = make_message_event()
    store = EventService(db)
    store.store_events([durable, foreign])
    event_buffer.append(buffered)
    inbox = EventInboxService(event_buffer, store)

    deleted = inbox.acknowledge(user_id, [durable.id, buffered.id, foreign.id])

    assert deleted == 2
    assert inbox.fetch_undelivered(user_id) == []
    assert len(inbox.fetch_undelivered(foreign.recipient_id)) == 1
    assert inbox.acknowledge(user_id, []) == 0
