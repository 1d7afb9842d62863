"""Tests for the undelivered events API."""

from uuid import uuid4

from app.services.event_service import EventService


def test_list_undelivered_requires_auth(client):
    r = client.get("/events/undelivered")
    assert r.status_code == 401
    assert r.json()["detail"]["code"] == "token_missing"


def test_list_undelivered_events(client, db, event_buffer, make_message_event, auth_headers):
    user_id = uuid4()
    durable = make_message_event(recipient_id=user_id, minutes_ago=5)
    buffered = make_message_event(recipient_id=user_id, minutes_ago=1)
    EventService(db).store_event(durable)
    event_buffer.append(buffered)
    event_buffer.append(make_message_event())

    r = client.get("/events/undelivered", headers=auth_headers(user_id))

    assert r.status_code == 200
    data = r.json()["data"]
    assert [e["id"] for e in data] == [str(durable.id), str(buffered.id)]
    assert data[0]["type"] == "message_sent"
    assert "recipientId" not in data[0]
    assert data[0]["payload"]["content"] == durable.payload.content


def test_list_undelivered_with_cursor(client, event_buffer, make_message_event, auth_headers):
    user_id = uuid4()
    first = make_message_event(recipient_id=user_id, minutes_ago=5)
    second = make_message_event(recipient_id=user_id, minutes_ago=1)
    event_buffer.append(first)
    event_buffer.append(second)

    r = client.get(
        "/events/undelivered",
        params={"cursor": first.created_at.isoformat(), "limit": 10},
        headers=auth_headers(user_id),
    )

    assert r.status_code == 200
    assert [e["id"] for e in r.json()["data"]] == [str(second.id)]


def test_acknowledge_events(client, event_buffer, make_message_event, auth_headers):
    user_id = uuid4()
    mine = make_message_event(recipient_id=user_id)
    theirs = make_message_event()
    event_buffer.append(mine)
    event_buffer.append(theirs)

    r = client.post(
        "/events/ack",
        json={"eventIds": [str(mine.id), str(theirs.id)]},
        headers=auth_headers(user_id),
    )

    assert r.status_code == 200
    assert r.json() == {"data": {"deleted": 1}}
    assert event_buffer.read_all_for_user(user_id) == []
    assert event_buffer.read_all_for_user(theirs.recipient_id) == [theirs]


def test_acknowledge_requires_ids(client, auth_headers):
    r = client.post("/events/ack", json={"eventIds": []}, headers=auth_headers(uuid4()))
    assert r.status_code == 422
