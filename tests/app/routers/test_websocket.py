"""End-to-end tests for the /ws endpoint."""

from uuid import uuid4

import pytest
from fastapi import WebSocketDisconnect


def send_message(ws, recipient_id, content="hi"):
    ws.send_json(
        {"type": "message_sent", "payload": {"content": content, "recipientId": str(recipient_id)}}
    )


@pytest.mark.parametrize("query", ["", "?token=not-a-user-id"])
def test_unauthenticated_connection_is_refused(client, query):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws{query}") as ws:
            ws.receive_json()
    assert exc.value.code == 1008


def test_message_to_offline_user(client, event_buffer):
    alice_id, bob_id = uuid4(), uuid4()

    with client.websocket_connect(f"/ws?token={alice_id}") as ws:
        send_message(ws, bob_id, "hello bob")
        ack = ws.receive_json()

    assert ack["type"] == "message_ack"
    assert ack["payload"]["status"] == "sent"
    assert ack["payload"]["recipientId"] == str(bob_id)
    (event,) = event_buffer.read_all_for_user(bob_id)
    assert event.payload.content == "hello bob"
    assert str(event.payload.id) == ack["payload"]["messageId"]


def test_message_between_online_users(client):
    alice_id, bob_id = uuid4(), uuid4()

    with client.websocket_connect("/ws", headers={"Authorization": f"Bearer {bob_id}"}) as bob:
        # a self-addressed message is acked once bob is registered
        send_message(bob, bob_id, "ready")
        assert bob.receive_json()["type"] == "message_ack"

        with client.websocket_connect(f"/ws?token={alice_id}") as alice:
            send_message(alice, bob_id, "hey")
            ack = alice.receive_json()
            received = bob.receive_json()

    assert ack["payload"]["status"] == "sent"
    assert received["type"] == "message_sent"
    assert received["senderId"] == str(alice_id)
    assert received["payload"]["content"] == "hey"


def test_buffered_events_are_replayed_on_connect(client, event_buffer, make_message_event):
    user_id = uuid4()
    event = make_message_event(recipient_id=user_id)
    event_buffer.append(event)

    with client.websocket_connect(f"/ws?token={user_id}") as ws:
        replayed = ws.receive_json()
        ws.send_json({"type": "event_ack", "payload": {"eventIds": [replayed["id"]]}})
        # round trip so the ack is handled before disconnecting
        send_message(ws, user_id, "sync")
        ws.receive_json()

    assert replayed["id"] == str(event.id)
    assert event_buffer.read_all_for_user(user_id) == []


def test_binary_frame_keeps_connection_open(client, event_buffer):
    alice_id, bob_id = uuid4(), uuid4()

    with client.websocket_connect(f"/ws?token={alice_id}") as ws:
        ws.send_bytes(b"\xff\xfe not a text frame")
        send_message(ws, bob_id, "still connected")
        ack = ws.receive_json()

    assert ack["type"] == "message_ack"
    assert ack["payload"]["status"] == "sent"
    (event,) = event_buffer.read_all_for_user(bob_id)
    assert event.payload.content == "still connected"
