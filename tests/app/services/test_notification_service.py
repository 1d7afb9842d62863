"""Tests for friend and group notifications."""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from app.schemas.event import EventType
from app.schemas.group import GroupInfo
from app.schemas.user import UserProfile
from app.services.notification_service import NotificationService


@pytest.fixture
def hub_mock():
    return MagicMock()


@pytest.fixture
def crew(group_directory):
    group = GroupInfo(id=uuid4(), handle="crew", name="Crew")
    members = [uuid4(), uuid4(), uuid4()]
    group_directory.add(group, members)
    return group, members


def broadcast_events(hub_mock):
    return [call.args[0] for call in hub_mock.broadcast_event.call_args_list]


def test_friend_request_received(hub_mock, group_directory):
    sender = UserProfile(id=uuid4(), username="gus")
    receiver_id, request_id = uuid4(), uuid4()

    event = NotificationService(hub_mock, group_directory).friend_request_received(
        request_id, sender, receiver_id
    )

    assert broadcast_events(hub_mock) == [event]
    assert event.type == EventType.FRIEND_REQUEST_RECEIVED
    assert event.recipient_id == receiver_id
    assert event.sender_id == sender.id
    wire = event.to_wire()
    assert wire["payload"] == {
        "requestId": str(request_id),
        "sender": {"id": str(sender.id), "username": "gus"},
    }


def test_friend_request_accepted_goes_to_requester(hub_mock, group_directory):
    receiver = UserProfile(id=uuid4(), username="hal", avatar_url="https://x/h.png")
    requester_id = uuid4()

    event = NotificationService(hub_mock, group_directory).friend_request_accepted(
        uuid4(), receiver, requester_id
    )

    assert event.recipient_id == requester_id
    assert event.payload.receiver == receiver


def test_friend_request_rejected_and_unfriended(hub_mock, group_directory):
    user = UserProfile(id=uuid4(), username="ivy")
    other_id = uuid4()
    service = NotificationService(hub_mock, group_directory)

    rejected = service.friend_request_rejected(uuid4(), user, other_id)
    unfriended = service.unfriended(user, other_id)

    assert [e.type for e in broadcast_events(hub_mock)] == [
        EventType.FRIEND_REQUEST_REJECTED,
        EventType.UNFRIENDED,
    ]
    assert rejected.recipient_id == unfriended.recipient_id == other_id


def test_added_to_group_notifies_user_and_other_members(hub_mock, group_directory, crew):
    group, members = crew
    added, adder = members[0], members[1]

    events = NotificationService(hub_mock, group_directory).added_to_group(
        group, added, adder
    )

    assert events[0].type == EventType.ADDED_TO_GROUP
    assert events[0].recipient_id == added
    assert events[0].payload.adder_id == adder
    joined = events[1:]
    assert {e.recipient_id for e in joined} == {members[1], members[2]}
    assert all(e.type == EventType.USER_JOINED_GROUP for e in joined)
    assert all(e.payload.user_id == added for e in joined)
    assert broadcast_events(hub_mock) == events


def test_removed_from_group_skips_removed_user(hub_mock, group_directory, crew):
    group, members = crew
    removed, remover = members[2], members[0]
    # membership already updated by the caller
    group_directory.members[group.id].remove(removed)

    events = NotificationService(hub_mock, group_directory).removed_from_group(
        group, removed, remover
    )

    assert events[0].type == EventType.REMOVED_FROM_GROUP
    assert events[0].recipient_id == removed
    left = events[1:]
    assert {e.recipient_id for e in left} == {members[0], members[1]}
    assert all(e.payload.remover_id == remover for e in left)


def test_user_left_group_without_remover(hub_mock, group_directory, crew):
    group, members = crew

    events = NotificationService(hub_mock, group_directory).user_left_group(
        group, members[0]
    )

    assert len(events) == 2
    assert all(e.sender_id == members[0] for e in events)
    assert "removerId" not in events[0].to_wire()["payload"]
