"""
Domain notifications pushed over the real-time channel.

Friend and group changes happen elsewhere (HTTP handlers, jobs). Once the
change is committed, callers use this service to turn it into events. Every
event goes through ``Hub.broadcast_event``: delivered directly when the
recipient is online, buffered otherwise.

Group fan-out lists members through the group directory, which is a blocking
call; invoke the group methods from sync handlers or worker threads.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from app.core.contracts import GroupDirectory
from app.core.hub import Hub
from app.infra.logging_config import get_logger
from app.schemas.event import (
    AddedToGroupPayload,
    Event,
    EventType,
    FriendRequestAcceptedPayload,
    FriendRequestReceivedPayload,
    FriendRequestRejectedPayload,
    RemovedFromGroupPayload,
    UnfriendedPayload,
    UserJoinedGroupPayload,
    UserLeftGroupPayload,
)
from app.schemas.group import GroupInfo
from app.schemas.user import UserProfile

logger = get_logger("notifications")


class NotificationService:
    def __init__(self, hub: Hub, groups: GroupDirectory) -> None:
        self._hub = hub
        self._groups = groups

    # friends

    def friend_request_received(
        self, request_id: UUID, sender: UserProfile, receiver_id: UUID
    ) -> Event:
        return self._send(
            EventType.FRIEND_REQUEST_RECEIVED,
            FriendRequestReceivedPayload(request_id=request_id, sender=sender),
            recipient_id=receiver_id,
            sender_id=sender.id,
        )

    def friend_request_accepted(
        self, request_id: UUID, receiver: UserProfile, sender_id: UUID
    ) -> Event:
        """Tell the requester that ``receiver`` accepted."""
        return self._send(
            EventType.FRIEND_REQUEST_ACCEPTED,
            FriendRequestAcceptedPayload(request_id=request_id, receiver=receiver),
            recipient_id=sender_id,
            sender_id=receiver.id,
        )

    def friend_request_rejected(
        self, request_id: UUID, user: UserProfile, sender_id: UUID
    ) -> Event:
        return self._send(
            EventType.FRIEND_REQUEST_REJECTED,
            FriendRequestRejectedPayload(request_id=request_id, user=user),
            recipient_id=sender_id,
            sender_id=user.id,
        )

    def unfriended(self, user: UserProfile, friend_id: UUID) -> Event:
        """``user`` removed ``friend_id`` from their friends."""
        return self._send(
            EventType.UNFRIENDED,
            UnfriendedPayload(user=user),
            recipient_id=friend_id,
            sender_id=user.id,
        )

    # groups

    def added_to_group(self, group: GroupInfo, user_id: UUID, adder_id: UUID) -> List[Event]:
        """Notify the added user, then every other member."""
        events = [
            self._send(
                EventType.ADDED_TO_GROUP,
                AddedToGroupPayload(
                    group_id=group.id, group_name=group.name, adder_id=adder_id
                ),
                recipient_id=user_id,
                sender_id=adder_id,
            )
        ]
        events.extend(self.user_joined_group(group, user_id, adder_id=adder_id))
        return events

    def removed_from_group(
        self, group: GroupInfo, user_id: UUID, remover_id: UUID
    ) -> List[Event]:
        events = [
            self._send(
                EventType.REMOVED_FROM_GROUP,
                RemovedFromGroupPayload(
                    group_id=group.id, group_name=group.name, remover_id=remover_id
                ),
                recipient_id=user_id,
                sender_id=remover_id,
            )
        ]
        events.extend(self.user_left_group(group, user_id, remover_id=remover_id))
        return events

    def user_joined_group(
        self, group: GroupInfo, user_id: UUID, adder_id: Optional[UUID] = None
    ) -> List[Event]:
        payload = UserJoinedGroupPayload(
            group_id=group.id, group_name=group.name, user_id=user_id, adder_id=adder_id
        )
        return self._notify_members(
            group, EventType.USER_JOINED_GROUP, payload, skip=user_id, sender_id=adder_id or user_id
        )

    def user_left_group(
        self, group: GroupInfo, user_id: UUID, remover_id: Optional[UUID] = None
    ) -> List[Event]:
        payload = UserLeftGroupPayload(
            group_id=group.id, group_name=group.name, user_id=user_id, remover_id=remover_id
        )
        return self._notify_members(
            group, EventType.USER_LEFT_GROUP, payload, skip=user_id, sender_id=remover_id or user_id
        )

    def _notify_members(
        self, group: GroupInfo, event_type: EventType, payload, skip: UUID, sender_id: UUID
    ) -> List[Event]:
        member_ids = [m for m in self._groups.list_member_ids(group.id) if m != skip]
        events = [
            self._send(event_type, payload, recipient_id=m, sender_id=sender_id)
            for m in member_ids
        ]
        logger.debug(
            "Sent %s for group %s to %d members", event_type.value, group.id, len(events)
        )
        return events

    def _send(self, event_type: EventType, payload, recipient_id: UUID, sender_id: UUID) -> Event:
        event = Event.create(event_type, payload, recipient_id, sender_id)
        self._hub.broadcast_event(event)
        return event
