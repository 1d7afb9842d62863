"""
Event contracts for real-time delivery.

An Event is a single-recipient fact: fan-out to several users is expanded into
one Event per recipient before anything is persisted or delivered. Every event
type has its own payload model; constructing an Event whose payload does not
match its type fails validation.

Wire form (sent to clients) omits the recipient. Storage form (buffer JSON)
keeps it so the sweep can move events into the durable store.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Type, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.user import CamelModel, UserProfile


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class EventType(str, Enum):
    MESSAGE_SENT = "message_sent"
    MESSAGE_ACK = "message_ack"
    FRIEND_REQUEST_RECEIVED = "friend_request_received"
    FRIEND_REQUEST_ACCEPTED = "friend_request_accepted"
    FRIEND_REQUEST_REJECTED = "friend_request_rejected"
    UNFRIENDED = "unfriended"
    ADDED_TO_GROUP = "added_to_group"
    REMOVED_FROM_GROUP = "removed_from_group"
    USER_JOINED_GROUP = "user_joined_group"
    USER_LEFT_GROUP = "user_left_group"


class AckStatus(str, Enum):
    SENT = "sent"
    PARTIAL = "partial"
    FAILED = "failed"


# -----------------------------------------------------------------------------
# Payloads
# -----------------------------------------------------------------------------


class MessageSentPayload(CamelModel):
    """A chat message. recipient_id is the address the sender used (user or group)."""

    id: UUID
    content: str
    sender_id: UUID
    recipient_id: UUID
    timestamp: datetime
    sender_username: Optional[str] = None
    sender_avatar_url: Optional[str] = None


class MessageAckPayload(CamelModel):
    """Sent back to the author once every recipient has been handled."""

    message_id: UUID
    recipient_id: UUID
    status: AckStatus
    failed_recipient_ids: List[UUID] = Field(default_factory=list)


class FriendRequestReceivedPayload(CamelModel):
    request_id: UUID
    sender: UserProfile


class FriendRequestAcceptedPayload(CamelModel):
    request_id: UUID
    receiver: UserProfile


class FriendRequestRejectedPayload(CamelModel):
    request_id: UUID
    user: UserProfile


class UnfriendedPayload(CamelModel):
    user: UserProfile


class AddedToGroupPayload(CamelModel):
    group_id: UUID
    group_name: str
    adder_id: UUID


class RemovedFromGroupPayload(CamelModel):
    group_id: UUID
    group_name: str
    remover_id: UUID


class UserJoinedGroupPayload(CamelModel):
    group_id: UUID
    group_name: str
    user_id: UUID
    adder_id: Optional[UUID] = None


class UserLeftGroupPayload(CamelModel):
    group_id: UUID
    group_name: str
    user_id: UUID
    remover_id: Optional[UUID] = None


EventPayload = Union[
    MessageSentPayload,
    MessageAckPayload,
    FriendRequestReceivedPayload,
    FriendRequestAcceptedPayload,
    FriendRequestRejectedPayload,
    UnfriendedPayload,
    AddedToGroupPayload,
    RemovedFromGroupPayload,
    UserJoinedGroupPayload,
    UserLeftGroupPayload,
]

PAYLOAD_MODELS: Dict[EventType, Type[BaseModel]] = {
    EventType.MESSAGE_SENT: MessageSentPayload,
    EventType.MESSAGE_ACK: MessageAckPayload,
    EventType.FRIEND_REQUEST_RECEIVED: FriendRequestReceivedPayload,
    EventType.FRIEND_REQUEST_ACCEPTED: FriendRequestAcceptedPayload,
    EventType.FRIEND_REQUEST_REJECTED: FriendRequestRejectedPayload,
    EventType.UNFRIENDED: UnfriendedPayload,
    EventType.ADDED_TO_GROUP: AddedToGroupPayload,
    EventType.REMOVED_FROM_GROUP: RemovedFromGroupPayload,
    EventType.USER_JOINED_GROUP: UserJoinedGroupPayload,
    EventType.USER_LEFT_GROUP: UserLeftGroupPayload,
}


# -----------------------------------------------------------------------------
# Event
# -----------------------------------------------------------------------------


class Event(CamelModel):
    """A single-recipient event, in flight, buffered or stored."""

    id: UUID = Field(default_factory=uuid4)
    type: EventType
    payload: EventPayload
    recipient_id: UUID
    sender_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="before")
    @classmethod
    def _coerce_payload(cls, data: Any) -> Any:
        # Pick the payload model from the event type instead of letting the
        # union guess: several payloads share the same field names.
        if not isinstance(data, dict):
            return data
        payload = data.get("payload")
        if not isinstance(payload, dict):
            return data
        try:
            event_type = EventType(data.get("type"))
        except ValueError:
            return data
        return {**data, "payload": PAYLOAD_MODELS[event_type].model_validate(payload)}

    @model_validator(mode="after")
    def _check_payload_type(self) -> "Event":
        expected = PAYLOAD_MODELS[self.type]
        if not isinstance(self.payload, expected):
            raise ValueError(
                f"payload {type(self.payload).__name__} does not match "
                f"event type {self.type.value}"
            )
        return self

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @classmethod
    def create(
        cls,
        event_type: EventType,
        payload: BaseModel,
        recipient_id: UUID,
        sender_id: Optional[UUID] = None,
    ) -> "Event":
        """Build a new event with a fresh id and the current time."""
        return cls(
            type=event_type,
            payload=payload,
            recipient_id=recipient_id,
            sender_id=sender_id,
        )

    def to_wire(self) -> Dict[str, Any]:
        """Outbound frame sent to the recipient (no recipientId)."""
        return self.model_dump(
            mode="json", by_alias=True, exclude={"recipient_id"}, exclude_none=True
        )

    def to_wire_json(self) -> str:
        return self.model_dump_json(
            by_alias=True, exclude={"recipient_id"}, exclude_none=True
        )

    def to_storage_json(self) -> str:
        """Buffer form, recipient included."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_storage_json(cls, raw: str) -> "Event":
        return cls.model_validate_json(raw)


class UndeliveredEventsResponse(BaseModel):
    data: List[Dict[str, Any]]


class EventAckResult(BaseModel):
    deleted: int


class EventAckResponse(BaseModel):
    data: EventAckResult
