"""Inbound WebSocket frames: a {type, payload} envelope plus per-type payloads."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, List
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.user import CamelModel


class InboundFrameType(str, Enum):
    MESSAGE_SENT = "message_sent"
    EVENT_ACK = "event_ack"
    PONG = "pong"


class Frame(BaseModel):
    type: str
    payload: Any = Field(default_factory=dict)


class MessageSentRequest(CamelModel):
    content: str
    recipient_id: UUID


class EventAckRequest(CamelModel):
    """Client confirmation that these events reached it."""

    event_ids: List[UUID] = Field(min_length=1, max_length=500)


PING_FRAME = json.dumps({"type": "ping", "payload": {}})
