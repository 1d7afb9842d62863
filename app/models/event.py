"""
Event model: durable storage for events not yet confirmed by their recipient.

One row per (event, recipient). Rows arrive from the reconciliation sweep and
are deleted once the recipient acknowledges them.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Index, String, Uuid

from app.db import Base
from app.models.mixins import JSONType, utcnow


class Event(Base):
    """Single-recipient event awaiting delivery confirmation."""

    __tablename__ = "events"

    __table_args__ = (
        Index("ix_events_recipient_created", "recipient_id", "created_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True)
    type = Column(String(64), nullable=False)
    payload = Column(JSONType, nullable=False)
    recipient_id = Column(Uuid(as_uuid=True), nullable=False)
    sender_id = Column(Uuid(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
