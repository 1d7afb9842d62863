"""User model (read-only projection owned by the user-management service)."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, String, Uuid

from app.db import Base
from app.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(64), unique=True, nullable=False, index=True)
    avatar_url = Column(String(512), nullable=True)
