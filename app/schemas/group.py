"""Pydantic schemas for groups."""

from __future__ import annotations

from uuid import UUID

from app.schemas.user import CamelModel


class GroupInfo(CamelModel):
    """What the delivery core needs to know about a group."""

    id: UUID
    handle: str
    name: str
