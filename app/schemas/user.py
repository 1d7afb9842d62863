"""Pydantic schemas for users as seen by the delivery core."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for wire schemas: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class UserProfile(CamelModel):
    """Public projection of a user embedded in event payloads."""

    id: UUID
    username: str
    avatar_url: Optional[str] = None
