"""
Database-backed user and group directories used by the hub.

The hub calls these from worker threads, outside any request, so each lookup
runs in its own short session.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import sessionmaker

from app.db import SessionLocal, db_session
from app.schemas.group import GroupInfo
from app.schemas.user import UserProfile
from app.services.group_service import GroupService
from app.services.user_service import UserService


class DatabaseUserDirectory:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def get_profile(self, user_id: UUID) -> Optional[UserProfile]:
        with db_session(self._session_factory) as db:
            user = UserService(db).get_user(user_id)
            return UserProfile.model_validate(user) if user else None

    def get_profiles(self, user_ids: Iterable[UUID]) -> Dict[UUID, UserProfile]:
        with db_session(self._session_factory) as db:
            users = UserService(db).get_users(user_ids)
            return {u.id: UserProfile.model_validate(u) for u in users}

    def get_user_id_by_username(self, username: str) -> Optional[UUID]:
        with db_session(self._session_factory) as db:
            user = UserService(db).get_user_by_username(username)
            return user.id if user else None


class DatabaseGroupDirectory:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def get_group(self, group_id: UUID) -> Optional[GroupInfo]:
        with db_session(self._session_factory) as db:
            group = GroupService(db).get_group(group_id)
            return GroupInfo.model_validate(group) if group else None

    def list_member_ids(self, group_id: UUID) -> List[UUID]:
        with db_session(self._session_factory) as db:
            return GroupService(db).list_member_ids(group_id)
