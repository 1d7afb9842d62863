from __future__ import annotations

from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.user import User


class UserService:
    """Read access to users, plus creation for seeding and tests."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_user(self, user_id: UUID) -> Optional[User]:
        return self._db.query(User).filter(User.id == user_id).first()

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self._db.query(User).filter(User.username == username).first()

    def get_users(self, user_ids: Iterable[UUID]) -> List[User]:
        ids = list(user_ids)
        if not ids:
            return []
        return self._db.query(User).filter(User.id.in_(ids)).all()

    def create_user(self, username: str, avatar_url: Optional[str] = None) -> User:
        user = User(username=username, avatar_url=avatar_url)
        self._db.add(user)
        self._db.commit()
        self._db.refresh(user)
        return user
