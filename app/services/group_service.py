"""Group lookups and membership changes."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.group import Group, GroupMember


class GroupService:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get_group(self, group_id: UUID) -> Optional[Group]:
        return self._db.query(Group).filter(Group.id == group_id).first()

    def get_group_by_handle(self, handle: str) -> Optional[Group]:
        return self._db.query(Group).filter(Group.handle == handle).first()

    def list_member_ids(self, group_id: UUID) -> List[UUID]:
        """Member ids in join order."""
        rows = (
            self._db.query(GroupMember.user_id)
            .filter(GroupMember.group_id == group_id)
            .order_by(GroupMember.joined_at.asc())
            .all()
        )
        return [row[0] for row in rows]

    def is_member(self, group_id: UUID, user_id: UUID) -> bool:
        return (
            self._db.query(GroupMember)
            .filter(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
            .first()
            is not None
        )

    def create_group(self, handle: str, name: str, owner_id: UUID) -> Group:
        """Create a group with its owner as the first member."""
        group = Group(handle=handle, name=name, owner_id=owner_id)
        self._db.add(group)
        self._db.flush()
        self._db.add(GroupMember(group_id=group.id, user_id=owner_id))
        self._db.commit()
        self._db.refresh(group)
        return group

    def add_member(self, group_id: UUID, user_id: UUID) -> bool:
        """Returns False if the user was already a member."""
        if self.is_member(group_id, user_id):
            return False
        self._db.add(GroupMember(group_id=group_id, user_id=user_id))
        self._db.commit()
        return True

    def remove_member(self, group_id: UUID, user_id: UUID) -> bool:
        deleted = (
            self._db.query(GroupMember)
            .filter(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
            .delete(synchronize_session=False)
        )
        self._db.commit()
        return deleted > 0
