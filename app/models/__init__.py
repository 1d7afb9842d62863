from app.models.event import Event
from app.models.group import Group, GroupMember
from app.models.user import User

__all__ = [
    "Event",
    "Group",
    "GroupMember",
    "User",
]
