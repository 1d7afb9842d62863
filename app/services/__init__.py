from app.services.event_buffer import RedisEventBuffer
from app.services.event_inbox_service import EventInboxService
from app.services.event_service import EventService, SessionScopedEventStore
from app.services.group_service import GroupService
from app.services.user_service import UserService

__all__ = [
    "EventInboxService",
    "EventService",
    "GroupService",
    "RedisEventBuffer",
    "SessionScopedEventStore",
    "UserService",
]
