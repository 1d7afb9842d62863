from __future__ import annotations

from typing import Optional

from app.core.auth import JWTAuthenticator
from app.core.contracts import Authenticator, EventBuffer
from app.core.hub import Hub
from app.workers.event_sweeper import EventSweeper


class AppState:
    """Process-wide runtime objects, filled in by the application lifespan."""

    def __init__(self) -> None:
        self.hub: Optional[Hub] = None
        self.buffer: Optional[EventBuffer] = None
        self.authenticator: Authenticator = JWTAuthenticator.from_settings()
        self.sweeper: Optional[EventSweeper] = None


state = AppState()
