"""
Errors raised by the real-time delivery core.

Routers turn them into HTTP responses with to_http_exception(); the hub and
the pumps catch them per connection so one bad client never affects another.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class ParleyError(Exception):
    """Base class for delivery-core errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class AuthenticationError(ParleyError):
    """Token missing, malformed, expired or not naming a user."""

    status_code = status.HTTP_401_UNAUTHORIZED


class RecipientResolutionError(ParleyError):
    """The recipient address could not be resolved to a set of users."""

    status_code = 422


class EventStoreError(ParleyError):
    """Buffer or durable store rejected a read or write."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
