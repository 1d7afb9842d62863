"""Bearer token authentication for WebSocket and HTTP callers."""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

import jwt

from app.config import Settings, get_settings
from app.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class JWTAuthenticator:
    """
    Validates tokens issued by the user-management service.

    The ``sub`` claim carries the user UUID. With DISABLE_AUTH the token is
    taken to be the user UUID itself (local development and tests).
    """

    def __init__(
        self,
        secret: str,
        algorithms: List[str],
        audience: Optional[str] = None,
        disabled: bool = False,
    ) -> None:
        self.secret = secret
        self.algorithms = algorithms
        self.audience = audience
        self.disabled = disabled

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "JWTAuthenticator":
        s = settings or get_settings()
        return cls(
            secret=s.jwt_secret,
            algorithms=s.jwt_algorithm_list,
            audience=s.jwt_audience,
            disabled=s.disable_auth,
        )

    def authenticate(self, token: Optional[str]) -> UUID:
        if not token:
            raise AuthenticationError("missing token", code="token_missing")

        if self.disabled:
            return self._parse_user_id(token)

        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=self.algorithms,
                audience=self.audience,
                options={
                    "require": ["sub"],
                    "verify_aud": self.audience is not None,
                },
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("token expired", code="token_expired") from e
        except jwt.InvalidTokenError as e:
            logger.debug("Rejected token: %s", e)
            raise AuthenticationError("invalid token", code="token_invalid") from e

        return self._parse_user_id(claims.get("sub"))

    @staticmethod
    def _parse_user_id(value: Optional[str]) -> UUID:
        try:
            return UUID(str(value))
        except (TypeError, ValueError) as e:
            raise AuthenticationError(
                "token subject is not a user id", code="token_subject"
            ) from e


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer ...`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
