"""
Optional per-user rate limit for inbound chat messages.

Uses Redis when MESSAGE_RATE_LIMIT_PER_MINUTE is set.
If not set or Redis unavailable, no limit is applied.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

import redis

logger = logging.getLogger(__name__)


def check_message_rate_limit(
    user_id: UUID,
    redis_client: Optional[redis.Redis],
    limit_per_minute: Optional[int],
    namespace: str = "parley",
) -> bool:
    """
    Check if ``user_id`` is within its per-minute message allowance.
    Returns True if allowed, False if rate limited.
    If redis_client or limit_per_minute is None, always returns True.
    """
    if redis_client is None or limit_per_minute is None or limit_per_minute <= 0:
        return True
    key = f"{namespace}:ratelimit:{user_id}"
    try:
        pipe = redis_client.pipeline()
        pipe.incr(key)
        pipe.expire(key, 60)
        results = pipe.execute()
        count = results[0] if results else 0
        return count <= limit_per_minute
    except redis.RedisError as e:
        logger.warning("Rate limit check failed, allowing message: %s", e)
        return True
