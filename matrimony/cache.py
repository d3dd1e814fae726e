"""
Redis-backed rate limiting.

When Redis is not connected every action is allowed; rate limiting is a
guard rail, not part of the connection rules.
"""
import logging
from . import core

logger = logging.getLogger(__name__)

async def check_rate_limit(user_id: int, action: str, limit: int = 100, window: int = 3600) -> bool:
    """Check if user is within rate limit"""
    if not core.REDIS:
        return True

    key = f"rate:rate_limit:{user_id}:{action}"
    try:
        current = await core.REDIS.incr(key)
        if current == 1:
            await core.REDIS.expire(key, window)
        return current <= limit
    except Exception as e:
        logger.error(f"Rate limit check failed for key {key}: {str(e)}")
        return True
