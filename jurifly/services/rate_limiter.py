# =============================================================================
# Rate Limiter — Redis Sliding Window per Identity
# =============================================================================
#
# Applied to flow invocations, the only endpoints that call the hosted model.
# Each request adds a member scored by its timestamp to a Redis sorted set;
# members older than the window are pruned and the remainder is counted.
#
# DESIGN DECISION: Sliding window over fixed window. A fixed window lets a
# client spend two full quotas across a minute boundary.
#
# DESIGN DECISION: Graceful degradation. If Redis is unavailable the limit
# is skipped with a warning. A Redis outage must not take flows down.
#
# A rejected request is removed from the window again, so a client that
# keeps retrying while limited does not extend its own lockout.
# =============================================================================

from __future__ import annotations

import logging
import math
import time
import uuid

from fastapi import HTTPException

from jurifly.config import settings

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60

_redis_client = None


def _get_rate_limit_redis():
    """Lazily create and cache the async Redis client."""
    global _redis_client
    if _redis_client is None:
        import redis.asyncio as aioredis
        _redis_client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return _redis_client


def _retry_after(oldest: list, now: float) -> int:
    """Seconds until the oldest request in the window ages out."""
    if not oldest:
        return WINDOW_SECONDS
    _, oldest_score = oldest[0]
    return max(1, math.ceil(float(oldest_score) + WINDOW_SECONDS - now))


async def check_rate_limit(subject: str, limit: int | None = None) -> None:
    """
    Count one flow invocation for `subject` (a uid) against `limit`
    (default RATE_LIMIT_RPM).

    Raises:
        HTTPException 429 with Retry-After when the window is full.
    """
    limit = limit or settings.rate_limit_rpm
    key = f"ratelimit:uid:{subject}"

    try:
        redis = _get_rate_limit_redis()
        now = time.time()
        member = f"{now:.6f}:{uuid.uuid4().hex[:8]}"

        pipe = redis.pipeline()
        pipe.zremrangebyscore(key, 0, now - WINDOW_SECONDS)
        pipe.zcard(key)
        pipe.zrange(key, 0, 0, withscores=True)
        pipe.zadd(key, {member: now})
        pipe.expire(key, WINDOW_SECONDS + 10)
        _, in_window, oldest, _, _ = await pipe.execute()

        if in_window >= limit:
            await redis.zrem(key, member)
            logger.info("Rate limit hit for uid=%s (%d/%d)", subject, in_window, limit)
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Limit: {limit} requests/minute.",
                headers={"Retry-After": str(_retry_after(oldest, now))},
            )

    except HTTPException:
        raise
    except Exception as e:
        logger.warning(
            "Rate limiter unavailable (Redis error): %s. Allowing request through.",
            e,
        )
