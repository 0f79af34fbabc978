"""Async Redis client with graceful fallback.

Redis holds the audit trail. If Redis is unavailable, operations log warnings
and return None/defaults. Team operations must never fail because Redis is down.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as aioredis

from teamkit.config import settings

logger = logging.getLogger(__name__)

_redis: aioredis.Redis | None = None
# Number of open connect_redis() calls not yet matched by disconnect_redis()
_holders: int = 0


async def connect_redis(url: str | None = None) -> None:
    """Connect to Redis. Logs warning if unavailable, does not raise.

    The client is shared; a second call reuses the live connection.
    """
    global _redis, _holders
    _holders += 1
    if _redis is not None:
        return
    url = url or settings.redis_url
    try:
        _redis = aioredis.from_url(url, decode_responses=True)
        await _redis.ping()
        logger.info("Redis connected at %s", url)
    except Exception:
        logger.warning("Redis unavailable at %s; audit records will be dropped", url)
        _redis = None


async def disconnect_redis() -> None:
    """Close Redis connection once every connect_redis() caller has disconnected."""
    global _redis, _holders
    _holders = max(_holders - 1, 0)
    if _holders > 0:
        return
    if _redis is not None:
        await _redis.aclose()
        _redis = None
        logger.info("Redis disconnected")


def get_redis() -> aioredis.Redis | None:
    """Return the shared Redis instance (or None if unavailable)."""
    return _redis


# ---------------------------------------------------------------------------
# Capped list helpers
# ---------------------------------------------------------------------------

async def list_append(key: str, value: Any, max_len: int) -> bool:
    """Append a JSON-serializable value, keeping the newest ``max_len``. False if Redis is down."""
    if _redis is None:
        return False
    try:
        async with _redis.pipeline(transaction=True) as pipe:
            pipe.rpush(key, json.dumps(value))
            pipe.ltrim(key, -max_len, -1)
            await pipe.execute()
        return True
    except Exception:
        logger.warning("Redis list_append failed for key %s", key)
        return False


async def list_tail(key: str, limit: int) -> list[Any]:
    """Newest ``limit`` values, oldest first. Empty if missing or Redis is down."""
    if _redis is None:
        return []
    try:
        raw = await _redis.lrange(key, -limit, -1)
        return [json.loads(item) for item in raw]
    except Exception:
        logger.warning("Redis list_tail failed for key %s", key)
        return []
