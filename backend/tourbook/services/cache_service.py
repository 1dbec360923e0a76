"""
Redis caching service for tour listings.

CACHING STRATEGY
================

What we cache:
  - The public tour listing response (JSON-serialized)
  - Cache key: "tours:list"

Why:
  - The tour catalogue is the most frequent read on the site and changes
    only when an admin edits a tour
  - Serving from Redis: ~1ms vs PostgreSQL: ~15-50ms

Invalidation:
  - TTL-based expiry (REDIS_CACHE_TTL). Tour edits happen in the admin
    dashboard and are allowed to show up within one TTL.

What we never cache:
  - Bookings and anything payment related. Payment status must always be
    read from the database.

Redis is optional: every helper fails open and the caller falls back to the
database when Redis is disabled or unreachable.
"""

import json
from typing import Optional

import redis.asyncio as redis
from tourbook.core.config import get_settings
from tourbook.core.metrics import record_cache_operation
from tourbook.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

TOUR_LIST_KEY = "tours:list"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None


async def get_cached_tours() -> Optional[dict]:
    """Retrieve the cached tour list response."""
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(TOUR_LIST_KEY)
        record_cache_operation("get", hit=bool(data))
        if data:
            return json.loads(data)
    except Exception as e:
        logger.error("cache_get_error", key=TOUR_LIST_KEY, error=str(e))

    return None


async def set_cached_tours(data: dict) -> None:
    """Cache the tour list response with TTL."""
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(TOUR_LIST_KEY, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=TOUR_LIST_KEY, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=TOUR_LIST_KEY, error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
