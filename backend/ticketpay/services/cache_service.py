"""
Redis read-through cache for active coupons.

CACHING STRATEGY
================

What we cache:
  - Active coupons only, as {"id", "code", "discount"} JSON
  - Key pattern: "coupons:active:{code}"

Why:
  - Every checkout with a promo code looks one up
  - Coupons are read-only from the booking flow and change rarely

Invalidation:
  - TTL-based expiry (REDIS_CACHE_TTL)
  - A cache hit is checked against the row's is_active flag; an entry for
    a deactivated coupon is dropped on the spot

Failure mode:
  The cache fails open. Any Redis error is logged and counted and the
  caller falls through to the database, which stays authoritative.
"""

import json
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ticketpay.core.config import get_settings
from ticketpay.core.logging import get_logger
from ticketpay.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or down."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except RedisError as e:
            redis_connection_errors.inc()
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return None
        _redis_client = client
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _coupon_key(code: str) -> str:
    return f"coupons:active:{code}"


async def get_cached_coupon(code: str) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _coupon_key(code)
    try:
        data = await client.get(key)
    except RedisError as e:
        redis_connection_errors.inc()
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data is None:
        return None
    return json.loads(data)


async def set_cached_coupon(coupon: dict) -> None:
    client = await get_redis()
    if not client:
        return

    key = _coupon_key(coupon["code"])
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(coupon))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except RedisError as e:
        redis_connection_errors.inc()
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_cached_coupon(code: str) -> None:
    client = await get_redis()
    if not client:
        return

    key = _coupon_key(code)
    try:
        await client.delete(key)
        logger.info("cache_invalidated", key=key)
    except RedisError as e:
        redis_connection_errors.inc()
        logger.error("cache_delete_error", key=key, error=str(e))


async def get_cache_stats() -> dict:
    """Redis statistics for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
