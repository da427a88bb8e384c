from __future__ import annotations

import json
import logging
from typing import Any

import redis

from ..core.config import get_settings

logger = logging.getLogger(__name__)


def _get_sync_redis() -> redis.Redis | None:
    """
    Fresh sync Redis client per call, or None when REDIS_URL is unset.
    """
    url = get_settings().REDIS_URL
    if not url:
        return None
    return redis.from_url(
        str(url),
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5,
    )


def cache_key(prefix: str, *parts: Any) -> str:
    return prefix + ":" + "|".join("" if p is None else str(p) for p in parts)


async def cached_get(
    key: str,
    set_value: Any | None = None,
    ttl: int | None = None,
) -> Any:
    """
    Async TTL cache backed by Redis.

    Usage:

        value = await cached_get("k")                  # read
        await cached_get("k", set_value=value, ttl=60) # write with TTL

    - On read: returns cached value (deserialized JSON) or None if missing/expired.
    - On write: stores value (serialized JSON) with optional TTL and returns it.
    - Without REDIS_URL, or on any Redis error, reads miss and writes are dropped.
    """
    client = _get_sync_redis()
    if client is None:
        return None if set_value is None else set_value
    try:
        if set_value is None:
            val = client.get(key)
            if val is not None:
                return json.loads(val)
            return None

        serialized = json.dumps(set_value)
        if ttl is not None:
            client.set(key, serialized, ex=ttl)
        else:
            client.set(key, serialized)
        return set_value

    except redis.RedisError as e:
        logger.warning("Redis cache unavailable: %s", e, extra={"operation": "cached_get"})
        return None if set_value is None else set_value
    finally:
        try:
            client.close()
        except redis.RedisError:
            pass
