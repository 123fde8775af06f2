"""Async Redis connection factory.

Returns a connected ``redis.asyncio`` client, or None when the server cannot
be reached. Callers fall back to the in-process cache on None.
"""

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from shared.logging import get_logger

log = get_logger(__name__)


def _masked(redis_uri: str) -> str:
    return redis_uri.split("@")[-1]


async def create_redis_client(
    redis_uri: str, socket_timeout: float = 2.0
) -> Optional[aioredis.Redis]:
    """Connect to Redis and return a client, or None on failure."""
    client: aioredis.Redis = aioredis.from_url(
        redis_uri,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
    )
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        log.warning(
            "redis_connection_failed",
            uri=_masked(redis_uri),
            error=str(e),
            error_type=type(e).__name__,
        )
        await client.aclose()
        return None
    log.info("redis_connected", uri=_masked(redis_uri))
    return client
