"""Redis client management for the download card service.

Redis holds both the Metadata Store blobs and the short-lived link tokens, so a
single process-wide client is shared by the store and the link issuer.

How to Use
===========
**Step 1 — Get the shared client**::
    cache = await get_redis()
    await cache.get("cards.json")

**Step 2 — Cleanup on shutdown**::
    await close_redis()

Key Behaviours
===============
- Redis client is created lazily on first access.
- Global client is reused across all requests.
- Connection is properly closed on application shutdown.
- UTF-8 encoding with decode_responses for string operations.
"""

import redis.asyncio as redis

from dlcard.config import get_settings

__all__ = ["close_redis", "get_redis"]

settings = get_settings()

redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
    return redis_client


async def close_redis() -> None:
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
