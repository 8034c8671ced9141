"""Redis client construction for the resolution cache.

Flow Diagram — Redis client lifecycle
=====================================
::
    ┌─────────────┐
    │  lifespan() │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │create_redis(│
    │ settings)   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Shared by    │
    │ all requests │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ close_redis()│
    │ on shutdown  │
    └─────────────┘

Key Behaviours
===============
- One client per process, built at startup and injected, never a global.
- Socket and connect timeouts come from CACHE_TIMEOUT_SECONDS so a slow
  cache degrades to a miss instead of stalling redirects.
- UTF-8 encoding with decode_responses for string payloads.

Functions:
    create_redis():  Build the shared async client.
    close_redis():  Close it on shutdown.
"""

import redis.asyncio as redis

from shortener.config import Settings

__all__ = ["create_redis", "close_redis"]


def create_redis(settings: Settings) -> redis.Redis:
    return redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.CACHE_TIMEOUT_SECONDS,
        socket_connect_timeout=settings.CACHE_TIMEOUT_SECONDS,
    )


async def close_redis(client: redis.Redis | None) -> None:
    if client is not None:
        await client.aclose()
