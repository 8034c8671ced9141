"""TTL-bounded resolution cache keyed by short code (cache-aside).

The cache stores a point-in-time JSON snapshot of a link, not a live
reference. It is filled only after a store read, never on create, and
never invalidated on delete, so an entry can outlive its record until
its TTL lapses. Callers must still check expiry on every hit.

Flow Diagram — ResolutionCache.get()
====================================
::
    ┌─────────────┐
    │ GET link:<code>│
    └──────┬──────┘
    ERROR / TIMEOUT?──────────► log + degrade → None
           │
    ABSENT?───────────────────► None
           │
    ┌──────┴──────┐
    │ Parse JSON   │──INVALID─► log + degrade → None
    └──────┬──────┘
           ▼
    CachedLinkPayload

Key Behaviours
===============
- A corrupted payload is a miss, not an error. That covers bytes that
  are not valid UTF-8 as well as JSON that does not parse.
- An unreachable or slow cache is a miss on read and a logged no-op on
  write. Neither ever raises to the resolver.
- There is no negative caching.
"""

import asyncio
import logging

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from shortener.metrics import CACHE_DEGRADATIONS_TOTAL
from shortener.models import Link
from shortener.schemas import CachedLinkPayload

__all__ = ["ResolutionCache", "DEFAULT_CACHE_TTL_SECONDS"]

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 1800  # 30 minutes

_CACHE_ERRORS = (RedisError, TimeoutError, OSError)


class ResolutionCache:
    def __init__(
        self,
        client: redis.Redis,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        key_prefix: str = "link",
        timeout_seconds: float | None = None,
    ) -> None:
        self._client = client
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix
        self.timeout_seconds = timeout_seconds

    def key(self, short_code: str) -> str:
        return f"{self.key_prefix}:{short_code}"

    async def get(self, short_code: str) -> CachedLinkPayload | None:
        cache_key = self.key(short_code)
        try:
            async with asyncio.timeout(self.timeout_seconds):
                raw = await self._client.get(cache_key)
        except UnicodeDecodeError as exc:
            # The client decodes responses, so non UTF-8 bytes fail inside get().
            CACHE_DEGRADATIONS_TOTAL.labels(operation="decode").inc()
            logger.warning(f"Undecodable cache payload for {cache_key}, treating as miss: {exc.reason}")
            return None
        except _CACHE_ERRORS as exc:
            CACHE_DEGRADATIONS_TOTAL.labels(operation="get").inc()
            logger.warning(f"Cache read failed for {cache_key}, falling back to store: {exc!r}")
            return None

        if raw is None:
            return None

        try:
            return CachedLinkPayload.model_validate_json(raw)
        except ValidationError as exc:
            CACHE_DEGRADATIONS_TOTAL.labels(operation="decode").inc()
            logger.warning(f"Corrupted cache payload for {cache_key}, treating as miss: {exc.error_count()} errors")
            return None

    async def set(self, link: Link | CachedLinkPayload) -> bool:
        payload = link if isinstance(link, CachedLinkPayload) else CachedLinkPayload.model_validate(link)
        cache_key = self.key(payload.short_code)
        try:
            async with asyncio.timeout(self.timeout_seconds):
                await self._client.set(cache_key, payload.model_dump_json(), ex=self.ttl_seconds)
        except _CACHE_ERRORS as exc:
            CACHE_DEGRADATIONS_TOTAL.labels(operation="set").inc()
            logger.warning(f"Cache write failed for {cache_key}: {exc!r}")
            return False
        return True

    async def ping(self) -> bool:
        return bool(await self._client.ping())
