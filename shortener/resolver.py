"""Cache-aside resolution of short codes for the redirect hot path.

Flow Diagram — Resolver.resolve()
=================================
::
    ┌─────────────┐
    │  GET /:code │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Cache lookup │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            │
┌─────────┐      │
│ Store   │─NOT FOUND─► rollback → LinkNotFoundError
│ read +  │      │
│ commit  │      │
└────┬────┘      │
     ▼           │
┌─────────┐      │
│ Cache   │      │
│ set TTL │      │
└────┬────┘      │
     └─────┬─────┘
           ▼
    ┌─────────────┐
    │ Expiry check │─EXPIRED─► LinkExpiredError
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Enqueue click│ (not awaited)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ ResolvedLink │
    └─────────────┘

Key Behaviours
===============
- Expiry is checked on every resolution, whatever the source, so a cache
  entry whose TTL outlives the link never serves it past its expiry.
- A cache that is down, slow or holding garbage only costs latency.
- A store timeout is not retried; it surfaces as StoreUnavailableError.
- Unknown codes are not negatively cached and write nothing.
"""

import asyncio
import datetime
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from shortener.cache import ResolutionCache
from shortener.clicks import ClickRecorder
from shortener.enums import CacheStatus, RequestStatus
from shortener.exceptions import LinkExpiredError, LinkNotFoundError, StoreUnavailableError
from shortener.metrics import CACHE_HITS_TOTAL, CACHE_MISSES_TOTAL, RESOLVE_DURATION, RESOLVE_REQUESTS_TOTAL
from shortener.models import utcnow
from shortener.schemas import CachedLinkPayload
from shortener.store import LinkStore

__all__ = ["ResolvedLink", "Resolver"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedLink:
    long_url: str
    url_id: str
    short_code: str
    cache_hit: bool


class Resolver:
    """Resolves short codes through the cache, the store and the expiry rule."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        cache: ResolutionCache,
        store: LinkStore,
        click_recorder: ClickRecorder,
        store_timeout: float | None = None,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._cache = cache
        self._store = store
        self._clicks = click_recorder
        self._store_timeout = store_timeout
        self._clock = clock

    async def resolve(self, short_code: str, source_address: str | None = None) -> ResolvedLink:
        """Map a short code to its long URL and dispatch a click.

        Raises:
            LinkNotFoundError: no record holds the code.
            LinkExpiredError: the record's expiry has passed.
            StoreUnavailableError: the store read timed out.
        """
        start_time = time.perf_counter()
        cache_status = CacheStatus.MISS
        try:
            entry = await self._cache.get(short_code)
            if entry is not None:
                cache_status = CacheStatus.HIT
                CACHE_HITS_TOTAL.inc()
            else:
                CACHE_MISSES_TOTAL.inc()
                entry = await self._load_from_store(short_code)
                await self._cache.set(entry)

            if entry.is_expired(self._clock()):
                raise LinkExpiredError(short_code)

        except LinkNotFoundError:
            RESOLVE_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND, cache_hit=cache_status).inc()
            raise
        except LinkExpiredError:
            RESOLVE_REQUESTS_TOTAL.labels(status=RequestStatus.EXPIRED, cache_hit=cache_status).inc()
            raise
        except Exception as exc:
            RESOLVE_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR, cache_hit=cache_status).inc()
            logger.error(f"Resolve error for {short_code}: {exc}")
            raise
        finally:
            RESOLVE_DURATION.observe(time.perf_counter() - start_time)

        self._clicks.submit(entry.id, source_address)
        RESOLVE_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=cache_status).inc()
        return ResolvedLink(
            long_url=entry.long_url,
            url_id=entry.id,
            short_code=entry.short_code,
            cache_hit=cache_status is CacheStatus.HIT,
        )

    async def _load_from_store(self, short_code: str) -> CachedLinkPayload:
        async with self._session_factory() as session:
            try:
                async with asyncio.timeout(self._store_timeout):
                    link = await self._store.get_by_short_code(session, short_code)
                    await session.commit()
            except TimeoutError as exc:
                await session.rollback()
                raise StoreUnavailableError(f"Store lookup for '{short_code}' timed out") from exc
            except Exception:
                await session.rollback()
                raise
            return CachedLinkPayload.model_validate(link)
