"""Link management: create, delete, list and per-link click statistics.

Flow Diagram — LinkService.create_link()
========================================
::
    ┌─────────────┐
    │ POST /api/v1│
    │ /shorten    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate     │─BAD─► LinkValidationError (400)
    │ custom code, │
    │ expiry       │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ BEGIN        │
    └──────┬──────┘
    CUSTOM? │
    ┌─────┴─────┐
    │ YES        │ NO
    ▼            ▼
┌─────────┐  ┌──────────────┐
│ exists? │  │ generator    │
│ → 409   │  │ (same tx,    │
│         │  │  ≤10 draws)  │
└────┬────┘  └──────┬───────┘
     └──────┬───────┘
            ▼
    ┌─────────────┐
    │ INSERT       │─UNIQUE─► rollback → 409
    │ COMMIT       │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Link record  │  (cache untouched)
    └─────────────┘

Key Behaviours
===============
- The existence probe and the insert run on one session, inside one
  transaction, rolled back on any error.
- Two creators racing for the same custom code both pass the probe at
  worst; the unique constraint lets exactly one insert through and the
  other gets ShortCodeConflictError.
- Every transaction runs under the store timeout. A timeout rolls back
  and raises StoreUnavailableError (503); nothing is retried.
- Creating a link never writes the cache; deleting one never
  invalidates it.
"""

import asyncio
import datetime
import functools
import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

from shortener.codegen import SHORT_CODE_RETRY_LIMIT, ShortCodeGenerator, validate_custom_code
from shortener.enums import RequestStatus
from shortener.exceptions import (
    LinkNotFoundError,
    LinkValidationError,
    ShortCodeConflictError,
    StoreUnavailableError,
)
from shortener.metrics import LINK_CREATION_DURATION, LINK_CREATION_REQUESTS_TOTAL
from shortener.models import Link, utcnow
from shortener.schemas import LinkCreate
from shortener.store import LinkStore

__all__ = ["LinkService"]

logger = logging.getLogger(__name__)


class LinkService:
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        store: LinkStore,
        generator: ShortCodeGenerator,
        retry_budget: int = SHORT_CODE_RETRY_LIMIT,
        store_timeout: float | None = None,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._store = store
        self._generator = generator
        self._retry_budget = retry_budget
        self._store_timeout = store_timeout
        self._clock = clock

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Session bounded by the store timeout, rolled back on any error."""
        async with self._session_factory() as session:
            try:
                async with asyncio.timeout(self._store_timeout):
                    yield session
            except TimeoutError as exc:
                await session.rollback()
                raise StoreUnavailableError(f"Store {operation} timed out") from exc
            except Exception:
                await session.rollback()
                raise

    async def create_link(self, owner_id: str, request: LinkCreate) -> Link:
        """Create a link for ``owner_id`` with a custom or generated code.

        Raises:
            LinkValidationError: bad custom code or an expiry in the past.
            ShortCodeConflictError: the custom code is taken.
            CollisionExhaustedError: every generated candidate was taken.
            StoreUnavailableError: the store did not answer within its timeout.
        """
        start_time = time.perf_counter()
        try:
            link = await self._create_link(owner_id, request)
        except LinkValidationError as exc:
            self._observe_creation(start_time, RequestStatus.VALIDATION_ERROR)
            logger.warning(f"Link creation rejected: {exc}")
            raise
        except ShortCodeConflictError as exc:
            self._observe_creation(start_time, RequestStatus.CONFLICT)
            logger.warning(f"Link creation conflict: {exc}")
            raise
        except Exception as exc:
            self._observe_creation(start_time, RequestStatus.ERROR)
            logger.error(f"Link creation error: {exc}")
            raise

        duration = self._observe_creation(start_time, RequestStatus.SUCCESS)
        logger.info(f"Link created: {link.short_code} for owner {owner_id} in {duration:.3f}s")
        return link

    async def _create_link(self, owner_id: str, request: LinkCreate) -> Link:
        if request.expires_at is not None and request.expires_at <= self._clock():
            raise LinkValidationError("expires_at must be in the future")
        if request.custom_code is not None:
            validate_custom_code(request.custom_code)

        async with self._transaction("create") as session:
            if request.custom_code is not None:
                if await self._store.short_code_exists(session, request.custom_code):
                    raise ShortCodeConflictError(request.custom_code)
                short_code = request.custom_code
            else:
                short_code = await self._generator.generate(
                    functools.partial(self._store.short_code_exists, session),
                    self._retry_budget,
                )

            link = Link(
                owner_id=owner_id,
                long_url=request.url,
                short_code=short_code,
                expires_at=request.expires_at,
            )
            await self._store.create_link(session, link)
            await session.commit()
        return link

    async def delete_link(self, owner_id: str, link_id: str) -> None:
        async with self._transaction("delete") as session:
            await self._store.delete_link(session, link_id, owner_id)
            await session.commit()
        logger.info(f"Link {link_id} deleted by owner {owner_id}")

    async def list_links(self, owner_id: str) -> list[tuple[Link, int]]:
        async with self._transaction("list") as session:
            links = await self._store.list_links_for_owner(session, owner_id)
            counts = await self._store.count_clicks_for(session, [link.id for link in links])
        return [(link, counts.get(link.id, 0)) for link in links]

    async def get_stats(self, owner_id: str, short_code: str) -> tuple[Link, int]:
        async with self._transaction("stats") as session:
            link = await self._store.get_by_short_code(session, short_code)
            if link.owner_id != owner_id:
                raise LinkNotFoundError()
            clicks = await self._store.count_clicks(session, link.id)
        return link, clicks

    @staticmethod
    def _observe_creation(start_time: float, status: RequestStatus) -> float:
        duration = time.perf_counter() - start_time
        LINK_CREATION_DURATION.observe(duration)
        LINK_CREATION_REQUESTS_TOTAL.labels(status=status).inc()
        return duration
