"""Background click recorder decoupled from the redirect response.

The resolver hands each successful resolution to ``ClickRecorder.submit``,
which only enqueues and returns. A single long-lived worker task drains
the queue and appends every event in its own transaction.

Click Tracking Flow
-------------------
::
    ┌─────────────┐
    │  Resolver    │
    │  success     │
    └──────┬──────┘
           ▼
    ┌─────────────┐  FULL /
    │ submit()     │  STOPPED ──► log + dropped metric
    │ put_nowait   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ worker task  │
    │ own session  │
    └──────┬──────┘
    OK?    │
    ┌──────┴─────┐
    │ NO          │ YES
    ▼             ▼
┌─────────┐  ┌─────────┐
│rollback │  │ commit  │
│log+count│  │ count   │
└─────────┘  └─────────┘

Key Behaviours
===============
- Delivery is at-most-once: events still queued when the process dies
  are lost, so click counts may under-count.
- ``stop()`` drains what is queued within a bounded time, then cancels.
- A failing event never stops the worker.
"""

import asyncio
import datetime
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from shortener.enums import ClickOutcome
from shortener.metrics import CLICK_EVENTS_TOTAL
from shortener.models import utcnow
from shortener.store import LinkStore

__all__ = ["ClickEvent", "ClickRecorder"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClickEvent:
    url_id: str
    source_address: str | None = None
    occurred_at: datetime.datetime = field(default_factory=utcnow)


class ClickRecorder:
    """Owns the click queue and the worker that persists it."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        store: LinkStore,
        maxsize: int = 10000,
        drain_timeout: float = 5.0,
    ) -> None:
        self._session_factory = session_factory
        self._store = store
        self._queue: asyncio.Queue[ClickEvent] = asyncio.Queue(maxsize=maxsize)
        self._drain_timeout = drain_timeout
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="click-recorder")
        logger.info("Click recorder started")

    async def stop(self) -> None:
        if self._task is None:
            return

        try:
            async with asyncio.timeout(self._drain_timeout):
                await self._queue.join()
        except TimeoutError:
            logger.warning(f"Click recorder stopped with {self._queue.qsize()} events still queued")

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Click recorder stopped")

    def submit(self, url_id: str, source_address: str | None = None) -> bool:
        """Enqueue a click without waiting. Returns False when it was dropped."""
        if not self.is_running:
            CLICK_EVENTS_TOTAL.labels(outcome=ClickOutcome.DROPPED).inc()
            logger.warning(f"Click for {url_id} dropped: recorder is not running")
            return False
        try:
            self._queue.put_nowait(ClickEvent(url_id=url_id, source_address=source_address))
        except asyncio.QueueFull:
            CLICK_EVENTS_TOTAL.labels(outcome=ClickOutcome.DROPPED).inc()
            logger.warning(f"Click for {url_id} dropped: queue full ({self._queue.maxsize})")
            return False
        CLICK_EVENTS_TOTAL.labels(outcome=ClickOutcome.QUEUED).inc()
        return True

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._record(event)
            finally:
                self._queue.task_done()

    async def _record(self, event: ClickEvent) -> None:
        async with self._session_factory() as session:
            try:
                await self._store.record_click(session, event.url_id, event.source_address, event.occurred_at)
                await session.commit()
            except Exception as exc:
                await session.rollback()
                CLICK_EVENTS_TOTAL.labels(outcome=ClickOutcome.FAILED).inc()
                logger.error(f"Click tracking error for {event.url_id}: {exc}")
                return
        CLICK_EVENTS_TOTAL.labels(outcome=ClickOutcome.RECORDED).inc()
