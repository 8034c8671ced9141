"""Click recorder lifecycle and failure isolation tests."""

import logging

import pytest

from shortener.clicks import ClickRecorder
from shortener.store import LinkStore


class FlakyStore(LinkStore):
    """Fails the first write, then behaves."""

    def __init__(self) -> None:
        super().__init__()
        self.failures = 0

    async def record_click(self, session, url_id, source_address=None, occurred_at=None):
        if self.failures == 0:
            self.failures += 1
            raise RuntimeError("disk full")
        return await super().record_click(session, url_id, source_address, occurred_at)


async def _count(database, store, url_id: str) -> int:
    async with database.session() as session:
        return await store.count_clicks(session, url_id)


@pytest.mark.asyncio
async def test_submit_before_start_is_dropped(database, store) -> None:
    recorder = ClickRecorder(database.session, store)
    assert recorder.is_running is False
    assert recorder.submit("url-1", "10.0.0.1") is False
    assert recorder.pending == 0


@pytest.mark.asyncio
async def test_full_queue_drops_without_blocking(database, store) -> None:
    recorder = ClickRecorder(database.session, store, maxsize=1)
    await recorder.start()
    try:
        # No await between submits, so the worker cannot drain in between.
        assert recorder.submit("url-1") is True
        assert recorder.submit("url-1") is False
    finally:
        await recorder.stop()

    assert await _count(database, store, "url-1") == 1


@pytest.mark.asyncio
async def test_failure_is_logged_and_worker_keeps_going(database, caplog) -> None:
    store = FlakyStore()
    recorder = ClickRecorder(database.session, store)
    await recorder.start()

    with caplog.at_level(logging.ERROR, logger="shortener.clicks"):
        recorder.submit("url-1", "10.0.0.1")
        recorder.submit("url-1", "10.0.0.2")
        await recorder.drain()

    assert recorder.is_running is True
    assert "Click tracking error for url-1: disk full" in caplog.text
    assert await _count(database, store, "url-1") == 1
    await recorder.stop()


@pytest.mark.asyncio
async def test_stop_drains_queued_events(database, store) -> None:
    recorder = ClickRecorder(database.session, store)
    await recorder.start()
    for _ in range(5):
        recorder.submit("url-9", "10.0.0.1")

    await recorder.stop()

    assert recorder.is_running is False
    assert await _count(database, store, "url-9") == 5


@pytest.mark.asyncio
async def test_start_is_idempotent(database, store) -> None:
    recorder = ClickRecorder(database.session, store)
    await recorder.start()
    task = recorder._task
    await recorder.start()
    assert recorder._task is task
    await recorder.stop()
    await recorder.stop()
