"""Cache-aside resolver tests: hit/miss paths, expiry, degradation, clicks."""

import asyncio
import datetime

import pytest
import pytest_asyncio

from shortener.cache import ResolutionCache
from shortener.clicks import ClickRecorder
from shortener.exceptions import LinkExpiredError, LinkNotFoundError, StoreUnavailableError
from shortener.models import Link, utcnow
from shortener.resolver import Resolver
from shortener.store import LinkStore


class SlowStore(LinkStore):
    async def get_by_short_code(self, session, short_code):
        await asyncio.sleep(1)
        return await super().get_by_short_code(session, short_code)


@pytest.fixture
def cache(fake_redis) -> ResolutionCache:
    return ResolutionCache(fake_redis, ttl_seconds=1800)


@pytest_asyncio.fixture
async def recorder(database, store):
    clicks = ClickRecorder(database.session, store)
    await clicks.start()
    yield clicks
    await clicks.stop()


@pytest.fixture
def resolver(database, cache, store, recorder) -> Resolver:
    return Resolver(database.session, cache, store, recorder)


async def _insert(database, store, short_code="promo24", **fields) -> Link:
    async with database.session() as session:
        link = await store.create_link(
            session,
            Link(owner_id="alice", long_url="https://example.com", short_code=short_code, **fields),
        )
        await session.commit()
    return link


async def _clicks(database, store, url_id: str) -> int:
    async with database.session() as session:
        return await store.count_clicks(session, url_id)


@pytest.mark.asyncio
async def test_miss_populates_cache_then_hits(database, store, resolver, fake_redis) -> None:
    link = await _insert(database, store)

    first = await resolver.resolve("promo24", "10.0.0.1")
    assert first.long_url == "https://example.com"
    assert first.url_id == link.id
    assert first.cache_hit is False
    assert fake_redis.ttls["link:promo24"] == 1800

    second = await resolver.resolve("promo24", "10.0.0.1")
    assert second.cache_hit is True
    assert second.long_url == "https://example.com"


@pytest.mark.asyncio
async def test_unknown_code_is_not_found_without_side_effects(database, store, resolver, recorder, fake_redis) -> None:
    with pytest.raises(LinkNotFoundError):
        await resolver.resolve("nope123", "10.0.0.1")

    await recorder.drain()
    assert fake_redis.data == {}
    assert recorder.pending == 0
    async with database.session() as session:
        assert await store.short_code_exists(session, "nope123") is False


@pytest.mark.asyncio
async def test_expiry_enforced_even_right_after_cache_write(database, store, cache, recorder, fake_redis) -> None:
    link = await _insert(database, store, expires_at=utcnow() + datetime.timedelta(hours=1))
    later = utcnow() + datetime.timedelta(hours=2)
    resolver = Resolver(database.session, cache, store, recorder, clock=lambda: later)

    with pytest.raises(LinkExpiredError):
        await resolver.resolve("promo24")
    # The store fallback still wrote the entry with its own, longer TTL.
    assert "link:promo24" in fake_redis.data

    with pytest.raises(LinkExpiredError):
        await resolver.resolve("promo24")

    await recorder.drain()
    assert await _clicks(database, store, link.id) == 0


@pytest.mark.asyncio
async def test_promo24_lifecycle(database, store, cache, recorder) -> None:
    created = utcnow()
    await _insert(database, store)

    within = Resolver(database.session, cache, store, recorder, clock=lambda: created + datetime.timedelta(days=29))
    assert (await within.resolve("promo24")).long_url == "https://example.com"

    after = Resolver(database.session, cache, store, recorder, clock=lambda: created + datetime.timedelta(days=30, seconds=5))
    with pytest.raises(LinkExpiredError):
        await after.resolve("promo24")


@pytest.mark.asyncio
async def test_corrupted_cache_entry_falls_back_to_store(database, store, resolver, fake_redis) -> None:
    await _insert(database, store)
    fake_redis.data["link:promo24"] = "{garbage"

    resolved = await resolver.resolve("promo24")

    assert resolved.long_url == "https://example.com"
    assert resolved.cache_hit is False
    assert fake_redis.data["link:promo24"] != "{garbage"


@pytest.mark.asyncio
async def test_undecodable_cache_entry_falls_back_to_store(database, store, resolver, fake_redis) -> None:
    await _insert(database, store)
    fake_redis.data["link:promo24"] = b"\xff\xfe\x00garbage"

    resolved = await resolver.resolve("promo24")

    assert resolved.long_url == "https://example.com"
    assert resolved.cache_hit is False
    assert isinstance(fake_redis.data["link:promo24"], str)


@pytest.mark.asyncio
async def test_link_resolves_at_its_exact_expiry_instant(database, store, cache, recorder) -> None:
    expires_at = utcnow() + datetime.timedelta(hours=1)
    await _insert(database, store, expires_at=expires_at)

    at_expiry = Resolver(database.session, cache, store, recorder, clock=lambda: expires_at)
    assert (await at_expiry.resolve("promo24")).long_url == "https://example.com"

    just_after = Resolver(
        database.session, cache, store, recorder, clock=lambda: expires_at + datetime.timedelta(microseconds=1)
    )
    with pytest.raises(LinkExpiredError):
        await just_after.resolve("promo24")


@pytest.mark.asyncio
async def test_cache_outage_does_not_fail_resolution(database, store, resolver, fake_redis) -> None:
    await _insert(database, store)
    fake_redis.down = True

    resolved = await resolver.resolve("promo24")

    assert resolved.long_url == "https://example.com"
    assert fake_redis.data == {}


@pytest.mark.asyncio
async def test_click_recorded_in_background(database, store, resolver, recorder) -> None:
    link = await _insert(database, store)

    for _ in range(3):
        await resolver.resolve("promo24", "192.168.1.7")
    await recorder.drain()

    assert await _clicks(database, store, link.id) == 3


@pytest.mark.asyncio
async def test_stopped_recorder_does_not_fail_resolution(database, store, cache) -> None:
    await _insert(database, store)
    idle = ClickRecorder(database.session, store)
    resolver = Resolver(database.session, cache, store, idle)

    resolved = await resolver.resolve("promo24", "10.0.0.1")

    assert resolved.long_url == "https://example.com"


@pytest.mark.asyncio
async def test_store_timeout_surfaces_without_retry(database, store, cache, recorder) -> None:
    await _insert(database, store)
    resolver = Resolver(database.session, cache, SlowStore(), recorder, store_timeout=0.05)

    with pytest.raises(StoreUnavailableError):
        await resolver.resolve("promo24")


@pytest.mark.asyncio
async def test_deleted_link_still_served_from_cache_until_ttl(database, store, resolver) -> None:
    link = await _insert(database, store)
    await resolver.resolve("promo24")

    async with database.session() as session:
        await store.delete_link(session, link.id, "alice")
        await session.commit()

    resolved = await resolver.resolve("promo24")
    assert resolved.cache_hit is True
    assert resolved.long_url == "https://example.com"
