"""Resolution cache tests: serialization, TTL and degradation to a miss."""

import datetime
import json

import pytest

from shortener.cache import DEFAULT_CACHE_TTL_SECONDS, ResolutionCache
from shortener.models import Link
from shortener.schemas import CachedLinkPayload

EXPIRES_AT = datetime.datetime(2030, 1, 1, tzinfo=datetime.timezone.utc)


@pytest.fixture
def link() -> Link:
    return Link(
        id="2b1f6a1e-0000-4000-8000-000000000001",
        owner_id="alice",
        long_url="https://example.com",
        short_code="promo24",
        expires_at=EXPIRES_AT,
    )


@pytest.mark.asyncio
async def test_set_stores_projection_with_fixed_ttl(fake_redis, link) -> None:
    cache = ResolutionCache(fake_redis)

    assert await cache.set(link) is True

    assert fake_redis.ttls["link:promo24"] == DEFAULT_CACHE_TTL_SECONDS == 1800
    stored = json.loads(fake_redis.data["link:promo24"])
    assert set(stored) == {"id", "long_url", "short_code", "expires_at"}
    assert stored["long_url"] == "https://example.com"


@pytest.mark.asyncio
async def test_get_returns_entry(fake_redis, link) -> None:
    cache = ResolutionCache(fake_redis)
    await cache.set(link)

    entry = await cache.get("promo24")

    assert entry == CachedLinkPayload(
        id=link.id, long_url=link.long_url, short_code="promo24", expires_at=EXPIRES_AT
    )


@pytest.mark.asyncio
async def test_get_absent_is_miss(fake_redis) -> None:
    assert await ResolutionCache(fake_redis).get("nothing") is None


@pytest.mark.asyncio
async def test_key_prefix_is_configurable(fake_redis, link) -> None:
    cache = ResolutionCache(fake_redis, key_prefix="v2")
    await cache.set(link)
    assert "v2:promo24" in fake_redis.data


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        "not json at all",
        '{"id": "x", "long_url": "https://example.com"}',
        '{"id": "", "long_url": "https://example.com", "short_code": "a", "expires_at": "2030-01-01T00:00:00Z"}',
        '{"id": "x", "long_url": "u", "short_code": "a", "expires_at": "not-a-date"}',
        b"\xff\xfe\x00garbage",
    ],
)
async def test_corrupted_payload_is_miss(fake_redis, payload: str | bytes) -> None:
    fake_redis.data["link:broken"] = payload
    assert await ResolutionCache(fake_redis).get("broken") is None


@pytest.mark.asyncio
async def test_unreachable_cache_degrades(fake_redis, link) -> None:
    cache = ResolutionCache(fake_redis)
    fake_redis.down = True

    assert await cache.get("promo24") is None
    assert await cache.set(link) is False


@pytest.mark.asyncio
async def test_slow_cache_times_out_to_miss(fake_redis, link) -> None:
    cache = ResolutionCache(fake_redis, timeout_seconds=0.01)
    fake_redis.data["link:promo24"] = CachedLinkPayload.model_validate(link).model_dump_json()
    fake_redis.delay = 0.5

    assert await cache.get("promo24") is None
    assert await cache.set(link) is False
