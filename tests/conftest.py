"""Shared pytest fixtures: SQLite database, in-memory Redis double, API client."""

import asyncio
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from shortener.config import Settings
from shortener.database import Database
from shortener.dependencies import ServiceContainer
from shortener.main import app
from shortener.store import LinkStore


class InMemoryRedis:
    """Just enough of redis.asyncio.Redis (decode_responses=True) for the resolution cache.

    Values planted as bytes are decoded on read like the real client does,
    so invalid UTF-8 raises UnicodeDecodeError from get().
    """

    def __init__(self) -> None:
        self.data: dict[str, str | bytes] = {}
        self.ttls: dict[str, int | None] = {}
        self.down = False
        self.delay: float = 0.0
        self.closed = False

    async def _io(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.down:
            raise RedisConnectionError("Connection refused")

    async def get(self, key: str) -> str | None:
        await self._io()
        value = self.data.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        await self._io()
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def ping(self) -> bool:
        await self._io()
        return True

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'shortener.db'}",
        REDIS_URL="redis://localhost:6379/15",
        CACHE_TIMEOUT_SECONDS=0.2,
        STORE_TIMEOUT_SECONDS=1.0,
        CLICK_DRAIN_TIMEOUT_SECONDS=2.0,
    )


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def store() -> LinkStore:
    return LinkStore()


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    db = Database(settings)
    await db.create_all()
    yield db
    await db.drop_all()
    await db.dispose()


@pytest_asyncio.fixture
async def container(settings: Settings, fake_redis: InMemoryRedis) -> AsyncGenerator[ServiceContainer, None]:
    services = ServiceContainer(settings, Database(settings), fake_redis)
    await services.startup()
    yield services
    await services.shutdown()


@pytest_asyncio.fixture
async def client(container: ServiceContainer) -> AsyncGenerator[AsyncClient, None]:
    app.state.container = container
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.state.container = None
