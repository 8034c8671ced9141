"""Dependency wiring: one service container per process, one context per request.

The container is built once at startup and stored on ``app.state``; route
dependencies read it from there. Nothing is held in module globals, so
tests build their own container around test doubles.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, Header, HTTPException, Request

from shortener.cache import ResolutionCache
from shortener.clicks import ClickRecorder
from shortener.codegen import ShortCodeGenerator
from shortener.config import Settings, get_settings
from shortener.database import Database
from shortener.exceptions import UnauthorizedError
from shortener.redis import close_redis, create_redis
from shortener.resolver import Resolver
from shortener.service import LinkService
from shortener.store import LinkStore

__all__ = [
    "ServiceContainer",
    "RequestContext",
    "get_container",
    "get_request_context",
    "get_owner_id",
    "get_resolver",
    "get_link_service",
]


# ============================================================================
# SERVICE CONTAINER
# ============================================================================


class ServiceContainer:
    """Process-wide resources, built once and passed explicitly.

    Holds the database, the Redis client and every core component wired
    to them. Safe for concurrent use by all requests; nothing here holds a
    lock across an I/O call.
    """

    def __init__(self, settings: Settings, database: Database, cache_client: redis.Redis) -> None:
        self.settings = settings
        self.logger = self._setup_logger(settings)
        self.database = database
        self.cache_client = cache_client

        self.store = LinkStore(default_expiry_days=settings.DEFAULT_EXPIRY_DAYS)
        self.cache = ResolutionCache(
            cache_client,
            ttl_seconds=settings.CACHE_TTL_SECONDS,
            key_prefix=settings.CACHE_KEY_PREFIX,
            timeout_seconds=settings.CACHE_TIMEOUT_SECONDS,
        )
        self.click_recorder = ClickRecorder(
            database.session,
            self.store,
            maxsize=settings.CLICK_QUEUE_MAXSIZE,
            drain_timeout=settings.CLICK_DRAIN_TIMEOUT_SECONDS,
        )
        self.generator = ShortCodeGenerator(length=settings.SHORT_CODE_LENGTH)
        self.resolver = Resolver(
            database.session,
            self.cache,
            self.store,
            self.click_recorder,
            store_timeout=settings.STORE_TIMEOUT_SECONDS,
        )
        self.link_service = LinkService(
            database.session,
            self.store,
            self.generator,
            retry_budget=settings.SHORT_CODE_RETRY_LIMIT,
            store_timeout=settings.STORE_TIMEOUT_SECONDS,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ServiceContainer":
        settings = settings or get_settings()
        return cls(settings, Database(settings), create_redis(settings))

    async def startup(self) -> None:
        await self.database.create_all()
        await self.click_recorder.start()
        self.logger.info(f"{self.settings.APP_NAME} started ({self.settings.APP_ENV})")

    async def shutdown(self) -> None:
        await self.click_recorder.stop()
        await close_redis(self.cache_client)
        await self.database.dispose()
        self.logger.info(f"{self.settings.APP_NAME} stopped")

    @staticmethod
    def _setup_logger(settings: Settings) -> logging.Logger:
        """Setup the package logger once; module loggers inherit its handler."""
        logger = logging.getLogger("shortener")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(settings.LOG_LEVEL)
        return logger


# ============================================================================
# REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking data plus access to the shared container.

    Attributes:
        container: Process-wide service container
        request_id: Unique identifier for this request
        trace_id: Correlation ID for distributed tracing
        user_agent: Client user agent string
        client_ip: Client IP address, recorded with clicks
        start_time: Request start timestamp
        tags: Request tags for categorization
    """

    container: ServiceContainer
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trace_id: Optional[str] = None
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=lambda: time.time())
    tags: list[str] = field(default_factory=list)

    @property
    def settings(self) -> Settings:
        return self.container.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger with request context attached to every record."""
        return logging.LoggerAdapter(
            self.container.logger,
            {
                "request_id": self.request_id,
                "trace_id": self.trace_id or self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
                "tags": ",".join(self.tags),
            },
        )

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return container


def get_request_context(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> RequestContext:
    return RequestContext(
        container=container,
        trace_id=request.headers.get("x-trace-id"),
        user_agent=request.headers.get("user-agent"),
        client_ip=request.client.host if request.client else None,
    )


def get_owner_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Owner principal set by the upstream auth layer."""
    if not x_user_id:
        exc = UnauthorizedError()
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return x_user_id


def get_resolver(container: ServiceContainer = Depends(get_container)) -> Resolver:
    return container.resolver


def get_link_service(container: ServiceContainer = Depends(get_container)) -> LinkService:
    return container.link_service
