"""FastAPI application entry point for the short link service.

Application Lifecycle Diagram
===========================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()   │
    │ build        │
    │ container    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ create_all + │
    │ start click  │
    │ recorder     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()   │
    │ shutdown:    │
    │ drain clicks │
    │ close redis  │
    │ dispose db   │
    └─────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn shortener.main:app --host 0.0.0.0 --port 8000

**Step 2 — Make API calls**::
    curl -X POST http://localhost:8000/api/v1/shorten \
         -H "Content-Type: application/json" -H "X-User-Id: alice" \
         -d '{"url": "https://example.com", "custom_code": "promo24"}'

    curl -i http://localhost:8000/promo24

Key Behaviours
===============
- A container already placed on ``app.state`` (tests do this) is used
  as-is; otherwise one is built from settings at startup.
- Prometheus metrics are exposed on /metrics.
"""

__all__ = ["app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from shortener.config import get_settings
from shortener.dependencies import ServiceContainer
from shortener.routes import router

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    container = getattr(app.state, "container", None)
    owns_container = container is None
    if owns_container:
        container = ServiceContainer.from_settings(settings)
        app.state.container = container
        await container.startup()
    yield
    if owns_container:
        await container.shutdown()
        app.state.container = None


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Short link service with cache-aside resolution",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)

app.include_router(router)
