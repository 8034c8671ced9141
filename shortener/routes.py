"""FastAPI route definitions for the short link REST API.

API Endpoint Overview
=====================
::
    GET    /health
        └─ HealthResponse (200)

    POST   /api/v1/shorten          (X-User-Id)
        ├─ LinkCreate (request body)
        └─ LinkResponse (201) or 400/401/409/422/500/503

    GET    /api/v1/urls             (X-User-Id)
        └─ list[LinkStats] (200) or 503

    GET    /api/v1/stats/:code      (X-User-Id)
        └─ LinkStats (200), 404 or 503

    DELETE /api/v1/urls/:id         (X-User-Id)
        └─ DeleteResponse (200), 404 or 503

    GET    /:code
        └─ 307 Redirect, 404, 410 or 503

Key Behaviours
===============
- Core errors carry their own HTTP status and are translated here.
- The redirect answers as soon as the click is queued; it never waits
  for the click row to be written.
- 307 redirects preserve the HTTP method.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse

from shortener.dependencies import (
    RequestContext,
    get_link_service,
    get_owner_id,
    get_request_context,
    get_resolver,
)
from shortener.enums import HealthStatus
from shortener.exceptions import ShortenerError
from shortener.models import Link
from shortener.resolver import Resolver
from shortener.schemas import DeleteResponse, HealthResponse, LinkCreate, LinkResponse, LinkStats
from shortener.service import LinkService

__all__ = ["router"]

router = APIRouter()


def _http_error(exc: ShortenerError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


def _link_fields(link: Link, ctx: RequestContext) -> dict:
    return {
        "id": link.id,
        "owner_id": link.owner_id,
        "short_code": link.short_code,
        "long_url": link.long_url,
        "short_url": f"{ctx.settings.BASE_URL}/{link.short_code}",
        "expires_at": link.expires_at,
        "created_at": link.created_at,
    }


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.HEALTHY

    try:
        await ctx.container.database.ping()
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    try:
        await ctx.container.cache.ping()
    except Exception as e:
        ctx.logger.error(f"Cache health check failed: {e}")
        cache_status = HealthStatus.UNHEALTHY

    status = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
        else HealthStatus.UNHEALTHY
    )
    return HealthResponse(status=status, database=db_status, cache=cache_status)


@router.post("/api/v1/shorten", response_model=LinkResponse, status_code=201, tags=["links"])
async def shorten_url(
    payload: LinkCreate,
    owner_id: str = Depends(get_owner_id),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> LinkResponse:
    ctx.add_tag("link_creation")
    ctx.logger.info(
        f"Link shortening requested: {payload.url}",
        extra={"operation": "create_link", "custom_code": payload.custom_code},
    )

    try:
        link = await service.create_link(owner_id, payload)
    except ShortenerError as exc:
        ctx.logger.warning(
            f"Link shortening failed: {exc}",
            extra={"operation": "create_link", "duration_ms": ctx.get_duration()},
        )
        raise _http_error(exc) from exc

    return LinkResponse(**_link_fields(link, ctx))


@router.get("/api/v1/urls", response_model=list[LinkStats], tags=["links"])
async def list_urls(
    owner_id: str = Depends(get_owner_id),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> list[LinkStats]:
    try:
        links = await service.list_links(owner_id)
    except ShortenerError as exc:
        ctx.logger.warning(f"Listing links failed for owner {owner_id}: {exc}")
        raise _http_error(exc) from exc
    return [LinkStats(**_link_fields(link, ctx), clicks=clicks) for link, clicks in links]


@router.get("/api/v1/stats/{short_code}", response_model=LinkStats, tags=["links"])
async def get_stats(
    short_code: str,
    owner_id: str = Depends(get_owner_id),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> LinkStats:
    try:
        link, clicks = await service.get_stats(owner_id, short_code)
    except ShortenerError as exc:
        ctx.logger.warning(f"Stats lookup failed for short code {short_code}: {exc}")
        raise _http_error(exc) from exc
    return LinkStats(**_link_fields(link, ctx), clicks=clicks)


@router.delete("/api/v1/urls/{link_id}", response_model=DeleteResponse, tags=["links"])
async def delete_url(
    link_id: str,
    owner_id: str = Depends(get_owner_id),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> DeleteResponse:
    try:
        await service.delete_link(owner_id, link_id)
    except ShortenerError as exc:
        ctx.logger.warning(f"Delete failed for link {link_id}: {exc}")
        raise _http_error(exc) from exc
    return DeleteResponse(id=link_id)


@router.get("/{short_code}", tags=["redirect"])
async def redirect_to_url(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    resolver: Resolver = Depends(get_resolver),
) -> RedirectResponse:
    ctx.add_tag("redirect")

    try:
        resolved = await resolver.resolve(short_code, ctx.client_ip)
    except ShortenerError as exc:
        ctx.logger.warning(
            f"Redirect failed for {short_code}: {exc}",
            extra={"operation": "redirect", "short_code": short_code, "duration_ms": ctx.get_duration()},
        )
        raise _http_error(exc) from exc

    ctx.logger.info(
        f"Redirect successful: {short_code} -> {resolved.long_url}",
        extra={
            "operation": "redirect",
            "short_code": short_code,
            "url_id": resolved.url_id,
            "cache_hit": resolved.cache_hit,
            "duration_ms": ctx.get_duration(),
        },
    )
    return RedirectResponse(url=resolved.long_url, status_code=307)
