"""Pydantic schemas for request/response validation and the cache payload.

Schema Hierarchy
=================
::
    LinkCreate (Input)
    ├─ url: str (validated URL)
    ├─ custom_code: str | None
    └─ expires_at: datetime | None

    LinkResponse (Output)
    ├─ id, owner_id, short_code, long_url
    ├─ short_url: str (computed)
    └─ expires_at, created_at

    LinkStats (Output)
    └─ LinkResponse + clicks

    CachedLinkPayload (Redis value)
    └─ id, long_url, short_code, expires_at

How to Use
===========
**Step 1 — Input validation**::
    @router.post("/api/v1/shorten")
    async def shorten_url(payload: LinkCreate):
        # payload.url is already a well-formed URL
        ...

**Step 2 — Cache serialization**::
    raw = CachedLinkPayload.model_validate(link).model_dump_json()
    entry = CachedLinkPayload.model_validate_json(raw)

Key Behaviours
===============
- URL validation uses the validators library for RFC compliance.
- Custom code rules (length, charset, reserved words) are enforced by the
  code generator, not here, so they surface as 400 rather than 422.
- All datetime fields are timezone-aware.
"""

import datetime

import validators
from pydantic import BaseModel, Field, field_validator

from shortener.enums import HealthStatus

__all__ = [
    "LinkCreate",
    "LinkResponse",
    "LinkStats",
    "DeleteResponse",
    "HealthResponse",
    "CachedLinkPayload",
]


def _ensure_aware(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


class LinkCreate(BaseModel):
    url: str
    custom_code: str | None = None
    expires_at: datetime.datetime | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not validators.url(v):
            raise ValueError("Invalid URL provided")
        return v

    @field_validator("custom_code")
    @classmethod
    def empty_custom_code_means_generate(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, v: datetime.datetime | None) -> datetime.datetime | None:
        return _ensure_aware(v) if v is not None else None


class LinkResponse(BaseModel):
    id: str
    owner_id: str
    short_code: str
    long_url: str
    short_url: str
    expires_at: datetime.datetime
    created_at: datetime.datetime

    model_config = {"from_attributes": True}


class LinkStats(LinkResponse):
    clicks: int


class DeleteResponse(BaseModel):
    id: str
    deleted: bool = True


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus


class CachedLinkPayload(BaseModel):
    """Redis cache payload: exactly what a redirect needs to resolve and validate."""

    id: str = Field(..., min_length=1)
    long_url: str = Field(..., min_length=1)
    short_code: str = Field(..., min_length=1)
    expires_at: datetime.datetime

    model_config = {"from_attributes": True}

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, v: datetime.datetime) -> datetime.datetime:
        return _ensure_aware(v)

    def is_expired(self, now: datetime.datetime | None = None) -> bool:
        return (now or datetime.datetime.now(datetime.timezone.utc)) > self.expires_at
