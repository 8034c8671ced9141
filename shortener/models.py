"""SQLAlchemy ORM models for the short link service.

Data Model Layout
=================
::
    links table
    ├─ id (VARCHAR(36) PRIMARY KEY, uuid4)
    ├─ owner_id (VARCHAR(64), INDEXED)
    ├─ long_url (TEXT NOT NULL)
    ├─ short_code (VARCHAR(20) UNIQUE, INDEXED)
    ├─ expires_at (TIMESTAMPTZ NOT NULL)
    └─ created_at (TIMESTAMPTZ, DEFAULT NOW())

    url_clicks table
    ├─ id (VARCHAR(36) PRIMARY KEY, uuid4)
    ├─ url_id (VARCHAR(36), INDEXED)
    ├─ ip_address (VARCHAR(64) NULL)
    └─ created_at (TIMESTAMPTZ, DEFAULT NOW())

How to Use
===========
**Step 1 — Import**::
    from shortener.models import Link, LinkClick

**Step 2 — Query a link**::
    result = await session.execute(select(Link).where(Link.short_code == "abc1234"))
    link = result.scalar_one_or_none()

**Step 3 — Count clicks**::
    result = await session.execute(
        select(func.count()).select_from(LinkClick).where(LinkClick.url_id == link.id)
    )

Key Behaviours
===============
- short_code is unique and indexed for redirect lookups.
- url_clicks is append-only and has no foreign key, so click rows outlive
  a deleted link and never block its deletion.
- Timestamps always come back timezone-aware in UTC, including on SQLite
  which drops the offset on storage.

Classes:
    Link:  A short code to long URL mapping owned by one principal.
    LinkClick:  One recorded access of a link.
"""

import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from shortener.database import Base

__all__ = ["Link", "LinkClick", "UTCDateTime", "utcnow"]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetime on every backend."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc)


class Link(Base):
    __tablename__ = "links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    long_url: Mapped[str] = mapped_column(Text, nullable=False)
    short_code: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    expires_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime(), nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, server_default=func.now(), nullable=False
    )

    def is_expired(self, now: datetime.datetime | None = None) -> bool:
        return (now or utcnow()) > self.expires_at

    def __repr__(self) -> str:
        return f"<Link(id={self.id}, short_code='{self.short_code}', owner_id='{self.owner_id}')>"


class LinkClick(Base):
    __tablename__ = "url_clicks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    url_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<LinkClick(id={self.id}, url_id='{self.url_id}')>"
