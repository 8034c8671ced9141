"""Durable link and click storage on top of an async SQLAlchemy session.

Every method works inside the caller's session and never commits; the
caller owns the transaction boundary and rolls back on any error, so a
half-written link is never visible to other readers.

Functions on LinkStore:
    create_link():  Validate, default and insert a link.
    get_by_short_code():  Point lookup for the redirect path.
    short_code_exists():  Existence probe used by the code generator.
    delete_link():  Owner-scoped delete.
    list_links_for_owner():  All links of one owner, newest first.
    record_click():  Append one click row.
    count_clicks() / count_clicks_for():  Aggregate click rows.
"""

import datetime
import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shortener.exceptions import LinkNotFoundError, LinkValidationError, ShortCodeConflictError
from shortener.metrics import DATABASE_READS_TOTAL, DATABASE_WRITES_TOTAL
from shortener.models import Link, LinkClick, utcnow

__all__ = ["LinkStore", "DEFAULT_EXPIRY_DAYS"]

DEFAULT_EXPIRY_DAYS = 30


class LinkStore:
    def __init__(self, default_expiry_days: int = DEFAULT_EXPIRY_DAYS) -> None:
        self.default_expiry = datetime.timedelta(days=default_expiry_days)

    async def create_link(self, session: AsyncSession, link: Link) -> Link:
        """Insert a link within the caller's transaction.

        Assigns an id when absent and ``now + default expiry`` when the
        expiry is unset. The insert is flushed so a duplicate short code
        fails here rather than at commit.

        Raises:
            LinkValidationError: long_url or short_code is empty.
            ShortCodeConflictError: the short code is already held.
        """
        if not link.long_url:
            raise LinkValidationError("long_url is required")
        if not link.short_code:
            raise LinkValidationError("short_code is required")
        if not link.id:
            link.id = str(uuid.uuid4())
        now = utcnow()
        if link.created_at is None:
            link.created_at = now
        if link.expires_at is None:
            link.expires_at = now + self.default_expiry

        session.add(link)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ShortCodeConflictError(link.short_code) from exc
        DATABASE_WRITES_TOTAL.inc()
        return link

    async def get_by_short_code(self, session: AsyncSession, short_code: str) -> Link:
        result = await session.execute(select(Link).where(Link.short_code == short_code))
        DATABASE_READS_TOTAL.inc()
        link = result.scalar_one_or_none()
        if link is None:
            raise LinkNotFoundError()
        return link

    async def short_code_exists(self, session: AsyncSession, short_code: str) -> bool:
        result = await session.execute(select(Link.id).where(Link.short_code == short_code))
        DATABASE_READS_TOTAL.inc()
        return result.first() is not None

    async def delete_link(self, session: AsyncSession, link_id: str, owner_id: str) -> None:
        # A foreign owner and a missing id both affect zero rows.
        result = await session.execute(delete(Link).where(Link.id == link_id, Link.owner_id == owner_id))
        DATABASE_WRITES_TOTAL.inc()
        if result.rowcount == 0:
            raise LinkNotFoundError()

    async def list_links_for_owner(self, session: AsyncSession, owner_id: str) -> list[Link]:
        result = await session.execute(
            select(Link).where(Link.owner_id == owner_id).order_by(Link.created_at.desc(), Link.id)
        )
        DATABASE_READS_TOTAL.inc()
        return list(result.scalars().all())

    async def record_click(
        self,
        session: AsyncSession,
        url_id: str,
        source_address: str | None = None,
        occurred_at: datetime.datetime | None = None,
    ) -> LinkClick:
        if not url_id:
            raise LinkValidationError("urlId is required")
        click = LinkClick(
            id=str(uuid.uuid4()),
            url_id=url_id,
            ip_address=source_address,
            created_at=occurred_at or utcnow(),
        )
        session.add(click)
        await session.flush()
        DATABASE_WRITES_TOTAL.inc()
        return click

    async def count_clicks(self, session: AsyncSession, url_id: str) -> int:
        result = await session.execute(
            select(func.count()).select_from(LinkClick).where(LinkClick.url_id == url_id)
        )
        DATABASE_READS_TOTAL.inc()
        return int(result.scalar_one())

    async def count_clicks_for(self, session: AsyncSession, url_ids: list[str]) -> dict[str, int]:
        if not url_ids:
            return {}
        result = await session.execute(
            select(LinkClick.url_id, func.count())
            .where(LinkClick.url_id.in_(url_ids))
            .group_by(LinkClick.url_id)
        )
        DATABASE_READS_TOTAL.inc()
        counts = {url_id: 0 for url_id in url_ids}
        counts.update({url_id: int(count) for url_id, count in result.all()})
        return counts
