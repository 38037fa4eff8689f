"""
Visit Projections
=================

Read-only views over visits. Overdue is derived here at read time and is
never written back.

`watch_projection` turns any projection into a live stream: it yields the
current result, then a fresh result after every matching change.

Version: 0.1.0
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import suppress
from datetime import datetime, time, timedelta
from typing import TypeVar

from pydantic import BaseModel

from services.visitor.models.base import utcnow
from services.visitor.models.visit import AccessStatus, Visit, VisitStatus, VisitView
from services.visitor.services.guards import Clock
from services.visitor.store.base import ChangeFeed, Store, Where
from shared.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

UPCOMING_LIMIT = 50


class SiteBoard(BaseModel):
    """Reception board for one site."""

    site_id: str
    generated_at: datetime
    today: list[VisitView]
    checked_in: list[VisitView]
    overdue: list[VisitView]
    awaiting_escort: list[VisitView]


class VisitQueries:
    """Visit read models."""

    def __init__(self, store: Store, clock: Clock = utcnow) -> None:
        self.store = store
        self.clock = clock

    def _views(self, visits: list[Visit], now: datetime) -> list[VisitView]:
        return [VisitView.of(v, now) for v in visits]

    async def today(self, site_id: str) -> list[VisitView]:
        """Non-cancelled visits planned to arrive today (UTC)."""
        now = self.clock()
        start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
        end = start + timedelta(days=1)
        visits = await self.store.find(
            Visit,
            where={
                "site_id": site_id,
                "status": [VisitStatus.SCHEDULED, VisitStatus.CHECKED_IN, VisitStatus.DEPARTED],
            },
            predicate=lambda v: start <= v.planned_arrival < end,
            order_by="planned_arrival",
        )
        return self._views(visits, now)

    async def checked_in(self, site_id: str) -> list[VisitView]:
        now = self.clock()
        visits = await self.store.find(
            Visit,
            where={"site_id": site_id, "status": VisitStatus.CHECKED_IN},
            order_by="actual_arrival",
        )
        return self._views(visits, now)

    async def overdue(self, site_id: str) -> list[VisitView]:
        """Checked-in visits past their planned departure."""
        now = self.clock()
        visits = await self.store.find(
            Visit,
            where={"site_id": site_id, "status": VisitStatus.CHECKED_IN},
            predicate=lambda v: v.is_overdue(now),
            order_by="planned_departure",
        )
        return self._views(visits, now)

    async def awaiting_escort(self, site_id: str) -> list[VisitView]:
        now = self.clock()
        visits = await self.store.find(
            Visit,
            where={
                "site_id": site_id,
                "status": VisitStatus.CHECKED_IN,
                "access_status": AccessStatus.AWAITING_ESCORT,
            },
            order_by="actual_arrival",
        )
        return self._views(visits, now)

    async def upcoming(self, site_id: str, limit: int = UPCOMING_LIMIT) -> list[VisitView]:
        now = self.clock()
        visits = await self.store.find(
            Visit,
            where={"site_id": site_id, "status": VisitStatus.SCHEDULED},
            predicate=lambda v: v.planned_arrival >= now,
            order_by="planned_arrival",
            limit=limit,
        )
        return self._views(visits, now)

    async def for_visitor(self, visitor_id: str, site_id: str) -> list[VisitView]:
        now = self.clock()
        visits = await self.store.find(
            Visit,
            where={"visitor_id": visitor_id, "site_id": site_id},
            order_by="planned_arrival",
            descending=True,
        )
        return self._views(visits, now)

    async def board(self, site_id: str) -> SiteBoard:
        return SiteBoard(
            site_id=site_id,
            generated_at=self.clock(),
            today=await self.today(site_id),
            checked_in=await self.checked_in(site_id),
            overdue=await self.overdue(site_id),
            awaiting_escort=await self.awaiting_escort(site_id),
        )


async def watch_projection(
    feed: ChangeFeed,
    collection: str,
    where: Where | None,
    query: Callable[[], Awaitable[T]],
) -> AsyncIterator[T]:
    """Yield `query()` now and again after every change matching `where`."""
    events = feed.subscribe(collection, where)
    pending = asyncio.ensure_future(anext(events))
    try:
        # Let the subscription register before the first read
        await asyncio.sleep(0)
        yield await query()
        while True:
            event = await pending
            pending = asyncio.ensure_future(anext(events))
            logger.debug("projection_refresh", collection=collection, record_id=event.record_id)
            yield await query()
    finally:
        pending.cancel()
        with suppress(asyncio.CancelledError, StopAsyncIteration):
            await pending
        await events.aclose()
