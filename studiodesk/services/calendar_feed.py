"""
Calendar feed: loads the three session sources for a month window through the
collection cache, then aggregates and presents them for one viewer.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from studiodesk.core.settings import CALENDAR_INLINE_LIMIT, get_studio_timezone
from studiodesk.scheduling.aggregation import (
    CalendarSources,
    DayCell,
    FilterState,
    aggregate,
    build_month_grid,
    calendar_date_range,
)
from studiodesk.scheduling.presentation import Presentation, SessionHandlers, transform_sessions
from studiodesk.scheduling.status import ViewerRole, is_trainer_role
from studiodesk.services.collection_cache import (
    CLASS_SCHEDULE_SESSIONS,
    CLASS_SESSION_BOOKINGS,
    PT_BOOKINGS,
    CollectionCache,
)

logger = logging.getLogger(__name__)


@dataclass
class CalendarFeed:
    start_date: date
    end_date: date
    presentations: List[Presentation]
    grid: List[DayCell]


class CalendarFeedService:
    def __init__(self, gateway, cache: CollectionCache):
        self.gateway = gateway
        self.cache = cache

    async def load_sources(
        self,
        start_date: date,
        end_date: date,
        viewer_role: ViewerRole,
        viewer_id: Optional[int],
    ) -> CalendarSources:
        # Trainers get the coach-scoped PT fetch; everything else is fetched whole
        pt_coach_id = viewer_id if is_trainer_role(viewer_role) else None
        window = (start_date.isoformat(), end_date.isoformat())

        async def load_coach_sessions():
            payload = await self.gateway.fetch_class_schedule_sessions(start_date, end_date)
            return (payload or {}).get("data") or []

        coach_sessions, member_bookings, pt_bookings = await asyncio.gather(
            self.cache.get((CLASS_SCHEDULE_SESSIONS, *window), load_coach_sessions),
            self.cache.get(
                (CLASS_SESSION_BOOKINGS, *window),
                lambda: self.gateway.fetch_class_bookings(start_date, end_date),
            ),
            self.cache.get(
                (PT_BOOKINGS, *window, pt_coach_id),
                lambda: self.gateway.fetch_pt_bookings(start_date, end_date, pt_coach_id),
            ),
        )
        return CalendarSources(
            coach_sessions=coach_sessions,
            member_bookings=member_bookings or [],
            pt_bookings=pt_bookings or [],
        )

    async def month(
        self,
        month_date: date,
        viewer_role: ViewerRole,
        viewer_id: Optional[int],
        filters: Optional[FilterState] = None,
        handlers: Optional[SessionHandlers] = None,
        now: Optional[datetime] = None,
        inline_limit: int = CALENDAR_INLINE_LIMIT,
    ) -> CalendarFeed:
        tz = get_studio_timezone()
        now = now or datetime.now(tz)
        start_date, end_date = calendar_date_range(month_date)
        filters = filters or FilterState.for_viewer(viewer_role, viewer_id)

        sources = await self.load_sources(start_date, end_date, viewer_role, viewer_id)
        sessions = aggregate(sources, filters, viewer_role, viewer_id, tz)
        logger.debug("Calendar %s..%s for %s #%s: %s sessions",
                     start_date, end_date, viewer_role.value, viewer_id, len(sessions))

        return CalendarFeed(
            start_date=start_date,
            end_date=end_date,
            presentations=transform_sessions(sessions, handlers, viewer_role, now),
            grid=build_month_grid(sessions, month_date, tz, inline_limit),
        )
