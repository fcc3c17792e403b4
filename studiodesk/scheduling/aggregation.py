"""
Aggregation & filter engine.

Merges the normalized sessions of every source, scopes them to the viewer,
applies the toolbar filters, sorts them and buckets them by calendar day.
"""
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from studiodesk.core.settings import CALENDAR_INLINE_LIMIT, get_studio_timezone
from studiodesk.scheduling.normalizers import (
    normalize_coach_sessions,
    normalize_member_bookings,
    normalize_pt_bookings,
)
from studiodesk.scheduling.sessions import (
    CalendarSession,
    CoachGroupClassSession,
    CoachPtSession,
    MemberGroupClassSession,
    MemberPtSession,
    unhandled_session,
)
from studiodesk.scheduling.status import SessionType, ViewerRole, is_trainer_role

ALL_SESSION_TYPES: FrozenSet[SessionType] = frozenset(SessionType)


@dataclass(frozen=True)
class FilterState:
    """Toolbar filter state for one calendar view.

    Coach ids missing from ``coach_filters`` count as enabled. There is no
    reset operation; a fresh view builds a fresh FilterState.
    """
    type_filters: FrozenSet[SessionType] = ALL_SESSION_TYPES
    coach_filters: Mapping[int, bool] = field(default_factory=dict)
    search_query: str = ""

    @classmethod
    def for_viewer(
        cls,
        viewer_role: ViewerRole,
        viewer_id: Optional[int],
        coach_ids: Iterable[int] = (),
    ) -> "FilterState":
        if is_trainer_role(viewer_role):
            coach_filters = {viewer_id: True} if viewer_id is not None else {}
        else:
            coach_filters = {coach_id: True for coach_id in coach_ids}
        return cls(coach_filters=coach_filters)

    def is_type_enabled(self, session_type: SessionType) -> bool:
        return session_type in self.type_filters

    def is_coach_enabled(self, coach_id: Optional[int]) -> bool:
        return self.coach_filters.get(coach_id) is not False

    def toggle_type(self, session_type: SessionType) -> "FilterState":
        return replace(self, type_filters=self.type_filters ^ {session_type})

    def toggle_coach(self, coach_id: int) -> "FilterState":
        coach_filters = dict(self.coach_filters)
        coach_filters[coach_id] = not self.is_coach_enabled(coach_id)
        return replace(self, coach_filters=coach_filters)

    def with_search(self, query: str) -> "FilterState":
        return replace(self, search_query=query or "")


@dataclass
class CalendarSources:
    """Raw records for one calendar window, as returned by the data layer"""
    coach_sessions: Sequence[Mapping[str, Any]] = ()
    member_bookings: Sequence[Mapping[str, Any]] = ()
    pt_bookings: Sequence[Mapping[str, Any]] = ()


def normalize_sources(sources: CalendarSources, tz: Optional[tzinfo] = None) -> List[CalendarSession]:
    return [
        *normalize_coach_sessions(sources.coach_sessions, tz),
        *normalize_member_bookings(sources.member_bookings, tz),
        *normalize_pt_bookings(sources.pt_bookings, tz),
    ]


def search_text(session: CalendarSession) -> str:
    """Text the search box matches against for this session."""
    if isinstance(session, (CoachGroupClassSession, MemberGroupClassSession)):
        return session.class_name
    if isinstance(session, CoachPtSession):
        if session.customer is not None:
            return session.customer.name
        return session.class_name
    if isinstance(session, MemberPtSession):
        return session.customer.name if session.customer else ""
    raise unhandled_session(session)


def matches_search(session: CalendarSession, query: str) -> bool:
    if not query:
        return True
    return query.lower() in search_text(session).lower()


def filter_sessions(
    sessions: Iterable[CalendarSession],
    filters: FilterState,
    viewer_role: ViewerRole,
    viewer_id: Optional[int],
) -> List[CalendarSession]:
    trainer = is_trainer_role(viewer_role)
    result = []
    for session in sessions:
        # Trainers only ever see their own sessions, whatever the toolbar says
        if trainer and session.coach_id != viewer_id:
            continue
        if not filters.is_type_enabled(session.session_type):
            continue
        if not trainer and not filters.is_coach_enabled(session.coach_id):
            continue
        if not matches_search(session, filters.search_query):
            continue
        result.append(session)
    return result


def _sort_key(session: CalendarSession) -> float:
    return session.start_time.timestamp()


def aggregate(
    sources: CalendarSources,
    filters: FilterState,
    viewer_role: ViewerRole,
    viewer_id: Optional[int],
    tz: Optional[tzinfo] = None,
) -> List[CalendarSession]:
    """Normalize, scope, filter and sort every session source.

    Output is deterministic for identical inputs (stable sort by start time).
    """
    sessions = normalize_sources(sources, tz)
    filtered = filter_sessions(sessions, filters, viewer_role, viewer_id)
    return sorted(filtered, key=_sort_key)


# Calendar grid bucketing

@dataclass(frozen=True)
class DayCell:
    day: date
    sessions: Tuple[CalendarSession, ...]
    inline: Tuple[CalendarSession, ...]
    overflow_count: int

    @property
    def overflow_label(self) -> Optional[str]:
        if self.overflow_count <= 0:
            return None
        return f"+{self.overflow_count} more"


def session_calendar_date(session: CalendarSession, tz: Optional[tzinfo] = None) -> date:
    tz = tz or get_studio_timezone()
    start = session.start_time
    if start.tzinfo is None:
        return start.date()
    return start.astimezone(tz).date()


def sessions_on_date(
    sessions: Iterable[CalendarSession],
    day: date,
    tz: Optional[tzinfo] = None,
) -> List[CalendarSession]:
    return [session for session in sessions if session_calendar_date(session, tz) == day]


def build_day_cell(
    sessions: Iterable[CalendarSession],
    day: date,
    tz: Optional[tzinfo] = None,
    inline_limit: int = CALENDAR_INLINE_LIMIT,
) -> DayCell:
    """Sessions for one grid cell; only ``inline_limit`` are shown inline."""
    on_day = tuple(sessions_on_date(sessions, day, tz))
    inline = on_day[:inline_limit]
    return DayCell(
        day=day,
        sessions=on_day,
        inline=inline,
        overflow_count=len(on_day) - len(inline),
    )


def _week_start(day: date) -> date:
    # Weeks start on Sunday
    return day - timedelta(days=(day.weekday() + 1) % 7)


def calendar_date_range(month_date: date) -> Tuple[date, date]:
    """First and last day shown on the month grid containing ``month_date``.

    The grid spans whole Sunday-to-Saturday weeks, so it usually includes
    trailing days of the previous month and leading days of the next one.
    """
    if isinstance(month_date, datetime):
        month_date = month_date.date()
    first = month_date.replace(day=1)
    next_month = (first + timedelta(days=32)).replace(day=1)
    last = next_month - timedelta(days=1)
    return _week_start(first), _week_start(last) + timedelta(days=6)


def build_month_grid(
    sessions: Iterable[CalendarSession],
    month_date: date,
    tz: Optional[tzinfo] = None,
    inline_limit: int = CALENDAR_INLINE_LIMIT,
) -> List[DayCell]:
    sessions = list(sessions)
    start, end = calendar_date_range(month_date)
    by_day: Dict[date, List[CalendarSession]] = {}
    for session in sessions:
        by_day.setdefault(session_calendar_date(session, tz), []).append(session)

    cells = []
    day = start
    while day <= end:
        on_day = tuple(by_day.get(day, ()))
        inline = on_day[:inline_limit]
        cells.append(DayCell(day=day, sessions=on_day, inline=inline,
                             overflow_count=len(on_day) - len(inline)))
        day += timedelta(days=1)
    return cells
