"""
GraphQL queries for the scheduling calendar.
"""
from typing import List

import strawberry

from studiodesk.graphql.auth.permissions import IsAuthenticated
from studiodesk.graphql.calendar.types import (
    CalendarDay,
    CalendarInput,
    CalendarResponse,
    CalendarSession,
    Person,
    SessionBooking,
)
from studiodesk.scheduling.aggregation import ALL_SESSION_TYPES, FilterState
from studiodesk.scheduling.normalizers import person_ref
from studiodesk.scheduling.status import SessionType


def _filters_from_input(input: CalendarInput, context) -> FilterState:
    filters = FilterState.for_viewer(context.viewer_role, context.viewer_id)
    if input.session_types is not None:
        try:
            enabled = frozenset(SessionType(value) for value in input.session_types)
        except ValueError as e:
            raise ValueError(f"Unknown session type: {e}") from e
        for session_type in ALL_SESSION_TYPES:
            if session_type not in enabled:
                filters = filters.toggle_type(session_type)
    for coach_id in input.disabled_coach_ids or []:
        if filters.is_coach_enabled(coach_id):
            filters = filters.toggle_coach(coach_id)
    return filters.with_search(input.search or "")


@strawberry.type
class CalendarQuery:
    """Scheduling calendar queries"""

    @strawberry.field(permission_classes=[IsAuthenticated])
    async def calendar(self, info: strawberry.Info, input: CalendarInput) -> CalendarResponse:
        """Presented sessions and month grid for the viewer"""
        context = info.context
        feed = await context.calendar_feed.month(
            input.month,
            context.viewer_role,
            context.viewer_id,
            filters=_filters_from_input(input, context),
        )
        return CalendarResponse(
            start_date=feed.start_date,
            end_date=feed.end_date,
            sessions=[CalendarSession.from_presentation(item) for item in feed.presentations],
            days=[CalendarDay.from_cell(cell) for cell in feed.grid],
        )

    @strawberry.field(permission_classes=[IsAuthenticated])
    async def session_bookings(self, info: strawberry.Info, session_id: int) -> List[SessionBooking]:
        """Bookings of one class slot, for the attendance sheet"""
        bookings = await info.context.gateway.get_session_bookings(session_id)
        return [
            SessionBooking(
                id=booking["id"],
                status=booking["status"],
                customer=Person.from_ref(person_ref(booking.get("customer"), booking.get("customer_id"))),
                notes=booking.get("notes"),
            )
            for booking in bookings
        ]
