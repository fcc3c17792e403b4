"""
GraphQL mutations for bookings and attendance.

Collaborator failures come back as ``success=False`` responses. Actions the
visibility policy never exposes raise and surface as GraphQL errors.
"""
from datetime import datetime
from typing import Any, Dict, Optional

import strawberry

from studiodesk.graphql.auth.permissions import CanMarkAttendance, IsAuthenticated
from studiodesk.graphql.calendar.types import (
    BookClassSessionInput,
    ClassBookingInput,
    MutationResponse,
    NotificationMessage,
    PtBookingInput,
)
from studiodesk.services.booking_mutations import MutationResult


def _respond(info, result: MutationResult) -> MutationResponse:
    return MutationResponse.from_result(result, info.context.notifications.drain())


def _load_failed(info, error: ValueError) -> MutationResponse:
    notification = info.context.notifications.error(str(error))
    return MutationResponse(
        success=False,
        message=str(error),
        notifications=[NotificationMessage.from_notification(notification)] if notification else [],
    )


def _input_data(input) -> Dict[str, Any]:
    return {key: value for key, value in vars(input).items() if value is not None}


@strawberry.type
class CalendarMutation:
    """Booking and attendance mutations"""

    # Group-class bookings

    @strawberry.mutation(permission_classes=[CanMarkAttendance])
    async def mark_class_booking_attended(self, info: strawberry.Info, booking_id: int) -> MutationResponse:
        service = info.context.mutations
        try:
            session = await service.load_class_booking(booking_id)
        except ValueError as e:
            return _load_failed(info, e)
        return _respond(info, await service.mark_attended(session))

    @strawberry.mutation(permission_classes=[CanMarkAttendance])
    async def mark_class_booking_no_show(self, info: strawberry.Info, booking_id: int) -> MutationResponse:
        service = info.context.mutations
        try:
            session = await service.load_class_booking(booking_id)
        except ValueError as e:
            return _load_failed(info, e)
        return _respond(info, await service.mark_no_show(session))

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def cancel_class_booking(self, info: strawberry.Info, booking_id: int) -> MutationResponse:
        service = info.context.mutations
        try:
            session = await service.load_class_booking(booking_id)
        except ValueError as e:
            return _load_failed(info, e)
        return _respond(info, await service.cancel_booking(session))

    @strawberry.mutation(permission_classes=[CanMarkAttendance])
    async def mark_all_attended(self, info: strawberry.Info, session_id: int) -> MutationResponse:
        """Mark every booked member of a class slot as attended"""
        service = info.context.mutations
        try:
            session = await service.load_class_schedule_session(session_id)
        except ValueError as e:
            return _load_failed(info, e)
        return _respond(info, await service.mark_all_attended(session))

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def book_class_session(self, info: strawberry.Info, input: BookClassSessionInput) -> MutationResponse:
        service = info.context.mutations
        try:
            session = await service.load_class_schedule_session(input.session_id)
        except ValueError as e:
            return _load_failed(info, e)
        return _respond(info, await service.book_class_session(session, input.customer_id, input.notes))

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def update_class_booking(self, info: strawberry.Info, booking_id: int, input: ClassBookingInput) -> MutationResponse:
        service = info.context.mutations
        try:
            session = await service.load_class_booking(booking_id)
        except ValueError as e:
            return _load_failed(info, e)
        return _respond(info, await service.update_class_booking(session, _input_data(input)))

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def update_class_schedule_session(
        self,
        info: strawberry.Info,
        session_id: int,
        start_time: datetime,
        duration: Optional[int] = None,
    ) -> MutationResponse:
        service = info.context.mutations
        try:
            session = await service.load_class_schedule_session(session_id)
        except ValueError as e:
            return _load_failed(info, e)
        return _respond(info, await service.update_class_schedule_session(session, start_time, duration))

    # PT bookings

    @strawberry.mutation(permission_classes=[CanMarkAttendance])
    async def mark_pt_booking_attended(self, info: strawberry.Info, booking_id: int) -> MutationResponse:
        service = info.context.mutations
        try:
            session = await service.load_pt_booking(booking_id)
        except ValueError as e:
            return _load_failed(info, e)
        return _respond(info, await service.mark_attended(session))

    @strawberry.mutation(permission_classes=[CanMarkAttendance])
    async def mark_pt_booking_no_show(self, info: strawberry.Info, booking_id: int) -> MutationResponse:
        service = info.context.mutations
        try:
            session = await service.load_pt_booking(booking_id)
        except ValueError as e:
            return _load_failed(info, e)
        return _respond(info, await service.mark_no_show(session))

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def cancel_pt_booking(self, info: strawberry.Info, booking_id: int) -> MutationResponse:
        service = info.context.mutations
        try:
            session = await service.load_pt_booking(booking_id)
        except ValueError as e:
            return _load_failed(info, e)
        return _respond(info, await service.cancel_booking(session))

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def create_pt_booking(self, info: strawberry.Info, input: PtBookingInput) -> MutationResponse:
        result = await info.context.mutations.create_pt_booking(_input_data(input))
        return _respond(info, result)

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def update_pt_booking(self, info: strawberry.Info, booking_id: int, input: PtBookingInput) -> MutationResponse:
        service = info.context.mutations
        try:
            session = await service.load_pt_booking(booking_id)
        except ValueError as e:
            return _load_failed(info, e)
        return _respond(info, await service.update_pt_booking(session, _input_data(input)))
