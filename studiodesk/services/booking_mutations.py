"""
Attendance/booking mutation orchestration.

Every mutation checks the visibility policy and the status lifecycle first
(violations raise ActionNotPermittedError), then calls the gateway once.
Gateway failures are logged and returned as a failed MutationResult with an
error notification; they are never retried. On success the affected cached
collections are marked stale so the next calendar read refetches them.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from studiodesk.core.conversions import coerce_int
from studiodesk.core.logging_config import log_mutation_event
from studiodesk.core.settings import get_studio_timezone
from studiodesk.scheduling.normalizers import (
    normalize_coach_session,
    normalize_member_booking,
    normalize_pt_booking,
)
from studiodesk.scheduling.policy import SessionAction, assert_action_permitted
from studiodesk.scheduling.sessions import (
    CalendarSession,
    CoachGroupClassSession,
    CoachPtSession,
    MemberGroupClassSession,
    MemberPtSession,
)
from studiodesk.scheduling.status import (
    ActionNotPermittedError,
    BookingStatus,
    SessionType,
    ViewerRole,
    ensure_transition,
    is_trainer_role,
)
from studiodesk.services.collection_cache import (
    CLASS_SCHEDULE_SESSIONS,
    CLASS_SESSION_BOOKINGS,
    PT_BOOKINGS,
    CollectionCache,
)
from studiodesk.services.notifications import NotificationCenter, ViewToken

logger = logging.getLogger(__name__)

CLASS_BOOKING_COLLECTIONS = (CLASS_SESSION_BOOKINGS, CLASS_SCHEDULE_SESSIONS)
PT_BOOKING_COLLECTIONS = (PT_BOOKINGS, CLASS_SESSION_BOOKINGS, CLASS_SCHEDULE_SESSIONS)
ALL_COLLECTIONS = (CLASS_SCHEDULE_SESSIONS, CLASS_SESSION_BOOKINGS, PT_BOOKINGS)


@dataclass
class MutationResult:
    success: bool
    message: str
    data: Any = None


def _is_pt_booking(session: CalendarSession) -> bool:
    if isinstance(session, MemberPtSession):
        return True
    return isinstance(session, CoachPtSession) and not session.from_schedule and session.booking_id is not None


def _booking_id(session: CalendarSession) -> int:
    if isinstance(session, (MemberGroupClassSession, MemberPtSession)) or _is_pt_booking(session):
        if session.booking_id is None:
            raise ActionNotPermittedError(f"{session.session_type.value} #{session.id} has no booking")
        return session.booking_id
    raise ActionNotPermittedError(
        f"{session.session_type.value} #{session.id} is a class slot, not a booking"
    )


class BookingMutationService:
    def __init__(
        self,
        gateway,
        cache: CollectionCache,
        notifications: NotificationCenter,
        viewer_role: ViewerRole = ViewerRole.ADMIN,
        viewer_id: Optional[int] = None,
        now_provider: Optional[Callable[[], datetime]] = None,
    ):
        self.gateway = gateway
        self.cache = cache
        self.notifications = notifications
        self.viewer_role = viewer_role
        self.viewer_id = viewer_id
        self.now_provider = now_provider or (lambda: datetime.now(get_studio_timezone()))

    async def _run(
        self,
        operation: str,
        target_id: Optional[int],
        call: Callable[[], Awaitable[Any]],
        success_message: str,
        failure_message: str,
        collections: Iterable[str],
        token: Optional[ViewToken] = None,
    ) -> MutationResult:
        try:
            data = await call()
        except (ValueError, SQLAlchemyError) as exc:
            message = str(exc) or failure_message
            logger.error("%s failed for #%s: %s", operation, target_id, exc)
            log_mutation_event(operation, target_id, success=False, detail=message)
            self.notifications.error(message, token)
            return MutationResult(success=False, message=message)

        for collection in collections:
            self.cache.invalidate(collection)
        log_mutation_event(operation, target_id)
        self.notifications.success(success_message, token)
        return MutationResult(success=True, message=success_message, data=data)

    def _check(self, session: CalendarSession, action: SessionAction) -> None:
        assert_action_permitted(session, action, self.viewer_role, self.now_provider(), self.viewer_id)

    def _check_coach_assignment(self, data: Mapping[str, Any]) -> None:
        """Trainers may only book or move PT sessions onto themselves"""
        if not is_trainer_role(self.viewer_role) or "coach_id" not in data:
            return
        if coerce_int(data["coach_id"]) != self.viewer_id:
            raise ActionNotPermittedError(f"Coach #{self.viewer_id} cannot assign PT sessions to another coach")

    @property
    def pt_perspective(self) -> SessionType:
        return SessionType.COACH_PT if is_trainer_role(self.viewer_role) else SessionType.MEMBER_PT

    # Status transitions

    async def _set_status(
        self,
        session: CalendarSession,
        target: BookingStatus,
        token: Optional[ViewToken],
    ) -> MutationResult:
        action = SessionAction.CANCEL if target is BookingStatus.CANCELLED else SessionAction.MARK_ATTENDANCE
        booking_id = _booking_id(session)
        self._check(session, action)
        ensure_transition(session.status, target)

        if _is_pt_booking(session):
            call, success, failure = {
                BookingStatus.ATTENDED: (
                    self.gateway.attend_pt_booking,
                    "PT session marked as attended",
                    "Failed to mark PT session as attended",
                ),
                BookingStatus.NO_SHOW: (
                    self.gateway.no_show_pt_booking,
                    "PT session marked as no-show",
                    "Failed to mark PT session as no-show",
                ),
                BookingStatus.CANCELLED: (
                    self.gateway.cancel_pt_booking,
                    "PT session cancelled successfully",
                    "Failed to cancel PT session",
                ),
            }[target]
            return await self._run(
                f"pt_booking_{target.value.lower()}",
                booking_id,
                lambda: call(booking_id),
                success,
                failure,
                PT_BOOKING_COLLECTIONS,
                token,
            )

        return await self._run(
            f"class_booking_{target.value.lower()}",
            booking_id,
            lambda: self.gateway.update_attendance_status(booking_id, target.value),
            "Attendance status updated successfully",
            "Failed to update attendance status",
            CLASS_BOOKING_COLLECTIONS,
            token,
        )

    async def mark_attended(self, session: CalendarSession, token: Optional[ViewToken] = None) -> MutationResult:
        return await self._set_status(session, BookingStatus.ATTENDED, token)

    async def mark_no_show(self, session: CalendarSession, token: Optional[ViewToken] = None) -> MutationResult:
        return await self._set_status(session, BookingStatus.NO_SHOW, token)

    async def cancel_booking(self, session: CalendarSession, token: Optional[ViewToken] = None) -> MutationResult:
        return await self._set_status(session, BookingStatus.CANCELLED, token)

    async def mark_all_attended(
        self,
        session: CalendarSession,
        token: Optional[ViewToken] = None,
    ) -> MutationResult:
        """Bulk BOOKED -> ATTENDED for every booking of a class slot, in one call"""
        if not isinstance(session, CoachGroupClassSession) or session.session_id is None:
            raise ActionNotPermittedError(
                f"{session.session_type.value} #{session.id} is not a group class slot"
            )
        self._check(session, SessionAction.MARK_ALL_ATTENDED)
        session_id = session.session_id
        return await self._run(
            "mark_all_attended",
            session_id,
            lambda: self.gateway.mark_all_attended(session_id),
            "All bookings marked as attended",
            "Failed to mark all as attended",
            CLASS_BOOKING_COLLECTIONS,
            token,
        )

    # Edit routes

    async def update_class_schedule_session(
        self,
        session: CalendarSession,
        start_time: Any,
        duration: Optional[int] = None,
        token: Optional[ViewToken] = None,
    ) -> MutationResult:
        """Move a class slot; every collection is refetched afterwards"""
        if not isinstance(session, (CoachGroupClassSession, CoachPtSession)) or session.session_id is None:
            raise ActionNotPermittedError(
                f"{session.session_type.value} #{session.id} is not a class slot"
            )
        self._check(session, SessionAction.EDIT)
        session_id = session.session_id
        return await self._run(
            "update_class_schedule_session",
            session_id,
            lambda: self.gateway.update_class_schedule_session(session_id, start_time, duration),
            "Session updated successfully",
            "Failed to update session",
            ALL_COLLECTIONS,
            token,
        )

    async def create_pt_booking(
        self,
        data: Mapping[str, Any],
        token: Optional[ViewToken] = None,
    ) -> MutationResult:
        self._check_coach_assignment(data)
        return await self._run(
            "create_pt_booking",
            None,
            lambda: self.gateway.create_pt_booking(data),
            "PT session booked successfully",
            "Failed to book PT session",
            PT_BOOKING_COLLECTIONS,
            token,
        )

    async def update_pt_booking(
        self,
        session: CalendarSession,
        data: Mapping[str, Any],
        token: Optional[ViewToken] = None,
    ) -> MutationResult:
        if not _is_pt_booking(session):
            raise ActionNotPermittedError(
                f"{session.session_type.value} #{session.id} is not a PT booking"
            )
        booking_id = _booking_id(session)
        self._check(session, SessionAction.EDIT)
        self._check_coach_assignment(data)
        return await self._run(
            "update_pt_booking",
            booking_id,
            lambda: self.gateway.update_pt_booking(booking_id, data),
            "PT session updated successfully",
            "Failed to update PT session",
            PT_BOOKING_COLLECTIONS,
            token,
        )

    async def book_class_session(
        self,
        session: CalendarSession,
        customer_id: int,
        notes: Optional[str] = None,
        token: Optional[ViewToken] = None,
    ) -> MutationResult:
        if not isinstance(session, CoachGroupClassSession) or session.session_id is None:
            raise ActionNotPermittedError(
                f"{session.session_type.value} #{session.id} is not a group class slot"
            )
        # Ownership only; booking is not a session edit
        self._check(session, SessionAction.OPEN)
        session_id = session.session_id
        return await self._run(
            "book_class_session",
            session_id,
            lambda: self.gateway.book_class_session(session_id, customer_id, notes),
            "Class session booked successfully",
            "Failed to book class session",
            CLASS_BOOKING_COLLECTIONS,
            token,
        )

    async def update_class_booking(
        self,
        session: CalendarSession,
        data: Mapping[str, Any],
        token: Optional[ViewToken] = None,
    ) -> MutationResult:
        if not isinstance(session, MemberGroupClassSession):
            raise ActionNotPermittedError(
                f"{session.session_type.value} #{session.id} is not a class booking"
            )
        booking_id = _booking_id(session)
        self._check(session, SessionAction.EDIT)
        return await self._run(
            "update_class_booking",
            booking_id,
            lambda: self.gateway.update_class_booking(booking_id, data),
            "Booking updated successfully",
            "Failed to update booking",
            CLASS_BOOKING_COLLECTIONS,
            token,
        )

    # Loading sessions by id for id-based callers

    async def load_class_booking(self, booking_id: int) -> MemberGroupClassSession:
        raw = await self.gateway.get_class_booking(booking_id)
        session = normalize_member_booking(raw)
        if session is None:
            raise ValueError(f"Class booking {booking_id} is cancelled or has no session")
        return session

    async def load_pt_booking(
        self,
        booking_id: int,
        perspective: Optional[SessionType] = None,
    ) -> CalendarSession:
        """Load a PT booking as the viewer sees it (coach side for trainers)"""
        raw = await self.gateway.get_pt_booking(booking_id)
        session = normalize_pt_booking(raw, perspective or self.pt_perspective)
        if session is None:
            raise ValueError(f"PT booking {booking_id} is cancelled or has no date")
        return session

    async def load_class_schedule_session(self, session_id: int) -> CalendarSession:
        raw = await self.gateway.get_class_schedule_session(session_id)
        session = normalize_coach_session(raw)
        if session is None:
            raise ValueError(f"Class schedule session {session_id} has no start time")
        return session
