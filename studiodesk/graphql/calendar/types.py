"""
GraphQL types for the scheduling calendar.
"""
from datetime import date, datetime
from typing import List, Optional

import strawberry

from studiodesk.scheduling.aggregation import DayCell
from studiodesk.scheduling.presentation import BoundAction, MetaItem, Presentation
from studiodesk.scheduling.sessions import PersonRef
from studiodesk.scheduling.status import BOOKING_STATUS_LABELS, SESSION_TYPE_LABELS, capacity_status
from studiodesk.services.booking_mutations import MutationResult
from studiodesk.services.notifications import Notification


def session_key(session) -> str:
    """Ids are only unique per variant, so keys carry the variant tag"""
    return f"{session.session_type.value}:{session.id}"


@strawberry.type
class Person:
    id: Optional[int]
    name: str

    @classmethod
    def from_ref(cls, ref: Optional[PersonRef]) -> Optional["Person"]:
        if ref is None:
            return None
        return cls(id=ref.id, name=ref.display_name)


@strawberry.type
class SessionMeta:
    icon: str
    label: str

    @classmethod
    def from_item(cls, item: MetaItem) -> "SessionMeta":
        return cls(icon=item.icon, label=item.label)


@strawberry.type
class SessionActionRoute:
    """An action offered on a session and the handler it routes to"""
    verb: str
    handler_name: str
    target_id: Optional[int]

    @classmethod
    def from_action(cls, action: BoundAction) -> "SessionActionRoute":
        return cls(verb=action.verb.value, handler_name=action.handler_name, target_id=action.target_id)


@strawberry.type
class CalendarSession:
    key: str
    id: int
    session_type: str
    session_type_label: str
    title: str
    subtitle: Optional[str]
    start_time: datetime
    end_time: datetime
    status: Optional[str]
    status_label: Optional[str]
    notes: str
    coach: Optional[Person]
    customer: Optional[Person]
    class_name: Optional[str]
    capacity: Optional[int]
    attendance_count: Optional[int]
    capacity_status: Optional[str]
    booking_id: Optional[int]
    session_id: Optional[int]
    duration: Optional[int]
    meta: List[SessionMeta]
    actions: List[SessionActionRoute]
    click: Optional[SessionActionRoute]
    can_edit: bool
    can_cancel: bool
    can_mark_attendance: bool
    can_mark_all_attended: bool

    @classmethod
    def from_presentation(cls, presentation: Presentation) -> "CalendarSession":
        session = presentation.session
        visibility = presentation.visibility
        capacity = getattr(session, "capacity", None)
        attendance_count = getattr(session, "attendance_count", None)
        status = presentation.status
        return cls(
            key=session_key(session),
            id=session.id,
            session_type=session.session_type.value,
            session_type_label=SESSION_TYPE_LABELS[session.session_type],
            title=presentation.title,
            subtitle=presentation.subtitle,
            start_time=session.start_time,
            end_time=session.end_time,
            status=status.value if status else None,
            status_label=BOOKING_STATUS_LABELS[status] if status else None,
            notes=session.notes,
            coach=Person.from_ref(session.coach),
            customer=Person.from_ref(session.customer),
            class_name=getattr(session, "class_name", None) or None,
            capacity=capacity,
            attendance_count=attendance_count,
            capacity_status=(
                capacity_status(attendance_count or 0, capacity).value if capacity is not None else None
            ),
            booking_id=getattr(session, "booking_id", None),
            session_id=getattr(session, "session_id", None),
            duration=getattr(session, "duration", None),
            meta=[SessionMeta.from_item(item) for item in presentation.meta],
            actions=[SessionActionRoute.from_action(action) for action in presentation.actions],
            click=SessionActionRoute.from_action(presentation.click) if presentation.click else None,
            can_edit=visibility.can_edit,
            can_cancel=visibility.can_cancel,
            can_mark_attendance=visibility.can_mark_attendance,
            can_mark_all_attended=visibility.can_mark_all_attended,
        )


@strawberry.type
class CalendarDay:
    day: date
    session_keys: List[str]
    inline_keys: List[str]
    overflow_count: int
    overflow_label: Optional[str]

    @classmethod
    def from_cell(cls, cell: DayCell) -> "CalendarDay":
        return cls(
            day=cell.day,
            session_keys=[session_key(session) for session in cell.sessions],
            inline_keys=[session_key(session) for session in cell.inline],
            overflow_count=cell.overflow_count,
            overflow_label=cell.overflow_label,
        )


@strawberry.type
class CalendarResponse:
    start_date: date
    end_date: date
    sessions: List[CalendarSession]
    days: List[CalendarDay]


@strawberry.type
class SessionBooking:
    id: int
    status: str
    customer: Optional[Person]
    notes: Optional[str]


@strawberry.type
class NotificationMessage:
    level: str
    message: str

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationMessage":
        return cls(level=notification.level.value, message=notification.message)


@strawberry.type
class MutationResponse:
    success: bool
    message: str
    notifications: List[NotificationMessage]

    @classmethod
    def from_result(cls, result: MutationResult, notifications: List[Notification]) -> "MutationResponse":
        return cls(
            success=result.success,
            message=result.message,
            notifications=[NotificationMessage.from_notification(item) for item in notifications],
        )


# Input types
@strawberry.input
class CalendarInput:
    month: date
    session_types: Optional[List[str]] = None
    disabled_coach_ids: Optional[List[int]] = None
    search: Optional[str] = None


@strawberry.input
class PtBookingInput:
    customer_id: Optional[int] = None
    coach_id: Optional[int] = None
    customer_pt_package_id: Optional[int] = None
    class_schedule_session_id: Optional[int] = None
    booking_date: Optional[date] = None
    booking_time: Optional[str] = None
    duration: Optional[int] = None
    booking_notes: Optional[str] = None


@strawberry.input
class BookClassSessionInput:
    session_id: int
    customer_id: int
    notes: Optional[str] = None


@strawberry.input
class ClassBookingInput:
    notes: Optional[str] = None
    class_schedule_session_id: Optional[int] = None
