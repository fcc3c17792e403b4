"""
CalendarSession: one tagged union over the four session sources.

Sessions are transient projections recomputed on every refresh. They hold
references to coaches and customers but own none of them.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from studiodesk.scheduling.status import BookingStatus, SessionType

UNKNOWN_LABEL = "Unknown"


@dataclass(frozen=True)
class PersonRef:
    """Reference to a coach or customer as delivered by the data source"""
    id: Optional[int]
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None

    @property
    def name(self) -> str:
        """First and last name joined, or an empty string."""
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def display_name(self) -> str:
        return (self.full_name or "").strip() or self.name or UNKNOWN_LABEL


@dataclass(frozen=True)
class BaseCalendarSession:
    id: int
    start_time: datetime
    end_time: datetime
    title: str
    coach: Optional[PersonRef] = None
    customer: Optional[PersonRef] = None
    subtitle: Optional[str] = None
    status: Optional[BookingStatus] = None
    notes: str = ""

    session_type: Optional[SessionType] = None  # set by each variant

    @property
    def coach_id(self) -> Optional[int]:
        return self.coach.id if self.coach else None


@dataclass(frozen=True)
class CoachGroupClassSession(BaseCalendarSession):
    """A coach-run group class slot. Carries no status of its own."""
    session_id: Optional[int] = None
    schedule_id: Optional[int] = None
    class_name: str = ""
    capacity: Optional[int] = None
    attendance_count: Optional[int] = None
    session_date: str = ""
    session_time: str = ""

    session_type: SessionType = SessionType.COACH_GROUP_CLASS


@dataclass(frozen=True)
class MemberGroupClassSession(BaseCalendarSession):
    """A member's booking of a group class slot"""
    booking_id: Optional[int] = None
    session_id: Optional[int] = None
    schedule_id: Optional[int] = None
    class_name: str = ""
    capacity: Optional[int] = None
    attendance_count: Optional[int] = None

    session_type: SessionType = SessionType.MEMBER_GROUP_CLASS


@dataclass(frozen=True)
class CoachPtSession(BaseCalendarSession):
    """Coach-facing PT entry.

    From a schedule slot when ``session_id`` is set (class name, capacity and
    enrollment are filled), otherwise from a standalone PT booking
    (``booking_id``, customer and status are filled).
    """
    session_id: Optional[int] = None
    schedule_id: Optional[int] = None
    booking_id: Optional[int] = None
    class_name: str = ""
    capacity: Optional[int] = None
    attendance_count: Optional[int] = None
    session_date: str = ""
    session_time: str = ""
    duration: Optional[int] = None
    booking_date: str = ""
    booking_time: str = ""

    session_type: SessionType = SessionType.COACH_PT

    @property
    def from_schedule(self) -> bool:
        return self.session_id is not None


@dataclass(frozen=True)
class MemberPtSession(BaseCalendarSession):
    """Member-facing PT booking"""
    booking_id: Optional[int] = None
    class_name: str = ""
    duration: int = 60
    booking_date: str = ""
    booking_time: str = ""
    session_date: str = ""
    pt_package_id: Optional[int] = None
    customer_pt_package_id: Optional[int] = None
    class_schedule_session_id: Optional[int] = None

    session_type: SessionType = SessionType.MEMBER_PT


CalendarSession = Union[
    CoachGroupClassSession,
    MemberGroupClassSession,
    CoachPtSession,
    MemberPtSession,
]


def unhandled_session(session: object) -> TypeError:
    """Error for a value outside the four session variants."""
    return TypeError(f"Unhandled calendar session variant: {type(session).__name__}")
