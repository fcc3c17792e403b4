"""
Booking status lifecycle, session type tags and viewer roles.
"""
from enum import Enum
from typing import Dict, FrozenSet, Optional


class BookingStatus(str, Enum):
    BOOKED = "BOOKED"
    ATTENDED = "ATTENDED"
    NO_SHOW = "NO_SHOW"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not BookingStatus.BOOKED


BOOKING_STATUS_LABELS: Dict[BookingStatus, str] = {
    BookingStatus.BOOKED: "Booked",
    BookingStatus.ATTENDED: "Attended",
    BookingStatus.NO_SHOW: "No Show",
    BookingStatus.CANCELLED: "Cancelled",
}

# BOOKED is the only state with exits; there is no un-cancel or un-attend
ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.BOOKED: frozenset({
        BookingStatus.ATTENDED,
        BookingStatus.NO_SHOW,
        BookingStatus.CANCELLED,
    }),
    BookingStatus.ATTENDED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


class ActionNotPermittedError(AssertionError):
    """An action was attempted that the visibility policy never exposes.

    The UI cannot reach this, so it is raised as a programming error rather
    than reported to the user.
    """


class InvalidStatusTransition(ActionNotPermittedError):
    def __init__(self, current: Optional["BookingStatus"], target: "BookingStatus"):
        self.current = current
        self.target = target
        current_label = current.value if current else "UNKNOWN"
        super().__init__(f"Cannot move booking from {current_label} to {target.value}")


def parse_booking_status(value: object) -> Optional[BookingStatus]:
    """Return the BookingStatus for an exact upper-case wire value, otherwise None."""
    if isinstance(value, BookingStatus):
        return value
    if not isinstance(value, str):
        return None
    try:
        return BookingStatus(value)
    except ValueError:
        return None


def can_transition(current: Optional[BookingStatus], target: BookingStatus) -> bool:
    if current is None:
        return False
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: Optional[BookingStatus], target: BookingStatus) -> None:
    if not can_transition(current, target):
        raise InvalidStatusTransition(current, target)


class SessionType(str, Enum):
    COACH_GROUP_CLASS = "coach_group_class"
    MEMBER_GROUP_CLASS = "member_group_class"
    COACH_PT = "coach_pt"
    MEMBER_PT = "member_pt"


SESSION_TYPE_LABELS: Dict[SessionType, str] = {
    SessionType.COACH_GROUP_CLASS: "Coach Group Class Schedule",
    SessionType.MEMBER_GROUP_CLASS: "Member Group Class Schedule",
    SessionType.COACH_PT: "Coach PT Schedule",
    SessionType.MEMBER_PT: "Member PT Schedule",
}


class ClassScheduleType(str, Enum):
    GROUP = "GROUP"
    PERSONAL_TRAINING = "PERSONAL_TRAINING"


class ViewerRole(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    COACH = "coach"
    MEMBER = "member"

    # Trainer is the same role as coach
    TRAINER = "coach"


# Roles allowed to mark member attendance
ATTENDANCE_MARKING_ROLES = frozenset({ViewerRole.ADMIN, ViewerRole.STAFF, ViewerRole.COACH})


def parse_viewer_role(value: object) -> ViewerRole:
    """Resolve a role code; unknown codes get the least privileged role."""
    if isinstance(value, ViewerRole):
        return value
    if isinstance(value, str):
        code = value.strip().lower()
        if code == "trainer":
            return ViewerRole.COACH
        try:
            return ViewerRole(code)
        except ValueError:
            pass
    return ViewerRole.MEMBER


def is_trainer_role(role: ViewerRole) -> bool:
    return role is ViewerRole.COACH


def allows_member_attendance(role: ViewerRole) -> bool:
    return role in ATTENDANCE_MARKING_ROLES


class CapacityStatus(str, Enum):
    FULL = "full"
    LOW = "low"
    AVAILABLE = "available"


def capacity_status(enrolled: int = 0, capacity: int = 0) -> CapacityStatus:
    """Classify remaining room in a class; three spots or fewer counts as low."""
    remaining = capacity - enrolled
    if remaining <= 0:
        return CapacityStatus.FULL
    if remaining <= 3:
        return CapacityStatus.LOW
    return CapacityStatus.AVAILABLE
