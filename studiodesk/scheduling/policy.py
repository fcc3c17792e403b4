"""
Visibility/action policy: which actions a viewer may take on a session.

``compute_action_visibility`` is the single source of truth for action
exposure. The calendar grid and the list view both render from its result,
so they always offer the same actions for the same session.
"""
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from studiodesk.scheduling.sessions import (
    CalendarSession,
    CoachGroupClassSession,
    CoachPtSession,
    MemberGroupClassSession,
    MemberPtSession,
    unhandled_session,
)
from studiodesk.scheduling.status import (
    ActionNotPermittedError,
    BookingStatus,
    ViewerRole,
    allows_member_attendance,
    is_trainer_role,
)

LOCKED_MEMBER_STATUSES = frozenset({BookingStatus.ATTENDED, BookingStatus.NO_SHOW})


class SessionAction(str, Enum):
    OPEN = "open"
    EDIT = "edit"
    CANCEL = "cancel"
    MARK_ATTENDANCE = "mark_attendance"
    MARK_ALL_ATTENDED = "mark_all_attended"


@dataclass(frozen=True)
class ActionVisibility:
    can_edit: bool = False
    can_cancel: bool = False
    can_mark_attendance: bool = False
    can_mark_all_attended: bool = False

    def allows(self, action: SessionAction) -> bool:
        return {
            SessionAction.OPEN: True,
            SessionAction.EDIT: self.can_edit,
            SessionAction.CANCEL: self.can_cancel,
            SessionAction.MARK_ATTENDANCE: self.can_mark_attendance,
            SessionAction.MARK_ALL_ATTENDED: self.can_mark_all_attended,
        }[action]


def session_local_date(session: CalendarSession, now: datetime) -> date:
    """Calendar date of the session in the viewer's local zone (``now``'s zone)."""
    start = session.start_time
    if now.tzinfo is None:
        return start.replace(tzinfo=None).date() if start.tzinfo is None else start.date()
    if start.tzinfo is None:
        return start.date()
    return start.astimezone(now.tzinfo).date()


def is_today_or_past(session: CalendarSession, now: datetime) -> bool:
    """Both sides truncated to midnight; today counts as past."""
    return session_local_date(session, now) <= now.date()


def can_mark_all_attended(session: CalendarSession, now: datetime) -> bool:
    """Gate for the bulk "Mark All as Attended" button.

    Reproduces the existing condition literally: offered only while the
    session starts in the future.
    """
    # TODO: confirm with the front desk whether this should be start_time <= now
    if not isinstance(session, CoachGroupClassSession):
        return False
    start = session.start_time
    if (start.tzinfo is None) != (now.tzinfo is None):
        start = start.replace(tzinfo=now.tzinfo)
    return start > now


def compute_action_visibility(
    session: CalendarSession,
    viewer_role: ViewerRole,
    now: datetime,
) -> ActionVisibility:
    can_mark = allows_member_attendance(viewer_role)

    if isinstance(session, (MemberGroupClassSession, MemberPtSession)):
        locked = session.status in LOCKED_MEMBER_STATUSES
        return ActionVisibility(
            can_edit=not locked,
            can_cancel=not locked and session.status is BookingStatus.BOOKED,
            can_mark_attendance=can_mark,
        )

    if isinstance(session, (CoachGroupClassSession, CoachPtSession)):
        editable = not is_today_or_past(session, now)
        return ActionVisibility(
            can_edit=editable,
            can_cancel=editable,
            can_mark_attendance=can_mark,
            can_mark_all_attended=can_mark and can_mark_all_attended(session, now),
        )

    raise unhandled_session(session)


def owns_session(session: CalendarSession, viewer_role: ViewerRole, viewer_id: Optional[int]) -> bool:
    """Trainers act only on sessions they coach; other roles on any session."""
    if not is_trainer_role(viewer_role):
        return True
    return viewer_id is not None and session.coach_id == viewer_id


def assert_action_permitted(
    session: CalendarSession,
    action: SessionAction,
    viewer_role: ViewerRole,
    now: datetime,
    viewer_id: Optional[int] = None,
) -> ActionVisibility:
    if not owns_session(session, viewer_role, viewer_id):
        raise ActionNotPermittedError(
            f"{session.session_type.value} #{session.id} belongs to another coach"
        )
    visibility = compute_action_visibility(session, viewer_role, now)
    if not visibility.allows(action):
        raise ActionNotPermittedError(
            f"{action.value} is not available on {session.session_type.value} #{session.id}"
        )
    return visibility
