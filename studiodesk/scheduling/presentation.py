"""
Presentation transformer: turns a CalendarSession into a display record with
title, subtitle, meta rows and bound actions.

Only actions the visibility policy permits are bound; the click route that
opens a session is always bound. Each bound action keeps the name of the
handler it routes to and its target id, so the routing can be inspected
without invoking anything.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Tuple

from studiodesk.scheduling.policy import ActionVisibility, SessionAction, compute_action_visibility
from studiodesk.scheduling.sessions import (
    UNKNOWN_LABEL,
    CalendarSession,
    CoachGroupClassSession,
    CoachPtSession,
    MemberGroupClassSession,
    MemberPtSession,
    PersonRef,
    unhandled_session,
)
from studiodesk.scheduling.status import BookingStatus, ViewerRole

Handler = Callable[[Any], Any]


@dataclass
class SessionHandlers:
    """Callbacks the calendar views route actions to. All optional."""
    on_session_click: Optional[Handler] = None
    on_edit_session: Optional[Handler] = None
    on_edit_booking: Optional[Handler] = None
    on_edit_pt_booking: Optional[Handler] = None
    on_cancel_session: Optional[Handler] = None
    on_cancel_booking: Optional[Handler] = None
    on_cancel_pt_booking: Optional[Handler] = None
    on_mark_attendance: Optional[Handler] = None


@dataclass(frozen=True)
class BoundAction:
    verb: SessionAction
    handler_name: str
    target_id: Optional[int]
    argument: Any = None
    callback: Optional[Handler] = field(default=None, compare=False, repr=False)

    def __call__(self):
        if self.callback is None:
            return None
        return self.callback(self.argument)


@dataclass(frozen=True)
class MetaItem:
    icon: str
    label: str


@dataclass(frozen=True)
class Presentation:
    title: str
    subtitle: Optional[str]
    meta: Tuple[MetaItem, ...]
    actions: Tuple[BoundAction, ...]
    status: Optional[BookingStatus]
    session: CalendarSession
    visibility: ActionVisibility
    click: Optional[BoundAction] = None

    def action(self, verb: SessionAction) -> Optional[BoundAction]:
        for bound in self.actions:
            if bound.verb is verb:
                return bound
        return None


def _person_name(person: Optional[PersonRef]) -> str:
    return person.display_name if person else UNKNOWN_LABEL


def _coach_meta(session: CalendarSession) -> MetaItem:
    return MetaItem(icon="user", label=f"Coach: {_person_name(session.coach)}")


def _enrollment_meta(session) -> MetaItem:
    attended = session.attendance_count or 0
    capacity = session.capacity or 0
    return MetaItem(icon="users", label=f"{attended}/{capacity} enrolled")


def _header(session: CalendarSession) -> Tuple[str, Optional[str], Tuple[MetaItem, ...]]:
    if isinstance(session, CoachGroupClassSession):
        return session.class_name or session.title, None, (_coach_meta(session), _enrollment_meta(session))
    if isinstance(session, MemberGroupClassSession):
        return _person_name(session.customer), session.class_name, (_coach_meta(session),)
    if isinstance(session, CoachPtSession):
        if session.from_schedule:
            return session.class_name or session.title, None, (_coach_meta(session), _enrollment_meta(session))
        return _person_name(session.customer), _person_name(session.coach), ()
    if isinstance(session, MemberPtSession):
        return _person_name(session.customer), _person_name(session.coach), ()
    raise unhandled_session(session)


# (edit handler, cancel handler, cancel target attribute) per variant
def _routes(session: CalendarSession) -> Tuple[str, str, str]:
    if isinstance(session, CoachGroupClassSession):
        return "on_edit_session", "on_cancel_session", "session_id"
    if isinstance(session, MemberGroupClassSession):
        return "on_edit_booking", "on_cancel_booking", "booking_id"
    if isinstance(session, CoachPtSession):
        if session.from_schedule:
            return "on_edit_session", "on_cancel_session", "session_id"
        return "on_edit_pt_booking", "on_cancel_pt_booking", "booking_id"
    if isinstance(session, MemberPtSession):
        return "on_edit_pt_booking", "on_cancel_pt_booking", "booking_id"
    raise unhandled_session(session)


def _bind(handlers: SessionHandlers, verb: SessionAction, handler_name: str,
          target_id: Optional[int], argument: Any) -> BoundAction:
    return BoundAction(
        verb=verb,
        handler_name=handler_name,
        target_id=target_id,
        argument=argument,
        callback=getattr(handlers, handler_name),
    )


def bind_actions(
    session: CalendarSession,
    handlers: SessionHandlers,
    visibility: ActionVisibility,
) -> Tuple[BoundAction, ...]:
    edit_handler, cancel_handler, cancel_attr = _routes(session)
    cancel_target = getattr(session, cancel_attr)
    actions: List[BoundAction] = []

    if visibility.can_edit:
        actions.append(_bind(handlers, SessionAction.EDIT, edit_handler, session.id, session))
    # A member booking without a booking id has nothing to cancel
    if visibility.can_cancel and cancel_target is not None:
        actions.append(_bind(handlers, SessionAction.CANCEL, cancel_handler, cancel_target, cancel_target))
    if visibility.can_mark_attendance:
        actions.append(_bind(handlers, SessionAction.MARK_ATTENDANCE, "on_mark_attendance", session.id, session))
    if visibility.can_mark_all_attended:
        actions.append(_bind(handlers, SessionAction.MARK_ALL_ATTENDED, "on_mark_attendance",
                             session.id, session))
    return tuple(actions)


def to_presentation(
    session: CalendarSession,
    handlers: SessionHandlers,
    visibility: ActionVisibility,
) -> Presentation:
    title, subtitle, meta = _header(session)
    return Presentation(
        title=title,
        subtitle=subtitle,
        meta=meta,
        actions=bind_actions(session, handlers, visibility),
        status=session.status,
        session=session,
        visibility=visibility,
        click=_bind(handlers, SessionAction.OPEN, "on_session_click", session.id, session),
    )


def transform_sessions(
    sessions: Iterable[CalendarSession],
    handlers: Optional[SessionHandlers],
    viewer_role: ViewerRole,
    now: datetime,
) -> List[Presentation]:
    handlers = handlers or SessionHandlers()
    return [
        to_presentation(session, handlers, compute_action_visibility(session, viewer_role, now))
        for session in sessions
    ]
