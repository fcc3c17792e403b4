"""
Session normalizers: one per raw source, each producing a CalendarSession.

Raw payloads are plain mappings shaped by the data-fetch layer (see
``studiodesk.crud``). A record without a usable start time is dropped by
returning None; missing coach/customer/package data degrades to placeholder
labels instead of failing.
"""
import logging
from datetime import datetime, timedelta, tzinfo
from typing import Any, Iterable, List, Mapping, Optional

from studiodesk.core.conversions import coerce_date, coerce_datetime, coerce_int, coerce_time
from studiodesk.core.settings import get_studio_timezone
from studiodesk.scheduling.sessions import (
    CalendarSession,
    CoachGroupClassSession,
    CoachPtSession,
    MemberGroupClassSession,
    MemberPtSession,
    PersonRef,
)
from studiodesk.scheduling.status import (
    BookingStatus,
    ClassScheduleType,
    SessionType,
    parse_booking_status,
)

logger = logging.getLogger(__name__)

DEFAULT_PT_DURATION = 60
UNKNOWN_CLASS = "Unknown Class"
GROUP_CLASS_TITLE = "Group Class"
PT_SESSION_TITLE = "PT Session"


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def person_ref(raw: Any, fallback_id: Any = None) -> Optional[PersonRef]:
    """Build a PersonRef from a raw coach/customer mapping.

    Returns None only when there is neither a mapping nor an id to point at.
    """
    data = _mapping(raw)
    person_id = coerce_int(data.get("id"))
    if person_id is None:
        person_id = coerce_int(fallback_id)
    if not data and person_id is None:
        return None
    return PersonRef(
        id=person_id,
        first_name=_text(data.get("first_name")),
        last_name=_text(data.get("last_name")),
        full_name=_text(data.get("full_name")),
    )


def _local(value: datetime, tz: tzinfo) -> datetime:
    return value.astimezone(tz) if value.tzinfo else value.replace(tzinfo=tz)


def normalize_coach_session(
    raw: Mapping[str, Any],
    tz: Optional[tzinfo] = None,
) -> Optional[CalendarSession]:
    """Map a class-schedule session to CoachGroupClassSession or CoachPtSession."""
    tz = tz or get_studio_timezone()
    raw = _mapping(raw)
    start_time = coerce_datetime(raw.get("start_time"), tz)
    if start_time is None:
        logger.debug("Dropping class schedule session %s without start time", raw.get("id"))
        return None

    end_time = coerce_datetime(raw.get("end_time"), tz) or start_time
    schedule = _mapping(raw.get("class_schedule"))
    class_type = _text(schedule.get("class_type")) or ClassScheduleType.GROUP.value
    is_pt = class_type == ClassScheduleType.PERSONAL_TRAINING.value

    if is_pt:
        attendance_count = coerce_int(raw.get("pt_attendance_count")) or 0
    else:
        attendance_count = coerce_int(raw.get("attendance_count")) or 0

    local_start = _local(start_time, tz)
    session_id = coerce_int(raw.get("id"))
    class_name = _text(schedule.get("class_name"))

    common = dict(
        id=session_id,
        start_time=start_time,
        end_time=end_time,
        coach=person_ref(schedule.get("coach"), schedule.get("coach_id")),
        session_id=session_id,
        schedule_id=coerce_int(schedule.get("id")),
        capacity=coerce_int(schedule.get("capacity")),
        attendance_count=attendance_count,
        session_date=local_start.strftime("%Y-%m-%d"),
        session_time=local_start.strftime("%H:%M"),
    )

    if is_pt:
        return CoachPtSession(
            title=class_name or PT_SESSION_TITLE,
            class_name=class_name or PT_SESSION_TITLE,
            **common,
        )
    return CoachGroupClassSession(
        title=class_name or GROUP_CLASS_TITLE,
        class_name=class_name or GROUP_CLASS_TITLE,
        **common,
    )


def normalize_member_booking(
    raw: Mapping[str, Any],
    tz: Optional[tzinfo] = None,
) -> Optional[MemberGroupClassSession]:
    """Map a group-class booking; cancelled bookings are excluded entirely."""
    tz = tz or get_studio_timezone()
    raw = _mapping(raw)
    status = parse_booking_status(raw.get("status"))
    if status is BookingStatus.CANCELLED:
        return None

    # The booking references its slot; time always comes from the slot
    slot = _mapping(raw.get("class_schedule_session"))
    start_time = coerce_datetime(slot.get("start_time"), tz)
    if start_time is None:
        logger.debug("Dropping class booking %s without session start time", raw.get("id"))
        return None

    schedule = _mapping(slot.get("class_schedule"))
    booking_id = coerce_int(raw.get("id"))
    customer = person_ref(raw.get("customer"), raw.get("customer_id"))
    class_name = _text(schedule.get("class_name")) or UNKNOWN_CLASS

    return MemberGroupClassSession(
        id=booking_id,
        start_time=start_time,
        end_time=coerce_datetime(slot.get("end_time"), tz) or start_time,
        title=class_name,
        coach=person_ref(schedule.get("coach"), schedule.get("coach_id")),
        customer=customer,
        status=status,
        notes=_text(raw.get("notes")) or "",
        booking_id=booking_id,
        session_id=coerce_int(slot.get("id")),
        schedule_id=coerce_int(schedule.get("id")),
        class_name=class_name,
        capacity=coerce_int(schedule.get("capacity")),
        attendance_count=coerce_int(slot.get("attendance_count")) or 0,
    )


def pt_booking_start(raw: Mapping[str, Any], tz: tzinfo) -> Optional[datetime]:
    """Start instant of a PT booking from its local date + time fields.

    Falls back to an explicit ``start_time`` when the form fields are absent.
    """
    booking_date = coerce_date(raw.get("booking_date"))
    booking_time = coerce_time(raw.get("booking_time"))
    if booking_date is not None and booking_time is not None:
        return datetime.combine(booking_date, booking_time.replace(tzinfo=None), tzinfo=tz)
    return coerce_datetime(raw.get("start_time"), tz)


def normalize_pt_booking(
    raw: Mapping[str, Any],
    perspective: SessionType = SessionType.MEMBER_PT,
    tz: Optional[tzinfo] = None,
) -> Optional[CalendarSession]:
    """Map a PT booking from the member's or the coach's perspective."""
    if perspective not in (SessionType.MEMBER_PT, SessionType.COACH_PT):
        raise ValueError(f"PT bookings cannot be viewed as {perspective.value}")

    tz = tz or get_studio_timezone()
    raw = _mapping(raw)
    status = parse_booking_status(raw.get("status"))
    if status is BookingStatus.CANCELLED:
        return None

    start_time = pt_booking_start(raw, tz)
    if start_time is None:
        logger.debug("Dropping PT booking %s without booking date/time", raw.get("id"))
        return None

    duration = coerce_int(raw.get("duration")) or DEFAULT_PT_DURATION
    end_time = start_time + timedelta(minutes=duration)
    local_start = _local(start_time, tz)
    booking_date = local_start.strftime("%Y-%m-%d")
    booking_time = local_start.strftime("%H:%M")

    booking_id = coerce_int(raw.get("id"))
    package = _mapping(raw.get("pt_package"))
    class_name = _text(package.get("package_name")) or PT_SESSION_TITLE
    notes = _text(raw.get("booking_notes")) or ""
    coach = person_ref(raw.get("coach"), raw.get("coach_id"))
    customer = person_ref(raw.get("customer"), raw.get("customer_id"))

    if perspective is SessionType.COACH_PT:
        return CoachPtSession(
            id=booking_id,
            start_time=start_time,
            end_time=end_time,
            title=class_name,
            coach=coach,
            customer=customer,
            status=status,
            notes=notes,
            booking_id=booking_id,
            class_name=class_name,
            session_date=booking_date,
            session_time=booking_time,
            duration=duration,
            booking_date=booking_date,
            booking_time=booking_time,
        )

    package_id = coerce_int(raw.get("pt_package_id"))
    return MemberPtSession(
        id=booking_id,
        start_time=start_time,
        end_time=end_time,
        title=class_name,
        coach=coach,
        customer=customer,
        status=status,
        notes=notes,
        booking_id=booking_id,
        class_name=class_name,
        duration=duration,
        booking_date=booking_date,
        booking_time=booking_time,
        session_date=booking_date,
        pt_package_id=package_id,
        customer_pt_package_id=coerce_int(raw.get("customer_pt_package_id")) or package_id,
        class_schedule_session_id=coerce_int(raw.get("class_schedule_session_id")),
    )


def normalize_coach_sessions(
    raws: Iterable[Mapping[str, Any]],
    tz: Optional[tzinfo] = None,
) -> List[CalendarSession]:
    sessions = (normalize_coach_session(raw, tz) for raw in raws or [])
    return [session for session in sessions if session is not None]


def normalize_member_bookings(
    raws: Iterable[Mapping[str, Any]],
    tz: Optional[tzinfo] = None,
) -> List[MemberGroupClassSession]:
    sessions = (normalize_member_booking(raw, tz) for raw in raws or [])
    return [session for session in sessions if session is not None]


def normalize_pt_bookings(
    raws: Iterable[Mapping[str, Any]],
    tz: Optional[tzinfo] = None,
) -> List[CalendarSession]:
    """Member view of every PT booking, plus the coach view of standalone ones.

    Bookings made against a PT schedule slot are already shown to the coach
    through that slot, so they only get the member view.
    """
    sessions: List[CalendarSession] = []
    for raw in raws or []:
        member_view = normalize_pt_booking(raw, SessionType.MEMBER_PT, tz)
        if member_view is None:
            continue
        sessions.append(member_view)
        if member_view.class_schedule_session_id is None:
            sessions.append(normalize_pt_booking(raw, SessionType.COACH_PT, tz))
    return sessions
