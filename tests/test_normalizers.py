from datetime import datetime, timedelta

from studiodesk.scheduling.normalizers import (
    normalize_coach_session,
    normalize_member_booking,
    normalize_pt_booking,
    normalize_pt_bookings,
)
from studiodesk.scheduling.sessions import (
    CoachGroupClassSession,
    CoachPtSession,
    MemberGroupClassSession,
    MemberPtSession,
)
from studiodesk.scheduling.status import BookingStatus, SessionType
from tests.stubs import class_booking_raw, coach_session_raw, pt_booking_raw


def test_group_schedule_session_becomes_coach_group_class(tz):
    session = normalize_coach_session(coach_session_raw(), tz)

    assert isinstance(session, CoachGroupClassSession)
    assert session.session_type is SessionType.COACH_GROUP_CLASS
    assert session.title == "Morning Yoga"
    assert session.coach_id == 7
    assert session.capacity == 12
    assert session.attendance_count == 5
    assert session.session_date == "2026-10-20"
    assert session.session_time == "09:00"
    assert session.status is None


def test_pt_schedule_session_uses_pt_attendance_count(tz):
    raw = coach_session_raw(class_type="PERSONAL_TRAINING", class_name="PT Slot",
                            attendance_count=4, pt_attendance_count=1)
    session = normalize_coach_session(raw, tz)

    assert isinstance(session, CoachPtSession)
    assert session.from_schedule
    assert session.attendance_count == 1


def test_utc_start_is_reported_in_studio_time(tz):
    raw = coach_session_raw(start_time="2026-10-20T01:00:00Z", end_time="2026-10-20T02:00:00Z")
    session = normalize_coach_session(raw, tz)
    assert session.session_time == "09:00"


def test_record_without_start_time_is_dropped(tz):
    assert normalize_coach_session(coach_session_raw(start_time=None), tz) is None
    assert normalize_coach_session({}, tz) is None


def test_member_booking_takes_time_from_its_session(tz):
    session = normalize_member_booking(class_booking_raw(), tz)

    assert isinstance(session, MemberGroupClassSession)
    assert session.booking_id == 10
    assert session.session_id == 1
    assert session.status is BookingStatus.BOOKED
    assert session.start_time == datetime(2026, 10, 20, 9, 0, tzinfo=tz)
    assert session.customer.display_name == "Jane Doe"


def test_cancelled_member_booking_is_excluded(tz):
    assert normalize_member_booking(class_booking_raw(status="CANCELLED"), tz) is None


def test_missing_names_degrade_to_placeholders(tz):
    raw = class_booking_raw(customer=None, session=coach_session_raw(class_name=None, coach=None))
    session = normalize_member_booking(raw, tz)

    assert session.class_name == "Unknown Class"
    assert session.customer is None
    assert session.coach is None


def test_pt_booking_combines_local_date_and_time(tz):
    session = normalize_pt_booking(pt_booking_raw(duration=45), tz=tz)

    assert isinstance(session, MemberPtSession)
    assert session.start_time == datetime(2026, 10, 21, 15, 0, tzinfo=tz)
    assert session.end_time - session.start_time == timedelta(minutes=45)
    assert session.booking_date == "2026-10-21"
    assert session.booking_time == "15:00"
    assert session.class_name == "10 PT Sessions"


def test_pt_booking_duration_defaults_to_an_hour(tz):
    session = normalize_pt_booking(pt_booking_raw(duration=None), tz=tz)
    assert session.duration == 60
    assert session.end_time - session.start_time == timedelta(minutes=60)


def test_cancelled_pt_booking_is_excluded(tz):
    assert normalize_pt_booking(pt_booking_raw(status="CANCELLED"), tz=tz) is None
    assert normalize_pt_bookings([pt_booking_raw(status="CANCELLED")], tz) == []


def test_standalone_pt_booking_gets_member_and_coach_views(tz):
    sessions = normalize_pt_bookings([pt_booking_raw()], tz)

    assert [s.session_type for s in sessions] == [SessionType.MEMBER_PT, SessionType.COACH_PT]
    coach_view = sessions[1]
    assert not coach_view.from_schedule
    assert coach_view.booking_id == 20
    assert coach_view.customer.display_name == "Mark Cruz"


def test_slot_backed_pt_booking_only_gets_member_view(tz):
    sessions = normalize_pt_bookings([pt_booking_raw(class_schedule_session_id=3)], tz)

    assert len(sessions) == 1
    assert sessions[0].class_schedule_session_id == 3
