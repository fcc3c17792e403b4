from dataclasses import dataclass
from datetime import datetime

import pytest

from studiodesk.scheduling.normalizers import (
    normalize_coach_session,
    normalize_member_booking,
    normalize_pt_booking,
)
from studiodesk.scheduling.policy import (
    SessionAction,
    assert_action_permitted,
    can_mark_all_attended,
    compute_action_visibility,
    is_today_or_past,
    owns_session,
)
from studiodesk.scheduling.status import ActionNotPermittedError, SessionType, ViewerRole
from tests.stubs import COACH_ANA, COACH_BEN, class_booking_raw, coach_session_raw, pt_booking_raw


def _coach_session(tz, start):
    end = start.replace(hour=start.hour + 1)
    return normalize_coach_session(coach_session_raw(start_time=start.isoformat(), end_time=end.isoformat()), tz)


def test_booked_member_booking_can_be_edited_and_cancelled(tz, now):
    session = normalize_member_booking(class_booking_raw(), tz)
    visibility = compute_action_visibility(session, ViewerRole.ADMIN, now)

    assert visibility.can_edit
    assert visibility.can_cancel
    assert visibility.can_mark_attendance
    assert not visibility.can_mark_all_attended


@pytest.mark.parametrize("status", ["ATTENDED", "NO_SHOW"])
def test_settled_member_booking_is_locked(tz, now, status):
    session = normalize_member_booking(class_booking_raw(status=status), tz)
    visibility = compute_action_visibility(session, ViewerRole.ADMIN, now)

    assert not visibility.can_edit
    assert not visibility.can_cancel


def test_attended_pt_booking_cannot_be_cancelled(tz, now):
    session = normalize_pt_booking(pt_booking_raw(status="ATTENDED"), tz=tz)

    with pytest.raises(ActionNotPermittedError):
        assert_action_permitted(session, SessionAction.CANCEL, ViewerRole.ADMIN, now)


def test_members_cannot_mark_attendance(tz, now):
    session = normalize_member_booking(class_booking_raw(), tz)
    visibility = compute_action_visibility(session, ViewerRole.MEMBER, now)

    assert not visibility.can_mark_attendance
    assert visibility.can_cancel


def test_coach_session_tomorrow_is_editable(tz, now):
    session = _coach_session(tz, datetime(2026, 10, 16, 9, 0, tzinfo=tz))
    visibility = compute_action_visibility(session, ViewerRole.COACH, now)

    assert visibility.can_edit
    assert visibility.can_cancel


def test_coach_session_later_today_counts_as_past(tz, now):
    session = _coach_session(tz, datetime(2026, 10, 15, 18, 0, tzinfo=tz))

    assert is_today_or_past(session, now)
    visibility = compute_action_visibility(session, ViewerRole.ADMIN, now)
    assert not visibility.can_edit
    assert not visibility.can_cancel


def test_coach_session_yesterday_is_not_editable(tz, now):
    session = _coach_session(tz, datetime(2026, 10, 14, 9, 0, tzinfo=tz))
    assert not compute_action_visibility(session, ViewerRole.ADMIN, now).can_edit


def test_mark_all_attended_only_before_the_session_starts(tz, now):
    upcoming = _coach_session(tz, datetime(2026, 10, 15, 18, 0, tzinfo=tz))
    started = _coach_session(tz, datetime(2026, 10, 15, 8, 0, tzinfo=tz))

    assert can_mark_all_attended(upcoming, now)
    assert not can_mark_all_attended(started, now)
    assert compute_action_visibility(upcoming, ViewerRole.STAFF, now).can_mark_all_attended
    assert not compute_action_visibility(upcoming, ViewerRole.MEMBER, now).can_mark_all_attended


def test_mark_all_attended_needs_a_class_slot(tz, now):
    standalone = normalize_pt_booking(pt_booking_raw(), SessionType.COACH_PT, tz)
    assert not can_mark_all_attended(standalone, now)

    pt_slot = normalize_coach_session(
        coach_session_raw(class_type="PERSONAL_TRAINING", start_time="2026-10-15T18:00:00+08:00",
                          end_time="2026-10-15T19:00:00+08:00"),
        tz,
    )
    assert not can_mark_all_attended(pt_slot, now)


def test_unknown_variant_is_rejected(now):
    @dataclass
    class Stray:
        id: int = 1

    with pytest.raises(TypeError):
        compute_action_visibility(Stray(), ViewerRole.ADMIN, now)


def test_trainers_only_act_on_their_own_sessions(tz, now):
    ana_booking = normalize_member_booking(class_booking_raw(), tz)
    ben_booking = normalize_member_booking(
        class_booking_raw(session=coach_session_raw(coach=COACH_BEN)), tz
    )

    assert owns_session(ana_booking, ViewerRole.COACH, COACH_ANA["id"])
    assert not owns_session(ben_booking, ViewerRole.COACH, COACH_ANA["id"])
    assert not owns_session(ana_booking, ViewerRole.COACH, None)
    assert owns_session(ben_booking, ViewerRole.STAFF, None)

    assert_action_permitted(ana_booking, SessionAction.CANCEL, ViewerRole.COACH, now, COACH_ANA["id"])
    with pytest.raises(ActionNotPermittedError):
        assert_action_permitted(ben_booking, SessionAction.CANCEL, ViewerRole.COACH, now, COACH_ANA["id"])


def test_opening_a_session_is_always_permitted(tz, now):
    session = normalize_member_booking(class_booking_raw(status="ATTENDED"), tz)
    assert_action_permitted(session, SessionAction.OPEN, ViewerRole.MEMBER, now)
