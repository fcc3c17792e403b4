from datetime import datetime

import pytest

from studiodesk.scheduling.normalizers import (
    normalize_coach_session,
    normalize_member_booking,
    normalize_pt_booking,
)
from studiodesk.scheduling.status import (
    ActionNotPermittedError,
    InvalidStatusTransition,
    SessionType,
    ViewerRole,
)
from studiodesk.services.booking_mutations import BookingMutationService
from studiodesk.services.collection_cache import (
    CLASS_SCHEDULE_SESSIONS,
    CLASS_SESSION_BOOKINGS,
    PT_BOOKINGS,
)
from studiodesk.services.notifications import NotificationLevel
from tests.stubs import (
    COACH_ANA,
    COACH_BEN,
    MEMBER_JANE,
    FakeGateway,
    class_booking_raw,
    coach_session_raw,
    pt_booking_raw,
)

WINDOW = ("2026-09-27", "2026-10-31")


async def _prime(cache):
    async def loader():
        return []

    for collection in (CLASS_SCHEDULE_SESSIONS, CLASS_SESSION_BOOKINGS, PT_BOOKINGS):
        await cache.get((collection, *WINDOW), loader)


@pytest.fixture
def service_for(cache, notifications, now):
    def build(gateway, role=ViewerRole.ADMIN, viewer_id=None):
        return BookingMutationService(gateway, cache, notifications, role, viewer_id, now_provider=lambda: now)
    return build


@pytest.mark.asyncio
async def test_mark_class_booking_attended(service_for, cache, notifications, tz):
    gateway = FakeGateway()
    await _prime(cache)
    session = normalize_member_booking(class_booking_raw(booking_id=10), tz)

    result = await service_for(gateway).mark_attended(session)

    assert result.success
    assert result.message == "Attendance status updated successfully"
    assert gateway.calls_to("update_attendance_status") == [("update_attendance_status", 10, "ATTENDED")]
    assert cache.is_stale((CLASS_SESSION_BOOKINGS, *WINDOW))
    assert cache.is_stale((CLASS_SCHEDULE_SESSIONS, *WINDOW))
    assert not cache.is_stale((PT_BOOKINGS, *WINDOW))
    assert [n.level for n in notifications.items] == [NotificationLevel.SUCCESS]


@pytest.mark.asyncio
async def test_mark_class_booking_no_show(service_for, tz):
    gateway = FakeGateway()
    session = normalize_member_booking(class_booking_raw(booking_id=10), tz)

    await service_for(gateway).mark_no_show(session)

    assert gateway.calls_to("update_attendance_status") == [("update_attendance_status", 10, "NO_SHOW")]


@pytest.mark.asyncio
async def test_attended_booking_cannot_be_cancelled(service_for, tz):
    gateway = FakeGateway()
    session = normalize_member_booking(class_booking_raw(status="ATTENDED"), tz)

    with pytest.raises(ActionNotPermittedError):
        await service_for(gateway).cancel_booking(session)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_attended_booking_cannot_be_marked_again(service_for, tz):
    gateway = FakeGateway()
    session = normalize_member_booking(class_booking_raw(status="ATTENDED"), tz)

    with pytest.raises(InvalidStatusTransition):
        await service_for(gateway).mark_attended(session)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_members_cannot_mark_attendance(service_for, tz):
    session = normalize_member_booking(class_booking_raw(), tz)

    with pytest.raises(ActionNotPermittedError):
        await service_for(FakeGateway(), ViewerRole.MEMBER).mark_attended(session)


@pytest.mark.asyncio
async def test_pt_attendance_goes_through_pt_endpoints(service_for, cache, tz):
    gateway = FakeGateway()
    await _prime(cache)
    session = normalize_pt_booking(pt_booking_raw(booking_id=20), tz=tz)

    result = await service_for(gateway).mark_attended(session)

    assert result.message == "PT session marked as attended"
    assert gateway.calls_to("attend_pt_booking") == [("attend_pt_booking", 20)]
    assert gateway.calls_to("update_attendance_status") == []
    assert cache.is_stale((PT_BOOKINGS, *WINDOW))


@pytest.mark.asyncio
async def test_pt_no_show_and_cancel(service_for, tz):
    gateway = FakeGateway()
    service = service_for(gateway)

    no_show = await service.mark_no_show(normalize_pt_booking(pt_booking_raw(booking_id=20), tz=tz))
    cancelled = await service.cancel_booking(normalize_pt_booking(pt_booking_raw(booking_id=21), tz=tz))

    assert no_show.message == "PT session marked as no-show"
    assert cancelled.message == "PT session cancelled successfully"
    assert gateway.calls_to("no_show_pt_booking") == [("no_show_pt_booking", 20)]
    assert gateway.calls_to("cancel_pt_booking") == [("cancel_pt_booking", 21)]


@pytest.mark.asyncio
async def test_coach_view_of_standalone_pt_booking_uses_pt_endpoints(service_for, tz):
    gateway = FakeGateway()
    session = normalize_pt_booking(pt_booking_raw(booking_id=20), SessionType.COACH_PT, tz)

    await service_for(gateway, ViewerRole.COACH, viewer_id=7).mark_attended(session)

    assert gateway.calls_to("attend_pt_booking") == [("attend_pt_booking", 20)]


@pytest.mark.asyncio
async def test_collaborator_failure_is_reported_not_raised(service_for, cache, notifications, tz):
    gateway = FakeGateway(failures={"update_attendance_status": "Booking is locked"})
    await _prime(cache)
    session = normalize_member_booking(class_booking_raw(), tz)

    result = await service_for(gateway).mark_attended(session)

    assert not result.success
    assert result.message == "Booking is locked"
    assert not cache.is_stale((CLASS_SESSION_BOOKINGS, *WINDOW))
    [notification] = notifications.items
    assert notification.level is NotificationLevel.ERROR
    assert notification.message == "Booking is locked"


@pytest.mark.asyncio
async def test_failure_without_message_uses_default_wording(service_for, notifications, tz):
    gateway = FakeGateway(failures={"attend_pt_booking": ""})
    session = normalize_pt_booking(pt_booking_raw(), tz=tz)

    result = await service_for(gateway).mark_attended(session)

    assert result.message == "Failed to mark PT session as attended"


@pytest.mark.asyncio
async def test_result_for_unmounted_view_is_not_notified(service_for, notifications, tz):
    token = notifications.views.mount("calendar")
    notifications.views.unmount("calendar")
    session = normalize_member_booking(class_booking_raw(), tz)

    result = await service_for(FakeGateway()).mark_attended(session, token)

    assert result.success
    assert notifications.items == []


@pytest.mark.asyncio
async def test_result_for_retargeted_view_is_not_notified(service_for, notifications, tz):
    token = notifications.views.mount("calendar", target="2026-10")
    notifications.views.retarget("calendar", "2026-11")
    session = normalize_member_booking(class_booking_raw(), tz)

    await service_for(FakeGateway()).mark_attended(session, token)

    assert notifications.items == []


@pytest.mark.asyncio
async def test_result_for_current_view_is_notified(service_for, notifications, tz):
    token = notifications.views.mount("calendar", target="2026-10")
    session = normalize_member_booking(class_booking_raw(), tz)

    await service_for(FakeGateway()).mark_attended(session, token)

    assert len(notifications.items) == 1


@pytest.mark.asyncio
async def test_mark_all_attended_is_one_call(service_for, tz):
    gateway = FakeGateway()
    raw = coach_session_raw(session_id=3, start_time="2026-10-15T18:00:00+08:00",
                            end_time="2026-10-15T19:00:00+08:00")
    session = normalize_coach_session(raw, tz)

    result = await service_for(gateway).mark_all_attended(session)

    assert result.message == "All bookings marked as attended"
    assert gateway.calls == [("mark_all_attended", 3)]


@pytest.mark.asyncio
async def test_mark_all_attended_after_start_is_not_offered(service_for, tz):
    raw = coach_session_raw(session_id=3, start_time="2026-10-15T08:00:00+08:00",
                            end_time="2026-10-15T09:00:00+08:00")
    session = normalize_coach_session(raw, tz)

    with pytest.raises(ActionNotPermittedError):
        await service_for(FakeGateway()).mark_all_attended(session)


@pytest.mark.asyncio
async def test_mark_all_attended_rejects_bookings(service_for, tz):
    session = normalize_member_booking(class_booking_raw(), tz)

    with pytest.raises(ActionNotPermittedError):
        await service_for(FakeGateway()).mark_all_attended(session)


@pytest.mark.asyncio
async def test_schedule_time_change_invalidates_every_collection(service_for, cache, tz):
    gateway = FakeGateway()
    await _prime(cache)
    slot = normalize_coach_session(coach_session_raw(session_id=3), tz)
    start = datetime(2026, 10, 22, 9, 0, tzinfo=tz)

    result = await service_for(gateway).update_class_schedule_session(slot, start, 45)

    assert result.message == "Session updated successfully"
    assert gateway.calls == [("update_class_schedule_session", 3, start, 45)]
    for collection in (CLASS_SCHEDULE_SESSIONS, CLASS_SESSION_BOOKINGS, PT_BOOKINGS):
        assert cache.is_stale((collection, *WINDOW))


@pytest.mark.asyncio
async def test_past_slot_cannot_be_rescheduled(service_for, tz, now):
    gateway = FakeGateway()
    yesterday = coach_session_raw(session_id=3, start_time="2026-10-14T09:00:00+08:00",
                                  end_time="2026-10-14T10:00:00+08:00")
    slot = normalize_coach_session(yesterday, tz)

    for role in (ViewerRole.MEMBER, ViewerRole.ADMIN):
        with pytest.raises(ActionNotPermittedError):
            await service_for(gateway, role).update_class_schedule_session(slot, now, 45)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_todays_slot_cannot_be_rescheduled(service_for, tz, now):
    later_today = coach_session_raw(session_id=3, start_time="2026-10-15T18:00:00+08:00",
                                    end_time="2026-10-15T19:00:00+08:00")
    slot = normalize_coach_session(later_today, tz)

    with pytest.raises(ActionNotPermittedError):
        await service_for(FakeGateway()).update_class_schedule_session(slot, now, 45)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["ATTENDED", "NO_SHOW"])
async def test_settled_pt_booking_cannot_be_edited(service_for, tz, status):
    gateway = FakeGateway()
    session = normalize_pt_booking(pt_booking_raw(booking_id=20, status=status), tz=tz)

    with pytest.raises(ActionNotPermittedError):
        await service_for(gateway).update_pt_booking(session, {"duration": 45})
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_attended_class_booking_cannot_be_edited(service_for, tz):
    gateway = FakeGateway()
    session = normalize_member_booking(class_booking_raw(status="ATTENDED"), tz)

    with pytest.raises(ActionNotPermittedError):
        await service_for(gateway).update_class_booking(session, {"notes": "late"})
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_trainer_cannot_act_on_another_coachs_booking(service_for, tz):
    gateway = FakeGateway()
    ben_slot = coach_session_raw(session_id=2, coach=COACH_BEN)
    booking = normalize_member_booking(class_booking_raw(booking_id=11, session=ben_slot), tz)
    service = service_for(gateway, ViewerRole.COACH, viewer_id=COACH_ANA["id"])

    with pytest.raises(ActionNotPermittedError):
        await service.cancel_booking(booking)
    with pytest.raises(ActionNotPermittedError):
        await service.mark_attended(booking)
    with pytest.raises(ActionNotPermittedError):
        await service.mark_no_show(booking)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_trainer_acts_on_own_bookings(service_for, tz):
    gateway = FakeGateway()
    booking = normalize_member_booking(class_booking_raw(booking_id=10), tz)

    result = await service_for(gateway, ViewerRole.COACH, viewer_id=COACH_ANA["id"]).mark_attended(booking)

    assert result.success
    assert gateway.calls_to("update_attendance_status") == [("update_attendance_status", 10, "ATTENDED")]


@pytest.mark.asyncio
async def test_trainer_cannot_reschedule_or_book_another_coachs_slot(service_for, tz):
    gateway = FakeGateway()
    ben_slot = normalize_coach_session(coach_session_raw(session_id=2, coach=COACH_BEN), tz)
    service = service_for(gateway, ViewerRole.COACH, viewer_id=COACH_ANA["id"])

    with pytest.raises(ActionNotPermittedError):
        await service.update_class_schedule_session(ben_slot, datetime(2026, 10, 22, 9, 0, tzinfo=tz))
    with pytest.raises(ActionNotPermittedError):
        await service.book_class_session(ben_slot, MEMBER_JANE["id"])
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_trainer_cannot_assign_pt_to_another_coach(service_for, tz):
    gateway = FakeGateway()
    service = service_for(gateway, ViewerRole.COACH, viewer_id=COACH_ANA["id"])
    own = normalize_pt_booking(pt_booking_raw(booking_id=20), SessionType.COACH_PT, tz)

    with pytest.raises(ActionNotPermittedError):
        await service.create_pt_booking({"customer_id": 22, "coach_id": COACH_BEN["id"]})
    with pytest.raises(ActionNotPermittedError):
        await service.update_pt_booking(own, {"coach_id": COACH_BEN["id"]})
    assert gateway.calls == []

    await service.create_pt_booking({"customer_id": 22, "coach_id": COACH_ANA["id"]})
    assert len(gateway.calls_to("create_pt_booking")) == 1


@pytest.mark.asyncio
async def test_booking_form_routes(service_for, tz):
    gateway = FakeGateway()
    service = service_for(gateway)
    pt_booking = normalize_pt_booking(pt_booking_raw(booking_id=20), tz=tz)
    slot = normalize_coach_session(coach_session_raw(session_id=1), tz)
    class_booking = normalize_member_booking(class_booking_raw(booking_id=10), tz)

    created = await service.create_pt_booking({"customer_id": 22, "coach_id": 7})
    updated = await service.update_pt_booking(pt_booking, {"duration": 45})
    booked = await service.book_class_session(slot, 21, "first class")
    edited = await service.update_class_booking(class_booking, {"notes": "late"})

    assert [r.message for r in (created, updated, booked, edited)] == [
        "PT session booked successfully",
        "PT session updated successfully",
        "Class session booked successfully",
        "Booking updated successfully",
    ]
    assert gateway.calls_to("update_pt_booking") == [("update_pt_booking", 20, {"duration": 45})]
    assert gateway.calls_to("book_class_session") == [("book_class_session", 1, 21, "first class")]
    assert gateway.calls_to("update_class_booking") == [("update_class_booking", 10, {"notes": "late"})]


@pytest.mark.asyncio
async def test_trainer_loads_pt_bookings_from_the_coach_side(service_for):
    gateway = FakeGateway(pt_bookings=[pt_booking_raw(booking_id=20)])

    coach_view = await service_for(gateway, ViewerRole.COACH, viewer_id=7).load_pt_booking(20)
    member_view = await service_for(gateway, ViewerRole.STAFF).load_pt_booking(20)

    assert coach_view.session_type is SessionType.COACH_PT
    assert member_view.session_type is SessionType.MEMBER_PT


@pytest.mark.asyncio
async def test_load_class_booking_rejects_cancelled(service_for):
    gateway = FakeGateway(class_bookings=[class_booking_raw(booking_id=10, status="CANCELLED")])

    with pytest.raises(ValueError):
        await service_for(gateway).load_class_booking(10)
