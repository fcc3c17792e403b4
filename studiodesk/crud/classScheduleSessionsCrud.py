"""
CRUD operations for class schedule sessions (dated class slots)
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from studiodesk.core.conversions import coerce_datetime
from studiodesk.core.settings import get_studio_timezone
from studiodesk.crud.ptBookingsCrud import slot_instants, window_bounds
from studiodesk.crud.usersCrud import person_payload
from studiodesk.models.classModel import ClassSchedule, ClassScheduleSession, ClassSessionBooking
from studiodesk.models.ptModel import PtBooking
from studiodesk.scheduling.status import BookingStatus

logger = logging.getLogger(__name__)


def schedule_payload(schedule: Optional[ClassSchedule]) -> Optional[Dict[str, Any]]:
    if schedule is None:
        return None
    return {
        "id": schedule.id,
        "class_name": schedule.class_name,
        "class_type": schedule.class_type,
        "capacity": schedule.capacity,
        "coach_id": schedule.coach_id,
        "coach": person_payload(schedule.coach),
    }


def schedule_session_payload(
    session: ClassScheduleSession,
    attendance_count: int = 0,
    pt_attendance_count: int = 0,
) -> Dict[str, Any]:
    return {
        "id": session.id,
        "class_schedule_id": session.class_schedule_id,
        "start_time": session.start_time.isoformat() if session.start_time else None,
        "end_time": session.end_time.isoformat() if session.end_time else None,
        "attendance_count": attendance_count,
        "pt_attendance_count": pt_attendance_count,
        "class_schedule": schedule_payload(session.class_schedule),
    }


def _class_counts():
    return (
        select(
            ClassSessionBooking.class_schedule_session_id.label("session_id"),
            func.count(ClassSessionBooking.id).label("total"),
        )
        .where(ClassSessionBooking.status != BookingStatus.CANCELLED.value)
        .group_by(ClassSessionBooking.class_schedule_session_id)
        .subquery()
    )


def _pt_counts():
    return (
        select(
            PtBooking.class_schedule_session_id.label("session_id"),
            func.count(PtBooking.id).label("total"),
        )
        .where(
            PtBooking.class_schedule_session_id.is_not(None),
            PtBooking.status != BookingStatus.CANCELLED.value,
        )
        .group_by(PtBooking.class_schedule_session_id)
        .subquery()
    )


def _sessions_query():
    class_counts = _class_counts()
    pt_counts = _pt_counts()
    query = (
        select(
            ClassScheduleSession,
            func.coalesce(class_counts.c.total, 0),
            func.coalesce(pt_counts.c.total, 0),
        )
        .join(ClassScheduleSession.class_schedule)
        .outerjoin(class_counts, class_counts.c.session_id == ClassScheduleSession.id)
        .outerjoin(pt_counts, pt_counts.c.session_id == ClassScheduleSession.id)
        .options(selectinload(ClassScheduleSession.class_schedule).selectinload(ClassSchedule.coach))
    )
    return query


async def fetch_class_schedule_sessions(
    db: AsyncSession,
    start_date: date,
    end_date: date,
    coach_id: Optional[int] = None,
) -> Dict[str, Any]:
    """Slots starting inside the window with their non-cancelled booking counts"""
    lower, upper = window_bounds(start_date, end_date)
    query = _sessions_query().where(
        ClassScheduleSession.start_time >= lower,
        ClassScheduleSession.start_time < upper,
    )
    if coach_id is not None:
        query = query.where(ClassSchedule.coach_id == coach_id)

    result = await db.execute(query.order_by(ClassScheduleSession.start_time, ClassScheduleSession.id))
    data = [
        schedule_session_payload(session, attendance_count, pt_attendance_count)
        for session, attendance_count, pt_attendance_count in result.all()
    ]
    return {"data": data}


async def get_class_schedule_session(db: AsyncSession, session_id: int) -> Dict[str, Any]:
    query = _sessions_query().where(ClassScheduleSession.id == session_id)
    result = await db.execute(query.execution_options(populate_existing=True))
    row = result.first()
    if row is None:
        raise ValueError(f"Class schedule session {session_id} not found")
    session, attendance_count, pt_attendance_count = row
    return schedule_session_payload(session, attendance_count, pt_attendance_count)


async def update_class_schedule_session(
    db: AsyncSession,
    session_id: int,
    start_time: Any,
    duration: Optional[int] = None,
) -> Dict[str, Any]:
    """Move a slot to a new start time.

    Class bookings reference the slot and follow it automatically. PT bookings
    linked to the slot carry their own date/time copy, which is rewritten here
    in the same transaction.
    """
    tz = get_studio_timezone()
    new_start = coerce_datetime(start_time, tz)
    if new_start is None:
        raise ValueError("Invalid start time")
    if duration is not None and duration <= 0:
        raise ValueError("Duration must be a positive number of minutes")

    result = await db.execute(
        select(ClassScheduleSession)
        .options(selectinload(ClassScheduleSession.class_schedule))
        .where(ClassScheduleSession.id == session_id)
    )
    session = result.scalar_one_or_none()
    if not session:
        raise ValueError(f"Class schedule session {session_id} not found")

    if duration is None:
        if session.start_time and session.end_time:
            duration = int((session.end_time - session.start_time).total_seconds() // 60)
        else:
            duration = session.class_schedule.duration_minutes
    session.start_time = new_start
    session.end_time = new_start + timedelta(minutes=duration)
    session.updated_at = datetime.utcnow()

    linked = await db.execute(
        select(PtBooking).where(PtBooking.class_schedule_session_id == session_id)
    )
    local_start = new_start.astimezone(tz)
    moved = 0
    for booking in linked.scalars().all():
        booking.booking_date = local_start.date()
        booking.booking_time = local_start.time().replace(tzinfo=None)
        booking.start_time, booking.end_time = slot_instants(
            booking.booking_date, booking.booking_time, booking.duration, tz
        )
        booking.updated_at = datetime.utcnow()
        moved += 1

    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise

    logger.info("Moved class schedule session %s to %s (%s linked PT bookings)",
                session_id, new_start.isoformat(), moved)
    return await get_class_schedule_session(db, session_id)
