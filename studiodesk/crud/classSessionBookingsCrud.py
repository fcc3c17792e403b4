"""
CRUD operations for group-class bookings and their attendance status
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from studiodesk.core.conversions import coerce_int
from studiodesk.crud.classScheduleSessionsCrud import schedule_payload
from studiodesk.crud.ptBookingsCrud import window_bounds
from studiodesk.crud.usersCrud import person_payload
from studiodesk.models.classModel import ClassSchedule, ClassScheduleSession, ClassSessionBooking
from studiodesk.models.userModel import People
from studiodesk.scheduling.status import BookingStatus, can_transition, parse_booking_status

logger = logging.getLogger(__name__)


def class_booking_payload(booking: ClassSessionBooking) -> Dict[str, Any]:
    slot = booking.class_schedule_session
    return {
        "id": booking.id,
        "status": booking.status,
        "notes": booking.notes,
        "customer_id": booking.customer_id,
        "customer": person_payload(booking.customer),
        "class_schedule_session_id": booking.class_schedule_session_id,
        "class_schedule_session": {
            "id": slot.id,
            "start_time": slot.start_time.isoformat() if slot.start_time else None,
            "end_time": slot.end_time.isoformat() if slot.end_time else None,
            "class_schedule": schedule_payload(slot.class_schedule),
        } if slot else None,
    }


def _with_relations(query):
    return query.options(
        selectinload(ClassSessionBooking.customer),
        selectinload(ClassSessionBooking.class_schedule_session)
        .selectinload(ClassScheduleSession.class_schedule)
        .selectinload(ClassSchedule.coach),
    )


async def _load_booking(db: AsyncSession, booking_id: int) -> ClassSessionBooking:
    query = _with_relations(select(ClassSessionBooking)).where(ClassSessionBooking.id == booking_id)
    result = await db.execute(query.execution_options(populate_existing=True))
    booking = result.scalar_one_or_none()
    if not booking:
        raise ValueError(f"Class booking {booking_id} not found")
    return booking


async def _commit(db: AsyncSession) -> None:
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise


async def fetch_class_bookings(
    db: AsyncSession,
    start_date: date,
    end_date: date,
    customer_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Bookings whose slot starts inside the window"""
    lower, upper = window_bounds(start_date, end_date)
    query = (
        _with_relations(select(ClassSessionBooking))
        .join(ClassSessionBooking.class_schedule_session)
        .where(
            ClassScheduleSession.start_time >= lower,
            ClassScheduleSession.start_time < upper,
        )
    )
    if customer_id is not None:
        query = query.where(ClassSessionBooking.customer_id == customer_id)

    result = await db.execute(query.order_by(ClassScheduleSession.start_time, ClassSessionBooking.id))
    return [class_booking_payload(booking) for booking in result.scalars().all()]


async def get_class_booking(db: AsyncSession, booking_id: int) -> Dict[str, Any]:
    return class_booking_payload(await _load_booking(db, booking_id))


async def get_session_bookings(db: AsyncSession, session_id: int) -> List[Dict[str, Any]]:
    query = (
        _with_relations(select(ClassSessionBooking))
        .where(ClassSessionBooking.class_schedule_session_id == session_id)
        .order_by(ClassSessionBooking.id)
    )
    result = await db.execute(query)
    return [class_booking_payload(booking) for booking in result.scalars().all()]


async def update_attendance_status(db: AsyncSession, booking_id: int, status: str) -> Dict[str, Any]:
    target = parse_booking_status(status)
    if target is None:
        raise ValueError(f"Invalid booking status {status!r}")

    booking = await _load_booking(db, booking_id)
    if not can_transition(parse_booking_status(booking.status), target):
        raise ValueError(f"Cannot change booking with status {booking.status} to {target.value}")

    booking.status = target.value
    booking.updated_at = datetime.utcnow()
    await _commit(db)
    return await get_class_booking(db, booking_id)


async def mark_all_attended(db: AsyncSession, session_id: int) -> int:
    """Move every BOOKED booking of the slot to ATTENDED in one statement.

    Returns the number of bookings updated.
    """
    exists = await db.execute(select(ClassScheduleSession.id).where(ClassScheduleSession.id == session_id))
    if exists.scalar_one_or_none() is None:
        raise ValueError(f"Class schedule session {session_id} not found")

    result = await db.execute(
        update(ClassSessionBooking)
        .where(
            ClassSessionBooking.class_schedule_session_id == session_id,
            ClassSessionBooking.status == BookingStatus.BOOKED.value,
        )
        .values(status=BookingStatus.ATTENDED.value, updated_at=datetime.utcnow())
    )
    await _commit(db)
    logger.info("Marked %s bookings attended for session %s", result.rowcount, session_id)
    return result.rowcount


async def book_class_session(
    db: AsyncSession,
    *,
    session_id: int,
    customer_id: int,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """Book a customer into a group-class slot"""
    slot_result = await db.execute(
        select(ClassScheduleSession)
        .options(selectinload(ClassScheduleSession.class_schedule))
        .where(ClassScheduleSession.id == session_id)
    )
    slot = slot_result.scalar_one_or_none()
    if not slot:
        raise ValueError(f"Class schedule session {session_id} not found")

    person = await db.execute(select(People.id).where(People.id == customer_id))
    if person.scalar_one_or_none() is None:
        raise ValueError(f"Customer {customer_id} not found")

    existing = await db.execute(
        select(ClassSessionBooking.id).where(
            ClassSessionBooking.class_schedule_session_id == session_id,
            ClassSessionBooking.customer_id == customer_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ValueError("Customer already has a booking for this session")

    booked_count = await db.execute(
        select(func.count(ClassSessionBooking.id)).where(
            ClassSessionBooking.class_schedule_session_id == session_id,
            ClassSessionBooking.status != BookingStatus.CANCELLED.value,
        )
    )
    if (booked_count.scalar() or 0) >= slot.class_schedule.capacity:
        raise ValueError("Session is at full capacity")

    booking = ClassSessionBooking(
        class_schedule_session_id=session_id,
        customer_id=customer_id,
        status=BookingStatus.BOOKED.value,
        notes=notes,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    db.add(booking)
    await _commit(db)
    logger.info("Booked customer %s into class session %s", customer_id, session_id)
    return await get_class_booking(db, booking.id)


async def update_class_booking(db: AsyncSession, booking_id: int, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Edit notes or move the booking to another slot"""
    booking = await _load_booking(db, booking_id)

    if "notes" in data:
        booking.notes = data["notes"]
    if data.get("class_schedule_session_id") is not None:
        new_session_id = coerce_int(data["class_schedule_session_id"])
        if new_session_id is None:
            raise ValueError("Invalid class schedule session id")
        found = await db.execute(
            select(ClassScheduleSession.id).where(ClassScheduleSession.id == new_session_id)
        )
        if found.scalar_one_or_none() is None:
            raise ValueError(f"Class schedule session {new_session_id} not found")
        booking.class_schedule_session_id = new_session_id

    booking.updated_at = datetime.utcnow()
    await _commit(db)
    return await get_class_booking(db, booking_id)
