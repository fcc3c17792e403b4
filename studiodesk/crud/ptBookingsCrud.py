"""
CRUD operations for personal training bookings

booking_date/booking_time are the local wall-clock slot; start_time/end_time
are always rewritten from them so the two never drift apart.
"""
import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from studiodesk.core.conversions import coerce_date, coerce_int, coerce_time
from studiodesk.core.settings import get_studio_timezone
from studiodesk.crud.usersCrud import person_payload
from studiodesk.models.ptModel import CustomerPtPackage, PtBooking
from studiodesk.scheduling.status import BookingStatus, can_transition, parse_booking_status

logger = logging.getLogger(__name__)

DEFAULT_DURATION = 60
EDITABLE_FIELDS = (
    "customer_id",
    "coach_id",
    "customer_pt_package_id",
    "class_schedule_session_id",
    "booking_date",
    "booking_time",
    "duration",
    "booking_notes",
)


def slot_instants(
    booking_date: date,
    booking_time: time,
    duration: int,
    tz: Optional[tzinfo] = None,
) -> Tuple[datetime, datetime]:
    """Start and end instants of a local date + time slot"""
    tz = tz or get_studio_timezone()
    start = datetime.combine(booking_date, booking_time.replace(tzinfo=None), tzinfo=tz)
    return start, start + timedelta(minutes=duration)


def window_bounds(start_date: date, end_date: date, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    """Half-open instant range covering whole local days start_date..end_date"""
    tz = tz or get_studio_timezone()
    lower = datetime.combine(start_date, time.min, tzinfo=tz)
    upper = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz)
    return lower, upper


def pt_booking_payload(booking: PtBooking) -> Dict[str, Any]:
    package = booking.customer_pt_package.pt_package if booking.customer_pt_package else None
    return {
        "id": booking.id,
        "status": booking.status,
        "booking_date": booking.booking_date.isoformat() if booking.booking_date else None,
        "booking_time": booking.booking_time.strftime("%H:%M:%S") if booking.booking_time else None,
        "start_time": booking.start_time.isoformat() if booking.start_time else None,
        "end_time": booking.end_time.isoformat() if booking.end_time else None,
        "duration": booking.duration,
        "booking_notes": booking.booking_notes,
        "coach_id": booking.coach_id,
        "coach": person_payload(booking.coach),
        "customer_id": booking.customer_id,
        "customer": person_payload(booking.customer),
        "pt_package": {"id": package.id, "package_name": package.package_name} if package else None,
        "pt_package_id": package.id if package else None,
        "customer_pt_package_id": booking.customer_pt_package_id,
        "class_schedule_session_id": booking.class_schedule_session_id,
    }


def _with_relations(query):
    return query.options(
        selectinload(PtBooking.coach),
        selectinload(PtBooking.customer),
        selectinload(PtBooking.customer_pt_package).selectinload(CustomerPtPackage.pt_package),
    )


async def _load_booking(db: AsyncSession, booking_id: int) -> PtBooking:
    query = _with_relations(select(PtBooking)).where(PtBooking.id == booking_id)
    result = await db.execute(query.execution_options(populate_existing=True))
    booking = result.scalar_one_or_none()
    if not booking:
        raise ValueError(f"PT booking {booking_id} not found")
    return booking


async def _commit(db: AsyncSession) -> None:
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise


async def fetch_pt_bookings(
    db: AsyncSession,
    start_date: date,
    end_date: date,
    coach_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """PT bookings starting inside the window, optionally for one coach only"""
    lower, upper = window_bounds(start_date, end_date)
    query = _with_relations(select(PtBooking)).where(
        PtBooking.start_time >= lower,
        PtBooking.start_time < upper,
    )
    if coach_id is not None:
        query = query.where(PtBooking.coach_id == coach_id)

    result = await db.execute(query.order_by(PtBooking.start_time, PtBooking.id))
    return [pt_booking_payload(booking) for booking in result.scalars().all()]


async def get_pt_booking(db: AsyncSession, booking_id: int) -> Dict[str, Any]:
    return pt_booking_payload(await _load_booking(db, booking_id))


def _apply_slot(booking: PtBooking) -> None:
    booking.start_time, booking.end_time = slot_instants(
        booking.booking_date, booking.booking_time, booking.duration
    )


def _parse_slot(data: Mapping[str, Any]) -> Tuple[Optional[date], Optional[time], Optional[int]]:
    booking_date = coerce_date(data.get("booking_date"))
    booking_time = coerce_time(data.get("booking_time"))
    duration = coerce_int(data.get("duration"))
    if "booking_date" in data and booking_date is None:
        raise ValueError("Invalid booking date")
    if "booking_time" in data and booking_time is None:
        raise ValueError("Invalid booking time")
    if "duration" in data and (duration is None or duration <= 0):
        raise ValueError("Duration must be a positive number of minutes")
    return booking_date, booking_time, duration


async def create_pt_booking(db: AsyncSession, data: Mapping[str, Any]) -> Dict[str, Any]:
    customer_id = coerce_int(data.get("customer_id"))
    coach_id = coerce_int(data.get("coach_id"))
    if customer_id is None:
        raise ValueError("Customer ID is required")
    if coach_id is None:
        raise ValueError("Coach ID is required")

    booking_date, booking_time, duration = _parse_slot(data)
    if booking_date is None or booking_time is None:
        raise ValueError("Booking date and time are required")

    booking = PtBooking(
        customer_id=customer_id,
        coach_id=coach_id,
        customer_pt_package_id=coerce_int(data.get("customer_pt_package_id")),
        class_schedule_session_id=coerce_int(data.get("class_schedule_session_id")),
        booking_date=booking_date,
        booking_time=booking_time,
        duration=duration or DEFAULT_DURATION,
        booking_notes=data.get("booking_notes"),
        status=BookingStatus.BOOKED.value,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    _apply_slot(booking)

    db.add(booking)
    await _commit(db)
    logger.info("Created PT booking %s for customer %s with coach %s", booking.id, customer_id, coach_id)
    return await get_pt_booking(db, booking.id)


async def update_pt_booking(db: AsyncSession, booking_id: int, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Edit a PT booking. Status is changed through the dedicated transitions only."""
    booking = await _load_booking(db, booking_id)
    booking_date, booking_time, duration = _parse_slot(data)

    for field in EDITABLE_FIELDS:
        if field not in data:
            continue
        if field == "booking_date":
            booking.booking_date = booking_date
        elif field == "booking_time":
            booking.booking_time = booking_time
        elif field == "duration":
            booking.duration = duration
        elif field == "booking_notes":
            booking.booking_notes = data[field]
        else:
            setattr(booking, field, coerce_int(data[field]))

    _apply_slot(booking)
    booking.updated_at = datetime.utcnow()
    await _commit(db)
    return await get_pt_booking(db, booking_id)


async def _transition(db: AsyncSession, booking_id: int, target: BookingStatus) -> Dict[str, Any]:
    booking = await _load_booking(db, booking_id)
    current = parse_booking_status(booking.status)
    if not can_transition(current, target):
        raise ValueError(f"Cannot change PT booking with status {booking.status} to {target.value}")

    booking.status = target.value
    booking.updated_at = datetime.utcnow()
    await _commit(db)
    return await get_pt_booking(db, booking_id)


async def cancel_pt_booking(db: AsyncSession, booking_id: int) -> Dict[str, Any]:
    return await _transition(db, booking_id, BookingStatus.CANCELLED)


async def attend_pt_booking(db: AsyncSession, booking_id: int) -> Dict[str, Any]:
    return await _transition(db, booking_id, BookingStatus.ATTENDED)


async def no_show_pt_booking(db: AsyncSession, booking_id: int) -> Dict[str, Any]:
    return await _transition(db, booking_id, BookingStatus.NO_SHOW)
