from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import studiodesk.models  # noqa: F401  registers every table on Base.metadata
from studiodesk.db.postgresql import Base
from studiodesk.models import (
    ClassSchedule,
    ClassScheduleSession,
    ClassSessionBooking,
    People,
    PersonRole,
    PtBooking,
    Role,
)
from studiodesk.services.collection_cache import CollectionCache
from studiodesk.services.notifications import NotificationCenter
from tests.stubs import FakeGateway, class_booking_raw, coach_session_raw, pt_booking_raw

MANILA = ZoneInfo("Asia/Manila")


@pytest.fixture
def tz():
    return MANILA


@pytest.fixture
def now(tz):
    """Thursday 15 October 2026, mid-morning studio time"""
    return datetime(2026, 10, 15, 10, 0, tzinfo=tz)


@pytest.fixture
def gateway():
    return FakeGateway(
        coach_sessions=[coach_session_raw()],
        class_bookings=[class_booking_raw()],
        pt_bookings=[pt_booking_raw()],
    )


@pytest.fixture
def cache():
    return CollectionCache()


@pytest.fixture
def notifications():
    return NotificationCenter()


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    SQLite engine with the studio tables. The ``studio`` schema is mapped to
    SQLite's default schema.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'studiodesk.db'}",
        execution_options={"schema_translate_map": {"studio": None}},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


def _at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=MANILA)


async def _seed_studio(db: AsyncSession) -> None:
    db.add_all([
        Role(id=1, code="admin"),
        Role(id=3, code="coach"),
        Role(id=4, code="member"),
        People(id=1, first_name="Front", last_name="Desk"),
        People(id=7, first_name="Ana", last_name="Reyes"),
        People(id=21, first_name="Jane", last_name="Doe"),
        People(id=22, first_name="Mark", last_name="Cruz"),
        People(id=23, first_name="Lia", last_name="Tan"),
        People(id=24, first_name="Rob", last_name="Lim"),
    ])
    await db.flush()

    db.add_all([
        PersonRole(person_id=1, role_id=1),
        PersonRole(person_id=7, role_id=3),
        PersonRole(person_id=21, role_id=4),
        ClassSchedule(id=101, class_name="Morning Yoga", class_type="GROUP", coach_id=7,
                      capacity=12, duration_minutes=60),
        ClassSchedule(id=102, class_name="Reformer", class_type="GROUP", coach_id=7,
                      capacity=1, duration_minutes=50),
    ])
    await db.flush()

    yoga_day = date(2026, 10, 20)
    db.add_all([
        ClassScheduleSession(id=3, class_schedule_id=101,
                             start_time=_at(yoga_day, 9), end_time=_at(yoga_day, 10)),
        ClassScheduleSession(id=4, class_schedule_id=102,
                             start_time=_at(yoga_day, 11), end_time=_at(yoga_day, 11, 50)),
    ])
    await db.flush()

    pt_day = date(2026, 10, 21)
    db.add_all([
        ClassSessionBooking(id=10, class_schedule_session_id=3, customer_id=21, status="BOOKED"),
        ClassSessionBooking(id=11, class_schedule_session_id=3, customer_id=22, status="BOOKED"),
        ClassSessionBooking(id=12, class_schedule_session_id=3, customer_id=23, status="NO_SHOW"),
        ClassSessionBooking(id=13, class_schedule_session_id=3, customer_id=24, status="CANCELLED"),
        ClassSessionBooking(id=14, class_schedule_session_id=4, customer_id=21, status="BOOKED"),
        PtBooking(id=20, customer_id=22, coach_id=7, class_schedule_session_id=3,
                  booking_date=yoga_day, booking_time=time(9, 0), duration=60,
                  start_time=_at(yoga_day, 9), end_time=_at(yoga_day, 10), status="BOOKED"),
        PtBooking(id=21, customer_id=23, coach_id=7,
                  booking_date=pt_day, booking_time=time(15, 0), duration=60,
                  start_time=_at(pt_day, 15), end_time=_at(pt_day, 16), status="ATTENDED"),
    ])
    await db.commit()


@pytest_asyncio.fixture
async def studio_db(session_factory):
    """A fresh session over a seeded studio: coach Ana's yoga slot with four
    bookings and a linked PT booking, a full one-seat reformer slot, and a
    standalone attended PT booking."""
    async with session_factory() as db:
        await _seed_studio(db)

    async with session_factory() as db:
        yield db
