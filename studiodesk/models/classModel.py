"""
Class schedule and group-class booking models for StudioDesk
"""
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import (
    ForeignKey, Integer, BigInteger, String, Text, CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import TIMESTAMP

from studiodesk.db.postgresql import Base

if TYPE_CHECKING:
    from studiodesk.models.userModel import People
    from studiodesk.models.ptModel import PtBooking


class ClassSchedule(Base):
    """A class offered by a coach (group class or personal training slot)"""

    __tablename__ = "class_schedules"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    class_name: Mapped[str] = mapped_column(String(120), nullable=False)
    class_type: Mapped[str] = mapped_column(String(30), nullable=False, default="GROUP")
    coach_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("people.id"))
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=datetime.utcnow)

    # Relationships
    coach: Mapped[Optional["People"]] = relationship(
        "People",
        back_populates="coached_schedules",
        foreign_keys=[coach_id]
    )
    sessions: Mapped[List["ClassScheduleSession"]] = relationship(back_populates="class_schedule")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_schedule_capacity"),
        CheckConstraint("class_type IN ('GROUP','PERSONAL_TRAINING')", name="ck_schedule_class_type"),
    )


class ClassScheduleSession(Base):
    """A dated occurrence of a class schedule"""

    __tablename__ = "class_schedule_sessions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    class_schedule_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("class_schedules.id", ondelete="CASCADE"), nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=datetime.utcnow)

    # Relationships
    class_schedule: Mapped["ClassSchedule"] = relationship(back_populates="sessions")
    bookings: Mapped[List["ClassSessionBooking"]] = relationship(back_populates="class_schedule_session")
    pt_bookings: Mapped[List["PtBooking"]] = relationship(back_populates="class_schedule_session")

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_session_time_order"),
        Index("idx_schedule_sessions_time", "start_time"),
        Index("idx_schedule_sessions_schedule", "class_schedule_id", "start_time"),
    )


class ClassSessionBooking(Base):
    """A member's booking of a group-class session"""

    __tablename__ = "class_session_bookings"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    class_schedule_session_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("class_schedule_sessions.id", ondelete="CASCADE"), nullable=False
    )
    customer_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("people.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="BOOKED")
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=datetime.utcnow)

    # Relationships
    class_schedule_session: Mapped["ClassScheduleSession"] = relationship(back_populates="bookings")
    customer: Mapped["People"] = relationship(back_populates="class_bookings")

    __table_args__ = (
        UniqueConstraint("class_schedule_session_id", "customer_id", name="uq_session_customer"),
        CheckConstraint(
            "status IN ('BOOKED','ATTENDED','NO_SHOW','CANCELLED')",
            name="ck_class_booking_status"
        ),
        Index("idx_class_bookings_session", "class_schedule_session_id", "status"),
    )
