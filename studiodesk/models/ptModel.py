"""
Personal training package and booking models for StudioDesk
"""
from datetime import datetime, date, time
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import (
    Date, Time, ForeignKey, Integer, BigInteger, String, Text, CheckConstraint, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import TIMESTAMP

from studiodesk.db.postgresql import Base

if TYPE_CHECKING:
    from studiodesk.models.userModel import People
    from studiodesk.models.classModel import ClassScheduleSession


class PtPackage(Base):
    """A personal training package on sale"""

    __tablename__ = "pt_packages"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    package_name: Mapped[str] = mapped_column(String(120), nullable=False)
    session_count: Mapped[int] = mapped_column(Integer, nullable=False)

    customer_packages: Mapped[List["CustomerPtPackage"]] = relationship(back_populates="pt_package")


class CustomerPtPackage(Base):
    """A package assigned to a customer"""

    __tablename__ = "customer_pt_packages"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    customer_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("people.id"), nullable=False)
    pt_package_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("pt_packages.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    customer: Mapped["People"] = relationship(back_populates="pt_packages")
    pt_package: Mapped["PtPackage"] = relationship(back_populates="customer_packages")
    bookings: Mapped[List["PtBooking"]] = relationship(back_populates="customer_pt_package")

    __table_args__ = (
        CheckConstraint(
            "status IN ('active','completed','expired','cancelled')",
            name="ck_customer_pt_package_status"
        ),
    )


class PtBooking(Base):
    """A personal training booking

    booking_date/booking_time hold the local wall-clock slot the form edits;
    start_time/end_time are the derived instants. Both are written together.
    """

    __tablename__ = "pt_bookings"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    customer_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("people.id"), nullable=False)
    coach_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("people.id"), nullable=False)
    customer_pt_package_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("customer_pt_packages.id")
    )
    class_schedule_session_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("class_schedule_sessions.id", ondelete="SET NULL")
    )
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    booking_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    start_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="BOOKED")
    booking_notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=datetime.utcnow)

    # Relationships
    customer: Mapped["People"] = relationship(back_populates="pt_bookings", foreign_keys=[customer_id])
    coach: Mapped["People"] = relationship(back_populates="coached_pt_bookings", foreign_keys=[coach_id])
    customer_pt_package: Mapped[Optional["CustomerPtPackage"]] = relationship(back_populates="bookings")
    class_schedule_session: Mapped[Optional["ClassScheduleSession"]] = relationship(back_populates="pt_bookings")

    __table_args__ = (
        CheckConstraint("duration BETWEEN 15 AND 240", name="ck_pt_duration_range"),
        CheckConstraint(
            "status IN ('BOOKED','ATTENDED','NO_SHOW','CANCELLED')",
            name="ck_pt_booking_status"
        ),
        Index("idx_pt_bookings_coach", "coach_id", "start_time"),
        Index("idx_pt_bookings_session", "class_schedule_session_id"),
    )
