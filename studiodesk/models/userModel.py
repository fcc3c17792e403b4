"""
People and role models for StudioDesk
Coaches, members and front-desk users all live in the people table
"""
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import ForeignKey, BigInteger, String, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import TIMESTAMP

from studiodesk.db.postgresql import Base

if TYPE_CHECKING:
    from studiodesk.models.classModel import ClassSchedule, ClassSessionBooking
    from studiodesk.models.ptModel import PtBooking, CustomerPtPackage


class People(Base):
    """Unified people table for coaches, members and staff"""

    __tablename__ = "people"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    email: Mapped[Optional[str]] = mapped_column(String(200))
    phone_number: Mapped[Optional[str]] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=datetime.utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))

    # Relationships
    roles: Mapped[List["PersonRole"]] = relationship(back_populates="person")
    coached_schedules: Mapped[List["ClassSchedule"]] = relationship(
        back_populates="coach",
        foreign_keys="ClassSchedule.coach_id"
    )
    class_bookings: Mapped[List["ClassSessionBooking"]] = relationship(back_populates="customer")
    pt_packages: Mapped[List["CustomerPtPackage"]] = relationship(back_populates="customer")
    pt_bookings: Mapped[List["PtBooking"]] = relationship(
        back_populates="customer",
        foreign_keys="PtBooking.customer_id"
    )
    coached_pt_bookings: Mapped[List["PtBooking"]] = relationship(
        back_populates="coach",
        foreign_keys="PtBooking.coach_id"
    )

    __table_args__ = (
        Index("idx_people_email", "email", postgresql_where="email IS NOT NULL"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class Role(Base):
    """System roles (admin, staff, coach, member)"""

    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=datetime.utcnow)

    # Relationships
    person_roles: Mapped[List["PersonRole"]] = relationship(back_populates="role")


class PersonRole(Base):
    """Many-to-many relationship between people and roles"""

    __tablename__ = "person_roles"

    person_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("people.id"), primary_key=True)
    role_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("roles.id"), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=datetime.utcnow)

    # Relationships
    person: Mapped["People"] = relationship(back_populates="roles")
    role: Mapped["Role"] = relationship(back_populates="person_roles")
