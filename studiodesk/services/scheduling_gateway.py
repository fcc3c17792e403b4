"""
Data-fetch/mutation collaborator used by the calendar and the mutation service.

Every method returns raw payloads (plain dicts) shaped the way the session
normalizers expect them. Failures surface as ValueError or SQLAlchemyError.
"""
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from studiodesk.crud import classScheduleSessionsCrud, classSessionBookingsCrud, ptBookingsCrud


class SchedulingGateway:
    def __init__(self, db: AsyncSession):
        self.db = db

    # Reads

    async def fetch_class_schedule_sessions(
        self, start_date: date, end_date: date, coach_id: Optional[int] = None
    ) -> Dict[str, Any]:
        return await classScheduleSessionsCrud.fetch_class_schedule_sessions(
            self.db, start_date, end_date, coach_id
        )

    async def fetch_class_bookings(self, start_date: date, end_date: date) -> List[Dict[str, Any]]:
        return await classSessionBookingsCrud.fetch_class_bookings(self.db, start_date, end_date)

    async def fetch_pt_bookings(
        self, start_date: date, end_date: date, coach_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        return await ptBookingsCrud.fetch_pt_bookings(self.db, start_date, end_date, coach_id)

    async def get_class_booking(self, booking_id: int) -> Dict[str, Any]:
        return await classSessionBookingsCrud.get_class_booking(self.db, booking_id)

    async def get_session_bookings(self, session_id: int) -> List[Dict[str, Any]]:
        return await classSessionBookingsCrud.get_session_bookings(self.db, session_id)

    async def get_pt_booking(self, booking_id: int) -> Dict[str, Any]:
        return await ptBookingsCrud.get_pt_booking(self.db, booking_id)

    async def get_class_schedule_session(self, session_id: int) -> Dict[str, Any]:
        return await classScheduleSessionsCrud.get_class_schedule_session(self.db, session_id)

    # Mutations

    async def update_attendance_status(self, booking_id: int, status: str) -> Dict[str, Any]:
        return await classSessionBookingsCrud.update_attendance_status(self.db, booking_id, status)

    async def mark_all_attended(self, session_id: int) -> int:
        return await classSessionBookingsCrud.mark_all_attended(self.db, session_id)

    async def book_class_session(
        self, session_id: int, customer_id: int, notes: Optional[str] = None
    ) -> Dict[str, Any]:
        return await classSessionBookingsCrud.book_class_session(
            self.db, session_id=session_id, customer_id=customer_id, notes=notes
        )

    async def update_class_booking(self, booking_id: int, data: Mapping[str, Any]) -> Dict[str, Any]:
        return await classSessionBookingsCrud.update_class_booking(self.db, booking_id, data)

    async def create_pt_booking(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return await ptBookingsCrud.create_pt_booking(self.db, data)

    async def update_pt_booking(self, booking_id: int, data: Mapping[str, Any]) -> Dict[str, Any]:
        return await ptBookingsCrud.update_pt_booking(self.db, booking_id, data)

    async def cancel_pt_booking(self, booking_id: int) -> Dict[str, Any]:
        return await ptBookingsCrud.cancel_pt_booking(self.db, booking_id)

    async def attend_pt_booking(self, booking_id: int) -> Dict[str, Any]:
        return await ptBookingsCrud.attend_pt_booking(self.db, booking_id)

    async def no_show_pt_booking(self, booking_id: int) -> Dict[str, Any]:
        return await ptBookingsCrud.no_show_pt_booking(self.db, booking_id)

    async def update_class_schedule_session(
        self, session_id: int, start_time: Any, duration: Optional[int] = None
    ) -> Dict[str, Any]:
        return await classScheduleSessionsCrud.update_class_schedule_session(
            self.db, session_id, start_time, duration
        )
