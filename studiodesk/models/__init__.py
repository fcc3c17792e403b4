# StudioDesk models - importing here registers every table on Base.metadata
from studiodesk.models.userModel import People, Role, PersonRole
from studiodesk.models.classModel import ClassSchedule, ClassScheduleSession, ClassSessionBooking
from studiodesk.models.ptModel import PtPackage, CustomerPtPackage, PtBooking

__all__ = [
    "People", "Role", "PersonRole",
    "ClassSchedule", "ClassScheduleSession", "ClassSessionBooking",
    "PtPackage", "CustomerPtPackage", "PtBooking",
]
