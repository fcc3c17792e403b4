from strawberry.permission import BasePermission
from strawberry.types import Info

from studiodesk.scheduling.status import allows_member_attendance


class IsAuthenticated(BasePermission):
    message = "Authentication required."

    def has_permission(self, source, info: Info, **kwargs):
        return bool(info.context.user)


class CanMarkAttendance(BasePermission):
    message = "Attendance can only be marked by front desk or coach accounts."

    def has_permission(self, source, info: Info, **kwargs):
        return bool(info.context.user) and allows_member_attendance(info.context.viewer_role)
