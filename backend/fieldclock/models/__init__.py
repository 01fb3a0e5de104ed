from fieldclock.models.user import User, UserRole
from fieldclock.models.kiosk import Kiosk, Hub
from fieldclock.models.schedule import ProductSchedule, Holiday
from fieldclock.models.checkin import (
    CheckIn, CheckInType, CheckInStatus, PhotoValidationStatus,
)
from fieldclock.models.attendance_issue import AttendanceIssue, IssueType
from fieldclock.models.time_off import TimeOffRequest, TimeOffType, RequestStatus
from fieldclock.models.notification import NotificationEvent

__all__ = [
    "User",
    "UserRole",
    "Kiosk",
    "Hub",
    "ProductSchedule",
    "Holiday",
    "CheckIn",
    "CheckInType",
    "CheckInStatus",
    "PhotoValidationStatus",
    "AttendanceIssue",
    "IssueType",
    "TimeOffRequest",
    "TimeOffType",
    "RequestStatus",
    "NotificationEvent",
]
