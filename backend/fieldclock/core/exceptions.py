"""Domain errors raised by the attendance services.

Routers translate these into HTTP responses; the background scan counts them
per user instead of aborting.
"""


class FieldClockError(Exception):
    """Base class for attendance domain errors."""


class KioskNotFound(FieldClockError, LookupError):
    def __init__(self, kiosk_id: str):
        super().__init__(f"Kiosk {kiosk_id!r} not found or inactive")
        self.kiosk_id = kiosk_id


class CheckInNotFound(FieldClockError, LookupError):
    def __init__(self, check_in_id: int):
        super().__init__(f"Check-in {check_in_id} not found")
        self.check_in_id = check_in_id


class IssueNotFound(FieldClockError, LookupError):
    def __init__(self, issue_id: int):
        super().__init__(f"Attendance issue {issue_id} not found")
        self.issue_id = issue_id


class IssueAlreadyResolved(FieldClockError):
    def __init__(self, issue_id: int):
        super().__init__(f"Attendance issue {issue_id} is already resolved")
        self.issue_id = issue_id


class CommentRequired(FieldClockError, ValueError):
    """The submission needs an explanatory note before it can be recorded."""

    def __init__(self, min_length: int, minutes_late: int = 0, reason: str = "late"):
        super().__init__(
            f"A comment of at least {min_length} characters is required "
            f"({reason}, {minutes_late} minute(s) late)"
        )
        self.min_length = min_length
        self.minutes_late = minutes_late
        self.reason = reason


class InvalidSchedule(FieldClockError, ValueError):
    pass


class InvalidTimeOffRequest(FieldClockError, ValueError):
    pass


class TimeOffRequestNotFound(FieldClockError, LookupError):
    def __init__(self, request_id: int):
        super().__init__(f"Time-off request {request_id} not found")
        self.request_id = request_id
