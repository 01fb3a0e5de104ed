"""Check-in classification.

``evaluate`` is a pure function: the caller supplies the kiosk snapshot, the
resolved schedule, the paired lunch-out time and the thresholds. Nothing here
touches the database or raises.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fieldclock.core.clock import as_utc
from fieldclock.core.config import settings
from fieldclock.models.checkin import CheckInType, CheckInStatus
from fieldclock.services.geo import effective_radius, validate_location
from fieldclock.services.schedules import ResolvedSchedule

SCHEDULE_UNCONFIGURED = "schedule_unconfigured"
INVALID_COORDINATES = "invalid_coordinates"
INVALID_TIMESTAMP = "invalid_timestamp"
INVALID_TYPE = "invalid_type"
MISSING_LUNCH_OUT = "missing_lunch_out"


@dataclass(frozen=True)
class EvaluationPolicy:
    default_radius_meters: float = 150.0
    early_entry_threshold_minutes: int = 30
    early_exit_threshold_minutes: int = 60
    comment_required_late_minutes: int = 0
    comment_min_length: int = 10
    severe_delay_threshold_minutes: int = 20

    @classmethod
    def from_settings(cls, config=None) -> "EvaluationPolicy":
        config = config or settings
        return cls(
            default_radius_meters=config.DEFAULT_RADIUS_METERS,
            early_entry_threshold_minutes=config.EARLY_ENTRY_THRESHOLD_MINUTES,
            early_exit_threshold_minutes=config.EARLY_EXIT_THRESHOLD_MINUTES,
            comment_required_late_minutes=config.COMMENT_REQUIRED_LATE_MINUTES,
            comment_min_length=config.COMMENT_MIN_LENGTH,
            severe_delay_threshold_minutes=config.SEVERE_DELAY_THRESHOLD_MINUTES,
        )


@dataclass(frozen=True)
class KioskSnapshot:
    id: str
    name: Optional[str]
    product_type: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    radius_override: Optional[float] = None

    @classmethod
    def from_kiosk(cls, kiosk) -> "KioskSnapshot":
        return cls(
            id=kiosk.id,
            name=kiosk.name,
            product_type=kiosk.product_type,
            latitude=float(kiosk.latitude) if kiosk.latitude is not None else None,
            longitude=float(kiosk.longitude) if kiosk.longitude is not None else None,
            radius_override=float(kiosk.radius_override) if kiosk.radius_override is not None else None,
        )


@dataclass(frozen=True)
class ValidationResult:
    status: CheckInStatus
    distance_from_kiosk: float
    location_valid: bool
    minutes_late: int = 0
    minutes_early: int = 0
    error: Optional[str] = None


def _ceil_minutes(delta: timedelta) -> int:
    return max(0, math.ceil(delta.total_seconds() / 60))


def _floor_minutes(delta: timedelta) -> int:
    return max(0, int(delta.total_seconds() // 60))


def _classify_timing(check_in_type: CheckInType, timestamp: datetime,
                     schedule: ResolvedSchedule, lunch_out_at: Optional[datetime],
                     policy: EvaluationPolicy):
    """Return (status, minutes_late, minutes_early, error) ignoring location."""
    if check_in_type == CheckInType.ENTRY:
        if timestamp <= schedule.entry_deadline:
            early_cutoff = schedule.entry_time - timedelta(minutes=policy.early_entry_threshold_minutes)
            if timestamp < early_cutoff:
                return CheckInStatus.EARLY, 0, _floor_minutes(schedule.entry_time - timestamp), None
            return CheckInStatus.ON_TIME, 0, 0, None
        return CheckInStatus.LATE, _ceil_minutes(timestamp - schedule.entry_deadline), 0, None

    if check_in_type == CheckInType.LUNCH_RETURN:
        if lunch_out_at is None:
            return CheckInStatus.ON_TIME, 0, 0, MISSING_LUNCH_OUT
        overrun = (timestamp - as_utc(lunch_out_at)) - timedelta(minutes=schedule.lunch_duration_minutes)
        if overrun > timedelta(0):
            return CheckInStatus.LATE, _ceil_minutes(overrun), 0, None
        return CheckInStatus.ON_TIME, 0, 0, None

    if check_in_type == CheckInType.EXIT:
        early_cutoff = schedule.exit_time - timedelta(minutes=policy.early_exit_threshold_minutes)
        if timestamp < early_cutoff:
            return CheckInStatus.EARLY, 0, _floor_minutes(schedule.exit_time - timestamp), None
        return CheckInStatus.ON_TIME, 0, 0, None

    # lunch_out is informational
    return CheckInStatus.ON_TIME, 0, 0, None


def evaluate(kiosk: KioskSnapshot, check_in_type, timestamp, latitude, longitude,
             schedule: ResolvedSchedule, lunch_out_at: Optional[datetime] = None,
             policy: Optional[EvaluationPolicy] = None) -> ValidationResult:
    policy = policy or EvaluationPolicy()
    radius = effective_radius(kiosk.radius_override, policy.default_radius_meters)
    geo = validate_location(latitude, longitude, kiosk.latitude, kiosk.longitude, radius)

    try:
        check_in_type = CheckInType(check_in_type)
    except ValueError:
        check_in_type = None

    if check_in_type is None:
        status, late, early, error = CheckInStatus.UNKNOWN, 0, 0, INVALID_TYPE
    elif not isinstance(timestamp, datetime):
        status, late, early, error = CheckInStatus.UNKNOWN, 0, 0, INVALID_TIMESTAMP
    elif not schedule.configured:
        status, late, early, error = CheckInStatus.UNKNOWN, 0, 0, SCHEDULE_UNCONFIGURED
    else:
        status, late, early, error = _classify_timing(
            check_in_type, as_utc(timestamp), schedule, lunch_out_at, policy
        )

    if not geo.within_radius:
        status = CheckInStatus.INVALID_LOCATION
        if not geo.coordinates_valid:
            error = INVALID_COORDINATES

    return ValidationResult(
        status=status,
        distance_from_kiosk=geo.distance_meters,
        location_valid=geo.within_radius,
        minutes_late=late,
        minutes_early=early,
        error=error,
    )


def requires_comment(result: ValidationResult, check_in_type,
                     policy: Optional[EvaluationPolicy] = None) -> bool:
    """Late entry past the threshold, a lunch overrun, or an early exit."""
    policy = policy or EvaluationPolicy()
    check_in_type = CheckInType(check_in_type)
    if check_in_type == CheckInType.ENTRY:
        return result.minutes_late > policy.comment_required_late_minutes
    if check_in_type == CheckInType.LUNCH_RETURN:
        return result.minutes_late > 0
    if check_in_type == CheckInType.EXIT:
        return result.minutes_early > 0
    return False


def comment_satisfies(notes: Optional[str], policy: Optional[EvaluationPolicy] = None) -> bool:
    policy = policy or EvaluationPolicy()
    return len((notes or "").strip()) >= policy.comment_min_length
