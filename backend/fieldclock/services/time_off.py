"""Time-off requests: creation rules, review, and the lookup the scan uses."""
import logging
from datetime import date
from typing import Optional, Set

from sqlalchemy.orm import Session

from fieldclock.core.clock import now_utc
from fieldclock.core.exceptions import FieldClockError, InvalidTimeOffRequest, TimeOffRequestNotFound
from fieldclock.models.time_off import TimeOffRequest, TimeOffType, RequestStatus
from fieldclock.models.user import User

logger = logging.getLogger(__name__)


def validate_request(request_type: str, start_date: date, end_date: date, reason: Optional[str]):
    try:
        request_type = TimeOffType(request_type)
    except ValueError:
        raise InvalidTimeOffRequest(f"Unknown time-off type {request_type!r}")

    if end_date < start_date:
        raise InvalidTimeOffRequest("End date cannot be before start date")
    if request_type == TimeOffType.AVIVA_DAY and end_date != start_date:
        raise InvalidTimeOffRequest("An Aviva day covers exactly one day")
    if request_type == TimeOffType.SICK_LEAVE and not (reason or "").strip():
        raise InvalidTimeOffRequest("Sick leave requires a reason")


def create_request(db: Session, user: User, request_type: str, start_date: date,
                   end_date: date, reason: Optional[str] = None) -> TimeOffRequest:
    validate_request(request_type, start_date, end_date, reason)

    request = TimeOffRequest(
        user_id=user.id,
        type=TimeOffType(request_type).value,
        start_date=start_date,
        end_date=end_date,
        reason=reason,
        status=RequestStatus.PENDING.value,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info(f"Time-off request {request.id} ({request.type}) created by {user.name}: {start_date} to {end_date}")
    return request


def review_request(db: Session, request_id: int, reviewer: User, approved: bool,
                   comment: Optional[str] = None) -> TimeOffRequest:
    request = db.query(TimeOffRequest).filter(TimeOffRequest.id == request_id).first()
    if not request:
        raise TimeOffRequestNotFound(request_id)
    if request.status != RequestStatus.PENDING.value:
        raise FieldClockError(f"Time-off request {request_id} was already {request.status}")

    request.status = (RequestStatus.APPROVED if approved else RequestStatus.REJECTED).value
    request.reviewed_by = reviewer.id
    request.reviewer_name = reviewer.name
    request.review_comment = comment
    request.reviewed_at = now_utc()
    db.commit()
    db.refresh(request)
    logger.info(f"Time-off request {request_id} {request.status} by {reviewer.name}")
    return request


def users_on_time_off(db: Session, day: date) -> Set[int]:
    """Ids of users with an approved request covering ``day``."""
    rows = (
        db.query(TimeOffRequest.user_id)
        .filter(
            TimeOffRequest.status == RequestStatus.APPROVED.value,
            TimeOffRequest.start_date <= day,
            TimeOffRequest.end_date >= day,
        )
        .all()
    )
    return {r[0] for r in rows}
