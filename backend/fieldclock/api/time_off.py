import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fieldclock.core.database import get_db
from fieldclock.core.exceptions import FieldClockError, InvalidTimeOffRequest, TimeOffRequestNotFound
from fieldclock.core.security import get_current_user, require_admin
from fieldclock.models.time_off import TimeOffRequest
from fieldclock.models.user import User
from fieldclock.schemas.admin import TimeOffCreate, TimeOffReview
from fieldclock.services.time_off import create_request, review_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/time-off", tags=["time-off"])


def _request_to_dict(r: TimeOffRequest) -> dict:
    return {
        "id": r.id,
        "user_id": r.user_id,
        "type": r.type,
        "start_date": r.start_date.isoformat(),
        "end_date": r.end_date.isoformat(),
        "reason": r.reason,
        "status": r.status,
        "reviewer_name": r.reviewer_name,
        "review_comment": r.review_comment,
        "reviewed_at": r.reviewed_at.isoformat() if r.reviewed_at else None,
    }


@router.post("", status_code=201)
def submit_request(
    payload: TimeOffCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        request = create_request(
            db, current_user, payload.type, payload.start_date, payload.end_date, payload.reason
        )
    except InvalidTimeOffRequest as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _request_to_dict(request)


@router.post("/{request_id}/review")
def review(
    request_id: int,
    payload: TimeOffReview,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_admin(current_user)
    try:
        request = review_request(db, request_id, current_user, payload.approved, payload.comment)
    except TimeOffRequestNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except FieldClockError as e:
        raise HTTPException(status_code=409, detail=str(e))
    logger.info(f"Time-off request {request_id} {request.status} by {current_user.name}")
    return _request_to_dict(request)
