"""Check-in API: kiosk submissions, the employee's day, admin listing, photo review."""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from fieldclock.core.database import get_db
from fieldclock.core.exceptions import CheckInNotFound, CommentRequired, KioskNotFound
from fieldclock.core.security import get_current_user, require_admin, require_photo_reviewer
from fieldclock.models.checkin import CheckIn
from fieldclock.models.user import User
from fieldclock.schemas.checkin import CheckInCreate, PhotoReview
from fieldclock.services.checkins import get_today_check_ins, submit_check_in
from fieldclock.services.photo_validation import review_photo
from fieldclock.services.queries import CheckInFilter, build_check_in_query

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/checkins", tags=["checkins"])


def _check_in_to_dict(c: CheckIn) -> dict:
    return {
        "id": c.id,
        "user_id": c.user_id,
        "user_name": c.user_name,
        "kiosk_id": c.kiosk_id,
        "kiosk_name": c.kiosk_name,
        "product_type": c.product_type,
        "type": c.type,
        "timestamp": c.timestamp.isoformat() if c.timestamp else None,
        "work_date": c.work_date.isoformat() if c.work_date else None,
        "latitude": float(c.latitude) if c.latitude is not None else None,
        "longitude": float(c.longitude) if c.longitude is not None else None,
        "accuracy": float(c.accuracy) if c.accuracy is not None else None,
        "photo_url": c.photo_url,
        "notes": c.notes,
        "status": c.status,
        "distance_from_kiosk": float(c.distance_from_kiosk) if c.distance_from_kiosk is not None else None,
        "location_valid": c.location_valid,
        "minutes_late": c.minutes_late,
        "minutes_early": c.minutes_early,
        "validation_error": c.validation_error,
        "requires_comment": c.requires_comment,
        "photo_validation": c.photo_validation,
    }


# ── Submit ───────────────────────────────────────────────────────────

@router.post("", status_code=201)
def create_check_in(
    payload: CheckInCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Record a check-in at a kiosk, timed by the server clock. Late or early events need a note."""
    try:
        check_in = submit_check_in(
            db,
            current_user,
            kiosk_id=payload.kiosk_id,
            check_in_type=payload.type,
            latitude=payload.latitude,
            longitude=payload.longitude,
            accuracy=payload.accuracy,
            photo_url=payload.photo_url,
            notes=payload.notes,
        )
    except KioskNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CommentRequired as e:
        raise HTTPException(
            status_code=422,
            detail={
                "message": str(e),
                "reason": e.reason,
                "min_length": e.min_length,
                "minutes_late": e.minutes_late,
            },
        )

    return _check_in_to_dict(check_in)


@router.get("/today")
def my_check_ins_today(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    check_ins = get_today_check_ins(db, current_user)
    return {
        "check_ins": [_check_in_to_dict(c) for c in check_ins],
        "completed_types": sorted({c.type for c in check_ins}),
    }


# ── Admin ────────────────────────────────────────────────────────────

@router.get("")
def list_check_ins(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    kiosk_id: Optional[str] = None,
    product_type: Optional[str] = None,
    user_name: Optional[str] = None,
    type: Optional[str] = None,
    status: Optional[str] = None,
    state: Optional[str] = None,
    city: Optional[str] = None,
    hub_id: Optional[int] = None,
    limit: int = Query(200, ge=1, le=1000),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_admin(current_user)
    flt = CheckInFilter(
        start_date=start_date, end_date=end_date, kiosk_id=kiosk_id,
        product_type=product_type, user_name=user_name, check_in_type=type,
        status=status, state=state, city=city, hub_id=hub_id,
    )
    primary, query = build_check_in_query(db, flt)
    rows = query.limit(limit).all()
    return {
        "primary_filter": primary.value,
        "count": len(rows),
        "check_ins": [_check_in_to_dict(c) for c in rows],
    }


@router.post("/{check_in_id}/photo-review")
def photo_review(
    check_in_id: int,
    payload: PhotoReview,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_photo_reviewer(current_user)
    try:
        record = review_photo(db, check_in_id, current_user, payload.approved, payload.notes)
    except CheckInNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    logger.info(f"Photo for check-in {check_in_id} reviewed by {current_user.name}: {record['status']}")
    return {"id": check_in_id, "photo_validation": record}
