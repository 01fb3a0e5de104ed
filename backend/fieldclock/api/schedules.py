"""Product schedules and holidays (admin)."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fieldclock.core.database import get_db
from fieldclock.core.exceptions import InvalidSchedule
from fieldclock.core.security import get_current_user, require_admin
from fieldclock.models.schedule import Holiday, ProductSchedule
from fieldclock.models.user import User
from fieldclock.schemas.admin import HolidayCreate, ScheduleUpdate
from fieldclock.services.schedules import get_schedule, list_schedules, save_schedule

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/schedules", tags=["schedules"])


def _schedule_to_dict(s: ProductSchedule) -> dict:
    return {
        "product_type": s.product_type,
        "work_days": s.work_days,
        "works_on_holidays": s.works_on_holidays,
        "entry_time": s.entry_time.strftime("%H:%M"),
        "exit_time": s.exit_time.strftime("%H:%M"),
        "lunch_start_time": s.lunch_start_time.strftime("%H:%M"),
        "lunch_duration_minutes": s.lunch_duration_minutes,
        "tolerance_minutes": s.tolerance_minutes,
        "is_active": s.is_active,
    }


def _holiday_to_dict(h: Holiday) -> dict:
    return {
        "id": h.id,
        "name": h.name,
        "date": h.date.isoformat(),
        "type": h.type,
        "product_types": h.product_types,
    }


@router.get("")
def get_all_schedules(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_admin(current_user)
    return [_schedule_to_dict(s) for s in list_schedules(db)]


# Declared before /{product_type} so "holidays" is not taken as a product
@router.get("/holidays")
def get_holidays(
    year: int = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_admin(current_user)
    holidays = db.query(Holiday).order_by(Holiday.date).all()
    if year:
        holidays = [h for h in holidays if h.date.year == year]
    return [_holiday_to_dict(h) for h in holidays]


@router.post("/holidays", status_code=201)
def create_holiday(
    payload: HolidayCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_admin(current_user)
    if payload.type not in ("official", "corporate"):
        raise HTTPException(status_code=422, detail="Holiday type must be official or corporate")

    holiday = Holiday(
        name=payload.name,
        date=payload.date,
        type=payload.type,
        product_types=payload.product_types or None,
    )
    db.add(holiday)
    db.commit()
    db.refresh(holiday)
    logger.info(f"Holiday {holiday.name} on {holiday.date} added by {current_user.name}")
    return _holiday_to_dict(holiday)


@router.get("/{product_type}")
def get_product_schedule(
    product_type: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_admin(current_user)
    schedule = get_schedule(db, product_type)
    if not schedule:
        raise HTTPException(status_code=404, detail=f"No schedule configured for {product_type}")
    return _schedule_to_dict(schedule)


@router.put("/{product_type}")
def put_product_schedule(
    product_type: str,
    payload: ScheduleUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_admin(current_user)
    try:
        schedule = save_schedule(db, product_type, payload.model_dump())
    except InvalidSchedule as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _schedule_to_dict(schedule)
