"""Product schedule lookup and per-date resolution.

The resolver never invents a schedule: a product without a configured row
resolves to ``configured=False``, which callers must keep apart from
"not a work day" so nobody gets reported absent because of missing config.
"""
import logging
import time as monotonic_time
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from fieldclock.core.clock import business_tz, local_datetime, weekday_index
from fieldclock.core.config import settings
from fieldclock.core.exceptions import InvalidSchedule
from fieldclock.models.schedule import ProductSchedule, Holiday

logger = logging.getLogger(__name__)

MIN_LUNCH_MINUTES = 30
MAX_LUNCH_MINUTES = 120
MAX_TOLERANCE_MINUTES = 30


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Detached copy of a ProductSchedule row, safe to share across sessions."""
    product_type: str
    work_days: Tuple[int, ...]
    works_on_holidays: bool
    entry_time: time
    exit_time: time
    lunch_start_time: time
    lunch_duration_minutes: int
    tolerance_minutes: int

    @classmethod
    def from_row(cls, row: ProductSchedule) -> "ScheduleSnapshot":
        return cls(
            product_type=row.product_type,
            work_days=tuple(int(d) for d in (row.work_days or [])),
            works_on_holidays=bool(row.works_on_holidays),
            entry_time=row.entry_time,
            exit_time=row.exit_time,
            lunch_start_time=row.lunch_start_time,
            lunch_duration_minutes=int(row.lunch_duration_minutes),
            tolerance_minutes=int(row.tolerance_minutes),
        )


@dataclass(frozen=True)
class ResolvedSchedule:
    product_type: str
    date: date
    configured: bool
    is_work_day: bool = False
    holiday_name: Optional[str] = None
    entry_time: Optional[datetime] = None
    entry_deadline: Optional[datetime] = None
    lunch_start: Optional[datetime] = None
    lunch_end: Optional[datetime] = None
    exit_time: Optional[datetime] = None
    tolerance_minutes: int = 0
    lunch_duration_minutes: int = 0


class ScheduleRepository:
    """Read-through cache over product schedules and holidays.

    One instance per request or scan; nothing is cached at module level.
    """

    def __init__(self, db: Session, ttl_seconds: Optional[int] = None, clock=None):
        self.db = db
        self.ttl_seconds = settings.SCHEDULE_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock or monotonic_time.monotonic
        self._schedules: Dict[str, Tuple[float, Optional[ScheduleSnapshot]]] = {}
        self._holidays: Dict[date, Tuple[float, List[Tuple[str, Optional[List[str]]]]]] = {}

    def _fresh(self, loaded_at: float) -> bool:
        return self._clock() - loaded_at < self.ttl_seconds

    def get(self, product_type: str) -> Optional[ScheduleSnapshot]:
        cached = self._schedules.get(product_type)
        if cached and self._fresh(cached[0]):
            return cached[1]

        row = (
            self.db.query(ProductSchedule)
            .filter(
                ProductSchedule.product_type == product_type,
                ProductSchedule.is_active == True,
            )
            .first()
        )
        snapshot = ScheduleSnapshot.from_row(row) if row else None
        self._schedules[product_type] = (self._clock(), snapshot)
        return snapshot

    def configured_product_types(self) -> List[str]:
        rows = (
            self.db.query(ProductSchedule.product_type)
            .filter(ProductSchedule.is_active == True)
            .all()
        )
        return sorted(r[0] for r in rows)

    def holidays_for(self, day: date) -> List[Tuple[str, Optional[List[str]]]]:
        cached = self._holidays.get(day)
        if cached and self._fresh(cached[0]):
            return cached[1]

        rows = self.db.query(Holiday).filter(Holiday.date == day).all()
        holidays = [(h.name, list(h.product_types) if h.product_types else None) for h in rows]
        self._holidays[day] = (self._clock(), holidays)
        return holidays

    def invalidate(self, product_type: Optional[str] = None):
        if product_type is None:
            self._schedules.clear()
            self._holidays.clear()
        else:
            self._schedules.pop(product_type, None)


class ScheduleResolver:
    def __init__(self, repository: ScheduleRepository, tz=None):
        self.repository = repository
        self.tz = tz or business_tz()

    def applicable_holiday(self, product_type: str, day: date) -> Optional[str]:
        for name, product_types in self.repository.holidays_for(day):
            if not product_types or product_type in product_types:
                return name
        return None

    def resolve(self, product_type: Optional[str], day: date) -> ResolvedSchedule:
        schedule = self.repository.get(product_type) if product_type else None
        if schedule is None:
            return ResolvedSchedule(product_type=product_type, date=day, configured=False)

        holiday_name = None
        is_work_day = weekday_index(day) in schedule.work_days
        if is_work_day and not schedule.works_on_holidays:
            holiday_name = self.applicable_holiday(product_type, day)
            if holiday_name:
                is_work_day = False

        entry = local_datetime(day, schedule.entry_time, self.tz)
        lunch_start = local_datetime(day, schedule.lunch_start_time, self.tz)
        return ResolvedSchedule(
            product_type=product_type,
            date=day,
            configured=True,
            is_work_day=is_work_day,
            holiday_name=holiday_name,
            entry_time=entry,
            entry_deadline=entry + timedelta(minutes=schedule.tolerance_minutes),
            lunch_start=lunch_start,
            lunch_end=lunch_start + timedelta(minutes=schedule.lunch_duration_minutes),
            exit_time=local_datetime(day, schedule.exit_time, self.tz),
            tolerance_minutes=schedule.tolerance_minutes,
            lunch_duration_minutes=schedule.lunch_duration_minutes,
        )


# ── Administration ───────────────────────────────────────────────────

def validate_schedule_fields(data: dict):
    """Raise InvalidSchedule if any bound is violated."""
    errors = []

    work_days = data.get("work_days") or []
    if not work_days:
        errors.append("At least one work day is required")
    if any((not isinstance(d, int)) or d < 0 or d > 6 for d in work_days):
        errors.append("Work days must be integers between 0 (Sunday) and 6 (Saturday)")

    lunch = data.get("lunch_duration_minutes")
    if lunch is None or not (MIN_LUNCH_MINUTES <= lunch <= MAX_LUNCH_MINUTES):
        errors.append(f"Lunch duration must be between {MIN_LUNCH_MINUTES} and {MAX_LUNCH_MINUTES} minutes")

    tolerance = data.get("tolerance_minutes")
    if tolerance is None or not (0 <= tolerance <= MAX_TOLERANCE_MINUTES):
        errors.append(f"Tolerance must be between 0 and {MAX_TOLERANCE_MINUTES} minutes")

    entry, exit_ = data.get("entry_time"), data.get("exit_time")
    if entry is None or exit_ is None or data.get("lunch_start_time") is None:
        errors.append("Entry, exit and lunch start times are required")
    elif exit_ <= entry:
        errors.append("Exit time must be after entry time")

    if errors:
        raise InvalidSchedule("; ".join(errors))


def save_schedule(db: Session, product_type: str, data: dict) -> ProductSchedule:
    """Create or replace the single schedule row for a product type."""
    validate_schedule_fields(data)

    row = db.query(ProductSchedule).filter(ProductSchedule.product_type == product_type).first()
    if not row:
        row = ProductSchedule(product_type=product_type)
        db.add(row)

    row.work_days = sorted(set(data["work_days"]))
    row.works_on_holidays = bool(data.get("works_on_holidays", False))
    row.entry_time = data["entry_time"]
    row.exit_time = data["exit_time"]
    row.lunch_start_time = data["lunch_start_time"]
    row.lunch_duration_minutes = data["lunch_duration_minutes"]
    row.tolerance_minutes = data["tolerance_minutes"]
    row.is_active = bool(data.get("is_active", True))
    db.commit()
    db.refresh(row)

    logger.info(f"Schedule for {product_type} saved: {row.entry_time}-{row.exit_time}, days={row.work_days}")
    return row


def default_schedules() -> List[dict]:
    """Seed values for the known product lines (used by init_db only)."""
    base = {
        "works_on_holidays": False,
        "entry_time": time(8, 0),
        "exit_time": time(18, 0),
        "lunch_start_time": time(14, 0),
        "lunch_duration_minutes": 60,
        "tolerance_minutes": 5,
    }
    return [
        # Bodega Aurrera works every day, holidays included
        {**base, "product_type": "BA", "work_days": [0, 1, 2, 3, 4, 5, 6],
         "works_on_holidays": True, "entry_time": time(7, 0), "exit_time": time(19, 0)},
        {**base, "product_type": "Aviva_Contigo", "work_days": [1, 2, 3, 4, 5, 6]},
        {**base, "product_type": "Casa_Marchand", "work_days": [1, 2, 3, 4, 5],
         "entry_time": time(9, 0)},
        {**base, "product_type": "Construrama", "work_days": [1, 2, 3, 4, 5, 6],
         "exit_time": time(17, 0), "lunch_start_time": time(13, 0)},
        {**base, "product_type": "Disensa", "work_days": [1, 2, 3, 4, 5, 6]},
    ]


def get_schedule(db: Session, product_type: str) -> Optional[ProductSchedule]:
    return db.query(ProductSchedule).filter(ProductSchedule.product_type == product_type).first()


def list_schedules(db: Session) -> List[ProductSchedule]:
    return db.query(ProductSchedule).order_by(ProductSchedule.product_type).all()
