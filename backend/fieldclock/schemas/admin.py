from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, time


class ScheduleUpdate(BaseModel):
    work_days: List[int] = Field(..., min_length=1)
    works_on_holidays: bool = False
    entry_time: time
    exit_time: time
    lunch_start_time: time
    lunch_duration_minutes: int = 60
    tolerance_minutes: int = 5
    is_active: bool = True


class HolidayCreate(BaseModel):
    name: str
    date: date
    type: str = "official"  # official, corporate
    product_types: Optional[List[str]] = None


class KioskCreate(BaseModel):
    id: str = Field(..., min_length=4, max_length=4)
    name: str
    city: str
    state: str
    product_type: str
    latitude: float
    longitude: float
    radius_override: Optional[float] = None
    hub_id: Optional[int] = None


class KioskUpdate(BaseModel):
    name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    product_type: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_override: Optional[float] = None
    hub_id: Optional[int] = None


class IssueResolve(BaseModel):
    resolution: Optional[str] = None


class TimeOffCreate(BaseModel):
    type: str
    start_date: date
    end_date: date
    reason: Optional[str] = None


class TimeOffReview(BaseModel):
    approved: bool
    comment: Optional[str] = None
