from pydantic import BaseModel, Field
from typing import Optional
from fieldclock.models.checkin import CheckInType


class CheckInCreate(BaseModel):
    kiosk_id: str = Field(..., min_length=4, max_length=4)
    type: CheckInType
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    photo_url: Optional[str] = None
    notes: Optional[str] = None


class PhotoReview(BaseModel):
    approved: bool
    notes: Optional[str] = None


class PhotoVerdict(BaseModel):
    status: str
    confidence: Optional[float] = None
    person_detected: Optional[bool] = None
    uniform_detected: Optional[bool] = None
    location_detected: Optional[bool] = None
    logo_detected: Optional[bool] = None
    rejection_reason: Optional[str] = None
