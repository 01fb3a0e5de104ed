"""Check-in events submitted from the kiosk mobile form.

Each record carries the evaluation computed at submission time:
- status: on_time, late, early, invalid_location or unknown
- distance/location flag from the geofence check
- minutes late/early against the product schedule

Photo validation arrives later and is patched into ``photo_validation``.
"""
import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Date, Numeric, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fieldclock.core.database import Base


class CheckInType(str, enum.Enum):
    ENTRY = "entry"
    LUNCH_OUT = "lunch_out"
    LUNCH_RETURN = "lunch_return"
    EXIT = "exit"


# Order of checkpoints within a work day
CHECKPOINT_ORDER = (
    CheckInType.ENTRY,
    CheckInType.LUNCH_OUT,
    CheckInType.LUNCH_RETURN,
    CheckInType.EXIT,
)


class CheckInStatus(str, enum.Enum):
    ON_TIME = "on_time"
    LATE = "late"
    EARLY = "early"
    INVALID_LOCATION = "invalid_location"
    UNKNOWN = "unknown"


class PhotoValidationStatus(str, enum.Enum):
    PENDING = "pending"
    AUTO_APPROVED = "auto_approved"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVIEW = "needs_review"


class CheckIn(Base):
    __tablename__ = "checkins"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_name = Column(String, nullable=True)

    kiosk_id = Column(String(4), ForeignKey("kiosks.id"), nullable=False, index=True)
    kiosk_name = Column(String, nullable=True)
    product_type = Column(String, nullable=True, index=True)

    type = Column(String, nullable=False)  # CheckInType
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    # Business-local date of the event
    work_date = Column(Date, nullable=False, index=True)

    # Device GPS
    latitude = Column(Numeric(10, 7), nullable=True)
    longitude = Column(Numeric(10, 7), nullable=True)
    accuracy = Column(Numeric(8, 2), nullable=True)  # meters, informational only

    photo_url = Column(String, nullable=True)
    notes = Column(String, nullable=True)

    # Validation result
    status = Column(String, nullable=False, default=CheckInStatus.UNKNOWN.value, index=True)
    distance_from_kiosk = Column(Numeric(12, 2), nullable=True)  # null = no usable coordinates
    location_valid = Column(Boolean, default=False, nullable=False)
    minutes_late = Column(Integer, default=0, nullable=False)
    minutes_early = Column(Integer, default=0, nullable=False)
    validation_error = Column(String, nullable=True)
    requires_comment = Column(Boolean, default=False, nullable=False)

    # External photo verdict, see services.photo_validation
    photo_validation = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", foreign_keys=[user_id])
    kiosk = relationship("Kiosk", foreign_keys=[kiosk_id])
