from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, Text
from sqlalchemy.sql import func
from fieldclock.core.database import Base


class NotificationEvent(Base):
    """Outbox of attendance alerts; delivery happens outside the engine."""
    __tablename__ = "notification_events"

    id = Column(Integer, primary_key=True, index=True)
    event_type = Column(String, nullable=False, index=True)
    # late_arrival, severe_late_arrival, long_lunch, early_departure,
    # location_violation, absence_detected, photo_rejected
    user_id = Column(Integer, nullable=True, index=True)
    check_in_id = Column(Integer, nullable=True)
    issue_id = Column(Integer, nullable=True)
    magnitude_minutes = Column(Integer, nullable=True)
    payload = Column(JSON, nullable=True)

    delivered = Column(Boolean, default=False)
    response_status = Column(Integer, nullable=True)
    delivery_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
