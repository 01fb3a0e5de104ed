import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Date, Text, UniqueConstraint
from sqlalchemy.sql import func
from fieldclock.core.database import Base


class IssueType(str, enum.Enum):
    NO_ENTRY = "no_entry"
    NO_LUNCH_OUT = "no_lunch_out"
    NO_LUNCH_RETURN = "no_lunch_return"
    NO_EXIT = "no_exit"


class AttendanceIssue(Base):
    """A checkpoint the detector expected but never saw.

    Only the absence scan creates rows; the only mutation afterwards is a
    one-way manual resolve.
    """
    __tablename__ = "attendance_issues"
    __table_args__ = (
        UniqueConstraint("user_id", "date", "type", name="uq_attendance_issue_user_date_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_name = Column(String, nullable=True)
    kiosk_id = Column(String(4), nullable=True)
    kiosk_name = Column(String, nullable=True)
    product_type = Column(String, nullable=True, index=True)

    date = Column(Date, nullable=False, index=True)
    type = Column(String, nullable=False)  # IssueType
    expected_time = Column(String, nullable=True)  # "HH:MM"
    detected_at = Column(DateTime(timezone=True), nullable=False)

    # Resolution
    resolved = Column(Boolean, default=False, nullable=False, index=True)
    resolved_by = Column(String, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolution = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
