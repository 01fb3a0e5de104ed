"""Per-product work schedules and the holiday calendar."""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Date, Time, JSON
from sqlalchemy.sql import func
from fieldclock.core.database import Base


class ProductSchedule(Base):
    """One row per product type: work days, daily windows and tolerance."""
    __tablename__ = "product_schedules"

    product_type = Column(String, primary_key=True)

    # Weekday indices, 0 = Sunday ... 6 = Saturday
    work_days = Column(JSON, nullable=False, default=list)
    works_on_holidays = Column(Boolean, default=False, nullable=False)

    entry_time = Column(Time, nullable=False)
    exit_time = Column(Time, nullable=False)
    lunch_start_time = Column(Time, nullable=False)
    lunch_duration_minutes = Column(Integer, default=60, nullable=False)  # 30-120
    tolerance_minutes = Column(Integer, default=5, nullable=False)  # 0-30

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Holiday(Base):
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    date = Column(Date, nullable=False, index=True)
    type = Column(String, default="official", nullable=False)  # official, corporate
    # null = applies to every product
    product_types = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
