from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from fieldclock.core.database import Base
import enum


class UserRole(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    PROMOTOR = "promotor"


# Roles that are expected to check in at a kiosk every work day
FIELD_ROLES = (UserRole.SUPERVISOR.value, UserRole.PROMOTOR.value)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)

    role = Column(String, default="promotor", nullable=False)
    status = Column(String, default="active", nullable=False)  # active, inactive
    team = Column(String, nullable=True)

    # Field assignment
    product_type = Column(String, nullable=True, index=True)
    assigned_kiosk_id = Column(String, ForeignKey("kiosks.id"), nullable=True)
    supervisor_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Slack member id for mentions in alerts
    slack_id = Column(String, nullable=True)

    # Running total fed by late check-ins
    total_late_minutes = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
