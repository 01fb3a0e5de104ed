"""Kiosks (geofenced check-in points) and the hubs that group them."""
from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fieldclock.core.database import Base


class Hub(Base):
    __tablename__ = "hubs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    supervisor_id = Column(Integer, nullable=True, index=True)  # users.id, no FK (users -> kiosks -> hubs)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    kiosks = relationship("Kiosk", back_populates="hub")


class Kiosk(Base):
    """A retail point. Never deleted, only deactivated."""
    __tablename__ = "kiosks"

    id = Column(String(4), primary_key=True)  # "0001", "0002", ...
    name = Column(String, nullable=False)
    city = Column(String, nullable=False)
    state = Column(String, nullable=False)
    product_type = Column(String, nullable=False, index=True)

    latitude = Column(Numeric(10, 7), nullable=False)
    longitude = Column(Numeric(10, 7), nullable=False)
    radius_override = Column(Numeric(8, 2), nullable=True)  # meters

    status = Column(String, default="active", nullable=False)  # active, inactive
    hub_id = Column(Integer, ForeignKey("hubs.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    hub = relationship("Hub", back_populates="kiosks")
