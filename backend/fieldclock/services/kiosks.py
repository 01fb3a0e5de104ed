import logging
import re
from typing import List, Optional

from sqlalchemy.orm import Session

from fieldclock.core.exceptions import FieldClockError, KioskNotFound
from fieldclock.models.kiosk import Kiosk

logger = logging.getLogger(__name__)

KIOSK_ID_PATTERN = re.compile(r"^\d{4}$")
MIN_RADIUS_METERS = 50
MAX_RADIUS_METERS = 1000


class InvalidKiosk(FieldClockError, ValueError):
    pass


def _validate(data: dict):
    radius = data.get("radius_override")
    if radius is not None and not (MIN_RADIUS_METERS <= float(radius) <= MAX_RADIUS_METERS):
        raise InvalidKiosk(f"Radius must be between {MIN_RADIUS_METERS} and {MAX_RADIUS_METERS} meters")
    lat, lng = data.get("latitude"), data.get("longitude")
    if lat is not None and not (-90 <= float(lat) <= 90):
        raise InvalidKiosk("Latitude must be between -90 and 90")
    if lng is not None and not (-180 <= float(lng) <= 180):
        raise InvalidKiosk("Longitude must be between -180 and 180")


def list_kiosks(db: Session, product_type: Optional[str] = None,
                include_inactive: bool = False) -> List[Kiosk]:
    query = db.query(Kiosk)
    if product_type:
        query = query.filter(Kiosk.product_type == product_type)
    if not include_inactive:
        query = query.filter(Kiosk.status == "active")
    return query.order_by(Kiosk.id).all()


def get_kiosk(db: Session, kiosk_id: str) -> Kiosk:
    kiosk = db.query(Kiosk).filter(Kiosk.id == kiosk_id).first()
    if not kiosk:
        raise KioskNotFound(kiosk_id)
    return kiosk


def create_kiosk(db: Session, data: dict) -> Kiosk:
    kiosk_id = str(data.get("id") or "")
    if not KIOSK_ID_PATTERN.match(kiosk_id):
        raise InvalidKiosk("Kiosk id must be a 4-digit code")
    if db.query(Kiosk.id).filter(Kiosk.id == kiosk_id).first():
        raise InvalidKiosk(f"Kiosk {kiosk_id} already exists")
    _validate(data)

    kiosk = Kiosk(**data)
    kiosk.status = data.get("status") or "active"
    db.add(kiosk)
    db.commit()
    db.refresh(kiosk)
    logger.info(f"Kiosk {kiosk.id} ({kiosk.name}) created for {kiosk.product_type}")
    return kiosk


def update_kiosk(db: Session, kiosk_id: str, data: dict) -> Kiosk:
    kiosk = get_kiosk(db, kiosk_id)
    data = {k: v for k, v in data.items() if k != "id"}
    _validate(data)
    for key, value in data.items():
        setattr(kiosk, key, value)
    db.commit()
    db.refresh(kiosk)
    logger.info(f"Kiosk {kiosk.id} updated: {sorted(data)}")
    return kiosk


def deactivate_kiosk(db: Session, kiosk_id: str) -> Kiosk:
    kiosk = get_kiosk(db, kiosk_id)
    kiosk.status = "inactive"
    db.commit()
    db.refresh(kiosk)
    logger.info(f"Kiosk {kiosk.id} deactivated")
    return kiosk
