import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fieldclock.core.database import get_db
from fieldclock.core.exceptions import KioskNotFound
from fieldclock.core.security import get_current_user, require_admin
from fieldclock.models.kiosk import Kiosk
from fieldclock.models.user import User
from fieldclock.schemas.admin import KioskCreate, KioskUpdate
from fieldclock.services import kiosks as kiosk_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/kiosks", tags=["kiosks"])


def _kiosk_to_dict(k: Kiosk) -> dict:
    return {
        "id": k.id,
        "name": k.name,
        "city": k.city,
        "state": k.state,
        "product_type": k.product_type,
        "latitude": float(k.latitude),
        "longitude": float(k.longitude),
        "radius_override": float(k.radius_override) if k.radius_override is not None else None,
        "status": k.status,
        "hub_id": k.hub_id,
    }


@router.get("")
def get_kiosks(
    product_type: Optional[str] = None,
    include_inactive: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_admin(current_user)
    return [_kiosk_to_dict(k) for k in kiosk_service.list_kiosks(db, product_type, include_inactive)]


@router.post("", status_code=201)
def create_kiosk(
    payload: KioskCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_admin(current_user)
    try:
        kiosk = kiosk_service.create_kiosk(db, payload.model_dump())
    except kiosk_service.InvalidKiosk as e:
        raise HTTPException(status_code=422, detail=str(e))
    logger.info(f"Kiosk {kiosk.id} created by {current_user.name}")
    return _kiosk_to_dict(kiosk)


@router.put("/{kiosk_id}")
def update_kiosk(
    kiosk_id: str,
    payload: KioskUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_admin(current_user)
    try:
        kiosk = kiosk_service.update_kiosk(db, kiosk_id, payload.model_dump(exclude_unset=True))
    except KioskNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except kiosk_service.InvalidKiosk as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _kiosk_to_dict(kiosk)


@router.post("/{kiosk_id}/deactivate")
def deactivate_kiosk(
    kiosk_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_admin(current_user)
    try:
        kiosk = kiosk_service.deactivate_kiosk(db, kiosk_id)
    except KioskNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    logger.info(f"Kiosk {kiosk_id} deactivated by {current_user.name}")
    return _kiosk_to_dict(kiosk)
