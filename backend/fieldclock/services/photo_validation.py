"""Two-phase photo validation record on check-ins.

Phase 1 happens at submission (``{"status": "pending"}``). Phase 2 is the
verdict from the external vision worker, applied here; supervisors can
override it by hand. A manual review is final.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from fieldclock.core.clock import now_utc
from fieldclock.core.exceptions import CheckInNotFound
from fieldclock.models.checkin import CheckIn, CheckInType, PhotoValidationStatus
from fieldclock.models.user import User
from fieldclock.services import notifications

logger = logging.getLogger(__name__)

VERDICT_STATUSES = (
    PhotoValidationStatus.AUTO_APPROVED.value,
    PhotoValidationStatus.REJECTED.value,
    PhotoValidationStatus.NEEDS_REVIEW.value,
)
VERDICT_FIELDS = (
    "confidence", "person_detected", "uniform_detected", "location_detected",
    "logo_detected", "rejection_reason",
)


def _get_check_in(db: Session, check_in_id: int) -> CheckIn:
    check_in = db.query(CheckIn).filter(CheckIn.id == check_in_id).first()
    if not check_in:
        raise CheckInNotFound(check_in_id)
    return check_in


def apply_photo_validation(db: Session, check_in_id: int, result: dict,
                           notifier=None) -> Optional[dict]:
    """Attach an external verdict. Returns the stored record, or None if skipped.

    Safe to call repeatedly with the same message.
    """
    check_in = _get_check_in(db, check_in_id)

    if check_in.type != CheckInType.ENTRY.value:
        logger.debug(f"Check-in {check_in_id} is {check_in.type}; only entry photos are validated")
        return None

    current = dict(check_in.photo_validation or {})
    if current.get("reviewed_by") or current.get("status") in (
        PhotoValidationStatus.AUTO_APPROVED.value,
        PhotoValidationStatus.REJECTED.value,
        PhotoValidationStatus.APPROVED.value,
    ):
        logger.info(f"Check-in {check_in_id} photo already has verdict {current.get('status')}; ignoring")
        return current

    status = result.get("status")
    if status not in VERDICT_STATUSES:
        raise ValueError(f"Unsupported photo validation status {status!r}")

    record = {"status": status}
    for key in VERDICT_FIELDS:
        if key in result:
            record[key] = result[key]
    record["processed_at"] = now_utc().isoformat()

    check_in.photo_validation = record
    db.commit()
    logger.info(f"Check-in {check_in_id} photo validation: {status} (confidence {record.get('confidence')})")

    if status == PhotoValidationStatus.REJECTED.value:
        try:
            notifications.notify_photo_rejected(db, check_in, record.get("rejection_reason"), notifier=notifier)
        except Exception as e:
            db.rollback()
            logger.error(f"Photo rejection notification for check-in {check_in_id} failed (ignoring): {e}", exc_info=True)

    return record


def review_photo(db: Session, check_in_id: int, reviewer: User, approved: bool,
                 notes: Optional[str] = None) -> dict:
    """Manual supervisor/admin override."""
    check_in = _get_check_in(db, check_in_id)

    record = dict(check_in.photo_validation or {})
    record.update({
        "status": (PhotoValidationStatus.APPROVED if approved else PhotoValidationStatus.REJECTED).value,
        "reviewed_by": reviewer.name,
        "reviewed_at": now_utc().isoformat(),
        "review_notes": notes,
    })
    check_in.photo_validation = record
    db.commit()
    logger.info(f"Check-in {check_in_id} photo {record['status']} by {reviewer.name}")
    return record
