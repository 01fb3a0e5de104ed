from fieldclock.celery_app import celery_app
from fieldclock.core.database import SessionLocal
from fieldclock.services.absence import AbsenceDetector
from fieldclock.services.photo_validation import apply_photo_validation as apply_verdict


@celery_app.task(name="run_absence_scan")
def run_absence_scan():
    """
    Periodic scan for missed checkpoints
    """
    summary = AbsenceDetector(SessionLocal).run()
    return summary.to_dict()


@celery_app.task(name="apply_photo_validation")
def apply_photo_validation(check_in_id: int, result: dict):
    """
    Attach the vision worker's verdict to a check-in
    """
    db = SessionLocal()
    try:
        record = apply_verdict(db, check_in_id, result)
        return {
            "check_in_id": check_in_id,
            "applied": record is not None,
            "status": record.get("status") if record else None,
        }
    finally:
        db.close()
