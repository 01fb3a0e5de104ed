import pytest

from fieldclock.core.clock import as_utc
from fieldclock.core.exceptions import CheckInNotFound
from fieldclock.models import CheckIn, NotificationEvent
from fieldclock.services.photo_validation import apply_photo_validation, review_photo

from conftest import WORK_DAY, local


def _check_in(db, user, kind="entry"):
    row = CheckIn(
        user_id=user.id, user_name=user.name, kiosk_id="0001", kiosk_name="Aviva Centro",
        type=kind, timestamp=as_utc(local(9, 0)), work_date=WORK_DAY, status="on_time",
        location_valid=True, photo_url="checkins/0001/photo.jpg",
        photo_validation={"status": "pending"},
    )
    db.add(row)
    db.commit()
    return row


REJECTED = {
    "status": "rejected",
    "confidence": 0.91,
    "person_detected": False,
    "uniform_detected": False,
    "rejection_reason": "No person in photo",
}


def test_verdict_is_attached(db, promotor):
    check_in = _check_in(db, promotor)
    record = apply_photo_validation(db, check_in.id, {"status": "auto_approved", "confidence": 0.97,
                                                      "person_detected": True})
    assert record["status"] == "auto_approved"
    assert record["confidence"] == 0.97
    assert "processed_at" in record

    db.refresh(check_in)
    assert check_in.photo_validation["status"] == "auto_approved"


def test_rejection_notifies(db, promotor):
    check_in = _check_in(db, promotor)
    apply_photo_validation(db, check_in.id, REJECTED)
    event = db.query(NotificationEvent).one()
    assert event.event_type == "photo_rejected"
    assert event.check_in_id == check_in.id


def test_redelivery_is_idempotent(db, promotor):
    check_in = _check_in(db, promotor)
    apply_photo_validation(db, check_in.id, REJECTED)
    again = apply_photo_validation(db, check_in.id, {"status": "auto_approved"})
    assert again["status"] == "rejected"
    assert db.query(NotificationEvent).count() == 1


def test_manual_review_is_not_overwritten(db, promotor, supervisor):
    check_in = _check_in(db, promotor)
    review_photo(db, check_in.id, supervisor, approved=True, notes="Se ve bien el uniforme")
    record = apply_photo_validation(db, check_in.id, REJECTED)
    assert record["status"] == "approved"
    assert record["reviewed_by"] == "Sofia Supervisora"


def test_needs_review_can_be_followed_by_final_verdict(db, promotor):
    check_in = _check_in(db, promotor)
    apply_photo_validation(db, check_in.id, {"status": "needs_review", "confidence": 0.5})
    record = apply_photo_validation(db, check_in.id, {"status": "auto_approved", "confidence": 0.8})
    assert record["status"] == "auto_approved"


def test_only_entry_photos_are_validated(db, promotor):
    check_in = _check_in(db, promotor, kind="exit")
    assert apply_photo_validation(db, check_in.id, REJECTED) is None
    db.refresh(check_in)
    assert check_in.photo_validation == {"status": "pending"}


def test_unknown_check_in(db):
    with pytest.raises(CheckInNotFound):
        apply_photo_validation(db, 12345, REJECTED)


def test_unsupported_status(db, promotor):
    check_in = _check_in(db, promotor)
    with pytest.raises(ValueError):
        apply_photo_validation(db, check_in.id, {"status": "maybe"})


def test_manual_rejection(db, promotor, admin):
    check_in = _check_in(db, promotor)
    record = review_photo(db, check_in.id, admin, approved=False, notes="Foto borrosa")
    assert record["status"] == "rejected"
    assert record["reviewed_by"] == "Admin"
    assert record["review_notes"] == "Foto borrosa"
