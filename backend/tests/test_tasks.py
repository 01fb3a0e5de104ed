from unittest.mock import patch

from fieldclock.core.clock import as_utc
from fieldclock.models import AttendanceIssue, CheckIn
from fieldclock.services import checkins
from fieldclock.tasks.attendance_tasks import apply_photo_validation, run_absence_scan

from conftest import KIOSK_LAT, KIOSK_LNG, WORK_DAY, local


def test_run_absence_scan_task(db, schedule, promotor):
    with patch("fieldclock.services.absence.now_utc", return_value=as_utc(local(10, 30))):
        result = run_absence_scan()
    assert result["date"] == WORK_DAY.isoformat()
    assert result["created_issues"] == 1
    assert db.query(AttendanceIssue).one().type == "no_entry"


def test_apply_photo_validation_task(db, promotor):
    row = CheckIn(
        user_id=promotor.id, user_name=promotor.name, kiosk_id="0001", type="entry",
        timestamp=as_utc(local(9, 0)), work_date=WORK_DAY, status="on_time", location_valid=True,
        photo_url="checkins/0001/a.jpg", photo_validation={"status": "pending"},
    )
    db.add(row)
    db.commit()

    result = apply_photo_validation(row.id, {"status": "auto_approved", "confidence": 0.93})
    assert result == {"check_in_id": row.id, "applied": True, "status": "auto_approved"}


def test_entry_photo_is_queued(db, schedule, kiosk, promotor):
    with patch.object(checkins.settings, "PHOTO_VALIDATION_ENABLED", True), \
            patch("fieldclock.celery_app.celery_app.send_task") as send_task:
        check_in = checkins.submit_check_in(
            db, promotor, "0001", "entry", KIOSK_LAT, KIOSK_LNG,
            photo_url="checkins/0001/b.jpg", timestamp=local(8, 58),
        )
    send_task.assert_called_once_with("validate_check_in_photo", args=[check_in.id, "checkins/0001/b.jpg"])
    assert check_in.photo_validation == {"status": "pending"}


def test_exit_photo_is_not_queued(db, schedule, kiosk, promotor):
    with patch.object(checkins.settings, "PHOTO_VALIDATION_ENABLED", True), \
            patch("fieldclock.celery_app.celery_app.send_task") as send_task:
        checkins.submit_check_in(
            db, promotor, "0001", "exit", KIOSK_LAT, KIOSK_LNG,
            photo_url="checkins/0001/c.jpg", timestamp=local(18, 5),
        )
    send_task.assert_not_called()
