import time as sleep_time
from datetime import date
from unittest.mock import MagicMock, patch

from fieldclock.core.clock import as_utc
from fieldclock.core.database import SessionLocal
from fieldclock.models import AttendanceIssue, CheckIn, NotificationEvent, TimeOffRequest, User
from fieldclock.services.absence import AbsenceDetector, DetectorSettings
from fieldclock.services.notifications import SlackNotifier

from conftest import KIOSK_LAT, KIOSK_LNG, WORK_DAY, local


def _detector(**config):
    return AbsenceDetector(SessionLocal, config=DetectorSettings(**config) if config else DetectorSettings())


def _check_in(db, user, kind, when):
    row = CheckIn(
        user_id=user.id, user_name=user.name, kiosk_id="0001", kiosk_name="Aviva Centro",
        product_type="Aviva_Contigo", type=kind, timestamp=as_utc(when), work_date=WORK_DAY,
        latitude=KIOSK_LAT, longitude=KIOSK_LNG, status="on_time", location_valid=True,
        distance_from_kiosk=0,
    )
    db.add(row)
    db.commit()
    return row


def _issues(db):
    return db.query(AttendanceIssue).order_by(AttendanceIssue.id).all()


def test_missing_entry_creates_exactly_one_issue(db, schedule, promotor):
    summary = _detector().run(now=local(10, 10))
    assert summary.created_issues == 1
    assert summary.processed_users == 1

    issues = _issues(db)
    assert len(issues) == 1
    assert issues[0].type == "no_entry"
    assert issues[0].user_id == promotor.id
    assert issues[0].date == WORK_DAY
    assert issues[0].expected_time == "09:00"
    assert issues[0].kiosk_name == "Aviva Centro"
    assert issues[0].resolved is False

    event = db.query(NotificationEvent).one()
    assert event.event_type == "absence_detected"
    assert event.issue_id == issues[0].id


def test_scan_is_idempotent(db, schedule, promotor):
    _detector().run(now=local(10, 10))
    second = _detector().run(now=local(10, 40))
    assert second.created_issues == 0
    assert len(_issues(db)) == 1


def test_nothing_before_grace_period_ends(db, schedule, promotor):
    summary = _detector().run(now=local(10, 5))
    assert summary.created_issues == 0
    assert _issues(db) == []
    assert summary.reasons


def test_entry_present_means_no_issue(db, schedule, promotor):
    _check_in(db, promotor, "entry", local(9, 0))
    summary = _detector().run(now=local(12, 0))
    assert summary.created_issues == 0


def test_late_arrival_race_is_guarded(db, schedule, promotor):
    _check_in(db, promotor, "entry", local(10, 6))
    # Snapshot taken before the entry landed
    with patch.object(AbsenceDetector, "_todays_check_ins", return_value=[]):
        summary = _detector().run(now=local(10, 10))
    assert summary.race_skips == 1
    assert summary.created_issues == 0
    assert _issues(db) == []


def test_unique_violation_counts_as_duplicate(db, schedule, promotor):
    db.add(AttendanceIssue(
        user_id=promotor.id, user_name=promotor.name, date=WORK_DAY, type="no_entry",
        expected_time="09:00", detected_at=local(10, 7), resolved=True,
    ))
    db.commit()
    with patch.object(AbsenceDetector, "_existing_issue_types", return_value=set()):
        summary = _detector().run(now=local(10, 10))
    assert summary.duplicates == 1
    assert summary.created_issues == 0
    assert len(_issues(db)) == 1


def test_missing_lunch_out_and_exit(db, schedule, promotor):
    _check_in(db, promotor, "entry", local(9, 0))

    at_1531 = _detector().run(now=local(15, 31))
    assert at_1531.created_issues == 1
    assert [i.type for i in _issues(db)] == ["no_lunch_out"]

    at_1901 = _detector().run(now=local(19, 1))
    assert at_1901.created_issues == 1
    assert [i.type for i in _issues(db)] == ["no_lunch_out", "no_exit"]


def test_missing_lunch_return_deadline_follows_lunch_out(db, schedule, promotor):
    _check_in(db, promotor, "entry", local(9, 0))
    _check_in(db, promotor, "lunch_out", local(13, 0))

    assert _detector().run(now=local(14, 30)).created_issues == 0
    summary = _detector().run(now=local(14, 31))
    assert summary.created_issues == 1
    issue = _issues(db)[0]
    assert issue.type == "no_lunch_return"
    assert issue.expected_time == "14:00"


def test_non_work_day_is_skipped(db, schedule, promotor):
    sunday = date(2025, 6, 8)
    summary = _detector().run(now=local(12, 0, day=sunday))
    assert summary.skipped_non_work_day == 1
    assert summary.created_issues == 0


def test_unconfigured_product_is_skipped(db, promotor):
    summary = _detector().run(now=local(12, 0))
    assert summary.skipped_unconfigured == 1
    assert _issues(db) == []


def test_approved_time_off_is_skipped(db, schedule, promotor):
    db.add(TimeOffRequest(user_id=promotor.id, type="vacation", start_date=WORK_DAY,
                          end_date=WORK_DAY, status="approved"))
    db.commit()
    summary = _detector().run(now=local(12, 0))
    assert summary.skipped_time_off == 1
    assert _issues(db) == []


def test_inactive_and_office_users_are_not_scanned(db, schedule, promotor):
    promotor.status = "inactive"
    db.add(User(email="boss@example.com", name="Boss", role="admin", product_type="Aviva_Contigo"))
    db.commit()
    summary = _detector().run(now=local(12, 0))
    assert summary.scanned_users == 0


def test_one_failing_user_does_not_stop_the_scan(db, schedule, promotor):
    other = User(email="luis@example.com", name="Luis", role="supervisor",
                 product_type="Aviva_Contigo")
    db.add(other)
    db.commit()

    real_scan = AbsenceDetector._scan_user_in_session

    def flaky(self, session, user, today, now):
        if user.id == promotor.id:
            raise RuntimeError("boom")
        return real_scan(self, session, user, today, now)

    with patch.object(AbsenceDetector, "_scan_user_in_session", flaky):
        summary = _detector().run(now=local(10, 10))

    assert summary.errored_users == 1
    assert summary.errors[0]["user_id"] == promotor.id
    assert "boom" in summary.errors[0]["error"]
    assert summary.created_issues == 1
    assert _issues(db)[0].user_id == other.id


def test_slow_user_times_out(db, schedule, promotor):
    def slow(self, session, user, today, now):
        sleep_time.sleep(0.5)
        raise RuntimeError("should have been abandoned")

    with patch.object(AbsenceDetector, "_scan_user_in_session", slow):
        summary = _detector(user_timeout_seconds=0.05).run(now=local(10, 10))
    assert summary.errored_users == 1
    assert "timed out" in summary.errors[0]["error"]


def test_diagnose_explains_empty_scan(db, schedule, promotor):
    db.add(User(email="x@example.com", name="Sin Horario", role="promotor", product_type="Disensa"))
    db.commit()
    report = _detector().diagnose(now=local(12, 0))
    assert report["field_users"] == 2
    assert report["users_per_product"] == {"Aviva_Contigo": 1, "Disensa": 1}
    assert report["configured_schedules"] == ["Aviva_Contigo"]
    assert report["products_without_schedule"] == ["Disensa"]
    assert any("Disensa" in r for r in report["reasons"])


def test_slow_alert_does_not_fail_the_user(db, schedule, promotor):
    notifier = SlackNotifier(webhook_url="https://hooks.slack.test/T000/B000/XXX")

    def slow_post(*args, **kwargs):
        sleep_time.sleep(0.3)
        return MagicMock(status_code=200, text="ok")

    with patch("fieldclock.services.notifications.requests.post", side_effect=slow_post):
        summary = AbsenceDetector(SessionLocal, config=DetectorSettings(user_timeout_seconds=0.1),
                                  notifier=notifier).run(now=local(10, 10))

    assert summary.errored_users == 0
    assert summary.processed_users == 1
    assert summary.created_issues == 1
    assert db.query(NotificationEvent).one().delivered is True


def test_stuck_workers_do_not_block_later_users(db, schedule):
    for i in range(4):
        db.add(User(email=f"hung{i}@example.com", name=f"Hung{i}", role="promotor",
                    product_type="Aviva_Contigo"))
    healthy = User(email="ok@example.com", name="Healthy", role="promotor", product_type="Aviva_Contigo")
    db.add(healthy)
    db.commit()

    real_scan = AbsenceDetector._scan_user_in_session

    def hangs(self, session, user, today, now):
        if user.name.startswith("Hung"):
            sleep_time.sleep(1.0)
            raise RuntimeError("should have been abandoned")
        return real_scan(self, session, user, today, now)

    with patch.object(AbsenceDetector, "_scan_user_in_session", hangs):
        summary = _detector(user_timeout_seconds=0.1).run(now=local(10, 10))

    assert summary.errored_users == 4
    assert summary.abandoned_workers == 4
    assert {e["user_name"] for e in summary.errors} == {"Hung0", "Hung1", "Hung2", "Hung3"}
    assert {e["stage"] for e in summary.errors} == {"timeout"}
    assert summary.processed_users == 1
    assert summary.created_issues == 1
    assert _issues(db)[0].user_id == healthy.id
