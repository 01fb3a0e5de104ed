"""Missed-checkpoint detection.

A batch scan over "today" in the business timezone. For every active field
user with a product type it resolves the day's schedule, looks at the user's
check-ins and opens an AttendanceIssue for each checkpoint whose deadline
has passed without a matching event.

Each user is handled in its own session on a worker thread with a bounded
wait, so one slow or failing user is counted and the scan moves on. A worker
that outlives its wait is abandoned; once every thread of the pool is held by
an abandoned worker the pool is replaced, so later users always start at
once. Alerts for created issues are sent after the wait, outside the worker.
"""
import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldclock.core.clock import as_utc, business_tz, local_date, now_utc
from fieldclock.core.config import settings
from fieldclock.models.attendance_issue import AttendanceIssue, IssueType
from fieldclock.models.checkin import CheckIn, CheckInType
from fieldclock.models.kiosk import Kiosk
from fieldclock.models.user import User, FIELD_ROLES
from fieldclock.services import notifications
from fieldclock.services.schedules import ScheduleRepository, ScheduleResolver, ResolvedSchedule
from fieldclock.services.time_off import users_on_time_off

logger = logging.getLogger(__name__)

# Issue type -> check-in type that satisfies it
EXPECTED_EVENT = {
    IssueType.NO_ENTRY: CheckInType.ENTRY,
    IssueType.NO_LUNCH_OUT: CheckInType.LUNCH_OUT,
    IssueType.NO_LUNCH_RETURN: CheckInType.LUNCH_RETURN,
    IssueType.NO_EXIT: CheckInType.EXIT,
}


@dataclass(frozen=True)
class DetectorSettings:
    entry_grace_minutes: int = 60
    lunch_grace_minutes: int = 30
    exit_grace_minutes: int = 60
    user_timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, config=None) -> "DetectorSettings":
        config = config or settings
        return cls(
            entry_grace_minutes=config.MISSING_ENTRY_GRACE_MINUTES,
            lunch_grace_minutes=config.MISSING_LUNCH_GRACE_MINUTES,
            exit_grace_minutes=config.MISSING_EXIT_GRACE_MINUTES,
            user_timeout_seconds=config.ABSENCE_SCAN_USER_TIMEOUT_SECONDS,
        )


@dataclass
class ScanSummary:
    date: date
    scanned_users: int = 0
    processed_users: int = 0
    skipped_time_off: int = 0
    skipped_non_work_day: int = 0
    skipped_unconfigured: int = 0
    created_issues: int = 0
    duplicates: int = 0
    race_skips: int = 0
    errored_users: int = 0
    abandoned_workers: int = 0
    errors: List[dict] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        return data


@dataclass(frozen=True)
class _FieldUser:
    id: int
    name: str
    product_type: str
    kiosk_id: Optional[str]
    slack_id: Optional[str]


@dataclass
class _UserOutcome:
    skipped: Optional[str] = None  # "non_work_day" | "unconfigured"
    created: List[int] = field(default_factory=list)
    duplicates: int = 0
    race_skips: int = 0


class AbsenceDetector:
    def __init__(self, session_factory, config: Optional[DetectorSettings] = None,
                 notifier=None, tz=None, max_workers: int = 4):
        self.session_factory = session_factory
        self.config = config or DetectorSettings.from_settings()
        self.notifier = notifier
        self.tz = tz or business_tz()
        self.max_workers = max_workers

    # ── Scan ─────────────────────────────────────────────────────────

    def _field_users(self, db: Session) -> List[_FieldUser]:
        rows = (
            db.query(User)
            .filter(
                User.status == "active",
                User.role.in_(FIELD_ROLES),
                User.product_type.isnot(None),
                User.product_type != "",
            )
            .order_by(User.id)
            .all()
        )
        return [
            _FieldUser(u.id, u.name, u.product_type, u.assigned_kiosk_id, u.slack_id)
            for u in rows
        ]

    def run(self, now: Optional[datetime] = None) -> ScanSummary:
        now = as_utc(now) if now else now_utc()
        today = local_date(now, self.tz)
        summary = ScanSummary(date=today)

        db = self.session_factory()
        try:
            users = self._field_users(db)
            on_leave = users_on_time_off(db, today)
        finally:
            db.close()

        summary.scanned_users = len(users)
        logger.info(f"Absence scan for {today}: {len(users)} field users")

        executor = self._new_executor()
        abandoned = []
        try:
            for user in users:
                if user.id in on_leave:
                    summary.skipped_time_off += 1
                    continue

                abandoned = [f for f in abandoned if not f.done()]
                if len(abandoned) >= self.max_workers:
                    logger.warning(f"All {self.max_workers} absence scan workers are stuck; starting a new pool")
                    executor.shutdown(wait=False)
                    executor = self._new_executor()
                    abandoned = []

                future = executor.submit(self._scan_user, user, today, now)
                try:
                    outcome = future.result(timeout=self.config.user_timeout_seconds)
                except FutureTimeout:
                    abandoned.append(future)
                    summary.abandoned_workers += 1
                    self._record_error(summary, user, f"timed out after {self.config.user_timeout_seconds}s",
                                       stage="timeout")
                    continue
                except Exception as e:
                    logger.error(f"Absence scan failed for user {user.id}: {e}", exc_info=True)
                    self._record_error(summary, user, f"{type(e).__name__}: {e}")
                    continue

                if outcome.skipped == "non_work_day":
                    summary.skipped_non_work_day += 1
                elif outcome.skipped == "unconfigured":
                    summary.skipped_unconfigured += 1
                else:
                    summary.processed_users += 1
                summary.created_issues += len(outcome.created)
                summary.duplicates += outcome.duplicates
                summary.race_skips += outcome.race_skips
                self._notify_created(outcome.created, user)
        finally:
            executor.shutdown(wait=False)

        if summary.created_issues == 0:
            summary.reasons = self._explain(summary)

        logger.info(
            f"Absence scan for {today} done: {summary.created_issues} issues, "
            f"{summary.processed_users}/{summary.scanned_users} users processed, "
            f"{summary.duplicates} duplicates, {summary.race_skips} race skips, "
            f"{summary.errored_users} errors ({summary.abandoned_workers} timed out)"
        )
        return summary

    def _new_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="absence-scan")

    def _record_error(self, summary: ScanSummary, user: _FieldUser, message: str, stage: str = "exception"):
        summary.errored_users += 1
        summary.errors.append({"user_id": user.id, "user_name": user.name, "stage": stage, "error": message})
        logger.warning(f"Absence scan skipped user {user.id} ({user.name}): {message}")

    def _explain(self, summary: ScanSummary) -> List[str]:
        reasons = []
        if summary.scanned_users == 0:
            reasons.append("No active supervisors or promotores with a product type")
        if summary.skipped_time_off:
            reasons.append(f"{summary.skipped_time_off} user(s) on approved time off")
        if summary.skipped_non_work_day:
            reasons.append(f"{summary.skipped_non_work_day} user(s) with no work scheduled today (rest day or holiday)")
        if summary.skipped_unconfigured:
            reasons.append(f"{summary.skipped_unconfigured} user(s) whose product has no schedule configured")
        if summary.errored_users:
            reasons.append(f"{summary.errored_users} user(s) could not be scanned")
        if summary.abandoned_workers:
            reasons.append(f"{summary.abandoned_workers} user scan(s) timed out and were abandoned")
        if summary.processed_users and not reasons:
            reasons.append("All processed users have their checkpoints recorded or are still within the grace period")
        elif summary.processed_users:
            reasons.append(f"{summary.processed_users} processed user(s) had no missed checkpoints past their deadline")
        return reasons

    # ── Per user ─────────────────────────────────────────────────────

    def _deadlines(self, schedule: ResolvedSchedule, events: Dict[str, CheckIn]):
        """Yield (issue_type, expected_at, deadline) for applicable checkpoints."""
        cfg = self.config
        yield (IssueType.NO_ENTRY, schedule.entry_time,
               schedule.entry_deadline + timedelta(minutes=cfg.entry_grace_minutes))

        if CheckInType.ENTRY.value in events:
            yield (IssueType.NO_LUNCH_OUT, schedule.lunch_start,
                   schedule.lunch_end + timedelta(minutes=cfg.lunch_grace_minutes))

        lunch_out = events.get(CheckInType.LUNCH_OUT.value)
        if lunch_out is not None:
            expected_back = as_utc(lunch_out.timestamp) + timedelta(minutes=schedule.lunch_duration_minutes)
            yield (IssueType.NO_LUNCH_RETURN, expected_back,
                   expected_back + timedelta(minutes=cfg.lunch_grace_minutes))

        if CheckInType.ENTRY.value in events:
            yield (IssueType.NO_EXIT, schedule.exit_time,
                   schedule.exit_time + timedelta(minutes=cfg.exit_grace_minutes))

    def _todays_check_ins(self, db: Session, user_id: int, today: date) -> List[CheckIn]:
        return (
            db.query(CheckIn)
            .filter(CheckIn.user_id == user_id, CheckIn.work_date == today)
            .order_by(CheckIn.timestamp.asc())
            .all()
        )

    def _existing_issue_types(self, db: Session, user_id: int, today: date) -> set:
        rows = (
            db.query(AttendanceIssue.type)
            .filter(AttendanceIssue.user_id == user_id, AttendanceIssue.date == today)
            .all()
        )
        return {r[0] for r in rows}

    def _scan_user(self, user: _FieldUser, today: date, now: datetime) -> _UserOutcome:
        db = self.session_factory()
        try:
            return self._scan_user_in_session(db, user, today, now)
        finally:
            db.close()

    def _scan_user_in_session(self, db: Session, user: _FieldUser, today: date,
                              now: datetime) -> _UserOutcome:
        outcome = _UserOutcome()
        schedule = ScheduleResolver(ScheduleRepository(db), self.tz).resolve(user.product_type, today)
        if not schedule.configured:
            logger.warning(f"No schedule configured for product {user.product_type}; skipping user {user.id}")
            outcome.skipped = "unconfigured"
            return outcome
        if not schedule.is_work_day:
            logger.debug(f"{today} is not a work day for {user.product_type} ({schedule.holiday_name or 'rest day'})")
            outcome.skipped = "non_work_day"
            return outcome

        events = {}
        for c in self._todays_check_ins(db, user.id, today):
            events.setdefault(c.type, c)
        existing = self._existing_issue_types(db, user.id, today)

        kiosk = db.query(Kiosk).filter(Kiosk.id == user.kiosk_id).first() if user.kiosk_id else None
        created_issues = []

        for issue_type, expected_at, deadline in self._deadlines(schedule, events):
            if now <= as_utc(deadline):
                continue
            expected_type = EXPECTED_EVENT[issue_type].value
            if expected_type in events or issue_type.value in existing:
                continue

            # The event may have landed after the snapshot was taken
            late_event = db.query(CheckIn.id).filter(
                CheckIn.user_id == user.id,
                CheckIn.work_date == today,
                CheckIn.type == expected_type,
            ).first()
            if late_event:
                outcome.race_skips += 1
                logger.info(f"Skipping {issue_type.value} for user {user.id}: check-in {late_event[0]} arrived during scan")
                continue

            issue = AttendanceIssue(
                user_id=user.id,
                user_name=user.name,
                kiosk_id=kiosk.id if kiosk else user.kiosk_id,
                kiosk_name=kiosk.name if kiosk else None,
                product_type=user.product_type,
                date=today,
                type=issue_type.value,
                expected_time=expected_at.astimezone(self.tz).strftime("%H:%M"),
                detected_at=now,
                resolved=False,
            )
            try:
                with db.begin_nested():
                    db.add(issue)
                    db.flush()
            except IntegrityError:
                outcome.duplicates += 1
                logger.info(f"Issue {issue_type.value} for user {user.id} on {today} already recorded")
                continue
            created_issues.append(issue)

        db.commit()

        for issue in created_issues:
            outcome.created.append(issue.id)
            logger.info(f"Attendance issue {issue.id}: {user.name} {issue.type} on {today} (expected {issue.expected_time})")

        return outcome

    def _notify_created(self, issue_ids: List[int], user: _FieldUser):
        """Alert on committed issues. Runs on the scanning thread, never in a timed worker."""
        if not issue_ids:
            return
        db = self.session_factory()
        try:
            issues = (
                db.query(AttendanceIssue)
                .filter(AttendanceIssue.id.in_(issue_ids))
                .order_by(AttendanceIssue.id)
                .all()
            )
            for issue in issues:
                try:
                    notifications.notify_absence(db, issue, slack_id=user.slack_id, notifier=self.notifier)
                except Exception as e:
                    db.rollback()
                    logger.error(f"Absence notification for issue {issue.id} failed (ignoring): {e}", exc_info=True)
        finally:
            db.close()

    # ── Diagnostics ──────────────────────────────────────────────────

    def diagnose(self, now: Optional[datetime] = None) -> dict:
        """Explain what a scan at ``now`` would look at."""
        now = as_utc(now) if now else now_utc()
        today = local_date(now, self.tz)

        db = self.session_factory()
        try:
            active = db.query(User).filter(User.status == "active").all()
            field_users = [u for u in active if u.role in FIELD_ROLES]
            with_product = [u for u in field_users if u.product_type]
            per_product = Counter(u.product_type for u in with_product)

            repository = ScheduleRepository(db)
            resolver = ScheduleResolver(repository, self.tz)
            configured = repository.configured_product_types()
            missing = sorted(p for p in per_product if p not in configured)

            not_working = []
            for product in sorted(per_product):
                if product in missing:
                    continue
                resolved = resolver.resolve(product, today)
                if not resolved.is_work_day:
                    not_working.append({"product_type": product, "holiday": resolved.holiday_name})

            on_leave = users_on_time_off(db, today) & {u.id for u in with_product}
        finally:
            db.close()

        reasons = []
        if not field_users:
            reasons.append("There are no active supervisors or promotores")
        if len(with_product) < len(field_users):
            reasons.append(f"{len(field_users) - len(with_product)} field user(s) have no product type and are never scanned")
        for product in missing:
            reasons.append(f"Product {product} has {per_product[product]} user(s) but no schedule")
        for entry in not_working:
            why = f"holiday {entry['holiday']}" if entry["holiday"] else "not a work day"
            reasons.append(f"Today is {why} for {entry['product_type']}")
        if on_leave:
            reasons.append(f"{len(on_leave)} user(s) on approved time off today")

        return {
            "date": today.isoformat(),
            "active_users": len(active),
            "field_users": len(field_users),
            "users_with_product_type": len(with_product),
            "users_per_product": dict(per_product),
            "configured_schedules": configured,
            "products_without_schedule": missing,
            "products_not_working_today": not_working,
            "users_on_time_off": len(on_leave),
            "reasons": reasons,
        }
