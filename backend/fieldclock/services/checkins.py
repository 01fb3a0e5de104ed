"""Check-in submission flow.

Order matters: evaluate, enforce the comment rule, persist, then run the
side effects (late-minute total, notifications, photo queue). Side effects
are logged and swallowed so a stored check-in is never reported as failed.
"""
import logging
import math
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from fieldclock.core.clock import as_utc, local_date, now_utc
from fieldclock.core.config import settings
from fieldclock.core.exceptions import CommentRequired, KioskNotFound
from fieldclock.models.checkin import CheckIn, CheckInType, CheckInStatus, PhotoValidationStatus
from fieldclock.models.kiosk import Kiosk
from fieldclock.models.user import User
from fieldclock.services import notifications
from fieldclock.services.evaluator import (
    EvaluationPolicy, KioskSnapshot, ValidationResult,
    comment_satisfies, evaluate, requires_comment,
)
from fieldclock.services.schedules import ScheduleRepository, ScheduleResolver

logger = logging.getLogger(__name__)


def get_active_kiosk(db: Session, kiosk_id: str) -> Kiosk:
    kiosk = db.query(Kiosk).filter(Kiosk.id == kiosk_id, Kiosk.status == "active").first()
    if not kiosk:
        raise KioskNotFound(kiosk_id)
    return kiosk


def find_lunch_out(db: Session, user_id: int, work_date: date,
                   before: Optional[datetime] = None) -> Optional[CheckIn]:
    """Latest lunch-out of the day, optionally not after ``before``."""
    query = db.query(CheckIn).filter(
        CheckIn.user_id == user_id,
        CheckIn.work_date == work_date,
        CheckIn.type == CheckInType.LUNCH_OUT.value,
    )
    rows = query.order_by(CheckIn.timestamp.desc()).all()
    for row in rows:
        if before is None or as_utc(row.timestamp) <= before:
            return row
    return None


def _enqueue_photo_validation(check_in: CheckIn):
    if not settings.PHOTO_VALIDATION_ENABLED:
        return
    from fieldclock.celery_app import celery_app
    celery_app.send_task(
        settings.PHOTO_VALIDATION_TASK_NAME,
        args=[check_in.id, check_in.photo_url],
    )


def submit_check_in(db: Session, user: User, kiosk_id: str, check_in_type: str,
                    latitude=None, longitude=None, accuracy=None,
                    photo_url: Optional[str] = None, notes: Optional[str] = None,
                    timestamp: Optional[datetime] = None,
                    policy: Optional[EvaluationPolicy] = None,
                    repository: Optional[ScheduleRepository] = None,
                    notifier=None) -> CheckIn:
    """Classify and store a check-in.

    ``timestamp`` defaults to the server clock; the HTTP layer never passes a
    device time.
    """
    policy = policy or EvaluationPolicy.from_settings()
    check_in_type = CheckInType(check_in_type)
    kiosk = get_active_kiosk(db, kiosk_id)

    timestamp = as_utc(timestamp) if timestamp else now_utc()
    work_date = local_date(timestamp)

    resolver = ScheduleResolver(repository or ScheduleRepository(db))
    schedule = resolver.resolve(kiosk.product_type, work_date)

    lunch_out_at = None
    if check_in_type == CheckInType.LUNCH_RETURN:
        lunch_out = find_lunch_out(db, user.id, work_date, before=timestamp)
        lunch_out_at = lunch_out.timestamp if lunch_out else None

    result: ValidationResult = evaluate(
        KioskSnapshot.from_kiosk(kiosk), check_in_type, timestamp,
        latitude, longitude, schedule, lunch_out_at=lunch_out_at, policy=policy,
    )
    if result.status == CheckInStatus.UNKNOWN:
        logger.warning(f"Check-in by {user.name} at kiosk {kiosk.id} stored unclassified: {result.error}")

    needs_comment = requires_comment(result, check_in_type, policy)
    if needs_comment and not comment_satisfies(notes, policy):
        reason = {
            CheckInType.ENTRY: "late",
            CheckInType.LUNCH_RETURN: "lunch_overrun",
            CheckInType.EXIT: "early_exit",
        }[check_in_type]
        raise CommentRequired(policy.comment_min_length, result.minutes_late, reason)

    check_in = CheckIn(
        user_id=user.id,
        user_name=user.name,
        kiosk_id=kiosk.id,
        kiosk_name=kiosk.name,
        product_type=kiosk.product_type,
        type=check_in_type.value,
        timestamp=timestamp,
        work_date=work_date,
        latitude=latitude,
        longitude=longitude,
        accuracy=accuracy,
        photo_url=photo_url,
        notes=notes.strip() if notes else None,
        status=result.status.value,
        distance_from_kiosk=None if math.isinf(result.distance_from_kiosk) else round(result.distance_from_kiosk, 2),
        location_valid=result.location_valid,
        minutes_late=result.minutes_late,
        minutes_early=result.minutes_early,
        validation_error=result.error,
        requires_comment=needs_comment,
        photo_validation={"status": PhotoValidationStatus.PENDING.value} if photo_url else None,
    )
    db.add(check_in)
    db.commit()
    db.refresh(check_in)

    logger.info(
        f"Check-in {check_in.id}: {user.name} {check_in.type} at {kiosk.id} -> {check_in.status}"
        + (f" ({check_in.minutes_late} min late)" if check_in.minutes_late else "")
    )

    _after_check_in(db, user, check_in, policy, notifier)
    return check_in


def _after_check_in(db: Session, user: User, check_in: CheckIn,
                    policy: EvaluationPolicy, notifier):
    if check_in.status == CheckInStatus.LATE.value and check_in.minutes_late > 0:
        try:
            user.total_late_minutes = (user.total_late_minutes or 0) + check_in.minutes_late
            db.commit()
        except Exception as e:
            db.rollback()
            logger.warning(f"Late-minute total update failed for user {user.id} (ignoring): {e}")

    try:
        notifications.notify_check_in(
            db, check_in, slack_id=user.slack_id,
            severe_threshold=policy.severe_delay_threshold_minutes, notifier=notifier,
        )
    except Exception as e:
        db.rollback()
        logger.error(f"Notification for check-in {check_in.id} failed (ignoring): {e}", exc_info=True)

    if check_in.photo_url and check_in.type == CheckInType.ENTRY.value:
        try:
            _enqueue_photo_validation(check_in)
        except Exception as e:
            logger.warning(f"Could not queue photo validation for check-in {check_in.id}: {e}")


def get_today_check_ins(db: Session, user: User, today: Optional[date] = None) -> List[CheckIn]:
    today = today or local_date(now_utc())
    return (
        db.query(CheckIn)
        .filter(CheckIn.user_id == user.id, CheckIn.work_date == today)
        .order_by(CheckIn.timestamp.asc())
        .all()
    )
