"""Attendance alerts.

Decides which events a check-in or detected issue warrants, writes them to
the ``notification_events`` outbox, and optionally pushes them to a Slack
incoming webhook. Delivery problems are logged and stored on the event; they
never propagate to the caller.
"""
import logging
from fieldclock.core.clock import now_utc
from typing import List, Optional, Tuple

import requests
from sqlalchemy.orm import Session

from fieldclock.core.config import settings
from fieldclock.models.checkin import CheckIn, CheckInType, CheckInStatus
from fieldclock.models.attendance_issue import AttendanceIssue
from fieldclock.models.notification import NotificationEvent

logger = logging.getLogger(__name__)

LATE_ARRIVAL = "late_arrival"
SEVERE_LATE_ARRIVAL = "severe_late_arrival"
LONG_LUNCH = "long_lunch"
EARLY_DEPARTURE = "early_departure"
LOCATION_VIOLATION = "location_violation"
ABSENCE_DETECTED = "absence_detected"
PHOTO_REJECTED = "photo_rejected"

_TITLES = {
    LATE_ARRIVAL: "Late arrival",
    SEVERE_LATE_ARRIVAL: "Severe late arrival",
    LONG_LUNCH: "Lunch overrun",
    EARLY_DEPARTURE: "Early departure",
    LOCATION_VIOLATION: "Check-in outside kiosk radius",
    ABSENCE_DETECTED: "Missed checkpoint",
    PHOTO_REJECTED: "Check-in photo rejected",
}


def check_in_events(check_in_type, status, minutes_late: int, minutes_early: int,
                    severe_threshold: int) -> List[Tuple[str, Optional[int]]]:
    """(event_type, magnitude_minutes) pairs warranted by one check-in."""
    events = []
    check_in_type = CheckInType(check_in_type)

    if status == CheckInStatus.INVALID_LOCATION:
        events.append((LOCATION_VIOLATION, None))

    if check_in_type == CheckInType.ENTRY and minutes_late > 0:
        kind = SEVERE_LATE_ARRIVAL if minutes_late >= severe_threshold else LATE_ARRIVAL
        events.append((kind, minutes_late))
    elif check_in_type == CheckInType.LUNCH_RETURN and minutes_late > 0:
        events.append((LONG_LUNCH, minutes_late))
    elif check_in_type == CheckInType.EXIT and minutes_early > 0:
        events.append((EARLY_DEPARTURE, minutes_early))

    return events


class SlackNotifier:
    """Posts outbox events to a Slack incoming webhook."""

    def __init__(self, webhook_url: Optional[str] = None, username: Optional[str] = None):
        self.base_timeout = 15
        self.webhook_url = webhook_url if webhook_url is not None else settings.SLACK_WEBHOOK_URL
        self.username = username or settings.SLACK_USERNAME

    def _fire(self, payload: dict, event_type: str) -> dict:
        """Send a payload and report the outcome."""
        if not self.webhook_url:
            logger.debug(f"Slack webhook not configured for {event_type}, skipping")
            return {"skipped": True, "reason": "no_url_configured"}

        try:
            resp = requests.post(
                self.webhook_url,
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "X-Fieldclock-Event": event_type,
                    "X-Fieldclock-Timestamp": now_utc().isoformat(),
                },
                timeout=self.base_timeout,
            )
            result = {
                "success": resp.status_code < 400,
                "status_code": resp.status_code,
                "response": resp.text[:500],
            }
            if resp.status_code >= 400:
                logger.warning(f"Slack webhook {event_type} returned {resp.status_code}: {resp.text[:200]}")
            else:
                logger.info(f"Slack webhook {event_type} sent successfully ({resp.status_code})")
            return result

        except requests.RequestException as e:
            logger.error(f"Slack webhook {event_type} failed: {e}")
            return {"success": False, "error": str(e)}

    def format_message(self, event: NotificationEvent) -> dict:
        data = event.payload or {}
        who = data.get("user_name") or f"user {event.user_id}"
        mention = f" (<@{data['slack_id']}>)" if data.get("slack_id") else ""
        lines = [f"*{_TITLES.get(event.event_type, event.event_type)}*: {who}{mention}"]
        if data.get("kiosk_name") or data.get("kiosk_id"):
            lines.append(f"Kiosk: {data.get('kiosk_name') or ''} {data.get('kiosk_id') or ''}".rstrip())
        if event.magnitude_minutes:
            lines.append(f"Minutes: {event.magnitude_minutes}")
        if data.get("detail"):
            lines.append(str(data["detail"]))
        return {"username": self.username, "text": "\n".join(lines)}

    def deliver(self, event: NotificationEvent) -> dict:
        result = self._fire(self.format_message(event), event.event_type)
        if result.get("skipped"):
            return result
        event.delivered = bool(result.get("success"))
        event.response_status = result.get("status_code")
        event.delivery_error = result.get("error") or (None if event.delivered else result.get("response"))
        return result


def record_event(db: Session, event_type: str, user_id: Optional[int], payload: dict,
                 magnitude_minutes: Optional[int] = None, check_in_id: Optional[int] = None,
                 issue_id: Optional[int] = None,
                 notifier: Optional[SlackNotifier] = None) -> NotificationEvent:
    event = NotificationEvent(
        event_type=event_type,
        user_id=user_id,
        check_in_id=check_in_id,
        issue_id=issue_id,
        magnitude_minutes=magnitude_minutes,
        payload=payload,
    )
    db.add(event)
    (notifier or SlackNotifier()).deliver(event)
    db.commit()
    logger.info(f"Notification {event_type} recorded for user {user_id}")
    return event


def notify_check_in(db: Session, check_in: CheckIn, slack_id: Optional[str] = None,
                    severe_threshold: Optional[int] = None,
                    notifier: Optional[SlackNotifier] = None) -> List[NotificationEvent]:
    if severe_threshold is None:
        severe_threshold = settings.SEVERE_DELAY_THRESHOLD_MINUTES

    events = check_in_events(
        check_in.type, check_in.status, check_in.minutes_late or 0,
        check_in.minutes_early or 0, severe_threshold,
    )
    created = []
    for event_type, magnitude in events:
        payload = {
            "user_name": check_in.user_name,
            "slack_id": slack_id,
            "kiosk_id": check_in.kiosk_id,
            "kiosk_name": check_in.kiosk_name,
            "check_in_type": check_in.type,
            "status": check_in.status,
            "notes": check_in.notes,
        }
        if event_type == LOCATION_VIOLATION and check_in.distance_from_kiosk is not None:
            payload["detail"] = f"Distance from kiosk: {float(check_in.distance_from_kiosk):.0f} m"
        created.append(record_event(
            db, event_type, check_in.user_id, payload,
            magnitude_minutes=magnitude, check_in_id=check_in.id, notifier=notifier,
        ))
    return created


def notify_absence(db: Session, issue: AttendanceIssue, slack_id: Optional[str] = None,
                   notifier: Optional[SlackNotifier] = None) -> NotificationEvent:
    payload = {
        "user_name": issue.user_name,
        "slack_id": slack_id,
        "kiosk_id": issue.kiosk_id,
        "kiosk_name": issue.kiosk_name,
        "issue_type": issue.type,
        "date": issue.date.isoformat(),
        "detail": f"Expected {issue.type.replace('no_', '').replace('_', ' ')} at {issue.expected_time}",
    }
    return record_event(db, ABSENCE_DETECTED, issue.user_id, payload,
                        issue_id=issue.id, notifier=notifier)


def notify_photo_rejected(db: Session, check_in: CheckIn, reason: Optional[str] = None,
                          notifier: Optional[SlackNotifier] = None) -> NotificationEvent:
    payload = {
        "user_name": check_in.user_name,
        "kiosk_id": check_in.kiosk_id,
        "kiosk_name": check_in.kiosk_name,
        "detail": reason or "Photo did not pass validation",
    }
    return record_event(db, PHOTO_REJECTED, check_in.user_id, payload,
                        check_in_id=check_in.id, notifier=notifier)
