"""Manual resolution of detected attendance issues.

Resolution is one-way: the conditional UPDATE only matches unresolved rows,
so two concurrent resolvers cannot both succeed.
"""
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from fieldclock.core.clock import now_utc
from fieldclock.core.exceptions import IssueAlreadyResolved, IssueNotFound
from fieldclock.models.attendance_issue import AttendanceIssue

logger = logging.getLogger(__name__)


def resolve_issue(db: Session, issue_id: int, resolver_name: str,
                  resolution_note: Optional[str] = None) -> AttendanceIssue:
    updated = (
        db.query(AttendanceIssue)
        .filter(AttendanceIssue.id == issue_id, AttendanceIssue.resolved == False)
        .update(
            {
                AttendanceIssue.resolved: True,
                AttendanceIssue.resolved_by: resolver_name,
                AttendanceIssue.resolved_at: now_utc(),
                AttendanceIssue.resolution: resolution_note,
            },
            synchronize_session=False,
        )
    )
    if updated == 0:
        db.rollback()
        exists = db.query(AttendanceIssue.id).filter(AttendanceIssue.id == issue_id).first()
        if not exists:
            raise IssueNotFound(issue_id)
        raise IssueAlreadyResolved(issue_id)

    db.commit()
    issue = db.query(AttendanceIssue).filter(AttendanceIssue.id == issue_id).one()
    db.refresh(issue)
    logger.info(f"Attendance issue {issue_id} ({issue.type}, user {issue.user_id}) resolved by {resolver_name}")
    return issue


def list_issues(db: Session, day: Optional[date] = None, resolved: Optional[bool] = None,
                user_id: Optional[int] = None, product_type: Optional[str] = None,
                limit: int = 500) -> List[AttendanceIssue]:
    query = db.query(AttendanceIssue)
    if day:
        query = query.filter(AttendanceIssue.date == day)
    if resolved is not None:
        query = query.filter(AttendanceIssue.resolved == resolved)
    if user_id:
        query = query.filter(AttendanceIssue.user_id == user_id)
    if product_type:
        query = query.filter(AttendanceIssue.product_type == product_type)
    return query.order_by(AttendanceIssue.detected_at.desc(), AttendanceIssue.id.desc()).limit(limit).all()
