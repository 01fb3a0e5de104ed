"""Attendance issues API: listing, manual resolution, on-demand scans."""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fieldclock.core.database import SessionLocal, get_db
from fieldclock.core.exceptions import IssueAlreadyResolved, IssueNotFound
from fieldclock.core.security import get_current_user, require_admin
from fieldclock.models.attendance_issue import AttendanceIssue
from fieldclock.models.user import User
from fieldclock.schemas.admin import IssueResolve
from fieldclock.services.absence import AbsenceDetector
from fieldclock.services.ledger import list_issues, resolve_issue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/issues", tags=["issues"])


def _issue_to_dict(i: AttendanceIssue) -> dict:
    return {
        "id": i.id,
        "user_id": i.user_id,
        "user_name": i.user_name,
        "kiosk_id": i.kiosk_id,
        "kiosk_name": i.kiosk_name,
        "product_type": i.product_type,
        "date": i.date.isoformat(),
        "type": i.type,
        "expected_time": i.expected_time,
        "detected_at": i.detected_at.isoformat() if i.detected_at else None,
        "resolved": i.resolved,
        "resolved_by": i.resolved_by,
        "resolved_at": i.resolved_at.isoformat() if i.resolved_at else None,
        "resolution": i.resolution,
    }


@router.get("")
def get_issues(
    date: Optional[date] = None,
    resolved: Optional[bool] = None,
    user_id: Optional[int] = None,
    product_type: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_admin(current_user)
    issues = list_issues(db, day=date, resolved=resolved, user_id=user_id, product_type=product_type)
    return {"count": len(issues), "issues": [_issue_to_dict(i) for i in issues]}


@router.post("/{issue_id}/resolve")
def resolve(
    issue_id: int,
    payload: IssueResolve,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_admin(current_user)
    try:
        issue = resolve_issue(db, issue_id, current_user.name, payload.resolution)
    except IssueNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except IssueAlreadyResolved as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _issue_to_dict(issue)


@router.post("/scan")
def run_scan(current_user: User = Depends(get_current_user)):
    """Run the missed-checkpoint scan now instead of waiting for the scheduler."""
    require_admin(current_user)
    summary = AbsenceDetector(SessionLocal).run()
    logger.info(f"Manual absence scan by {current_user.name}: {summary.created_issues} issues")
    return summary.to_dict()


@router.get("/diagnostics")
def diagnostics(current_user: User = Depends(get_current_user)):
    require_admin(current_user)
    return AbsenceDetector(SessionLocal).diagnose()
