from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from fieldclock.core.clock import as_utc, now_utc
from fieldclock.core.security import create_access_token
from fieldclock.main import app
from fieldclock.models import AttendanceIssue, CheckIn

from conftest import KIOSK_LAT, KIOSK_LNG, WORK_DAY, local, offset_north


@pytest.fixture
def client():
    return TestClient(app)


def auth(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def server_time(hour, minute=0):
    return patch("fieldclock.services.checkins.now_utc", return_value=as_utc(local(hour, minute)))


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_requires_token(client, db):
    assert client.get("/api/checkins/today").status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.get("/api/checkins/today", headers=bad).status_code == 401


def test_inactive_user_rejected(client, db, promotor):
    promotor.status = "inactive"
    db.commit()
    assert client.get("/api/checkins/today", headers=auth(promotor)).status_code == 401


def test_submit_check_in(client, db, schedule, promotor):
    with server_time(9, 4):
        resp = client.post("/api/checkins", headers=auth(promotor), json={
            "kiosk_id": "0001",
            "type": "entry",
            "latitude": offset_north(80),
            "longitude": KIOSK_LNG,
            "accuracy": 12.5,
        })
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "on_time"
    assert body["location_valid"] is True
    assert body["minutes_late"] == 0
    assert body["work_date"] == WORK_DAY.isoformat()


def test_late_without_note_returns_422(client, db, schedule, promotor):
    with server_time(9, 12):
        resp = client.post("/api/checkins", headers=auth(promotor), json={
            "kiosk_id": "0001", "type": "entry", "latitude": KIOSK_LAT, "longitude": KIOSK_LNG,
        })
    assert resp.status_code == 422
    detail = resp.json()["detail"]
    assert detail["min_length"] == 10
    assert detail["minutes_late"] == 7
    assert db.query(CheckIn).count() == 0


def test_device_time_is_ignored(client, db, schedule, promotor):
    with server_time(10, 30):
        resp = client.post("/api/checkins", headers=auth(promotor), json={
            "kiosk_id": "0001", "type": "entry", "latitude": KIOSK_LAT, "longitude": KIOSK_LNG,
            "notes": "Se descompuso el camión",
            "timestamp": local(9, 0).isoformat(),
        })
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "late"
    assert body["minutes_late"] == 85
    assert body["timestamp"].startswith("2025-06-10T16:30")

    db.refresh(promotor)
    assert promotor.total_late_minutes == 85


def test_unknown_kiosk_returns_404(client, db, schedule, promotor):
    resp = client.post("/api/checkins", headers=auth(promotor), json={
        "kiosk_id": "9999", "type": "entry", "latitude": KIOSK_LAT, "longitude": KIOSK_LNG,
    })
    assert resp.status_code == 404


def test_admin_listing_requires_admin(client, db, promotor, admin):
    assert client.get("/api/checkins", headers=auth(promotor)).status_code == 403
    resp = client.get("/api/checkins", headers=auth(admin), params={"kiosk_id": "0001"})
    assert resp.status_code == 200
    assert resp.json()["primary_filter"] == "kiosk"


def test_photo_review_roles(client, db, schedule, promotor, supervisor):
    with server_time(9, 0):
        client.post("/api/checkins", headers=auth(promotor), json={
            "kiosk_id": "0001", "type": "entry", "latitude": KIOSK_LAT, "longitude": KIOSK_LNG,
            "photo_url": "checkins/0001/a.jpg",
        })
    check_in = db.query(CheckIn).one()

    denied = client.post(f"/api/checkins/{check_in.id}/photo-review", headers=auth(promotor),
                         json={"approved": True})
    assert denied.status_code == 403

    ok = client.post(f"/api/checkins/{check_in.id}/photo-review", headers=auth(supervisor),
                     json={"approved": False, "notes": "No se ve el logo"})
    assert ok.status_code == 200
    assert ok.json()["photo_validation"]["status"] == "rejected"


def test_resolve_issue_conflict(client, db, promotor, admin):
    issue = AttendanceIssue(user_id=promotor.id, user_name=promotor.name, date=WORK_DAY,
                            type="no_entry", expected_time="09:00", detected_at=now_utc())
    db.add(issue)
    db.commit()

    first = client.post(f"/api/issues/{issue.id}/resolve", headers=auth(admin),
                        json={"resolution": "Permiso verbal del supervisor"})
    assert first.status_code == 200
    assert first.json()["resolved"] is True
    assert first.json()["resolved_by"] == "Admin"

    second = client.post(f"/api/issues/{issue.id}/resolve", headers=auth(admin), json={})
    assert second.status_code == 409
    missing = client.post("/api/issues/999/resolve", headers=auth(admin), json={})
    assert missing.status_code == 404


def test_issue_listing_and_diagnostics(client, db, schedule, promotor, admin):
    listing = client.get("/api/issues", headers=auth(admin), params={"resolved": "false"})
    assert listing.status_code == 200
    assert listing.json()["count"] == 0

    report = client.get("/api/issues/diagnostics", headers=auth(admin))
    assert report.status_code == 200
    assert report.json()["configured_schedules"] == ["Aviva_Contigo"]


def test_schedule_admin(client, db, admin):
    payload = {
        "work_days": [1, 2, 3, 4, 5, 6],
        "entry_time": "08:00",
        "exit_time": "17:00",
        "lunch_start_time": "13:00",
        "lunch_duration_minutes": 60,
        "tolerance_minutes": 5,
    }
    resp = client.put("/api/schedules/Construrama", headers=auth(admin), json=payload)
    assert resp.status_code == 200
    assert resp.json()["entry_time"] == "08:00"

    bad = client.put("/api/schedules/Construrama", headers=auth(admin),
                     json={**payload, "lunch_duration_minutes": 200})
    assert bad.status_code == 422

    assert client.get("/api/schedules/Construrama", headers=auth(admin)).json()["lunch_start_time"] == "13:00"
    assert client.get("/api/schedules/Disensa", headers=auth(admin)).status_code == 404
    assert [s["product_type"] for s in client.get("/api/schedules", headers=auth(admin)).json()] == ["Construrama"]


def test_holidays(client, db, admin):
    resp = client.post("/api/schedules/holidays", headers=auth(admin), json={
        "name": "Día de la Independencia", "date": "2025-09-16", "type": "official",
    })
    assert resp.status_code == 201
    holidays = client.get("/api/schedules/holidays", headers=auth(admin), params={"year": 2025}).json()
    assert [h["name"] for h in holidays] == ["Día de la Independencia"]


def test_kiosk_lifecycle(client, db, admin):
    created = client.post("/api/kiosks", headers=auth(admin), json={
        "id": "0007", "name": "Disensa Puebla", "city": "Puebla", "state": "PUE",
        "product_type": "Disensa", "latitude": 19.0414, "longitude": -98.2063,
    })
    assert created.status_code == 201

    bad_radius = client.put("/api/kiosks/0007", headers=auth(admin), json={"radius_override": 20})
    assert bad_radius.status_code == 422

    updated = client.put("/api/kiosks/0007", headers=auth(admin), json={"radius_override": 250})
    assert updated.json()["radius_override"] == 250

    deactivated = client.post("/api/kiosks/0007/deactivate", headers=auth(admin))
    assert deactivated.json()["status"] == "inactive"
    assert client.get("/api/kiosks", headers=auth(admin)).json() == []
    assert len(client.get("/api/kiosks", headers=auth(admin), params={"include_inactive": True}).json()) == 1


def test_time_off_flow(client, db, promotor, admin):
    created = client.post("/api/time-off", headers=auth(promotor), json={
        "type": "aviva_day", "start_date": "2025-06-10", "end_date": "2025-06-10",
    })
    assert created.status_code == 201
    request_id = created.json()["id"]

    invalid = client.post("/api/time-off", headers=auth(promotor), json={
        "type": "aviva_day", "start_date": "2025-06-10", "end_date": "2025-06-12",
    })
    assert invalid.status_code == 422

    assert client.post(f"/api/time-off/{request_id}/review", headers=auth(promotor),
                       json={"approved": True}).status_code == 403
    approved = client.post(f"/api/time-off/{request_id}/review", headers=auth(admin), json={"approved": True})
    assert approved.json()["status"] == "approved"
    again = client.post(f"/api/time-off/{request_id}/review", headers=auth(admin), json={"approved": True})
    assert again.status_code == 409
