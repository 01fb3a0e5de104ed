import os

# Must be set before fieldclock is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ABSENCE_SCAN_ENABLED"] = "false"
os.environ["PHOTO_VALIDATION_ENABLED"] = "false"
os.environ["SLACK_WEBHOOK_URL"] = ""
os.environ["BUSINESS_TIMEZONE"] = "America/Mexico_City"

import pytest
import pytz
from datetime import date, datetime, time
from decimal import Decimal

from fieldclock.core.database import Base, SessionLocal, engine
from fieldclock.models import Kiosk, ProductSchedule, User

MX = pytz.timezone("America/Mexico_City")

# Tuesday
WORK_DAY = date(2025, 6, 10)
KIOSK_LAT = 19.4326
KIOSK_LNG = -99.1332


def local(hour, minute=0, day=WORK_DAY, second=0):
    """Aware datetime at a wall-clock time in the business zone."""
    return MX.localize(datetime.combine(day, time(hour, minute, second)))


def offset_north(meters):
    """Latitude that many meters north of the kiosk (1 deg lat ~ 111195 m)."""
    return KIOSK_LAT + meters / 111195.0


@pytest.fixture
def db():
    import fieldclock.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def schedule(db):
    row = ProductSchedule(
        product_type="Aviva_Contigo",
        work_days=[1, 2, 3, 4, 5, 6],
        works_on_holidays=False,
        entry_time=time(9, 0),
        exit_time=time(18, 0),
        lunch_start_time=time(14, 0),
        lunch_duration_minutes=60,
        tolerance_minutes=5,
        is_active=True,
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def kiosk(db):
    row = Kiosk(
        id="0001",
        name="Aviva Centro",
        city="Ciudad de México",
        state="CDMX",
        product_type="Aviva_Contigo",
        latitude=Decimal(str(KIOSK_LAT)),
        longitude=Decimal(str(KIOSK_LNG)),
        status="active",
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def promotor(db, kiosk):
    user = User(
        email="ana@example.com",
        name="Ana Promotora",
        role="promotor",
        status="active",
        product_type="Aviva_Contigo",
        assigned_kiosk_id=kiosk.id,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin(db):
    user = User(email="admin@example.com", name="Admin", role="admin", status="active")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def supervisor(db):
    user = User(email="sup@example.com", name="Sofia Supervisora", role="supervisor",
                status="active")
    db.add(user)
    db.commit()
    return user
