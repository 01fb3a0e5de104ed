"""
Database initialization script
Run this to create tables and seed product schedules, a demo kiosk and users
"""
import sys
from decimal import Decimal
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from fieldclock.core.database import engine, Base, SessionLocal
from fieldclock.core.security import create_access_token
from fieldclock.models import User, UserRole, Kiosk, ProductSchedule
from fieldclock.services.schedules import default_schedules


def init_db():
    """Initialize database with tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Tables created successfully")


def seed_data():
    """Seed initial data"""
    db = SessionLocal()

    try:
        print("\nSeeding initial data...")

        for schedule_data in default_schedules():
            existing = db.query(ProductSchedule).filter(
                ProductSchedule.product_type == schedule_data["product_type"]
            ).first()
            if not existing:
                db.add(ProductSchedule(**schedule_data, is_active=True))
                print(f"✓ Schedule for {schedule_data['product_type']} created")

        kiosk = db.query(Kiosk).filter(Kiosk.id == "0001").first()
        if not kiosk:
            kiosk = Kiosk(
                id="0001",
                name="Aviva Centro",
                city="Ciudad de México",
                state="CDMX",
                product_type="Aviva_Contigo",
                latitude=Decimal("19.4326077"),
                longitude=Decimal("-99.1332080"),
                status="active",
            )
            db.add(kiosk)
            print("✓ Demo kiosk 0001 created")

        admin = db.query(User).filter(User.email == "admin@fieldclock.local").first()
        if not admin:
            admin = User(
                email="admin@fieldclock.local",
                name="System Administrator",
                role=UserRole.SUPER_ADMIN.value,
            )
            db.add(admin)
            print("✓ Admin user created")

        promotor = db.query(User).filter(User.email == "promotor@fieldclock.local").first()
        if not promotor:
            promotor = User(
                email="promotor@fieldclock.local",
                name="Demo Promotor",
                role=UserRole.PROMOTOR.value,
                product_type="Aviva_Contigo",
                assigned_kiosk_id="0001",
            )
            db.add(promotor)
            print("✓ Demo promotor created")

        db.commit()
        print("\n✓ Database seeded successfully!")
        return {"admin": admin.id, "promotor": promotor.id}

    except Exception as e:
        print(f"\n✗ Error seeding data: {e}")
        db.rollback()
        return {}
    finally:
        db.close()


if __name__ == "__main__":
    print("=" * 60)
    print("FieldClock - Database Initialization")
    print("=" * 60)

    init_db()
    users = seed_data()

    print("\n" + "=" * 60)
    print("Initialization complete!")
    print("=" * 60)
    print("\nYou can now access:")
    print("  - API: http://localhost:8000")
    print("  - API Docs: http://localhost:8000/docs")
    if users:
        print("\nDevelopment tokens:")
        print(f"  Admin    - {create_access_token(users['admin'])}")
        print(f"  Promotor - {create_access_token(users['promotor'])}")
    print("=" * 60)
