"""
Database initialization script
Run this to create tables and seed initial data
"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from app.core.config import settings
from app.core.database import engine, Base, SessionLocal
from app.main import seed_database
import app.models  # noqa: F401


def init_db():
    """Initialize database with tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Tables created successfully")


def seed_data():
    """Seed admin account and default tier schedule"""
    db = SessionLocal()
    try:
        print("\nSeeding initial data...")
        seed_database(db)
        print(f"✓ Tier schedule {settings.COMMISSION_TIER_SCHEDULE} present")
        if settings.SEED_ADMIN_PASSWORD:
            print(f"✓ Admin user '{settings.SEED_ADMIN_USERNAME}' present")
        else:
            print("! SEED_ADMIN_PASSWORD not set, no admin user created")
        print("\n✓ Database seeded successfully!")
    except Exception as e:
        print(f"\n✗ Error seeding data: {e}")
        db.rollback()
    finally:
        db.close()


if __name__ == "__main__":
    print("=" * 60)
    print(f"{settings.APP_NAME} - Database Initialization")
    print("=" * 60)

    init_db()
    seed_data()

    print("\n" + "=" * 60)
    print("Initialization complete!")
    print("=" * 60)
    print("\nYou can now access:")
    print("  - API: http://localhost:8000")
    print("  - API Docs: http://localhost:8000/docs")
    print("=" * 60)
