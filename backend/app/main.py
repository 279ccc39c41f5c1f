import os
import logging
import traceback
from contextlib import asynccontextmanager
from decimal import Decimal
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.api import auth, invoices, commissions, agents, customers

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_TIER_SCHEDULE = [
    {"min_anp": Decimal("0"), "bonus_rate": Decimal("0"), "description": "Under 10K - no bonus"},
    {"min_anp": Decimal("10000"), "bonus_rate": Decimal("0.01"), "description": "10K - 1% bonus"},
    {"min_anp": Decimal("20000"), "bonus_rate": Decimal("0.02"), "description": "20K - 2% bonus"},
    {"min_anp": Decimal("50000"), "bonus_rate": Decimal("0.03"), "description": "50K+ - 3% bonus"},
]


def seed_database(db):
    """Seed the admin account and the default bonus tier schedule when missing."""
    from app.core.security import get_password_hash
    from app.models.user import User, UserRole
    from app.models.commission import CommissionTier

    if settings.SEED_ADMIN_PASSWORD:
        admin = db.query(User).filter(User.username == settings.SEED_ADMIN_USERNAME).first()
        if not admin:
            db.add(User(
                username=settings.SEED_ADMIN_USERNAME,
                full_name="System Administrator",
                hashed_password=get_password_hash(settings.SEED_ADMIN_PASSWORD),
                role=UserRole.ADMIN.value,
            ))
            logger.info("Admin user created")

    version = settings.COMMISSION_TIER_SCHEDULE
    has_schedule = db.query(CommissionTier).filter(CommissionTier.schedule_version == version).first()
    if not has_schedule:
        for tier_data in DEFAULT_TIER_SCHEDULE:
            db.add(CommissionTier(schedule_version=version, **tier_data))
            logger.info(f"Created tier {version}: {tier_data['description']}")

    db.commit()


def init_database():
    """Initialize database tables and seed data on startup."""
    from app.core.database import engine, Base, SessionLocal
    import app.models  # noqa: F401  ensure all tables are registered

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created successfully")

    db = SessionLocal()
    try:
        seed_database(db)
        logger.info("Database seeded successfully")
    except Exception as e:
        logger.error(f"Error seeding data: {e}")
        db.rollback()
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_database()
    yield


# Disable API docs in production
docs_url = "/docs" if settings.ENVIRONMENT != "production" else None
redoc_url = "/redoc" if settings.ENVIRONMENT != "production" else None

app = FastAPI(
    title=settings.APP_NAME,
    description="Invoice tracking, ANP aggregation and agent commission API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
)


# Global exception handler - always return JSON (never plain text)
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error("Unhandled exception: %s\n%s", exc, traceback.format_exc())
    return JSONResponse(
        status_code=500,
        content={"detail": f"Internal error: {str(exc)}"},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# CORS: local dev + configured frontend
allowed_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]
frontend_url = settings.FRONTEND_URL or os.environ.get("FRONTEND_URL", "")
if frontend_url and frontend_url not in allowed_origins:
    allowed_origins.append(frontend_url)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check():
    return {"status": "healthy"}


@app.get("/")
def root():
    return {"message": f"{settings.APP_NAME} API", "docs": docs_url}


# Include routers
app.include_router(auth.router)
app.include_router(invoices.router)
app.include_router(commissions.router)
app.include_router(agents.router)
app.include_router(customers.router)
