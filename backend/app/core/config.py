from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Agent Commission Admin"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql://commission_user:commission_pass@db:5432/commission_db"

    # Security
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12  # 12 hours

    # Seeded admin account (created on first startup only)
    SEED_ADMIN_USERNAME: str = "admin"
    SEED_ADMIN_PASSWORD: Optional[str] = None

    # Commission rules
    COMMISSION_BASIC_RATE: float = 0.03  # 3% of eligible amount
    COMMISSION_TIER_SCHEDULE: str = "2024-01"  # active tier schedule version

    # Frontend (CORS)
    FRONTEND_URL: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
