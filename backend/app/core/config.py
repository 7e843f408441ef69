from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Agency Commission Engine"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql://commission_user:commission_pass@db:5432/commission_db"

    # Security (tokens are issued by the identity service, we only verify them)
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24 hours
    SYSTEM_ADMIN_ROLE: str = "system_admin"

    # Commission rules
    DEFAULT_RULE_STATUS: str = "Active"
    UNCAPPED_RATE: int = 100  # ceiling used when no IRDAI cap resolves
    COMPLIANCE_HIGH_SEVERITY_EXCESS: int = 5  # percentage points over the cap
    AUDIT_LOG_LIMIT: int = 100

    # Seed master data + IRDAI caps on startup
    SEED_REFERENCE_DATA: bool = True

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
