# tenant_billing/core/config.py
from typing import List
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

# Locate the .env file relative to the project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(ENV_FILE), extra="ignore")

    # Application
    PROJECT_NAME: str = "Tenant Billing"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./tenant_billing.db"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    # Subscription lifecycle
    TRIAL_DAYS: int = 14
    BILLING_PERIOD_DAYS: int = 30
    OVERDUE_GRACE_DAYS: int = 7
    ENDING_SOON_DAYS: int = 5
    URGENT_DAYS: int = 2

    # Invoicing
    INVOICE_DUE_DAYS: int = 7
    RENEWAL_INVOICE_LEAD_DAYS: int = 5
    TRIAL_CONVERSION_LEAD_DAYS: int = 3
    SWEEP_INTERVAL_MINUTES: int = 60

    # Enforcement
    PAUSED_BLOCKS_ORDERS: bool = True
    TRIAL_PRODUCT_LIMIT: int = 10
    TRIAL_ORDER_LIMIT: int = 50
    TRIAL_STORAGE_LIMIT_MB: int = 100


settings = Settings()
