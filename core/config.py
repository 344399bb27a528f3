"""
Application configuration using Pydantic Settings
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Database
    DATABASE_URL: Optional[str] = None

    # Webhook authentication (pre-shared bearer secret)
    WEBHOOK_SECRET: Optional[str] = None

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Ingestion deadlines (seconds)
    RECORD_TIMEOUT_SECONDS: float = 10.0
    BATCH_TIMEOUT_SECONDS: float = 25.0

    # Reporting
    MAX_RESPONSE_ERRORS: int = 5
    SYNC_LOG_ERROR_LIMIT: int = 3
    SYNC_LOG_ERROR_MAX_CHARS: int = 1000

    # Consumption analytics
    CONSUMPTION_LOOKBACK_DAYS: int = 7
    CONSUMPTION_RECALC_MINUTES: int = 60
    ENABLE_SCHEDULER: bool = False

    # Gasbot dashboard API (pull sync)
    GASBOT_API_URL: str = "https://dashboard2-production.prod.gasbot.io"
    GASBOT_API_KEY: Optional[str] = None
    GASBOT_API_SECRET: Optional[str] = None
    GASBOT_API_TIMEOUT_SECONDS: float = 30.0
    GASBOT_API_MAX_RETRIES: int = 3
    GASBOT_SYNC_BATCH_TIMEOUT_SECONDS: float = 300.0
    GASBOT_SYNC_MINUTES: int = 60
    ENABLE_GASBOT_SYNC: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
