"""
FastAPI dependencies: settings, database sessions, repositories and webhook auth
"""

from typing import AsyncGenerator, Optional
import hmac
import logging

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, settings
from core.database import get_session_maker
from core.exceptions import AuthenticationError, ConfigurationError
from ingestion.extractors.gasbot_api import GasbotApiClient
from ingestion.repository import TelemetryRepository

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def get_settings() -> Settings:
    return settings


async def get_db(config: Settings = Depends(get_settings)) -> AsyncGenerator[AsyncSession, None]:
    """Database session for one request; fails with ConfigurationError when unconfigured"""
    async with get_session_maker(config.DATABASE_URL)() as session:
        yield session


async def get_repository(db: AsyncSession = Depends(get_db)) -> TelemetryRepository:
    return TelemetryRepository(db)


def get_gasbot_client(config: Settings = Depends(get_settings)) -> GasbotApiClient:
    return GasbotApiClient(
        base_url=config.GASBOT_API_URL,
        api_key=config.GASBOT_API_KEY,
        api_secret=config.GASBOT_API_SECRET,
        timeout=config.GASBOT_API_TIMEOUT_SECONDS,
        max_retries=config.GASBOT_API_MAX_RETRIES,
    )


def require_secret(config: Settings) -> str:
    """The webhook secret, or ConfigurationError when it is not set"""
    if not config.WEBHOOK_SECRET:
        logger.error("WEBHOOK_SECRET is not configured; refusing webhook traffic")
        raise ConfigurationError(
            "Missing required environment variables for webhook authentication",
            context={"setting": "WEBHOOK_SECRET"}
        )
    return config.WEBHOOK_SECRET


def authenticate(authorization: Optional[str], secret: Optional[str]) -> None:
    """
    Check an Authorization header against the pre-shared secret.

    Raises:
        ConfigurationError: If no secret is configured (fail closed)
        AuthenticationError: If the header is missing or does not match
    """
    if not secret:
        raise ConfigurationError(
            "Webhook secret is not configured",
            context={"setting": "WEBHOOK_SECRET"}
        )

    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise AuthenticationError("Missing or invalid authorization header")

    token = authorization[len(BEARER_PREFIX):].strip()
    if not hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8")):
        raise AuthenticationError("Invalid webhook secret")
