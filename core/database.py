"""
Database session management with SQLAlchemy async
"""

from typing import Dict
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool
from core.config import settings
from core.exceptions import ConfigurationError
import logging

logger = logging.getLogger(__name__)

# Engines are built lazily, one per URL, so importing this module never
# opens a connection.
_engines: Dict[str, AsyncEngine] = {}
_session_makers: Dict[str, async_sessionmaker] = {}


def get_engine(database_url: str) -> AsyncEngine:
    """Get (or create) the async engine for a database URL"""
    if not database_url:
        raise ConfigurationError(
            "Missing required environment variables for database connection",
            context={"setting": "DATABASE_URL"}
        )

    engine = _engines.get(database_url)
    if engine is None:
        engine = create_async_engine(
            database_url,
            echo=settings.ENVIRONMENT == "development",
            poolclass=NullPool,
            future=True
        )
        _engines[database_url] = engine
        logger.info("Database engine created")
    return engine


def get_session_maker(database_url: str) -> async_sessionmaker:
    """Get (or create) the session factory bound to a database URL"""
    maker = _session_makers.get(database_url)
    if maker is None:
        maker = async_sessionmaker(
            get_engine(database_url),
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False
        )
        _session_makers[database_url] = maker
    return maker


async def dispose_engines():
    """Dispose every engine created by this process"""
    for engine in _engines.values():
        await engine.dispose()
    _engines.clear()
    _session_makers.clear()
