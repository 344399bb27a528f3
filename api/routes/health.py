"""
Health check endpoint with database and last sync status
"""

from fastapi import APIRouter, Depends
from api.dependencies import get_repository
from ingestion.repository import TelemetryRepository
from schemas.api import HealthCheckResponse, SyncLogInfo
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(repository: TelemetryRepository = Depends(get_repository)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - The most recent sync log row
    """

    # Check database connectivity
    db_connected = False

    try:
        await repository.ping()
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    last_sync = None
    if db_connected:
        try:
            latest = await repository.latest_sync_log()
            if latest is not None:
                last_sync = SyncLogInfo.from_orm(latest)
        except Exception as e:
            logger.error(f"Failed to fetch latest sync log: {str(e)}")

    # Status is derived by the HealthCheckResponse validator
    return HealthCheckResponse(
        database_connected=db_connected,
        last_sync=last_sync,
    )
