"""
Gasbot pull sync endpoint
"""

from fastapi import APIRouter, Depends, Request
import time
import logging

from api.dependencies import authenticate, get_gasbot_client, get_repository, get_settings, require_secret
from core.config import Settings
from core.exceptions import AuthenticationError, ConfigurationError
from ingestion.extractors.gasbot_api import GasbotApiClient, GasbotPullSync
from ingestion.repository import TelemetryRepository
from ingestion.runner import WebhookIngestionRunner
from models.base import SyncType, utcnow
from schemas.api import ErrorResponse, GasbotSyncResponse, GasbotSyncStats

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Webhooks"])


@router.post(
    "/sync/gasbot",
    response_model=GasbotSyncResponse,
    response_model_exclude_none=True,
    responses={503: {"model": ErrorResponse}}
)
async def gasbot_pull_sync(
    request: Request,
    repository: TelemetryRepository = Depends(get_repository),
    config: Settings = Depends(get_settings),
    client: GasbotApiClient = Depends(get_gasbot_client)
):
    """
    Pull every tank from the Gasbot dashboard API and ingest it.

    Returns 503 when the API cannot be read. Per-record failures are
    reported in `errors` exactly as for the webhook.
    """
    start = time.monotonic()
    started_at = utcnow()

    runner = WebhookIngestionRunner(
        repository,
        record_timeout=config.RECORD_TIMEOUT_SECONDS,
        batch_timeout=config.GASBOT_SYNC_BATCH_TIMEOUT_SECONDS,
        max_response_errors=config.MAX_RESPONSE_ERRORS,
        sync_log_error_limit=config.SYNC_LOG_ERROR_LIMIT,
        sync_log_error_max_chars=config.SYNC_LOG_ERROR_MAX_CHARS,
        sync_type=SyncType.GASBOT_SYNC,
    )

    try:
        authenticate(request.headers.get("Authorization"), require_secret(config))
    except (ConfigurationError, AuthenticationError) as e:
        await runner.write_failure_log(e.message, started_at, start)
        raise

    result = await GasbotPullSync(repository, client=client, runner=runner).run()

    return GasbotSyncResponse(
        success=not result.errors,
        results=GasbotSyncStats(
            locationsProcessed=result.processed_records,
            assetsProcessed=result.processed_records,
            readingsProcessed=result.processed_records,
            errorCount=result.error_count,
            duration=result.duration_ms,
        ),
        errors=result.errors[:config.MAX_RESPONSE_ERRORS] or None,
    )
