"""
Gasbot webhook endpoint
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
import time
import logging

from api.dependencies import authenticate, get_repository, get_settings, require_secret
from core.config import Settings
from core.exceptions import AuthenticationError, ConfigurationError, PayloadValidationError
from ingestion.repository import TelemetryRepository
from ingestion.runner import WebhookIngestionRunner
from models.base import utcnow
from schemas.api import WebhookFailureResponse, WebhookResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Webhooks"])

WEBHOOK_PATH = "/webhooks/gasbot"


def build_runner(repository, config: Settings) -> WebhookIngestionRunner:
    return WebhookIngestionRunner(
        repository,
        record_timeout=config.RECORD_TIMEOUT_SECONDS,
        batch_timeout=config.BATCH_TIMEOUT_SECONDS,
        max_response_errors=config.MAX_RESPONSE_ERRORS,
        sync_log_error_limit=config.SYNC_LOG_ERROR_LIMIT,
        sync_log_error_max_chars=config.SYNC_LOG_ERROR_MAX_CHARS,
    )


@router.api_route(
    WEBHOOK_PATH,
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False
)
async def webhook_method_not_allowed(request: Request):
    return JSONResponse(
        status_code=405,
        content={
            "error": "Method not allowed",
            "expected": "POST",
            "received": request.method,
        },
        headers={"Allow": "POST"},
    )


@router.post(
    WEBHOOK_PATH,
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    responses={500: {"model": WebhookFailureResponse}}
)
async def gasbot_webhook(
    request: Request,
    repository: TelemetryRepository = Depends(get_repository),
    config: Settings = Depends(get_settings)
):
    """
    Ingest one Gasbot delivery (a record object or an array of records).

    Returns 200 for full and partial success. Records that fail are listed
    in `errors` (first few only) and do not affect the others.
    """
    start = time.monotonic()
    started_at = utcnow()

    runner = build_runner(repository, config)

    try:
        secret = require_secret(config)
        authenticate(request.headers.get("Authorization"), secret)
    except (ConfigurationError, AuthenticationError) as e:
        await runner.write_failure_log(e.message, started_at, start)
        raise

    try:
        body = await request.json()
    except ValueError as e:
        error = PayloadValidationError(
            "Request body is not valid JSON",
            context={"content_type": request.headers.get("content-type")},
            original_exception=e
        )
        await runner.write_failure_log(error.message, started_at, start)
        raise error

    try:
        result = await runner.run(body)
    except PayloadValidationError:
        raise
    except Exception as e:
        duration = int((time.monotonic() - start) * 1000)
        logger.error(f"Webhook processing failed after {duration}ms: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "message": getattr(e, "message", None) or str(e),
                "duration": duration,
            },
        )

    return result.to_response()
