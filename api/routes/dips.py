"""
Manual dip endpoint
"""

from fastapi import APIRouter, Depends, Request
import logging

from api.dependencies import authenticate, get_repository, get_settings, require_secret
from core.config import Settings
from ingestion.dips import DipBatchProcessor
from ingestion.repository import TelemetryRepository
from schemas.api import DipBatchRequest, DipBatchResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Dips"])


@router.post("/dips", response_model=DipBatchResponse)
async def record_dips(
    payload: DipBatchRequest,
    request: Request,
    repository: TelemetryRepository = Depends(get_repository),
    config: Settings = Depends(get_settings)
):
    """
    Record a batch of manual dips.

    Each entry is resolved by tank name and recorded independently; one bad
    entry does not stop the rest.
    """
    authenticate(request.headers.get("Authorization"), require_secret(config))

    processor = DipBatchProcessor(repository)
    batch = await processor.process(
        [entry.dict() for entry in payload.dips],
        recorded_by=payload.recorded_by
    )
    return batch.to_response()
