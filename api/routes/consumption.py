"""
On-demand consumption recalculation
"""

from fastapi import APIRouter, Depends, Request

from api.dependencies import authenticate, get_repository, get_settings, require_secret
from core.config import Settings
from ingestion.repository import TelemetryRepository
from ingestion.scheduler import run_consumption_recalculation
from schemas.api import RecalculationResponse

router = APIRouter(tags=["Consumption"])


@router.post("/consumption/recalculate", response_model=RecalculationResponse)
async def recalculate_consumption(
    request: Request,
    repository: TelemetryRepository = Depends(get_repository),
    config: Settings = Depends(get_settings)
):
    """Re-estimate consumption for every asset on an enabled location"""
    authenticate(request.headers.get("Authorization"), require_secret(config))

    stats = await run_consumption_recalculation(
        repository, lookback_days=config.CONSUMPTION_LOOKBACK_DAYS
    )
    return RecalculationResponse(**stats)
