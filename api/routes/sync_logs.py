"""
Sync log listing for operators
"""

from fastapi import APIRouter, Depends, Query
from api.dependencies import get_repository
from ingestion.repository import TelemetryRepository
from schemas.api import SyncLogInfo, SyncLogListResponse

router = APIRouter(tags=["Sync Logs"])


@router.get("/sync-logs", response_model=SyncLogListResponse)
async def list_sync_logs(
    limit: int = Query(20, ge=1, le=200, description="Number of most recent rows"),
    repository: TelemetryRepository = Depends(get_repository)
):
    logs = await repository.list_sync_logs(limit=limit)
    items = [SyncLogInfo.from_orm(log) for log in logs]
    return SyncLogListResponse(items=items, count=len(items))
