"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Any
from datetime import datetime, timezone
from models.base import SyncStatus, SyncType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Webhook Schemas
# ============================================================================

class WebhookStats(BaseModel):
    totalRecords: int
    processedRecords: int
    errorCount: int
    duration: int = Field(..., description="Processing time in milliseconds")


class WebhookResponse(BaseModel):
    """Body returned for a fully or partially processed delivery"""
    success: bool = True
    message: str = "Webhook processed successfully"
    stats: WebhookStats
    errors: Optional[List[str]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "message": "Webhook processed successfully",
                "stats": {
                    "totalRecords": 3,
                    "processedRecords": 2,
                    "errorCount": 1,
                    "duration": 184
                },
                "errors": [
                    "Record 2 (Depot North): missing AssetGuid, AssetSerialNumber and DeviceSerialNumber"
                ]
            }
        }


class WebhookFailureResponse(BaseModel):
    """Body returned when the delivery could not be processed at all"""
    success: bool = False
    error: str
    message: str
    duration: int


class GasbotSyncStats(BaseModel):
    locationsProcessed: int
    assetsProcessed: int
    readingsProcessed: int
    errorCount: int
    duration: int = Field(..., description="Processing time in milliseconds")


class GasbotSyncResponse(BaseModel):
    """Body returned by a pull sync that reached the Gasbot API"""
    success: bool
    message: str = "Gasbot data sync completed"
    results: GasbotSyncStats
    errors: Optional[List[str]] = None
    timestamp: datetime = Field(default_factory=_utcnow)


# ============================================================================
# Manual Dip Schemas
# ============================================================================

class DipEntry(BaseModel):
    tank_name: str = Field(..., min_length=1, max_length=255)
    dip_value: Any = Field(..., description="Level in litres")
    dip_date: Optional[Any] = None
    notes: Optional[str] = None

    @validator("tank_name")
    def clean_tank_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("tank_name cannot be blank")
        return v


class DipBatchRequest(BaseModel):
    dips: List[DipEntry] = Field(..., min_length=1)
    recorded_by: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "dips": [
                    {"tank_name": "Kewdale Diesel 1", "dip_value": 12500, "dip_date": "2024-01-15T08:00:00Z"}
                ],
                "recorded_by": "depot-operator"
            }
        }


class DipResult(BaseModel):
    tank_name: str
    success: bool
    dip_id: Optional[int] = None
    alerts_created: int = 0
    error: Optional[str] = None


class DipSummary(BaseModel):
    total: int
    succeeded: int
    failed: int
    alerts: int


class DipBatchResponse(BaseModel):
    success: bool
    results: List[DipResult]
    summary: DipSummary


# ============================================================================
# Consumption Schemas
# ============================================================================

class RecalculationResponse(BaseModel):
    success: bool = True
    processed: int
    updated: int
    skipped: int
    failed: int


# ============================================================================
# Sync Log Schemas
# ============================================================================

class SyncLogInfo(BaseModel):
    """Sync log row as shown to operators"""
    id: int
    sync_type: SyncType
    status: SyncStatus
    locations_processed: Optional[int] = 0
    assets_processed: Optional[int] = 0
    readings_processed: Optional[int] = 0
    alerts_triggered: Optional[int] = 0
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class SyncLogListResponse(BaseModel):
    items: List[SyncLogInfo]
    count: int


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    timestamp: datetime = Field(default_factory=_utcnow)
    database_connected: bool
    last_sync: Optional[SyncLogInfo] = None
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")

    @validator("status", pre=True, always=True)
    def determine_status(cls, v, values):
        """Determine overall health status"""
        if not values.get("database_connected", False):
            return "unhealthy"

        last_sync = values.get("last_sync")
        if last_sync is None:
            return "healthy"  # Nothing ingested yet

        if last_sync.status == SyncStatus.ERROR.value:
            return "degraded"
        return "healthy"

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "last_sync": {
                    "id": 42,
                    "sync_type": "gasbot_webhook",
                    "status": "success",
                    "locations_processed": 12,
                    "assets_processed": 12,
                    "readings_processed": 12,
                    "alerts_triggered": 1,
                    "duration_ms": 840,
                    "started_at": "2024-01-15T10:00:00Z",
                    "completed_at": "2024-01-15T10:00:01Z"
                }
            }
        }


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    message: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Unauthorized",
                "message": "Invalid or missing bearer token"
            }
        }
