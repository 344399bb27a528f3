"""
Pydantic schemas for canonical telemetry entities with validation
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, Dict, Any
from datetime import datetime


class LocationInput(BaseModel):
    """
    Canonical location row produced from one vendor record.

    Ensures:
    - external_guid is present (idempotency key)
    - last telemetry timestamp is a UTC datetime
    """

    external_guid: str = Field(..., min_length=1, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    customer_name: str = "Unknown Customer"
    customer_guid: str = "customer-unknown"
    tenancy_name: Optional[str] = None

    # Address
    address: str = ""
    state: str = ""
    postcode: str = ""
    country: str = "Australia"
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Status
    installation_status: int = 0
    installation_status_label: str = "Offline"
    is_disabled: bool = False

    # Aggregates
    daily_consumption_liters: Optional[float] = None
    days_remaining: Optional[int] = None
    calibrated_fill_level: Optional[float] = None

    last_telemetry_at: datetime
    last_telemetry_epoch: Optional[int] = None

    @validator("name")
    def clean_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Location name cannot be empty after stripping")
        return v


class AssetInput(BaseModel):
    """Canonical asset row; current_level_percent is always within [0, 100]"""

    location_id: int
    external_guid: str = Field(..., min_length=1, max_length=255)

    # Identity
    name: str = "Unknown Asset"
    serial_number: Optional[str] = None
    profile_name: str = "Gasbot Tank"
    profile_guid: str = "profile-gasbot-tank"
    commodity: Optional[str] = None

    # Dimensions
    capacity_liters: Optional[float] = None
    max_depth_m: Optional[float] = None
    max_pressure_bar: Optional[float] = None
    max_display_percent: Optional[float] = None

    # Snapshot
    current_level_liters: Optional[float] = None
    current_level_percent: float = Field(0.0, ge=0, le=100)
    current_raw_percent: float = 0.0
    current_depth_m: Optional[float] = None
    current_pressure_bar: Optional[float] = None
    ullage_liters: Optional[float] = None

    # Vendor analytics
    daily_consumption_liters: Optional[float] = None
    days_remaining: Optional[int] = None

    # Device hardware
    device_guid: Optional[str] = None
    device_serial: Optional[str] = None
    device_model: Optional[int] = None
    device_model_name: Optional[str] = None
    device_sku: Optional[str] = None
    device_network_id: Optional[str] = None
    helmet_serial: Optional[str] = None

    # Device health
    is_online: bool = False
    is_disabled: bool = False
    device_state: Optional[str] = None
    battery_voltage: Optional[float] = None
    temperature_c: Optional[float] = None

    # Timestamps
    device_activated_at: Optional[datetime] = None
    device_activation_epoch: Optional[int] = None
    last_telemetry_at: datetime
    last_telemetry_epoch: Optional[int] = None
    last_raw_telemetry_at: Optional[datetime] = None
    last_raw_telemetry_epoch: Optional[int] = None
    last_calibrated_telemetry_at: Optional[datetime] = None
    last_calibrated_telemetry_epoch: Optional[int] = None
    asset_updated_at: Optional[datetime] = None
    asset_updated_epoch: Optional[int] = None

    raw_data: Dict[str, Any] = Field(default_factory=dict)


class ReadingInput(BaseModel):
    """Canonical append-only reading row"""

    asset_id: int

    level_liters: Optional[float] = None
    level_percent: float = Field(0.0, ge=0, le=100)
    raw_percent: float = 0.0
    depth_m: Optional[float] = None
    pressure_bar: Optional[float] = None

    is_online: bool = False
    battery_voltage: Optional[float] = None
    temperature_c: Optional[float] = None
    device_state: Optional[str] = None

    daily_consumption: Optional[float] = None
    days_remaining: Optional[int] = None

    reading_at: datetime
    telemetry_epoch: Optional[int] = None


class AssetState(BaseModel):
    """The stored asset fields the alert engine compares against"""

    id: int
    is_online: Optional[bool] = None
    battery_voltage: Optional[float] = None
    current_level_percent: Optional[float] = None
    days_remaining: Optional[int] = None

    class Config:
        from_attributes = True
