"""
Pydantic schema for the raw Gasbot webhook record.

Every field is optional and loosely typed: vendors send numbers as strings,
omit fields at random and add new ones without notice. The transformer owns
all missing-field policy, so nothing here rejects a record.
"""

from pydantic import BaseModel
from typing import Any, Optional


class GasbotPayload(BaseModel):
    """One tank record as pushed by the Gasbot dashboard"""

    # Location fields
    LocationId: Optional[Any] = None
    LocationGuid: Optional[Any] = None
    LocationAddress: Optional[Any] = None
    LocationState: Optional[Any] = None
    LocationPostcode: Optional[Any] = None
    LocationCountry: Optional[Any] = None
    LocationLat: Optional[Any] = None
    LocationLng: Optional[Any] = None
    LocationCategory: Optional[Any] = None
    LocationCalibratedFillLevel: Optional[Any] = None
    LocationDailyConsumption: Optional[Any] = None
    LocationDaysRemaining: Optional[Any] = None
    LocationInstallationStatus: Optional[Any] = None
    LocationDisabledStatus: Optional[Any] = None
    LocationLastCalibratedTelemetryTimestamp: Optional[Any] = None
    LocationLastCalibratedTelemetryEpoch: Optional[Any] = None

    # Customer fields
    TenancyName: Optional[Any] = None
    CustomerGuid: Optional[Any] = None

    # Asset/Tank fields
    AssetGuid: Optional[Any] = None
    AssetSerialNumber: Optional[Any] = None
    AssetDisabledStatus: Optional[Any] = None
    AssetProfileName: Optional[Any] = None
    AssetProfileGuid: Optional[Any] = None
    AssetProfileCommodity: Optional[Any] = None
    AssetProfileWaterCapacity: Optional[Any] = None
    AssetProfileMaxDepth: Optional[Any] = None
    AssetProfileMaxPressureBar: Optional[Any] = None
    AssetProfileMaxDisplayPercentageFill: Optional[Any] = None
    AssetReportedLitres: Optional[Any] = None
    AssetCalibratedFillLevel: Optional[Any] = None
    AssetRawFillLevel: Optional[Any] = None
    AssetRefillCapacityLitres: Optional[Any] = None
    AssetDepth: Optional[Any] = None
    AssetPressureBar: Optional[Any] = None
    AssetDailyConsumption: Optional[Any] = None
    AssetDaysRemaining: Optional[Any] = None
    AssetLastCalibratedTelemetryTimestamp: Optional[Any] = None
    AssetLastCalibratedTelemetryEpoch: Optional[Any] = None
    AssetLastRawTelemetryTimestamp: Optional[Any] = None
    AssetLastRawTelemetryEpoch: Optional[Any] = None
    AssetUpdatedTimestamp: Optional[Any] = None
    AssetUpdatedEpoch: Optional[Any] = None

    # Device fields
    DeviceGuid: Optional[Any] = None
    DeviceSerialNumber: Optional[Any] = None
    DeviceModel: Optional[Any] = None
    DeviceModelLabel: Optional[Any] = None
    DeviceSKU: Optional[Any] = None
    DeviceNetworkId: Optional[Any] = None
    DeviceOnline: Optional[Any] = None
    DeviceState: Optional[Any] = None
    DeviceBatteryVoltage: Optional[Any] = None
    DeviceTemperature: Optional[Any] = None
    DeviceSignalStrength: Optional[Any] = None
    DeviceActivationTimestamp: Optional[Any] = None
    DeviceActivationEpoch: Optional[Any] = None
    DeviceLastTelemetryTimestamp: Optional[Any] = None
    DeviceLastTelemetryEpoch: Optional[Any] = None
    HelmetSerialNumber: Optional[Any] = None

    class Config:
        extra = "allow"

    def raw(self) -> dict:
        """The record as delivered, for the raw_data audit column"""
        return self.dict(exclude_none=True)
