"""
Transform Gasbot webhook records into canonical Location / Asset / Reading inputs
"""

from typing import Any, Dict, List, Optional
import logging
import math
import re

from schemas.telemetry import AssetInput, LocationInput, ReadingInput
from schemas.vendor import GasbotPayload
from ingestion.timestamps import (
    epoch_to_int,
    normalize_timestamp,
    timestamp_to_epoch_ms,
)
from core.exceptions import MissingIdentifierError

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY = "Australia"
DEFAULT_DEVICE_MODEL = 43111
DEFAULT_DEVICE_MODEL_NAME = "Gasbot Cellular Tank Monitor"


def slugify(identifier: str) -> str:
    """Lower-case, hyphenate whitespace, drop anything but [a-z0-9-]"""
    slug = re.sub(r"\s+", "-", str(identifier).strip()).lower()
    return re.sub(r"[^a-z0-9-]", "", slug)


def derive_guid(prefix: str, identifier: Any) -> str:
    """
    Deterministic external GUID for entities the vendor gives no GUID.

    Raises:
        MissingIdentifierError: If nothing of the identifier survives slugging,
            since every such identifier would collapse onto one GUID
    """
    slug = slugify(identifier)
    if not slug.strip("-"):
        raise MissingIdentifierError(
            f"Identifier {identifier!r} has no usable characters",
            context={"entity": prefix, "identifier": str(identifier)}
        )
    return f"{prefix}-{slug}"


def split_address(text: Optional[str]) -> List[str]:
    """Split a free-text address on commas into trimmed tokens"""
    if not text:
        return []
    return [part.strip() for part in str(text).split(",")]


def derive_level_percent(
    calibrated: Optional[float],
    liters: Optional[float],
    capacity: Optional[float]
) -> float:
    """
    Fill percentage precedence: vendor calibrated value (including 0), else
    litres / capacity * 100 when both are positive, else 0. Clamped to [0, 100].
    """
    if calibrated is not None:
        level = calibrated
    elif liters is not None and liters > 0 and capacity is not None and capacity > 0:
        level = liters / capacity * 100
        logger.debug(f"Calculated level percent from litres: {level:.2f}% ({liters}L / {capacity}L)")
    else:
        level = 0.0
    return min(max(level, 0.0), 100.0)


def derive_raw_percent(
    raw: Optional[float],
    calibrated: Optional[float],
    level_percent: float
) -> float:
    """Raw percentage precedence: vendor raw, else vendor calibrated, else level"""
    if raw is not None:
        return raw
    if calibrated is not None:
        return calibrated
    return level_percent


class GasbotTransformer:
    """
    Map Gasbot records onto canonical inputs.

    Handles:
    - Vendor field names (PascalCase) to column names
    - Safe numeric parsing (invalid fields become None, never NaN)
    - Derived identifiers, fill percentages and address components
    - Timestamp normalization with epoch twins
    """

    def to_location(self, payload: GasbotPayload) -> LocationInput:
        """Build the location row for a vendor record"""
        location_name = self._clean_str(payload.LocationId)
        external_guid = self._clean_str(payload.LocationGuid)
        if not external_guid:
            if not location_name:
                raise MissingIdentifierError(
                    "Record has no location identifier",
                    context={"entity": "location", "fields": ["LocationGuid", "LocationId"]}
                )
            external_guid = derive_guid("location", location_name)

        tenancy = self._clean_str(payload.TenancyName)
        customer_guid = self._clean_str(payload.CustomerGuid) or (
            derive_guid("customer", tenancy) if tenancy and slugify(tenancy).strip("-") else "customer-unknown"
        )

        parts = split_address(payload.LocationAddress)
        online = self.parse_bool(payload.DeviceOnline)

        last_telemetry_at = normalize_timestamp(
            payload.LocationLastCalibratedTelemetryTimestamp
            or payload.AssetLastCalibratedTelemetryTimestamp,
            "location.last_telemetry_at"
        )

        installation_status = self.parse_int(payload.LocationInstallationStatus)
        if installation_status is None:
            installation_status = 1 if online else 0

        return LocationInput(
            external_guid=external_guid,
            name=location_name or "Unknown Location",
            customer_name=tenancy or "Unknown Customer",
            customer_guid=customer_guid,
            tenancy_name=tenancy,
            address=self._clean_str(payload.LocationAddress) or (parts[0] if parts else ""),
            state=parts[2] if len(parts) >= 3 else (self._clean_str(payload.LocationState) or ""),
            postcode=parts[3] if len(parts) >= 4 else (self._clean_str(payload.LocationPostcode) or ""),
            country=self._clean_str(payload.LocationCountry) or DEFAULT_COUNTRY,
            latitude=self._coordinate(payload.LocationLat, 90),
            longitude=self._coordinate(payload.LocationLng, 180),
            installation_status=installation_status,
            installation_status_label="Active" if online else "Offline",
            is_disabled=self.parse_bool(payload.LocationDisabledStatus),
            daily_consumption_liters=self.parse_float(payload.LocationDailyConsumption),
            days_remaining=self.parse_int(payload.LocationDaysRemaining),
            calibrated_fill_level=self.parse_float(payload.LocationCalibratedFillLevel),
            last_telemetry_at=last_telemetry_at,
            last_telemetry_epoch=(
                epoch_to_int(payload.LocationLastCalibratedTelemetryEpoch)
                or timestamp_to_epoch_ms(last_telemetry_at)
            ),
        )

    def to_asset(self, payload: GasbotPayload, location_id: int) -> AssetInput:
        """Build the asset row for a vendor record, owned by location_id"""
        serial = self._clean_str(payload.AssetSerialNumber)
        device_serial = self._clean_str(payload.DeviceSerialNumber)
        external_guid = self._clean_str(payload.AssetGuid)
        if not external_guid:
            identifier = serial or device_serial
            if not identifier:
                raise MissingIdentifierError(
                    "Record has no tank identifier",
                    context={
                        "entity": "asset",
                        "fields": ["AssetGuid", "AssetSerialNumber", "DeviceSerialNumber"]
                    }
                )
            external_guid = derive_guid("asset", identifier)

        liters = self.parse_float(payload.AssetReportedLitres)
        capacity = self.parse_float(payload.AssetProfileWaterCapacity)
        calibrated = self.parse_float(payload.AssetCalibratedFillLevel)
        level_percent = derive_level_percent(calibrated, liters, capacity)
        raw_percent = derive_raw_percent(
            self.parse_float(payload.AssetRawFillLevel), calibrated, level_percent
        )

        last_telemetry_at = normalize_timestamp(
            payload.AssetLastCalibratedTelemetryTimestamp, "asset.last_telemetry_at"
        )

        return AssetInput(
            location_id=location_id,
            external_guid=external_guid,
            name=serial or self._clean_str(payload.AssetProfileName) or "Unknown Asset",
            serial_number=serial or device_serial,
            profile_name=self._clean_str(payload.AssetProfileName) or "Gasbot Tank",
            profile_guid=self._clean_str(payload.AssetProfileGuid) or "profile-gasbot-tank",
            commodity=self._clean_str(payload.AssetProfileCommodity),
            capacity_liters=capacity,
            max_depth_m=self.parse_float(payload.AssetProfileMaxDepth),
            max_pressure_bar=self.parse_float(payload.AssetProfileMaxPressureBar),
            max_display_percent=self.parse_float(payload.AssetProfileMaxDisplayPercentageFill),
            current_level_liters=liters,
            current_level_percent=level_percent,
            current_raw_percent=raw_percent,
            current_depth_m=self.parse_float(payload.AssetDepth),
            current_pressure_bar=self.parse_float(payload.AssetPressureBar),
            ullage_liters=self.parse_float(payload.AssetRefillCapacityLitres),
            daily_consumption_liters=self.parse_float(payload.AssetDailyConsumption),
            days_remaining=self.parse_int(payload.AssetDaysRemaining),
            device_guid=self._clean_str(payload.DeviceGuid) or (
                f"device-{device_serial}" if device_serial else None
            ),
            device_serial=device_serial,
            device_model=self.parse_int(payload.DeviceModel) or DEFAULT_DEVICE_MODEL,
            device_model_name=self._clean_str(payload.DeviceModelLabel) or DEFAULT_DEVICE_MODEL_NAME,
            device_sku=self._clean_str(payload.DeviceSKU),
            device_network_id=self._clean_str(payload.DeviceNetworkId),
            helmet_serial=self._clean_str(payload.HelmetSerialNumber),
            is_online=self.parse_bool(payload.DeviceOnline),
            is_disabled=self.parse_bool(payload.AssetDisabledStatus),
            device_state=self._clean_str(payload.DeviceState),
            battery_voltage=self.parse_float(payload.DeviceBatteryVoltage),
            temperature_c=self.parse_float(payload.DeviceTemperature),
            device_activated_at=self._optional_timestamp(
                payload.DeviceActivationTimestamp, "asset.device_activated_at"
            ),
            device_activation_epoch=epoch_to_int(payload.DeviceActivationEpoch),
            last_telemetry_at=last_telemetry_at,
            last_telemetry_epoch=(
                epoch_to_int(payload.AssetLastCalibratedTelemetryEpoch)
                or timestamp_to_epoch_ms(last_telemetry_at)
            ),
            last_raw_telemetry_at=self._optional_timestamp(
                payload.AssetLastRawTelemetryTimestamp, "asset.last_raw_telemetry_at"
            ),
            last_raw_telemetry_epoch=epoch_to_int(payload.AssetLastRawTelemetryEpoch),
            last_calibrated_telemetry_at=self._optional_timestamp(
                payload.AssetLastCalibratedTelemetryTimestamp, "asset.last_calibrated_telemetry_at"
            ),
            last_calibrated_telemetry_epoch=epoch_to_int(payload.AssetLastCalibratedTelemetryEpoch),
            asset_updated_at=self._optional_timestamp(
                payload.AssetUpdatedTimestamp, "asset.asset_updated_at"
            ),
            asset_updated_epoch=epoch_to_int(payload.AssetUpdatedEpoch),
            raw_data=payload.raw(),
        )

    def to_reading(self, payload: GasbotPayload, asset_id: int) -> ReadingInput:
        """Build the append-only reading row for a vendor record"""
        liters = self.parse_float(payload.AssetReportedLitres)
        capacity = self.parse_float(payload.AssetProfileWaterCapacity)
        calibrated = self.parse_float(payload.AssetCalibratedFillLevel)
        level_percent = derive_level_percent(calibrated, liters, capacity)

        reading_at = normalize_timestamp(
            payload.AssetLastCalibratedTelemetryTimestamp, "reading.reading_at"
        )

        daily_consumption = self.parse_float(payload.AssetDailyConsumption)
        if daily_consumption is None:
            daily_consumption = self.parse_float(payload.LocationDailyConsumption)
        days_remaining = self.parse_int(payload.AssetDaysRemaining)
        if days_remaining is None:
            days_remaining = self.parse_int(payload.LocationDaysRemaining)

        return ReadingInput(
            asset_id=asset_id,
            level_liters=liters,
            level_percent=level_percent,
            raw_percent=derive_raw_percent(
                self.parse_float(payload.AssetRawFillLevel), calibrated, level_percent
            ),
            depth_m=self.parse_float(payload.AssetDepth),
            pressure_bar=self.parse_float(payload.AssetPressureBar),
            is_online=self.parse_bool(payload.DeviceOnline),
            battery_voltage=self.parse_float(payload.DeviceBatteryVoltage),
            temperature_c=self.parse_float(payload.DeviceTemperature),
            device_state=self._clean_str(payload.DeviceState),
            daily_consumption=daily_consumption,
            days_remaining=days_remaining,
            reading_at=reading_at,
            telemetry_epoch=(
                epoch_to_int(payload.AssetLastCalibratedTelemetryEpoch)
                or timestamp_to_epoch_ms(reading_at)
            ),
        )

    def transform(self, record: Dict[str, Any]) -> GasbotPayload:
        """Wrap a decoded JSON object in the vendor schema"""
        return GasbotPayload(**record)

    @staticmethod
    def parse_float(value: Any) -> Optional[float]:
        """Safely parse float value"""
        if value is None or value == "" or isinstance(value, bool):
            return None
        try:
            parsed = float(value)
        except (ValueError, TypeError):
            return None
        return parsed if math.isfinite(parsed) else None

    @staticmethod
    def parse_int(value: Any) -> Optional[int]:
        """Safely parse int value"""
        parsed = GasbotTransformer.parse_float(value)
        return int(parsed) if parsed is not None else None

    @staticmethod
    def parse_bool(value: Any) -> bool:
        """Vendor booleans arrive as true/false, 1/0 or strings"""
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value == 1
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes", "online")
        return False

    @staticmethod
    def _clean_str(value: Any) -> Optional[str]:
        if value is None or isinstance(value, bool):
            return None
        text = str(value).strip()
        return text or None

    def _coordinate(self, value: Any, limit: float) -> Optional[float]:
        parsed = self.parse_float(value)
        if parsed is None or not -limit <= parsed <= limit:
            return None
        return parsed

    @staticmethod
    def _optional_timestamp(value: Any, field_name: str) -> Optional[str]:
        if value is None or value == "":
            return None
        return normalize_timestamp(value, field_name)
