"""
Shape and sanity checks for Gasbot webhook bodies.

Only two things fail a record here: a record that is not a JSON object, and
a record with no way to identify its location or tank. Everything else is a
data quality warning that is logged and passed through to the transformer.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List
import logging

from core.exceptions import PayloadValidationError

logger = logging.getLogger(__name__)

# (vendor field, low, high, unit)
RANGE_CHECKS = [
    ("LocationLat", -90.0, 90.0, "degrees"),
    ("LocationLng", -180.0, 180.0, "degrees"),
    ("AssetCalibratedFillLevel", 0.0, 100.0, "%"),
    ("DeviceBatteryVoltage", 0.0, 20.0, "V"),
    ("DeviceTemperature", -50.0, 100.0, "C"),
    ("DeviceSignalStrength", -150.0, 0.0, "dBm"),
]

MAX_CAPACITY_LITRES = 1_000_000


@dataclass
class RecordInspection:
    """Outcome of inspecting one record"""
    index: int
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def split_batch(body: Any) -> List[Dict[str, Any]]:
    """
    Turn a decoded webhook body into a list of records.

    A single object becomes a one-element batch. Anything other than an
    object or a non-empty array raises PayloadValidationError.
    """
    if isinstance(body, dict):
        return [body]
    if isinstance(body, list):
        if not body:
            raise PayloadValidationError(
                "Payload array is empty",
                context={"received_type": "list", "length": 0}
            )
        return body
    raise PayloadValidationError(
        "Payload must be a JSON object or an array of objects",
        context={"received_type": type(body).__name__}
    )


def _number(value: Any):
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _present(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def inspect_record(record: Any, index: int) -> RecordInspection:
    """Collect blocking errors and data quality warnings for one record"""
    inspection = RecordInspection(index=index)

    if not isinstance(record, dict):
        inspection.errors.append(
            f"expected an object, got {type(record).__name__}"
        )
        return inspection

    if not (_present(record.get("LocationGuid")) or _present(record.get("LocationId"))):
        inspection.errors.append("missing LocationId and LocationGuid")

    if not (
        _present(record.get("AssetGuid"))
        or _present(record.get("AssetSerialNumber"))
        or _present(record.get("DeviceSerialNumber"))
    ):
        inspection.errors.append(
            "missing AssetGuid, AssetSerialNumber and DeviceSerialNumber"
        )

    for field_name, low, high, unit in RANGE_CHECKS:
        value = _number(record.get(field_name))
        if value is not None and not low <= value <= high:
            inspection.warnings.append(
                f"{field_name}={value} outside {low}..{high} {unit}"
            )

    capacity = _number(record.get("AssetProfileWaterCapacity"))
    if capacity is not None and (capacity <= 0 or capacity > MAX_CAPACITY_LITRES):
        inspection.warnings.append(f"AssetProfileWaterCapacity={capacity} is implausible")

    litres = _number(record.get("AssetReportedLitres"))
    if litres is not None and litres < 0:
        inspection.warnings.append(f"AssetReportedLitres={litres} is negative")

    online = record.get("DeviceOnline")
    if online is not None and not isinstance(online, bool) and online not in (0, 1):
        inspection.warnings.append(f"DeviceOnline={online!r} is not a boolean")

    for warning in inspection.warnings:
        logger.warning(f"[data-quality] Record {index}: {warning}")

    return inspection
