from sqlalchemy import Enum
from sqlalchemy.orm import declarative_base
from datetime import datetime, timezone
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class SyncStatus(str, enum.Enum):
    """Outcome of one ingestion execution"""
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class SyncType(str, enum.Enum):
    """Which path produced a sync log row"""
    GASBOT_WEBHOOK = "gasbot_webhook"
    MANUAL_DIP = "manual_dip"
    CONSUMPTION_RECALC = "consumption_recalc"
    GASBOT_SYNC = "gasbot_sync"


class AlertSeverity(str, enum.Enum):
    """Alert severity"""
    WARNING = "warning"
    CRITICAL = "critical"


class AlertType(str, enum.Enum):
    """Alert types raised by telemetry and manual dips"""
    LOW_BATTERY = "low_battery"
    LOW_FUEL = "low_fuel"
    CRITICAL_FUEL = "critical_fuel"
    DEVICE_OFFLINE = "device_offline"
    DIP_LOW = "dip_low"
    DIP_CRITICAL = "dip_critical"


class ConsumptionSource(str, enum.Enum):
    """Where an asset's consumption figures came from"""
    VENDOR = "vendor"
    CALCULATED = "calculated"


def value_enum(enum_cls, length: int = 32) -> Enum:
    """Enum column that stores member values ("low_fuel") rather than names"""
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
    )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
