"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class and shared enums (SyncStatus, AlertType, ...)
    location: Customer sites keyed by external_guid
    asset: Tanks/sensors keyed by external_guid, owned by a location
    reading: Append-only telemetry history per asset
    alert: Threshold alerts with one active row per (owner, type)
    sync_log: One audit row per ingestion execution
    tank: Manually dipped tanks and their dip history

Relationships:
    - Location → Asset (one-to-many, cascade)
    - Asset → Reading (one-to-many, append-only)
    - Asset / Tank → Alert (one-to-many)
    - Tank → DipReading (one-to-many, append-only)

Importing this package registers every table on Base.metadata.
"""

from models.base import (
    Base,
    SyncStatus,
    SyncType,
    AlertSeverity,
    AlertType,
    ConsumptionSource,
)
from models.location import Location
from models.asset import Asset
from models.reading import Reading
from models.tank import Tank, DipReading
from models.alert import Alert
from models.sync_log import SyncLog

__all__ = [
    "Base",
    "SyncStatus",
    "SyncType",
    "AlertSeverity",
    "AlertType",
    "ConsumptionSource",
    "Location",
    "Asset",
    "Reading",
    "Tank",
    "DipReading",
    "Alert",
    "SyncLog",
]
