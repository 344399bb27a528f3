"""
PostgreSQL persistence for telemetry, alerts, dips and sync logs.

Locations and assets are upserted on external_guid (INSERT ... ON CONFLICT
DO UPDATE) so repeated delivery never duplicates them. Readings and dips are
plain appends. Alerts are inserted with ON CONFLICT DO NOTHING against the
partial unique indexes on active alerts.

The repository never commits on its own; the caller owns the unit of work.
"""

from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy import func, select, text, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models import (
    Alert, Asset, DipReading, Location, Reading, SyncLog, Tank
)
from models.base import AlertType, ConsumptionSource, utcnow
from schemas.analytics import AlertEvent
from schemas.telemetry import AssetInput, AssetState, LocationInput, ReadingInput
from core.exceptions import InsertError, UpsertError

logger = logging.getLogger(__name__)

# Columns an upsert must never overwrite
_IMMUTABLE_COLUMNS = {"id", "external_guid", "created_at"}


def _update_set(stmt, row: dict) -> dict:
    """SET clause taking every supplied column from EXCLUDED"""
    set_ = {
        key: getattr(stmt.excluded, key)
        for key in row
        if key not in _IMMUTABLE_COLUMNS
    }
    set_["updated_at"] = func.now()
    return set_


class TelemetryRepository:
    """
    Data access for the ingestion pipeline.

    Ensures:
    - Idempotent location/asset writes keyed on external_guid
    - Append-only readings and dips
    - At most one active alert per (owner, alert_type)
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ------------------------------------------------------------------
    # Units of work
    # ------------------------------------------------------------------

    async def commit(self):
        await self.db.commit()

    async def rollback(self):
        await self.db.rollback()

    def savepoint(self):
        """SAVEPOINT for best-effort writes: `async with repo.savepoint():`"""
        return self.db.begin_nested()

    async def ping(self):
        await self.db.execute(text("SELECT 1"))

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    async def upsert_location(self, location: LocationInput) -> int:
        """Insert or update a location by external_guid, returning its id"""
        row = location.dict()
        stmt = insert(Location).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=["external_guid"],
            set_=_update_set(stmt, row)
        ).returning(Location.id)

        try:
            result = await self.db.execute(stmt)
            location_id = result.scalar_one()
        except SQLAlchemyError as e:
            raise UpsertError(
                "Location upsert failed",
                context={"table_name": "ta_agbot_locations", "external_guid": location.external_guid},
                original_exception=e
            )

        logger.debug(f"Upserted location {location.external_guid} (id={location_id})")
        return location_id

    async def upsert_asset(self, asset: AssetInput) -> int:
        """Insert or update an asset by external_guid, returning its id"""
        row = asset.dict()
        # Fresh vendor figures replace any earlier calculated override
        row["consumption_source"] = ConsumptionSource.VENDOR.value
        row["consumption_confidence"] = None

        stmt = insert(Asset).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=["external_guid"],
            set_=_update_set(stmt, row)
        ).returning(Asset.id)

        try:
            result = await self.db.execute(stmt)
            asset_id = result.scalar_one()
        except SQLAlchemyError as e:
            raise UpsertError(
                "Asset upsert failed",
                context={"table_name": "ta_agbot_assets", "external_guid": asset.external_guid},
                original_exception=e
            )

        logger.debug(f"Upserted asset {asset.external_guid} (id={asset_id})")
        return asset_id

    async def get_asset_state(self, external_guid: str) -> Optional[AssetState]:
        """Stored alert-relevant fields of an asset, or None if never seen"""
        result = await self.db.execute(
            select(
                Asset.id,
                Asset.is_online,
                Asset.battery_voltage,
                Asset.current_level_percent,
                Asset.days_remaining,
            ).where(Asset.external_guid == external_guid)
        )
        row = result.first()
        if row is None:
            return None
        return AssetState(
            id=row.id,
            is_online=row.is_online,
            battery_voltage=row.battery_voltage,
            current_level_percent=row.current_level_percent,
            days_remaining=row.days_remaining,
        )

    async def insert_reading(self, reading: ReadingInput) -> int:
        """Append one reading (never an upsert)"""
        stmt = insert(Reading).values(**reading.dict()).returning(Reading.id)
        try:
            result = await self.db.execute(stmt)
            return result.scalar_one()
        except SQLAlchemyError as e:
            raise InsertError(
                "Reading insert failed",
                context={"table_name": "ta_agbot_readings", "asset_id": reading.asset_id},
                original_exception=e
            )

    async def recent_readings(self, asset_id: int, since: datetime) -> List[Reading]:
        """Readings for an asset since a point in time, oldest first"""
        result = await self.db.execute(
            select(Reading)
            .where(Reading.asset_id == asset_id, Reading.reading_at >= since)
            .order_by(Reading.reading_at.asc())
        )
        return list(result.scalars().all())

    async def update_asset_consumption(
        self,
        asset_id: int,
        daily_consumption_liters: Optional[float],
        days_remaining: Optional[int],
        confidence: Optional[str] = None
    ):
        """Overwrite vendor consumption figures with a calculated estimate"""
        await self.db.execute(
            update(Asset)
            .where(Asset.id == asset_id)
            .values(
                daily_consumption_liters=daily_consumption_liters,
                days_remaining=days_remaining,
                consumption_source=ConsumptionSource.CALCULATED,
                consumption_confidence=confidence,
                updated_at=utcnow(),
            )
        )

    async def list_active_assets(self) -> List[Asset]:
        """Assets whose location is not disabled"""
        result = await self.db.execute(
            select(Asset)
            .join(Location, Asset.location_id == Location.id)
            .where(Location.is_disabled.is_(False))
            .order_by(Asset.id)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def has_active_alert(
        self,
        alert_type: AlertType,
        asset_id: Optional[int] = None,
        tank_id: Optional[int] = None
    ) -> bool:
        query = select(Alert.id).where(
            Alert.alert_type == alert_type,
            Alert.is_active.is_(True)
        )
        if asset_id is not None:
            query = query.where(Alert.asset_id == asset_id)
        else:
            query = query.where(Alert.tank_id == tank_id)

        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def insert_alert(self, event: AlertEvent) -> bool:
        """
        Insert an active alert.

        Returns:
            False when an active alert of the same type already existed
        """
        stmt = insert(Alert).values(
            **event.dict(),
            is_active=True,
            triggered_at=utcnow(),
        )
        if event.asset_id is not None:
            stmt = stmt.on_conflict_do_nothing(
                index_elements=["asset_id", "alert_type"],
                index_where=text("is_active AND asset_id IS NOT NULL")
            )
        else:
            stmt = stmt.on_conflict_do_nothing(
                index_elements=["tank_id", "alert_type"],
                index_where=text("is_active AND tank_id IS NOT NULL")
            )

        try:
            result = await self.db.execute(stmt.returning(Alert.id))
        except SQLAlchemyError as e:
            raise InsertError(
                "Alert insert failed",
                context={"table_name": "ta_agbot_alerts", "alert_type": event.alert_type.value},
                original_exception=e
            )
        return result.scalar_one_or_none() is not None

    # ------------------------------------------------------------------
    # Manual dips
    # ------------------------------------------------------------------

    async def get_tank(self, tank_id: int) -> Optional[Tank]:
        return await self.db.get(Tank, tank_id)

    async def find_tank_by_name(self, name: str) -> Optional[Tank]:
        """Case-insensitive exact name lookup"""
        result = await self.db.execute(
            select(Tank).where(func.lower(Tank.name) == name.strip().lower()).limit(1)
        )
        return result.scalar_one_or_none()

    async def list_tanks(self) -> List[Tank]:
        result = await self.db.execute(select(Tank).order_by(Tank.id))
        return list(result.scalars().all())

    async def insert_dip(
        self,
        tank_id: int,
        value_liters: float,
        dipped_at: datetime,
        recorded_by: Optional[str] = None,
        notes: Optional[str] = None
    ) -> int:
        stmt = insert(DipReading).values(
            tank_id=tank_id,
            value_liters=value_liters,
            dipped_at=dipped_at,
            recorded_by=recorded_by,
            notes=notes,
        ).returning(DipReading.id)
        try:
            result = await self.db.execute(stmt)
            return result.scalar_one()
        except SQLAlchemyError as e:
            raise InsertError(
                "Dip insert failed",
                context={"table_name": "dip_readings", "tank_id": tank_id},
                original_exception=e
            )

    async def update_tank_level(
        self,
        tank_id: int,
        level_liters: float,
        level_percent: float,
        dipped_at: datetime
    ):
        await self.db.execute(
            update(Tank)
            .where(Tank.id == tank_id)
            .values(
                current_level_liters=level_liters,
                current_level_percent=level_percent,
                last_dip_at=dipped_at,
                updated_at=utcnow(),
            )
        )

    # ------------------------------------------------------------------
    # Sync log
    # ------------------------------------------------------------------

    async def write_sync_log(self, **fields) -> SyncLog:
        """Add one sync log row; the caller commits"""
        log = SyncLog(**fields)
        self.db.add(log)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            raise InsertError(
                "Sync log insert failed",
                context={"table_name": "ta_agbot_sync_log"},
                original_exception=e
            )
        return log

    async def latest_sync_log(self) -> Optional[SyncLog]:
        result = await self.db.execute(
            select(SyncLog).order_by(SyncLog.started_at.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def list_sync_logs(self, limit: int = 20) -> List[SyncLog]:
        result = await self.db.execute(
            select(SyncLog).order_by(SyncLog.started_at.desc()).limit(limit)
        )
        return list(result.scalars().all())
