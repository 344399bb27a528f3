"""
Manual dip ingestion.

A dip is a single operator-entered level for a tank with no telemetry
hardware. It is bounds-checked against the tank capacity, appended to the
dip history, copied onto the tank snapshot, and checked against the two
dip alert tiers using the same check-then-insert discipline as telemetry.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging
import math
import re
import time

from ingestion.alerts import AlertEngine
from ingestion.timestamps import normalize_timestamp
from models.base import SyncStatus, SyncType, utcnow
from core.exceptions import (
    AnalyticsError,
    DipRecordingError,
    DipValidationError,
    TankNotFoundError,
    TelemetryException,
)

logger = logging.getLogger(__name__)


@dataclass
class DipOutcome:
    tank_id: int
    dip_id: int
    level_percent: float
    alerts_created: int = 0


def _normalize_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


class TankNameMatcher:
    """
    Resolve a free-text tank name to a tank id.

    Tries an exact case-insensitive match first, then a match ignoring
    spaces and punctuation ("Tank #1" == "tank 1"). Ambiguous loose matches
    resolve to nothing.
    """

    def __init__(self, repository):
        self.repository = repository

    async def resolve(self, tank_name: str) -> Optional[int]:
        if not tank_name or not tank_name.strip():
            return None

        tank = await self.repository.find_tank_by_name(tank_name)
        if tank is not None:
            return tank.id

        wanted = _normalize_name(tank_name)
        matches = [t for t in await self.repository.list_tanks() if _normalize_name(t.name) == wanted]
        if len(matches) == 1:
            return matches[0].id
        if len(matches) > 1:
            logger.warning(f"Tank name '{tank_name}' matches {len(matches)} tanks, not resolving")
        return None


class ManualDipRecorder:
    """Record one dip and raise dip alerts"""

    def __init__(self, repository, alert_engine: Optional[AlertEngine] = None):
        self.repository = repository
        self.alert_engine = alert_engine or AlertEngine(repository)

    async def record(
        self,
        tank_id: int,
        value: Any,
        dip_date: Any = None,
        recorded_by: Optional[str] = None,
        notes: Optional[str] = None
    ) -> DipOutcome:
        """
        Validate, append and snapshot one dip, then evaluate dip alerts.

        The dip and the snapshot are committed together. Alerts ride in a
        savepoint and are dropped, with a warning, if they fail.

        Raises:
            TankNotFoundError: If the tank id is unknown
            DipValidationError: If the value is not a number within [0, capacity]
        """
        tank = await self.repository.get_tank(tank_id)
        if tank is None:
            raise TankNotFoundError(f"Tank {tank_id} not found", context={"tank_id": tank_id})

        value_liters = self._parse_value(value, tank_id)
        capacity = tank.capacity_liters
        if value_liters < 0 or (capacity is not None and value_liters > capacity):
            raise DipValidationError(
                f"Dip value {value_liters:g}L outside 0..{capacity}L",
                context={"tank_id": tank_id, "value": value_liters, "capacity_liters": capacity}
            )

        dipped_at = (
            datetime.fromisoformat(normalize_timestamp(dip_date, "dip.dipped_at"))
            if dip_date else utcnow()
        )
        level_percent = round(value_liters / capacity * 100, 2) if capacity else 0.0

        try:
            dip_id = await self.repository.insert_dip(
                tank_id, value_liters, dipped_at, recorded_by=recorded_by, notes=notes
            )
            await self.repository.update_tank_level(tank_id, value_liters, level_percent, dipped_at)

            created = await self._raise_alerts(tank_id, tank.name, value_liters, capacity)

            await self.repository.commit()
        except TelemetryException:
            await self.repository.rollback()
            raise
        except Exception as e:
            await self.repository.rollback()
            raise DipRecordingError(
                "Failed to record dip",
                context={"tank_id": tank_id},
                original_exception=e
            )

        logger.info(
            f"Recorded dip {dip_id} for tank {tank_id}: {value_liters:g}L "
            f"({level_percent}%), {len(created)} alert(s)"
        )
        return DipOutcome(
            tank_id=tank_id,
            dip_id=dip_id,
            level_percent=level_percent,
            alerts_created=len(created),
        )

    async def _raise_alerts(self, tank_id: int, tank_name: str, value_liters: float, capacity) -> list:
        """Evaluate and persist dip alerts; a failure here never loses the dip"""
        try:
            async with self.repository.savepoint():
                events = self.alert_engine.evaluate_dip(tank_id, tank_name, value_liters, capacity)
                return await self.alert_engine.persist(events) if events else []
        except AnalyticsError as e:
            logger.warning(
                f"Dip alerts for tank {tank_id} failed (ignored): {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return []

    @staticmethod
    def _parse_value(value: Any, tank_id: int) -> float:
        if value is None or isinstance(value, bool):
            parsed = None
        else:
            try:
                parsed = float(value)
            except (TypeError, ValueError):
                parsed = None
        if parsed is None or not math.isfinite(parsed):
            raise DipValidationError(
                f"Dip value {value!r} is not a number",
                context={"tank_id": tank_id, "value": value}
            )
        return parsed


@dataclass
class DipBatchResult:
    results: List[Dict[str, Any]] = field(default_factory=list)
    alerts_created: int = 0
    duration_ms: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r["success"])

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": self.failed == 0,
            "results": self.results,
            "summary": {
                "total": len(self.results),
                "succeeded": self.succeeded,
                "failed": self.failed,
                "alerts": self.alerts_created,
            },
        }


class DipBatchProcessor:
    """Process {dips: [{tank_name, dip_value, dip_date}]} one entry at a time"""

    def __init__(
        self,
        repository,
        recorder: Optional[ManualDipRecorder] = None,
        name_matcher: Optional[TankNameMatcher] = None
    ):
        self.repository = repository
        self.recorder = recorder or ManualDipRecorder(repository)
        self.name_matcher = name_matcher or TankNameMatcher(repository)

    async def process(self, dips: List[Dict[str, Any]], recorded_by: Optional[str] = None) -> DipBatchResult:
        started_at = utcnow()
        start = time.monotonic()
        batch = DipBatchResult()
        errors: List[str] = []

        for entry in dips:
            tank_name = entry.get("tank_name") or ""
            try:
                tank_id = await self.name_matcher.resolve(tank_name)
                if tank_id is None:
                    raise TankNotFoundError(
                        f"No tank matches '{tank_name}'",
                        context={"tank_name": tank_name}
                    )

                outcome = await self.recorder.record(
                    tank_id,
                    entry.get("dip_value"),
                    dip_date=entry.get("dip_date"),
                    recorded_by=recorded_by,
                    notes=entry.get("notes"),
                )
                batch.alerts_created += outcome.alerts_created
                batch.results.append({
                    "tank_name": tank_name,
                    "success": True,
                    "dip_id": outcome.dip_id,
                    "alerts_created": outcome.alerts_created,
                })

            except TelemetryException as e:
                errors.append(f"{tank_name or 'unnamed tank'}: {e.message}")
                logger.error(f"Dip for '{tank_name}' failed: {e.message}", extra={"error_context": e.to_dict()})
                batch.results.append({
                    "tank_name": tank_name,
                    "success": False,
                    "alerts_created": 0,
                    "error": e.message,
                })

        batch.duration_ms = int((time.monotonic() - start) * 1000)

        await self.repository.write_sync_log(
            sync_type=SyncType.MANUAL_DIP,
            status=SyncStatus.SUCCESS if not errors else SyncStatus.PARTIAL,
            readings_processed=batch.succeeded,
            alerts_triggered=batch.alerts_created,
            error_message="; ".join(errors[:3])[:1000] or None,
            duration_ms=batch.duration_ms,
            started_at=started_at,
            completed_at=utcnow(),
        )
        await self.repository.commit()

        logger.info(
            f"Dip batch complete: {batch.succeeded} succeeded, {batch.failed} failed, "
            f"{batch.alerts_created} alert(s)"
        )
        return batch
