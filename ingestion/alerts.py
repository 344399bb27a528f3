"""
Threshold alert engine.

evaluate() is pure: it looks at one transformed asset, the vendor record it
came from and the stored state from before the upsert, and returns the
alert events that should exist. persist() performs the deduplicated insert.
"""

from typing import Any, List, Optional
import logging

from models.base import AlertSeverity, AlertType
from schemas.analytics import AlertEvent
from schemas.telemetry import AssetInput, AssetState
from schemas.vendor import GasbotPayload
from core.exceptions import AlertEvaluationError

logger = logging.getLogger(__name__)

BATTERY_CRITICAL_VOLTS = 3.2
BATTERY_WARNING_VOLTS = 3.3

DAYS_CRITICAL = 3
DAYS_WARNING = 7

PERCENT_CRITICAL = 10.0
PERCENT_WARNING = 15.0

DIP_CRITICAL_PERCENT = 10.0
DIP_LOW_PERCENT = 20.0


def _number(value: Any) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _label(asset: AssetInput) -> str:
    return asset.name or asset.external_guid


class AlertEngine:
    """
    Evaluate static thresholds and write de-duplicated alerts.

    Rules are independent, so one evaluation may raise several alerts. The
    two fuel rules are exclusive: days remaining wins when it is known and
    fill percent is only consulted otherwise.
    """

    def __init__(self, repository=None):
        self.repository = repository

    def evaluate(
        self,
        asset: AssetInput,
        vendor_snapshot: Optional[GasbotPayload],
        previous_state: Optional[AssetState],
        asset_id: Optional[int] = None
    ) -> List[AlertEvent]:
        events: List[AlertEvent] = []

        battery = asset.battery_voltage
        if battery is None and vendor_snapshot is not None:
            battery = _number(vendor_snapshot.DeviceBatteryVoltage)

        days_remaining = asset.days_remaining
        if days_remaining is None and vendor_snapshot is not None:
            days_remaining = _number(vendor_snapshot.AssetDaysRemaining)
            if days_remaining is None:
                days_remaining = _number(vendor_snapshot.LocationDaysRemaining)

        previous_battery = previous_state.battery_voltage if previous_state else None
        previous_percent = previous_state.current_level_percent if previous_state else None
        name = _label(asset)

        # Battery
        if battery is not None and battery < BATTERY_WARNING_VOLTS:
            critical = battery < BATTERY_CRITICAL_VOLTS
            events.append(AlertEvent(
                alert_type=AlertType.LOW_BATTERY,
                severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
                title="Critical battery" if critical else "Low battery",
                message=f"{name} battery at {battery:.2f}V",
                asset_id=asset_id,
                current_value=battery,
                threshold_value=BATTERY_CRITICAL_VOLTS if critical else BATTERY_WARNING_VOLTS,
                previous_value=previous_battery,
            ))

        # Fuel, days remaining first
        if days_remaining is not None:
            if days_remaining <= DAYS_WARNING:
                critical = days_remaining <= DAYS_CRITICAL
                events.append(AlertEvent(
                    alert_type=AlertType.CRITICAL_FUEL if critical else AlertType.LOW_FUEL,
                    severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
                    title="Critical fuel level" if critical else "Low fuel level",
                    message=f"{name} has {days_remaining:g} days of fuel remaining",
                    asset_id=asset_id,
                    current_value=float(days_remaining),
                    threshold_value=float(DAYS_CRITICAL if critical else DAYS_WARNING),
                    previous_value=float(previous_state.days_remaining)
                    if previous_state and previous_state.days_remaining is not None else None,
                ))
        elif asset.current_level_percent <= PERCENT_WARNING:
            percent = asset.current_level_percent
            critical = percent <= PERCENT_CRITICAL
            events.append(AlertEvent(
                alert_type=AlertType.CRITICAL_FUEL if critical else AlertType.LOW_FUEL,
                severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
                title="Critical fuel level" if critical else "Low fuel level",
                message=f"{name} is at {percent:.1f}% capacity",
                asset_id=asset_id,
                current_value=percent,
                threshold_value=PERCENT_CRITICAL if critical else PERCENT_WARNING,
                previous_value=previous_percent,
            ))

        # Offline edge
        if previous_state is not None and previous_state.is_online and not asset.is_online:
            events.append(AlertEvent(
                alert_type=AlertType.DEVICE_OFFLINE,
                severity=AlertSeverity.WARNING,
                title="Device offline",
                message=f"{name} stopped reporting as online",
                asset_id=asset_id,
                current_value=0.0,
                previous_value=1.0,
            ))

        return events

    def evaluate_dip(
        self,
        tank_id: int,
        tank_name: str,
        value_liters: float,
        capacity_liters: float
    ) -> List[AlertEvent]:
        """Two-tier level check for a manual dip"""
        if not capacity_liters or capacity_liters <= 0:
            return []

        percent = value_liters / capacity_liters * 100
        if percent > DIP_LOW_PERCENT:
            return []

        critical = percent <= DIP_CRITICAL_PERCENT
        return [AlertEvent(
            alert_type=AlertType.DIP_CRITICAL if critical else AlertType.DIP_LOW,
            severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
            title="Critical tank level" if critical else "Low tank level",
            message=f"{tank_name} dipped at {value_liters:g}L ({percent:.1f}% of capacity)",
            tank_id=tank_id,
            current_value=round(percent, 2),
            threshold_value=DIP_CRITICAL_PERCENT if critical else DIP_LOW_PERCENT,
        )]

    async def persist(self, events: List[AlertEvent]) -> List[AlertEvent]:
        """
        Insert each event unless an active alert of the same type exists.

        Returns:
            The events that produced a new row
        """
        if self.repository is None:
            raise AlertEvaluationError("Alert engine has no repository to persist to")

        created: List[AlertEvent] = []
        for event in events:
            try:
                exists = await self.repository.has_active_alert(
                    event.alert_type,
                    asset_id=event.asset_id,
                    tank_id=event.tank_id,
                )
                if exists:
                    logger.debug(
                        f"Active {event.alert_type.value} alert already open "
                        f"(asset={event.asset_id}, tank={event.tank_id})"
                    )
                    continue

                # The partial unique index turns a concurrent duplicate into a no-op
                if await self.repository.insert_alert(event):
                    created.append(event)
                    logger.info(
                        f"Raised {event.severity.value} {event.alert_type.value} alert "
                        f"(asset={event.asset_id}, tank={event.tank_id})"
                    )
            except Exception as e:
                raise AlertEvaluationError(
                    "Failed to persist alert",
                    context={
                        "alert_type": event.alert_type.value,
                        "asset_id": event.asset_id,
                        "tank_id": event.tank_id,
                    },
                    original_exception=e
                )

        return created
