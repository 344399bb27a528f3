"""
Consumption estimation from historical readings.

The rate is the sum of level drops between consecutive readings divided by
the time from the earliest to the most recent reading in the window. Pairs
where the level rises are refills and contribute nothing, so a delivery in
the middle of the window does not cancel out the fuel burned around it.

Sensors sometimes report zeros for one of the two level fields. A field is
only trusted when at least half the readings carry a positive value for it;
with neither field trusted there is no estimate.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from schemas.analytics import ConsumptionEstimate
from core.exceptions import ConsumptionEstimationError

logger = logging.getLogger(__name__)

MAX_DAYS_REMAINING = 365
MIN_SPAN = timedelta(hours=1)
# A rise of more than this many percentage points between readings is a delivery
REFILL_THRESHOLD_PERCENT = 10.0
# Fitted level slope (percent per day) below which the tank counts as stable
TREND_THRESHOLD_PERCENT = 0.5


def grade_confidence(data_points: int, span_days: float) -> str:
    """high: >=7 points over >=5 days, medium: >=5 points over >=2 days, else low"""
    if data_points >= 7 and span_days >= 5:
        return "high"
    if data_points >= 5 and span_days >= 2:
        return "medium"
    return "low"


def is_reliable(values: Iterable[Optional[float]]) -> bool:
    """At least half the values are present and positive"""
    values = list(values)
    if not values:
        return False
    positive = sum(1 for v in values if v is not None and v > 0)
    return positive * 2 >= len(values)


def count_refills(percents: Sequence[float], threshold: float = REFILL_THRESHOLD_PERCENT) -> int:
    return sum(1 for previous, current in zip(percents, percents[1:]) if current - previous > threshold)


def level_trend(points: Sequence[Tuple[float, float]]) -> str:
    """
    Direction of the tank level from a least-squares fit.

    Args:
        points: (days since first reading, level percent) pairs

    Returns:
        "increasing", "decreasing", "stable", or "unknown" with fewer than
        three points or no spread in time
    """
    if len(points) < 3:
        return "unknown"

    n = len(points)
    mean_x = sum(x for x, _ in points) / n
    mean_y = sum(y for _, y in points) / n
    spread = sum((x - mean_x) ** 2 for x, _ in points)
    if spread == 0:
        return "unknown"

    slope = sum((x - mean_x) * (y - mean_y) for x, y in points) / spread
    if slope > TREND_THRESHOLD_PERCENT:
        return "increasing"
    if slope < -TREND_THRESHOLD_PERCENT:
        return "decreasing"
    return "stable"


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _levels(
    reading,
    capacity_liters: Optional[float],
    use_percent: bool,
    use_litres: bool
) -> Tuple[float, Optional[float]]:
    """(percent, litres) for one reading, from the trusted fields only"""
    litres = reading.level_liters if use_litres else None
    if not use_percent and litres is not None and capacity_liters:
        return litres / capacity_liters * 100, litres
    return reading.level_percent or 0.0, litres


class ConsumptionEstimator:
    """
    Estimate daily consumption and days remaining for one asset.

    Args:
        repository: Anything exposing recent_readings(asset_id, since),
            update_asset_consumption(...) and list_active_assets()
        lookback_days: Width of the reading window
        min_data_points: Fewest readings that yield an estimate
    """

    def __init__(self, repository, lookback_days: int = 7, min_data_points: int = 3):
        self.repository = repository
        self.lookback_days = lookback_days
        self.min_data_points = min_data_points

    async def estimate(
        self,
        asset_id: int,
        current_fill_percent: Optional[float],
        capacity_liters: Optional[float],
        current_level_liters: Optional[float] = None,
        now: Optional[datetime] = None
    ) -> ConsumptionEstimate:
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=self.lookback_days)

        try:
            readings = await self.repository.recent_readings(asset_id, since)
        except Exception as e:
            raise ConsumptionEstimationError(
                "Failed to fetch readings for consumption estimate",
                context={"asset_id": asset_id, "lookback_days": self.lookback_days},
                original_exception=e
            )

        return self.estimate_from_readings(
            readings,
            current_fill_percent=current_fill_percent,
            capacity_liters=capacity_liters,
            current_level_liters=current_level_liters,
        )

    def estimate_from_readings(
        self,
        readings: Sequence[Any],
        current_fill_percent: Optional[float],
        capacity_liters: Optional[float],
        current_level_liters: Optional[float] = None
    ) -> ConsumptionEstimate:
        """Pure part of the estimate; readings must be ordered oldest first"""
        data_points = len(readings)
        if data_points < self.min_data_points:
            return ConsumptionEstimate(data_points=data_points)

        span = _as_utc(readings[-1].reading_at) - _as_utc(readings[0].reading_at)
        span_days = span.total_seconds() / 86400
        if span < MIN_SPAN:
            return ConsumptionEstimate(data_points=data_points, span_days=span_days)

        use_percent = is_reliable(r.level_percent for r in readings)
        use_litres = is_reliable(r.level_liters for r in readings)
        if not use_percent and not use_litres:
            logger.debug(f"No reliable level field across {data_points} readings")
            return ConsumptionEstimate(data_points=data_points, span_days=span_days)

        levels = [_levels(r, capacity_liters, use_percent, use_litres) for r in readings]
        percents = [percent for percent, _ in levels]

        consumed_percent = 0.0
        consumed_litres = 0.0
        litres_known = True
        for (prev_percent, prev_litres), (percent, litres) in zip(levels, levels[1:]):
            percent_drop = prev_percent - percent
            if prev_litres is not None and litres is not None:
                litres_drop = prev_litres - litres
            elif use_percent and capacity_liters and capacity_liters > 0:
                litres_drop = percent_drop / 100 * capacity_liters
            else:
                litres_known = False
                litres_drop = 0.0

            # Refill
            if litres_drop < 0 or (litres_drop == 0 and percent_drop < 0):
                continue

            consumed_litres += litres_drop
            consumed_percent += max(percent_drop, 0.0)

        daily_percent = consumed_percent / span_days
        daily_litres = consumed_litres / span_days if litres_known else None

        if current_level_liters is None and current_fill_percent is not None and capacity_liters:
            current_level_liters = current_fill_percent / 100 * capacity_liters

        days_remaining = None
        if daily_litres is not None and daily_litres > 0 and current_level_liters is not None:
            days = current_level_liters / daily_litres
            days_remaining = round(min(max(days, 0), MAX_DAYS_REMAINING))

        first = _as_utc(readings[0].reading_at)
        points = [
            ((_as_utc(r.reading_at) - first).total_seconds() / 86400, percent)
            for r, percent in zip(readings, percents)
        ]

        return ConsumptionEstimate(
            daily_consumption_litres=round(daily_litres, 2) if daily_litres is not None else None,
            daily_consumption_percent=round(daily_percent, 2),
            days_remaining=days_remaining,
            confidence=grade_confidence(data_points, span_days),
            data_points=data_points,
            span_days=round(span_days, 3),
            refill_events=count_refills(percents),
            trend=level_trend(points),
            insufficient_data=False,
        )

    @staticmethod
    def should_override(estimate: ConsumptionEstimate) -> bool:
        """Only sufficient data with a positive rate may replace vendor figures"""
        return estimate.is_usable

    async def recalculate_all(self, assets: Optional[List[Any]] = None) -> Dict[str, int]:
        """
        Re-estimate every asset on an enabled location.

        Returns:
            Counts of processed, updated, skipped and failed assets
        """
        if assets is None:
            assets = await self.repository.list_active_assets()

        stats = {"processed": 0, "updated": 0, "skipped": 0, "failed": 0}

        for asset in assets:
            stats["processed"] += 1
            try:
                # One asset's failed statement must not abort the others
                async with self.repository.savepoint():
                    estimate = await self.estimate(
                        asset.id,
                        asset.current_level_percent or 0,
                        asset.capacity_liters,
                        current_level_liters=asset.current_level_liters,
                    )
                    if not self.should_override(estimate):
                        stats["skipped"] += 1
                        continue

                    await self.repository.update_asset_consumption(
                        asset.id,
                        daily_consumption_liters=estimate.daily_consumption_litres,
                        days_remaining=estimate.days_remaining,
                        confidence=estimate.confidence,
                    )
                stats["updated"] += 1
                logger.debug(
                    f"Asset {asset.id}: {estimate.daily_consumption_litres}L/day, "
                    f"trend {estimate.trend}, {estimate.refill_events} refill(s)"
                )

            except Exception as e:
                stats["failed"] += 1
                logger.warning(f"Consumption recalculation failed for asset {asset.id}: {e}")

        logger.info(
            f"Consumption recalculation complete: {stats['updated']} updated, "
            f"{stats['skipped']} skipped, {stats['failed']} failed, {stats['processed']} total"
        )
        return stats
