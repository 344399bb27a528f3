"""
Pydantic schemas for derived analytics: alert events and consumption estimates
"""

from pydantic import BaseModel, Field
from typing import Optional
from models.base import AlertSeverity, AlertType


class AlertEvent(BaseModel):
    """A threshold condition detected for one asset or manual tank"""

    alert_type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    asset_id: Optional[int] = None
    tank_id: Optional[int] = None
    current_value: Optional[float] = None
    threshold_value: Optional[float] = None
    previous_value: Optional[float] = None


class ConsumptionEstimate(BaseModel):
    """Result of a consumption estimate for one asset"""

    daily_consumption_litres: Optional[float] = None
    daily_consumption_percent: Optional[float] = None
    days_remaining: Optional[int] = None
    confidence: str = Field("low", description="high, medium or low")
    data_points: int = 0
    span_days: float = 0.0
    refill_events: int = Field(0, description="Level rises above the refill threshold in the window")
    trend: str = Field("unknown", description="Level direction: increasing, decreasing, stable or unknown")
    insufficient_data: bool = True

    @property
    def is_usable(self) -> bool:
        """True when the estimate may overwrite vendor consumption fields"""
        return (
            not self.insufficient_data
            and self.daily_consumption_litres is not None
            and self.daily_consumption_litres > 0
        )
