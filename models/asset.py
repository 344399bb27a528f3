from sqlalchemy import (
    Column, String, Integer, BigInteger, DateTime, Float, Boolean, ForeignKey,
    Index, CheckConstraint, JSON
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from models.base import Base, ConsumptionSource, utcnow, value_enum


class Asset(Base):
    """
    A tank/sensor unit owned by exactly one Location.

    Field Mapping Strategy (Gasbot webhook):
    - AssetGuid or derived "asset-<serial>" -> external_guid
    - AssetReportedLitres -> current_level_liters
    - AssetCalibratedFillLevel (or litres/capacity) -> current_level_percent
    - AssetRawFillLevel -> current_raw_percent
    - AssetProfileWaterCapacity -> capacity_liters
    - AssetRefillCapacityLitres -> ullage_liters
    - AssetDailyConsumption / AssetDaysRemaining -> consumption analytics
    - Device* -> device hardware and health

    The consumption fields start out as vendor figures and are overwritten
    by the consumption estimator once it has enough history.
    """
    __tablename__ = "ta_agbot_assets"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    location_id = Column(
        BigInteger,
        ForeignKey("ta_agbot_locations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    external_guid = Column(String(255), nullable=False, unique=True, index=True)

    # Tank identity
    name = Column(String(255), nullable=True)
    serial_number = Column(String(255), nullable=True, index=True)
    profile_name = Column(String(255), nullable=True)
    profile_guid = Column(String(255), nullable=True)
    commodity = Column(String(100), nullable=True)

    # Tank dimensions
    capacity_liters = Column(Float, nullable=True)
    max_depth_m = Column(Float, nullable=True)
    max_pressure_bar = Column(Float, nullable=True)
    max_display_percent = Column(Float, nullable=True)

    # Current snapshot
    current_level_liters = Column(Float, nullable=True)
    current_level_percent = Column(Float, nullable=False, default=0)
    current_raw_percent = Column(Float, nullable=False, default=0)
    current_depth_m = Column(Float, nullable=True)
    current_pressure_bar = Column(Float, nullable=True)
    ullage_liters = Column(Float, nullable=True)

    # Consumption analytics
    daily_consumption_liters = Column(Float, nullable=True)
    days_remaining = Column(Integer, nullable=True)
    consumption_source = Column(value_enum(ConsumptionSource), nullable=True)
    consumption_confidence = Column(String(10), nullable=True)

    # Device hardware
    device_guid = Column(String(255), nullable=True)
    device_serial = Column(String(255), nullable=True)
    device_model = Column(Integer, nullable=True)
    device_model_name = Column(String(255), nullable=True)
    device_sku = Column(String(100), nullable=True)
    device_network_id = Column(String(100), nullable=True)
    helmet_serial = Column(String(100), nullable=True)

    # Device health
    is_online = Column(Boolean, default=False, index=True)
    is_disabled = Column(Boolean, default=False)
    device_state = Column(String(100), nullable=True)
    battery_voltage = Column(Float, nullable=True)
    temperature_c = Column(Float, nullable=True)

    # Telemetry timestamps and their epoch twins
    device_activated_at = Column(DateTime(timezone=True), nullable=True)
    device_activation_epoch = Column(BigInteger, nullable=True)
    last_telemetry_at = Column(DateTime(timezone=True), nullable=True)
    last_telemetry_epoch = Column(BigInteger, nullable=True)
    last_raw_telemetry_at = Column(DateTime(timezone=True), nullable=True)
    last_raw_telemetry_epoch = Column(BigInteger, nullable=True)
    last_calibrated_telemetry_at = Column(DateTime(timezone=True), nullable=True)
    last_calibrated_telemetry_epoch = Column(BigInteger, nullable=True)
    asset_updated_at = Column(DateTime(timezone=True), nullable=True)
    asset_updated_epoch = Column(BigInteger, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    raw_data = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)

    location = relationship("Location", back_populates="assets")
    readings = relationship("Reading", back_populates="asset", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "current_level_percent >= 0 AND current_level_percent <= 100",
            name="ck_assets_level_percent_range"
        ),
        Index("idx_assets_days_remaining", "days_remaining"),
        Index("idx_assets_battery", "battery_voltage"),
    )
