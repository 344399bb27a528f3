from sqlalchemy import (
    Column, String, Integer, BigInteger, DateTime, Float, Boolean, ForeignKey, Index
)
from sqlalchemy.orm import relationship
from models.base import Base, utcnow


class Reading(Base):
    """
    Immutable historical snapshot of one asset.

    Purpose:
    - Time series behind charts and the consumption estimator
    - Rows are appended on every telemetry event and never updated
    """
    __tablename__ = "ta_agbot_readings"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    asset_id = Column(
        BigInteger,
        ForeignKey("ta_agbot_assets.id", ondelete="CASCADE"),
        nullable=False
    )

    # Tank level
    level_liters = Column(Float, nullable=True)
    level_percent = Column(Float, nullable=False, default=0)
    raw_percent = Column(Float, nullable=False, default=0)
    depth_m = Column(Float, nullable=True)
    pressure_bar = Column(Float, nullable=True)

    # Device state snapshot
    is_online = Column(Boolean, nullable=True)
    battery_voltage = Column(Float, nullable=True)
    temperature_c = Column(Float, nullable=True)
    device_state = Column(String(100), nullable=True)

    # Analytics valid at this instant
    daily_consumption = Column(Float, nullable=True)
    days_remaining = Column(Integer, nullable=True)

    reading_at = Column(DateTime(timezone=True), nullable=False)
    telemetry_epoch = Column(BigInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    asset = relationship("Asset", back_populates="readings")

    __table_args__ = (
        Index("idx_readings_asset_time", "asset_id", "reading_at"),
        Index("idx_readings_time", "reading_at"),
    )
