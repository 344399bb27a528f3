from sqlalchemy import (
    Column, String, Integer, BigInteger, DateTime, Float, Boolean, Text, Index
)
from sqlalchemy.orm import relationship
from models.base import Base, utcnow


class Location(Base):
    """
    A physical customer site reporting through a tank monitor.

    Design:
    - external_guid is the idempotency key for webhook upserts
    - aggregated fill/consumption fields mirror the site's primary asset
    - rows are created on first telemetry and never deleted by ingestion
    """
    __tablename__ = "ta_agbot_locations"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    external_guid = Column(String(255), nullable=False, unique=True, index=True)

    # Identity
    name = Column(String(255), nullable=False)
    customer_name = Column(String(255), nullable=True)
    customer_guid = Column(String(255), nullable=True)
    tenancy_name = Column(String(255), nullable=True)

    # Address
    address = Column(Text, nullable=True)
    state = Column(String(100), nullable=True)
    postcode = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True, default="Australia")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Status
    installation_status = Column(Integer, default=0)
    installation_status_label = Column(String(50), nullable=True)
    is_disabled = Column(Boolean, default=False, index=True)

    # Aggregated metrics (from vendor)
    daily_consumption_liters = Column(Float, nullable=True)
    days_remaining = Column(Integer, nullable=True)
    calibrated_fill_level = Column(Float, nullable=True)

    # Telemetry
    last_telemetry_at = Column(DateTime(timezone=True), nullable=True)
    last_telemetry_epoch = Column(BigInteger, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    assets = relationship("Asset", back_populates="location", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_locations_customer", "customer_guid"),
    )
