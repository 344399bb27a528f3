from sqlalchemy import (
    Column, String, BigInteger, DateTime, Float, Text, ForeignKey, Index
)
from sqlalchemy.orm import relationship
from models.base import Base, utcnow


class Tank(Base):
    """
    A manually dipped tank (no telemetry hardware).

    Tanks are registered by scripts/init_db.py; the dip recorder only reads their
    capacity and refreshes the current-level snapshot.
    """
    __tablename__ = "tanks"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, index=True)
    product_type = Column(String(50), nullable=True)

    capacity_liters = Column(Float, nullable=False)
    safe_level_liters = Column(Float, nullable=True)
    min_level_liters = Column(Float, nullable=True)

    # Snapshot refreshed by every dip
    current_level_liters = Column(Float, nullable=True)
    current_level_percent = Column(Float, nullable=True)
    last_dip_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    dips = relationship("DipReading", back_populates="tank", cascade="all, delete-orphan")


class DipReading(Base):
    """Append-only manual dip history"""
    __tablename__ = "dip_readings"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    tank_id = Column(
        BigInteger,
        ForeignKey("tanks.id", ondelete="CASCADE"),
        nullable=False
    )
    value_liters = Column(Float, nullable=False)
    dipped_at = Column(DateTime(timezone=True), nullable=False)
    recorded_by = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    tank = relationship("Tank", back_populates="dips")

    __table_args__ = (
        Index("idx_dip_readings_tank_time", "tank_id", "dipped_at"),
    )
