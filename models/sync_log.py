from sqlalchemy import Column, BigInteger, DateTime, Integer, Text, Index
from models.base import Base, SyncStatus, SyncType, utcnow, value_enum


class SyncLog(Base):
    """
    One row per ingestion execution.

    Purpose:
    - Audit trail of every webhook delivery, dip batch and recalculation
    - Written exactly once per execution, including total failures
    - Never read back by the pipeline itself
    """
    __tablename__ = "ta_agbot_sync_log"

    id = Column(BigInteger, primary_key=True, autoincrement=True)

    sync_type = Column(value_enum(SyncType), nullable=False, index=True)
    status = Column(value_enum(SyncStatus, length=16), nullable=False, index=True)

    # Statistics
    locations_processed = Column(Integer, default=0)
    assets_processed = Column(Integer, default=0)
    readings_processed = Column(Integer, default=0)
    alerts_triggered = Column(Integer, default=0)

    # Error tracking (truncated summary of the first few errors)
    error_message = Column(Text, nullable=True)

    # Timing
    duration_ms = Column(Integer, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_sync_log_started", "started_at"),
    )
