from sqlalchemy import (
    Column, String, BigInteger, DateTime, Float, Boolean, Text, ForeignKey,
    Index, CheckConstraint, text
)
from models.base import Base, AlertSeverity, AlertType, utcnow, value_enum


class Alert(Base):
    """
    A detected threshold condition for a telemetry asset or a dipped tank.

    At most one active alert may exist per (owner, alert_type). The partial
    unique indexes below enforce it in the database; the alert engine also
    checks before inserting and treats a conflict as "already raised".
    """
    __tablename__ = "ta_agbot_alerts"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    asset_id = Column(
        BigInteger,
        ForeignKey("ta_agbot_assets.id", ondelete="CASCADE"),
        nullable=True
    )
    tank_id = Column(
        BigInteger,
        ForeignKey("tanks.id", ondelete="CASCADE"),
        nullable=True
    )

    alert_type = Column(value_enum(AlertType), nullable=False)
    severity = Column(value_enum(AlertSeverity, length=16), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)

    # Alert context
    current_value = Column(Float, nullable=True)
    threshold_value = Column(Float, nullable=True)
    previous_value = Column(Float, nullable=True)

    # Lifecycle (acknowledgement and resolution happen outside ingestion)
    is_active = Column(Boolean, nullable=False, default=True)
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolution_notes = Column(Text, nullable=True)

    triggered_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "asset_id IS NOT NULL OR tank_id IS NOT NULL",
            name="ck_alerts_owner"
        ),
        Index(
            "uq_alerts_active_asset_type",
            "asset_id", "alert_type",
            unique=True,
            postgresql_where=text("is_active AND asset_id IS NOT NULL"),
            sqlite_where=text("is_active AND asset_id IS NOT NULL"),
        ),
        Index(
            "uq_alerts_active_tank_type",
            "tank_id", "alert_type",
            unique=True,
            postgresql_where=text("is_active AND tank_id IS NOT NULL"),
            sqlite_where=text("is_active AND tank_id IS NOT NULL"),
        ),
        Index("idx_alerts_type_active", "alert_type", "is_active"),
    )
