"""
Telemetry ingestion pipeline components.

This package contains everything between a decoded webhook body and the
database:

Modules:
    timestamps: Vendor timestamp normalization (never raises)
    validator: Body shape checks and per-record data quality inspection
    consumption: Daily consumption and days-remaining estimation
    alerts: Threshold alert evaluation and de-duplicated persistence
    repository: PostgreSQL upserts, appends and sync log writes
    runner: Webhook orchestrator with per-record failure isolation
    dips: Manual dip recording and name-matched dip batches
    scheduler: APScheduler jobs for consumption recalculation and pull sync

Subpackages:
    transformers: Vendor payload to canonical Location/Asset/Reading inputs
    extractors: Gasbot dashboard API client and pull sync

Architecture:
    Each webhook record flows through

    1. Transform - Map vendor fields to canonical inputs
    2. Upsert - Location, then asset, keyed on external_guid
    3. Analytics - Alerts and consumption (best-effort)
    4. Append - One reading per record

    A failure in a required step rolls back that record only. Advisory
    steps run inside a savepoint and are logged when they fail.

Usage:
    from ingestion.repository import TelemetryRepository
    from ingestion.runner import WebhookIngestionRunner

Example:
    repository = TelemetryRepository(session)
    runner = WebhookIngestionRunner(repository)
    result = await runner.run(body)

    print(f"Processed {result.processed_records}/{result.total_records} records")
"""

__all__ = [
    "WebhookIngestionRunner",
    "TelemetryRepository",
    "GasbotTransformer",
    "AlertEngine",
    "ConsumptionEstimator",
    "ManualDipRecorder",
    "DipBatchProcessor",
    "GasbotPullSync",
    "IngestionScheduler",
]
