"""
Pydantic schemas for data validation and serialization.

This package defines Pydantic models used between the webhook, the
pipeline and the database:

Schemas:
    vendor: Loosely typed Gasbot webhook record
    telemetry: Canonical Location / Asset / Reading inputs
    analytics: Alert events and consumption estimates
    api: API endpoint request/response schemas

Usage:
    from schemas.vendor import GasbotPayload
    from schemas.telemetry import LocationInput, AssetInput, ReadingInput
    from schemas.api import WebhookResponse, DipBatchRequest

Validation:
    The vendor schema accepts anything so the transformer can decide how
    to treat missing fields. Canonical inputs enforce the invariants the
    database relies on (non-empty external_guid, level percent in [0, 100]).
"""

__all__ = [
    "GasbotPayload",
    "LocationInput",
    "AssetInput",
    "ReadingInput",
    "AssetState",
    "AlertEvent",
    "ConsumptionEstimate",
    "WebhookResponse",
    "DipBatchRequest",
    "DipBatchResponse",
    "HealthCheckResponse",
    "SyncLogInfo",
]
