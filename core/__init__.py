"""
Core utilities and configuration for the tank telemetry backend.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Lazily-built async engine and session factory
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import get_session_maker
    from core.exceptions import UpsertError, ConfigurationError
    from core.logging import setup_logging

Example:
    setup_logging()

    async with get_session_maker(settings.DATABASE_URL)() as session:
        repository = TelemetryRepository(session)
"""

__all__ = [
    "settings",
    "get_session_maker",
    "setup_logging",
    # Exceptions
    "TelemetryException",
    "ConfigurationError",
    "AuthenticationError",
    "PayloadValidationError",
    "TransformationError",
    "MissingIdentifierError",
    "PersistenceError",
    "UpsertError",
    "InsertError",
    "DeadlineExceededError",
    "AnalyticsError",
    "AlertEvaluationError",
    "ConsumptionEstimationError",
    "DipRecordingError",
    "DipValidationError",
    "TankNotFoundError",
]
