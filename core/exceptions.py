"""
Custom exceptions for the telemetry ingestion pipeline with structured error context.

Each exception carries a context dictionary for logging and for the sync
log. The hierarchy mirrors how the webhook handler treats failures:

Exception Hierarchy:
    TelemetryException (base)
    ├── ConfigurationError          fatal for the request (HTTP 500)
    ├── AuthenticationError         fatal for the request (HTTP 401)
    ├── PayloadValidationError      fatal for the request (HTTP 400)
    ├── ExtractionError             vendor API unreachable (HTTP 503)
    ├── TransformationError         fails one record
    │   └── MissingIdentifierError
    ├── PersistenceError            fails one record
    │   ├── UpsertError
    │   └── InsertError
    ├── AnalyticsError              logged and swallowed
    │   ├── AlertEvaluationError
    │   └── ConsumptionEstimationError
    ├── DeadlineExceededError       fails one record
    └── DipRecordingError           fails one dip entry
        ├── DipValidationError
        └── TankNotFoundError
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class TelemetryException(Exception):
    """
    Base exception for all ingestion errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (record index, guid, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += (
                f" | Caused by: {type(self.original_exception).__name__}: "
                f"{str(self.original_exception)}"
            )

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Request-level (fatal) errors
# ============================================================================

class ConfigurationError(TelemetryException):
    """
    Raised when required server-side configuration is missing.

    Context should include:
        - setting: Name of the missing setting
    """
    pass


class AuthenticationError(TelemetryException):
    """Raised when the bearer token is absent or does not match the secret."""
    pass


class PayloadValidationError(TelemetryException):
    """
    Raised when the request body is not a JSON object or array of objects.

    Context should include:
        - received_type: Python type name of the decoded body
    """
    pass


class ExtractionError(TelemetryException):
    """
    Raised when the Gasbot dashboard API cannot be read.

    Context should include:
        - url: Requested URL
        - status_code: HTTP status, when a response arrived
    """
    pass


# ============================================================================
# Record-level errors
# ============================================================================

class TransformationError(TelemetryException):
    """Base exception for vendor payload transformation failures."""
    pass


class MissingIdentifierError(TransformationError):
    """
    Raised when a record carries no location or asset identifier.

    Context should include:
        - entity: "location" or "asset"
        - fields: Vendor fields that were checked
    """
    pass


class PersistenceError(TelemetryException):
    """Base exception for database write failures."""
    pass


class UpsertError(PersistenceError):
    """
    Raised when a location or asset upsert fails.

    Context should include:
        - table_name: Name of the table
        - external_guid: Conflict key of the row
    """
    pass


class InsertError(PersistenceError):
    """
    Raised when an append-only insert (reading, dip, sync log) fails.

    Context should include:
        - table_name: Name of the table
    """
    pass


class DeadlineExceededError(TelemetryException):
    """Raised when a record or batch runs past its deadline."""
    pass


# ============================================================================
# Best-effort analytics errors
# ============================================================================

class AnalyticsError(TelemetryException):
    """Base exception for advisory subsystems; never fails a record."""
    pass


class AlertEvaluationError(AnalyticsError):
    """Raised when alert evaluation or alert persistence fails."""
    pass


class ConsumptionEstimationError(AnalyticsError):
    """Raised when the consumption estimate cannot be computed or stored."""
    pass


# ============================================================================
# Manual dip errors
# ============================================================================

class DipRecordingError(TelemetryException):
    """Base exception for manual dip entries."""
    pass


class DipValidationError(DipRecordingError):
    """
    Raised when a dip value is not numeric or falls outside the tank bounds.

    Context should include:
        - tank_id: Internal tank identifier
        - dip_value: Submitted value
        - capacity: Tank capacity in litres
    """
    pass


class TankNotFoundError(DipRecordingError):
    """Raised when a tank name or id cannot be resolved."""
    pass
