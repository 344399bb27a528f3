# ============================================================================
# File: ingestion/runner.py
# Description: Webhook ingestion orchestrator with per-record failure isolation
# ============================================================================
"""
Webhook Ingestion Runner - drives one Gasbot delivery through the pipeline.

This module provides:
- Per-record processing (one failing record never sinks the batch)
- A single policy table deciding which steps are required and which are advisory
- Per-record and per-batch deadlines
- Exactly one sync log row per execution, including total failures
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import asyncio
import inspect
import logging
import time

from ingestion.alerts import AlertEngine
from ingestion.consumption import ConsumptionEstimator
from ingestion.transformers.gasbot import GasbotTransformer
from ingestion.validator import inspect_record, split_batch
from models.base import SyncStatus, SyncType, utcnow
from core.exceptions import (
    DeadlineExceededError,
    MissingIdentifierError,
    PayloadValidationError,
    PersistenceError,
    TelemetryException,
    TransformationError,
)

logger = logging.getLogger(__name__)


class StepPolicy(str, Enum):
    REQUIRED = "required"
    ADVISORY = "advisory"


# What must succeed for a record to count, and what is best-effort
STEP_POLICY: Dict[str, StepPolicy] = {
    "transform": StepPolicy.REQUIRED,
    "upsert_location": StepPolicy.REQUIRED,
    "fetch_previous_state": StepPolicy.ADVISORY,
    "upsert_asset": StepPolicy.REQUIRED,
    "evaluate_alerts": StepPolicy.ADVISORY,
    "persist_alerts": StepPolicy.ADVISORY,
    "estimate_consumption": StepPolicy.ADVISORY,
    "overwrite_consumption": StepPolicy.ADVISORY,
    "insert_reading": StepPolicy.REQUIRED,
}


@dataclass
class StepResult:
    """Outcome of one pipeline step"""
    step: str
    ok: bool
    value: Any = None
    error: Optional[Exception] = None


@dataclass
class RecordOutcome:
    index: int
    location_id: int
    asset_id: int
    reading_id: int
    alerts_created: int = 0
    advisory_failures: List[str] = field(default_factory=list)


@dataclass
class BatchResult:
    """Aggregated outcome of one webhook delivery"""
    total_records: int
    processed_records: int = 0
    errors: List[str] = field(default_factory=list)
    alerts_triggered: int = 0
    duration_ms: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    max_response_errors: int = 5

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def status(self) -> SyncStatus:
        return SyncStatus.SUCCESS if not self.errors else SyncStatus.PARTIAL

    def to_response(self) -> Dict[str, Any]:
        """Webhook success body; errors are only present when some record failed"""
        response = {
            "success": True,
            "message": "Webhook processed successfully",
            "stats": {
                "totalRecords": self.total_records,
                "processedRecords": self.processed_records,
                "errorCount": self.error_count,
                "duration": self.duration_ms,
            },
        }
        if self.errors:
            response["errors"] = self.errors[:self.max_response_errors]
        return response


def summarize_errors(errors: List[str], limit: int = 3, max_chars: int = 1000) -> Optional[str]:
    """First few errors joined for the sync log, truncated"""
    if not errors:
        return None
    summary = "; ".join(errors[:limit])
    if len(summary) > max_chars:
        summary = summary[:max_chars - 3] + "..."
    return summary


class WebhookIngestionRunner:
    """
    Webhook ingestion orchestrator.

    Responsibilities:
    - Split the body into records and process them sequentially
    - Transform → upsert location → previous state → upsert asset → alerts
      → consumption → reading, per record
    - Commit each record on success, roll it back on failure
    - Summarize and write the sync log
    """

    def __init__(
        self,
        repository,
        transformer: Optional[GasbotTransformer] = None,
        alert_engine: Optional[AlertEngine] = None,
        estimator: Optional[ConsumptionEstimator] = None,
        record_timeout: float = 10.0,
        batch_timeout: float = 25.0,
        max_response_errors: int = 5,
        sync_log_error_limit: int = 3,
        sync_log_error_max_chars: int = 1000,
        sync_type: SyncType = SyncType.GASBOT_WEBHOOK,
    ):
        self.repository = repository
        self.transformer = transformer or GasbotTransformer()
        self.alert_engine = alert_engine or AlertEngine(repository)
        self.estimator = estimator or ConsumptionEstimator(repository)
        self.record_timeout = record_timeout
        self.batch_timeout = batch_timeout
        self.max_response_errors = max_response_errors
        self.sync_log_error_limit = sync_log_error_limit
        self.sync_log_error_max_chars = sync_log_error_max_chars
        self.sync_type = sync_type

    async def run(self, body: Any) -> BatchResult:
        """
        Run one webhook delivery.

        Args:
            body: Decoded JSON body (object or array of objects)

        Returns:
            BatchResult for the response and the sync log

        Raises:
            PayloadValidationError: If the body is not an object or array
            TelemetryException: For failures outside any single record
        """
        started_at = utcnow()
        start = time.monotonic()

        # --------------------------------------------------
        # PHASE 1: VALIDATE SHAPE
        # --------------------------------------------------
        try:
            records = split_batch(body)
        except PayloadValidationError as e:
            logger.error(f"Rejected webhook body: {e.message}", extra={"error_context": e.to_dict()})
            await self.write_failure_log(e.message, started_at, start)
            raise

        logger.info(f"Processing {self.sync_type.value} batch with {len(records)} record(s)")
        result = BatchResult(
            total_records=len(records),
            started_at=started_at,
            max_response_errors=self.max_response_errors,
        )
        batch_deadline = start + self.batch_timeout

        try:
            # --------------------------------------------------
            # PHASE 2: PER-RECORD PIPELINE
            # --------------------------------------------------
            for index, record in enumerate(records, start=1):
                label = self._record_label(record, index)
                remaining = batch_deadline - time.monotonic()

                if remaining <= 0:
                    error = DeadlineExceededError(
                        "Batch deadline passed before record was started",
                        context={"record_index": index, "batch_timeout": self.batch_timeout}
                    )
                    result.errors.append(f"{label}: {error.message}")
                    logger.error(f"{label} skipped: batch deadline exceeded")
                    continue

                try:
                    outcome = await asyncio.wait_for(
                        self._process_record(record, index),
                        timeout=min(self.record_timeout, remaining)
                    )
                    await self.repository.commit()

                    result.processed_records += 1
                    result.alerts_triggered += outcome.alerts_created
                    logger.info(
                        f"{label} processed (location={outcome.location_id}, "
                        f"asset={outcome.asset_id}, alerts={outcome.alerts_created})"
                    )

                except asyncio.TimeoutError:
                    await self.repository.rollback()
                    error = DeadlineExceededError(
                        "Record processing exceeded its deadline",
                        context={"record_index": index, "record_timeout": self.record_timeout}
                    )
                    result.errors.append(f"{label}: {error.message}")
                    logger.error(f"{label} failed: {error.message}", extra={"error_context": error.to_dict()})

                except TelemetryException as e:
                    await self.repository.rollback()
                    result.errors.append(f"{label}: {e.message}")
                    logger.error(f"{label} failed: {e.message}", extra={"error_context": e.to_dict()})

                except Exception as e:
                    await self.repository.rollback()
                    result.errors.append(f"{label}: {e}")
                    logger.exception(f"{label} failed with unexpected error")

            # --------------------------------------------------
            # PHASE 3: SUMMARIZE + SYNC LOG
            # --------------------------------------------------
            result.completed_at = utcnow()
            result.duration_ms = int((time.monotonic() - start) * 1000)

            await self.repository.write_sync_log(
                sync_type=self.sync_type,
                status=result.status,
                locations_processed=result.processed_records,
                assets_processed=result.processed_records,
                readings_processed=result.processed_records,
                alerts_triggered=result.alerts_triggered,
                error_message=summarize_errors(
                    result.errors, self.sync_log_error_limit, self.sync_log_error_max_chars
                ),
                duration_ms=result.duration_ms,
                started_at=result.started_at,
                completed_at=result.completed_at,
            )
            await self.repository.commit()

        except Exception as e:
            logger.exception("Unexpected error in webhook pipeline")
            await self.repository.rollback()
            await self.write_failure_log(str(e), started_at, start)
            raise

        logger.info(
            f"{self.sync_type.value} completed: {result.status.value} - "
            f"Total: {result.total_records}, Processed: {result.processed_records}, "
            f"Errors: {result.error_count}, Duration: {result.duration_ms}ms"
        )
        return result

    async def write_failure_log(self, message: str, started_at: datetime, start: float):
        """Best-effort error sync log for executions that could not complete"""
        try:
            await self.repository.write_sync_log(
                sync_type=self.sync_type,
                status=SyncStatus.ERROR,
                error_message=summarize_errors([message], 1, self.sync_log_error_max_chars),
                duration_ms=int((time.monotonic() - start) * 1000),
                started_at=started_at,
                completed_at=utcnow(),
            )
            await self.repository.commit()
        except Exception as e:
            logger.error(f"Failed to write error sync log: {e}")

    async def _process_record(self, record: Any, index: int) -> RecordOutcome:
        advisory_failures: List[str] = []

        inspection = inspect_record(record, index)
        if not inspection.is_valid:
            error_cls = MissingIdentifierError if isinstance(record, dict) else TransformationError
            raise error_cls(
                "; ".join(inspection.errors),
                context={"record_index": index}
            )

        payload = self._required(
            await self._run_step("transform", self.transformer.transform, record), index
        )
        location = self._required(
            await self._run_step("transform", self.transformer.to_location, payload), index
        )
        location_id = self._required(
            await self._run_step("upsert_location", self.repository.upsert_location, location), index
        )

        asset = self._required(
            await self._run_step("transform", self.transformer.to_asset, payload, location_id), index
        )
        previous_state = self._advisory(
            await self._run_step(
                "fetch_previous_state", self.repository.get_asset_state, asset.external_guid
            ),
            index, advisory_failures
        )
        asset_id = self._required(
            await self._run_step("upsert_asset", self.repository.upsert_asset, asset), index
        )

        # Alerts
        events = self._advisory(
            await self._run_step(
                "evaluate_alerts", self.alert_engine.evaluate,
                asset, payload, previous_state, asset_id=asset_id
            ),
            index, advisory_failures
        )
        created = []
        if events:
            created = self._advisory(
                await self._run_step("persist_alerts", self.alert_engine.persist, events),
                index, advisory_failures
            ) or []

        # Consumption
        reading = self._required(
            await self._run_step("transform", self.transformer.to_reading, payload, asset_id), index
        )
        estimate = self._advisory(
            await self._run_step(
                "estimate_consumption", self.estimator.estimate,
                asset_id, asset.current_level_percent, asset.capacity_liters,
                current_level_liters=asset.current_level_liters
            ),
            index, advisory_failures
        )
        if estimate is not None and self.estimator.should_override(estimate):
            overwrite = await self._run_step(
                "overwrite_consumption", self.repository.update_asset_consumption,
                asset_id,
                daily_consumption_liters=estimate.daily_consumption_litres,
                days_remaining=estimate.days_remaining,
                confidence=estimate.confidence,
            )
            self._advisory(overwrite, index, advisory_failures)
            if overwrite.ok:
                reading.daily_consumption = estimate.daily_consumption_litres
                reading.days_remaining = estimate.days_remaining

        reading_id = self._required(
            await self._run_step("insert_reading", self.repository.insert_reading, reading), index
        )

        return RecordOutcome(
            index=index,
            location_id=location_id,
            asset_id=asset_id,
            reading_id=reading_id,
            alerts_created=len(created),
            advisory_failures=advisory_failures,
        )

    async def _run_step(self, step: str, func, *args, **kwargs) -> StepResult:
        """Run one step, capturing its failure instead of raising"""
        try:
            if STEP_POLICY[step] is StepPolicy.ADVISORY and inspect.iscoroutinefunction(func):
                # A failed advisory statement must not poison the record's transaction
                async with self.repository.savepoint():
                    value = await func(*args, **kwargs)
            else:
                value = func(*args, **kwargs)
                if inspect.isawaitable(value):
                    value = await value
        except Exception as e:
            return StepResult(step=step, ok=False, error=e)
        return StepResult(step=step, ok=True, value=value)

    @staticmethod
    def _required(result: StepResult, index: int) -> Any:
        if result.ok:
            return result.value

        error = result.error
        if isinstance(error, TelemetryException):
            error.context.setdefault("record_index", index)
            error.context.setdefault("step", result.step)
            raise error

        error_cls = TransformationError if result.step == "transform" else PersistenceError
        raise error_cls(
            f"{result.step} failed: {error}",
            context={"record_index": index, "step": result.step},
            original_exception=error
        )

    @staticmethod
    def _advisory(result: StepResult, index: int, failures: List[str]) -> Any:
        if result.ok:
            return result.value
        failures.append(result.step)
        logger.warning(f"Record {index}: {result.step} failed (ignored): {result.error}")
        return None

    @staticmethod
    def _record_label(record: Any, index: int) -> str:
        if isinstance(record, dict):
            identifier = record.get("LocationId") or record.get("LocationGuid") or "unknown"
            return f"Record {index} ({identifier})"
        return f"Record {index}"
