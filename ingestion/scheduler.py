import logging
import time
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from core.database import get_session_maker
from ingestion.consumption import ConsumptionEstimator
from ingestion.extractors.gasbot_api import GasbotPullSync
from ingestion.repository import TelemetryRepository
from models.base import SyncStatus, SyncType, utcnow

logger = logging.getLogger(__name__)


async def run_consumption_recalculation(repository, lookback_days: int = 7) -> dict:
    """Recalculate every active asset and write a consumption_recalc sync log"""
    estimator = ConsumptionEstimator(repository, lookback_days=lookback_days)

    started_at = utcnow()
    start = time.monotonic()
    stats = await estimator.recalculate_all()

    await repository.write_sync_log(
        sync_type=SyncType.CONSUMPTION_RECALC,
        status=SyncStatus.SUCCESS if stats["failed"] == 0 else SyncStatus.PARTIAL,
        assets_processed=stats["processed"],
        error_message=f"{stats['failed']} assets failed" if stats["failed"] else None,
        duration_ms=int((time.monotonic() - start) * 1000),
        started_at=started_at,
        completed_at=utcnow(),
    )
    await repository.commit()
    return stats


class IngestionScheduler:
    def __init__(
        self,
        session_maker=None,
        interval_minutes: int = None,
        sync_interval_minutes: int = None,
        enable_gasbot_sync: bool = None
    ):
        self.scheduler = AsyncIOScheduler()
        self.session_maker = session_maker
        self.interval_minutes = interval_minutes or settings.CONSUMPTION_RECALC_MINUTES
        self.sync_interval_minutes = sync_interval_minutes or settings.GASBOT_SYNC_MINUTES
        self.enable_gasbot_sync = (
            settings.ENABLE_GASBOT_SYNC if enable_gasbot_sync is None else enable_gasbot_sync
        )

    def _session_maker(self):
        return self.session_maker or get_session_maker(settings.DATABASE_URL)

    async def run_recalculation_job(self):
        """Job to recalculate consumption for every active asset"""
        logger.info("Scheduler: Starting consumption recalculation")
        async with self._session_maker()() as session:
            try:
                stats = await run_consumption_recalculation(
                    TelemetryRepository(session), lookback_days=settings.CONSUMPTION_LOOKBACK_DAYS
                )
                logger.info(f"Scheduler: Recalculation finished - {stats}")
            except Exception as e:
                await session.rollback()
                logger.error(f"Scheduler: Consumption recalculation failed - {e}")

    async def run_gasbot_sync_job(self):
        """Job to pull every tank from the Gasbot dashboard API"""
        logger.info("Scheduler: Starting Gasbot pull sync")
        async with self._session_maker()() as session:
            try:
                result = await GasbotPullSync(TelemetryRepository(session)).run()
                logger.info(
                    f"Scheduler: Gasbot sync finished - {result.processed_records}/"
                    f"{result.total_records} records, {result.error_count} errors"
                )
            except Exception as e:
                await session.rollback()
                logger.error(f"Scheduler: Gasbot pull sync failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_recalculation_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="consumption_recalc",
            replace_existing=True
        )
        if self.enable_gasbot_sync:
            self.scheduler.add_job(
                self.run_gasbot_sync_job,
                trigger=IntervalTrigger(minutes=self.sync_interval_minutes),
                id="gasbot_sync",
                replace_existing=True
            )
        self.scheduler.start()
        logger.info(
            f"Ingestion scheduler started (gasbot sync {'on' if self.enable_gasbot_sync else 'off'})"
        )

    def stop(self):
        self.scheduler.shutdown()
        logger.info("Ingestion scheduler stopped")
