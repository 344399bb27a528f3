"""
Script to recalculate consumption for every active asset once
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import dispose_engines, get_session_maker
from core.exceptions import TelemetryException
from core.logging import setup_logging
from ingestion.repository import TelemetryRepository
from ingestion.scheduler import run_consumption_recalculation

setup_logging()
logger = logging.getLogger(__name__)


async def recalculate():
    """Run one consumption recalculation pass"""
    try:
        async with get_session_maker(settings.DATABASE_URL)() as session:
            stats = await run_consumption_recalculation(
                TelemetryRepository(session),
                lookback_days=settings.CONSUMPTION_LOOKBACK_DAYS
            )
            logger.info(
                f"Recalculation completed: Processed={stats['processed']}, "
                f"Updated={stats['updated']}, Skipped={stats['skipped']}, Failed={stats['failed']}"
            )

    except TelemetryException as e:
        logger.error(f"Recalculation failed: {e.message}", extra={"error_context": e.to_dict()})
        sys.exit(1)
    except Exception as e:
        logger.error(f"Recalculation error: {str(e)}")
        sys.exit(1)
    finally:
        await dispose_engines()


if __name__ == "__main__":
    asyncio.run(recalculate())
