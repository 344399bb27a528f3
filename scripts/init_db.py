"""
Script to create the schema and optionally register manually dipped tanks

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --tank "Kewdale Diesel 1:20000" --tank "Depot Petrol:15000"
"""

import argparse
import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from sqlalchemy import select

from core.config import settings
from core.database import dispose_engines, get_engine, get_session_maker
from core.logging import setup_logging
# Importing the package registers every table on Base.metadata
from models import Base, Tank

setup_logging()
logger = logging.getLogger(__name__)


def parse_tank(value: str):
    """'name:capacity' -> (name, capacity_liters)"""
    name, _, capacity = value.rpartition(":")
    if not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME:CAPACITY, got {value!r}")
    try:
        return name.strip(), float(capacity)
    except ValueError:
        raise argparse.ArgumentTypeError(f"capacity must be a number, got {capacity!r}")


async def init_database(tanks):
    engine = get_engine(settings.DATABASE_URL)

    try:
        async with engine.begin() as conn:
            logger.info("Creating tables...")
            await conn.run_sync(Base.metadata.create_all)

        if tanks:
            async with get_session_maker(settings.DATABASE_URL)() as session:
                existing = set((await session.execute(select(Tank.name))).scalars().all())
                for name, capacity in tanks:
                    if name in existing:
                        logger.info(f"Tank '{name}' already registered")
                        continue
                    session.add(Tank(name=name, capacity_liters=capacity))
                    logger.info(f"Registered tank '{name}' ({capacity:g}L)")
                await session.commit()

        logger.info("Database initialised")
    finally:
        await dispose_engines()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--tank", action="append", type=parse_tank, default=[],
        metavar="NAME:CAPACITY", help="Register a manually dipped tank"
    )
    args = parser.parse_args()
    asyncio.run(init_database(args.tank))
