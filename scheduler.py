"""Daily maintenance jobs, run inside the API process."""

import asyncio
from datetime import datetime, timedelta

import structlog
from pymongo.database import Database

from database import utcnow
from orders import complete_stale_handovers

logger = structlog.get_logger(__name__)


def seconds_until_next_run(now: datetime) -> float:
    """Seconds from ``now`` until the next UTC midnight."""
    next_midnight = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return (next_midnight - now).total_seconds()


async def run_daily_sweep(db: Database) -> None:
    logger.info("order_sweep_scheduled")
    while True:
        await asyncio.sleep(seconds_until_next_run(utcnow()))
        try:
            await asyncio.to_thread(complete_stale_handovers, db)
        except Exception:
            # retried on the next daily run
            logger.exception("order_sweep_failed")


def start_daily_sweep(db: Database) -> asyncio.Task:
    return asyncio.create_task(run_daily_sweep(db), name="order-sweep")
