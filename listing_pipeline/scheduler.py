# listing_pipeline/scheduler.py
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .config import STALE_ANALYZING_MINUTES, SWEEP_INTERVAL_MINUTES
from .services import registry
from .utils import logger

scheduler = AsyncIOScheduler()


def sweep_stale_candidates():
    return registry.sweep(timedelta(minutes=STALE_ANALYZING_MINUTES))


def start_scheduler():
    if scheduler.running:
        return
    scheduler.add_job(sweep_stale_candidates, 'interval', minutes=SWEEP_INTERVAL_MINUTES,
                      id="stale-candidate-sweep", replace_existing=True)
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
