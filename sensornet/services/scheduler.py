"""
Periodic retention for the in-memory fallback store
"""
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime, timedelta
from typing import Callable
import logging

from sensornet.database import Settings, utcnow
from sensornet.stores.base import SensorStore

logger = logging.getLogger(__name__)

def purge_expired_data(store: SensorStore, retention: timedelta, clock: Callable[[], datetime] = utcnow) -> int:
    """Drop fallback readings and events older than the retention window"""
    cutoff = clock() - retention
    try:
        removed = store.purge_older_than(cutoff)
    except Exception as e:
        logger.error(f"Error purging expired data: {str(e)}")
        return 0
    if removed:
        logger.info(f"Retention job removed {removed} entries older than {cutoff.isoformat()}")
    return removed

def create_scheduler(store: SensorStore, config: Settings, clock: Callable[[], datetime] = utcnow) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        purge_expired_data,
        IntervalTrigger(minutes=config.retention_interval_minutes),
        args=[store, timedelta(days=config.fallback_retention_days), clock],
        id="fallback_retention",
        replace_existing=True,
    )
    return scheduler

def start_scheduler(scheduler: BackgroundScheduler) -> None:
    if not scheduler.running:
        scheduler.start()
        job = scheduler.get_job("fallback_retention")
        logger.info(f"Retention scheduler started (trigger: {job.trigger if job else 'none'})")

def stop_scheduler(scheduler: BackgroundScheduler) -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Retention scheduler stopped")
