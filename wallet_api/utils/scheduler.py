"""
Scheduler Service
Keeps a sleeping host awake by pinging the API on an interval using APScheduler
"""
import logging
from typing import Optional

import httpx
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from wallet_api.core.config import settings

logger = logging.getLogger(__name__)

SELF_PING_JOB_ID = "self_ping"

# Scheduler instance (None while stopped)
scheduler: Optional[BackgroundScheduler] = None


def self_ping_job(url: str) -> bool:
    """GET ``url`` once and log the outcome."""
    try:
        response = httpx.get(url, timeout=10.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Self-ping error: {str(e)}")
        return False
    logger.info("Self-ping successful")
    return True


def start_scheduler(url: Optional[str] = None, interval_minutes: Optional[int] = None):
    """Start the background scheduler with the keep-alive job, if a ping URL is configured."""
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler is already running")
        return

    url = url or settings.SELF_PING_URL
    if not url:
        logger.info("SELF_PING_URL not set, keep-alive scheduler disabled")
        return

    interval = interval_minutes or settings.SELF_PING_INTERVAL_MINUTES
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        self_ping_job,
        args=[url],
        trigger=IntervalTrigger(minutes=interval),
        id=SELF_PING_JOB_ID,
        name="Self ping",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"Scheduler started, pinging {url} every {interval} minutes")


def stop_scheduler():
    """Stop the background scheduler"""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown()
        scheduler = None
        logger.info("Scheduler stopped")


def get_scheduler_status():
    """Get current scheduler status"""
    if scheduler is None:
        return {"running": False, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": str(job.next_run_time) if job.next_run_time else None
        })

    return {
        "running": scheduler.running,
        "jobs": jobs
    }
