import logging

from src.core.config import settings
from src.reporting.scheduler import report_scheduler

logger = logging.getLogger(__name__)


def start_scheduler():
    """
    Start the scheduled report poller when autostart is enabled.
    """
    if not settings.scheduler_autostart:
        logger.info("Scheduler autostart disabled; start it via POST /api/scheduler/start")
        return

    report_scheduler.start(settings.scheduler_interval_minutes)
    logger.info(
        f"APScheduler started. Scheduled reports every {settings.scheduler_interval_minutes} minutes, "
        f"artifact sweep every {settings.artifact_sweep_interval_minutes} minutes."
    )


async def stop_scheduler():
    """
    Shutdown the scheduler.
    """
    logger.info("Stopping APScheduler...")
    report_scheduler.shutdown()
