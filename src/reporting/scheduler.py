"""
Scheduled report poller.

An APScheduler interval job wakes every few minutes, selects the active
reports whose ``next_run`` has passed, claims each one with a lease so that no
other tick or process runs it concurrently, then generates, delivers and
records the run. Artifacts are removed by a one-shot job shortly after
delivery and by an hourly age-based sweep. A third job sends in-app
notifications whose scheduled time has passed.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select, update, or_, func
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from src.core.config import settings
from src.core.database import async_session_factory
from src.core.utils import utcnow, to_naive_utc, as_utc
from src.notifications.database import NotificationPriority, NotificationType
from src.notifications.service import NotificationService, notification_service
from src.reporting.database import ScheduledReportModel
from src.reporting.delivery import DeliveryDispatcher, DeliveryResult, report_url
from src.reporting.errors import ClaimConflict, ScheduledReportNotFound
from src.reporting.schedule import compute_next_run
from src.reporting.workflow import ReportEngine
from .generators.base import Artifact

logger = logging.getLogger(__name__)

TICK_JOB_ID = "scheduled_reports_tick"
SWEEP_JOB_ID = "scheduled_reports_sweep"
NOTIFICATIONS_JOB_ID = "scheduled_notifications"


@dataclass
class RunOutcome:
    success: bool
    error: Optional[str] = None
    artifact: Optional[Artifact] = None
    deliveries: List[DeliveryResult] = field(default_factory=list)

    @property
    def delivery_failures(self) -> int:
        return sum(1 for d in self.deliveries if not d.success)


class ReportScheduler:
    """Polls for due scheduled reports and runs them one after another."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        engine: Optional[ReportEngine] = None,
        dispatcher: Optional[DeliveryDispatcher] = None,
        notifications: Optional[NotificationService] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        reports_dir: Optional[Union[str, Path]] = None,
    ):
        self.session_factory = session_factory or async_session_factory
        self.engine = engine or ReportEngine(session_factory=self.session_factory)
        self.notifications = notifications or notification_service
        self.dispatcher = dispatcher or DeliveryDispatcher(notifications=self.notifications)
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self.reports_dir = Path(reports_dir or settings.reports_dir)

        self.interval_minutes = settings.scheduler_interval_minutes
        self.started_at: Optional[datetime] = None
        self.last_tick_at: Optional[datetime] = None

    # ──── Lifecycle ────

    @property
    def is_running(self) -> bool:
        return self.scheduler.running and self.scheduler.get_job(TICK_JOB_ID) is not None

    def start(self, interval_minutes: Optional[int] = None):
        """Start polling. Calling start while running only logs a warning."""
        if self.is_running:
            logger.warning("Report scheduler is already running")
            return

        self.interval_minutes = interval_minutes or settings.scheduler_interval_minutes
        if not self.scheduler.running:
            self.scheduler.start()

        # First tick fires immediately
        self.scheduler.add_job(
            self._tick,
            IntervalTrigger(minutes=self.interval_minutes),
            id=TICK_JOB_ID,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.cleanup_old_reports,
            IntervalTrigger(minutes=settings.artifact_sweep_interval_minutes),
            id=SWEEP_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self._send_scheduled_notifications,
            IntervalTrigger(minutes=self.interval_minutes),
            id=NOTIFICATIONS_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.started_at = utcnow()
        logger.info(f"Report scheduler started (every {self.interval_minutes} minutes)")

    def stop(self):
        """Stop future ticks; a tick already in progress runs to completion."""
        if not self.is_running:
            logger.warning("Report scheduler is not running")
            return
        for job_id in (TICK_JOB_ID, SWEEP_JOB_ID, NOTIFICATIONS_JOB_ID):
            if self.scheduler.get_job(job_id):
                self.scheduler.remove_job(job_id)
        self.started_at = None
        logger.info("Report scheduler stopped")

    def shutdown(self):
        """Stop polling and the underlying scheduler (application exit)."""
        if self.is_running:
            self.stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def get_status(self) -> Dict[str, Any]:
        running = self.is_running
        job = self.scheduler.get_job(TICK_JOB_ID) if self.scheduler.running else None
        uptime = None
        if running and self.started_at:
            uptime = int((utcnow() - self.started_at).total_seconds())
        return {
            "is_running": running,
            "interval_minutes": self.interval_minutes,
            "started_at": as_utc(self.started_at) if running else None,
            "uptime_seconds": uptime,
            "last_tick_at": as_utc(self.last_tick_at),
            "next_tick_at": job.next_run_time if job else None,
        }

    async def get_report_counts(self) -> Dict[str, int]:
        now = utcnow()
        async with self.session_factory() as session:
            total = await session.scalar(select(func.count(ScheduledReportModel.id)))
            active = await session.scalar(
                select(func.count(ScheduledReportModel.id)).where(ScheduledReportModel.is_active.is_(True))
            )
            due = await session.scalar(
                select(func.count(ScheduledReportModel.id)).where(
                    ScheduledReportModel.is_active.is_(True),
                    ScheduledReportModel.next_run <= now,
                )
            )
        return {"total_reports": total or 0, "active_reports": active or 0, "due_reports": due or 0}

    # ──── Polling ────

    async def _tick(self):
        self.last_tick_at = utcnow()
        try:
            await self.process_due_reports()
        except Exception as e:
            logger.error(f"Scheduled report tick failed: {e}", exc_info=True)

    async def _send_scheduled_notifications(self):
        try:
            await self.notifications.process_scheduled_notifications()
        except Exception as e:
            logger.error(f"Scheduled notification sweep failed: {e}", exc_info=True)

    async def process_due_reports(self) -> Dict[str, int]:
        """
        Run every active report whose next_run has passed.

        Returns:
            Counts of due, executed, succeeded, failed and skipped reports.
        """
        now = utcnow()
        async with self.session_factory() as session:
            result = await session.execute(
                select(ScheduledReportModel.id, ScheduledReportModel.next_run)
                .where(
                    ScheduledReportModel.is_active.is_(True),
                    ScheduledReportModel.next_run <= now,
                )
                .order_by(ScheduledReportModel.next_run, ScheduledReportModel.id)
            )
            due = result.all()

        summary = {"due": len(due), "executed": 0, "succeeded": 0, "failed": 0, "skipped": 0}
        if not due:
            logger.debug("No scheduled reports due")
            return summary

        logger.info(f"Processing {len(due)} due scheduled reports")
        for report_id, observed_next_run in due:
            try:
                await self.claim(report_id, observed_next_run)
            except ClaimConflict as e:
                logger.info(f"Skipping scheduled report {report_id}: {e}")
                summary["skipped"] += 1
                continue

            try:
                report = await self._load(report_id)
                if report is None:
                    summary["skipped"] += 1
                    continue
                outcome = await self.execute_scheduled_report(report)
            except Exception as e:
                logger.error(f"Scheduled report {report_id} crashed: {e}", exc_info=True)
                summary["executed"] += 1
                summary["failed"] += 1
                continue

            summary["executed"] += 1
            summary["succeeded" if outcome.success else "failed"] += 1

        logger.info(
            f"Scheduled report tick done: {summary['succeeded']} succeeded, "
            f"{summary['failed']} failed, {summary['skipped']} skipped"
        )
        return summary

    async def claim(
        self,
        report_id: int,
        observed_next_run: Optional[datetime] = None,
        require_active: bool = True,
    ) -> str:
        """
        Take the execution lease on a report.

        The update only matches while the report is still in the observed state
        and nobody holds an unexpired lease.

        Raises:
            ClaimConflict: if the lease could not be taken.
        """
        now = utcnow()
        token = uuid.uuid4().hex
        lease_cutoff = now - timedelta(minutes=settings.claim_lease_minutes)

        stmt = update(ScheduledReportModel).where(
            ScheduledReportModel.id == report_id,
            or_(
                ScheduledReportModel.claimed_at.is_(None),
                ScheduledReportModel.claimed_at < lease_cutoff,
            ),
        )
        if require_active:
            stmt = stmt.where(ScheduledReportModel.is_active.is_(True))
        if observed_next_run is not None:
            stmt = stmt.where(ScheduledReportModel.next_run == to_naive_utc(observed_next_run))
        stmt = stmt.values(claimed_at=now, claim_token=token).execution_options(synchronize_session=False)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            claimed = result.rowcount
            await session.commit()

        if claimed != 1:
            raise ClaimConflict(report_id)
        return token

    async def _load(self, report_id: int) -> Optional[ScheduledReportModel]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ScheduledReportModel)
                .options(selectinload(ScheduledReportModel.template))
                .where(ScheduledReportModel.id == report_id)
            )
            return result.scalar_one_or_none()

    # ──── Execution ────

    async def execute_scheduled_report(self, report: ScheduledReportModel) -> RunOutcome:
        """
        Generate, deliver and record one run of a claimed report.

        Delivery failures are counted on the report but do not fail the run.
        """
        logger.info(f"Executing scheduled report {report.id} '{report.name}'")
        try:
            artifact = await self.engine.generate(report.template_id, report.parameters or {}, report.format)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.error(f"Scheduled report {report.id} failed: {error}")
            await self.record_run(report.id, False, error)
            await self._notify_failure(report, error)
            return RunOutcome(success=False, error=error)

        template_name = report.template.name if report.template else report.name
        deliveries = await self.dispatcher.deliver(report, artifact, template_name)
        outcome = RunOutcome(success=True, artifact=artifact, deliveries=deliveries)

        await self.record_run(
            report.id, True,
            delivery_failures=outcome.delivery_failures,
            artifact_path=str(artifact.path),
        )
        self.schedule_artifact_cleanup(artifact.path)

        logger.info(f"Scheduled report {report.id} executed successfully")
        return outcome

    async def record_run(
        self,
        report_id: int,
        success: bool,
        error: Optional[str] = None,
        delivery_failures: int = 0,
        artifact_path: Optional[str] = None,
    ) -> ScheduledReportModel:
        """Store the outcome of a run, release the lease and compute the next run."""
        async with self.session_factory() as session:
            report = await session.get(ScheduledReportModel, report_id)
            if report is None:
                raise ScheduledReportNotFound(report_id)

            now = utcnow()
            report.last_run = now
            report.run_count = (report.run_count or 0) + 1
            if success:
                report.last_error = None
            else:
                report.failure_count = (report.failure_count or 0) + 1
                report.last_error = error
            report.last_delivery_failures = delivery_failures
            if artifact_path:
                report.last_artifact_path = artifact_path
            report.claimed_at = None
            report.claim_token = None

            try:
                report.next_run = to_naive_utc(compute_next_run(report.schedule_spec(), now))
            except ValueError as e:
                logger.error(f"Scheduled report {report_id} has an unusable schedule, deactivating: {e}")
                report.is_active = False
                report.last_error = f"Invalid schedule: {e}"

            await session.commit()
            await session.refresh(report)
            return report

    async def run_now(self, report_id: int, created_by_id: Optional[int] = None) -> RunOutcome:
        """
        Execute a report immediately, regardless of its next_run or active flag.

        Raises:
            ScheduledReportNotFound: unknown report, or not owned by created_by_id
            ClaimConflict: the report is already being executed
        """
        report = await self._load(report_id)
        if report is None or (created_by_id is not None and report.created_by_id != created_by_id):
            raise ScheduledReportNotFound(report_id)

        await self.claim(report_id, require_active=False)
        logger.info(f"Manually executing scheduled report {report_id}")
        return await self.execute_scheduled_report(report)

    async def _notify_failure(self, report: ScheduledReportModel, error: str):
        try:
            await self.notifications.create_notification(
                recipient_id=report.created_by_id,
                type=NotificationType.SYSTEM_ALERT.value,
                title=f"Scheduled Report Failed: {report.name}",
                message=f"Your scheduled report '{report.name}' failed to execute. Error: {error}",
                priority=NotificationPriority.HIGH.value,
                action_url=report_url(report.id),
                metadata={"scheduled_report_id": report.id, "error": error},
            )
        except Exception as e:
            logger.error(f"Failed to send failure notification for scheduled report {report.id}: {e}")

    # ──── Artifact cleanup ────

    def schedule_artifact_cleanup(self, path: Union[str, Path], delay_minutes: Optional[int] = None):
        """Delete an artifact once the grace period has passed."""
        delay = settings.artifact_cleanup_delay_minutes if delay_minutes is None else delay_minutes
        path = Path(path)
        self.scheduler.add_job(
            cleanup_file,
            DateTrigger(run_date=datetime.now(timezone.utc) + timedelta(minutes=delay)),
            args=[str(path)],
            id=f"cleanup_{path.name}",
            replace_existing=True,
        )

    def run_pending_cleanups(self) -> int:
        """
        Delete artifacts whose one-shot cleanup job is still queued.

        Used when the process exits before the scheduler ever runs those jobs
        (the CLI). Returns the number of files removed.
        """
        removed = 0
        for job in self.scheduler.get_jobs():
            if not job.id.startswith("cleanup_"):
                continue
            if cleanup_file(*job.args):
                removed += 1
            self.scheduler.remove_job(job.id)
        return removed

    def cleanup_old_reports(self, retention_days: Optional[int] = None) -> int:
        """Remove artifacts older than the retention window. Returns the count removed."""
        days = settings.artifact_retention_days if retention_days is None else retention_days
        cutoff = datetime.now().timestamp() - days * 86400
        removed = 0
        if not self.reports_dir.exists():
            return 0
        for path in self.reports_dir.iterdir():
            if not path.is_file():
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except OSError as e:
                logger.error(f"Failed to remove old report {path}: {e}")
        if removed:
            logger.info(f"Cleaned up {removed} old report files")
        return removed


def cleanup_file(path: Union[str, Path]) -> bool:
    """Delete one artifact; a file that is already gone is not an error."""
    path = Path(path)
    try:
        path.unlink()
        logger.info(f"Cleaned up report file: {path.name}")
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error(f"Failed to clean up report file {path}: {e}")
        return False


# Singleton
report_scheduler = ReportScheduler()
