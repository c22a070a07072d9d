"""
APScheduler Background Jobs

Two independent interval jobs share the process:
- outbox worker (default every 30s)
- reminder worker (default every 10 minutes)

Both also run once immediately on start. A cycle that is still running when
its next tick fires is skipped, not queued.
"""

import threading
from datetime import datetime, timezone
from typing import Optional

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import sessionmaker

from notification_service.config import settings
from notification_service.services.outbox_worker import OutboxWorker
from notification_service.services.reminder_scheduler import ReminderScheduler

logger = structlog.get_logger(__name__)

OUTBOX_JOB_ID = "outbox_worker"
REMINDER_JOB_ID = "reminder_worker"


class NotificationJobs:
    """
    Owns the outbox worker, the reminder scheduler and their timers.

    Lifecycle: start() registers and starts both timers, stop() cancels them
    and waits for in-flight cycles to finish.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        outbox_worker: Optional[OutboxWorker] = None,
        reminder_scheduler: Optional[ReminderScheduler] = None,
        enabled: Optional[bool] = None,
        outbox_interval_seconds: Optional[int] = None,
        reminder_interval_seconds: Optional[int] = None,
        scheduler: Optional[BackgroundScheduler] = None
    ):
        self.outbox_worker = outbox_worker if outbox_worker is not None else OutboxWorker(session_factory)
        self.reminder_scheduler = (
            reminder_scheduler if reminder_scheduler is not None else ReminderScheduler(session_factory)
        )
        self.enabled = settings.jobs_enabled if enabled is None else enabled
        self.outbox_interval_seconds = (
            outbox_interval_seconds if outbox_interval_seconds is not None
            else settings.outbox_worker_interval_seconds
        )
        self.reminder_interval_seconds = (
            reminder_interval_seconds if reminder_interval_seconds is not None
            else settings.reminder_worker_interval_seconds
        )
        self.scheduler = (
            scheduler if scheduler is not None
            else BackgroundScheduler(timezone=settings.scheduler_timezone)
        )

        # In-process "already running" guards
        self._outbox_lock = threading.Lock()
        self._reminder_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self.scheduler.running

    def run_outbox_worker_once(self) -> int:
        """
        Run one outbox cycle unless disabled or a cycle is in flight.

        Returns:
            Messages processed (0 when skipped)
        """
        if not self.enabled:
            return 0
        if not self._outbox_lock.acquire(blocking=False):
            logger.debug("outbox_worker_skipped", reason="already_running")
            return 0

        try:
            processed = self.outbox_worker.run_cycle()
            if processed > 0:
                logger.info("outbox_worker_processed", processed=processed)
            return processed
        except Exception as e:
            logger.error("outbox_worker_failed", error=str(e), exc_info=True)
            return 0
        finally:
            self._outbox_lock.release()

    def run_reminder_worker_once(self) -> int:
        """
        Reconcile schedules, then evaluate due reminders.

        Returns:
            Reminders emitted (0 when skipped)
        """
        if not self.enabled:
            return 0
        if not self._reminder_lock.acquire(blocking=False):
            logger.debug("reminder_worker_skipped", reason="already_running")
            return 0

        try:
            self.reminder_scheduler.reconcile_schedules()
            triggered = self.reminder_scheduler.evaluate_due_reminders()
            if triggered > 0:
                logger.info("reminder_worker_triggered", triggered=triggered)
            return triggered
        except Exception as e:
            logger.error("reminder_worker_failed", error=str(e), exc_info=True)
            return 0
        finally:
            self._reminder_lock.release()

    def start(self) -> BackgroundScheduler:
        """
        Register both interval jobs and start the scheduler.

        Returns:
            BackgroundScheduler instance
        """
        if not self.enabled:
            logger.info("notification_jobs_disabled")
            return self.scheduler

        # First run fires immediately so pending work is not delayed until the first tick
        now = datetime.now(timezone.utc)

        self.scheduler.add_job(
            self.run_outbox_worker_once,
            trigger=IntervalTrigger(seconds=self.outbox_interval_seconds),
            id=OUTBOX_JOB_ID,
            name="Outbox Worker",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=now
        )
        logger.info("job_registered", job=OUTBOX_JOB_ID, interval_seconds=self.outbox_interval_seconds)

        self.scheduler.add_job(
            self.run_reminder_worker_once,
            trigger=IntervalTrigger(seconds=self.reminder_interval_seconds),
            id=REMINDER_JOB_ID,
            name="Reminder Worker",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=now
        )
        logger.info("job_registered", job=REMINDER_JOB_ID, interval_seconds=self.reminder_interval_seconds)

        self.scheduler.start()
        logger.info(
            "notification_jobs_started",
            outbox_interval_seconds=self.outbox_interval_seconds,
            reminder_interval_seconds=self.reminder_interval_seconds
        )

        return self.scheduler

    def stop(self):
        """Cancel both timers and wait for running cycles to finish."""
        if not self.scheduler.running:
            return

        for job_id in (OUTBOX_JOB_ID, REMINDER_JOB_ID):
            if self.scheduler.get_job(job_id):
                self.scheduler.remove_job(job_id)

        self.scheduler.shutdown(wait=True)
        logger.info("notification_jobs_stopped")


__all__ = [
    "NotificationJobs",
    "OUTBOX_JOB_ID",
    "REMINDER_JOB_ID",
]
