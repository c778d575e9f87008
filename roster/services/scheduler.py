"""Periodic expiry and warning sweeps via APScheduler.

Both jobs are registered with max_instances=1 and coalesce=True: a sweep
still running when its next tick fires is not re-entered, and missed ticks
collapse into one run.
"""

from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from roster.logging_config import get_logger, log_context
from roster.models.settings import ScheduleConfig

logger = get_logger(__name__)

EXPIRY_JOB_ID = "sweep_expired"
WARNING_JOB_ID = "sweep_warnings"


class SweepScheduler:
    """Runs SubscriptionService sweeps on fixed intervals."""

    def __init__(self, service, schedule: ScheduleConfig, scheduler: Optional[AsyncIOScheduler] = None):
        """Initialize sweep scheduler.

        Args:
            service: SubscriptionService whose sweeps are run
            schedule: Sweep intervals
            scheduler: APScheduler instance (a UTC AsyncIOScheduler if omitted)
        """
        self.service = service
        self.schedule = schedule
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)

    def register_jobs(self) -> None:
        """Add both sweep jobs; the expiry sweep also runs once right away."""
        self.scheduler.add_job(
            self.run_expiry_sweep,
            IntervalTrigger(minutes=self.schedule.expiry_sweep_interval_minutes),
            id=EXPIRY_JOB_ID,
            name="Expired subscription sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        self.scheduler.add_job(
            self.run_warning_sweep,
            IntervalTrigger(minutes=self.schedule.warning_sweep_interval_minutes),
            id=WARNING_JOB_ID,
            name="Expiry warning sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(
            "sweep_jobs_registered",
            expiry_interval_minutes=self.schedule.expiry_sweep_interval_minutes,
            warning_interval_minutes=self.schedule.warning_sweep_interval_minutes,
        )

    def run_expiry_sweep(self) -> Optional[list[tuple[str, str]]]:
        """Job body; exceptions are logged so the job stays scheduled."""
        with log_context(sweep=EXPIRY_JOB_ID):
            try:
                return self.service.process_expired()
            except Exception as e:
                logger.error("expiry_sweep_failed", error=str(e), error_type=type(e).__name__, exc_info=True)
                return None

    def run_warning_sweep(self) -> Optional[dict[str, int]]:
        with log_context(sweep=WARNING_JOB_ID):
            try:
                return self.service.process_warnings()
            except Exception as e:
                logger.error("warning_sweep_failed", error=str(e), error_type=type(e).__name__, exc_info=True)
                return None

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        """Register jobs and start the scheduler (needs a running event loop)."""
        if not self.schedule.enabled:
            logger.info("sweep_scheduler_disabled")
            return
        self.register_jobs()
        self.scheduler.start()
        logger.info("sweep_scheduler_started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("sweep_scheduler_stopped")
