"""
Periodic execution of price checks using APScheduler.
"""

from datetime import datetime
from typing import Callable, List, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from fuel_price_monitor.services.price_check import PriceCheckService
from fuel_price_monitor.utils.errors import SchedulerError
from fuel_price_monitor.utils.logging import cleanup_old_logs, get_business_logger
from config import SchedulerConfig, Subscriber


PRICE_CHECK_JOB_ID = 'price_check'
LOG_CLEANUP_JOB_ID = 'log_cleanup'


class PriceCheckScheduler:
    """
    Runs the price check on a fixed interval.

    Jobs never overlap: a run that is still going when the next one is due
    causes the next one to be skipped, and missed runs are coalesced.
    """

    def __init__(
        self,
        service: PriceCheckService,
        load_subscribers: Callable[[], List[Subscriber]],
        config: Optional[SchedulerConfig] = None,
        scheduler: Optional[BlockingScheduler] = None
    ):
        """
        Args:
            service: Price check service to run
            load_subscribers: Called before each run so subscriber edits apply
            config: Scheduler configuration
            scheduler: APScheduler instance, created when omitted
        """
        self.service = service
        self.load_subscribers = load_subscribers
        self.config = config or SchedulerConfig()
        self.scheduler = scheduler or BlockingScheduler(
            jobstores={'default': MemoryJobStore()},
            job_defaults={'coalesce': True, 'max_instances': 1},
            timezone=self.config.timezone
        )

        self.scheduler.add_listener(self._job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._job_missed, EVENT_JOB_MISSED)

        self.logger = get_business_logger('scheduler')

    def schedule_price_check(self, interval_minutes: Optional[int] = None, run_now: bool = True) -> None:
        """
        Schedule the periodic price check.

        Args:
            interval_minutes: Minutes between runs, defaults to the configured value
            run_now: Whether the first run starts immediately
        """
        interval_minutes = interval_minutes or self.config.interval_minutes

        job_options = {}
        if run_now:
            job_options['next_run_time'] = datetime.now(self.scheduler.timezone)

        try:
            self.scheduler.add_job(
                func=self._execute_price_check,
                trigger=IntervalTrigger(minutes=interval_minutes, timezone=self.config.timezone),
                id=PRICE_CHECK_JOB_ID,
                name='Fuel Price Check',
                replace_existing=True,
                **job_options
            )
        except Exception as e:
            self.logger.error(f"Failed to schedule price check: {e}")
            raise SchedulerError(f"Failed to schedule price check: {e}")

        self.logger.info(f"Price check scheduled every {interval_minutes} minutes")

    def schedule_log_cleanup(self, hour: Optional[int] = None) -> None:
        """Schedule the daily removal of expired log files."""
        hour = self.config.log_cleanup_hour if hour is None else hour

        try:
            self.scheduler.add_job(
                func=cleanup_old_logs,
                trigger=CronTrigger(hour=hour, minute=0, timezone=self.config.timezone),
                id=LOG_CLEANUP_JOB_ID,
                name='Log Cleanup',
                replace_existing=True
            )
        except Exception as e:
            self.logger.error(f"Failed to schedule log cleanup: {e}")
            raise SchedulerError(f"Failed to schedule log cleanup: {e}")

        self.logger.info(f"Log cleanup scheduled for {hour:02d}:00")

    def start(self) -> None:
        """Start the scheduler; blocks until stop() or an interrupt."""
        self.logger.info("Starting price check scheduler")
        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            self.logger.info("Scheduler interrupted")

    def stop(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            self.logger.info("Price check scheduler stopped")

    def _execute_price_check(self) -> None:
        subscribers = self.load_subscribers()
        self.service.run(datetime.now(), subscribers)

    def _job_executed(self, event) -> None:
        self.logger.info(f"Job {event.job_id} executed")

    def _job_error(self, event) -> None:
        # A failed run is retried by the next scheduled run.
        self.logger.error(f"Job {event.job_id} failed: {event.exception}")

    def _job_missed(self, event) -> None:
        self.logger.warning(f"Job {event.job_id} missed its run time")
