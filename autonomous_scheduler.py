"""
Autonomous Scheduler
Runs every collector on its own cadence from one declarative job table,
plus a single warm-up pass shortly after startup
"""
import logging
import time
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

import requests
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from alert_merge import AlertMergeService
from config import Config
from gauge_ingest import GaugeIngestService
from ingest import IngestService
from observation_ingest import ObservationIngestService
from scheduler_service import SchedulerService
from services.noaa_service import NOAAService
from services.traffic_service import TrafficService
from services.usgs_service import USGSService
from traffic_ingest import TrafficIngestService
from utils.retry import with_retry
from utils.weather_utils import utcnow

logger = logging.getLogger(__name__)

STARTUP_JOB_ID = 'startup_run'
ALL_RETRIES_FAILED = "all retries failed"


@dataclass(frozen=True)
class CollectorJob:
    name: str
    interval_minutes: int
    collector: Callable[[], int]


def build_default_jobs(db, session: Optional[requests.Session] = None,
                       state: str = Config.TARGET_STATE,
                       intervals: Optional[Dict[str, int]] = None) -> List[CollectorJob]:
    """
    Wire the four collectors to their fetchers. All NOAA collectors share one
    NOAAService so its caches are shared too.
    """
    session = session or requests.Session()
    intervals = intervals or Config.COLLECTOR_INTERVALS

    noaa_service = NOAAService(session=session)
    collectors = {
        'weather': ObservationIngestService(db, noaa_service, state).collect,
        'alerts': IngestService(db, AlertMergeService(noaa_service), state).collect,
        'traffic': TrafficIngestService(db, TrafficService(session=session)).collect,
        'gauges': GaugeIngestService(db, USGSService(session=session), state).collect,
    }
    return [CollectorJob(name, intervals[name], collector) for name, collector in collectors.items()]


class AutonomousScheduler:
    """
    Background scheduler for the collectors.
    A collector never overlaps itself; different collectors may run at once.
    Every run goes through the retry wrapper and its own try/except, so a
    failing collector only shows up in its status entry.
    """

    def __init__(self, jobs: Iterable[CollectorJob], app=None,
                 scheduler_service: Optional[SchedulerService] = None,
                 enabled: bool = True, persistence_enabled: bool = True,
                 startup_delay: float = Config.STARTUP_DELAY_SECONDS,
                 max_retries: int = Config.MAX_RETRIES,
                 base_delay: float = Config.RETRY_BASE_DELAY_SECONDS,
                 retry_sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], datetime] = utcnow):
        self.jobs: Dict[str, CollectorJob] = {job.name: job for job in jobs}
        self.app = app
        self.scheduler_service = scheduler_service or SchedulerService(self.jobs)
        for name in self.jobs:
            self.scheduler_service.register(name)
        self.enabled = enabled
        self.persistence_enabled = persistence_enabled
        self.startup_delay = startup_delay
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.retry_sleep = retry_sleep
        self.clock = clock

        self.scheduler: Optional[BackgroundScheduler] = None
        self.running = False

    def start(self) -> bool:
        """Start all collector jobs. Returns False when collection is off."""
        if not self.enabled:
            logger.info("Collector disabled (ENABLE_COLLECTOR=false), not starting")
            return False
        if not self.persistence_enabled:
            logger.info("Collector not started: DATABASE_URL is not configured")
            return False
        if self.running:
            logger.warning("Scheduler already running")
            return True

        scheduler = BackgroundScheduler(timezone="UTC")
        for job in self.jobs.values():
            scheduler.add_job(
                self.run_collector,
                trigger=IntervalTrigger(minutes=job.interval_minutes),
                args=[job.name],
                id=job.name,
                name=f"{job.name} collector",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )

        scheduler.add_job(
            self.run_all,
            trigger=DateTrigger(run_date=self.clock() + timedelta(seconds=self.startup_delay)),
            id=STARTUP_JOB_ID,
            name="startup collection",
            replace_existing=True,
        )

        scheduler.start()
        self.scheduler = scheduler
        self.running = True

        for name in self.jobs:
            self.scheduler_service.set_next_run(name, self._job_next_run(name))

        cadences = ", ".join(f"{job.name} every {job.interval_minutes}min" for job in self.jobs.values())
        logger.info(f"Scheduler started: {cadences}; first run in {self.startup_delay:g}s")
        return True

    def shutdown(self):
        """Stop all jobs and forget next-run times. Safe to call repeatedly."""
        scheduler, self.scheduler = self.scheduler, None
        self.running = False
        if scheduler is None:
            return
        if scheduler.running:
            scheduler.shutdown(wait=False)
        self.scheduler_service.clear_next_runs()
        logger.info("Scheduler stopped")

    def run_collector(self, name: str) -> Optional[int]:
        """Run one collector through the retry wrapper and record the outcome"""
        job = self.jobs[name]
        was_running = self.running
        result = None
        error = None

        try:
            with self._app_context():
                result = with_retry(job.collector, name,
                                    max_retries=self.max_retries,
                                    base_delay=self.base_delay,
                                    sleep=self.retry_sleep)
            if result is None:
                error = ALL_RETRIES_FAILED
        except Exception as e:
            logger.error(f"[Collector:{name}] Unexpected error: {e}")
            error = str(e)

        finished_at = self.clock()
        next_run = None
        if self.running or not was_running:
            next_run = self._job_next_run(name) or finished_at + timedelta(minutes=job.interval_minutes)
        self.scheduler_service.log_operation_complete(name, finished_at, result, error, next_run)
        return result

    def run_all(self) -> Dict[str, Optional[int]]:
        """Run every collector once, in table order"""
        logger.info("Running all collectors")
        return {name: self.run_collector(name) for name in self.jobs}

    def get_status(self) -> Dict:
        return self.scheduler_service.get_status(self.running)

    def _job_next_run(self, name: str) -> Optional[datetime]:
        if self.scheduler is None:
            return None
        job = self.scheduler.get_job(name)
        return job.next_run_time if job else None

    def _app_context(self):
        if self.app is None:
            return nullcontext()
        return self.app.app_context()


# Global scheduler instance
autonomous_scheduler = None


def init_scheduler(jobs: Iterable[CollectorJob], app=None, **kwargs) -> AutonomousScheduler:
    """Initialize the global scheduler instance"""
    global autonomous_scheduler
    if autonomous_scheduler is not None:
        autonomous_scheduler.shutdown()
    kwargs.setdefault('enabled', Config.ENABLE_COLLECTOR)
    kwargs.setdefault('persistence_enabled', Config.database_enabled())
    autonomous_scheduler = AutonomousScheduler(jobs, app=app, **kwargs)
    return autonomous_scheduler


def start_scheduler() -> bool:
    """Start the global scheduler"""
    if autonomous_scheduler:
        return autonomous_scheduler.start()
    return False


def stop_scheduler():
    """Stop the global scheduler"""
    if autonomous_scheduler:
        autonomous_scheduler.shutdown()


def get_scheduler_status() -> Dict:
    """Get scheduler status"""
    if autonomous_scheduler:
        return autonomous_scheduler.get_status()
    return {'enabled': False, 'collectors': {}}
