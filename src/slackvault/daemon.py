"""slackvault daemon -- long-running APScheduler process for auto-sync.

Runs a sync pass every ``sync_interval`` minutes when auto-sync is on,
and once shortly after startup when ``sync_on_startup`` is set. The
engine's single-flight guard means an overlapping trigger is dropped,
not queued.
"""

from __future__ import annotations

import logging
import os
import signal
import sys
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from . import config
from .sync_engine import SyncEngine, build_engine, run_slack_sync

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "slack_sync"
STARTUP_JOB_ID = "slack_sync_startup"


class SyncDaemon:
    """Schedules sync passes for one engine."""

    def __init__(self, engine: SyncEngine, scheduler: Optional[BlockingScheduler] = None) -> None:
        self.engine = engine
        self.scheduler = scheduler or BlockingScheduler()
        self._schedule: Optional[tuple[bool, int]] = None

    def _sync_job(self) -> dict:
        try:
            result = run_slack_sync(self.engine)
        except Exception as e:
            logger.error("Scheduled sync failed: %s", e, exc_info=True)
            return {"status": "error", "error": str(e)[:500]}
        logger.info("Scheduled sync result: %s", result.get("status"))
        self._reschedule_if_changed()
        return result

    def _reschedule_if_changed(self) -> None:
        """Follow auto-sync edits picked up from the settings file by the last pass."""
        settings = self.engine.settings
        if (settings.auto_sync, settings.sync_interval) == self._schedule:
            return
        logger.info(
            "Auto-sync settings changed (auto_sync=%s, every %d minute(s)), rescheduling",
            settings.auto_sync, settings.sync_interval,
        )
        self.configure(startup=False)

    def configure(self, startup: bool = True) -> list[str]:
        """(Re)register jobs from the engine's settings. Returns job ids.

        With ``startup=False`` only the interval job is touched.
        """
        settings = self.engine.settings
        job_ids = (SYNC_JOB_ID, STARTUP_JOB_ID) if startup else (SYNC_JOB_ID,)
        for job_id in job_ids:
            if self.scheduler.get_job(job_id):
                self.scheduler.remove_job(job_id)

        jobs: list[str] = []
        if settings.auto_sync:
            self.scheduler.add_job(
                self._sync_job,
                trigger=IntervalTrigger(minutes=settings.sync_interval),
                id=SYNC_JOB_ID,
                name="Slack sync",
                replace_existing=True,
                coalesce=True,
                max_instances=1,
                misfire_grace_time=300,
            )
            jobs.append(SYNC_JOB_ID)
            logger.info("Auto-sync every %d minute(s)", settings.sync_interval)
        self._schedule = (settings.auto_sync, settings.sync_interval)
        if startup and settings.sync_on_startup:
            run_at = datetime.now() + timedelta(seconds=config.STARTUP_SYNC_DELAY_SECONDS)
            self.scheduler.add_job(
                self._sync_job,
                trigger=DateTrigger(run_date=run_at),
                id=STARTUP_JOB_ID,
                name="Slack sync on startup",
                replace_existing=True,
            )
            jobs.append(STARTUP_JOB_ID)
        return jobs

    def _handle_shutdown(self, signum, frame) -> None:
        """Graceful shutdown on SIGTERM/SIGINT."""
        logger.info("Received signal %s, shutting down...", signum)
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        config.DAEMON_PID_FILE.unlink(missing_ok=True)

    def start(self) -> None:
        """Write PID file, register jobs, and block in the scheduler."""
        config.ensure_data_dirs()
        jobs = self.configure()
        if not jobs:
            logger.warning("Neither auto_sync nor sync_on_startup is enabled; nothing to do")
            return

        config.DAEMON_PID_FILE.write_text(str(os.getpid()))
        signal.signal(signal.SIGINT, self._handle_shutdown)
        if sys.platform != "win32":
            signal.signal(signal.SIGTERM, self._handle_shutdown)

        logger.info("Daemon started (pid=%d, jobs=%s)", os.getpid(), jobs)
        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Scheduler stopped by interrupt/exit.")
        finally:
            config.DAEMON_PID_FILE.unlink(missing_ok=True)
            logger.info("Daemon stopped.")

    @property
    def jobs(self) -> list[str]:
        return [job.id for job in self.scheduler.get_jobs()]


def build_daemon() -> SyncDaemon:
    """Build the daemon around an engine wired from config and settings."""
    return SyncDaemon(build_engine())
