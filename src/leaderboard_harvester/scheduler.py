"""Periodic refresh driver.

Thin wrapper over an APScheduler ``AsyncIOScheduler`` with a single interval
job. It only ever calls ``orchestrator.get_data(force_refresh=True)``; tick
failures are logged and never stop the schedule.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

log = logging.getLogger(__name__)

JOB_ID = "leaderboard_refresh"


@dataclass
class SchedulerState:
    interval_minutes: int
    running: bool
    next_fire_estimate: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "intervalMinutes": self.interval_minutes,
            "running": self.running,
            "nextFireEstimate": self.next_fire_estimate.isoformat() if self.next_fire_estimate else None,
        }


class ScrapeScheduler:
    def __init__(self, orchestrator, *, scheduler: AsyncIOScheduler | None = None):
        self.orchestrator = orchestrator
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self.interval_minutes = 0
        self._stopped = False

    async def initialize(self, interval_minutes: int = 30) -> None:
        """Run one refresh now, then arm the interval job.

        The eager refresh failing does not prevent the schedule from starting.
        """
        self.interval_minutes = max(1, int(interval_minutes))
        log.info("Scheduler: initial refresh")
        await self._tick()
        if not self._scheduler.running:
            self._scheduler.start()
        self._scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=JOB_ID,
            name="Leaderboard refresh",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        log.info("Scheduler: refreshing every %d minutes", self.interval_minutes)

    def start(self) -> bool:
        """Resume the paused job with its existing interval. False if never initialized."""
        job = self._job()
        if job is None:
            log.warning("Scheduler: start() before initialize(); ignoring")
            return False
        job.resume()
        log.info("Scheduler: resumed")
        return True

    def stop(self) -> bool:
        job = self._job()
        if job is None:
            return False
        job.pause()
        log.info("Scheduler: paused")
        return True

    def status(self) -> SchedulerState:
        job = self._job()
        next_run = getattr(job, "next_run_time", None) if job is not None else None
        return SchedulerState(
            interval_minutes=self.interval_minutes,
            running=bool(not self._stopped and self._scheduler.running and next_run is not None),
            next_fire_estimate=next_run,
        )

    async def shutdown(self) -> None:
        """Stop the scheduler. Safe to call twice.

        ``AsyncIOScheduler`` may defer its teardown to the event loop, so one
        loop iteration is yielded before returning.
        """
        if self._stopped or not self._scheduler.running:
            return
        self._stopped = True
        self._scheduler.shutdown(wait=False)
        await asyncio.sleep(0)
        log.info("Scheduler: shut down")

    def _job(self):
        if not self.interval_minutes:
            return None
        return self._scheduler.get_job(JOB_ID)

    async def _tick(self) -> None:
        try:
            entries = await self.orchestrator.get_data(force_refresh=True)
            log.info("Scheduler: refresh produced %d entries", len(entries))
        except Exception as e:
            log.error("Scheduler: refresh failed: %s", e)
