"""In-process interval jobs on APScheduler's AsyncIOScheduler.

Every job runs once at startup and then every ``interval`` seconds. Jobs are
coalesced with at most one instance in flight, so a slow tick delays the next
one instead of stacking. A failing tick is logged and the schedule carries
on. No distributed coordination: run a single API process when jobs are
enabled.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.ag_common.datetime_utils import utc_now

logger = logging.getLogger(__name__)

MISFIRE_GRACE_SECONDS = 60


@dataclass(frozen=True)
class PeriodicJob:
    name: str
    func: Callable[[], Awaitable[object]]
    interval: float

    async def run_once(self) -> None:
        start = time.perf_counter()
        try:
            await self.func()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Job %s tick failed", self.name)
            return
        logger.debug("Job %s tick done (%.0fms)", self.name, (time.perf_counter() - start) * 1000)


class JobScheduler:
    def __init__(self, jobs: list[PeriodicJob]) -> None:
        self.jobs = jobs
        self.scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": MISFIRE_GRACE_SECONDS,
            },
            timezone="UTC",
        )

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if self.running:
            return
        for job in self.jobs:
            self.scheduler.add_job(
                job.run_once,
                trigger=IntervalTrigger(seconds=job.interval),
                id=job.name,
                name=job.name,
                next_run_time=utc_now(),
                replace_existing=True,
            )
            logger.info("Job %s scheduled every %.0fs", job.name, job.interval)
        self.scheduler.start()

    def stop(self) -> None:
        if not self.running:
            return
        self.scheduler.shutdown(wait=False)
        logger.info("Job scheduler stopped")
