"""In-process scheduler driving the workflow trigger groups.

Best effort only: the host may be scaled to zero, so the external cron caller
hitting ``POST /api/v1/run-workflows`` is the durable trigger and the startup
catch-up covers windows missed while the process was down.
"""

import asyncio
import logging
from datetime import timedelta

from apscheduler.events import EVENT_JOB_MISSED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import sessionmaker

from ..config import settings
from ..database.base import SessionLocal, session_scope
from ..integrations.cache import CacheService
from ..notifications.dispatcher import Dispatcher
from ..timeutils import local_zone, utcnow
from .registry import CATCH_UP_GROUPS
from .service import execute_workflow, run_group

logger = logging.getLogger(__name__)

_MISFIRE_GRACE_TIME_S = 3600


class WorkflowScheduler:
    def __init__(
        self,
        cache: CacheService | None = None,
        session_factory: sessionmaker = SessionLocal,
        dispatcher: Dispatcher | None = None,
    ) -> None:
        self.scheduler = AsyncIOScheduler(
            timezone=local_zone(),
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": _MISFIRE_GRACE_TIME_S,
            },
        )
        self.scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)
        self._cache = cache
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._running = False

    @staticmethod
    def _on_job_missed(event) -> None:
        logger.warning("Scheduler job %s missed its run at %s", event.job_id, event.scheduled_run_time)

    def _schedule_jobs(self) -> None:
        zone = local_zone()
        self.scheduler.add_job(
            self.run_group_job,
            trigger=CronTrigger(hour=settings.daily_run_hour, minute=0, timezone=zone),
            args=["daily"],
            id="daily",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_group_job,
            trigger=CronTrigger(hour=settings.scheduled_run_hour, minute=0, timezone=zone),
            args=["scheduled"],
            id="scheduled",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_group_job,
            trigger=IntervalTrigger(hours=settings.sms_interval_hours),
            args=["three_hourly"],
            id="three_hourly",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_group_job,
            trigger=IntervalTrigger(minutes=settings.debrief_interval_minutes),
            args=["debrief"],
            id="debrief",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_group_job,
            trigger=CronTrigger(hour=settings.smo_enforcement_hour, minute=5, timezone=zone),
            args=["smo_enforcement"],
            id="smo_enforcement",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.catch_up,
            trigger=DateTrigger(run_date=utcnow() + timedelta(seconds=settings.startup_catchup_delay_seconds)),
            id="startup_catch_up",
            replace_existing=True,
        )

    def start(self) -> None:
        """Must be called with a running event loop (FastAPI lifespan)."""
        if self._running:
            return
        self._schedule_jobs()
        self.scheduler.start()
        self._running = True
        logger.info("Workflow scheduler started with %d jobs", len(self.scheduler.get_jobs()))

    def shutdown(self) -> None:
        if self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Workflow scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    def list_jobs(self) -> list[dict]:
        return [
            {"id": job.id, "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None}
            for job in self.scheduler.get_jobs()
        ]

    async def run_group_job(self, group: str, trigger: str = "scheduled") -> dict[str, dict]:
        # Database and provider calls are blocking; keep them off the event loop.
        results = await asyncio.to_thread(
            run_group,
            group,
            trigger=trigger,
            dispatcher=self._dispatcher,
            cache=self._cache,
            session_factory=self._session_factory,
        )
        logger.info("Group %s (%s) finished: %s", group, trigger, results)
        return results

    async def catch_up(self) -> dict[str, dict[str, dict]]:
        """Run the daily and scheduled groups once after startup."""
        results = {}
        for group in CATCH_UP_GROUPS:
            results[group] = await self.run_group_job(group, trigger="startup")
        return results

    async def trigger_workflow(self, workflow_id: str) -> dict:
        """Run a single workflow now, bypassing the enabled flag and daily guard."""

        def _run() -> dict:
            with session_scope(self._session_factory) as db:
                return execute_workflow(
                    db, workflow_id, trigger="manual", force=True, dispatcher=self._dispatcher, cache=self._cache
                )

        return await asyncio.to_thread(_run)
