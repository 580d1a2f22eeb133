"""APScheduler wrapper driving the auto-export tick."""

from __future__ import annotations

from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..logging_conf import configure_logging

TICK_JOB_ID = "export::tick"


class APSchedulerAdapter:
    """Run one recurring tick job; profile cadences are evaluated inside the tick."""

    def __init__(self, scheduler: BackgroundScheduler | None = None) -> None:
        self.scheduler = scheduler or BackgroundScheduler()
        self.logger = configure_logging().bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_tick(self, callback: Callable[[], object], tick_seconds: float) -> None:
        if tick_seconds <= 0 or tick_seconds >= 60:
            raise ValueError("tick_seconds must be between 0 and 60")
        self.scheduler.add_job(
            callback,
            trigger=IntervalTrigger(seconds=float(tick_seconds)),
            id=TICK_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("tick_scheduled", tick_seconds=tick_seconds)

    def remove_tick(self) -> None:
        try:
            self.scheduler.remove_job(TICK_JOB_ID)
        except Exception:  # noqa: BLE001
            self.logger.warning("job_remove_failed", job=TICK_JOB_ID)

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter", "TICK_JOB_ID"]
