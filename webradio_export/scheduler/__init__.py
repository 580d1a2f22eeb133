"""Auto-export scheduling: cadence rules, run history and the tick job."""

from .apsched_adapter import APSchedulerAdapter, TICK_JOB_ID
from .cadence import ScheduleState, is_due, next_moment, period_key, schedule_state, scheduled_moment
from .history import RunHistory

__all__ = [
    "APSchedulerAdapter",
    "RunHistory",
    "ScheduleState",
    "TICK_JOB_ID",
    "is_due",
    "next_moment",
    "period_key",
    "schedule_state",
    "scheduled_moment",
]
