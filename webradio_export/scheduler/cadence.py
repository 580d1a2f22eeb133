"""Cadence arithmetic for auto-export: period keys and scheduled moments."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from enum import Enum

from ..config import AutoExportConfig, ExportInterval


class ScheduleState(str, Enum):
    IDLE = "idle"
    DUE = "due"
    RUNNING = "running"


def period_key(config: AutoExportConfig, now: datetime) -> str:
    """Identify the period ``now`` falls in for the profile's interval."""

    if config.interval is ExportInterval.WEEKLY:
        iso = now.isocalendar()
        return f"{iso[0]}-W{iso[1]:02d}"
    if config.interval is ExportInterval.MONTHLY:
        return f"{now.year:04d}-{now.month:02d}"
    return now.date().isoformat()


def _day_in_period(config: AutoExportConfig, today: date) -> date:
    if config.interval is ExportInterval.WEEKLY:
        monday = today - timedelta(days=today.weekday())
        return monday + timedelta(days=config.day_of_week)
    if config.interval is ExportInterval.MONTHLY:
        last_day = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=min(config.day_of_month, last_day))
    return today


def scheduled_moment(config: AutoExportConfig, now: datetime) -> datetime:
    """When the run for the period containing ``now`` should fire."""

    day = _day_in_period(config, now.date())
    return datetime.combine(day, config.clock_time, tzinfo=now.tzinfo)


def next_moment(config: AutoExportConfig, now: datetime, completed: bool = False) -> datetime:
    """The next moment the profile will fire, skipping the current period once it ran."""

    if not completed:
        return scheduled_moment(config, now)
    if config.interval is ExportInterval.WEEKLY:
        probe = now + timedelta(days=7 - now.weekday())
    elif config.interval is ExportInterval.MONTHLY:
        last_day = calendar.monthrange(now.year, now.month)[1]
        probe = now.replace(day=last_day) + timedelta(days=1)
    else:
        probe = now + timedelta(days=1)
    return scheduled_moment(config, probe)


def is_due(config: AutoExportConfig, now: datetime, completed: bool) -> bool:
    """Enabled, past the scheduled moment and not yet completed this period."""

    if not config.enabled or completed:
        return False
    return now >= scheduled_moment(config, now)


def schedule_state(config: AutoExportConfig, now: datetime, completed: bool, running: bool) -> ScheduleState:
    if running:
        return ScheduleState.RUNNING
    if is_due(config, now, completed):
        return ScheduleState.DUE
    return ScheduleState.IDLE


__all__ = [
    "ScheduleState",
    "is_due",
    "next_moment",
    "period_key",
    "schedule_state",
    "scheduled_moment",
]
