"""Wall-clock maths for a day plan: countdown, running, ended, current item.

Everything here is a pure function of its arguments. Times are local
wall-clock; aware datetimes are converted to local time first.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Mapping, Optional, Sequence


class Phase(str, Enum):
    COUNTDOWN = "countdown"
    RUNNING = "running"
    ENDED = "ended"


@dataclass(frozen=True)
class Countdown:
    days: int
    hours: int
    minutes: int
    seconds: int

    @classmethod
    def from_timedelta(cls, remaining: timedelta) -> "Countdown":
        total = max(0, int(remaining.total_seconds()))
        days, rest = divmod(total, 86400)
        hours, rest = divmod(rest, 3600)
        minutes, seconds = divmod(rest, 60)
        return cls(days, hours, minutes, seconds)


@dataclass(frozen=True)
class PhaseInfo:
    phase: Phase
    countdown: Optional[Countdown] = None


def _local(now: datetime) -> datetime:
    if now.tzinfo is not None:
        return now.astimezone().replace(tzinfo=None)
    return now


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)


def compute_phase(now: datetime, plan_date: date) -> PhaseInfo:
    """Which screen a plan dated ``plan_date`` needs at ``now``."""
    now = _local(now)
    start = start_of_day(plan_date)
    if now < start:
        return PhaseInfo(Phase.COUNTDOWN, Countdown.from_timedelta(start - now))
    if now <= end_of_day(plan_date):
        return PhaseInfo(Phase.RUNNING)
    return PhaseInfo(Phase.ENDED)


def parse_time(value) -> Optional[time]:
    """Parse "HH:MM"; None for anything else."""
    if not isinstance(value, str):
        return None
    parts = value.split(":")
    if len(parts) < 2:
        return None
    try:
        return time(int(parts[0]), int(parts[1]))
    except ValueError:
        return None


def effective_start(item: Mapping, day: date) -> Optional[datetime]:
    """Start of ``item`` on ``day`` shifted by its delay in minutes."""
    start = parse_time(item.get("time"))
    if start is None:
        return None
    delay = item.get("delay")
    if not isinstance(delay, int) or isinstance(delay, bool):
        delay = 0
    return datetime.combine(day, start) + timedelta(minutes=delay)


def current_item_index(items: Sequence[Mapping], now: datetime, day: Optional[date] = None) -> Optional[int]:
    """Index of the item whose window contains ``now``.

    That is the item with the latest effective start not after ``now``;
    equal starts resolve to the earlier item in list order. None before the
    first item starts.
    """
    now = _local(now)
    day = day or now.date()
    best: Optional[int] = None
    best_start: Optional[datetime] = None
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            continue
        start = effective_start(item, day)
        if start is None or start > now:
            continue
        if best_start is None or start > best_start:
            best, best_start = index, start
    return best
