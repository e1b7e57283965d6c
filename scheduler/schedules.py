"""
Schedule strings.

"90s", "15m", "2h" and "1d" are fixed intervals; anything else must be a
five-field cron expression evaluated in UTC.
"""

import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from croniter import croniter, CroniterBadCronError

_INTERVAL_RE = re.compile(r'^\s*(\d+)\s*([smhd])\s*$', re.IGNORECASE)
_UNITS = {'s': 'seconds', 'm': 'minutes', 'h': 'hours', 'd': 'days'}


class Schedule(ABC):
    @abstractmethod
    def next_after(self, dt: datetime) -> datetime:
        """First fire time strictly after `dt`."""
        pass


class IntervalSchedule(Schedule):
    def __init__(self, interval: timedelta):
        if interval.total_seconds() <= 0:
            raise ValueError("Schedule interval must be positive")
        self.interval = interval

    def next_after(self, dt: datetime) -> datetime:
        return dt + self.interval

    def __repr__(self) -> str:
        return f"IntervalSchedule({self.interval})"


class CronSchedule(Schedule):
    def __init__(self, expression: str):
        if len(expression.split()) != 5:
            raise ValueError(f"Cron expression must have five fields: {expression!r}")
        try:
            croniter(expression)
        except (CroniterBadCronError, ValueError, KeyError) as e:
            raise ValueError(f"Invalid cron expression {expression!r}: {e}") from e
        self.expression = expression

    def next_after(self, dt: datetime) -> datetime:
        return croniter(self.expression, dt).get_next(datetime)

    def __repr__(self) -> str:
        return f"CronSchedule({self.expression!r})"


def parse_schedule(value: str) -> Schedule:
    if not value or not value.strip():
        raise ValueError("Empty schedule")
    match = _INTERVAL_RE.match(value)
    if match:
        amount, unit = int(match.group(1)), match.group(2).lower()
        return IntervalSchedule(timedelta(**{_UNITS[unit]: amount}))
    return CronSchedule(value.strip())
