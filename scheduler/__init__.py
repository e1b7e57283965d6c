from scheduler.clock import Clock, SystemClock, FrozenClock
from scheduler.schedules import Schedule, IntervalSchedule, CronSchedule, parse_schedule
from scheduler.scheduler import Scheduler, ScheduledJob

__all__ = [
    'Clock',
    'SystemClock',
    'FrozenClock',
    'Schedule',
    'IntervalSchedule',
    'CronSchedule',
    'parse_schedule',
    'Scheduler',
    'ScheduledJob',
]
