#!/usr/bin/env python3
"""
Tests for schedule parsing and the frozen clock.

Usage:
    python -m pytest tests/unit/scheduler/test_schedules.py -v
"""

import unittest
from datetime import datetime, timedelta, timezone

from scheduler.clock import FrozenClock, SystemClock
from scheduler.schedules import CronSchedule, IntervalSchedule, parse_schedule

NOON = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestParseSchedule(unittest.TestCase):

    def test_intervals(self):
        cases = {
            "90s": timedelta(seconds=90),
            "15m": timedelta(minutes=15),
            "2h": timedelta(hours=2),
            "1d": timedelta(days=1),
            " 30M ": timedelta(minutes=30),
        }
        for value, expected in cases.items():
            with self.subTest(value=value):
                schedule = parse_schedule(value)
                self.assertIsInstance(schedule, IntervalSchedule)
                self.assertEqual(schedule.next_after(NOON), NOON + expected)

    def test_cron_next_fire_is_strictly_after(self):
        schedule = parse_schedule("0 9 * * *")
        self.assertIsInstance(schedule, CronSchedule)
        self.assertEqual(schedule.next_after(NOON), datetime(2025, 1, 2, 9, 0, tzinfo=timezone.utc))

        on_the_hour = parse_schedule("0 * * * *")
        self.assertEqual(on_the_hour.next_after(NOON), NOON + timedelta(hours=1))

    def test_weekly_cron(self):
        # 2025-01-01 is a Wednesday
        monday = parse_schedule("0 8 * * 1").next_after(NOON)
        self.assertEqual(monday, datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc))

    def test_invalid_values(self):
        for value in ["", "   ", "0s", "every day", "0 9 * *", "61 * * * *"]:
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    parse_schedule(value)


class TestClocks(unittest.TestCase):

    def test_system_clock_is_utc(self):
        self.assertEqual(SystemClock().now().utcoffset(), timedelta(0))

    def test_frozen_clock(self):
        clock = FrozenClock()
        self.assertEqual(clock.now(), NOON)

        clock.advance(hours=1)
        clock.advance(timedelta(minutes=30))
        self.assertEqual(clock.now(), NOON + timedelta(hours=1, minutes=30))

        clock.sleep(30)
        self.assertEqual(clock.now(), NOON + timedelta(hours=1, minutes=30, seconds=30))

        clock.set(datetime(2025, 6, 1))
        self.assertEqual(clock.now(), datetime(2025, 6, 1, tzinfo=timezone.utc))


if __name__ == '__main__':
    unittest.main()
