#!/usr/bin/env python3
"""
Detector Scheduler

Fires each registered detector on its own interval or cron schedule.
Due detectors run on a shared thread pool; there is no mutual exclusion
between detectors or between successive ticks of the same detector.
A detector that raises is logged and rescheduled like any other.

Usage:
    from scheduler import Scheduler, SystemClock

    scheduler = Scheduler(SystemClock(), max_workers=4, poll_seconds=30)
    for detector in detectors:
        scheduler.register(detector)
    scheduler.run_forever(stop_event)
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from scheduler.clock import Clock, SystemClock
from scheduler.schedules import Schedule, parse_schedule

logger = logging.getLogger(__name__)

SLEEP_CHUNK_SECONDS = 5.0


@dataclass
class ScheduledJob:
    detector: Any
    schedule: Schedule
    next_run: datetime
    last_run: Optional[datetime] = None
    last_result: Any = None


class Scheduler:
    def __init__(self, clock: Optional[Clock] = None, max_workers: int = 4, poll_seconds: float = 30.0):
        self.clock = clock or SystemClock()
        self.poll_seconds = poll_seconds
        self._jobs: Dict[str, ScheduledJob] = {}
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='detector')

    def register(self, detector) -> ScheduledJob:
        """
        Add a detector. Its first run is the first schedule fire time after
        now. Disabled detectors are registered too; their runs are no-ops.
        """
        if detector.name in self._jobs:
            raise ValueError(f"Detector already registered: {detector.name}")
        schedule = parse_schedule(detector.config.schedule)
        job = ScheduledJob(detector=detector, schedule=schedule, next_run=schedule.next_after(self.clock.now()))
        with self._lock:
            self._jobs[detector.name] = job
        logger.info(f"Registered detector {detector.name} ({schedule}); first run at {job.next_run.isoformat()}")
        return job

    def list_detectors(self) -> List[Dict[str, Any]]:
        with self._lock:
            jobs = list(self._jobs.values())
        return [
            {
                'name': job.detector.name,
                'enabled': job.detector.enabled,
                'schedule': job.detector.config.schedule,
                'next_run': job.next_run.isoformat(),
                'last_run': job.last_run.isoformat() if job.last_run else None,
            }
            for job in jobs
        ]

    def run_pending(self, wait: bool = True) -> List[Any]:
        """
        Submit every job whose next fire time is <= now and advance its
        schedule. With `wait`, block until those runs finish and return
        their results (None for runs that raised).
        """
        now = self.clock.now()
        due = []
        with self._lock:
            for job in self._jobs.values():
                if job.next_run <= now:
                    job.last_run = now
                    job.next_run = job.schedule.next_after(now)
                    due.append(job)

        futures = [self._executor.submit(self._run_job, job) for job in due]
        if not wait:
            return []
        return [future.result() for future in futures]

    def run_detector(self, name: str):
        """Run one detector now, on the calling thread."""
        with self._lock:
            job = self._jobs.get(name)
        if job is None:
            raise KeyError(f"Unknown detector: {name}")
        return self._run_job(job)

    def run_forever(self, stop_event: threading.Event) -> None:
        logger.info(f"Scheduler started with {len(self._jobs)} detector(s); polling every {self.poll_seconds}s")
        while not stop_event.is_set():
            try:
                self.run_pending(wait=False)
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}", exc_info=True)
            self._sleep(stop_event)
        logger.info("Scheduler stopped")

    def _sleep(self, stop_event: threading.Event) -> None:
        # Sleep in chunks to allow responsive shutdown
        remaining = self.poll_seconds
        while remaining > 0 and not stop_event.is_set():
            step = min(SLEEP_CHUNK_SECONDS, remaining)
            self.clock.sleep(step)
            remaining -= step

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _run_job(self, job: ScheduledJob):
        name = job.detector.name
        try:
            result = job.detector.run()
        except Exception as e:
            logger.error(f"Detector {name} raised: {e}", exc_info=True)
            result = None
        job.last_result = result
        return result

