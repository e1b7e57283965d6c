import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional


class Clock(ABC):
    """Time source injected into the dispatcher, detectors and scheduler."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""
        pass

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        pass


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


class FrozenClock(Clock):
    """
    Manually driven clock for tests. `sleep` advances time instead of
    blocking.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._lock = threading.Lock()
        self._now = self._normalise(start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc))

    @staticmethod
    def _normalise(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = self._normalise(value)

    def advance(self, delta=None, **kwargs) -> datetime:
        """advance(timedelta(hours=1)) or advance(hours=1)."""
        step = delta if delta is not None else timedelta(**kwargs)
        with self._lock:
            self._now = self._now + step
            return self._now

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            self.advance(seconds=seconds)
