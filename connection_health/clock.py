"""
Connection Health - Wall Clock.

============================================================
RESPONSIBILITY
============================================================
Wall-clock time for event line timestamps.

- LocalClock: real time in the host timezone, used for event
  lines so they line up with operator wall-clock time
- MockClock: settable time for deterministic tests

Interval scheduling does NOT use this clock. It runs on the
event loop's monotonic clock (see scheduling.py).

============================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional
import threading


class ClockProtocol(ABC):
    """Abstract interface for the wall clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current timezone-aware datetime."""
        pass

    def format_hms(self, dt: Optional[datetime] = None) -> str:
        """Format as HH:MM:SS."""
        dt = dt or self.now()
        return dt.strftime("%H:%M:%S")


class LocalClock(ClockProtocol):
    """Production clock for event lines. Host local time."""

    def now(self) -> datetime:
        return datetime.now().astimezone()


class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Allows time manipulation for deterministic tests.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._time = initial_time or datetime.now(timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._time

    def set_time(self, new_time: datetime) -> None:
        """Set the current time."""
        with self._lock:
            if new_time.tzinfo is None:
                new_time = new_time.replace(tzinfo=timezone.utc)
            self._time = new_time

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (hours, minutes, ...)
        """
        with self._lock:
            self._time = self._time + timedelta(seconds=seconds, **kwargs)
