"""
Connection Health - Fixed-Rate Scheduling.

============================================================
TICK SEMANTICS
============================================================

Every probe loop is driven by a FixedRateTicker:

    slot k = start + k * interval      (monotonic clock)

- The loop does not self-pace: a 30ms operation on a 100ms
  interval still runs every 100ms, not every 130ms.
- An operation that overruns its slot makes the next wait()
  return immediately. The schedule then re-aligns to the next
  slot in the future. Missed slots are dropped, never bunched.

============================================================
"""

from typing import Awaitable, Callable, Optional
import asyncio

from .exceptions import ConfigurationError


class FixedRateTicker:
    """
    Fixed-rate ticker on the event loop's monotonic clock.

    Args:
        interval: Seconds between slots
        time_fn: Monotonic time source (defaults to loop.time)
        sleep: Coroutine used to wait (defaults to asyncio.sleep)
    """

    def __init__(
        self,
        interval: float,
        time_fn: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        if interval <= 0:
            raise ConfigurationError(
                "ticker interval must be positive",
                field_name="interval",
                value=interval,
            )
        self._interval = interval
        self._time_fn = time_fn
        self._sleep = sleep or asyncio.sleep
        self._next_slot: Optional[float] = None
        self.missed_slots = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def next_slot(self) -> Optional[float]:
        return self._next_slot

    def _now(self) -> float:
        if self._time_fn is not None:
            return self._time_fn()
        return asyncio.get_running_loop().time()

    def start(self) -> None:
        """Anchor the schedule: the first slot is one interval from now."""
        self._next_slot = self._now() + self._interval

    async def wait(self) -> None:
        """Suspend until the next scheduled slot."""
        if self._next_slot is None:
            self.start()

        delay = self._next_slot - self._now()
        if delay > 0:
            await self._sleep(delay)
            self._next_slot += self._interval
            return

        # Overran: fire now, skip every slot that already passed.
        skipped = int(-delay // self._interval)
        self.missed_slots += skipped
        self._next_slot += (skipped + 1) * self._interval
