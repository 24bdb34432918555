"""
Connection Health - Error Counter.

============================================================
PER-GROUP AGGREGATION
============================================================

One ErrorCounter per probe group (long, short, sentinel),
shared by every probe instance of that group.

- record(): fold one outcome into the counts
- drain():  atomically swap every count to zero
- flush():  drain and render a summary line, or None when
            strictly nothing happened

The counter is a rate signal, not a running total. It is
reset on every flush, once per second.

============================================================
THREAD SAFETY
============================================================

A single lock guards the counts. It is held for one increment
or one swap, never across I/O, so unrelated probes are never
serialized for longer than that.

============================================================
"""

from typing import Dict, Optional
import asyncio
import logging
import threading

from .classifier import classify
from .models import CounterSnapshot, ErrorCategory, ProbeOutcome
from .scheduling import FixedRateTicker
from .sink import EventSink


logger = logging.getLogger(__name__)


SUMMARY_PERIOD_SECONDS = 1.0


class ErrorCounter:
    """
    Concurrent aggregator of probe outcomes for one probe group.
    """

    def __init__(self, name: str, sink: Optional[EventSink] = None) -> None:
        self._name = name
        self._sink = sink
        self._counts: Dict[ErrorCategory, int] = self._zeroed()
        self._success = 0
        self._lock = threading.Lock()

    @staticmethod
    def _zeroed() -> Dict[ErrorCategory, int]:
        return {category: 0 for category in ErrorCategory}

    @property
    def name(self) -> str:
        return self._name

    # =========================================================
    # RECORDING
    # =========================================================

    def record(self, outcome: ProbeOutcome) -> Optional[ErrorCategory]:
        """
        Fold one outcome into the counts.

        Returns the category a failure was counted under, or
        None for a success.
        """
        if outcome.succeeded:
            with self._lock:
                self._success += 1
            return None

        category = outcome.category or classify(outcome.description)
        with self._lock:
            self._counts[category] += 1

        if category is ErrorCategory.UNCATEGORIZED:
            self._report_uncategorized(outcome)
        return category

    def _report_uncategorized(self, outcome: ProbeOutcome) -> None:
        description = outcome.description or "<no description>"
        logger.warning(f"[{self._name}] uncategorized failure: {description}")
        if self._sink is not None:
            self._sink.emit(f"{self._name} uncategorized error: {description}")

    # =========================================================
    # FLUSHING
    # =========================================================

    def drain(self) -> CounterSnapshot:
        """Swap every count to zero and return the prior values."""
        fresh = self._zeroed()
        with self._lock:
            counts, self._counts = self._counts, fresh
            success, self._success = self._success, 0

        return CounterSnapshot(
            name=self._name,
            counts={c: n for c, n in counts.items() if n},
            success=success,
        )

    def flush(self) -> Optional[str]:
        """
        Drain and render the summary text.

        None only when every value was zero. An interval with
        successes and no errors still produces "success N".
        """
        snapshot = self.drain()
        if snapshot.is_empty():
            return None
        return snapshot.format()

    async def summarize_forever(
        self,
        sink: EventSink,
        period: float = SUMMARY_PERIOD_SECONDS,
    ) -> None:
        """
        Flush on a fixed cadence and emit non-empty summaries.

        Runs until cancelled.
        """
        ticker = FixedRateTicker(period)
        ticker.start()
        while True:
            await ticker.wait()
            try:
                summary = self.flush()
                if summary is not None:
                    sink.emit(summary)
            except Exception as e:
                logger.error(f"[{self._name}] summary flush failed: {e}", exc_info=True)

    def to_dict(self) -> Dict:
        """Current (undrained) values, for diagnostics."""
        with self._lock:
            return {
                "name": self._name,
                "counts": {c.label: n for c, n in self._counts.items() if n},
                "success": self._success,
            }
