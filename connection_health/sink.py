"""
Connection Health - Event Sink.

============================================================
OUTPUT STREAM
============================================================

The monitor's only user-visible output. One line per event:

    HH:MM:SS <text>

where <text> is either a per-group summary

    12:00:01 short refused 3 success 17

or an individual event (slow operation, uncategorized error,
skipped sentinel tick)

    12:00:01 long slow operation 152ms (threshold 100ms)

Field order is stable; operator tooling greps this stream.
Diagnostic logging goes through `logging`, not through here.

============================================================
"""

from typing import List, Optional, TextIO
import sys
import threading

from .clock import ClockProtocol, LocalClock


class EventSink:
    """
    Writes timestamped lines to a text stream.

    Safe to call from any thread. Each line is flushed as it is
    written so a tailing operator sees it immediately.
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._stream = stream
        self._clock = clock or LocalClock()
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        # Resolved lazily so pytest's capture sees stdout.
        return self._stream if self._stream is not None else sys.stdout

    def emit(self, text: str) -> str:
        """Write one line and return it (without newline)."""
        line = f"{self._clock.format_hms()} {text}"
        with self._lock:
            stream = self.stream
            stream.write(line + "\n")
            stream.flush()
        return line


class MemorySink(EventSink):
    """
    Sink that keeps lines in memory.

    Used by tests that inspect the stream.
    """

    def __init__(self, clock: Optional[ClockProtocol] = None) -> None:
        super().__init__(stream=None, clock=clock)
        self.lines: List[str] = []

    def emit(self, text: str) -> str:
        line = f"{self._clock.format_hms()} {text}"
        with self._lock:
            self.lines.append(line)
        return line

    def matching(self, fragment: str) -> List[str]:
        """Lines containing fragment."""
        with self._lock:
            return [line for line in self.lines if fragment in line]
