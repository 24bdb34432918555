"""
Tests for the Event Sink and Wall Clock.

============================================================
TEST COVERAGE
============================================================
1. Line format
2. Default stream
3. Clocks
============================================================
"""

import io
import threading
from datetime import datetime, timezone

import pytest

from connection_health import EventSink, LocalClock, MemorySink, MockClock


@pytest.fixture
def clock():
    return MockClock(datetime(2024, 1, 1, 23, 59, 58, tzinfo=timezone.utc))


class TestEventSink:
    """Test the user-visible event stream."""

    def test_line_format(self, clock):
        """Test 'HH:MM:SS text' with a trailing newline."""
        stream = io.StringIO()
        sink = EventSink(stream=stream, clock=clock)

        line = sink.emit("long refused 3 success 97")

        assert line == "23:59:58 long refused 3 success 97"
        assert stream.getvalue() == "23:59:58 long refused 3 success 97\n"

    def test_defaults_to_stdout(self, clock, capsys):
        """Test events go to stdout, never stderr."""
        EventSink(clock=clock).emit("short success 1")

        captured = capsys.readouterr()
        assert captured.out == "23:59:58 short success 1\n"
        assert captured.err == ""

    def test_lines_never_interleave(self, clock):
        """Test concurrent writers produce whole lines."""
        stream = io.StringIO()
        sink = EventSink(stream=stream, clock=clock)

        def writer(n):
            for i in range(200):
                sink.emit(f"writer-{n} line {i}")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        lines = stream.getvalue().splitlines()
        assert len(lines) == 1600
        assert all(line.startswith("23:59:58 writer-") for line in lines)

    def test_memory_sink(self, clock):
        """Test the in-memory sink used by tests."""
        sink = MemorySink(clock=clock)
        sink.emit("long success 1")
        sink.emit("short uncategorized error: boom")

        assert sink.lines == ["23:59:58 long success 1", "23:59:58 short uncategorized error: boom"]
        assert sink.matching("uncategorized") == ["23:59:58 short uncategorized error: boom"]


class TestClocks:
    """Test wall clocks."""

    def test_local_clock_uses_host_timezone(self):
        """Test the production clock is aware and in the host's local offset."""
        now = LocalClock().now()

        assert now.tzinfo is not None
        assert now.utcoffset() == datetime.now().astimezone().utcoffset()

    def test_sinks_default_to_local_time(self):
        """Test event lines are stamped with local, not UTC, time."""
        assert isinstance(EventSink(stream=io.StringIO())._clock, LocalClock)
        assert isinstance(MemorySink()._clock, LocalClock)

    def test_mock_clock_advance(self, clock):
        """Test time manipulation."""
        clock.advance(3)
        assert clock.format_hms() == "00:00:01"

        clock.advance(minutes=1)
        assert clock.format_hms() == "00:01:01"

    def test_mock_clock_set_naive_time(self, clock):
        """Test naive datetimes are taken as UTC."""
        clock.set_time(datetime(2024, 6, 1, 8, 30, 0))

        assert clock.now().tzinfo == timezone.utc
        assert clock.format_hms() == "08:30:00"
