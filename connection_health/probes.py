"""
Connection Health - Probes.

============================================================
PROBE KINDS
============================================================

- LongLivedProbe:  holds one connection across iterations
                   (keep-alive health)
- ShortLivedProbe: dials a brand-new connection every tick
                   (connection-establishment health)
- SentinelProbe:   spawns an independent one-shot dial every
                   tick without waiting for earlier ones, so an
                   observation is attempted every interval even
                   while other probes hang

============================================================
FAILURE CONTAINMENT
============================================================

Every iteration turns its own failures into outcomes. Nothing
propagates out of step() except cancellation. The tick itself
is the retry cadence; there is no backoff.

The only condition that stops a probe is a
ClientConfigurationError: the client cannot be constructed at
all. It is recorded like any other failure and halts just that
probe.

============================================================
"""

from abc import ABC, abstractmethod
from typing import Optional, Set
import asyncio
import logging

from .classifier import describe_error
from .client import ConnectionSource, ProbeClient, ProbeConnection
from .counter import ErrorCounter
from .exceptions import ClientConfigurationError
from .models import ProbeOutcome, ProbeSpec
from .scheduling import FixedRateTicker
from .sink import EventSink


logger = logging.getLogger(__name__)


# ============================================================
# BASE PROBE
# ============================================================

class BaseProbe(ABC):
    """
    Common check logic and loop for all probes.

    Subclasses implement step(): one iteration, returning False
    when the probe must stop.
    """

    def __init__(
        self,
        spec: ProbeSpec,
        counter: ErrorCounter,
        sink: EventSink,
        name: Optional[str] = None,
    ) -> None:
        self._spec = spec
        self._counter = counter
        self._sink = sink
        self._name = name or spec.group
        self.halted = False

    @property
    def spec(self) -> ProbeSpec:
        return self._spec

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    async def step(self) -> bool:
        """Run one iteration. False = stop the probe."""
        pass

    async def run(self) -> None:
        """Run step() on a fixed-rate schedule until halted or cancelled."""
        ticker = FixedRateTicker(self._spec.interval)
        ticker.start()
        while await self.step():
            await ticker.wait()
        logger.error(f"[{self._name}] probe stopped")

    # --------------------------------------------------------
    # RECORDING
    # --------------------------------------------------------

    def _record(self, outcome: ProbeOutcome) -> None:
        self._counter.record(outcome)

    def _record_error(self, error: BaseException, duration: float = 0.0) -> None:
        self._record(ProbeOutcome.failure(describe_error(error), duration))

    def _halt(self, error: ClientConfigurationError) -> None:
        self.halted = True
        logger.error(f"[{self._name}] halting probe: {error}")
        self._record(ProbeOutcome.failure(str(error)))

    # --------------------------------------------------------
    # CHECKS
    # --------------------------------------------------------

    async def _check(self, conn: ProbeConnection) -> bool:
        """
        Ping (and optionally exercise a transaction) on conn.

        Records the outcome(s). Returns True while the handle is
        still usable, False when it must be discarded.
        """
        loop = asyncio.get_running_loop()

        started = loop.time()
        try:
            await conn.ping(self._spec.deadline)
        except Exception as e:
            self._record_error(e, loop.time() - started)
            return False
        duration = loop.time() - started

        slow = duration > self._spec.slow_threshold
        if slow:
            outcome = ProbeOutcome.slow(duration, self._spec.slow_threshold)
            self._sink.emit(f"{self._counter.name} {outcome.description}")
            self._record(outcome)

        if self._spec.exercise_transaction:
            started = loop.time()
            try:
                await conn.run_transaction(self._spec.transaction_deadline)
            except Exception as e:
                self._record_error(e, loop.time() - started)
                return False

        if not slow:
            self._record(ProbeOutcome.success(duration))
        return True

    async def _dial_once(self, source: ConnectionSource) -> None:
        """Connect, check, and always close. Used by one-shot probes."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            conn = await source.connect()
        except Exception as e:
            self._record_error(e, loop.time() - started)
            return

        healthy = False
        try:
            healthy = await self._check(conn)
        finally:
            await self._close(conn, discard=not healthy)

    async def _close(self, conn: ProbeConnection, discard: bool) -> None:
        try:
            await conn.close(discard=discard)
        except Exception as e:
            logger.debug(f"[{self._name}] close failed: {describe_error(e)}")

    async def _dispose(self, source: ConnectionSource) -> None:
        try:
            await source.dispose()
        except Exception as e:
            logger.debug(f"[{self._name}] dispose failed: {describe_error(e)}")


# ============================================================
# LONG-LIVED PROBE
# ============================================================

class LongLivedProbe(BaseProbe):
    """
    Keep-alive probe.

    Disconnected -> acquire a handle from the shared source
    Connected    -> ping (+ transaction) each tick; any failure
                    discards the handle and goes back to
                    Disconnected for the next tick
    """

    def __init__(
        self,
        spec: ProbeSpec,
        counter: ErrorCounter,
        sink: EventSink,
        source: ConnectionSource,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(spec, counter, sink, name)
        self._source = source
        self._conn: Optional[ProbeConnection] = None
        self.acquisitions = 0

    @property
    def connected(self) -> bool:
        return self._conn is not None

    async def step(self) -> bool:
        if self._conn is None:
            loop = asyncio.get_running_loop()
            started = loop.time()
            try:
                self._conn = await self._source.connect()
            except Exception as e:
                self._record_error(e, loop.time() - started)
                return True
            self.acquisitions += 1

        if not await self._check(self._conn):
            await self._discard()
        return True

    async def run(self) -> None:
        try:
            await super().run()
        finally:
            await self.release()

    async def _discard(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            await self._close(conn, discard=True)

    async def release(self) -> None:
        """Return the held handle (if any) to the source."""
        conn, self._conn = self._conn, None
        if conn is not None:
            await self._close(conn, discard=False)


# ============================================================
# SHORT-LIVED PROBE
# ============================================================

class ShortLivedProbe(BaseProbe):
    """
    Dial-per-tick probe.

    Every tick builds a fresh unpooled source, connects, checks,
    then closes the connection and disposes the source whatever
    happened.
    """

    def __init__(
        self,
        spec: ProbeSpec,
        counter: ErrorCounter,
        sink: EventSink,
        client: ProbeClient,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(spec, counter, sink, name)
        self._client = client

    async def step(self) -> bool:
        try:
            source = self._client.ephemeral_source()
        except ClientConfigurationError as e:
            self._halt(e)
            return False

        try:
            await self._dial_once(source)
        finally:
            await self._dispose(source)
        return True


# ============================================================
# SENTINEL PROBE
# ============================================================

class SentinelProbe(BaseProbe):
    """
    Backstop probe on its own cadence.

    Each tick launches a one-shot check as its own task and does
    not wait for it. At most max_in_flight checks may be
    outstanding; further ticks are skipped and reported.
    """

    def __init__(
        self,
        spec: ProbeSpec,
        counter: ErrorCounter,
        sink: EventSink,
        client: ProbeClient,
        max_in_flight: int = 16,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(spec, counter, sink, name)
        self._client = client
        self._max_in_flight = max_in_flight
        self._in_flight: Set[asyncio.Task] = set()
        self.launched = 0
        self.skipped_ticks = 0

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def step(self) -> bool:
        if self.halted:
            return False

        if len(self._in_flight) >= self._max_in_flight:
            self.skipped_ticks += 1
            logger.warning(
                f"[{self._name}] tick skipped, {len(self._in_flight)} checks in flight"
            )
            self._sink.emit(
                f"{self._counter.name} tick skipped: "
                f"{len(self._in_flight)} checks still in flight"
            )
            return True

        self.launched += 1
        task = asyncio.create_task(
            self._check_once(),
            name=f"{self._name}-check-{self.launched}",
        )
        self._in_flight.add(task)
        task.add_done_callback(self._on_check_done)
        return True

    async def run(self) -> None:
        try:
            await super().run()
        except asyncio.CancelledError:
            for task in list(self._in_flight):
                task.cancel()
            raise

    async def wait_in_flight(self) -> None:
        """Wait for every outstanding check (tests, shutdown)."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def _check_once(self) -> None:
        try:
            source = self._client.ephemeral_source()
        except ClientConfigurationError as e:
            if not self.halted:
                self._halt(e)
            return

        try:
            await self._dial_once(source)
        finally:
            await self._dispose(source)

    def _on_check_done(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"[{self._name}] sentinel check crashed: {error}", exc_info=error)
