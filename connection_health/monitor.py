"""
Connection Health - Monitor.

============================================================
MAIN ORCHESTRATOR
============================================================

Fans out the probes and keeps them alive:

- one ErrorCounter per probe group (long, short, sentinel)
- N long-lived probes sharing one pooled source
- M short-lived probes
- 1 sentinel probe (unless disabled)
- 1 summarizer task per counter, flushing every second

The counters are owned here and handed to the probes by
reference. There is no module-level state.

```python
monitor = Monitor(config, SqlAlchemyProbeClient(config.database))
await monitor.run_forever()
```

============================================================
"""

from typing import Dict, List, Optional
import asyncio
import logging

from .client import ConnectionSource, ProbeClient
from .config import MonitorConfig
from .counter import SUMMARY_PERIOD_SECONDS, ErrorCounter
from .exceptions import ClientConfigurationError
from .models import ProbeKind, ProbeOutcome, ProbeSpec
from .probes import BaseProbe, LongLivedProbe, SentinelProbe, ShortLivedProbe
from .sink import EventSink


logger = logging.getLogger(__name__)


class Monitor:
    """
    Connectivity-health monitor.

    Runs forever once started. stop() cancels every task; it
    does not drain in-flight checks.
    """

    def __init__(
        self,
        config: MonitorConfig,
        client: ProbeClient,
        sink: Optional[EventSink] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._sink = sink or EventSink()

        self._counters: Dict[ProbeKind, ErrorCounter] = {
            kind: ErrorCounter(kind.value, self._sink) for kind in ProbeKind
        }
        self._probes: List[BaseProbe] = []
        self._pooled_source: Optional[ConnectionSource] = None
        self._tasks: List[asyncio.Task] = []
        self._running = False

    # =========================================================
    # ACCESSORS
    # =========================================================

    @property
    def counters(self) -> Dict[ProbeKind, ErrorCounter]:
        return dict(self._counters)

    def counter(self, kind: ProbeKind) -> ErrorCounter:
        return self._counters[kind]

    @property
    def probes(self) -> List[BaseProbe]:
        return list(self._probes)

    @property
    def running(self) -> bool:
        return self._running

    # =========================================================
    # PROBE CONSTRUCTION
    # =========================================================

    def _spec(self, kind: ProbeKind) -> ProbeSpec:
        settings = self._config.probes
        interval = {
            ProbeKind.LONG: settings.long_interval,
            ProbeKind.SHORT: settings.short_interval,
            ProbeKind.SENTINEL: settings.sentinel_interval,
        }[kind]
        # Long-lived probes classify slowness after the fact; the
        # one-shot probes cancel the ping at the slow threshold.
        # Transactions are only bounded by the operation timeout.
        deadline = (
            settings.operation_timeout if kind is ProbeKind.LONG else settings.slow_threshold
        )
        return ProbeSpec(
            kind=kind,
            interval=interval,
            slow_threshold=settings.slow_threshold,
            exercise_transaction=settings.exercise_transaction,
            deadline=deadline,
            transaction_deadline=settings.operation_timeout,
        )

    def build_probes(self) -> List[BaseProbe]:
        """Create every probe. Called once by start()."""
        settings = self._config.probes
        probes: List[BaseProbe] = []

        if settings.long_conns:
            probes.extend(self._build_long_probes(settings.long_conns))

        short_spec = self._spec(ProbeKind.SHORT)
        for i in range(settings.short_concurrency):
            probes.append(ShortLivedProbe(
                short_spec,
                self._counters[ProbeKind.SHORT],
                self._sink,
                self._client,
                name=f"short-{i + 1}",
            ))

        if settings.sentinel_enabled:
            probes.append(SentinelProbe(
                self._spec(ProbeKind.SENTINEL),
                self._counters[ProbeKind.SENTINEL],
                self._sink,
                self._client,
                max_in_flight=settings.sentinel_max_in_flight,
                name="sentinel",
            ))

        self._probes = probes
        return probes

    def _build_long_probes(self, count: int) -> List[BaseProbe]:
        counter = self._counters[ProbeKind.LONG]
        try:
            self._pooled_source = self._client.pooled_source(count)
        except ClientConfigurationError as e:
            logger.error(f"Long-lived probes not started: {e}")
            counter.record(ProbeOutcome.failure(str(e)))
            return []

        spec = self._spec(ProbeKind.LONG)
        return [
            LongLivedProbe(spec, counter, self._sink, self._pooled_source, name=f"long-{i + 1}")
            for i in range(count)
        ]

    # =========================================================
    # LIFETIME
    # =========================================================

    def start(self) -> None:
        """Create one task per probe and per summarizer."""
        if self._running:
            return
        self._running = True

        probes = self.build_probes()
        for probe in probes:
            self._spawn(probe.run(), probe.name)

        for kind, counter in self._counters.items():
            self._spawn(
                counter.summarize_forever(self._sink, SUMMARY_PERIOD_SECONDS),
                f"summary-{kind.value}",
            )

        logger.info(
            f"Monitor started against {self._client.target}: "
            f"{sum(isinstance(p, LongLivedProbe) for p in probes)} long, "
            f"{sum(isinstance(p, ShortLivedProbe) for p in probes)} short, "
            f"{sum(isinstance(p, SentinelProbe) for p in probes)} sentinel"
        )

    def _spawn(self, coro, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        task.add_done_callback(self._on_task_done)
        self._tasks.append(task)

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Task {task.get_name()} crashed, other probes keep running: {error}",
                exc_info=error,
            )

    async def run_forever(self) -> None:
        """
        Start and wait on every task. Returns only if all tasks end.

        A crashed task is logged by its done callback and does not
        stop the others.
        """
        self.start()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def stop(self) -> None:
        """Cancel every task and release pooled resources."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        if self._pooled_source is not None:
            try:
                await self._pooled_source.dispose()
            except Exception as e:
                logger.debug(f"Pooled source dispose failed: {e}")
            self._pooled_source = None

        self._running = False
        logger.info("Monitor stopped")

    def get_statistics(self) -> Dict:
        """Monitor statistics, for diagnostics."""
        return {
            "running": self._running,
            "target": self._client.target,
            "probes": len(self._probes),
            "tasks": len(self._tasks),
            "counters": {kind.value: c.to_dict() for kind, c in self._counters.items()},
        }
