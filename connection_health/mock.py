"""
Connection Health - Mock Client.

============================================================
PURPOSE
============================================================
In-memory ProbeClient for tests and --dry-run.

FEATURES:
- Configurable latency per operation
- Configurable failure injection (every Nth ping, every
  connect, every transaction, client construction)
- Full call tracking per connection handle, including
  operations attempted on handles that were already closed

============================================================
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple
import asyncio
import itertools

from .client import ConnectionSource, ProbeClient, ProbeConnection, run_with_deadline
from .exceptions import ClientConfigurationError


class MockDatabaseError(Exception):
    """Failure raised by the mock client."""


# ============================================================
# MOCK CONFIGURATION
# ============================================================

@dataclass
class MockConfig:
    """Configuration for the mock client."""

    connect_latency: float = 0.0
    """Seconds spent in connect()."""

    ping_latency: float = 0.0
    """Seconds spent in ping()."""

    transaction_latency: float = 0.0
    """Seconds spent in run_transaction()."""

    fail_every: int = 0
    """Every Nth ping (counted across all handles) fails. 0 = never."""

    failure_message: str = "dial tcp 127.0.0.1:4000: connect: connection refused"
    """Message of injected ping failures."""

    connect_failure_message: Optional[str] = None
    """When set, every connect() fails with this message."""

    transaction_failure_message: Optional[str] = None
    """When set, every run_transaction() fails with this message."""

    configuration_error: Optional[str] = None
    """When set, building any source raises ClientConfigurationError."""


# ============================================================
# MOCK CONNECTION
# ============================================================

class MockConnection(ProbeConnection):
    """Tracked connection handle."""

    def __init__(self, client: "MockProbeClient", conn_id: int) -> None:
        self._client = client
        self.conn_id = conn_id
        self.closed = False
        self.discarded = False
        self.close_calls = 0

    def _ensure_open(self, operation: str) -> None:
        self._client.calls.append((operation, self.conn_id))
        if self.closed:
            violation = f"{operation} on closed connection {self.conn_id}"
            self._client.violations.append(violation)
            raise MockDatabaseError(violation)

    async def ping(self, timeout: Optional[float] = None) -> None:
        self._ensure_open("ping")
        await run_with_deadline(self._client._ping(), timeout)

    async def run_transaction(self, timeout: Optional[float] = None) -> None:
        self._ensure_open("transaction")
        await run_with_deadline(self._client._transaction(), timeout)

    async def close(self, discard: bool = False) -> None:
        self._client.calls.append(("close", self.conn_id))
        self.close_calls += 1
        if self.closed:
            self._client.violations.append(f"double close of connection {self.conn_id}")
            return
        self.closed = True
        self.discarded = discard


# ============================================================
# MOCK SOURCE
# ============================================================

class MockSource(ConnectionSource):
    """Hands out MockConnections."""

    def __init__(self, client: "MockProbeClient", pooled: bool) -> None:
        self._client = client
        self.pooled = pooled
        self.disposed = False

    async def connect(self) -> ProbeConnection:
        return await self._client._connect()

    async def dispose(self) -> None:
        self.disposed = True


# ============================================================
# MOCK CLIENT
# ============================================================

class MockProbeClient(ProbeClient):
    """
    Mock client for testing the probes.

    Every handle is recorded in `connections` and every call in
    `calls` as (operation, connection id). Operations on closed
    handles and double closes are collected in `violations`.
    """

    def __init__(self, config: Optional[MockConfig] = None) -> None:
        self.config = config or MockConfig()
        self.connections: List[MockConnection] = []
        self.sources: List[MockSource] = []
        self.calls: List[Tuple[str, int]] = []
        self.violations: List[str] = []
        self.ping_calls = 0
        self._ids = itertools.count(1)

    @property
    def target(self) -> str:
        return "mock://"

    @property
    def open_connections(self) -> List[MockConnection]:
        return [c for c in self.connections if not c.closed]

    def _build_source(self, pooled: bool) -> MockSource:
        if self.config.configuration_error:
            raise ClientConfigurationError(self.config.configuration_error, url=self.target)
        source = MockSource(self, pooled)
        self.sources.append(source)
        return source

    def pooled_source(self, size: int) -> ConnectionSource:
        return self._build_source(pooled=True)

    def ephemeral_source(self) -> ConnectionSource:
        return self._build_source(pooled=False)

    # --------------------------------------------------------
    # SIMULATED OPERATIONS
    # --------------------------------------------------------

    async def _connect(self) -> MockConnection:
        if self.config.connect_latency:
            await asyncio.sleep(self.config.connect_latency)
        if self.config.connect_failure_message:
            raise MockDatabaseError(self.config.connect_failure_message)
        conn = MockConnection(self, next(self._ids))
        self.connections.append(conn)
        return conn

    async def _ping(self) -> None:
        self.ping_calls += 1
        call_number = self.ping_calls
        if self.config.ping_latency:
            await asyncio.sleep(self.config.ping_latency)
        if self.config.fail_every and call_number % self.config.fail_every == 0:
            raise MockDatabaseError(self.config.failure_message)

    async def _transaction(self) -> None:
        if self.config.transaction_latency:
            await asyncio.sleep(self.config.transaction_latency)
        if self.config.transaction_failure_message:
            raise MockDatabaseError(self.config.transaction_failure_message)
