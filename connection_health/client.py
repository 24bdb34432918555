"""
Connection Health - Database Client Interface.

============================================================
CAPABILITY INTERFACE
============================================================

The monitor consumes the database only through these three
abstractions:

    ProbeClient
      ├─ pooled_source()     shared by all long-lived probes
      └─ ephemeral_source()  fresh for every short-lived dial
    ConnectionSource
      ├─ connect() -> ProbeConnection
      └─ dispose()
    ProbeConnection
      ├─ ping(timeout)
      ├─ run_transaction(timeout)
      └─ close(discard)

Implementations:
- SqlAlchemyProbeClient: async SQLAlchemy engine
- MockProbeClient: latency / failure injection for tests

Connectivity failures are raised as ordinary exceptions and
turned into outcomes by the probes. ClientConfigurationError
is reserved for sources that cannot be constructed at all.

============================================================
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Optional, TypeVar
import asyncio


T = TypeVar("T")


async def run_with_deadline(operation: Awaitable[T], timeout: Optional[float]) -> T:
    """Await operation, cancelling it after timeout seconds (None = unbounded)."""
    if timeout is None:
        return await operation
    return await asyncio.wait_for(operation, timeout)


# ============================================================
# CONNECTION
# ============================================================

class ProbeConnection(ABC):
    """One exclusively-owned database connection handle."""

    @abstractmethod
    async def ping(self, timeout: Optional[float] = None) -> None:
        """
        Liveness check.

        Args:
            timeout: Cancel after this many seconds (None = unbounded)

        Raises:
            Exception: Any connectivity failure
        """
        pass

    @abstractmethod
    async def run_transaction(self, timeout: Optional[float] = None) -> None:
        """
        Representative read transaction: a query that makes the
        server scan rows, then commit.
        """
        pass

    @abstractmethod
    async def close(self, discard: bool = False) -> None:
        """
        Release the handle.

        Args:
            discard: The handle failed; do not return it to a pool
        """
        pass


# ============================================================
# CONNECTION SOURCE
# ============================================================

class ConnectionSource(ABC):
    """Something that hands out connections (an engine, a pool)."""

    @abstractmethod
    async def connect(self) -> ProbeConnection:
        """
        Acquire a connection.

        Raises:
            Exception: Any connectivity failure
        """
        pass

    @abstractmethod
    async def dispose(self) -> None:
        """Release every resource held by the source."""
        pass


# ============================================================
# CLIENT
# ============================================================

class ProbeClient(ABC):
    """Factory of connection sources for one target database."""

    @property
    @abstractmethod
    def target(self) -> str:
        """Printable target, without credentials."""
        pass

    @abstractmethod
    def pooled_source(self, size: int) -> ConnectionSource:
        """
        Source shared by the long-lived probes.

        Raises:
            ClientConfigurationError: Source cannot be constructed
        """
        pass

    @abstractmethod
    def ephemeral_source(self) -> ConnectionSource:
        """
        Fresh, unpooled source for a single dial.

        Raises:
            ClientConfigurationError: Source cannot be constructed
        """
        pass
