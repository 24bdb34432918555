"""
Connection Health - SQLAlchemy Client.

============================================================
ASYNC SQLALCHEMY IMPLEMENTATION
============================================================

- pooled_source():    AsyncAdaptedQueuePool sized to the number
                      of long-lived probes, no overflow
- ephemeral_source(): NullPool engine built per dial, so every
                      connect() really opens a new connection

Default dialect is mysql+aiomysql (TiDB / MySQL). Any async
SQLAlchemy URL works, e.g. sqlite+aiosqlite for local runs.

Ping is "SELECT 1" followed by a rollback so no transaction is
left open on a kept-alive connection. Deadlines are enforced
with asyncio.wait_for; a cancelled handle is always discarded
by the probe afterwards.

============================================================
"""

from typing import Any, Dict, Optional
import asyncio
import logging

from sqlalchemy import text
from sqlalchemy.exc import ArgumentError, InvalidRequestError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from .client import ConnectionSource, ProbeClient, ProbeConnection, run_with_deadline
from .config import DatabaseSettings
from .exceptions import ClientConfigurationError


logger = logging.getLogger(__name__)


PING_STATEMENT = text("SELECT 1")


# ============================================================
# CONNECTION
# ============================================================

class SqlAlchemyConnection(ProbeConnection):
    """ProbeConnection over an AsyncConnection."""

    def __init__(self, conn: AsyncConnection, transaction_query: str) -> None:
        self._conn = conn
        self._transaction_query = text(transaction_query)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def ping(self, timeout: Optional[float] = None) -> None:
        await run_with_deadline(self._ping(), timeout)

    async def _ping(self) -> None:
        await self._conn.execute(PING_STATEMENT)
        await self._conn.rollback()

    async def run_transaction(self, timeout: Optional[float] = None) -> None:
        await run_with_deadline(self._transaction(), timeout)

    async def _transaction(self) -> None:
        async with self._conn.begin():
            result = await self._conn.execute(self._transaction_query)
            result.fetchall()

    async def close(self, discard: bool = False) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if discard:
                await self._conn.invalidate()
        finally:
            await self._conn.close()


# ============================================================
# SOURCE
# ============================================================

class SqlAlchemySource(ConnectionSource):
    """ConnectionSource over an AsyncEngine."""

    def __init__(self, engine: AsyncEngine, settings: DatabaseSettings) -> None:
        self._engine = engine
        self._settings = settings

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def connect(self) -> ProbeConnection:
        conn = await asyncio.wait_for(self._open(), self._settings.connect_timeout)
        return SqlAlchemyConnection(conn, self._settings.transaction_query)

    async def _open(self) -> AsyncConnection:
        return await self._engine.connect()

    async def dispose(self) -> None:
        await self._engine.dispose()


# ============================================================
# CLIENT
# ============================================================

class SqlAlchemyProbeClient(ProbeClient):
    """
    ProbeClient backed by SQLAlchemy's asyncio extension.
    """

    def __init__(self, settings: DatabaseSettings) -> None:
        self._settings = settings

    @property
    def target(self) -> str:
        return self._settings.display_target()

    def _create_engine(self, **pool_kwargs: Any) -> AsyncEngine:
        url = self._settings.render_url()

        connect_args: Dict[str, Any] = {}
        if url.get_backend_name() == "mysql":
            connect_args["connect_timeout"] = self._settings.connect_timeout

        try:
            return create_async_engine(url, connect_args=connect_args, **pool_kwargs)
        except (ArgumentError, InvalidRequestError, ImportError) as e:
            raise ClientConfigurationError(
                str(e),
                url=url.render_as_string(hide_password=True),
            ) from e

    def pooled_source(self, size: int) -> ConnectionSource:
        engine = self._create_engine(
            poolclass=AsyncAdaptedQueuePool,
            pool_size=max(1, size),
            max_overflow=0,
            pool_timeout=self._settings.connect_timeout,
        )
        logger.debug(f"Created pooled engine for {self.target} (size={size})")
        return SqlAlchemySource(engine, self._settings)

    def ephemeral_source(self) -> ConnectionSource:
        return SqlAlchemySource(self._create_engine(poolclass=NullPool), self._settings)
