"""
Tests for the SQLAlchemy Client.

============================================================
TEST COVERAGE
============================================================
1. Ephemeral source: connect, ping, transaction, close
2. Pooled source reuse and discard
3. Client configuration errors
4. Probes against a real (SQLite) database
============================================================
"""

import pytest

from connection_health import (
    ClientConfigurationError,
    DatabaseSettings,
    ErrorCounter,
    LongLivedProbe,
    MemorySink,
    ProbeKind,
    ProbeSpec,
    ShortLivedProbe,
    SqlAlchemyProbeClient,
)


pytest.importorskip("aiosqlite")


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite file."""
    return DatabaseSettings(
        url=f"sqlite+aiosqlite:///{tmp_path / 'health.db'}",
        transaction_query="SELECT COUNT(*) FROM sqlite_master",
    )


@pytest.fixture
def client(settings):
    return SqlAlchemyProbeClient(settings)


def make_spec(kind):
    return ProbeSpec(
        kind=kind,
        interval=0.05,
        slow_threshold=1.0,
        exercise_transaction=True,
        deadline=1.0,
    )


# ============================================================
# SOURCE TESTS
# ============================================================

class TestEphemeralSource:
    """Test one-shot connections."""

    @pytest.mark.asyncio
    async def test_connect_ping_transaction_close(self, client):
        """Test the full one-shot cycle."""
        source = client.ephemeral_source()
        try:
            conn = await source.connect()
            await conn.ping(timeout=1.0)
            await conn.run_transaction(timeout=1.0)
            await conn.close()
            assert conn.closed
        finally:
            await source.dispose()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, client):
        """Test a second close does nothing."""
        source = client.ephemeral_source()
        try:
            conn = await source.connect()
            await conn.close(discard=True)
            await conn.close(discard=True)
            assert conn.closed
        finally:
            await source.dispose()

    def test_target_hides_password(self):
        """Test the displayed target carries no credentials."""
        client = SqlAlchemyProbeClient(DatabaseSettings(password="hunter2"))

        assert "hunter2" not in client.target
        assert client.target.startswith("mysql+aiomysql://root:")


class TestPooledSource:
    """Test the shared pool of the long-lived probes."""

    @pytest.mark.asyncio
    async def test_pool_sized_for_probes(self, client):
        """Test the pool has exactly one slot per probe."""
        source = client.pooled_source(3)
        try:
            assert source.engine.sync_engine.pool.size() == 3
        finally:
            await source.dispose()

    @pytest.mark.asyncio
    async def test_discarded_connection_replaced(self, client):
        """Test a discarded handle does not poison the pool."""
        source = client.pooled_source(1)
        try:
            conn = await source.connect()
            await conn.ping()
            await conn.close(discard=True)

            conn = await source.connect()
            await conn.ping()
            await conn.close()
        finally:
            await source.dispose()


# ============================================================
# CONFIGURATION ERROR TESTS
# ============================================================

class TestClientConfigurationErrors:
    """Test clients that cannot be constructed."""

    def test_unknown_dialect(self):
        """Test an unknown dialect name."""
        client = SqlAlchemyProbeClient(DatabaseSettings(url="nosuchdb+nodriver://host/db"))

        with pytest.raises(ClientConfigurationError):
            client.ephemeral_source()

    def test_sync_driver(self):
        """Test a driver without asyncio support."""
        client = SqlAlchemyProbeClient(DatabaseSettings(url="sqlite:///:memory:"))

        with pytest.raises(ClientConfigurationError):
            client.pooled_source(1)

    def test_malformed_url(self):
        """Test a URL that does not parse."""
        client = SqlAlchemyProbeClient(DatabaseSettings(url="::::"))

        with pytest.raises(ClientConfigurationError):
            client.ephemeral_source()

    @pytest.mark.parametrize("make_source", [
        lambda client: client.ephemeral_source(),
        lambda client: client.pooled_source(1),
    ])
    def test_non_numeric_port(self, make_source):
        """Test a bad port is reported for both source kinds, not raised raw."""
        client = SqlAlchemyProbeClient(
            DatabaseSettings(url="mysql+aiomysql://root:pw@db:notaport/test")
        )

        assert client.target == "<invalid url>"
        with pytest.raises(ClientConfigurationError):
            make_source(client)


# ============================================================
# PROBES AGAINST SQLITE
# ============================================================

class TestProbesAgainstSqlite:
    """Test the probes end to end on a real driver."""

    @pytest.mark.asyncio
    async def test_short_lived_probe(self, client):
        """Test dial-per-tick probing succeeds."""
        counter = ErrorCounter("short")
        probe = ShortLivedProbe(make_spec(ProbeKind.SHORT), counter, MemorySink(), client)

        for _ in range(3):
            assert await probe.step() is True

        snapshot = counter.drain()
        assert snapshot.counts == {}
        assert snapshot.success == 3

    @pytest.mark.asyncio
    async def test_long_lived_probe(self, client):
        """Test keep-alive probing succeeds on one pooled connection."""
        counter = ErrorCounter("long")
        source = client.pooled_source(1)
        probe = LongLivedProbe(make_spec(ProbeKind.LONG), counter, MemorySink(), source)
        try:
            for _ in range(3):
                await probe.step()
            await probe.release()
        finally:
            await source.dispose()

        snapshot = counter.drain()
        assert snapshot.counts == {}
        assert snapshot.success == 3
        assert probe.acquisitions == 1
