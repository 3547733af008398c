"""Unit tests for the collector catalog and the remaining collectors."""

import asyncio

import pytest

from pgexporter.adapters.database import FakeDatabase
from pgexporter.collectors import ASYNC_BUILDERS, SCALARS, CollectorSet, replication, sessions, tables
from pgexporter.core.factory import MetricFactory
from pgexporter.core.metrics import ScalarMetric, VectorMetric

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _database(*, superuser: bool = False, version: str = "10.4") -> FakeDatabase:
    """Answer capability lookups; every other query returns no rows."""
    db = FakeDatabase()
    db.set_result("pg_user", [{"usesuper": superuser}])
    db.set_result("server_version", [{"server_version": version}])
    db.set_result("pg_extension", [{"count": 0}])
    return db


def _factory(db: FakeDatabase) -> MetricFactory:
    return MetricFactory(db, interval=60.0, timeout=0.1)


def _stop(metrics) -> None:
    for metric in metrics:
        if isinstance(metric, VectorMetric) and metric.task is not None:
            metric.task.cancel()


# ---------------------------------------------------------------------------
# CollectorSet
# ---------------------------------------------------------------------------


class TestCollectorSet:
    """Tests for building the full catalog."""

    @pytest.mark.asyncio
    async def test_builds_every_collector_once(self):
        db = _database()
        db.set_result("", [])
        collectors = CollectorSet(_factory(db))

        metrics = await collectors.build()
        again = await collectors.build()
        _stop(metrics)

        assert again is metrics
        assert len(metrics) == len(SCALARS) + len(ASYNC_BUILDERS)
        assert len({m.name for m in metrics}) == len(metrics)

    @pytest.mark.asyncio
    async def test_gated_collectors_disabled_for_plain_role(self):
        db = _database(superuser=False)
        db.set_result("", [])
        factory = _factory(db)
        collectors = CollectorSet(factory)

        metrics = await collectors.build()
        await asyncio.sleep(0.05)
        _stop(metrics)

        disabled = sorted(m.name for m in collectors.vectors if not m.enabled)
        assert disabled == ["postgresql_backends_count", "postgresql_dead_tuples_pct"]
        assert factory.errors.value == 2.0

    @pytest.mark.asyncio
    async def test_enabled_vectors_are_running(self):
        db = _database(superuser=True)
        db.set_result("", [])
        collectors = CollectorSet(_factory(db))

        metrics = await collectors.build()
        running = [m for m in collectors.vectors if m.task is not None]
        _stop(metrics)

        # only dead tuples stays off: the extension is missing
        assert len(running) == len(collectors.vectors) - 1

    @pytest.mark.asyncio
    async def test_scalars_are_not_queried_at_build(self):
        db = _database()
        db.set_result("", [])

        metrics = await CollectorSet(_factory(db)).build()
        _stop(metrics)

        assert db.queries("pg_database_size") == []
        assert db.queries("numbackends") == []
        assert any(isinstance(m, ScalarMetric) for m in metrics)


# ---------------------------------------------------------------------------
# Individual vectors
# ---------------------------------------------------------------------------


class TestSessionCollectors:
    """Tests for session and lock collectors."""

    @pytest.mark.asyncio
    async def test_idle_sessions_by_state(self):
        db = _database()
        db.set_result(
            "LIKE 'idle%'",
            [{"state": "idle", "value": 8}, {"state": "idle in transaction", "value": 1}],
        )
        metric = await sessions.idle_sessions(_factory(db))

        await asyncio.sleep(0.05)
        _stop([metric])

        assert dict(metric.cells()) == {("idle",): 8.0, ("idle in transaction",): 1.0}

    @pytest.mark.asyncio
    async def test_locks_by_mode(self):
        db = _database()
        db.set_result("pg_locks", [{"mode": "AccessShareLock", "value": 3}])
        metric = await sessions.locks(_factory(db))

        await asyncio.sleep(0.05)
        _stop([metric])

        assert dict(metric.cells()) == {("AccessShareLock",): 3.0}


class TestReplicationCollector:
    """Tests for the replication delay collector."""

    def test_pg96_uses_xlog_functions(self):
        query = replication.replication_delay_query("9.6.11")

        assert "pg_xlog_location_diff" in query
        assert "replay_location" in query

    def test_default_uses_wal_functions(self):
        query = replication.replication_delay_query("10.4")

        assert "pg_wal_lsn_diff" in query
        assert "replay_lsn" in query

    @pytest.mark.asyncio
    async def test_delay_per_standby(self):
        db = _database(version="12.1")
        db.set_result(
            "pg_stat_replication",
            [{"application_name": "replica1", "client_addr": "10.0.0.2", "value": 2048}],
        )
        metric = await replication.replication_delay_bytes(_factory(db))

        await asyncio.sleep(0.05)
        _stop([metric])

        assert dict(metric.cells()) == {("replica1", "10.0.0.2"): 2048.0}
        assert "pg_wal_lsn_diff" in db.queries("pg_stat_replication")[0][0]


class TestTableCollectors:
    """Tests for per-table collectors."""

    @pytest.mark.asyncio
    async def test_table_bloat(self):
        db = _database()
        db.set_result("pct_bloat", [{"table": "orders", "value": 42}])
        metric = await tables.table_bloat(_factory(db))

        await asyncio.sleep(0.05)
        _stop([metric])

        assert dict(metric.cells()) == {("orders",): 42.0}

    @pytest.mark.asyncio
    async def test_table_sizes_and_scans(self):
        db = _database()
        db.set_result("pg_total_relation_size", [{"table": "orders", "value": 8192}])
        db.set_result("seq_scan", [{"table": "orders", "value": 17}])
        factory = _factory(db)
        sizes = await tables.table_sizes(factory)
        scans = await tables.table_scans(factory)

        await asyncio.sleep(0.05)
        _stop([sizes, scans])

        assert dict(sizes.cells()) == {("orders",): 8192.0}
        assert dict(scans.cells()) == {("orders",): 17.0}

    @pytest.mark.asyncio
    async def test_vacuum_age(self):
        db = _database()
        db.set_result("last_autovacuum", [{"table": "orders", "value": 3600.5}])
        metric = await tables.vacuum_age(_factory(db))

        await asyncio.sleep(0.05)
        _stop([metric])

        assert dict(metric.cells()) == {("orders",): 3600.5}
