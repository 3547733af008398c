"""Catalog of PostgreSQL collectors.

``CollectorSet.build()`` constructs every metric once.  Labeled metrics
start their own refresh loop as part of being built; gated ones that the
connected role cannot compute come back permanently empty.
"""

from collections.abc import Awaitable, Callable

from pgexporter.collectors import backends, database, deadtuples, replication, sessions, tables
from pgexporter.core.factory import AnyMetric, MetricFactory
from pgexporter.core.metrics import ScalarMetric, VectorMetric

SCALARS: tuple[Callable[[MetricFactory], ScalarMetric], ...] = (
    database.up,
    database.size,
    backends.backends,
    backends.max_backends,
    database.deadlocks,
    database.temp_files,
    database.temp_size,
    database.transactions_sum,
)

ASYNC_BUILDERS: tuple[Callable[[MetricFactory], Awaitable[AnyMetric]], ...] = (
    backends.waiting_backends,
    backends.backends_status,
    sessions.idle_sessions,
    sessions.locks,
    replication.replication_delay_bytes,
    tables.table_bloat,
    tables.table_sizes,
    tables.table_scans,
    tables.vacuum_age,
    deadtuples.dead_tuples,
)


class CollectorSet:
    """The fixed set of metrics exported for one database."""

    def __init__(self, factory: MetricFactory) -> None:
        self.factory = factory
        self._metrics: list[AnyMetric] | None = None

    async def build(self) -> list[AnyMetric]:
        """Build every collector; later calls return the same metrics."""
        if self._metrics is None:
            metrics: list[AnyMetric] = [build(self.factory) for build in SCALARS]
            for build_async in ASYNC_BUILDERS:
                metrics.append(await build_async(self.factory))
            self._metrics = metrics
        return self._metrics

    @property
    def vectors(self) -> list[VectorMetric]:
        return [m for m in self._metrics or [] if isinstance(m, VectorMetric)]


__all__ = ["ASYNC_BUILDERS", "SCALARS", "CollectorSet"]
