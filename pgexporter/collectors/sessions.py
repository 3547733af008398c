"""Session and lock metrics."""

from pgexporter.core.factory import MetricFactory
from pgexporter.core.metrics import VectorMetric

_IDLE_SESSIONS_QUERY = """
    SELECT state, COUNT(*) AS value
    FROM pg_stat_activity
    WHERE datname = current_database()
    AND state LIKE 'idle%'
    GROUP BY state
"""

_LOCKS_QUERY = """
    SELECT mode, COUNT(*) AS value
    FROM pg_locks
    WHERE database = (SELECT oid FROM pg_database WHERE datname = current_database())
    GROUP BY mode
"""


async def idle_sessions(factory: MetricFactory) -> VectorMetric:
    metric = factory.new_vector(
        factory.descriptor("postgresql_idle_sessions", "Idle sessions by state"),
        ("state",),
    )

    async def refresh(gauge: VectorMetric) -> None:
        await gauge.refresh_from(_IDLE_SESSIONS_QUERY)

    metric.start(refresh)
    return metric


async def locks(factory: MetricFactory) -> VectorMetric:
    metric = factory.new_vector(
        factory.descriptor("postgresql_locks", "Locks held or awaited, by mode"),
        ("mode",),
    )

    async def refresh(gauge: VectorMetric) -> None:
        await gauge.refresh_from(_LOCKS_QUERY)

    metric.start(refresh)
    return metric
