"""Backend (connection) metrics."""

from pgexporter.core.capabilities import is_pg96
from pgexporter.core.factory import MetricFactory
from pgexporter.core.metrics import ScalarMetric, VectorMetric

_BACKENDS_STATUS_QUERY = """
    SELECT COUNT(*) AS value, state AS status, usename AS "user"
    FROM pg_stat_activity
    WHERE datname = current_database()
    GROUP BY state, usename
"""

_WAITING_BACKENDS_PG96 = """
    SELECT COUNT(*) AS value, 'waiting' AS status, usename AS "user"
    FROM pg_stat_activity
    WHERE datname = current_database()
    AND wait_event IS NOT NULL
    GROUP BY usename
"""

_WAITING_BACKENDS = """
    SELECT COUNT(*) AS value, 'waiting' AS status, usename AS "user"
    FROM pg_stat_activity
    WHERE datname = current_database()
    AND waiting IS TRUE
    GROUP BY usename
"""


def waiting_backends_query(version: str) -> str:
    """Per-user waiting backends query for a server ``version``."""
    if is_pg96(version):
        return _WAITING_BACKENDS_PG96
    return _WAITING_BACKENDS


def backends(factory: MetricFactory) -> ScalarMetric:
    return factory.new_scalar(
        factory.descriptor("postgresql_backends_total", "Total database backends"),
        """
            SELECT numbackends
            FROM pg_stat_database
            WHERE datname = current_database()
        """,
    )


def max_backends(factory: MetricFactory) -> ScalarMetric:
    return factory.new_scalar(
        factory.descriptor(
            "postgresql_max_backends", "Maximum database backends (per postmaster)"
        ),
        """
            SELECT setting::numeric
            FROM pg_settings
            WHERE name = 'max_connections'
        """,
    )


async def waiting_backends(factory: MetricFactory) -> ScalarMetric:
    """Total backends waiting on a lock or event."""
    version = await factory.gate.server_version()
    query = f"SELECT COALESCE(SUM(value), 0) FROM ({waiting_backends_query(version)}) AS waiting"
    return factory.new_scalar(
        factory.descriptor("postgresql_waiting_backends", "Database backends waiting"),
        query,
    )


async def backends_status(factory: MetricFactory) -> VectorMetric:
    """Backend counts by state and user, plus a ``waiting`` pseudo-state.

    Needs a superuser to see other users' sessions.
    """
    descriptor = factory.descriptor("postgresql_backends_count", "Count of connections by state")
    label_keys = ("status", "user")
    if not await factory.gate.is_superuser():
        return factory.disabled(
            descriptor,
            label_keys,
            "it requires a superuser to see queries from other users",
        )

    waiting_query = waiting_backends_query(await factory.gate.server_version())
    metric = factory.new_vector(descriptor, label_keys)

    async def refresh(gauge: VectorMetric) -> None:
        for query in (_BACKENDS_STATUS_QUERY, waiting_query):
            await gauge.refresh_from(query)

    metric.start(refresh)
    return metric
