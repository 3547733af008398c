"""Streaming replication metrics."""

from pgexporter.core.capabilities import is_pg96
from pgexporter.core.factory import MetricFactory
from pgexporter.core.metrics import VectorMetric

_DELAY_BYTES_PG96 = """
    SELECT application_name, COALESCE(client_addr::text, '') AS client_addr,
        COALESCE(pg_xlog_location_diff(pg_current_xlog_location(), replay_location), 0)
            AS value
    FROM pg_stat_replication
"""

_DELAY_BYTES = """
    SELECT application_name, COALESCE(client_addr::text, '') AS client_addr,
        COALESCE(pg_wal_lsn_diff(pg_current_wal_lsn(), replay_lsn), 0) AS value
    FROM pg_stat_replication
"""


def replication_delay_query(version: str) -> str:
    if is_pg96(version):
        return _DELAY_BYTES_PG96
    return _DELAY_BYTES


async def replication_delay_bytes(factory: MetricFactory) -> VectorMetric:
    """Bytes each standby's replay position trails the primary's WAL position."""
    query = replication_delay_query(await factory.gate.server_version())
    metric = factory.new_vector(
        factory.descriptor(
            "postgresql_replication_delay_bytes", "Replication delay in bytes, per standby"
        ),
        ("application_name", "client_addr"),
    )

    async def refresh(gauge: VectorMetric) -> None:
        await gauge.refresh_from(query)

    metric.start(refresh)
    return metric
