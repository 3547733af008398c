"""Database-wide metrics read from ``pg_stat_database``."""

from pgexporter.core.factory import MetricFactory
from pgexporter.core.metrics import ScalarMetric


def up(factory: MetricFactory) -> ScalarMetric:
    return factory.new_scalar(
        factory.descriptor("postgresql_up", "Whether the database answers queries"),
        "SELECT 1",
    )


def size(factory: MetricFactory) -> ScalarMetric:
    return factory.new_scalar(
        factory.descriptor("postgresql_size_bytes", "Database size in bytes"),
        "SELECT pg_database_size(current_database())",
    )


def deadlocks(factory: MetricFactory) -> ScalarMetric:
    return factory.new_scalar(
        factory.descriptor("postgresql_deadlocks", "Deadlocks detected since the last stats reset"),
        """
            SELECT deadlocks
            FROM pg_stat_database
            WHERE datname = current_database()
        """,
    )


def temp_files(factory: MetricFactory) -> ScalarMetric:
    return factory.new_scalar(
        factory.descriptor("postgresql_temp_files", "Temporary files created by queries"),
        """
            SELECT temp_files
            FROM pg_stat_database
            WHERE datname = current_database()
        """,
    )


def temp_size(factory: MetricFactory) -> ScalarMetric:
    return factory.new_scalar(
        factory.descriptor(
            "postgresql_temp_size_bytes", "Data written to temporary files by queries"
        ),
        """
            SELECT temp_bytes
            FROM pg_stat_database
            WHERE datname = current_database()
        """,
    )


def transactions_sum(factory: MetricFactory) -> ScalarMetric:
    return factory.new_scalar(
        factory.descriptor(
            "postgresql_transactions_sum", "Committed plus rolled back transactions"
        ),
        """
            SELECT xact_commit + xact_rollback
            FROM pg_stat_database
            WHERE datname = current_database()
        """,
    )
