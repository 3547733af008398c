"""Dead tuple percentage of the busiest tables, via ``pgstattuple``."""

from pydantic import BaseModel, ConfigDict

from pgexporter.core.exceptions import QueryError
from pgexporter.core.factory import MetricFactory
from pgexporter.core.metrics import VectorMetric

EXTENSION = "pgstattuple"

_BUSIEST_TABLES_QUERY = """
    SELECT relname
    FROM pg_stat_user_tables
    ORDER BY n_tup_ins + n_tup_upd DESC
    LIMIT 20
"""

_DEAD_TUPLES_QUERY = "SELECT dead_tuple_percent FROM pgstattuple($1)"


class Relation(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    relname: str


async def dead_tuples(factory: MetricFactory) -> VectorMetric:
    descriptor = factory.descriptor(
        "postgresql_dead_tuples_pct", "dead tuples percentage on the top 20 biggest tables"
    )
    label_keys = ("table",)
    if not await factory.gate.is_superuser():
        return factory.disabled(descriptor, label_keys, f"{EXTENSION} requires a superuser")
    if not await factory.gate.has_extension(EXTENSION):
        return factory.disabled(
            descriptor, label_keys, f"{EXTENSION} extension is not installed"
        )

    metric = factory.new_vector(descriptor, label_keys)
    executor = factory.executor

    async def refresh(gauge: VectorMetric) -> None:
        try:
            tables = await executor.fetch_records(_BUSIEST_TABLES_QUERY, Relation)
        except QueryError as e:
            gauge.record_failure(e)
            return
        for table in tables:
            await gauge.refresh_value((table.relname,), _DEAD_TUPLES_QUERY, table.relname)

    metric.start(refresh)
    return metric
