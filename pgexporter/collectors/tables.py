"""Per-table metrics: bloat, size, sequential scans and vacuum age."""

from pgexporter.core.factory import MetricFactory
from pgexporter.core.metrics import VectorMetric

# Estimates wasted space from column statistics; only reports tables with
# significant bloat (>= 30% and >= 10MB, or >= 20% and >= 1GB).
TABLE_BLOAT_QUERY = """
WITH constants AS (
    SELECT current_setting('block_size')::numeric AS bs, 23 AS hdr, 8 AS ma
),
no_stats AS (
    SELECT table_schema, table_name,
        n_live_tup::numeric AS est_rows,
        pg_table_size(relid)::numeric AS table_size
    FROM information_schema.columns
        JOIN pg_stat_user_tables AS psut
        ON table_schema = psut.schemaname
        AND table_name = psut.relname
        LEFT OUTER JOIN pg_stats
        ON table_schema = pg_stats.schemaname
        AND table_name = pg_stats.tablename
        AND column_name = attname
    WHERE attname IS NULL
    AND table_schema NOT IN ('pg_catalog', 'information_schema')
    GROUP BY table_schema, table_name, relid, n_live_tup
),
null_headers AS (
    SELECT
        hdr + 1 + (SUM(CASE WHEN null_frac <> 0 THEN 1 ELSE 0 END) / 8) AS nullhdr,
        SUM((1 - null_frac) * avg_width) AS datawidth,
        MAX(null_frac) AS maxfracsum,
        schemaname, tablename, hdr, ma, bs
    FROM pg_stats CROSS JOIN constants
    LEFT OUTER JOIN no_stats
    ON schemaname = no_stats.table_schema
    AND tablename = no_stats.table_name
    WHERE schemaname NOT IN ('pg_catalog', 'information_schema')
    AND no_stats.table_name IS NULL
    AND EXISTS (SELECT 1
        FROM information_schema.columns
        WHERE schemaname = columns.table_schema
        AND tablename = columns.table_name)
    GROUP BY schemaname, tablename, hdr, ma, bs
),
data_headers AS (
    SELECT
        ma, bs, hdr, schemaname, tablename,
        (datawidth + (hdr + ma - (CASE WHEN mod(hdr, ma) = 0 THEN ma ELSE mod(hdr, ma) END)))::numeric
            AS datahdr,
        (maxfracsum * (nullhdr + ma - (CASE WHEN mod(nullhdr, ma) = 0 THEN ma ELSE mod(nullhdr, ma) END)))
            AS nullhdr2
    FROM null_headers
),
table_estimates AS (
    SELECT schemaname, tablename, bs,
        reltuples::numeric AS est_rows, relpages * bs AS table_bytes,
        CEIL((reltuples *
            (datahdr + nullhdr2 + 4 + ma -
            (CASE WHEN mod(datahdr, ma) = 0 THEN ma ELSE mod(datahdr, ma) END))
            / (bs - 20))) * bs AS expected_bytes,
        reltoastrelid
    FROM data_headers
    JOIN pg_class ON tablename = relname
    JOIN pg_namespace ON relnamespace = pg_namespace.oid
    AND schemaname = nspname
    WHERE pg_class.relkind = 'r'
),
estimates_with_toast AS (
    SELECT schemaname, tablename,
        table_bytes + (COALESCE(toast.relpages, 0) * bs) AS table_bytes,
        expected_bytes + (CEIL(COALESCE(toast.reltuples, 0) / 4) * bs) AS expected_bytes
    FROM table_estimates LEFT OUTER JOIN pg_class AS toast
    ON table_estimates.reltoastrelid = toast.oid
    AND toast.relkind = 't'
),
bloat_data AS (
    SELECT tablename,
        ROUND(bloat_bytes * 100 / table_bytes) AS pct_bloat,
        ROUND(bloat_bytes / (1024::numeric ^ 2), 2) AS mb_bloat
    FROM (
        SELECT tablename, table_bytes::numeric AS table_bytes,
            CASE WHEN expected_bytes > 0 AND table_bytes > 0
                AND expected_bytes <= table_bytes
                THEN (table_bytes - expected_bytes)::numeric
                ELSE 0::numeric END AS bloat_bytes
        FROM estimates_with_toast
        WHERE table_bytes > 0
    ) AS sized
)
SELECT tablename AS "table", pct_bloat AS value
FROM bloat_data
WHERE (pct_bloat >= 30 AND mb_bloat >= 10)
OR (pct_bloat >= 20 AND mb_bloat >= 1000)
ORDER BY pct_bloat DESC
"""

_TABLE_SIZES_QUERY = """
    SELECT relname AS "table", pg_total_relation_size(relid) AS value
    FROM pg_stat_user_tables
"""

_TABLE_SCANS_QUERY = """
    SELECT relname AS "table", COALESCE(seq_scan, 0) AS value
    FROM pg_stat_user_tables
"""

_VACUUM_AGE_QUERY = """
    SELECT relname AS "table",
        EXTRACT(EPOCH FROM now() - GREATEST(last_vacuum, last_autovacuum)) AS value
    FROM pg_stat_user_tables
    WHERE COALESCE(last_vacuum, last_autovacuum) IS NOT NULL
"""


def _single_query_vector(
    factory: MetricFactory, name: str, help: str, query: str
) -> VectorMetric:
    metric = factory.new_vector(factory.descriptor(name, help), ("table",))

    async def refresh(gauge: VectorMetric) -> None:
        await gauge.refresh_from(query)

    metric.start(refresh)
    return metric


async def table_bloat(factory: MetricFactory) -> VectorMetric:
    return _single_query_vector(
        factory,
        "postgresql_table_bloat_pct",
        "bloat percentage of a table. Reports only for tables with a lot of bloat",
        TABLE_BLOAT_QUERY,
    )


async def table_sizes(factory: MetricFactory) -> VectorMetric:
    return _single_query_vector(
        factory,
        "postgresql_table_size_bytes",
        "Total size of each table including indexes and toast",
        _TABLE_SIZES_QUERY,
    )


async def table_scans(factory: MetricFactory) -> VectorMetric:
    return _single_query_vector(
        factory,
        "postgresql_table_seq_scans",
        "Sequential scans initiated on each table",
        _TABLE_SCANS_QUERY,
    )


async def vacuum_age(factory: MetricFactory) -> VectorMetric:
    return _single_query_vector(
        factory,
        "postgresql_last_vacuum_seconds",
        "Seconds since each table was last vacuumed (manually or by autovacuum)",
        _VACUUM_AGE_QUERY,
    )
