"""Runner for the exporter: collectors plus metrics server."""

import asyncio

from pgexporter.adapters.database import SqlAlchemyDatabase
from pgexporter.adapters.metrics_renderer import PrometheusMetricsRenderer
from pgexporter.api.metrics import MetricsServer
from pgexporter.collectors import CollectorSet
from pgexporter.core.config import settings
from pgexporter.core.factory import MetricFactory
from pgexporter.core.logging import configure_logging
from pgexporter.core.logging import logger as global_logger


async def main() -> None:
    """Build every collector, serve them, and run until the process is stopped.

    Raises:
        e (Exception): If the collectors or the server cannot be built.
    """
    configure_logging(settings.LOG_LEVEL)
    logger = global_logger.with_context(context_base="exporter", operation="runner")

    database = SqlAlchemyDatabase.from_url(settings.DATABASE_URL, pool_size=settings.POOL_SIZE)
    try:
        factory = MetricFactory(
            database,
            labels=settings.const_labels,
            interval=settings.INTERVAL,
            timeout=settings.QUERY_TIMEOUT,
        )
        collectors = CollectorSet(factory)
        metrics = await collectors.build()
        logger.info(
            "Built %d metrics (%d refreshed every %ss)",
            len(metrics),
            len(collectors.vectors),
            settings.INTERVAL,
        )
    except Exception as e:
        logger.error(f"Error building collectors: {e}")
        await database.dispose()
        raise e

    server = MetricsServer(PrometheusMetricsRenderer(factory), settings.PORT, settings.HOST)
    await server.start()
    try:
        # Refresh loops run as detached tasks for the life of the process.
        await asyncio.Event().wait()
    finally:
        await server.stop()
        await database.dispose()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("Shutdown requested... exiting.")


if __name__ == "__main__":
    run()
