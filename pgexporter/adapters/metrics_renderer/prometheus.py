"""Prometheus implementation of the MetricsRenderer protocol.

Wraps the factory's CollectorRegistry.  Before serializing, every unlabeled
metric is read once, so each scrape costs exactly one bounded query per
scalar and none for labeled metrics, which are served from their cells.
"""

import asyncio

from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from pgexporter.core.factory import MetricFactory
from pgexporter.core.protocols.metrics_renderer import MetricsRenderer


class PrometheusMetricsRenderer(MetricsRenderer):
    """Render all metrics built by one factory."""

    def __init__(self, factory: MetricFactory) -> None:
        self._factory = factory

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST

    async def generate(self) -> bytes:
        await asyncio.gather(*(scalar.read() for scalar in self._factory.scalars()))
        return generate_latest(self._factory.registry)
