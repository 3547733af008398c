"""Metrics renderer adapters."""

from pgexporter.adapters.metrics_renderer.fake import FakeMetricsRenderer
from pgexporter.adapters.metrics_renderer.prometheus import PrometheusMetricsRenderer

__all__ = ["PrometheusMetricsRenderer", "FakeMetricsRenderer"]
