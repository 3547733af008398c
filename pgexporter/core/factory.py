"""Metric factory.

One factory per monitored database.  It owns the database handle (through
its executor), the constant labels, the refresh interval, the capability
gate and the error counter, and lends them to every metric it builds.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Union

from prometheus_client import CollectorRegistry

from pgexporter.core.capabilities import CapabilityGate
from pgexporter.core.exceptions import ConfigurationError
from pgexporter.core.executor import DEFAULT_TIMEOUT, QueryExecutor
from pgexporter.core.logging import logger
from pgexporter.core.metrics import (
    VALUE_COLUMN,
    ErrorCounter,
    MetricDescriptor,
    ScalarMetric,
    VectorMetric,
)
from pgexporter.core.protocols.database import Database

AnyMetric = Union[ScalarMetric, VectorMetric]


class MetricFactory:
    """Build scalar and vector metrics bound to one database.

    Registration is deduplicated by metric name: asking for a metric that
    was already built returns the existing instance.

    Args:
        database: Handle every query runs against.
        labels: Constant labels applied to every metric.
        interval: Seconds between vector metric refreshes.
        registry: Registry the metrics are exposed through (a private one
            by default).
        timeout: Per-query deadline in seconds.
    """

    def __init__(
        self,
        database: Database,
        *,
        labels: Mapping[str, str] | None = None,
        interval: float,
        registry: CollectorRegistry | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.registry = registry or CollectorRegistry()
        self.labels = dict(labels or {})
        self.interval = interval
        self.executor = QueryExecutor(database, timeout=timeout)
        self.gate = CapabilityGate(self.executor)
        self.errors = ErrorCounter(self.registry, self.labels)
        self._metrics: dict[str, AnyMetric] = {}
        self._logger = logger.with_context(context_base="metrics", operation="factory")

    def descriptor(self, name: str, help: str) -> MetricDescriptor:
        """Descriptor for ``name`` carrying this factory's constant labels."""
        return MetricDescriptor(name=name, help=help, const_labels=self.labels)

    def new_scalar(self, descriptor: MetricDescriptor, query: str, *params: str) -> ScalarMetric:
        existing = self._metrics.get(descriptor.name)
        if isinstance(existing, ScalarMetric):
            return existing
        metric = ScalarMetric(descriptor, query, params, self.executor, self.errors)
        return self._register(metric)

    def new_vector(self, descriptor: MetricDescriptor, label_keys: Sequence[str]) -> VectorMetric:
        """Build a vector metric; its refresh loop is started by the caller."""
        existing = self._metrics.get(descriptor.name)
        if isinstance(existing, VectorMetric):
            return existing
        self._check_label_keys(descriptor, label_keys)
        metric = VectorMetric(
            descriptor, label_keys, self.executor, self.interval, self.errors
        )
        return self._register(metric)

    def disabled(
        self,
        descriptor: MetricDescriptor,
        label_keys: Sequence[str],
        reason: str,
    ) -> VectorMetric:
        """Build a permanently empty vector metric and record why.

        Logs one error and increments the error counter once.
        """
        existing = self._metrics.get(descriptor.name)
        if isinstance(existing, VectorMetric):
            return existing
        self._check_label_keys(descriptor, label_keys)
        self._logger.error("%s disabled because %s", descriptor.name, reason)
        self.errors.inc()
        metric = VectorMetric(
            descriptor,
            label_keys,
            self.executor,
            self.interval,
            self.errors,
            enabled=False,
        )
        return self._register(metric)

    def metrics(self) -> list[AnyMetric]:
        return list(self._metrics.values())

    def scalars(self) -> list[ScalarMetric]:
        return [m for m in self._metrics.values() if isinstance(m, ScalarMetric)]

    def _check_label_keys(self, descriptor: MetricDescriptor, label_keys: Sequence[str]) -> None:
        """Reject label keys that would clash with a constant label or the value column."""
        clashing = sorted(set(label_keys) & set(self.labels))
        if clashing:
            raise ConfigurationError(
                f"constant label(s) {', '.join(clashing)} clash with labels of {descriptor.name}"
            )
        if VALUE_COLUMN in label_keys:
            raise ConfigurationError(f"{descriptor.name} cannot use {VALUE_COLUMN!r} as a label")

    def _register(self, metric):
        if metric.name in self._metrics:
            raise ValueError(f"metric {metric.name} already registered with a different kind")
        self.registry.register(metric)
        self._metrics[metric.name] = metric
        return metric
