"""Unit tests for the metric factory."""

import pytest
from prometheus_client import CollectorRegistry

from pgexporter.adapters.database import FakeDatabase
from pgexporter.core.exceptions import ConfigurationError
from pgexporter.core.factory import MetricFactory
from pgexporter.core.metrics import ScalarMetric, VectorMetric


def _factory(db=None, **kwargs) -> MetricFactory:
    kwargs.setdefault("interval", 60.0)
    return MetricFactory(db or FakeDatabase(), **kwargs)


# ---------------------------------------------------------------------------
# Shared state
# ---------------------------------------------------------------------------


class TestSharedState:
    """Tests for what the factory lends to its metrics."""

    def test_private_registry_by_default(self):
        from prometheus_client import REGISTRY

        assert _factory().registry is not REGISTRY

    def test_uses_given_registry(self):
        registry = CollectorRegistry()

        assert _factory(registry=registry).registry is registry

    def test_descriptor_carries_const_labels(self):
        factory = _factory(labels={"env": "prod", "cluster": "main"})

        descriptor = factory.descriptor("postgresql_up", "Whether the database answers queries")

        assert descriptor.const_labels == {"env": "prod", "cluster": "main"}

    def test_timeout_reaches_executor(self):
        assert _factory(timeout=2.5).executor.timeout == 2.5

    @pytest.mark.asyncio
    async def test_metrics_share_the_error_counter(self):
        db = FakeDatabase()
        db.set_error("broken", ConnectionResetError())
        factory = _factory(db)
        first = factory.new_scalar(factory.descriptor("a_metric", "a"), "SELECT broken")
        second = factory.new_vector(factory.descriptor("b_metric", "b"), ("table",))

        await first.read()
        await second.refresh_from("SELECT broken")

        assert factory.errors.value == 2.0


# ---------------------------------------------------------------------------
# Construction and registration
# ---------------------------------------------------------------------------


class TestRegistration:
    """Tests for building and deduplicating metrics."""

    def test_new_scalar_is_registered(self):
        factory = _factory(labels={"env": "prod"})

        metric = factory.new_scalar(factory.descriptor("postgresql_up", "up"), "SELECT 1")

        assert isinstance(metric, ScalarMetric)
        assert factory.scalars() == [metric]
        assert factory.registry.get_sample_value("postgresql_up", {"env": "prod"}) == 0.0

    def test_new_vector_is_not_started(self):
        factory = _factory()

        metric = factory.new_vector(factory.descriptor("postgresql_locks", "locks"), ("mode",))

        assert isinstance(metric, VectorMetric)
        assert metric.task is None
        assert metric.label_keys == ("mode",)

    def test_same_name_returns_existing_metric(self):
        factory = _factory()
        descriptor = factory.descriptor("postgresql_up", "up")

        first = factory.new_scalar(descriptor, "SELECT 1")
        second = factory.new_scalar(descriptor, "SELECT 1")

        assert first is second
        assert factory.metrics() == [first]

    def test_same_name_different_kind_is_rejected(self):
        factory = _factory()
        factory.new_scalar(factory.descriptor("postgresql_up", "up"), "SELECT 1")

        with pytest.raises(ValueError):
            factory.new_vector(factory.descriptor("postgresql_up", "up"), ("mode",))

    def test_label_key_clashing_with_constant_label_is_rejected(self):
        factory = _factory(labels={"table": "prod"})

        with pytest.raises(ConfigurationError, match="table"):
            factory.new_vector(factory.descriptor("postgresql_table_rows", "rows"), ("table",))

        assert factory.metrics() == []

    def test_value_label_key_is_rejected(self):
        factory = _factory()

        with pytest.raises(ConfigurationError):
            factory.new_vector(factory.descriptor("postgresql_locks", "locks"), ("value",))


# ---------------------------------------------------------------------------
# disabled()
# ---------------------------------------------------------------------------


class TestDisabled:
    """Tests for permanently empty metrics."""

    def test_counts_one_error_and_stays_empty(self):
        factory = _factory()

        metric = factory.disabled(
            factory.descriptor("postgresql_dead_tuples_pct", "dead tuples"),
            ("table",),
            "pgstattuple requires a superuser",
        )

        assert metric.enabled is False
        assert dict(metric.cells()) == {}
        assert factory.errors.value == 1.0

    def test_logs_the_reason(self, caplog):
        factory = _factory()

        with caplog.at_level("ERROR", logger="pgexporter"):
            factory.disabled(
                factory.descriptor("postgresql_backends_count", "backends"),
                ("status", "user"),
                "it requires a superuser",
            )

        assert "postgresql_backends_count disabled because it requires a superuser" in caplog.text

    def test_disabling_twice_counts_once(self):
        factory = _factory()
        descriptor = factory.descriptor("postgresql_dead_tuples_pct", "dead tuples")

        factory.disabled(descriptor, ("table",), "no superuser")
        factory.disabled(descriptor, ("table",), "no superuser")

        assert factory.errors.value == 1.0

    def test_label_key_clashing_with_constant_label_is_rejected(self):
        factory = _factory(labels={"user": "ops"})

        with pytest.raises(ConfigurationError, match="user"):
            factory.disabled(
                factory.descriptor("postgresql_backends_count", "backends"),
                ("status", "user"),
                "it requires a superuser",
            )

        assert factory.errors.value == 0.0
