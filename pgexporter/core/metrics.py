"""Query-backed metrics.

Two shapes of metric turn SQL into Prometheus samples:

``ScalarMetric``
    One unlabeled value, re-queried each time it is read.  Only suitable for
    queries cheap enough to run on every scrape.

``VectorMetric``
    A family of cells keyed by label values.  A background task refreshes
    the cells every interval; readers only ever see the current mapping and
    never trigger a query.

Both are Prometheus collectors and are registered on the factory's
``CollectorRegistry``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator, Mapping, Sequence
from enum import Enum
from types import MappingProxyType
from typing import Optional

from prometheus_client import CollectorRegistry, Counter
from prometheus_client.core import GaugeMetricFamily, Metric
from pydantic import BaseModel, ConfigDict, Field, create_model

from pgexporter.core.exceptions import QueryError
from pgexporter.core.executor import QueryExecutor
from pgexporter.core.logging import logger

# Column every labeled query must return alongside its label columns.
VALUE_COLUMN = "value"

ERRORS_METRIC = "postgresql_exporter_errors"

Cells = Mapping[tuple[str, ...], float]


class MetricDescriptor(BaseModel):
    """Name, help text and constant labels of one metric."""

    model_config = ConfigDict(frozen=True)

    name: str
    help: str
    const_labels: dict[str, str] = Field(default_factory=dict)


class ErrorCounter:
    """Count of disabled metrics and failed queries, shared by every metric.

    Backed by a Prometheus counter, whose increments are thread-safe.
    """

    def __init__(self, registry: CollectorRegistry, const_labels: Mapping[str, str]) -> None:
        self._registry = registry
        self._labels = dict(const_labels)
        counter = Counter(
            ERRORS_METRIC,
            "Errors while collecting metrics (failed queries and disabled metrics)",
            list(self._labels),
            registry=registry,
        )
        self._counter = counter.labels(**self._labels) if self._labels else counter

    def inc(self) -> None:
        self._counter.inc()

    @property
    def value(self) -> float:
        return self._registry.get_sample_value(f"{ERRORS_METRIC}_total", self._labels) or 0.0


class _QueryMetric:
    """Shared plumbing: descriptor, executor, error counter and logger."""

    def __init__(
        self,
        descriptor: MetricDescriptor,
        executor: QueryExecutor,
        errors: ErrorCounter,
    ) -> None:
        self.descriptor = descriptor
        self._executor = executor
        self._errors = errors
        self._logger = logger.with_context(context_base="metrics", metric=descriptor.name)

    @property
    def name(self) -> str:
        return self.descriptor.name

    def _family(self, label_keys: Sequence[str] = ()) -> GaugeMetricFamily:
        return GaugeMetricFamily(
            self.descriptor.name,
            self.descriptor.help,
            labels=[*self.descriptor.const_labels, *label_keys],
        )

    def record_failure(self, error: QueryError) -> None:
        self._logger.warning("%s: failed to query metric: %s", self.name, error)
        self._errors.inc()


class ScalarMetric(_QueryMetric):
    """Unlabeled metric computed by one query on every read."""

    def __init__(
        self,
        descriptor: MetricDescriptor,
        query: str,
        params: Sequence[str],
        executor: QueryExecutor,
        errors: ErrorCounter,
    ) -> None:
        super().__init__(descriptor, executor, errors)
        self._query = query
        self._params = tuple(params)
        self._value: float | None = None

    @property
    def value(self) -> float:
        """Last value read, without querying."""
        return self._value if self._value is not None else 0.0

    async def read(self) -> float:
        """Query the current value.

        On failure the previous value is kept and returned (``0.0`` when
        there is none).
        """
        try:
            result = await self._executor.fetch_value(self._query, *self._params)
            self._value = float(result)
        except QueryError as e:
            self.record_failure(e)
        except (TypeError, ValueError) as e:
            self.record_failure(QueryError(f"non-numeric result: {e}", query=self._query))
        return self.value

    # -- prometheus collector interface --

    def describe(self) -> Iterator[Metric]:
        yield self._family()

    def collect(self) -> Iterator[Metric]:
        family = self._family()
        family.add_metric(list(self.descriptor.const_labels.values()), self.value)
        yield family


def _label_field(index: int) -> str:
    # Row model field holding the label at ``index``; the column name is its alias.
    return f"label_{index}"


class VectorState(str, Enum):
    """Lifecycle of a vector metric's cells."""

    UNINITIALIZED = "uninitialized"
    POPULATED = "populated"


RefreshFn = Callable[["VectorMetric"], Awaitable[None]]


class VectorMetric(_QueryMetric):
    """Labeled metric whose cells are refreshed by a background task.

    Cells are upserted, never cleared: a label combination that stops
    appearing in query results keeps its last value.  Each batch of cells is
    merged into a copy of the mapping and swapped in whole, so a reader sees
    either the previous mapping or the new one.
    """

    def __init__(
        self,
        descriptor: MetricDescriptor,
        label_keys: Sequence[str],
        executor: QueryExecutor,
        interval: float,
        errors: ErrorCounter,
        *,
        enabled: bool = True,
    ) -> None:
        super().__init__(descriptor, executor, errors)
        self.label_keys = tuple(label_keys)
        self.enabled = enabled
        self.state = VectorState.UNINITIALIZED
        self._interval = interval
        self._cells: Cells = MappingProxyType({})
        self._task: asyncio.Task[None] | None = None
        self._row_type = create_model(
            f"{descriptor.name}_row",
            __config__=ConfigDict(extra="forbid", frozen=True),
            **{VALUE_COLUMN: (float, ...)},
            **{
                _label_field(i): (Optional[str], Field(alias=key))
                for i, key in enumerate(self.label_keys)
            },
        )

    def cells(self) -> Cells:
        """Current label-values to value mapping; never blocks."""
        return self._cells

    def upsert(self, cells: Cells) -> None:
        merged = dict(self._cells)
        merged.update(cells)
        self._cells = MappingProxyType(merged)

    async def refresh_from(self, query: str, *params: str) -> bool:
        """Run a query returning the label columns plus ``value`` and upsert its rows.

        Returns:
            False if the query failed; the cells are then left untouched.
        """
        try:
            rows = await self._executor.fetch_records(query, self._row_type, *params)
        except QueryError as e:
            self.record_failure(e)
            return False
        fields = [_label_field(i) for i in range(len(self.label_keys))]
        self.upsert(
            {tuple(getattr(row, f) or "" for f in fields): getattr(row, VALUE_COLUMN) for row in rows}
        )
        self.state = VectorState.POPULATED
        return True

    async def refresh_value(self, labels: Sequence[str], query: str, *params: str) -> bool:
        """Run a single-value query and upsert it as the cell for ``labels``."""
        try:
            value = float(await self._executor.fetch_value(query, *params))
        except QueryError as e:
            self.record_failure(e)
            return False
        except (TypeError, ValueError) as e:
            self.record_failure(QueryError(f"non-numeric result: {e}", query=query))
            return False
        self.upsert({tuple(labels): value})
        self.state = VectorState.POPULATED
        return True

    def start(self, refresh: RefreshFn) -> asyncio.Task[None] | None:
        """Spawn the refresh loop; it runs for the rest of the process.

        Disabled metrics are never started.  Calling ``start`` twice returns
        the task that is already running.
        """
        if not self.enabled:
            return None
        if self._task is None:
            self._task = asyncio.create_task(self._loop(refresh), name=f"refresh:{self.name}")
        return self._task

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    async def _loop(self, refresh: RefreshFn) -> None:
        while True:
            try:
                await refresh(self)
            except Exception:
                self._logger.warning("%s: refresh failed", self.name, exc_info=True)
                self._errors.inc()
            await asyncio.sleep(self._interval)

    # -- prometheus collector interface --

    def describe(self) -> Iterator[Metric]:
        yield self._family(self.label_keys)

    def collect(self) -> Iterator[Metric]:
        family = self._family(self.label_keys)
        const_values = list(self.descriptor.const_labels.values())
        for key, value in self._cells.items():
            family.add_metric([*const_values, *key], value)
        yield family
