"""MetricsRenderer protocol for serializing collected metrics.

Separates metrics *serialization* (serving /metrics) from metrics
*collection* (scalar and vector metrics).  Rendering is a coroutine because
unlabeled metrics are sampled from the database as part of each scrape.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsRenderer(Protocol):
    """Protocol for rendering collected metrics into a scrapeable format."""

    @property
    def content_type(self) -> str:
        """MIME type for the serialized metrics output."""
        ...

    async def generate(self) -> bytes:
        """Sample on-read metrics and serialize everything into the wire format."""
        ...
