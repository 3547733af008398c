"""Core protocols for dependency injection."""

from pgexporter.core.protocols.database import Database
from pgexporter.core.protocols.metrics_renderer import MetricsRenderer

__all__ = [
    "Database",
    "MetricsRenderer",
]
