"""Exporter exceptions.

Query failures are raised by the executor and contained by the metric that
issued the query; none of them reach the exposition layer.
"""


class ExporterError(Exception):
    """Base class for all exporter errors."""


class ConfigurationError(ExporterError):
    """Raised when settings cannot be interpreted."""


class QueryError(ExporterError):
    """A query could not be executed or its result could not be used."""

    def __init__(self, message: str, *, query: str) -> None:
        super().__init__(message)
        self.query = query


class QueryTimeoutError(QueryError):
    """The query did not complete within the executor deadline."""


class QueryDecodeError(QueryError):
    """The query result did not match the expected shape."""
