"""Database protocol for metric queries.

Abstracts the connection pool so the executor depends on a protocol rather
than a concrete driver.  Production wraps a SQLAlchemy ``AsyncEngine``;
tests inject a fake that returns canned rows.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Database(Protocol):
    """Protocol for a handle that runs read-only metric queries."""

    async def fetch(self, query: str, *params: str) -> Sequence[Mapping[str, Any]]:
        """Run ``query`` with positional ``params`` and return every row.

        Args:
            query: SQL text using ``$1``, ``$2``... placeholders.
            params: Positional parameter values.

        Returns:
            One mapping per row, keyed by column name.

        Raises:
            Any driver exception on failure; the executor wraps it.
        """
        ...
