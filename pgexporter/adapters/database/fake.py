"""Fake Database for testing.

Serves canned rows keyed by a fragment of the query text, so tests can
drive executors and metrics without a running server.
"""

import asyncio
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Union

Rows = Sequence[Mapping[str, Any]]
Result = Union[Rows, Callable[[tuple[str, ...]], Rows], BaseException]


class FakeDatabase:
    """In-memory spy implementing the Database protocol.

    Usage:
        db = FakeDatabase()
        db.set_result("pg_stat_database", [{"numbackends": 3}])
        rows = await db.fetch("SELECT numbackends FROM pg_stat_database")
        assert db.calls[0][0].startswith("SELECT")
    """

    def __init__(self) -> None:
        self._results: dict[str, Result] = {}
        self._delays: dict[str, float] = {}
        self.calls: list[tuple[str, tuple[str, ...]]] = []
        self.cancelled: int = 0

    async def fetch(self, query: str, *params: str) -> Rows:
        self.calls.append((query, params))
        delay = self._match(self._delays, query)
        if delay:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        result = self._match(self._results, query)
        if result is None:
            raise LookupError(f"no canned result for query: {query.strip()[:60]}")
        if isinstance(result, BaseException):
            raise result
        if callable(result):
            return list(result(params))
        return list(result)

    # -- test helpers --

    def set_result(self, fragment: str, rows: Rows | Callable[[tuple[str, ...]], Rows]) -> None:
        """Return ``rows`` (or ``rows(params)``) for queries containing ``fragment``."""
        self._results[fragment] = rows

    def set_error(self, fragment: str, exc: BaseException) -> None:
        """Raise ``exc`` for queries containing ``fragment``."""
        self._results[fragment] = exc

    def set_delay(self, fragment: str, seconds: float) -> None:
        """Sleep ``seconds`` before answering queries containing ``fragment``."""
        self._delays[fragment] = seconds

    def queries(self, fragment: str) -> list[tuple[str, tuple[str, ...]]]:
        """Recorded calls whose query contains ``fragment``."""
        return [call for call in self.calls if fragment in call[0]]

    def clear(self) -> None:
        """Forget canned results, delays and recorded calls."""
        self._results.clear()
        self._delays.clear()
        self.calls.clear()
        self.cancelled = 0

    @staticmethod
    def _match(table: dict[str, Any], query: str) -> Any:
        for fragment, value in table.items():
            if fragment in query:
                return value
        return None
