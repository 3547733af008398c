"""Bounded query execution.

Every database round-trip made by a metric goes through ``QueryExecutor``.
Each call runs under ``asyncio.wait_for``: on timeout the in-flight query is
cancelled and awaited before ``QueryTimeoutError`` is raised, so no query
work outlives the call that started it.
"""

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from pgexporter.core.exceptions import QueryDecodeError, QueryError, QueryTimeoutError
from pgexporter.core.protocols.database import Database

# Deadline applied to each individual query.
DEFAULT_TIMEOUT: float = 1.0

RecordT = TypeVar("RecordT", bound=BaseModel)


class QueryExecutor:
    """Run single queries against a shared database handle.

    The executor neither retries nor logs.  Callers decide how a failed
    sample is reported and which value survives it.
    """

    def __init__(self, database: Database, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._database = database
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    async def fetch_value(self, query: str, *params: str) -> Any:
        """Return the single column of the first row.

        Raises:
            QueryTimeoutError: the deadline expired.
            QueryDecodeError: the query returned no row, or a row without
                exactly one column.
            QueryError: any other driver or connection failure.
        """
        rows = await self._fetch(query, params)
        if not rows:
            raise QueryDecodeError("query returned no rows", query=query)
        row = rows[0]
        if len(row) != 1:
            raise QueryDecodeError(f"query returned {len(row)} columns, expected 1", query=query)
        return next(iter(row.values()))

    async def fetch_records(
        self,
        query: str,
        record_type: type[RecordT],
        *params: str,
    ) -> list[RecordT]:
        """Decode every row into ``record_type`` by column name.

        ``record_type`` should forbid extra fields; a missing or unexpected
        column then raises ``QueryDecodeError`` instead of defaulting.
        """
        rows = await self._fetch(query, params)
        try:
            return [record_type.model_validate(dict(row)) for row in rows]
        except ValidationError as e:
            raise QueryDecodeError(
                f"row does not match {record_type.__name__}: {e.error_count()} error(s)",
                query=query,
            ) from e

    async def _fetch(self, query: str, params: tuple[str, ...]) -> Sequence[Mapping[str, Any]]:
        try:
            return await asyncio.wait_for(
                self._database.fetch(query, *params),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise QueryTimeoutError(
                f"query exceeded {self._timeout:g}s deadline", query=query
            ) from e
        except Exception as e:
            raise QueryError(f"query failed: {e}", query=query) from e
