"""SQLAlchemy implementation of the Database protocol.

Queries go through ``exec_driver_sql`` so ``$n`` placeholders reach the
asyncpg driver untouched.  Each call borrows one pooled connection and
returns it before the rows are handed back.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from pgexporter.core.protocols.database import Database


class SqlAlchemyDatabase(Database):
    """Database handle backed by a SQLAlchemy async engine."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @classmethod
    def from_url(cls, url: str, *, pool_size: int = 5) -> "SqlAlchemyDatabase":
        """Build the engine for ``url`` and wrap it."""
        engine = create_async_engine(url, pool_size=pool_size, pool_pre_ping=True)
        return cls(engine)

    async def fetch(self, query: str, *params: str) -> Sequence[Mapping[str, Any]]:
        async with self._engine.connect() as conn:
            result = await conn.exec_driver_sql(query, params)
            return [dict(row) for row in result.mappings().all()]

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self._engine.dispose()
