"""Capability checks for the connected role.

Some metrics need a superuser or an optional extension.  ``CapabilityGate``
answers those questions once per process and caches the answers; a failed
lookup is cached as "not capable", since the metrics that depend on it are
disabled for good anyway.
"""

from pgexporter.core.exceptions import QueryError
from pgexporter.core.executor import QueryExecutor
from pgexporter.core.logging import logger

_SUPERUSER_QUERY = "SELECT usesuper FROM pg_user WHERE usename = CURRENT_USER"
_EXTENSION_QUERY = "SELECT COUNT(*) FROM pg_extension WHERE extname = $1"
_VERSION_QUERY = "SHOW server_version"


def is_pg96(version: str) -> bool:
    """Whether ``version`` is a 9.6.x server version string."""
    return version.startswith("9.6.")


class CapabilityGate:
    """Cached answers to privilege, extension and version questions."""

    def __init__(self, executor: QueryExecutor) -> None:
        self._executor = executor
        self._superuser: bool | None = None
        self._version: str | None = None
        self._extensions: dict[str, bool] = {}
        self._logger = logger.with_context(context_base="capabilities")

    async def is_superuser(self) -> bool:
        if self._superuser is None:
            try:
                self._superuser = bool(await self._executor.fetch_value(_SUPERUSER_QUERY))
            except QueryError as e:
                self._logger.warning("Failed to check superuser privilege: %s", e)
                self._superuser = False
        return self._superuser

    async def has_extension(self, name: str) -> bool:
        if name not in self._extensions:
            try:
                count = await self._executor.fetch_value(_EXTENSION_QUERY, name)
                self._extensions[name] = int(count) > 0
            except QueryError as e:
                self._logger.warning("Failed to check extension %s: %s", name, e)
                self._extensions[name] = False
        return self._extensions[name]

    async def server_version(self) -> str:
        """Return the server version string, e.g. ``"10.4"``; ``""`` if unknown."""
        if self._version is None:
            try:
                self._version = str(await self._executor.fetch_value(_VERSION_QUERY))
            except QueryError as e:
                self._logger.warning("Failed to read server version: %s", e)
                self._version = ""
        return self._version
