"""Exporter settings.

Values come from ``PG_EXPORTER_*`` environment variables or a ``.env`` file.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pgexporter.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Exporter configuration.

    Attributes:
        DATABASE_URL: SQLAlchemy URL of the monitored database (asyncpg driver).
        INTERVAL: Seconds between refreshes of every labeled metric.
        QUERY_TIMEOUT: Deadline in seconds applied to each query.
        LABELS: Constant labels added to every metric, as ``key=value,key=value``.
        HOST: Address the metrics server listens on.
        PORT: Port the metrics server listens on.
        LOG_LEVEL: Level of the ``pgexporter`` logger.
        POOL_SIZE: Connections kept in the engine pool.
    """

    model_config = SettingsConfigDict(
        env_prefix="PG_EXPORTER_",
        env_file=".env",
        extra="ignore",
    )

    DATABASE_URL: str = "postgresql+asyncpg://postgres@localhost:5432/postgres"
    INTERVAL: float = 20.0
    QUERY_TIMEOUT: float = 1.0
    LABELS: str = ""
    HOST: str = "0.0.0.0"
    PORT: int = 9111
    LOG_LEVEL: str = "INFO"
    POOL_SIZE: int = 5

    @field_validator("INTERVAL", "QUERY_TIMEOUT")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @property
    def const_labels(self) -> dict[str, str]:
        """Parse ``LABELS`` into a mapping."""
        return parse_labels(self.LABELS)


def parse_labels(raw: str) -> dict[str, str]:
    """Parse ``key=value`` pairs separated by commas.

    Raises:
        ConfigurationError: if a pair has no ``=`` or an empty key.
    """
    labels: dict[str, str] = {}
    for pair in filter(None, (part.strip() for part in raw.split(","))):
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigurationError(f"invalid label {pair!r}, expected key=value")
        labels[key] = value.strip()
    return labels


settings = Settings()
