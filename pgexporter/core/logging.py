"""Process-wide logger with contextual fields.

Every module logs through ``logger`` (or a child obtained from
``logger.with_context(...)``).  Context fields are attached to each record
under ``record.context`` and appended to the formatted line as ``key=value``
pairs, so a disabled metric or a failed query can be traced back to the
metric name without string-formatting it into every message.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping

_LOGGER_NAME = "pgexporter"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class ContextualLogger(logging.LoggerAdapter):
    """LoggerAdapter that carries a dict of context fields."""

    def __init__(self, base: logging.Logger, context: dict[str, Any] | None = None) -> None:
        super().__init__(base, context or {})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping]:
        context = {**self.extra, **kwargs.pop("extra", {})}
        kwargs["extra"] = {"context": context}
        return msg, kwargs

    def with_context(self, **context: Any) -> ContextualLogger:
        """Return a child logger whose records also carry ``context``."""
        return ContextualLogger(self.logger, {**self.extra, **context})


class ContextFormatter(logging.Formatter):
    """Text formatter that appends the record's context fields."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


def configure_logging(level: str = "INFO") -> None:
    """Install the context formatter on the package logger."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ContextFormatter(_FORMAT))

    base = logging.getLogger(_LOGGER_NAME)
    base.handlers[:] = [handler]
    base.setLevel(level.upper())
    base.propagate = False


logger = ContextualLogger(logging.getLogger(_LOGGER_NAME))
