"""Logging utilities for the fx_daily package."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_LOGGER: Optional[logging.Logger] = None
_CORRELATION_ID: ContextVar[str | None] = ContextVar("fx_daily_correlation_id", default=None)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(correlation_id)s]: %(message)s"


class CorrelationIdFilter(logging.Filter):
    """Attach the active correlation id (or ``-``) to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = _CORRELATION_ID.get() or "-"
        return True


def get_logger(name: str = "fx_daily") -> logging.Logger:
    """Return a module-level logger configured with a simple formatter."""
    global _LOGGER
    if _LOGGER is None:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        for handler in logging.getLogger().handlers:
            handler.addFilter(CorrelationIdFilter())
        _LOGGER = logging.getLogger(name)
    return logging.getLogger(name)


def current_correlation_id() -> str | None:
    """Return the correlation id bound to the running context, if any."""

    return _CORRELATION_ID.get()


@contextmanager
def correlation_scope(correlation_id: str | None) -> Iterator[None]:
    """Bind ``correlation_id`` to log records emitted inside the block."""

    token = _CORRELATION_ID.set(correlation_id)
    try:
        yield
    finally:
        _CORRELATION_ID.reset(token)


__all__ = ["get_logger", "correlation_scope", "current_correlation_id", "CorrelationIdFilter"]
