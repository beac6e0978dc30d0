"""Exception hierarchy shared across fx_daily."""

from __future__ import annotations


class FxDailyError(Exception):
    """Base class for every error raised by the package."""


class ValidationError(FxDailyError, ValueError):
    """Input rejected before any I/O (bad window, malformed currency code)."""


class NotFoundError(FxDailyError, LookupError):
    """The requested currency or series has no stored data at all."""


class ProviderError(FxDailyError, RuntimeError):
    """The upstream observation provider failed (timeout, 4xx, 5xx)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PersistenceConflict(FxDailyError):
    """A concurrent writer inserted the same ``(base, target, date)`` row first."""


class ImportFailedError(FxDailyError):
    """Unexpected failure while importing a single currency series."""

    def __init__(self, currency_code: str, cause: BaseException) -> None:
        super().__init__(f"Failed to import exchange rates for {currency_code}: {cause}")
        self.currency_code = currency_code


__all__ = [
    "FxDailyError",
    "ValidationError",
    "NotFoundError",
    "ProviderError",
    "PersistenceConflict",
    "ImportFailedError",
]
