"""Runtime configuration for fx_daily.

Settings are plain dataclasses so they can be built directly in code or read
from the process environment with :meth:`ImportSettings.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from fx_daily.exceptions import ValidationError

ENV_PREFIX = "FX_DAILY_"
DEFAULT_FRED_BASE_URL = "https://api.stlouisfed.org/fred"


def _check_range(name: str, value: float, minimum: float, maximum: float) -> None:
    if not minimum <= value <= maximum:
        raise ValidationError(f"{name} must be between {minimum} and {maximum}, got {value}")


def _parse_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(ENV_PREFIX + key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(f"{ENV_PREFIX + key} must be an integer, got {raw!r}") from exc


def _parse_bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(ENV_PREFIX + key)
    if raw is None or raw.strip() == "":
        return default
    lowered = raw.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValidationError(f"{ENV_PREFIX + key} must be a boolean, got {raw!r}")


@dataclass(slots=True)
class FredSettings:
    """Connection settings for the FRED observations API."""

    api_key: str | None = None
    base_url: str = DEFAULT_FRED_BASE_URL
    timeout_seconds: int = 30

    def __post_init__(self) -> None:
        _check_range("timeout_seconds", self.timeout_seconds, 1, 120)

    def require_api_key(self) -> str:
        if not self.api_key or not self.api_key.strip():
            raise ValidationError("FRED API key must be configured")
        return self.api_key


@dataclass(slots=True)
class RetrySettings:
    """Retry policy for the scheduled batch import."""

    max_attempts: int = 3
    delay_minutes: int = 5

    def __post_init__(self) -> None:
        _check_range("max_attempts", self.max_attempts, 1, 10)
        _check_range("delay_minutes", self.delay_minutes, 1, 60)

    @property
    def delay_seconds(self) -> int:
        return self.delay_minutes * 60


@dataclass(slots=True)
class ImportSettings:
    """Top-level settings consumed by :class:`fx_daily.FxDaily`."""

    db_url: str | None = None
    import_on_startup: bool = True
    fred: FredSettings = field(default_factory=FredSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ImportSettings":
        """Build settings from ``FX_DAILY_*`` environment variables."""

        env = os.environ if environ is None else environ
        fred = FredSettings(
            api_key=env.get(ENV_PREFIX + "FRED_API_KEY") or None,
            base_url=env.get(ENV_PREFIX + "FRED_BASE_URL") or DEFAULT_FRED_BASE_URL,
            timeout_seconds=_parse_int(env, "FRED_TIMEOUT_SECONDS", 30),
        )
        retry = RetrySettings(
            max_attempts=_parse_int(env, "IMPORT_MAX_ATTEMPTS", 3),
            delay_minutes=_parse_int(env, "IMPORT_RETRY_DELAY_MINUTES", 5),
        )
        return cls(
            db_url=env.get(ENV_PREFIX + "DB_URL") or None,
            import_on_startup=_parse_bool(env, "IMPORT_ON_STARTUP", True),
            fred=fred,
            retry=retry,
        )


__all__ = ["FredSettings", "RetrySettings", "ImportSettings", "DEFAULT_FRED_BASE_URL"]
