"""Database seeding utilities for :mod:`fx_daily`."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

__all__ = ["seed_fred_rates"]

if TYPE_CHECKING:  # pragma: no cover - import only for static analyzers
    from fx_daily.seeds.populate_fred_rates import seed_fred_rates as seed_fred_rates


def __getattr__(name: str) -> Any:
    """Lazily expose seed helpers to avoid import-time side effects."""

    if name == "seed_fred_rates":
        from fx_daily.seeds.populate_fred_rates import seed_fred_rates as _seed

        return _seed
    raise AttributeError(f"module 'fx_daily.seeds' has no attribute {name}")
