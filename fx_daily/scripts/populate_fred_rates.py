"""CLI entry point for importing FRED exchange rates."""

from __future__ import annotations

from fx_daily.seeds.populate_fred_rates import main

if __name__ == "__main__":  # pragma: no cover - thin wrapper
    main()
