"""CLI + helpers for importing daily exchange rates from FRED."""

from __future__ import annotations

import argparse
from dataclasses import replace
from typing import Sequence

from fx_daily import FxDaily
from fx_daily.config import ImportSettings
from fx_daily.db.database import sqlite_url
from fx_daily.ingestion.models import ImportResult
from fx_daily.ingestion.strategy import ExchangeRateProvider
from fx_daily.utils.logger import get_logger

LOGGER = get_logger(__name__)

__all__ = ["seed_fred_rates", "parse_args", "main"]


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--db",
        dest="db",
        default=None,
        help="Database DSN or SQLite file path (defaults to FX_DAILY_DB_URL or the bundled SQLite file)",
    )
    parser.add_argument(
        "--api-key", dest="api_key", default=None, help="FRED API key (overrides FX_DAILY_FRED_API_KEY)"
    )
    parser.add_argument(
        "--currency",
        dest="currencies",
        action="append",
        default=None,
        help="Import only this currency code; repeat for several",
    )
    parser.add_argument(
        "--missing-only",
        dest="missing_only",
        action="store_true",
        help="Import only enabled series that have no stored rates yet",
    )
    parser.add_argument(
        "--drain-outbox",
        dest="drain_outbox",
        action="store_true",
        help="Process pending series events before importing",
    )
    return parser.parse_args(argv)


def _resolve_db_url(db: str | None) -> str | None:
    if db is None or "://" in db:
        return db
    return sqlite_url(db)


def _log_result(result: ImportResult) -> None:
    LOGGER.info(
        "%s (%s) imported: new %s, updated %s, skipped %s (%s to %s)",
        result.currency_code,
        result.provider_series_id,
        result.new_records,
        result.updated_records,
        result.skipped_records,
        result.earliest_date,
        result.latest_date,
    )


def seed_fred_rates(
    *,
    db: str | None = None,
    api_key: str | None = None,
    currencies: Sequence[str] | None = None,
    missing_only: bool = False,
    drain_outbox: bool = False,
    settings: ImportSettings | None = None,
    provider: ExchangeRateProvider | None = None,
) -> list[ImportResult]:
    """Import FRED observations into the configured database."""

    resolved = settings if settings is not None else ImportSettings.from_env()
    if api_key:
        resolved = replace(resolved, fred=replace(resolved.fred, api_key=api_key))
    results: list[ImportResult] = []
    with FxDaily(_resolve_db_url(db), settings=resolved, provider=provider) as fx:
        if drain_outbox:
            completed = fx.drain_outbox()
            LOGGER.info("Processed %s pending series event(s)", completed)
        if currencies:
            results = [fx.import_series(code) for code in currencies]
        elif missing_only:
            results = fx.import_missing()
        else:
            results = fx.import_all()
    for result in results:
        _log_result(result)
    LOGGER.info(
        "Import finished: %s series, %s new rows, %s updated rows",
        len(results),
        sum(result.new_records for result in results),
        sum(result.updated_records for result in results),
    )
    return results


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    seed_fred_rates(
        db=args.db,
        api_key=args.api_key,
        currencies=args.currencies,
        missing_only=args.missing_only,
        drain_outbox=args.drain_outbox,
    )


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
