from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, List, Tuple

import pytest

from fx_daily.db.database import Database, sqlite_url
from fx_daily.db.models import CurrencySeries, ExchangeRate
from fx_daily.ingestion.models import ObservationMap


class FakeProvider:
    """In-memory provider keyed by provider series id."""

    def __init__(self, *, honour_start: bool = True) -> None:
        self.observations: Dict[str, ObservationMap] = {}
        self.failures: Dict[str, Exception] = {}
        self.known: set[str] | None = None
        self.honour_start = honour_start
        self.calls: List[Tuple[str, date | None]] = []

    def fetch_observations(
        self, provider_series_id: str, start_date: date | None = None
    ) -> ObservationMap:
        self.calls.append((provider_series_id, start_date))
        if provider_series_id in self.failures:
            raise self.failures[provider_series_id]
        data = self.observations.get(provider_series_id, {})
        if self.honour_start and start_date is not None:
            return {day: rate for day, rate in data.items() if day >= start_date}
        return dict(data)

    def series_exists(self, provider_series_id: str) -> bool:
        return self.known is None or provider_series_id in self.known


@pytest.fixture
def database(tmp_path: Path):
    db = Database(sqlite_url(tmp_path / "fx_daily_test.db"))
    yield db
    db.close()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def make_series(database: Database) -> Callable[..., CurrencySeries]:
    """Insert a series row directly, without recording an outbox fact."""

    def _make(
        currency_code: str = "EUR", provider_series_id: str = "DEXUSEU", *, enabled: bool = True
    ) -> CurrencySeries:
        with database.transaction() as session:
            series = CurrencySeries(
                currency_code=currency_code,
                provider_series_id=provider_series_id,
                enabled=enabled,
            )
            session.add(series)
            session.flush()
        return series

    return _make


@pytest.fixture
def store_rates(database: Database) -> Callable[[CurrencySeries, Dict[date, str]], None]:
    def _store(series: CurrencySeries, rates: Dict[date, str]) -> None:
        with database.transaction() as session:
            for day, value in rates.items():
                session.add(
                    ExchangeRate(
                        currency_series_id=series.id,
                        base_currency="USD",
                        target_currency=series.currency_code,
                        date=day,
                        rate=Decimal(value),
                    )
                )

    return _store
