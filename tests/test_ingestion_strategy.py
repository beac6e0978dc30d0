from __future__ import annotations

from datetime import date
from decimal import Decimal

from fx_daily.ingestion.models import ImportResult, ObservationMap
from fx_daily.ingestion.strategy import ExchangeRateProvider


class _DummyProvider:
    def fetch_observations(
        self, provider_series_id: str, start_date: date | None = None
    ) -> ObservationMap:
        return {start_date or date(2024, 1, 1): Decimal("1.5")}

    def series_exists(self, provider_series_id: str) -> bool:
        return provider_series_id.startswith("DEX")


def test_exchange_rate_provider_contract() -> None:
    provider: ExchangeRateProvider = _DummyProvider()

    assert provider.fetch_observations("DEXUSEU") == {date(2024, 1, 1): Decimal("1.5")}
    assert provider.series_exists("DEXUSEU")
    assert not provider.series_exists("GDP")


def test_import_result_totals_and_serialises() -> None:
    result = ImportResult(
        "EUR",
        "DEXUSEU",
        new_records=2,
        updated_records=1,
        skipped_records=3,
        earliest_date=date(2024, 1, 1),
        latest_date=date(2024, 1, 5),
    )

    payload = result.as_dict()

    assert result.total == 6
    assert payload["earliest_date"] == "2024-01-01"
    assert payload["latest_date"] == "2024-01-05"
    assert payload["new_records"] == 2
