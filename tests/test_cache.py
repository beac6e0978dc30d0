from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal

import pytest

from fx_daily.exceptions import NotFoundError, ValidationError
from fx_daily.ingestion.models import DenseRatePoint
from fx_daily.services import cache as cache_module
from fx_daily.services.cache import ExchangeRateService, RateCache
from fx_daily.services.importer import ExchangeRateImporter


def _point(day: int) -> DenseRatePoint:
    return DenseRatePoint(
        date=date(2024, 1, day),
        rate=Decimal("0.85"),
        published_date=date(2024, 1, day),
        base_currency="USD",
        target_currency="EUR",
    )


def test_put_and_get_return_copies() -> None:
    cache = RateCache()
    cache.put(("EUR", None, None), [_point(1)])

    first = cache.get(("EUR", None, None))
    assert first == [_point(1)]
    first.append(_point(2))
    assert cache.get(("EUR", None, None)) == [_point(1)]
    assert cache.get(("GBP", None, None)) is None


def test_clear_drops_everything_and_bumps_generation() -> None:
    cache = RateCache()
    cache.put(("EUR", None, None), [_point(1)])
    cache.put(("GBP", None, None), [])

    cache.clear()

    assert len(cache) == 0
    assert cache.generation == 1
    assert cache.snapshot() == {}


def test_stale_load_is_not_stored_after_clear() -> None:
    cache = RateCache()

    def _loader():
        # An import commits while this load is still running.
        cache.clear()
        return [_point(1)]

    result = cache.get_or_load(("EUR", None, None), _loader)

    assert result == [_point(1)]
    assert ("EUR", None, None) not in cache


def test_concurrent_readers_share_one_cache() -> None:
    cache = RateCache()
    errors: list[BaseException] = []

    def _reader() -> None:
        try:
            for _ in range(200):
                cache.get_or_load(("EUR", None, None), lambda: [_point(1)])
                cache.get(("EUR", None, None))
        except BaseException as exc:  # pragma: no cover - surfaced via assertion
            errors.append(exc)

    threads = [threading.Thread(target=_reader) for _ in range(8)]
    for thread in threads:
        thread.start()
    for _ in range(20):
        cache.clear()
    for thread in threads:
        thread.join()

    assert errors == []


def test_service_reads_through_cache(database, make_series, store_rates, monkeypatch) -> None:
    series = make_series()
    store_rates(series, {date(2024, 1, 1): "0.85"})
    calls: list[tuple] = []
    real_build = cache_module.build_dense_range

    def _counting_build(session, currency, start, end, **kwargs):
        calls.append((currency, start, end))
        return real_build(session, currency, start, end, **kwargs)

    monkeypatch.setattr(cache_module, "build_dense_range", _counting_build)
    service = ExchangeRateService(database)

    first = service.get_exchange_rates("eur", date(2024, 1, 1), date(2024, 1, 3))
    second = service.get_exchange_rates("EUR", date(2024, 1, 1), date(2024, 1, 3))
    service.get_exchange_rates("EUR", date(2024, 1, 1), date(2024, 1, 2))

    assert first == second
    assert len(first) == 3
    assert calls == [
        ("EUR", date(2024, 1, 1), date(2024, 1, 3)),
        ("EUR", date(2024, 1, 1), date(2024, 1, 2)),
    ]
    assert ("EUR", date(2024, 1, 1), date(2024, 1, 3)) in service.cache


def test_service_does_not_cache_inside_transaction(database, make_series, store_rates) -> None:
    series = make_series()
    store_rates(series, {date(2024, 1, 1): "0.85"})
    service = ExchangeRateService(database)

    with database.transaction():
        points = service.get_exchange_rates("EUR")

    assert len(points) == 1
    assert len(service.cache) == 0


def test_service_validates_and_does_not_cache_errors(database) -> None:
    service = ExchangeRateService(database)

    with pytest.raises(ValidationError):
        service.get_exchange_rates("EUR", date(2024, 1, 5), date(2024, 1, 1))
    with pytest.raises(NotFoundError):
        service.get_exchange_rates("EUR")

    assert len(service.cache) == 0


def test_import_commit_makes_new_rates_visible(
    database, provider, make_series, store_rates
) -> None:
    series = make_series()
    store_rates(series, {date(2024, 1, 1): "0.85"})
    cache = RateCache()
    service = ExchangeRateService(database, cache)
    importer = ExchangeRateImporter(database, provider, on_commit=[cache.clear])

    before = service.get_exchange_rates("EUR", date(2024, 1, 1), date(2024, 1, 2))
    provider.observations["DEXUSEU"] = {date(2024, 1, 2): Decimal("0.86")}
    importer.import_series(series)
    after = service.get_exchange_rates("EUR", date(2024, 1, 1), date(2024, 1, 2))

    assert before[1].published_date == date(2024, 1, 1)
    assert after[1].published_date == date(2024, 1, 2)
    assert after[1].rate == Decimal("0.86")
