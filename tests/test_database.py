from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from fx_daily.db import DEFAULT_SQLITE_DB_PATH, default_sqlite_path
from fx_daily.db.database import Database, sqlite_url
from fx_daily.db.models import CurrencySeries, ExchangeRate
from fx_daily.db.repository import CurrencySeriesRepository, ExchangeRateRepository


def test_default_sqlite_path_is_absolute() -> None:
    assert default_sqlite_path() == DEFAULT_SQLITE_DB_PATH
    assert DEFAULT_SQLITE_DB_PATH.is_absolute()


def test_sqlite_url_resolves_path(tmp_path) -> None:
    assert sqlite_url(tmp_path / "x.db") == f"sqlite:///{(tmp_path / 'x.db').resolve()}"


def test_nested_transactions_share_one_session(database) -> None:
    with database.transaction() as outer:
        assert database.in_transaction()
        with database.transaction() as inner:
            assert inner is outer
    assert not database.in_transaction()


def test_after_commit_hooks_run_once_after_outer_commit(database) -> None:
    calls: list[str] = []

    with database.transaction():
        with database.transaction():
            database.after_commit(lambda: calls.append("inner"))
        assert calls == []
        database.after_commit(lambda: calls.append("outer"))
        assert calls == []

    assert calls == ["inner", "outer"]


def test_after_commit_hooks_are_dropped_on_rollback(database) -> None:
    calls: list[str] = []

    with pytest.raises(RuntimeError):
        with database.transaction():
            database.after_commit(lambda: calls.append("hook"))
            raise RuntimeError("boom")

    assert calls == []
    assert not database.in_transaction()


def test_failing_after_commit_hook_does_not_skip_later_hooks(database, caplog) -> None:
    calls: list[str] = []

    def _broken() -> None:
        raise RuntimeError("hook exploded")

    with caplog.at_level("ERROR", logger="fx_daily.db.database"):
        with database.transaction() as session:
            session.add(CurrencySeries(currency_code="EUR", provider_series_id="DEXUSEU"))
            database.after_commit(_broken)
            database.after_commit(lambda: calls.append("later"))

    assert calls == ["later"]
    assert "After-commit hook" in caplog.text
    with database.read_session() as session:
        assert CurrencySeriesRepository(session).find_by_currency("EUR") is not None


def test_after_commit_runs_immediately_without_transaction(database) -> None:
    calls: list[str] = []

    database.after_commit(lambda: calls.append("now"))

    assert calls == ["now"]


def test_rollback_discards_writes(database) -> None:
    with pytest.raises(RuntimeError):
        with database.transaction() as session:
            session.add(CurrencySeries(currency_code="EUR", provider_series_id="DEXUSEU"))
            session.flush()
            raise RuntimeError("boom")

    with database.read_session() as session:
        assert CurrencySeriesRepository(session).find_all() == []


def test_unique_constraint_on_currency_and_date(database, make_series, store_rates) -> None:
    series = make_series()
    store_rates(series, {date(2024, 1, 1): "0.85"})

    with pytest.raises(IntegrityError):
        store_rates(series, {date(2024, 1, 1): "0.86"})


def test_series_with_rates_cannot_be_deleted(database, make_series, store_rates) -> None:
    series = make_series()
    store_rates(series, {date(2024, 1, 1): "0.85"})

    with pytest.raises(IntegrityError):
        with database.transaction() as session:
            session.delete(session.get(CurrencySeries, series.id))

    with database.read_session() as session:
        assert CurrencySeriesRepository(session).get(series.id) is not None


def test_rate_round_trips_with_six_decimal_places(database, make_series) -> None:
    series = make_series()
    with database.transaction() as session:
        ExchangeRateRepository(session).add(
            ExchangeRate(
                currency_series_id=series.id,
                base_currency="USD",
                target_currency="EUR",
                date=date(2024, 1, 1),
                rate=Decimal("1.234567"),
            )
        )

    with database.read_session() as session:
        stored = ExchangeRateRepository(session).find_latest("USD", "EUR")

    assert stored is not None
    assert stored.rate == Decimal("1.234567")


def test_repository_range_queries(database, make_series, store_rates) -> None:
    series = make_series()
    store_rates(
        series,
        {date(2024, 1, 1): "0.85", date(2024, 1, 3): "0.86", date(2024, 1, 6): "0.87"},
    )

    with database.read_session() as session:
        repository = ExchangeRateRepository(session)
        in_range = repository.find_range("USD", "EUR", date(2024, 1, 2), date(2024, 1, 6))
        before = repository.find_latest_before("USD", "EUR", date(2024, 1, 3))
        earliest = repository.earliest_date("USD", "EUR")
        per_series = repository.count_for_series(series.id)

    assert [row.date for row in in_range] == [date(2024, 1, 3), date(2024, 1, 6)]
    assert before is not None and before.date == date(2024, 1, 1)
    assert earliest == date(2024, 1, 1)
    assert per_series == 3


def test_database_without_schema_creation(tmp_path) -> None:
    db = Database(sqlite_url(tmp_path / "bare.db"), create_schema=False)
    try:
        db.ensure_schema()
        with db.read_session() as session:
            assert CurrencySeriesRepository(session).find_all() == []
    finally:
        db.close()
