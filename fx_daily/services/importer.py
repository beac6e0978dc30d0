"""Reconcile provider observations into the exchange_rate table.

Every public entry point runs inside one database transaction and asks the
database to clear the rate cache only after that transaction commits.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fx_daily.db.database import Database
from fx_daily.db.models import RATE_SCALE, CurrencySeries, ExchangeRate
from fx_daily.db.repository import CurrencySeriesRepository, ExchangeRateRepository
from fx_daily.exceptions import (
    FxDailyError,
    ImportFailedError,
    NotFoundError,
    PersistenceConflict,
)
from fx_daily.ingestion.models import ImportResult, ObservationMap
from fx_daily.ingestion.strategy import ExchangeRateProvider
from fx_daily.utils.currency import BASE_CURRENCY
from fx_daily.utils.date_range import ONE_DAY
from fx_daily.utils.logger import get_logger

LOGGER = get_logger(__name__)

_QUANTUM = Decimal(1).scaleb(-RATE_SCALE)


def normalise_rate(value: Decimal | float | str | None) -> Decimal | None:
    """Quantise ``value`` to the stored scale so equal numbers compare equal."""

    if value is None:
        return None
    return Decimal(str(value)).quantize(_QUANTUM, rounding=ROUND_HALF_UP)


class ExchangeRateImporter:
    """Import Reconciler: classifies observations as new, updated or skipped."""

    def __init__(
        self,
        database: Database,
        provider: ExchangeRateProvider,
        *,
        base_currency: str = BASE_CURRENCY,
        on_commit: Iterable[Callable[[], None]] = (),
    ) -> None:
        self.database = database
        self.provider = provider
        self.base_currency = base_currency
        self._commit_hooks: list[Callable[[], None]] = list(on_commit)

    def add_commit_hook(self, hook: Callable[[], None]) -> None:
        """Register ``hook`` (typically ``cache.clear``) to run after each import commit."""

        self._commit_hooks.append(hook)

    def import_series(self, series: CurrencySeries) -> ImportResult:
        """Reconcile one series atomically."""

        with self.database.transaction() as session:
            result = self._import_one(session, series)
            self._schedule_commit_hooks()
        return result

    def import_series_by_id(self, series_id: int) -> ImportResult:
        """Reconcile the series with primary key ``series_id``."""

        with self.database.transaction() as session:
            series = CurrencySeriesRepository(session).get(series_id)
            if series is None:
                raise NotFoundError(f"Currency series not found with id: {series_id}")
            result = self._import_one(session, series)
            self._schedule_commit_hooks()
        return result

    def import_all(self, series_list: Sequence[CurrencySeries] | None = None) -> list[ImportResult]:
        """Reconcile every given series (default: all enabled) in one transaction.

        A failure for any series rolls back the whole batch.
        """

        with self.database.transaction() as session:
            if series_list is None:
                series_list = CurrencySeriesRepository(session).find_enabled()
                LOGGER.info("Found %s enabled currency series for import", len(series_list))
            results = self._import_many(session, series_list)
            self._schedule_commit_hooks()
        return results

    def import_missing(self) -> list[ImportResult]:
        """Reconcile only enabled series that have no stored rates yet."""

        LOGGER.info("Checking if all enabled currency series have exchange rate data...")
        with self.database.transaction() as session:
            rates = ExchangeRateRepository(session)
            missing: list[CurrencySeries] = []
            for series in CurrencySeriesRepository(session).find_enabled():
                if rates.count_for_series(series.id) == 0:
                    LOGGER.info(
                        "Currency series %s is missing exchange rate data - importing",
                        series.currency_code,
                    )
                    missing.append(series)
                else:
                    LOGGER.info(
                        "Currency series %s already has exchange rate data - skipping",
                        series.currency_code,
                    )
            results = self._import_many(session, missing)
            self._schedule_commit_hooks()
        return results

    def _schedule_commit_hooks(self) -> None:
        for hook in self._commit_hooks:
            self.database.after_commit(hook)

    def _import_many(
        self, session: Session, series_list: Sequence[CurrencySeries]
    ) -> list[ImportResult]:
        if not series_list:
            LOGGER.warning("No currency series to import - skipping")
            return []
        results = [self._import_one(session, series) for series in series_list]
        LOGGER.info(
            "Import complete: %s currencies processed, %s new, %s updated, %s skipped",
            len(results),
            sum(result.new_records for result in results),
            sum(result.updated_records for result in results),
            sum(result.skipped_records for result in results),
        )
        return results

    def _import_one(self, session: Session, series: CurrencySeries) -> ImportResult:
        currency = series.currency_code
        try:
            rates = ExchangeRateRepository(session)
            latest = rates.find_latest(self.base_currency, currency)
            start_date = self._determine_start_date(currency, latest)
            LOGGER.info(
                "Importing exchange rates for %s (series: %s) startDate: %s",
                currency,
                series.provider_series_id,
                start_date,
            )
            observations = self.provider.fetch_observations(series.provider_series_id, start_date)
            if not observations:
                LOGGER.warning("No exchange rates provided for %s", currency)
                return ImportResult(currency, series.provider_series_id)
            return self._save(session, series, observations, initial=latest is None)
        except FxDailyError:
            raise
        except Exception as exc:
            raise ImportFailedError(currency, exc) from exc

    def _determine_start_date(self, currency: str, latest: ExchangeRate | None) -> date | None:
        if latest is None:
            LOGGER.info(
                "No existing exchange rates found for currency code: %s - importing full history",
                currency,
            )
            return None
        next_date = latest.date + ONE_DAY
        LOGGER.info("Last exchange rate date: %s, starting import from: %s", latest.date, next_date)
        return next_date

    def _save(
        self,
        session: Session,
        series: CurrencySeries,
        observations: ObservationMap,
        *,
        initial: bool,
    ) -> ImportResult:
        result = ImportResult(series.currency_code, series.provider_series_id)
        if initial:
            # The pair has no rows yet, so per-row existence checks are skipped.
            rows = [self._build_rate(series, day, value) for day, value in sorted(observations.items())]
            try:
                self._insert(session, rows)
            except PersistenceConflict:
                LOGGER.warning(
                    "Concurrent insert detected during initial import of %s; reconciling row by row",
                    series.currency_code,
                )
                self._reconcile(session, series, observations, result)
            else:
                result.new_records = len(rows)
        else:
            self._reconcile(session, series, observations, result)

        result.earliest_date = min(observations)
        result.latest_date = max(observations)
        LOGGER.info(
            "Save complete: %s new, %s updated, %s skipped, earliest date: %s, latest date: %s",
            result.new_records,
            result.updated_records,
            result.skipped_records,
            result.earliest_date,
            result.latest_date,
        )
        return result

    def _reconcile(
        self,
        session: Session,
        series: CurrencySeries,
        observations: ObservationMap,
        result: ImportResult,
    ) -> None:
        rates = ExchangeRateRepository(session)
        for day, value in sorted(observations.items()):
            incoming = normalise_rate(value)
            existing = rates.find_by_date(self.base_currency, series.currency_code, day)
            if existing is None:
                try:
                    self._insert(session, [self._build_rate(series, day, incoming)])
                except PersistenceConflict as exc:
                    LOGGER.warning("%s; skipping", exc)
                    result.skipped_records += 1
                else:
                    result.new_records += 1
            elif normalise_rate(existing.rate) != incoming:
                LOGGER.warning(
                    "Warning, rate changed. Updating rate for %s date: %s old rate: %s new rate: %s",
                    series.currency_code,
                    day,
                    existing.rate,
                    incoming,
                )
                existing.rate = incoming
                result.updated_records += 1
            else:
                result.skipped_records += 1

    @staticmethod
    def _insert(session: Session, rows: list[ExchangeRate]) -> None:
        """Insert ``rows`` inside a savepoint; a duplicate key rolls back only the savepoint."""

        try:
            with session.begin_nested():
                ExchangeRateRepository(session).add_all(rows)
        except IntegrityError as exc:
            first = rows[0]
            raise PersistenceConflict(
                f"Exchange rate for {first.target_currency} on {first.date} already inserted concurrently"
            ) from exc

    def _build_rate(
        self, series: CurrencySeries, day: date, value: Decimal | None
    ) -> ExchangeRate:
        # Series foreign key and denormalised currency code are always set together.
        return ExchangeRate(
            currency_series_id=series.id,
            base_currency=self.base_currency,
            target_currency=series.currency_code,
            date=day,
            rate=normalise_rate(value),
        )


__all__ = ["ExchangeRateImporter", "normalise_rate"]
