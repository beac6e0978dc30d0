"""Currency series registry with transactional outbox recording.

Creating or updating a series writes the series row and an
``event_publication`` fact inside the same transaction, so both persist or
neither does. Listeners (normally :meth:`OutboxWorker.notify`) are called only
after that transaction commits.
"""

from __future__ import annotations

import uuid
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fx_daily.db.database import Database
from fx_daily.db.models import CurrencySeries, EventPublication, utcnow
from fx_daily.db.repository import (
    CurrencySeriesRepository,
    EventPublicationRepository,
    ExchangeRateRepository,
)
from fx_daily.exceptions import NotFoundError, ValidationError
from fx_daily.ingestion.strategy import ExchangeRateProvider
from fx_daily.services.events import (
    CURRENCY_CREATED,
    CURRENCY_UPDATED,
    IMPORT_LISTENER_ID,
    SeriesEvent,
)
from fx_daily.utils.currency import normalise_currency_code
from fx_daily.utils.logger import current_correlation_id, get_logger

LOGGER = get_logger(__name__)

EventListener = Callable[[], None]


class SeriesRegistry:
    def __init__(
        self,
        database: Database,
        provider: ExchangeRateProvider | None = None,
    ) -> None:
        self.database = database
        self.provider = provider
        self._listeners: list[EventListener] = []

    def add_listener(self, listener: EventListener) -> None:
        """Call ``listener`` after every committed create/update."""

        self._listeners.append(listener)

    def create(
        self, currency_code: str, provider_series_id: str, *, enabled: bool = True
    ) -> CurrencySeries:
        """Register a new series and record a ``currency.created`` fact.

        When a provider is configured the series id is checked against it
        first; a :class:`~fx_daily.exceptions.ProviderError` from that check
        propagates unchanged.
        """

        code = normalise_currency_code(currency_code)
        series_id = (provider_series_id or "").strip()
        if not series_id:
            raise ValidationError("Provider series ID must not be blank")
        if self.provider is not None and not self.provider.series_exists(series_id):
            raise ValidationError(
                f"Provider series ID '{series_id}' does not exist in the external provider"
            )

        with self.database.transaction() as session:
            repository = CurrencySeriesRepository(session)
            if repository.find_by_currency(code) is not None:
                raise ValidationError(f"Currency code '{code}' already exists")
            series = CurrencySeries(
                currency_code=code, provider_series_id=series_id, enabled=enabled
            )
            try:
                with session.begin_nested():
                    repository.add(series)
            except IntegrityError as exc:
                raise ValidationError(
                    f"Currency code '{code}' or provider series ID '{series_id}' already exists"
                ) from exc
            self._record(session, CURRENCY_CREATED, series)
        LOGGER.info(
            "Created currency series %s (series: %s, enabled: %s)",
            series.currency_code,
            series.provider_series_id,
            series.enabled,
        )
        return series

    def update(self, series_id: int, *, enabled: bool) -> CurrencySeries:
        """Toggle ``enabled``; code and provider id are immutable after creation."""

        with self.database.transaction() as session:
            series = self._require(session, series_id)
            series.enabled = enabled
            session.flush()
            self._record(session, CURRENCY_UPDATED, series)
        LOGGER.info("Updated currency series %s (enabled: %s)", series.currency_code, enabled)
        return series

    def delete(self, series_id: int) -> None:
        with self.database.transaction() as session:
            series = self._require(session, series_id)
            if ExchangeRateRepository(session).count_for_series(series.id):
                raise ValidationError(
                    f"Currency series {series.currency_code} still has exchange rates and cannot be deleted"
                )
            CurrencySeriesRepository(session).delete(series)
        LOGGER.info("Deleted currency series %s", series.currency_code)

    def get(self, series_id: int) -> CurrencySeries:
        with self.database.read_session() as session:
            return self._require(session, series_id)

    def get_all(self, enabled_only: bool = False) -> list[CurrencySeries]:
        with self.database.read_session() as session:
            repository = CurrencySeriesRepository(session)
            return repository.find_enabled() if enabled_only else repository.find_all()

    def find_enabled_series(self) -> list[CurrencySeries]:
        return self.get_all(enabled_only=True)

    def find_by_currency(self, currency_code: str) -> CurrencySeries | None:
        code = normalise_currency_code(currency_code)
        with self.database.read_session() as session:
            return CurrencySeriesRepository(session).find_by_currency(code)

    @staticmethod
    def _require(session: Session, series_id: int) -> CurrencySeries:
        series = CurrencySeriesRepository(session).get(series_id)
        if series is None:
            raise NotFoundError(f"Currency series not found with id: {series_id}")
        return series

    def _record(self, session: Session, event_type: str, series: CurrencySeries) -> None:
        event = SeriesEvent(
            event_type=event_type,
            currency_series_id=series.id,
            currency_code=series.currency_code,
            enabled=bool(series.enabled),
            correlation_id=current_correlation_id() or uuid.uuid4().hex,
        )
        EventPublicationRepository(session).add(
            EventPublication(
                id=str(uuid.uuid4()),
                listener_id=IMPORT_LISTENER_ID,
                event_type=event_type,
                serialized_event=event.to_json(),
                publication_date=utcnow(),
            )
        )
        LOGGER.debug("Recorded %s fact for %s", event_type, series.currency_code)
        for listener in self._listeners:
            self.database.after_commit(listener)


__all__ = ["SeriesRegistry", "EventListener"]
