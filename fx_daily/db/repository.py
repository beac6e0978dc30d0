"""Query helpers over the fx_daily tables.

Each repository wraps a live :class:`~sqlalchemy.orm.Session`; callers own the
transaction boundaries.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fx_daily.db.models import CurrencySeries, EventPublication, ExchangeRate


class ExchangeRateRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_latest(self, base_currency: str, target_currency: str) -> ExchangeRate | None:
        stmt = (
            select(ExchangeRate)
            .where(
                ExchangeRate.base_currency == base_currency,
                ExchangeRate.target_currency == target_currency,
            )
            .order_by(ExchangeRate.date.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def find_by_date(
        self, base_currency: str, target_currency: str, rate_date: date
    ) -> ExchangeRate | None:
        stmt = select(ExchangeRate).where(
            ExchangeRate.base_currency == base_currency,
            ExchangeRate.target_currency == target_currency,
            ExchangeRate.date == rate_date,
        )
        return self.session.scalars(stmt).first()

    def find_range(
        self,
        base_currency: str,
        target_currency: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[ExchangeRate]:
        """Return stored rates inside ``[start, end]`` ordered by date ascending."""

        stmt = select(ExchangeRate).where(
            ExchangeRate.base_currency == base_currency,
            ExchangeRate.target_currency == target_currency,
        )
        if start is not None:
            stmt = stmt.where(ExchangeRate.date >= start)
        if end is not None:
            stmt = stmt.where(ExchangeRate.date <= end)
        stmt = stmt.order_by(ExchangeRate.date)
        return list(self.session.scalars(stmt))

    def find_latest_before(
        self, base_currency: str, target_currency: str, before: date
    ) -> ExchangeRate | None:
        stmt = (
            select(ExchangeRate)
            .where(
                ExchangeRate.base_currency == base_currency,
                ExchangeRate.target_currency == target_currency,
                ExchangeRate.date < before,
            )
            .order_by(ExchangeRate.date.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def earliest_date(self, base_currency: str, target_currency: str) -> date | None:
        stmt = select(func.min(ExchangeRate.date)).where(
            ExchangeRate.base_currency == base_currency,
            ExchangeRate.target_currency == target_currency,
        )
        return self.session.scalar(stmt)

    def count(self) -> int:
        return int(self.session.scalar(select(func.count(ExchangeRate.id))) or 0)

    def count_for_series(self, currency_series_id: int) -> int:
        stmt = select(func.count(ExchangeRate.id)).where(
            ExchangeRate.currency_series_id == currency_series_id
        )
        return int(self.session.scalar(stmt) or 0)

    def add(self, rate: ExchangeRate) -> None:
        self.session.add(rate)

    def add_all(self, rates: Sequence[ExchangeRate]) -> None:
        self.session.add_all(rates)


class CurrencySeriesRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, series_id: int) -> CurrencySeries | None:
        return self.session.get(CurrencySeries, series_id)

    def find_by_currency(self, currency_code: str) -> CurrencySeries | None:
        stmt = select(CurrencySeries).where(CurrencySeries.currency_code == currency_code)
        return self.session.scalars(stmt).first()

    def find_enabled(self) -> list[CurrencySeries]:
        stmt = (
            select(CurrencySeries)
            .where(CurrencySeries.enabled.is_(True))
            .order_by(CurrencySeries.currency_code)
        )
        return list(self.session.scalars(stmt))

    def find_all(self) -> list[CurrencySeries]:
        stmt = select(CurrencySeries).order_by(CurrencySeries.currency_code)
        return list(self.session.scalars(stmt))

    def add(self, series: CurrencySeries) -> None:
        self.session.add(series)

    def delete(self, series: CurrencySeries) -> None:
        self.session.delete(series)


class EventPublicationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, publication: EventPublication) -> None:
        self.session.add(publication)

    def get(self, publication_id: str) -> EventPublication | None:
        return self.session.get(EventPublication, publication_id)

    def find_pending(self, limit: int | None = None) -> list[EventPublication]:
        stmt = (
            select(EventPublication)
            .where(EventPublication.completion_date.is_(None))
            .order_by(
                EventPublication.attempts,
                EventPublication.publication_date,
                EventPublication.id,
            )
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt))

    def find_all(self) -> list[EventPublication]:
        stmt = select(EventPublication).order_by(EventPublication.publication_date)
        return list(self.session.scalars(stmt))

    def mark_completed(self, publication: EventPublication, completed_at: datetime) -> None:
        publication.completion_date = completed_at
        publication.last_error = None

    def mark_abandoned(
        self, publication: EventPublication, completed_at: datetime, error: str
    ) -> None:
        """Close a fact that will never succeed, keeping its last error."""

        publication.completion_date = completed_at
        publication.last_error = error


__all__ = ["ExchangeRateRepository", "CurrencySeriesRepository", "EventPublicationRepository"]
