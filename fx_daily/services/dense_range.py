"""Rebuild one rate per calendar day from sparse stored observations."""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from fx_daily.db.models import ExchangeRate
from fx_daily.db.repository import ExchangeRateRepository
from fx_daily.exceptions import NotFoundError
from fx_daily.ingestion.models import DenseRatePoint
from fx_daily.utils.currency import BASE_CURRENCY, normalise_currency_code
from fx_daily.utils.date_range import iter_days, validate_window
from fx_daily.utils.logger import get_logger

LOGGER = get_logger(__name__)


def build_dense_range(
    session: Session,
    currency: str,
    start: date | None = None,
    end: date | None = None,
    *,
    base_currency: str = BASE_CURRENCY,
) -> list[DenseRatePoint]:
    """Return one :class:`DenseRatePoint` per day of ``[start, end]``.

    Days without their own observation reuse the most recent earlier rate
    (forward fill); ``published_date`` records where that rate came from.
    When the window opens before the first known observation the leading
    days are emitted with ``rate`` and ``published_date`` set to ``None``.

    A missing ``start``/``end`` defaults to the first/last stored date inside
    the window. Raises :class:`NotFoundError` only when the currency has no
    stored observations at all; a window that simply misses the data yields
    an empty list.
    """

    code = normalise_currency_code(currency)
    validate_window(start, end)

    repository = ExchangeRateRepository(session)
    if repository.earliest_date(base_currency, code) is None:
        raise NotFoundError(f"No exchange rates found for currency: {code}")

    rows = repository.find_range(base_currency, code, start, end)
    if not rows:
        LOGGER.debug("No stored rates for %s between %s and %s", code, start, end)
        return []

    effective_start = start or rows[0].date
    effective_end = end or rows[-1].date

    carry: ExchangeRate | None = None
    if rows[0].date > effective_start:
        carry = repository.find_latest_before(base_currency, code, effective_start)

    by_date = {row.date: row for row in rows}
    points: list[DenseRatePoint] = []
    for day in iter_days(effective_start, effective_end):
        carry = by_date.get(day, carry)
        points.append(
            DenseRatePoint(
                date=day,
                rate=carry.rate if carry is not None else None,
                published_date=carry.date if carry is not None else None,
                base_currency=base_currency,
                target_currency=code,
            )
        )
    LOGGER.debug(
        "Built %s dense points for %s from %s stored rows (%s to %s)",
        len(points),
        code,
        len(rows),
        effective_start,
        effective_end,
    )
    return points


__all__ = ["build_dense_range"]
