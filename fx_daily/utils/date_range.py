"""Utility helpers for walking calendar days and validating date windows."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterator

from fx_daily.exceptions import ValidationError

ONE_DAY = timedelta(days=1)


def parse_date(value: str | date) -> date:
    """Parse a date string in ISO format to :class:`date`."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD") from exc


def validate_window(start: date | None, end: date | None) -> None:
    """Reject windows whose start falls after their end."""

    if start is not None and end is not None and start > end:
        raise ValidationError("Start date must be before or equal to end date")


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from ``start`` to ``end`` inclusive."""

    current = start
    while current <= end:
        yield current
        current = current + ONE_DAY


__all__ = ["ONE_DAY", "iter_days", "parse_date", "validate_window"]
