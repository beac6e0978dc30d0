"""Data models shared across ingestion and query modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict

ObservationMap = Dict[date, Decimal]


@dataclass(slots=True)
class ImportResult:
    """Outcome of reconciling one currency series against its provider."""

    currency_code: str
    provider_series_id: str
    new_records: int = 0
    updated_records: int = 0
    skipped_records: int = 0
    earliest_date: date | None = None
    latest_date: date | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total(self) -> int:
        """Return the number of observations examined."""

        return self.new_records + self.updated_records + self.skipped_records

    def as_dict(self) -> dict[str, object]:
        return {
            "currency_code": self.currency_code,
            "provider_series_id": self.provider_series_id,
            "new_records": self.new_records,
            "updated_records": self.updated_records,
            "skipped_records": self.skipped_records,
            "earliest_date": self.earliest_date.isoformat() if self.earliest_date else None,
            "latest_date": self.latest_date.isoformat() if self.latest_date else None,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class DenseRatePoint:
    """One calendar day of a dense range.

    ``published_date`` is the day the rate was actually observed; it trails
    ``date`` on forward-filled days and is ``None`` (with ``rate``) for
    leading days that have no earlier observation to carry.
    """

    date: date
    rate: Decimal | None
    published_date: date | None
    base_currency: str
    target_currency: str

    @property
    def is_filled(self) -> bool:
        """True when the rate was carried forward from an earlier day."""

        return self.published_date is not None and self.published_date != self.date


__all__ = ["ObservationMap", "ImportResult", "DenseRatePoint"]
