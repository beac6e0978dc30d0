"""Abstractions for pluggable observation providers."""

from __future__ import annotations

from datetime import date
from typing import Protocol

from fx_daily.ingestion.models import ObservationMap


class ExchangeRateProvider(Protocol):
    """Contract for fetching daily observations of one provider series.

    Implementations must drop missing/sentinel values before returning and
    raise :class:`~fx_daily.exceptions.ProviderError` on upstream failure.
    ``start_date`` of ``None`` requests the full available history.
    """

    def fetch_observations(
        self, provider_series_id: str, start_date: date | None = None
    ) -> ObservationMap:
        ...  # pragma: no cover - protocol definition

    def series_exists(self, provider_series_id: str) -> bool:
        ...  # pragma: no cover - protocol definition


__all__ = ["ExchangeRateProvider"]
