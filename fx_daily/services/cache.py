"""Read-through cache in front of the dense range builder."""

from __future__ import annotations

import threading
from datetime import date
from typing import Callable, Dict, Optional, Sequence, Tuple

from fx_daily.db.database import Database
from fx_daily.ingestion.models import DenseRatePoint
from fx_daily.services.dense_range import build_dense_range
from fx_daily.utils.currency import BASE_CURRENCY, normalise_currency_code
from fx_daily.utils.date_range import validate_window
from fx_daily.utils.logger import get_logger

LOGGER = get_logger(__name__)

CacheKey = Tuple[str, Optional[date], Optional[date]]


class RateCache:
    """Thread-safe in-memory store keyed by ``(currency, start, end)``.

    ``clear()`` swaps in an empty mapping and bumps a generation counter under
    the lock, so readers never observe a partially cleared cache. A value
    computed before a clear is refused by :meth:`put` when its generation no
    longer matches, which keeps a slow reader from re-populating stale data
    after an import commits.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: Dict[CacheKey, Tuple[DenseRatePoint, ...]] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: CacheKey) -> list[DenseRatePoint] | None:
        with self._lock:
            value = self._entries.get(key)
        return list(value) if value is not None else None

    def put(
        self,
        key: CacheKey,
        value: Sequence[DenseRatePoint],
        *,
        generation: int | None = None,
    ) -> bool:
        """Store ``value``; returns False when ``generation`` is stale."""

        with self._lock:
            if generation is not None and generation != self._generation:
                LOGGER.debug("Discarding stale cache entry for %s", key)
                return False
            self._entries[key] = tuple(value)
            return True

    def clear(self) -> None:
        with self._lock:
            evicted = len(self._entries)
            self._entries = {}
            self._generation += 1
        LOGGER.info("Exchange rate cache cleared (%s entries evicted)", evicted)

    def snapshot(self) -> dict[CacheKey, tuple[DenseRatePoint, ...]]:
        with self._lock:
            return dict(self._entries)

    def get_or_load(
        self, key: CacheKey, loader: Callable[[], Sequence[DenseRatePoint]]
    ) -> list[DenseRatePoint]:
        cached = self.get(key)
        if cached is not None:
            return cached
        generation = self._generation
        value = list(loader())
        self.put(key, value, generation=generation)
        return value


class ExchangeRateService:
    """Query side: dense ranges served through :class:`RateCache`."""

    def __init__(
        self,
        database: Database,
        cache: RateCache | None = None,
        *,
        base_currency: str = BASE_CURRENCY,
    ) -> None:
        self.database = database
        self.cache = cache if cache is not None else RateCache()
        self.base_currency = base_currency

    def get_exchange_rates(
        self,
        currency: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[DenseRatePoint]:
        code = normalise_currency_code(currency)
        validate_window(start, end)
        if self.database.in_transaction():
            # Uncommitted writes may be visible here; never cache them.
            return self._load(code, start, end)
        return self.cache.get_or_load((code, start, end), lambda: self._load(code, start, end))

    def _load(self, code: str, start: date | None, end: date | None) -> list[DenseRatePoint]:
        with self.database.read_session() as session:
            return build_dense_range(
                session, code, start, end, base_currency=self.base_currency
            )


__all__ = ["CacheKey", "ExchangeRateService", "RateCache"]
