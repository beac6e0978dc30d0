"""Public interface for the fx_daily package."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from importlib import metadata as importlib_metadata
from typing import Any, Callable, Dict, Iterable, List, Literal

from sqlalchemy import create_engine, text

from fx_daily.config import ImportSettings
from fx_daily.db.database import Database, sqlite_url
from fx_daily.db.models import CurrencySeries
from fx_daily.exceptions import NotFoundError, ValidationError
from fx_daily.ingestion.fred import FredClient, FredExchangeRateProvider
from fx_daily.ingestion.models import DenseRatePoint, ImportResult
from fx_daily.ingestion.strategy import ExchangeRateProvider
from fx_daily.services.cache import ExchangeRateService, RateCache
from fx_daily.services.importer import ExchangeRateImporter
from fx_daily.services.outbox import OutboxWorker
from fx_daily.services.registry import SeriesRegistry
from fx_daily.services.scheduler import RunLock, ScheduledImportRunner
from fx_daily.utils.currency import normalise_currency_code
from fx_daily.utils.date_range import validate_window
from fx_daily.utils.logger import get_logger

__all__ = [
    "__version__",
    "DatabaseBackend",
    "DatabaseConnectionInfo",
    "FxDaily",
    "seed_fred_rates",
]

try:
    __version__ = importlib_metadata.version("fx-daily")
except importlib_metadata.PackageNotFoundError:  # pragma: no cover - fallback for local runs
    __version__ = "0.1.0"

LOGGER = get_logger(__name__)

Frequency = Literal["daily", "weekly", "monthly", "yearly"]


def seed_fred_rates(*args, **kwargs):
    from fx_daily.seeds.populate_fred_rates import seed_fred_rates as _seed_fred_rates

    return _seed_fred_rates(*args, **kwargs)


class DatabaseBackend(str, Enum):
    """Supported database engines for FxDaily."""

    SQLITE = "sqlite"
    MYSQL = "mysql"
    POSTGRES = "postgres"

    @classmethod
    def resolve_backend_and_scheme(cls, scheme: str) -> tuple["DatabaseBackend", str]:
        """Return backend enum + canonical scheme used in connection URLs."""

        if not scheme:
            raise ValueError("DB_URL must include a scheme (e.g. mysql:// or postgres://)")
        scheme_lower = scheme.lower()
        base_scheme, _, driver = scheme_lower.partition("+")
        if base_scheme in {"postgresql", "postgres"}:
            # SQLAlchemy only understands ``postgresql``; keep any driver suffix.
            return cls.POSTGRES, f"postgresql+{driver}" if driver else "postgresql"
        if base_scheme == "sqlite":
            return cls.SQLITE, "sqlite"
        if base_scheme == "mysql":
            # Preserve optional driver hints such as ``mysql+pymysql``.
            canonical_scheme = scheme_lower if driver else "mysql"
            return cls.MYSQL, canonical_scheme
        raise ValueError(
            "Unsupported database backend. Supported values are SQLite, MySQL, and Postgres."
        )

    @classmethod
    def from_scheme(cls, scheme: str) -> "DatabaseBackend":
        """Normalise URL schemes into a DatabaseBackend value."""

        backend, _ = cls.resolve_backend_and_scheme(scheme)
        return backend


@dataclass(slots=True)
class DatabaseConnectionInfo:
    """Backend plus the canonical SQLAlchemy URL FxDaily connects with."""

    backend: DatabaseBackend
    url: str

    @classmethod
    def from_url(cls, url: str) -> "DatabaseConnectionInfo":
        """Create a connection object by parsing a database URL/DSN."""

        scheme, separator, rest = url.partition("://")
        if not separator or not scheme:
            raise ValueError("DB_URL must include a scheme (e.g. mysql:// or postgres://)")
        backend, canonical_scheme = DatabaseBackend.resolve_backend_and_scheme(scheme)
        if backend is DatabaseBackend.SQLITE:
            # File URLs are kept verbatim so ``sqlite:////abs/path`` stays absolute.
            return cls(backend=backend, url=url)
        return cls(backend=backend, url=f"{canonical_scheme}://{rest}")

    @classmethod
    def default_sqlite(cls) -> "DatabaseConnectionInfo":
        return cls.from_url(sqlite_url())


class FxDaily:
    """Package facade wiring storage, importer, cache and the outbox worker."""

    _DRIVER_HINTS: dict[DatabaseBackend, str] = {
        DatabaseBackend.POSTGRES: "Install psycopg2 or psycopg2-binary via 'pip install psycopg2-binary'.",
        DatabaseBackend.MYSQL: "Install mysqlclient or PyMySQL via 'pip install mysqlclient' or 'pip install PyMySQL'.",
    }

    __version__ = __version__

    def __init__(
        self,
        db_config: DatabaseConnectionInfo | str | None = None,
        *,
        settings: ImportSettings | None = None,
        provider: ExchangeRateProvider | None = None,
        create_schema: bool = True,
    ) -> None:
        """Configure storage and collaborators.

        ``db_config`` accepts a :class:`DatabaseConnectionInfo` or a DSN string
        and falls back to ``settings.db_url`` and then the bundled SQLite file.
        Without an explicit ``provider`` a FRED provider is built when an API
        key is configured; otherwise read-only use (``rates``/``history``)
        still works and import calls raise :class:`ValidationError`.
        """

        self.settings = settings if settings is not None else ImportSettings.from_env()
        self.connection_info = self._build_connection_info(db_config or self.settings.db_url)
        self.backend = self.connection_info.backend.value
        self.database = Database(self.connection_info.url, create_schema=create_schema)
        self.cache = RateCache()
        self.rate_service = ExchangeRateService(self.database, self.cache)
        self.provider = provider if provider is not None else self._build_provider()
        self.registry = SeriesRegistry(self.database, self.provider)
        self.importer: ExchangeRateImporter | None = None
        self.worker: OutboxWorker | None = None
        if self.provider is not None:
            self.importer = ExchangeRateImporter(
                self.database, self.provider, on_commit=[self.cache.clear]
            )
            self.worker = OutboxWorker(self.database, self.importer)
            self.registry.add_listener(self.worker.notify)

    @staticmethod
    def _build_connection_info(
        db_config: DatabaseConnectionInfo | str | None,
    ) -> DatabaseConnectionInfo:
        if isinstance(db_config, DatabaseConnectionInfo):
            return db_config
        if isinstance(db_config, str):
            return DatabaseConnectionInfo.from_url(db_config)
        return DatabaseConnectionInfo.default_sqlite()

    def _build_provider(self) -> ExchangeRateProvider | None:
        if not self.settings.fred.api_key:
            LOGGER.info("No FRED API key configured; imports are disabled")
            return None
        return FredExchangeRateProvider(FredClient.from_settings(self.settings.fred))

    def _require_importer(self) -> ExchangeRateImporter:
        if self.importer is None:
            raise ValidationError("FRED API key must be configured to import exchange rates")
        return self.importer

    def _require_worker(self) -> OutboxWorker:
        self._require_importer()
        assert self.worker is not None
        return self.worker

    # Series registry

    def create_series(
        self, currency_code: str, provider_series_id: str, *, enabled: bool = True
    ) -> CurrencySeries:
        return self.registry.create(currency_code, provider_series_id, enabled=enabled)

    def update_series(self, series_id: int, *, enabled: bool) -> CurrencySeries:
        return self.registry.update(series_id, enabled=enabled)

    def delete_series(self, series_id: int) -> None:
        self.registry.delete(series_id)

    def series(self, *, enabled_only: bool = False) -> list[CurrencySeries]:
        return self.registry.get_all(enabled_only=enabled_only)

    # Imports

    def import_series(self, currency_code: str) -> ImportResult:
        """Import the series registered for ``currency_code``."""

        series = self.registry.find_by_currency(currency_code)
        if series is None:
            raise NotFoundError(f"Currency series not found for code: {currency_code}")
        return self._require_importer().import_series(series)

    def import_all(self) -> list[ImportResult]:
        return self._require_importer().import_all()

    def import_missing(self) -> list[ImportResult]:
        return self._require_importer().import_missing()

    def startup(self) -> list[ImportResult]:
        """Import enabled series without data when ``import_on_startup`` is set."""

        if not self.settings.import_on_startup:
            LOGGER.info("Exchange rate import on startup is disabled")
            return []
        return self.import_missing()

    def run_scheduled_import(
        self,
        *,
        lock: RunLock | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> list[ImportResult] | None:
        kwargs: dict[str, Any] = {"lock": lock}
        if sleep is not None:
            kwargs["sleep"] = sleep
        runner = ScheduledImportRunner(self._require_importer(), self.settings.retry, **kwargs)
        return runner.run()

    # Outbox worker

    def start_worker(self) -> None:
        self._require_worker().start()

    def stop_worker(self) -> None:
        if self.worker is not None:
            self.worker.stop()

    def drain_outbox(self) -> int:
        """Process pending series events synchronously; returns the completed count."""

        return self._require_worker().process_pending()

    # Queries

    def rates(
        self,
        currency: str,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[DenseRatePoint]:
        """Return one point per calendar day (forward filled) for ``currency``."""

        return self.rate_service.get_exchange_rates(currency, from_date, to_date)

    def history(
        self,
        currency: str,
        from_date: date,
        to_date: date,
        frequency: Frequency = "daily",
    ) -> List[Dict[str, Any]]:
        """Return rate snapshots within ``from_date``/``to_date``.

        ``frequency`` controls the aggregation granularity. Weekly/monthly/yearly
        buckets always return the latest day in each interval.
        """

        code = normalise_currency_code(currency)
        validate_window(from_date, to_date)
        freq = frequency.lower()
        if freq not in {"daily", "weekly", "monthly", "yearly"}:
            raise ValidationError("frequency must be one of: daily, weekly, monthly, yearly")
        points = {point.date: point for point in self.rates(code, from_date, to_date)}
        selected = self._select_snapshot_dates(sorted(points), freq)
        return [self._snapshot_payload(points[day]) for day in selected]

    @staticmethod
    def _snapshot_payload(point: DenseRatePoint) -> Dict[str, Any]:
        return {
            "rate_date": point.date,
            "base_currency": point.base_currency,
            "target_currency": point.target_currency,
            "rate": point.rate,
            "published_date": point.published_date,
        }

    @staticmethod
    def _select_snapshot_dates(dates: List[date], frequency: str) -> List[date]:
        if frequency == "daily":
            return dates
        if frequency == "weekly":
            return FxDaily._last_dates_by_key(
                dates,
                lambda value: (value.isocalendar().year, value.isocalendar().week),
            )
        if frequency == "monthly":
            return FxDaily._last_dates_by_key(dates, lambda value: (value.year, value.month))
        if frequency == "yearly":
            return FxDaily._last_dates_by_key(dates, lambda value: value.year)
        raise ValidationError("Unsupported frequency")

    @staticmethod
    def _last_dates_by_key(
        dates: Iterable[date],
        key_builder: Callable[[date], Any],
    ) -> List[date]:
        buckets: Dict[Any, date] = {}
        for day in dates:
            key = key_builder(day)
            if key not in buckets or day > buckets[key]:
                buckets[key] = day
        return sorted(buckets.values())

    # Connectivity

    def connection(self) -> tuple[bool, str | None]:
        """Attempt to establish a database connection and report the outcome."""

        engine = None
        try:
            engine = create_engine(self.connection_info.url, future=True)
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except ModuleNotFoundError as exc:
            return False, self._missing_driver_message(exc)
        except Exception as exc:  # pragma: no cover - SQLAlchemy provides error detail
            return False, str(exc)
        finally:
            if engine is not None:
                engine.dispose()
        return True, None

    def _missing_driver_message(self, exc: ModuleNotFoundError) -> str:
        """Return a user-friendly hint when an optional DB driver is missing."""

        module_name = exc.name or str(exc)
        hint = self._DRIVER_HINTS.get(self.connection_info.backend)
        base = (
            f"Missing optional dependency '{module_name}' required for "
            f"{self.connection_info.backend.value} connections."
        )
        if hint:
            return f"{base} {hint}"
        return base

    def close(self) -> None:
        self.stop_worker()
        self.database.close()

    def __enter__(self) -> "FxDaily":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
