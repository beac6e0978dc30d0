"""Driver for the periodic "import every enabled series" run."""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from tenacity import RetryCallState, Retrying, before_sleep_log, stop_after_attempt, wait_fixed

from fx_daily.config import RetrySettings
from fx_daily.ingestion.models import ImportResult
from fx_daily.services.importer import ExchangeRateImporter
from fx_daily.utils.logger import get_logger

LOGGER = get_logger(__name__)


class RunLock(Protocol):
    """Anything with non-blocking ``acquire``/``release`` (e.g. :class:`threading.Lock`)."""

    def acquire(self, blocking: bool = ...) -> bool:
        ...  # pragma: no cover - protocol definition

    def release(self) -> None:
        ...  # pragma: no cover - protocol definition


class ScheduledImportRunner:
    """Runs :meth:`ExchangeRateImporter.import_all` with whole-batch retries.

    Cross-process single-flight is delegated to ``lock``; when it cannot be
    acquired the run is skipped. Each failed attempt rolls back completely, so
    a retry always starts from the last committed state.
    """

    def __init__(
        self,
        importer: ExchangeRateImporter,
        retry: RetrySettings | None = None,
        *,
        lock: RunLock | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.importer = importer
        self.retry = retry or RetrySettings()
        self.lock = lock
        self._sleep = sleep

    def run(self) -> list[ImportResult] | None:
        """Return the batch results, or None when another run holds the lock."""

        if self.lock is not None and not self.lock.acquire(blocking=False):
            LOGGER.info("Scheduled exchange rate import already running elsewhere - skipping")
            return None
        try:
            return self._run_with_retries()
        finally:
            if self.lock is not None:
                self.lock.release()

    def _run_with_retries(self) -> list[ImportResult]:
        retrying = Retrying(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_fixed(self.retry.delay_seconds),
            sleep=self._sleep,
            before=self._log_attempt,
            before_sleep=before_sleep_log(LOGGER, logging.WARNING),
            reraise=True,
        )
        try:
            results = retrying(self.importer.import_all)
        except Exception:
            LOGGER.error(
                "Exchange rate import failed after %s attempts - giving up",
                self.retry.max_attempts,
            )
            raise
        LOGGER.info(
            "Scheduled exchange rate import completed: %s currencies, %s new, %s updated, %s skipped",
            len(results),
            sum(result.new_records for result in results),
            sum(result.updated_records for result in results),
            sum(result.skipped_records for result in results),
        )
        return results

    def _log_attempt(self, retry_state: RetryCallState) -> None:
        LOGGER.info(
            "Starting scheduled exchange rate import (attempt %s/%s)",
            retry_state.attempt_number,
            self.retry.max_attempts,
        )


__all__ = ["RunLock", "ScheduledImportRunner"]
