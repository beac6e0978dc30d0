from __future__ import annotations

import threading

import pytest

from fx_daily.config import RetrySettings
from fx_daily.exceptions import ProviderError
from fx_daily.ingestion.models import ImportResult
from fx_daily.services.scheduler import ScheduledImportRunner


class _FlakyImporter:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    def import_all(self) -> list[ImportResult]:
        self.calls += 1
        if self.calls <= self.failures:
            raise ProviderError("FRED API error (HTTP 503)", status_code=503)
        return [ImportResult("EUR", "DEXUSEU", new_records=2)]


def test_run_returns_results_on_first_success() -> None:
    importer = _FlakyImporter(failures=0)
    sleeps: list[float] = []

    results = ScheduledImportRunner(importer, sleep=sleeps.append).run()

    assert [result.currency_code for result in results] == ["EUR"]
    assert importer.calls == 1
    assert sleeps == []


def test_run_retries_whole_batch_with_fixed_delay() -> None:
    importer = _FlakyImporter(failures=2)
    sleeps: list[float] = []
    runner = ScheduledImportRunner(
        importer, RetrySettings(max_attempts=3, delay_minutes=5), sleep=sleeps.append
    )

    results = runner.run()

    assert results is not None and results[0].new_records == 2
    assert importer.calls == 3
    assert sleeps == [300, 300]


def test_run_reraises_after_exhausting_attempts() -> None:
    importer = _FlakyImporter(failures=5)
    sleeps: list[float] = []
    runner = ScheduledImportRunner(
        importer, RetrySettings(max_attempts=2, delay_minutes=1), sleep=sleeps.append
    )

    with pytest.raises(ProviderError):
        runner.run()

    assert importer.calls == 2
    assert sleeps == [60]


def test_run_skips_when_lock_is_held_elsewhere() -> None:
    importer = _FlakyImporter(failures=0)
    lock = threading.Lock()
    lock.acquire()
    try:
        assert ScheduledImportRunner(importer, lock=lock).run() is None
    finally:
        lock.release()

    assert importer.calls == 0


def test_run_releases_lock_even_on_failure() -> None:
    importer = _FlakyImporter(failures=5)
    lock = threading.Lock()
    runner = ScheduledImportRunner(
        importer, RetrySettings(max_attempts=1), lock=lock, sleep=lambda _: None
    )

    with pytest.raises(ProviderError):
        runner.run()

    assert lock.acquire(blocking=False)
    lock.release()
