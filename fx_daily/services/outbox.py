"""Background consumer for ``event_publication`` facts.

Delivery is at-least-once: a fact is marked complete only after its import
commits, so a crash in between replays the import on the next run. That is
safe because re-importing an up-to-date series only produces skipped rows.
Pending facts are read fewest attempts first. A fact is closed with its last
error once it is unreadable, its series is gone, or it has failed
``max_attempts`` times.
"""

from __future__ import annotations

import threading

from fx_daily.db.database import Database
from fx_daily.db.models import utcnow
from fx_daily.db.repository import EventPublicationRepository
from fx_daily.exceptions import NotFoundError
from fx_daily.services.events import SeriesEvent
from fx_daily.services.importer import ExchangeRateImporter
from fx_daily.utils.logger import correlation_scope, get_logger

LOGGER = get_logger(__name__)

MAX_ERROR_LENGTH = 2000
DEFAULT_MAX_ATTEMPTS = 10


class OutboxWorker:
    def __init__(
        self,
        database: Database,
        importer: ExchangeRateImporter,
        *,
        poll_interval: float = 5.0,
        batch_size: int = 50,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self.database = database
        self.importer = importer
        self.poll_interval = poll_interval
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self._drain_lock = threading.Lock()
        self._wake = threading.Event()
        self._stopping = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def notify(self) -> None:
        """Wake the background thread so new facts are picked up promptly."""

        self._wake.set()

    def process_pending(self) -> int:
        """Handle pending facts oldest first; returns how many completed."""

        with self._drain_lock:
            with self.database.read_session() as session:
                pending = [
                    (publication.id, publication.event_type, publication.serialized_event)
                    for publication in EventPublicationRepository(session).find_pending(
                        self.batch_size
                    )
                ]
            if pending:
                LOGGER.info("Processing %s pending event publication(s)", len(pending))
            completed = 0
            for publication_id, event_type, serialized in pending:
                if self._process_one(publication_id, event_type, serialized):
                    completed += 1
            return completed

    def _process_one(self, publication_id: str, event_type: str, serialized: str) -> bool:
        try:
            event = SeriesEvent.from_json(event_type, serialized)
        except ValueError as exc:
            LOGGER.error("Unreadable event publication %s: %s", publication_id, exc)
            self._record_failure(publication_id, exc, permanent=True)
            return False

        with correlation_scope(event.correlation_id):
            try:
                self._handle(event)
            except NotFoundError as exc:
                LOGGER.warning(
                    "Series for %s no longer exists (publication %s): %s",
                    event.currency_code,
                    publication_id,
                    exc,
                )
                self._record_failure(publication_id, exc, permanent=True)
                return False
            except Exception as exc:
                LOGGER.exception(
                    "Failed to process %s for %s (publication %s)",
                    event.event_type,
                    event.currency_code,
                    publication_id,
                )
                self._record_failure(publication_id, exc)
                return False
            self._mark_completed(publication_id)
        return True

    def _handle(self, event: SeriesEvent) -> None:
        if not event.enabled:
            LOGGER.info(
                "Currency %s is disabled - skipping exchange rate import", event.currency_code
            )
            return
        LOGGER.info(
            "Importing exchange rates for %s after %s", event.currency_code, event.event_type
        )
        result = self.importer.import_series_by_id(event.currency_series_id)
        LOGGER.info(
            "Event-driven import for %s finished: %s new, %s updated, %s skipped",
            result.currency_code,
            result.new_records,
            result.updated_records,
            result.skipped_records,
        )

    def _mark_completed(self, publication_id: str) -> None:
        with self.database.transaction() as session:
            repository = EventPublicationRepository(session)
            publication = repository.get(publication_id)
            if publication is None:
                return
            publication.attempts = (publication.attempts or 0) + 1
            repository.mark_completed(publication, utcnow())

    def _record_failure(
        self, publication_id: str, exc: BaseException, *, permanent: bool = False
    ) -> None:
        error = f"{type(exc).__name__}: {exc}"[:MAX_ERROR_LENGTH]
        with self.database.transaction() as session:
            repository = EventPublicationRepository(session)
            publication = repository.get(publication_id)
            if publication is None:
                return
            publication.attempts = (publication.attempts or 0) + 1
            if permanent or publication.attempts >= self.max_attempts:
                LOGGER.error(
                    "Giving up on event publication %s after %s attempt(s)",
                    publication_id,
                    publication.attempts,
                )
                repository.mark_abandoned(publication, utcnow(), error)
            else:
                publication.last_error = error

    def start(self) -> None:
        """Run :meth:`process_pending` on a daemon thread until :meth:`stop`."""

        if self.running:
            return
        self._stopping.clear()
        self._thread = threading.Thread(
            target=self._run, name="fx-daily-outbox-worker", daemon=True
        )
        self._thread.start()
        LOGGER.info("Outbox worker started (poll interval %ss)", self.poll_interval)

    def stop(self, timeout: float | None = 10.0) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stopping.set()
        self._wake.set()
        thread.join(timeout)
        self._thread = None
        LOGGER.info("Outbox worker stopped")

    def _run(self) -> None:
        while not self._stopping.is_set():
            self._wake.clear()
            try:
                self.process_pending()
            except Exception:
                LOGGER.exception("Outbox worker iteration failed")
            self._wake.wait(self.poll_interval)


__all__ = ["OutboxWorker"]
