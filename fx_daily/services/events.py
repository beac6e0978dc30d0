"""Series lifecycle facts stored in the ``event_publication`` outbox."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass

from fx_daily.exceptions import ValidationError

CURRENCY_CREATED = "currency.created"
CURRENCY_UPDATED = "currency.updated"
EVENT_TYPES = frozenset({CURRENCY_CREATED, CURRENCY_UPDATED})

# Every fact is consumed by the exchange-rate import worker.
IMPORT_LISTENER_ID = "fx_daily.services.outbox.OutboxWorker"


@dataclass(frozen=True, slots=True)
class SeriesEvent:
    event_type: str
    currency_series_id: int
    currency_code: str
    enabled: bool
    correlation_id: str | None = None

    def to_json(self) -> str:
        payload = asdict(self)
        payload.pop("event_type")
        return json.dumps(payload, sort_keys=True)

    @classmethod
    def from_json(cls, event_type: str, serialized: str) -> "SeriesEvent":
        if event_type not in EVENT_TYPES:
            raise ValidationError(f"Unknown event type: {event_type}")
        try:
            payload = json.loads(serialized)
            return cls(
                event_type=event_type,
                currency_series_id=int(payload["currency_series_id"]),
                currency_code=str(payload["currency_code"]),
                enabled=bool(payload["enabled"]),
                correlation_id=payload.get("correlation_id"),
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise ValidationError(f"Malformed {event_type} payload: {serialized!r}") from exc


__all__ = [
    "CURRENCY_CREATED",
    "CURRENCY_UPDATED",
    "EVENT_TYPES",
    "IMPORT_LISTENER_ID",
    "SeriesEvent",
]
