"""SQLAlchemy table definitions for fx_daily."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase

# Rates are stored with six decimal places; incoming values are quantised to
# the same scale before comparison.
RATE_PRECISION = 18
RATE_SCALE = 6


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class CurrencySeries(Base):
    """A tracked (USD -> currency) pairing backed by one provider series."""

    __tablename__ = "currency_series"

    id = Column(Integer, primary_key=True, autoincrement=True)
    currency_code = Column(String(3), nullable=False, unique=True)
    provider_series_id = Column(String(50), nullable=False, unique=True)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return (
            f"CurrencySeries(id={self.id!r}, currency_code={self.currency_code!r}, "
            f"provider_series_id={self.provider_series_id!r}, enabled={self.enabled!r})"
        )


class ExchangeRate(Base):
    """One stored observation for ``(base_currency, target_currency, date)``.

    ``target_currency`` duplicates ``currency_series.currency_code`` so range
    queries never need a join; both are always written together.
    """

    __tablename__ = "exchange_rate"
    __table_args__ = (
        UniqueConstraint(
            "base_currency", "target_currency", "date", name="uk_exchange_rate_currency_date"
        ),
        Index("idx_exchange_rate_target_date", "target_currency", "date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    currency_series_id = Column(
        Integer,
        ForeignKey("currency_series.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    base_currency = Column(String(3), nullable=False)
    target_currency = Column(String(3), nullable=False)
    date = Column(Date, nullable=False)
    rate = Column(Numeric(RATE_PRECISION, RATE_SCALE), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)


class EventPublication(Base):
    """Outbox row recorded in the same transaction as the registry change."""

    __tablename__ = "event_publication"
    __table_args__ = (
        Index("idx_event_publication_unpublished", "completion_date"),
        Index("idx_event_publication_event_type", "event_type"),
    )

    id = Column(String(36), primary_key=True)
    listener_id = Column(String(512), nullable=False)
    event_type = Column(String(512), nullable=False)
    serialized_event = Column(Text, nullable=False)
    publication_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completion_date = Column(DateTime(timezone=True), nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)


__all__ = [
    "Base",
    "CurrencySeries",
    "ExchangeRate",
    "EventPublication",
    "RATE_PRECISION",
    "RATE_SCALE",
    "utcnow",
]
