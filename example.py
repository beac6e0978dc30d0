from datetime import date

from fx_daily import FxDaily

print(FxDaily.__version__)  # 0.1.0

# Default usage: bundled SQLite file, FRED key read from FX_DAILY_FRED_API_KEY
fx = FxDaily()

# Register a series; the import runs on the outbox worker after the commit
fx.start_worker()
fx.create_series("EUR", "DEXUSEU")

# Or import every enabled series right away
results = fx.import_all()
print([result.as_dict() for result in results])

# One point per calendar day, weekends forward filled from Friday
points = fx.rates("EUR", date(2024, 1, 1), date(2024, 1, 7))
print(points[-1])
# => DenseRatePoint(date=datetime.date(2024, 1, 7), rate=Decimal('1.094900'), published_date=datetime.date(2024, 1, 5), ...)

# monthly snapshots
history = fx.history("EUR", date(2024, 1, 1), date(2024, 6, 30), frequency="monthly")
print(history)
# => [{'rate_date': date(2024, 1, 31), 'base_currency': 'USD', 'target_currency': 'EUR', 'rate': ..., ...}, ...]

fx.close()
