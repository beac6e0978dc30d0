"""Currency code helpers."""

from __future__ import annotations

import re

from fx_daily.exceptions import ValidationError

BASE_CURRENCY = "USD"

_CODE_PATTERN = re.compile(r"^[A-Z]{3}$")


def normalise_currency_code(code: str) -> str:
    """Return ``code`` upper-cased, raising :class:`ValidationError` when malformed."""

    if not isinstance(code, str):
        raise ValidationError(f"Currency code must be a string, got {type(code).__name__}")
    cleaned = code.strip().upper()
    if not _CODE_PATTERN.match(cleaned):
        raise ValidationError(f"Malformed currency code: {code!r}")
    return cleaned


__all__ = ["BASE_CURRENCY", "normalise_currency_code"]
