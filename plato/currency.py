"""Presentation helpers for money values."""

from __future__ import annotations

import math
from typing import Optional

from . import settings

CURRENCY_SYMBOLS = {
    "GBP": "£",
    "USD": "$",
    "EUR": "€",
    "AUD": "A$",
    "CAD": "C$",
    "NZD": "NZ$",
    "JPY": "¥",
}

MISSING = "—"


def currency_symbol(currency: str | None = None) -> str:
    code = (currency or settings.DEFAULT_CURRENCY).strip().upper()
    return CURRENCY_SYMBOLS.get(code, f"{code} ")


def format_currency(amount: Optional[float], currency: str | None = None, places: int = 2) -> str:
    """Render ``amount`` for display; ``None``/NaN becomes an em dash."""

    if amount is None:
        return MISSING
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return MISSING
    if math.isnan(value) or math.isinf(value):
        return MISSING

    sign = "-" if value < 0 else ""
    return f"{sign}{currency_symbol(currency)}{abs(value):,.{places}f}"
