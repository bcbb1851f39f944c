"""Small text formatters for prices and dollar amounts."""

from decimal import Decimal

_HUNDRED = Decimal(100)


def fmt_cents(value: Decimal, places: int = 2) -> str:
    """Render a 0..1 price as cents, e.g. ``Decimal("0.4235")`` -> ``"42.35c"``."""
    return f"{value * _HUNDRED:.{places}f}c"


def fmt_usd(value: Decimal) -> str:
    """Render a dollar amount rounded to whole dollars with separators."""
    return f"${value:,.0f}"
