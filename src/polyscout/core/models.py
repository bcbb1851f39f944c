"""Core value types shared across the scanner application.

Define the decimal constants, the order ``Side`` enum, and the lenient
numeric parser used wherever loosely typed JSON numbers enter the system.
"""

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

ZERO = Decimal(0)
ONE = Decimal(1)
TWO = Decimal(2)


class Side(Enum):
    """Direction of a simulated fill: BUY consumes asks, SELL consumes bids."""

    BUY = "buy"
    SELL = "sell"


def parse_decimal(value: Any) -> Decimal | None:
    """Convert a loosely typed value into a finite Decimal.

    Accept strings, ints, and floats as returned by the Polymarket APIs.
    Booleans, blanks, malformed strings, and non-finite values (``NaN``,
    ``Infinity``) are treated as absent rather than raising.

    Args:
        value: Raw value to convert.

    Returns:
        The parsed Decimal, or ``None`` when the value is missing or invalid.

    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip() == "":
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not result.is_finite():
        return None
    return result
