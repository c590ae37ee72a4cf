"""Numeric normalisation — turn messy supplier cell text into clean numbers.

Negative values are normalised to their absolute value for every cell, text
or native. Supplier sheets write discounts and credits as ``(12.50)`` or
``-12.50`` next to genuine prices, and the pricing stage treats all of them as
a cost magnitude. :func:`is_valid_cost` keeps its ``>= 0`` guard for callers
that hand it values parsed elsewhere.
"""

from __future__ import annotations

import math
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from numbers import Integral, Real
from typing import Any

# ── Patterns ─────────────────────────────────────────────────────

_PLACEHOLDERS = frozenset({"", "-", "n/a", "null", "#n/a", "tbc", "tba", "poa", "call"})

_CURRENCY_RE = re.compile(r"[$£€¥₹R]", re.IGNORECASE)
_SEPARATOR_RE = re.compile(r"[,\s\u00a0\u2000-\u200b\u2028\u2029]")
_BRACKET_QUOTE_RE = re.compile(r"[()'\"]")
_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")

# Stricter cleanup applied while normalising decoded grids.
_COERCE_STRIP_RE = re.compile(r"[$£€¥₹,\s()]")
_STRICT_NUMBER_RE = re.compile(r"^-?\d*\.?\d+$")
_LEADING_ZERO_RE = re.compile(r"^-?0\d")


def _finite(value: float) -> float | None:
    return value if math.isfinite(value) else None


def _try_float(text: str) -> float | None:
    try:
        return _finite(float(text))
    except (ValueError, OverflowError):
        return None


def _parse_text(text: str) -> float | None:
    stripped = text.strip()
    if stripped.lower() in _PLACEHOLDERS:
        return None

    direct = _try_float(stripped)
    if direct is not None:
        return direct

    cleaned = _CURRENCY_RE.sub("", stripped)
    cleaned = _SEPARATOR_RE.sub("", cleaned)
    cleaned = _BRACKET_QUOTE_RE.sub("", cleaned)
    cleaned = _NON_NUMERIC_RE.sub("", cleaned)
    if not cleaned:
        return None

    parsed = _try_float(cleaned)
    if parsed is None:
        return None
    if "%" in stripped:
        return parsed / 100
    return parsed


def parse_numeric(value: Any) -> float | None:
    """Parse a cell into a non-negative float, or ``None`` when it holds no number.

    >>> parse_numeric("$1,234.50")
    1234.5
    >>> parse_numeric("15%")
    0.15
    >>> parse_numeric("POA") is None
    True
    """
    if value is None or isinstance(value, (bool, date)):
        return None
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        return abs(float(value))
    if isinstance(value, Real):
        number = _finite(float(value))
        return None if number is None else abs(number)

    parsed = _parse_text(value if isinstance(value, str) else str(value))
    return None if parsed is None else abs(parsed)


def is_valid_cost(value: Any) -> bool:
    """True when *value* parses to a finite, non-negative cost."""
    parsed = parse_numeric(value)
    return parsed is not None and parsed >= 0


def to_decimal(value: Any) -> Decimal | None:
    """Exact decimal form of a cost cell, going through shortest float text."""
    if isinstance(value, Decimal) and value.is_finite():
        return abs(value)
    parsed = parse_numeric(value)
    if parsed is None:
        return None
    try:
        return Decimal(repr(parsed))
    except InvalidOperation:
        return None


def decimal_places(number: float | int | Decimal) -> int:
    """Digits after the decimal point in the shortest text form of *number*."""
    if isinstance(number, Integral):
        return 0
    dec = number if isinstance(number, Decimal) else Decimal(repr(float(number)))
    exponent = dec.as_tuple().exponent
    if isinstance(exponent, int) and exponent < 0:
        return -exponent
    return 0


def coerce_cell(value: Any) -> Any:
    """Normalise one decoded cell.

    Text is trimmed, blank text becomes ``None`` and text that is strictly a
    number (after dropping currency symbols, commas, spaces and brackets)
    becomes an ``int`` or ``float``. Codes with a leading zero such as
    ``"00123"`` stay text.
    """
    if isinstance(value, float) and math.isnan(value):
        return None
    if not isinstance(value, str):
        return value

    trimmed = value.strip()
    if not trimmed:
        return None

    cleaned = _COERCE_STRIP_RE.sub("", trimmed)
    if not _STRICT_NUMBER_RE.match(cleaned) or _LEADING_ZERO_RE.match(cleaned):
        return trimmed
    if "." not in cleaned:
        return int(cleaned)
    number = _try_float(cleaned)
    return trimmed if number is None else number
