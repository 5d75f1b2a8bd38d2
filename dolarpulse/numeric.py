"""Locale-tolerant numeric parsing.

Quotes on Peruvian pages use a decimal comma ("3,745"). Every numeric
interpretation in the pipeline goes through ``parse_number`` so that a bad
cell degrades to NaN instead of an exception.
"""

import math
import re
from typing import Any

_WHITESPACE = re.compile(r"\s+")


def parse_number(text: Any) -> float:
    """Convert locale-formatted decimal text to a float.

    Whitespace is removed and the first comma is read as the decimal point.

    Returns:
        The parsed value, or NaN for None, empty, non-numeric or non-finite input.
    """
    if text is None:
        return math.nan

    normalized = _WHITESPACE.sub("", str(text)).replace(",", ".", 1)
    if not normalized:
        return math.nan

    try:
        value = float(normalized)
    except ValueError:
        return math.nan

    return value if math.isfinite(value) else math.nan


def is_valid_price(value: float | None) -> bool:
    """True for finite, strictly positive values."""
    return value is not None and math.isfinite(value) and value > 0


def round_or_none(value: float | None, digits: int = 4) -> float | None:
    """Round to ``digits`` places, mapping NaN/None/inf to None."""
    if value is None or not math.isfinite(value):
        return None
    return round(value, digits)
