"""Tolerant numeric parsing for budget sheet cells.

Cells arrive as display text ("$24,970.00", "(1,200)", "25.00%", "-").
Blank cells parse to None; non-blank cells that cannot be read raise
ValueError so the caller can record the offending text.
"""

import math
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

_CURRENCY_CHARS = re.compile(r"[$€£\s,]")
_NUMBER = re.compile(r"^-?(\d+(\.\d*)?|\.\d+)$")
_DASH = re.compile(r"^[$€£\s]*-[\s]*$")

# Magnitude below which a cost counts as not populated
ZERO_EPSILON = 0.005

# Cells at or above this magnitude are unreadable, so markup and sums stay finite
MAX_MAGNITUDE = 1e15


def round2(value: float) -> float:
    """Round a money amount to cents, half away from zero."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def is_blank(text: Optional[str]) -> bool:
    """Check if a cell holds no text."""
    return text is None or not text.strip()


def is_dash(text: Optional[str]) -> bool:
    """Check if a cell is an accounting dash such as "-" or "$ -"."""
    return text is not None and bool(_DASH.match(text))


def _to_float(cleaned: str, text: str, kind: str) -> float:
    value = float(cleaned)
    if not math.isfinite(value) or abs(value) >= MAX_MAGNITUDE:
        raise ValueError(f"{kind} value out of range: {text[:40]!r}")
    return value


def _unwrap_negative(text: str) -> Tuple[str, bool]:
    text = text.strip()
    if len(text) >= 2 and text.startswith("(") and text.endswith(")"):
        return text[1:-1].strip(), True
    return text, False


def parse_currency(text: Optional[str]) -> Optional[float]:
    """Parse a currency cell.

    Strips currency symbols, whitespace and thousands separators. A value
    wrapped in parentheses or with a leading minus is negative. An
    accounting dash ("-", "$ -") is zero.

    Args:
        text: Raw cell text.

    Returns:
        Parsed amount, or None for a blank cell.

    Raises:
        ValueError: If the cell is not blank and not a number or is too
            large to represent.
    """
    if is_blank(text):
        return None

    body, negative = _unwrap_negative(text)
    cleaned = _CURRENCY_CHARS.sub("", body)
    if cleaned in ("", "-"):
        return 0.0
    if not _NUMBER.match(cleaned):
        raise ValueError(f"not a currency value: {text!r}")

    value = _to_float(cleaned, text, "currency")
    return -abs(value) if negative else value


def parse_percent(text: Optional[str]) -> Optional[float]:
    """Parse a percent cell into percent units.

    "25%", "25.00 %" and "25" all give 25.0. A value written without a
    percent sign whose magnitude is at most 1 is read as a fraction, so
    "0.25" also gives 25.0.

    Args:
        text: Raw cell text.

    Returns:
        Percent value, or None for a blank cell or a lone dash.

    Raises:
        ValueError: If the cell is not blank and not a percentage or is too
            large to represent.
    """
    if is_blank(text):
        return None

    body, negative = _unwrap_negative(text)
    has_sign = "%" in body
    cleaned = re.sub(r"[%\s]", "", body)
    if cleaned in ("", "-"):
        return None
    if not _NUMBER.match(cleaned):
        raise ValueError(f"not a percent value: {text!r}")

    value = _to_float(cleaned, text, "percent")
    if not has_sign and abs(value) <= 1:
        value *= 100
    value = round(value, 6)
    return -abs(value) if negative else value


def parse_stated_total(text: Optional[str]) -> Optional[float]:
    """Parse a sheet-stated total cell.

    Same as parse_currency, except an accounting dash means no total was
    written and gives None rather than zero.
    """
    if is_dash(text):
        return None
    return parse_currency(text)
