"""
Somity Payroll - Numeric Coercion Helpers

Every numeric value the payroll rules consume originates in a
user-editable form field or a spreadsheet cell. Values that cannot be
read as a finite number count as zero.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple


ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a raw value to a finite Decimal.

    None, blank strings, non-numeric strings, NaN and infinities
    all become zero.
    """
    if isinstance(value, Decimal):
        number = value
    elif value is None:
        return ZERO
    else:
        try:
            number = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return ZERO

    if not number.is_finite():
        return ZERO
    return number


def to_int(value: Any) -> int:
    """Coerce a raw value to an int counter, truncating toward zero."""
    return int(to_decimal(value))


def term_key(term: Any) -> str:
    """
    Canonical key for a book term.

    1.5, "1.50" and Decimal("1.5") all map to "1.5"; 10 maps to "10".
    """
    return format(to_decimal(term).normalize(), "f")


def parse_month(value: Any) -> Optional[Tuple[int, int]]:
    """
    Read (year, month) from a "YYYY-MM" or "YYYY-MM-DD" string.

    Returns None when the value does not start with a usable year and month.
    """
    if value is None:
        return None
    parts = str(value).strip().split("-")
    if len(parts) < 2:
        return None
    try:
        year = int(parts[0])
        month = int(parts[1][:2])
    except ValueError:
        return None
    if not 1 <= month <= 12:
        return None
    return year, month


def month_key(value: Any) -> Optional[str]:
    """Canonical "YYYY-MM" for a month or date string: "2024-3-1" -> "2024-03"."""
    parsed = parse_month(value)
    if parsed is None:
        return None
    return f"{parsed[0]:04d}-{parsed[1]:02d}"
