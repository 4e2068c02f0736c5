"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union
import re

AmountInput = Union[str, int, float, Decimal, None]


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45"
    - "$123.45"
    - "-123.45"
    - "-$123.45"
    - "1,234.56"
    - "(123.45)" (negative in parentheses)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    # Handle parentheses notation (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    # "-$12.00" and "$-12.00" both mean money out
    if amount_str.startswith("-"):
        is_negative = not is_negative
        amount_str = amount_str[1:]

    amount_str = re.sub(r"[$€£¥]", "", amount_str)
    amount_str = amount_str.replace(",", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e}")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}': not a finite number")
    return -amount if is_negative else amount


def coerce_amount(value: AmountInput) -> Optional[Decimal]:
    """Coerce a raw amount into a Decimal, or None when it is missing or unparseable.

    Detectors use this instead of parse_amount so that incomplete input
    results in "nothing detected" rather than an exception.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        number = Decimal(str(value))
        return number if number.is_finite() else None
    try:
        return parse_amount(value)
    except ValueError:
        return None
