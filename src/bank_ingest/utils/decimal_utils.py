"""Decimal utilities for financial calculations.

All monetary calculations must use Decimal to avoid floating-point precision issues.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from bank_ingest.models.parse import NormalizedValue
from bank_ingest.utils.logging_config import get_logger
from bank_ingest.utils.text import strip_invisible

logger = get_logger(__name__)

ZERO = Decimal("0")

# Currency symbols to strip
CURRENCY_SYMBOLS = {"$", "€", "£", "¥", "₹"}

# Regex for parentheses-enclosed negatives: ($1,234.56) or (1234.56)
PARENS_NEGATIVE_PATTERN = re.compile(r"^\(\s*([^)]*)\s*\)$")

# Debit markers anywhere in the cell: "45.00 DR", "DEBIT 45.00"
DEBIT_MARKER_PATTERN = re.compile(r"(?<![A-Z])(DR|DEBIT)(?![A-Z])", re.IGNORECASE)

# Credit markers are stripped but do not change the sign
CREDIT_MARKER_PATTERN = re.compile(r"(?<![A-Z])(CR|CREDIT)(?![A-Z])", re.IGNORECASE)

# 1-2 digits after the only comma means the comma is a decimal separator
COMMA_DECIMAL_PATTERN = re.compile(r",\d{1,2}$")


def normalize_amount(raw_amount: str | None) -> NormalizedValue[Decimal]:
    """Convert an amount cell into a signed Decimal.

    Handles:
    - Standard: 1234.56, -1234.56, +1234.56
    - With currency: $1,234.56, -$1,234.56
    - Parentheses for negative: ($1,234.56), (45.00)
    - Debit markers: 45.00 DR, 45.00 DEBIT
    - Decimal comma: 1234,56 (only a comma, 1-2 digits after it)

    Empty cells yield zero without a warning. Unparseable cells yield zero
    with a warning. Never raises.

    Args:
        raw_amount: The raw amount cell.

    Returns:
        NormalizedValue holding the signed amount and an optional warning.
    """
    original = strip_invisible(raw_amount or "")
    if not original:
        return NormalizedValue(ZERO)

    amount_str = original
    is_negative = False

    parens_match = PARENS_NEGATIVE_PATTERN.match(amount_str)
    if parens_match:
        amount_str = parens_match.group(1)
        is_negative = True

    if DEBIT_MARKER_PATTERN.search(amount_str):
        is_negative = True
        amount_str = DEBIT_MARKER_PATTERN.sub("", amount_str)
    amount_str = CREDIT_MARKER_PATTERN.sub("", amount_str)

    for symbol in CURRENCY_SYMBOLS:
        amount_str = amount_str.replace(symbol, "")
    amount_str = re.sub(r"\s+", "", amount_str)

    if amount_str.startswith("-"):
        is_negative = True
        amount_str = amount_str[1:]
    elif amount_str.startswith("+"):
        amount_str = amount_str[1:]
    elif amount_str.endswith("-"):
        is_negative = True
        amount_str = amount_str[:-1]

    if "," in amount_str and "." in amount_str:
        amount_str = amount_str.replace(",", "")
    elif "," in amount_str:
        if COMMA_DECIMAL_PATTERN.search(amount_str) and amount_str.count(",") == 1:
            amount_str = amount_str.replace(",", ".")
        else:
            amount_str = amount_str.replace(",", "")

    try:
        amount = Decimal(amount_str)
    except InvalidOperation:
        logger.debug(f"Unparseable amount '{original}', defaulting to 0")
        return NormalizedValue(ZERO, f"Unparseable amount '{original}', using 0")

    if not amount.is_finite():
        return NormalizedValue(ZERO, f"Unparseable amount '{original}', using 0")

    return NormalizedValue(-abs(amount) if is_negative else abs(amount))


def combine_debit_credit(
    debit: NormalizedValue[Decimal],
    credit: NormalizedValue[Decimal],
) -> NormalizedValue[Decimal]:
    """Merge separate debit/credit cells into one signed amount.

    A non-zero debit is money out (negative); otherwise the credit is money in.
    """
    warning = debit.warning or credit.warning
    if debit.value != 0:
        if credit.value != 0:
            warning = warning or f"Both debit ({abs(debit.value)}) and credit ({abs(credit.value)}) set; using debit"
        return NormalizedValue(-abs(debit.value), warning)
    return NormalizedValue(abs(credit.value), warning)


def format_currency(
    amount: Decimal,
    decimal_places: int = 2,
    include_sign: bool = True,
) -> str:
    """Format a Decimal amount for display.

    Args:
        amount: The amount to format.
        decimal_places: Number of decimal places (default 2).
        include_sign: Whether to include sign for negative amounts.

    Returns:
        Formatted string like "-1234.56" or "1234.56".
    """
    quantize_str = "0." + "0" * decimal_places
    rounded = amount.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)

    if include_sign and rounded < 0:
        return str(rounded)
    return str(abs(rounded))


def safe_decimal(value: Optional[object], default: Decimal = ZERO) -> Decimal:
    """Safely convert a stored value to Decimal.

    Args:
        value: Value to convert (string, int, float, or None).
        default: Default value if conversion fails.

    Returns:
        Decimal value or default.
    """
    if value is None:
        return default

    try:
        if isinstance(value, Decimal):
            return value
        if isinstance(value, (int, str, float)):
            return Decimal(str(value))
        return default
    except (InvalidOperation, ValueError):
        return default
