"""Date parsing and normalization utilities.

Statement dates are day-first by default (DD/MM/YYYY). A slash/dash/dot date
whose second component exceeds 12 is read as MM/DD/YYYY and flagged with a
warning, since that is the only reading that yields a valid date.

Two-digit years pivot at 50: 51-99 map to 1951-1999, 00-50 to 2000-2050.
"""

import re
from datetime import date

from dateutil import parser as dateutil_parser

from bank_ingest.models.parse import NormalizedValue
from bank_ingest.utils.logging_config import get_logger
from bank_ingest.utils.text import strip_invisible

logger = get_logger(__name__)

_SEP = r"[/\-.]"

DAY_FIRST_PATTERN = re.compile(rf"^(\d{{1,2}}){_SEP}(\d{{1,2}}){_SEP}(\d{{4}})$")
ISO_PATTERN = re.compile(rf"^(\d{{4}}){_SEP}(\d{{1,2}}){_SEP}(\d{{1,2}})$")
SHORT_YEAR_PATTERN = re.compile(rf"^(\d{{1,2}}){_SEP}(\d{{1,2}}){_SEP}(\d{{2}})$")
COMPACT_PATTERN = re.compile(r"^(\d{8})$")

TWO_DIGIT_YEAR_PIVOT = 50

# Generic parses resulting in years at or before this are rejected
MIN_GENERIC_YEAR = 1900


def _build_date(year: int, month: int, day: int) -> date | None:
    """Build a date, returning None unless day/month/year round-trip."""
    try:
        built = date(year, month, day)
    except ValueError:
        return None
    if (built.year, built.month, built.day) != (year, month, day):
        return None
    return built


def _expand_year(two_digit: int) -> int:
    return 1900 + two_digit if two_digit > TWO_DIGIT_YEAR_PIVOT else 2000 + two_digit


def _day_month(first: int, second: int) -> tuple[int, int, bool]:
    """Order two leading components as (day, month, swapped)."""
    if first <= 12 < second:
        return second, first, True
    return first, second, False


def _parse_structural(value: str) -> NormalizedValue[date] | None:
    match = DAY_FIRST_PATTERN.match(value)
    if match:
        day, month, swapped = _day_month(int(match.group(1)), int(match.group(2)))
        parsed = _build_date(int(match.group(3)), month, day)
        if parsed is not None:
            warning = f"Date '{value}' read as MM/DD/YYYY" if swapped else None
            return NormalizedValue(parsed, warning)
        return None

    match = ISO_PATTERN.match(value)
    if match:
        parsed = _build_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        return NormalizedValue(parsed) if parsed is not None else None

    match = SHORT_YEAR_PATTERN.match(value)
    if match:
        day, month, swapped = _day_month(int(match.group(1)), int(match.group(2)))
        parsed = _build_date(_expand_year(int(match.group(3))), month, day)
        if parsed is not None:
            warning = f"Date '{value}' read as MM/DD/YY" if swapped else None
            return NormalizedValue(parsed, warning)
        return None

    match = COMPACT_PATTERN.match(value)
    if match:
        digits = match.group(1)
        # DDMMYYYY first, then YYYYMMDD
        parsed = _build_date(int(digits[4:]), int(digits[2:4]), int(digits[:2]))
        if parsed is None:
            parsed = _build_date(int(digits[:4]), int(digits[4:6]), int(digits[6:]))
        return NormalizedValue(parsed) if parsed is not None else None

    return None


def normalize_date(raw_date: str | None) -> NormalizedValue[date]:
    """Convert a statement date cell into a calendar date.

    Handles:
    - Day-first: 30/06/2025, 30-06-2025, 30.06.2025, 30/06/25
    - Month-first when the day position exceeds 12: 06/30/2025 (with warning)
    - ISO: 2025-06-30
    - Compact: 30062025, 20250630
    - Anything the generic parser accepts with a year after 1900 (with warning)

    Never raises: unparseable input yields today's date and a warning.

    Args:
        raw_date: The raw date cell.

    Returns:
        NormalizedValue holding the date and an optional warning.
    """
    value = strip_invisible(raw_date or "")
    if not value:
        return NormalizedValue(date.today(), "Empty date, using today")

    structural = _parse_structural(value)
    if structural is not None:
        return structural

    try:
        generic = dateutil_parser.parse(value, dayfirst=True)
    except (ValueError, OverflowError) as e:
        logger.debug(f"Generic date parse failed for '{value}': {e}")
    else:
        if generic.year > MIN_GENERIC_YEAR:
            return NormalizedValue(
                generic.date(), f"Date '{value}' parsed with generic parser"
            )

    logger.debug(f"Unparseable date '{value}', defaulting to today")
    return NormalizedValue(date.today(), f"Unparseable date '{value}', using today")


def date_to_iso(d: date) -> str:
    """Convert a date to ISO 8601 format (YYYY-MM-DD)."""
    return d.isoformat()


def month_key(d: date) -> str:
    """Reporting month key (YYYY-MM) for a date."""
    return f"{d.year:04d}-{d.month:02d}"


def is_valid_month_key(value: str) -> bool:
    """Check a YYYY-MM string names a real month."""
    match = re.fullmatch(r"(\d{4})-(\d{2})", value)
    return bool(match) and 1 <= int(match.group(2)) <= 12  # type: ignore[union-attr]
