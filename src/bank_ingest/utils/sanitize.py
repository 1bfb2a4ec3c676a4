"""Sanitization utilities for safe CSV output."""

import re
from collections.abc import Iterable
from typing import Optional

# Leading characters that make spreadsheet apps evaluate a cell as a formula
# (| covers DDE payloads)
_FORMULA_CHARS = ("=", "+", "-", "@", "\t", "\r", "\n", "|")

_UNSAFE_FILENAME_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_for_csv(value: Optional[str]) -> Optional[str]:
    """Neutralize spreadsheet formula injection in a text cell.

    Values starting with a formula character get a leading single quote
    (OWASP CSV injection mitigation). Numeric columns should be written
    as-is, not passed through here.
    """
    if not value:
        return value
    if value.startswith(_FORMULA_CHARS):
        return "'" + value
    return value


def sanitize_cells(values: Iterable[Optional[str]]) -> list[str]:
    """Sanitize a sequence of text cells; None becomes an empty string."""
    return [sanitize_for_csv(v) or "" for v in values]


def safe_filename(name: str, default: str = "unknown") -> str:
    """Turn an arbitrary label (account, month) into a filename component."""
    safe = _UNSAFE_FILENAME_PATTERN.sub("_", name)
    safe = re.sub(r"\s+", "_", safe)
    safe = re.sub(r"_+", "_", safe).strip("_")
    return safe or default
