"""Map CSV headers to semantic transaction fields."""

import re
from typing import Optional

from bank_ingest.models.parse import REQUIRED_FIELDS, ColumnMatch, HeaderMapping
from bank_ingest.parsers.base import ColumnMappingError
from bank_ingest.utils.logging_config import get_logger
from bank_ingest.utils.text import normalize_header

logger = get_logger(__name__)

# Header synonyms per field, most specific first
FIELD_SYNONYMS: dict[str, list[str]] = {
    "date": ["date", "transaction date", "posting date", "posted date", "trans date", "value date"],
    "description": ["description", "details", "transaction details", "narrative", "memo", "payee details"],
    "amount": ["amount", "transaction amount", "value", "amt", "amount nzd"],
    "debit": ["debit", "debit amount", "withdrawal", "withdrawals", "money out", "paid out"],
    "credit": ["credit", "credit amount", "deposit", "deposits", "money in", "paid in"],
    "merchant": ["merchant", "payee", "other party", "counterparty", "merchant name"],
    "balance": ["balance", "running balance", "account balance", "closing balance"],
    "reference": ["reference", "ref", "transaction id", "cheque number", "unique id"],
    "code": ["code"],
    "particulars": ["particulars"],
    "type": ["type", "transaction type", "tran type"],
}

# Extra synonyms applied when the file name mentions the bank
BANK_SYNONYMS: dict[str, dict[str, list[str]]] = {
    "anz": {"description": ["details", "transaction details"]},
    "asb": {"description": ["particulars", "memo"], "debit": ["debit amount"], "credit": ["credit amount"]},
    "hsbc": {"debit": ["paid out"], "credit": ["paid in"]},
    "bnz": {"date": ["value date"]},
    "chase": {"date": ["post date", "posting date"]},
}

BANK_SYNONYM_BONUS = 0.1

# Candidates are assigned from best to worst; ties go to the earlier field
FIELD_PRIORITY = [
    "date", "amount", "description", "debit", "credit",
    "merchant", "balance", "reference", "code", "particulars", "type",
]

# Fields whose columns positional fallback may not take over
CORE_FIELDS = {"date", "amount", "description", "debit", "credit"}

# Below this a name match is not trusted and positional fallback is tried
FALLBACK_THRESHOLD = 0.5

# Minimum confidence for a column to be mapped at all
MIN_CONFIDENCE = 0.3

# Shortest header that may be matched by reciprocal containment
MIN_CONTAINED_LENGTH = 3

SAMPLE_ROWS = 5

DATE_LIKE_PATTERN = re.compile(
    r"^(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}"
    r"|\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}"
    r"|\d{8}"
    r"|\d{1,2}[ \-][A-Za-z]{3,9}[ \-]\d{2,4})$"
)

AMOUNT_LIKE_PATTERN = re.compile(
    r"^\(?[-+]?[$€£¥₹]?\s?[-+]?[\d,]*\.?\d+\)?-?(\s?(DR|CR))?$",
    re.IGNORECASE,
)


def score_header(header: str, synonym: str) -> float:
    """Score how well a normalized header names a synonym.

    Exact match scores 1.0; header containing the synonym 0.6-0.9 scaled by
    length ratio; synonym containing the header 0.5-0.8; otherwise token
    overlap (Jaccard) scaled to at most 0.7.
    """
    if not header or not synonym:
        return 0.0
    if header == synonym:
        return 1.0
    if synonym in header:
        return 0.6 + 0.3 * len(synonym) / len(header)
    if len(header) >= MIN_CONTAINED_LENGTH and header in synonym:
        return 0.5 + 0.3 * len(header) / len(synonym)

    header_tokens = set(header.split())
    synonym_tokens = set(synonym.split())
    union = header_tokens | synonym_tokens
    if not union:
        return 0.0
    return 0.7 * len(header_tokens & synonym_tokens) / len(union)


def _fraction_matching(values: list[str], pattern: re.Pattern[str]) -> float:
    present = [v for v in values if v]
    if not present:
        return 0.0
    return sum(1 for v in present if pattern.match(v)) / len(present)


class ColumnMapper:
    """Resolves date/description/amount (and optional) columns from headers."""

    def __init__(self, min_confidence: float = MIN_CONFIDENCE):
        """Initialize the mapper.

        Args:
            min_confidence: Floor below which a column is not mapped.
        """
        self.min_confidence = min_confidence

    def map(
        self,
        headers: list[str],
        sample_rows: Optional[list[list[str]]] = None,
        filename_hint: Optional[str] = None,
    ) -> HeaderMapping:
        """Map headers to fields.

        Args:
            headers: Header cells.
            sample_rows: First data rows, used by the positional fallback.
            filename_hint: Original file name; bank names in it add synonyms.

        Returns:
            HeaderMapping for every resolvable field.

        Raises:
            ColumnMappingError: If a required field cannot be resolved.
        """
        samples = (sample_rows or [])[:SAMPLE_ROWS]
        normalized = [normalize_header(h) for h in headers]
        synonyms = self._synonyms_for(filename_hint)

        mapping = self._match_by_name(headers, normalized, synonyms)
        self._apply_positional_fallbacks(mapping, headers, samples)

        missing = [f for f in REQUIRED_FIELDS if f != "amount" and f not in mapping]
        if not mapping.has_amount:
            missing.append("amount")
        if missing:
            raise ColumnMappingError(sorted(missing, key=REQUIRED_FIELDS.index), filename_hint)

        logger.debug(
            "Column mapping: "
            + ", ".join(f"{k}={v.column_index}({v.confidence:.2f})" for k, v in mapping.fields.items())
        )
        return mapping

    def _synonyms_for(self, filename_hint: Optional[str]) -> dict[str, list[tuple[str, float]]]:
        """Build (synonym, bonus) lists for each field."""
        result = {field: [(s, 0.0) for s in names] for field, names in FIELD_SYNONYMS.items()}
        if not filename_hint:
            return result

        hint = filename_hint.lower()
        for bank, fields in BANK_SYNONYMS.items():
            if bank not in hint:
                continue
            logger.debug(f"Applying {bank.upper()} column synonyms")
            for field, names in fields.items():
                result[field] = [(s, BANK_SYNONYM_BONUS) for s in names] + result[field]
        return result

    def _match_by_name(
        self,
        headers: list[str],
        normalized: list[str],
        synonyms: dict[str, list[tuple[str, float]]],
    ) -> HeaderMapping:
        candidates: list[tuple[float, int, str, int]] = []
        for field in FIELD_PRIORITY:
            for index, header in enumerate(normalized):
                score = 0.0
                for synonym, bonus in synonyms[field]:
                    base = score_header(header, synonym)
                    if base > 0:
                        score = max(score, min(1.0, base + bonus))
                if score >= self.min_confidence:
                    candidates.append((score, FIELD_PRIORITY.index(field), field, index))

        candidates.sort(key=lambda c: (-c[0], c[1], c[3]))

        mapping = HeaderMapping()
        used_columns: set[int] = set()
        for score, _, field, index in candidates:
            if field in mapping or index in used_columns:
                continue
            mapping.fields[field] = ColumnMatch(index, round(score, 3), headers[index])
            used_columns.add(index)
        return mapping

    def _apply_positional_fallbacks(
        self,
        mapping: HeaderMapping,
        headers: list[str],
        samples: list[list[str]],
    ) -> None:
        """Resolve weak or missing required fields from column position and data."""
        width = len(headers)

        def column(index: int) -> list[str]:
            return [row[index] for row in samples if index < len(row)]

        def weak(field: str) -> bool:
            match = mapping.fields.get(field)
            return match is None or match.confidence < FALLBACK_THRESHOLD

        def used(exclude: str) -> set[int]:
            return {
                m.column_index for f, m in mapping.fields.items()
                if f != exclude and f in CORE_FIELDS
            }

        if weak("date"):
            taken = used("date")
            for index in range(min(3, width)):
                if index in taken:
                    continue
                values = column(index) or [headers[index]]
                fraction = _fraction_matching(values, DATE_LIKE_PATTERN)
                if fraction >= 0.5:
                    self._replace(mapping, "date", index, 0.4 + 0.2 * fraction, headers)
                    break

        if weak("amount") and not ("debit" in mapping and "credit" in mapping):
            taken = used("amount")
            for index in reversed(range(width)):
                if index in taken:
                    continue
                values = column(index) or [headers[index]]
                fraction = _fraction_matching(values, AMOUNT_LIKE_PATTERN)
                if fraction >= 0.5:
                    self._replace(mapping, "amount", index, 0.4 + 0.2 * fraction, headers)
                    break

        if weak("description"):
            taken = used("description")
            best_index: Optional[int] = None
            best_length = 0.0
            middle = range(1, width - 1) if width > 2 else range(width)
            for index in middle:
                if index in taken:
                    continue
                values = [v for v in column(index) if v] or [headers[index]]
                text_like = [
                    v for v in values
                    if not AMOUNT_LIKE_PATTERN.match(v) and not DATE_LIKE_PATTERN.match(v)
                ]
                if not text_like:
                    continue
                avg_length = sum(len(v) for v in text_like) / len(values)
                if avg_length > best_length:
                    best_length = avg_length
                    best_index = index
            if best_index is not None:
                self._replace(mapping, "description", best_index, 0.5, headers)

    def _replace(
        self,
        mapping: HeaderMapping,
        field: str,
        index: int,
        confidence: float,
        headers: list[str],
    ) -> None:
        current = mapping.fields.get(field)
        if current is not None and current.confidence >= confidence:
            return
        # An optional field holding this column gives it up to the required field
        for other, match in list(mapping.fields.items()):
            if other != field and match.column_index == index:
                del mapping.fields[other]
        logger.debug(f"Positional fallback: {field} -> column {index} ({headers[index]!r})")
        mapping.fields[field] = ColumnMatch(index, round(confidence, 3), headers[index])


def map_columns(
    headers: list[str],
    sample_rows: Optional[list[list[str]]] = None,
    filename_hint: Optional[str] = None,
) -> HeaderMapping:
    """Convenience function to map headers with default settings."""
    return ColumnMapper().map(headers, sample_rows, filename_hint)
