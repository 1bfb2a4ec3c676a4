"""CSV tokenizer with delimiter and header-row inference."""

import re
from typing import Optional

from bank_ingest.models.parse import ParsedCSV, ParseValidation, SkippedRow
from bank_ingest.parsers.base import BaseParser, EmptyInputError, NoHeaderFoundError, ParseError
from bank_ingest.utils.logging_config import get_logger
from bank_ingest.utils.text import strip_invisible

logger = get_logger(__name__)

# Maximum number of rows to prevent memory exhaustion from many small rows
MAX_CSV_ROWS = 500_000

# Candidate separators, in tie-break order
CANDIDATE_SEPARATORS = ["\t", ",", ";", "|"]
DEFAULT_SEPARATOR = ","

# Lines sampled for separator inference
SEPARATOR_SAMPLE_LINES = 5

# Separators below these thresholds are not considered
MIN_AVG_OCCURRENCE = 1.0
MIN_CONSISTENCY = 0.5

# Lines scanned when looking for the header row
HEADER_SCAN_LINES = 10

# Cells that must contain a financial term for a line to count as a header
MIN_HEADER_TERMS = 2

HEADER_TERMS = (
    "date", "amount", "description", "details", "debit", "credit",
    "balance", "reference", "code", "particulars", "transaction",
)

QUOTE_CHARS = ('"', "'")

_LINE_SPLIT_PATTERN = re.compile(r"\r\n|\r|\n")


def split_lines(text: str) -> list[tuple[int, str]]:
    """Split text on any newline style, keeping non-empty lines.

    Returns:
        List of (1-based source line number, line) pairs.
    """
    return [
        (number, line)
        for number, line in enumerate(_LINE_SPLIT_PATTERN.split(text), start=1)
        if strip_invisible(line)
    ]


def tokenize_line(line: str, separator: str) -> list[str]:
    """Split one line into cells.

    A cell opened by a single or double quote runs until the matching
    quote; a doubled quote inside it is a literal quote. Separators inside
    quotes are kept. Quotes appearing mid-cell are literal (e.g. "Pak'n Save").
    Cells are stripped of whitespace and zero-width characters.
    """
    cells: list[str] = []
    current: list[str] = []
    quote_char: Optional[str] = None
    i = 0
    length = len(line)

    while i < length:
        char = line[i]
        if quote_char is not None:
            if char == quote_char:
                if i + 1 < length and line[i + 1] == quote_char:
                    current.append(char)
                    i += 1
                else:
                    quote_char = None
            else:
                current.append(char)
        elif char == separator:
            cells.append(strip_invisible("".join(current)))
            current = []
        elif char in QUOTE_CHARS and not "".join(current).strip():
            current = []
            quote_char = char
        else:
            current.append(char)
        i += 1

    cells.append(strip_invisible("".join(current)))
    return cells


def _separator_score(lines: list[str], separator: str) -> float:
    """Score a separator as avg occurrences per line times consistency."""
    counts = [len(tokenize_line(line, separator)) - 1 for line in lines]
    if not counts:
        return 0.0
    avg = sum(counts) / len(counts)
    highest = max(counts)
    if highest == 0:
        return 0.0
    consistency = 1 - (highest - min(counts)) / highest
    if avg < MIN_AVG_OCCURRENCE or consistency <= MIN_CONSISTENCY:
        return 0.0
    return avg * consistency


def detect_separator(lines: list[str]) -> str:
    """Infer the cell separator from the first few non-empty lines.

    Args:
        lines: Non-empty lines of the file.

    Returns:
        The best scoring separator, or comma if none qualifies.
    """
    sample = lines[:SEPARATOR_SAMPLE_LINES]
    best_separator = DEFAULT_SEPARATOR
    best_score = 0.0
    for separator in CANDIDATE_SEPARATORS:
        score = _separator_score(sample, separator)
        if score > best_score:
            best_score = score
            best_separator = separator
    return best_separator


def looks_like_header(cells: list[str]) -> bool:
    """Check if at least two cells contain a financial header term."""
    hits = sum(
        1 for cell in cells
        if any(term in cell.lower() for term in HEADER_TERMS)
    )
    return hits >= MIN_HEADER_TERMS


class CSVParser(BaseParser):
    """Parser turning raw CSV text into headers and equal-length rows."""

    def __init__(self, max_rows: int = MAX_CSV_ROWS):
        """Initialize CSV parser.

        Args:
            max_rows: Maximum number of body rows before the file is rejected.
        """
        self.max_rows = max_rows

    @property
    def supported_extensions(self) -> list[str]:
        return [".csv", ".tsv", ".txt"]

    def parse_text(self, text: str, source: str = "") -> ParsedCSV:
        """Parse CSV text.

        Args:
            text: Raw CSV content.
            source: File name used in errors and log messages.

        Returns:
            ParsedCSV with headers, padded/truncated rows and validation metadata.

        Raises:
            EmptyInputError: If the input has no non-empty lines.
            NoHeaderFoundError: If none of the first lines can serve as a header.
            ParseError: If the file exceeds the row limit.
        """
        numbered_lines = split_lines(text)
        if not numbered_lines:
            raise EmptyInputError("CSV input is empty", source or None)

        lines = [line for _, line in numbered_lines]
        separator = detect_separator(lines)
        header_index, headers = self._find_header(lines, separator, source)

        validation = ParseValidation(
            separator=separator,
            header_index=header_index,
            total_lines=len(lines),
        )

        rows: list[list[str]] = []
        line_numbers: list[int] = []
        width = len(headers)

        for line_number, line in numbered_lines[header_index + 1:]:
            cells = tokenize_line(line, separator)

            if not any(cells):
                validation.skipped_rows.append(SkippedRow(line_number, "Empty row"))
                continue

            if len(cells) > width:
                dropped = [c for c in cells[width:] if c]
                if dropped:
                    message = (
                        f"Line {line_number}: {len(cells)} cells for {width} headers, "
                        f"dropped {dropped!r}"
                    )
                    logger.warning(f"{source or 'input'}: {message}")
                    validation.warnings.append(message)
                cells = cells[:width]
            elif len(cells) < width:
                cells = cells + [""] * (width - len(cells))

            rows.append(cells)
            line_numbers.append(line_number)

            if len(rows) > self.max_rows:
                raise ParseError(
                    f"File exceeds maximum row limit ({self.max_rows:,} rows). "
                    f"Split file into smaller chunks.",
                    source or None,
                )

        validation.data_rows = len(rows)
        logger.info(
            f"Parsed {len(rows)} rows from {source or 'input'} "
            f"(separator={separator!r}, header line {header_index + 1}, "
            f"{len(validation.skipped_rows)} skipped)"
        )
        return ParsedCSV(
            headers=headers,
            rows=rows,
            validation=validation,
            line_numbers=line_numbers,
        )

    def _find_header(
        self, lines: list[str], separator: str, source: str
    ) -> tuple[int, list[str]]:
        """Locate the header row among the first non-empty lines.

        Returns:
            Tuple of (index into ``lines``, header cells).
        """
        scanned = [tokenize_line(line, separator) for line in lines[:HEADER_SCAN_LINES]]

        for index, cells in enumerate(scanned):
            if looks_like_header(cells):
                logger.debug(f"Header found at line {index + 1}: {cells}")
                return index, cells

        for index, cells in enumerate(scanned):
            if any(cells):
                logger.warning(
                    f"{source or 'input'}: no header-like line found, using line {index + 1}"
                )
                return index, cells

        raise NoHeaderFoundError(
            f"No header row found in first {HEADER_SCAN_LINES} lines", source or None
        )
