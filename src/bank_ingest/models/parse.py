"""Data models describing the outcome of parsing a CSV file."""

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")

REQUIRED_FIELDS = ("date", "description", "amount")
METADATA_FIELDS = ("code", "particulars", "type", "reference")


@dataclass(frozen=True)
class NormalizedValue(Generic[T]):
    """Best-effort normalization result: a value plus an optional warning."""

    value: T
    warning: str | None = None

    @property
    def ok(self) -> bool:
        return self.warning is None


@dataclass(frozen=True)
class SkippedRow:
    """A body line that produced no transaction."""

    line_number: int
    reason: str


@dataclass
class ParseValidation:
    """Metadata describing how a file was parsed.

    Attributes:
        separator: Detected cell separator.
        header_index: Index of the header line among non-empty lines.
        total_lines: Number of non-empty lines in the input.
        data_rows: Number of body rows returned.
        skipped_rows: Rows dropped with their reason.
        warnings: Non-fatal problems (truncated rows, ambiguous headers).
    """

    separator: str
    header_index: int
    total_lines: int
    data_rows: int = 0
    skipped_rows: list[SkippedRow] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ColumnMatch:
    """Resolved column for one semantic field."""

    column_index: int
    confidence: float
    header: str = ""


@dataclass
class HeaderMapping:
    """Mapping from semantic field name to resolved column."""

    fields: dict[str, ColumnMatch] = field(default_factory=dict)

    def index_of(self, name: str) -> int | None:
        match = self.fields.get(name)
        return match.column_index if match else None

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __getitem__(self, name: str) -> ColumnMatch:
        return self.fields[name]

    @property
    def has_amount(self) -> bool:
        """True when a single amount column or a debit/credit pair is mapped."""
        return "amount" in self.fields or ("debit" in self.fields and "credit" in self.fields)


@dataclass
class ParsedCSV:
    """Tokenized CSV: headers, equal-length rows and validation metadata."""

    headers: list[str]
    rows: list[list[str]]
    validation: ParseValidation
    # 1-based source line number for each entry of ``rows``
    line_numbers: list[int] = field(default_factory=list)
