"""CSV parsing and column mapping for bank statement exports."""

from bank_ingest.parsers.base import (
    BaseParser,
    ColumnMappingError,
    EmptyInputError,
    NoHeaderFoundError,
    ParseError,
)
from bank_ingest.parsers.column_mapper import ColumnMapper, map_columns
from bank_ingest.parsers.csv_parser import CSVParser, detect_separator, tokenize_line

__all__ = [
    "BaseParser",
    "ParseError",
    "EmptyInputError",
    "NoHeaderFoundError",
    "ColumnMappingError",
    "CSVParser",
    "detect_separator",
    "tokenize_line",
    "ColumnMapper",
    "map_columns",
]
