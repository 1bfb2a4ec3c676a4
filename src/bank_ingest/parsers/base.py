"""Base parser class and the fatal parse error hierarchy."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from bank_ingest.models.parse import ParsedCSV
from bank_ingest.utils.logging_config import get_logger

logger = get_logger(__name__)


class ParseError(Exception):
    """Exception raised when a whole file cannot be parsed."""

    def __init__(self, message: str, file_path: Optional[Path | str] = None):
        """Initialize ParseError.

        Args:
            message: Error message.
            file_path: Optional path or name of the file that failed to parse.
        """
        self.file_path = file_path
        super().__init__(message)


class EmptyInputError(ParseError):
    """The input contains no non-empty lines."""


class NoHeaderFoundError(ParseError):
    """No usable header line exists in the scanned prefix."""


class ColumnMappingError(ParseError):
    """One or more required fields could not be mapped to a column."""

    def __init__(
        self,
        missing_fields: list[str],
        file_path: Optional[Path | str] = None,
    ):
        self.missing_fields = missing_fields
        super().__init__(
            f"Could not map required column(s): {', '.join(missing_fields)}",
            file_path,
        )


class BaseParser(ABC):
    """Abstract base class for statement parsers.

    Subclasses must implement:
    - supported_extensions: List of file extensions this parser handles
    - parse_text(): Parse decoded file content
    """

    @property
    @abstractmethod
    def supported_extensions(self) -> list[str]:
        """Return list of file extensions this parser supports."""

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def can_parse(self, file_path: Path) -> bool:
        """Check whether the file extension is supported."""
        return file_path.suffix.lower() in self.supported_extensions

    @abstractmethod
    def parse_text(self, text: str, source: str = "") -> ParsedCSV:
        """Parse decoded text.

        Args:
            text: Raw file content.
            source: File name used in errors and log messages.

        Returns:
            Parsed headers, rows and validation metadata.

        Raises:
            ParseError: If the input cannot be parsed at all.
        """

    def parse(self, file_path: Path) -> ParsedCSV:
        """Read a UTF-8 file and parse it.

        Raises:
            ParseError: If parsing fails.
            FileNotFoundError: If file doesn't exist.
        """
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        try:
            text = file_path.read_text(encoding="utf-8-sig", errors="replace")
        except OSError as e:
            raise ParseError(f"Failed to read file: {e}", file_path) from e

        logger.debug(f"{self.name} reading {file_path.name} ({len(text)} chars)")
        return self.parse_text(text, file_path.name)
