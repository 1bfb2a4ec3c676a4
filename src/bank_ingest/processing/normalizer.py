"""Transaction normalizer for converting mapped CSV rows to Transactions."""

from decimal import Decimal
from typing import Optional

from bank_ingest.models.parse import METADATA_FIELDS, HeaderMapping, NormalizedValue, ParsedCSV, SkippedRow
from bank_ingest.models.transaction import Transaction
from bank_ingest.utils.date_utils import normalize_date
from bank_ingest.utils.decimal_utils import combine_debit_credit, normalize_amount
from bank_ingest.utils.logging_config import get_logger

logger = get_logger(__name__)

MAX_DESCRIPTION_LENGTH = 200


class Normalizer:
    """Normalizes mapped CSV rows into the standard Transaction format.

    The normalizer:
    - Converts date and amount cells with the tolerant normalizers
    - Combines separate debit/credit columns into one signed amount
    - Collects bank metadata (code, particulars, type, reference)
    - Records row-level warnings instead of failing
    """

    def __init__(self, account: str = "", max_description_length: int = MAX_DESCRIPTION_LENGTH):
        """Initialize normalizer.

        Args:
            account: Account name stamped on every transaction.
            max_description_length: Descriptions are cut to this length.
        """
        self.account = account
        self.max_description_length = max_description_length

    def normalize(
        self,
        parsed: ParsedCSV,
        mapping: HeaderMapping,
        source: str = "",
    ) -> list[Transaction]:
        """Normalize every parsed row.

        Rows with no date, description or amount are recorded in
        ``parsed.validation.skipped_rows``.

        Args:
            parsed: Tokenized CSV.
            mapping: Resolved column mapping.
            source: File name stamped on the transactions.

        Returns:
            List of Transaction objects in row order.
        """
        transactions = []
        line_numbers = parsed.line_numbers or list(range(2, len(parsed.rows) + 2))

        for row, line_number in zip(parsed.rows, line_numbers):
            txn = self._normalize_row(row, mapping, source, line_number)
            if txn is None:
                parsed.validation.skipped_rows.append(
                    SkippedRow(line_number, "No date, description or amount")
                )
                continue
            transactions.append(txn)

        warning_count = sum(len(t.warnings) for t in transactions)
        logger.info(
            f"Normalized {len(transactions)}/{len(parsed.rows)} rows from {source or 'input'}"
            + (f" ({warning_count} warnings)" if warning_count else "")
        )
        return transactions

    def _normalize_row(
        self,
        row: list[str],
        mapping: HeaderMapping,
        source: str,
        line_number: int,
    ) -> Optional[Transaction]:
        raw_date = self._cell(row, mapping, "date")
        description = self._cell(row, mapping, "description")
        merchant = self._cell(row, mapping, "merchant") or None

        amount, raw_amount = self._amount(row, mapping)

        if not raw_date and not description and not raw_amount:
            return None

        warnings = []
        date_value = normalize_date(raw_date)
        if date_value.warning:
            warnings.append(f"Line {line_number}: {date_value.warning}")
        if amount.warning:
            warnings.append(f"Line {line_number}: {amount.warning}")

        if not description:
            if raw_date:
                description = f"Transaction on {raw_date}"
            elif raw_amount:
                description = f"Transaction of {raw_amount}"
            else:
                description = f"Transaction {line_number}"

        metadata = {}
        for name in METADATA_FIELDS:
            value = self._cell(row, mapping, name)
            if value:
                metadata[name] = value

        for warning in warnings:
            logger.debug(f"{source}: {warning}")

        return Transaction(
            date=date_value.value,
            description=description[: self.max_description_length],
            amount=amount.value,
            account=self.account,
            merchant=merchant,
            bank_metadata=metadata,
            source_file=source,
            line_number=line_number,
            warnings=warnings,
        )

    def _amount(self, row: list[str], mapping: HeaderMapping) -> tuple[NormalizedValue[Decimal], str]:
        """Signed amount plus the raw text it came from."""
        if "amount" in mapping:
            raw = self._cell(row, mapping, "amount")
            return normalize_amount(raw), raw

        raw_debit = self._cell(row, mapping, "debit")
        raw_credit = self._cell(row, mapping, "credit")
        combined = combine_debit_credit(normalize_amount(raw_debit), normalize_amount(raw_credit))
        return combined, raw_debit or raw_credit

    @staticmethod
    def _cell(row: list[str], mapping: HeaderMapping, name: str) -> str:
        index = mapping.index_of(name)
        if index is None or index < 0 or index >= len(row):
            return ""
        return row[index].strip()
