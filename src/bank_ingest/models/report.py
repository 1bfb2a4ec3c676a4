"""Report data models for ingestion output."""

from dataclasses import dataclass, field
from decimal import Decimal

from bank_ingest.models.parse import ParseValidation
from bank_ingest.models.transaction import ClassifiedTransaction, ReversalPair


@dataclass
class MonthlySummary:
    """Income/expense summary for one reporting month.

    Single source of truth for the CLI table and the CSV exporter.

    Attributes:
        month: Reporting month in YYYY-MM form.
        income: Sum of income amounts.
        expenses: Sum of expense amounts (positive).
        transaction_count: Non-ignored transactions in the month.
        category_totals: Amount per category (income and expense).
        top_expense_categories: Expense categories ranked by amount, descending.
        transfer_count: Transfers excluded from the totals.
        reversal_count: Reversals excluded from the totals.
    """

    month: str
    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")
    transaction_count: int = 0
    category_totals: dict[str, Decimal] = field(default_factory=dict)
    top_expense_categories: list[tuple[str, Decimal]] = field(default_factory=list)
    transfer_count: int = 0
    reversal_count: int = 0

    @property
    def balance(self) -> Decimal:
        """Income minus expenses."""
        return self.income - self.expenses

    @property
    def savings_rate(self) -> float:
        """Percentage of income kept; 0 when there is no income."""
        if self.income == 0:
            return 0.0
        return float(self.balance / self.income * 100)


@dataclass
class FileResult:
    """Outcome of ingesting one file."""

    source: str
    transactions: list[ClassifiedTransaction] = field(default_factory=list)
    validation: ParseValidation | None = None
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class IngestResult:
    """Merged output of a pipeline run over one or more files.

    Attributes:
        transactions: Valid classified transactions (reversal pairs and
            duplicates removed), in input order.
        reversal_pairs: Offsetting pairs removed from the valid set.
        duplicates: Transactions dropped as already stored or repeated.
        files: Per-file results in input order.
    """

    transactions: list[ClassifiedTransaction] = field(default_factory=list)
    reversal_pairs: list[ReversalPair] = field(default_factory=list)
    duplicates: list[ClassifiedTransaction] = field(default_factory=list)
    files: list[FileResult] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [f"{f.source}: {w}" for f in self.files for w in f.warnings]

    @property
    def errors(self) -> dict[str, str]:
        return {f.source: f.error for f in self.files if f.error is not None}

    @property
    def succeeded(self) -> bool:
        """True when at least one file produced rows."""
        return any(not f.failed and f.transactions for f in self.files)
