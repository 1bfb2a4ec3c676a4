"""Transaction data models for ingested bank statement rows."""

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum


class TransactionKind(Enum):
    """Classification bucket of a transaction."""

    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"
    REVERSAL = "reversal"
    OTHER = "other"


@dataclass
class Transaction:
    """Normalized transaction before classification.

    Attributes:
        date: Calendar date of the transaction.
        description: Description/details text from the statement.
        amount: Signed amount as parsed (negative = money out).
        account: Account name the statement belongs to.
        merchant: Optional merchant/payee text (separate column in some banks).
        bank_metadata: Extra bank columns such as code, particulars or type.
        source_file: Name of the file this row came from.
        line_number: 1-based line number within the source text.
        warnings: Row-level warnings recorded while normalizing.
        id: Unique identifier for this transaction.
    """

    date: date
    description: str
    amount: Decimal
    account: str = ""
    merchant: str | None = None
    bank_metadata: dict[str, str] = field(default_factory=dict)
    source_file: str = ""
    line_number: int | None = None
    warnings: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def month_year(self) -> str:
        """Reporting month key in YYYY-MM form."""
        return f"{self.date.year:04d}-{self.date.month:02d}"

    def __repr__(self) -> str:
        return (
            f"Transaction(date={self.date}, "
            f"description={self.description[:30]!r}, "
            f"amount={self.amount})"
        )


@dataclass
class ClassifiedTransaction(Transaction):
    """Transaction with its classification applied.

    ``amount`` is always the absolute value once classified; the original
    signed value is kept in ``raw_amount``.
    """

    raw_amount: Decimal = field(default_factory=lambda: Decimal("0"))
    kind: TransactionKind = TransactionKind.OTHER
    category: str = "Other"
    subcategory: str | None = None
    confidence: float = 0.0
    budget_group: str | None = None
    category_source: str = "rule"
    rule_id: str | None = None

    @classmethod
    def from_transaction(
        cls,
        txn: Transaction,
        kind: TransactionKind,
        category: str,
        subcategory: str | None,
        confidence: float,
        budget_group: str | None = None,
        rule_id: str | None = None,
    ) -> "ClassifiedTransaction":
        """Build a classified transaction from a normalized one."""
        return cls(
            date=txn.date,
            description=txn.description,
            amount=abs(txn.amount),
            account=txn.account,
            merchant=txn.merchant,
            bank_metadata=dict(txn.bank_metadata),
            source_file=txn.source_file,
            line_number=txn.line_number,
            warnings=list(txn.warnings),
            id=txn.id,
            raw_amount=txn.amount,
            kind=kind,
            category=category,
            subcategory=subcategory,
            confidence=confidence,
            budget_group=budget_group,
            rule_id=rule_id,
        )

    @property
    def is_income(self) -> bool:
        return self.kind is TransactionKind.INCOME

    @property
    def is_expense(self) -> bool:
        return self.kind is TransactionKind.EXPENSE

    @property
    def is_transfer(self) -> bool:
        return self.kind is TransactionKind.TRANSFER

    @property
    def is_reversal(self) -> bool:
        return self.kind is TransactionKind.REVERSAL

    @property
    def is_ignored(self) -> bool:
        """Excluded from income/expense totals."""
        return self.kind not in (TransactionKind.INCOME, TransactionKind.EXPENSE)

    @property
    def signed_amount(self) -> Decimal:
        """The amount with its original sign."""
        return self.raw_amount

    def reclassify(
        self,
        kind: TransactionKind,
        category: str,
        subcategory: str | None,
        confidence: float,
        source: str,
        budget_group: str | None = None,
    ) -> None:
        """Replace the classification in place (used by the external categorizer)."""
        self.kind = kind
        self.category = category
        self.subcategory = subcategory
        self.confidence = max(0.0, min(1.0, confidence))
        self.category_source = source
        self.budget_group = budget_group
        self.rule_id = None

    def __repr__(self) -> str:
        return (
            f"ClassifiedTransaction(date={self.date}, "
            f"description={self.description[:30]!r}, "
            f"amount={self.signed_amount}, category={self.category!r})"
        )


@dataclass
class ReversalPair:
    """Two offsetting transactions that cancel each other out."""

    debit: ClassifiedTransaction
    credit: ClassifiedTransaction

    @property
    def amount(self) -> Decimal:
        return self.debit.amount

    @property
    def days_apart(self) -> int:
        return abs((self.credit.date - self.debit.date).days)
