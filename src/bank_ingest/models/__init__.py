"""Data models for transactions, classification rules, parse results and reports."""

from bank_ingest.models.parse import (
    ColumnMatch,
    HeaderMapping,
    NormalizedValue,
    ParsedCSV,
    ParseValidation,
    SkippedRow,
)
from bank_ingest.models.report import FileResult, IngestResult, MonthlySummary
from bank_ingest.models.rule import (
    Classification,
    ClassificationRule,
    MatchMode,
    RuleStage,
    RuleTable,
)
from bank_ingest.models.transaction import (
    ClassifiedTransaction,
    ReversalPair,
    Transaction,
    TransactionKind,
)

__all__ = [
    "Transaction",
    "TransactionKind",
    "ClassifiedTransaction",
    "ReversalPair",
    "Classification",
    "ClassificationRule",
    "MatchMode",
    "RuleStage",
    "RuleTable",
    "NormalizedValue",
    "SkippedRow",
    "ParseValidation",
    "ColumnMatch",
    "HeaderMapping",
    "ParsedCSV",
    "MonthlySummary",
    "FileResult",
    "IngestResult",
]
