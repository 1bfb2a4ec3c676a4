"""Rule-based transaction classifier."""

from collections.abc import Mapping
from decimal import Decimal
from typing import Optional

from bank_ingest.models.rule import Classification, ClassificationRule, RuleStage, RuleTable
from bank_ingest.models.transaction import ClassifiedTransaction, Transaction, TransactionKind
from bank_ingest.processing.rules import DEFAULT_RULES
from bank_ingest.utils.logging_config import get_logger

logger = get_logger(__name__)

UNCLASSIFIED_CONFIDENCE = 0.3
UNKNOWN_CONFIDENCE = 0.1


def _first_match(
    rules: list[ClassificationRule],
    text: str,
    amount: Decimal,
    metadata: Mapping[str, str],
) -> Optional[Classification]:
    for rule in rules:
        if rule.matches(text, amount, metadata):
            return Classification(
                kind=rule.stage.kind,
                category=rule.category,
                subcategory=rule.subcategory,
                confidence=rule.confidence,
                budget_group=rule.budget_group,
                rule_id=rule.id,
            )
    return None


def classify(
    description: str,
    amount: Decimal,
    merchant: Optional[str] = None,
    bank_metadata: Optional[Mapping[str, str]] = None,
    rules: RuleTable = DEFAULT_RULES,
) -> Classification:
    """Classify one transaction.

    Stages, first match wins:
    1. Reversal language
    2. Transfer keywords, bank metadata, or round amount with a keyword
    3. Positive amount: income table, else Other/UNCLASSIFIED_CREDIT
    4. Negative amount: transfer check on the absolute value, then the
       expense table, else Other/UNCLASSIFIED_DEBIT
    5. Zero amount: Other/UNKNOWN

    Args:
        description: Transaction description.
        amount: Signed amount (negative = money out).
        merchant: Optional merchant text, matched together with the description.
        bank_metadata: Bank columns such as code, particulars, type.
        rules: Rule table to evaluate.

    Returns:
        The Classification. Never raises.
    """
    text = f"{description} {merchant or ''}".lower()
    metadata = bank_metadata or {}

    result = _first_match(rules.for_stage(RuleStage.REVERSAL), text, amount, metadata)
    if result is not None:
        return result

    transfer_rules = rules.for_stage(RuleStage.TRANSFER)
    result = _first_match(transfer_rules, text, amount, metadata)
    if result is not None:
        return result

    if amount > 0:
        result = _first_match(rules.for_stage(RuleStage.INCOME), text, amount, metadata)
        if result is not None:
            return result
        return Classification(
            TransactionKind.OTHER, "Other", "UNCLASSIFIED_CREDIT", UNCLASSIFIED_CONFIDENCE
        )

    if amount < 0:
        result = _first_match(transfer_rules, text, abs(amount), metadata)
        if result is not None:
            return result
        result = _first_match(rules.for_stage(RuleStage.EXPENSE), text, amount, metadata)
        if result is not None:
            return result
        return Classification(
            TransactionKind.OTHER, "Other", "UNCLASSIFIED_DEBIT", UNCLASSIFIED_CONFIDENCE
        )

    return Classification(TransactionKind.OTHER, "Other", "UNKNOWN", UNKNOWN_CONFIDENCE)


class TransactionClassifier:
    """Applies ``classify`` to transactions using a fixed rule table."""

    def __init__(self, rules: RuleTable = DEFAULT_RULES):
        """Initialize classifier.

        Args:
            rules: Ordered rule table (built-in rules plus any custom rules).
        """
        self.rules = rules

    def classify(self, txn: Transaction) -> ClassifiedTransaction:
        """Classify a single transaction."""
        result = classify(
            txn.description,
            txn.amount,
            merchant=txn.merchant,
            bank_metadata=txn.bank_metadata,
            rules=self.rules,
        )
        return ClassifiedTransaction.from_transaction(
            txn,
            kind=result.kind,
            category=result.category,
            subcategory=result.subcategory,
            confidence=result.confidence,
            budget_group=result.budget_group,
            rule_id=result.rule_id,
        )

    def classify_all(self, transactions: list[Transaction]) -> list[ClassifiedTransaction]:
        """Classify a list of transactions, preserving order.

        Args:
            transactions: Normalized transactions.

        Returns:
            Classified transactions in the same order.
        """
        classified = [self.classify(txn) for txn in transactions]

        counts: dict[TransactionKind, int] = {}
        for txn in classified:
            counts[txn.kind] = counts.get(txn.kind, 0) + 1
        logger.info(
            f"Classified {len(classified)} transactions: "
            + ", ".join(f"{kind.value}={count}" for kind, count in sorted(
                counts.items(), key=lambda item: item[0].value
            ))
        )
        return classified
