"""Detection of offsetting debit/credit pairs."""

from decimal import Decimal

from bank_ingest.models.transaction import ClassifiedTransaction, ReversalPair
from bank_ingest.utils.logging_config import get_logger
from bank_ingest.utils.text import is_similar

logger = get_logger(__name__)

DEFAULT_WINDOW_DAYS = 14
DEFAULT_AMOUNT_TOLERANCE = Decimal("0.01")
DEFAULT_SIMILARITY_THRESHOLD = 0.8


class ReversalPairDetector:
    """Finds debit/credit pairs that cancel each other out.

    Transactions are scanned in ascending date order (stable). For each one not
    yet paired, the earliest later transaction within the window with the
    same absolute amount, the opposite sign and a similar description or
    merchant becomes its partner. Each transaction joins at most one pair.
    """

    def __init__(
        self,
        window_days: int = DEFAULT_WINDOW_DAYS,
        amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ):
        """Initialize detector.

        Args:
            window_days: Maximum days between the two sides of a pair.
            amount_tolerance: Absolute amounts must differ by less than this.
            similarity_threshold: Levenshtein similarity needed for text to match.
        """
        self.window_days = window_days
        self.amount_tolerance = amount_tolerance
        self.similarity_threshold = similarity_threshold

    def detect(
        self, transactions: list[ClassifiedTransaction]
    ) -> tuple[list[ClassifiedTransaction], list[ReversalPair]]:
        """Split transactions into the valid set and reversal pairs.

        Args:
            transactions: Classified transactions in any order.

        Returns:
            Tuple of (valid transactions in input order, reversal pairs).
        """
        ordered = sorted(range(len(transactions)), key=lambda i: transactions[i].date)
        visited: set[int] = set()
        pairs: list[ReversalPair] = []

        for position, i in enumerate(ordered):
            if i in visited:
                continue
            current = transactions[i]

            for j in ordered[position + 1:]:
                other = transactions[j]
                if (other.date - current.date).days > self.window_days:
                    break
                if j in visited:
                    continue
                if self._is_pair(current, other):
                    visited.update((i, j))
                    if current.signed_amount < 0:
                        pairs.append(ReversalPair(debit=current, credit=other))
                    else:
                        pairs.append(ReversalPair(debit=other, credit=current))
                    logger.debug(
                        f"Reversal pair: {current.description!r} / {other.description!r} "
                        f"({current.amount})"
                    )
                    break

        valid = [txn for i, txn in enumerate(transactions) if i not in visited]
        if pairs:
            logger.info(f"Found {len(pairs)} reversal pairs, {len(valid)} transactions remain")
        return valid, pairs

    def _is_pair(self, a: ClassifiedTransaction, b: ClassifiedTransaction) -> bool:
        if abs(abs(a.signed_amount) - abs(b.signed_amount)) >= self.amount_tolerance:
            return False
        if (a.signed_amount > 0) == (b.signed_amount > 0):
            return False
        if a.signed_amount == 0 or b.signed_amount == 0:
            return False
        return is_similar(
            a.description, b.description, self.similarity_threshold
        ) or is_similar(a.merchant, b.merchant, self.similarity_threshold)


def detect_reversal_pairs(
    transactions: list[ClassifiedTransaction],
) -> tuple[list[ClassifiedTransaction], list[ReversalPair]]:
    """Convenience function to detect reversal pairs with default settings."""
    return ReversalPairDetector().detect(transactions)
