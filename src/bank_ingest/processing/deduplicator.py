"""Duplicate transaction suppression against previously stored data."""

from collections.abc import Iterable
from decimal import Decimal

from bank_ingest.models.transaction import ClassifiedTransaction, Transaction
from bank_ingest.utils.decimal_utils import format_currency
from bank_ingest.utils.logging_config import get_logger
from bank_ingest.utils.text import normalize_text

logger = get_logger(__name__)


def transaction_signature(txn: Transaction) -> str:
    """Content signature used to recognise a re-submitted transaction.

    ``date-amount-description-merchant`` with the absolute amount at two
    decimals and text reduced to lowercase alphanumerics.
    """
    return signature_for(txn.date.isoformat(), abs(txn.amount), txn.description, txn.merchant)


def signature_for(
    iso_date: str,
    amount: Decimal,
    description: str,
    merchant: str | None = None,
) -> str:
    """Build a signature from raw parts (used for stored records)."""
    return "-".join([
        iso_date,
        format_currency(abs(amount), include_sign=False),
        normalize_text(description),
        normalize_text(merchant),
    ])


class DuplicateFilter:
    """Drops transactions whose signature is already known.

    Known signatures come from the store. Repeats inside the incoming batch
    are dropped after their first occurrence. Order is preserved.
    """

    def __init__(self, existing_signatures: Iterable[str] = ()):
        """Initialize filter.

        Args:
            existing_signatures: Signatures of previously stored transactions.
        """
        self.existing_signatures = set(existing_signatures)

    def filter(
        self, transactions: list[ClassifiedTransaction]
    ) -> tuple[list[ClassifiedTransaction], list[ClassifiedTransaction]]:
        """Split transactions into new ones and duplicates.

        Args:
            transactions: Candidate transactions.

        Returns:
            Tuple of (new transactions, dropped duplicates), both in input order.
        """
        seen = set(self.existing_signatures)
        fresh: list[ClassifiedTransaction] = []
        duplicates: list[ClassifiedTransaction] = []

        for txn in transactions:
            signature = transaction_signature(txn)
            if signature in seen:
                duplicates.append(txn)
                continue
            seen.add(signature)
            fresh.append(txn)

        if duplicates:
            logger.info(
                f"Dropped {len(duplicates)} duplicate transactions, {len(fresh)} new"
            )
        return fresh, duplicates


def filter_duplicates(
    transactions: list[ClassifiedTransaction],
    existing_signatures: Iterable[str] = (),
) -> list[ClassifiedTransaction]:
    """Convenience function returning only the new transactions."""
    fresh, _ = DuplicateFilter(existing_signatures).filter(transactions)
    return fresh
