"""Monthly income/expense aggregation."""

from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Optional

from bank_ingest.models.report import MonthlySummary
from bank_ingest.models.transaction import ClassifiedTransaction
from bank_ingest.utils.date_utils import month_key
from bank_ingest.utils.logging_config import get_logger

logger = get_logger(__name__)

# Months with fewer non-ignored transactions are not picked automatically
MIN_TRANSACTIONS_FOR_ACTIVE_MONTH = 3

DEFAULT_TOP_N = 5


class MonthlyAggregator:
    """Computes income, expenses and savings rate per reporting month."""

    def __init__(
        self,
        min_transactions: int = MIN_TRANSACTIONS_FOR_ACTIVE_MONTH,
        top_n: int = DEFAULT_TOP_N,
    ):
        """Initialize aggregator.

        Args:
            min_transactions: Minimum count for a month to be auto-selected.
            top_n: Number of expense categories kept in the ranking.
        """
        self.min_transactions = min_transactions
        self.top_n = top_n

    def active_month(
        self,
        transactions: list[ClassifiedTransaction],
        today: Optional[date] = None,
    ) -> str:
        """Pick the reporting month.

        The month with the most non-ignored transactions wins (ties go to the
        more recent month), provided it has at least ``min_transactions``.
        Otherwise the current calendar month is used.
        """
        counts = Counter(t.month_year for t in transactions if not t.is_ignored)
        qualifying = [(count, month) for month, count in counts.items() if count >= self.min_transactions]
        if qualifying:
            return max(qualifying)[1]
        fallback = month_key(today or date.today())
        logger.debug(f"No month has {self.min_transactions}+ transactions, using {fallback}")
        return fallback

    def summarize(
        self,
        transactions: list[ClassifiedTransaction],
        month: Optional[str] = None,
        today: Optional[date] = None,
    ) -> MonthlySummary:
        """Summarize one month.

        Args:
            transactions: Classified transactions (reversal pairs already removed).
            month: YYYY-MM to summarize; chosen automatically if None.
            today: Reference date for the current-month fallback.

        Returns:
            MonthlySummary for the month.
        """
        month = month or self.active_month(transactions, today)
        summary = MonthlySummary(month=month)
        expense_totals: dict[str, Decimal] = {}

        for txn in transactions:
            if txn.month_year != month:
                continue
            if txn.is_transfer:
                summary.transfer_count += 1
                continue
            if txn.is_reversal:
                summary.reversal_count += 1
                continue
            if txn.is_ignored:
                continue

            summary.transaction_count += 1
            totals = summary.category_totals
            totals[txn.category] = totals.get(txn.category, Decimal("0")) + txn.amount

            if txn.is_income:
                summary.income += txn.amount
            elif txn.is_expense:
                summary.expenses += txn.amount
                expense_totals[txn.category] = expense_totals.get(txn.category, Decimal("0")) + txn.amount

        summary.top_expense_categories = sorted(
            expense_totals.items(), key=lambda item: (-item[1], item[0])
        )[: self.top_n]

        logger.info(
            f"Summary {month}: income={summary.income}, expenses={summary.expenses}, "
            f"savings rate={summary.savings_rate:.1f}%"
        )
        return summary

    def summarize_all(self, transactions: list[ClassifiedTransaction]) -> list[MonthlySummary]:
        """One summary per month present in the data, oldest first."""
        months = sorted({t.month_year for t in transactions})
        return [self.summarize(transactions, month) for month in months]


def summarize_month(
    transactions: list[ClassifiedTransaction],
    month: Optional[str] = None,
) -> MonthlySummary:
    """Convenience function to summarize with default settings."""
    return MonthlyAggregator().summarize(transactions, month)
