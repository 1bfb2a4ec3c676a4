"""CSV exporter for ingestion results."""

import csv
from pathlib import Path
from typing import Optional

from bank_ingest.models.report import IngestResult, MonthlySummary
from bank_ingest.models.transaction import ClassifiedTransaction
from bank_ingest.utils.date_utils import date_to_iso
from bank_ingest.utils.logging_config import get_logger
from bank_ingest.utils.sanitize import sanitize_cells, safe_filename

logger = get_logger(__name__)

TRANSACTION_HEADERS = [
    "Date", "Account", "Description", "Merchant", "Amount", "Kind",
    "Category", "Subcategory", "Budget Group", "Confidence", "Source",
    "Source File", "Line",
]

REVERSAL_HEADERS = [
    "Debit Date", "Credit Date", "Amount", "Days Apart",
    "Debit Description", "Credit Description",
]


def _money(value: object) -> str:
    return f"{value:.2f}"


class CSVExporter:
    """Exports an ingestion run to CSV files.

    Creates in the output directory:
    - transactions.csv (valid classified transactions)
    - reversal_pairs.csv (only when pairs were found)
    - summary_<month>.csv (one per summary passed in)
    """

    def __init__(self, output_dir: Path):
        """Initialize CSV exporter.

        Args:
            output_dir: Directory the files are written to (created if needed).
        """
        self.output_dir = output_dir

    def export(
        self,
        result: IngestResult,
        summaries: Optional[list[MonthlySummary]] = None,
    ) -> list[Path]:
        """Export a run.

        Args:
            result: Merged ingestion result.
            summaries: Monthly summaries to write alongside.

        Returns:
            List of paths to created CSV files.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)

        created = [self.export_transactions(result.transactions)]
        if result.reversal_pairs:
            created.append(self._export_reversal_pairs(result))
        for summary in summaries or []:
            created.append(self.export_summary(summary))

        logger.info(f"Exported {len(created)} CSV files to {self.output_dir}")
        return created

    def export_transactions(self, transactions: list[ClassifiedTransaction]) -> Path:
        """Write transactions sorted by date, preserving input order within a day."""
        output_path = self.output_dir / "transactions.csv"

        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(TRANSACTION_HEADERS)

            for txn in sorted(transactions, key=lambda t: t.date):
                text = sanitize_cells([
                    txn.account, txn.description, txn.merchant,
                ])
                labels = sanitize_cells([
                    txn.category, txn.subcategory, txn.budget_group,
                ])
                writer.writerow([
                    date_to_iso(txn.date),
                    *text,
                    _money(txn.signed_amount),
                    txn.kind.value,
                    *labels,
                    f"{txn.confidence:.2f}",
                    txn.category_source,
                    *sanitize_cells([txn.source_file]),
                    txn.line_number if txn.line_number is not None else "",
                ])

        logger.info(f"Exported {len(transactions)} transactions to {output_path}")
        return output_path

    def _export_reversal_pairs(self, result: IngestResult) -> Path:
        output_path = self.output_dir / "reversal_pairs.csv"

        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(REVERSAL_HEADERS)
            for pair in result.reversal_pairs:
                writer.writerow([
                    date_to_iso(pair.debit.date),
                    date_to_iso(pair.credit.date),
                    _money(pair.amount),
                    pair.days_apart,
                    *sanitize_cells([pair.debit.description, pair.credit.description]),
                ])

        logger.info(f"Exported {len(result.reversal_pairs)} reversal pairs to {output_path}")
        return output_path

    def export_summary(self, summary: MonthlySummary) -> Path:
        """Write one month's summary as label/value rows plus category sections."""
        output_path = self.output_dir / f"summary_{safe_filename(summary.month)}.csv"

        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)

            writer.writerow(["MONTHLY SUMMARY", summary.month])
            writer.writerow(["Income", _money(summary.income)])
            writer.writerow(["Expenses", _money(summary.expenses)])
            writer.writerow(["Balance", _money(summary.balance)])
            writer.writerow(["Savings Rate %", f"{summary.savings_rate:.1f}"])
            writer.writerow(["Transactions", summary.transaction_count])
            writer.writerow(["Transfers Excluded", summary.transfer_count])
            writer.writerow(["Reversals Excluded", summary.reversal_count])
            writer.writerow([])

            writer.writerow(["CATEGORY TOTALS", ""])
            for category, amount in sorted(summary.category_totals.items()):
                writer.writerow([*sanitize_cells([category]), _money(amount)])
            writer.writerow([])

            writer.writerow(["TOP EXPENSE CATEGORIES", ""])
            for category, amount in summary.top_expense_categories:
                writer.writerow([*sanitize_cells([category]), _money(amount)])

        logger.info(f"Exported summary for {summary.month} to {output_path}")
        return output_path
