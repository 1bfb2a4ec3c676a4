"""End-to-end ingestion: parse, classify, pair reversals, drop duplicates."""

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TypeVar

from bank_ingest.config import Config
from bank_ingest.models.report import FileResult, IngestResult, MonthlySummary
from bank_ingest.models.transaction import ClassifiedTransaction
from bank_ingest.parsers.base import ParseError
from bank_ingest.parsers.column_mapper import ColumnMapper
from bank_ingest.parsers.csv_parser import CSVParser
from bank_ingest.processing.aggregator import MonthlyAggregator
from bank_ingest.processing.ai.categorizer import AICategorizer
from bank_ingest.processing.classifier import TransactionClassifier
from bank_ingest.processing.deduplicator import DuplicateFilter
from bank_ingest.processing.normalizer import Normalizer
from bank_ingest.processing.reversal_detector import ReversalPairDetector
from bank_ingest.store import TransactionStore
from bank_ingest.utils.logging_config import LogContext, get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class SourceText:
    """CSV text with the file name used as a mapping hint."""

    name: str
    text: str


class IngestPipeline:
    """Runs the ingestion stages over one or more statement files.

    Each file is parsed, mapped, normalized and classified as an independent
    task on a bounded thread pool. Results are merged in input order before
    reversal detection, duplicate filtering and the optional external
    categorization. Nothing is persisted until ``save`` is called.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[TransactionStore] = None,
        categorizer: Optional[AICategorizer] = None,
        account: Optional[str] = None,
    ):
        """Initialize pipeline.

        Args:
            config: Configuration (defaults when None).
            store: Store supplying existing signatures; no dedup against
                stored data when None.
            categorizer: External categorizer for unclassified rows.
            account: Account name stamped on every transaction.
        """
        self.config = config or Config()
        self.store = store
        self.categorizer = categorizer
        self.account = account if account is not None else self.config.parser.default_account

        self.parser = CSVParser(max_rows=self.config.parser.max_rows)
        self.mapper = ColumnMapper()
        self.classifier = TransactionClassifier(self.config.rule_table)
        self.reversal_detector = ReversalPairDetector(
            window_days=self.config.reversal.window_days,
            amount_tolerance=self.config.reversal.amount_tolerance,
            similarity_threshold=self.config.reversal.similarity_threshold,
        )
        self.aggregator = MonthlyAggregator(
            min_transactions=self.config.aggregation.min_transactions,
            top_n=self.config.aggregation.top_n,
        )

    def process_text(self, text: str, source: str = "") -> FileResult:
        """Parse and classify one CSV text.

        Fatal parse errors are recorded on the result instead of raised.
        """
        result = FileResult(source=source)
        try:
            parsed = self.parser.parse_text(text, source)
            mapping = self.mapper.map(parsed.headers, parsed.rows, filename_hint=source)
        except ParseError as e:
            logger.error(f"Failed to parse {source or 'input'}: {e}")
            result.error = str(e)
            return result

        normalizer = Normalizer(
            account=self.account,
            max_description_length=self.config.parser.max_description_length,
        )
        transactions = normalizer.normalize(parsed, mapping, source)

        result.validation = parsed.validation
        result.transactions = self.classifier.classify_all(transactions)
        result.warnings = list(parsed.validation.warnings)
        for txn in transactions:
            result.warnings.extend(txn.warnings)
        for skipped in parsed.validation.skipped_rows:
            result.warnings.append(f"Line {skipped.line_number}: skipped ({skipped.reason})")
        return result

    def process_file(self, path: Path) -> FileResult:
        """Read and process one file."""
        try:
            text = path.read_text(encoding="utf-8-sig", errors="replace")
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}")
            return FileResult(source=path.name, error=f"Failed to read file: {e}")
        return self.process_text(text, path.name)

    def run(
        self,
        sources: list[SourceText],
        user_id: Optional[str] = None,
        use_ai: bool = False,
    ) -> IngestResult:
        """Ingest several CSV texts concurrently.

        Args:
            sources: Inputs in the order results should be merged.
            user_id: Store user whose saved transactions are treated as duplicates.
            use_ai: Send rule-unclassified transactions to the categorizer.

        Returns:
            Merged IngestResult.
        """
        with LogContext(logger, "ingest", files=len(sources)):
            files = self._map_concurrently(lambda s: self.process_text(s.text, s.name), sources)
            return self._merge(files, user_id, use_ai)

    def run_files(
        self,
        paths: list[Path],
        user_id: Optional[str] = None,
        use_ai: bool = False,
    ) -> IngestResult:
        """Like ``run`` but reads the inputs from disk."""
        with LogContext(logger, "ingest", files=len(paths)):
            files = self._map_concurrently(self.process_file, paths)
            return self._merge(files, user_id, use_ai)

    def _map_concurrently(self, func: Callable[[T], FileResult], items: list[T]) -> list[FileResult]:
        if len(items) <= 1 or self.config.max_workers <= 1:
            return [func(item) for item in items]

        workers = min(self.config.max_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            # map() yields in submission order
            return list(pool.map(func, items))

    def _merge(
        self,
        files: list[FileResult],
        user_id: Optional[str],
        use_ai: bool,
    ) -> IngestResult:
        merged: list[ClassifiedTransaction] = []
        for file_result in files:
            merged.extend(file_result.transactions)

        valid, pairs = self.reversal_detector.detect(merged)

        existing: set[str] = set()
        if self.store is not None and user_id is not None:
            existing = self.store.existing_signatures(user_id)
        fresh, duplicates = DuplicateFilter(existing).filter(valid)

        if use_ai:
            if self.categorizer is None:
                logger.warning("AI categorization requested but no categorizer configured")
            else:
                self.categorizer.categorize_unclassified(fresh)

        logger.info(
            f"Ingested {len(fresh)} transactions from {len(files)} files "
            f"({len(pairs)} reversal pairs, {len(duplicates)} duplicates)"
        )
        return IngestResult(
            transactions=fresh,
            reversal_pairs=pairs,
            duplicates=duplicates,
            files=files,
        )

    def summarize(
        self,
        result: IngestResult,
        month: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> MonthlySummary:
        """Monthly summary over the user's stored transactions plus this run.

        Without a store or user only the run's valid transactions count.
        Rows of the run that were already saved are not counted twice.
        """
        transactions = result.transactions
        if self.store is not None and user_id is not None:
            stored = self.store.transactions(user_id)
            stored_ids = {t.id for t in stored}
            transactions = stored + [t for t in result.transactions if t.id not in stored_ids]
            logger.debug(f"Summarizing {len(stored)} stored and {len(result.transactions)} new transactions")
        return self.aggregator.summarize(transactions, month)

    def save(self, result: IngestResult, user_id: str) -> int:
        """Persist the valid transactions of a run.

        Raises:
            ValueError: If the pipeline has no store.
        """
        if self.store is None:
            raise ValueError("No store configured")
        return self.store.save(user_id, result.transactions)
