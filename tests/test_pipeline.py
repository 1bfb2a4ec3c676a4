"""End-to-end tests for the ingestion pipeline."""

from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from bank_ingest.config import Config
from bank_ingest.models.transaction import TransactionKind
from bank_ingest.processing.ai.categorizer import AICategorizer
from bank_ingest.processing.pipeline import IngestPipeline, SourceText
from bank_ingest.store import InMemoryStore, JSONFileStore

SAMPLE_CSV = "Date,Details,Amount\n01/01/2024,Countdown,-42.10\n02/01/2024,Salary,2000.00\n"


class TestProcessText:
    """Tests for single-file processing."""

    def test_sample_statement(self) -> None:
        """Test the sample statement end to end."""
        result = IngestPipeline(account="Everyday").process_text(SAMPLE_CSV, "anz.csv")

        assert result.error is None
        assert len(result.transactions) == 2
        groceries, salary = result.transactions
        assert groceries.category == "Groceries"
        assert groceries.is_expense
        assert groceries.account == "Everyday"
        assert salary.subcategory == "SALARY"
        assert salary.is_income

    def test_parse_error_recorded(self) -> None:
        """Test that a parse error is recorded on the file."""
        result = IngestPipeline().process_text("", "empty.csv")

        assert result.failed
        assert "empty" in result.error
        assert result.transactions == []

    def test_mapping_error_recorded(self) -> None:
        """Test that a mapping error is recorded on the file."""
        result = IngestPipeline().process_text("Date,Details,Notes\n01/01/2024,Shop,hi\n", "x.csv")

        assert result.failed
        assert "amount" in result.error

    def test_warnings_collected(self) -> None:
        """Test that row warnings are collected."""
        text = "Date,Details,Amount\n32/13/2025,Shop,-5\n,,\n01/01/2024,Cafe,-4,extra\n"

        result = IngestPipeline().process_text(text, "messy.csv")

        assert any("Unparseable date" in w for w in result.warnings)
        assert any("Line 3: skipped (Empty row)" == w for w in result.warnings)
        assert any(w.startswith("Line 4:") and "dropped" in w for w in result.warnings)

    def test_process_missing_file(self, tmp_path: Path) -> None:
        """Test a missing input file."""
        result = IngestPipeline().process_file(tmp_path / "missing.csv")

        assert result.failed
        assert result.source == "missing.csv"


class TestRun:
    """Tests for multi-file runs."""

    def test_end_to_end_summary(self) -> None:
        """Test the monthly summary for the sample statement."""
        pipeline = IngestPipeline()

        result = pipeline.run([SourceText("anz.csv", SAMPLE_CSV)])
        summary = pipeline.summarize(result, "2024-01")

        assert result.succeeded
        assert summary.income == Decimal("2000.00")
        assert summary.expenses == Decimal("42.10")
        assert summary.savings_rate == pytest.approx(97.9, abs=0.1)

    def test_failing_file_does_not_abort_run(self) -> None:
        """Test that one failing file does not stop the run."""
        result = IngestPipeline().run([
            SourceText("broken.csv", ""),
            SourceText("anz.csv", SAMPLE_CSV),
        ])

        assert result.succeeded
        assert list(result.errors) == ["broken.csv"]
        assert len(result.transactions) == 2

    def test_nothing_readable_is_not_success(self) -> None:
        """Test that a run with no readable file fails."""
        result = IngestPipeline().run([SourceText("broken.csv", "")])
        assert not result.succeeded

    def test_input_order_preserved_across_workers(self) -> None:
        """Test that results keep input order across workers."""
        config = Config(max_workers=4)
        sources = [
            SourceText(f"file{i}.csv", f"Date,Details,Amount\n0{i + 1}/02/2024,Shop {i},-{i + 1}.00\n")
            for i in range(6)
        ]

        result = IngestPipeline(config).run(sources)

        assert [f.source for f in result.files] == [s.name for s in sources]
        assert [t.description for t in result.transactions] == [f"Shop {i}" for i in range(6)]

    def test_reversal_pairs_across_files(self) -> None:
        """Test reversal pairing across files."""
        result = IngestPipeline().run([
            SourceText("a.csv", "Date,Details,Amount\n01/03/2024,Kmart Albany,-59.99\n"),
            SourceText("b.csv", "Date,Details,Amount\n04/03/2024,Kmart Albany,59.99\n"),
        ])

        assert len(result.reversal_pairs) == 1
        assert result.transactions == []

    def test_run_files(self, tmp_path: Path) -> None:
        """Test running from file paths."""
        path = tmp_path / "anz.csv"
        path.write_text(SAMPLE_CSV)

        result = IngestPipeline().run_files([path, tmp_path / "missing.csv"])

        assert len(result.transactions) == 2
        assert "missing.csv" in result.errors


class TestStoreIntegration:
    """Tests for duplicate suppression against a store."""

    def test_second_run_drops_saved_transactions(self) -> None:
        """Test that saved transactions are dropped on the next run."""
        store = InMemoryStore()
        pipeline = IngestPipeline(store=store)

        first = pipeline.run([SourceText("anz.csv", SAMPLE_CSV)], user_id="alice")
        assert pipeline.save(first, "alice") == 2

        second = pipeline.run([SourceText("anz.csv", SAMPLE_CSV)], user_id="alice")

        assert second.transactions == []
        assert len(second.duplicates) == 2

    def test_other_user_not_affected(self) -> None:
        """Test that another user's rows are not duplicates."""
        store = InMemoryStore()
        pipeline = IngestPipeline(store=store)
        pipeline.save(pipeline.run([SourceText("anz.csv", SAMPLE_CSV)], user_id="alice"), "alice")

        result = pipeline.run([SourceText("anz.csv", SAMPLE_CSV)], user_id="bob")

        assert len(result.transactions) == 2

    def test_run_does_not_save(self) -> None:
        """Test that run alone does not save."""
        store = InMemoryStore()
        IngestPipeline(store=store).run([SourceText("anz.csv", SAMPLE_CSV)], user_id="alice")
        assert store.transactions("alice") == []

    def test_summary_includes_stored_transactions(self) -> None:
        """A later upload for the same month is summarized with what was saved."""
        pipeline = IngestPipeline(store=InMemoryStore())
        pipeline.save(pipeline.run([SourceText("anz.csv", SAMPLE_CSV)], user_id="alice"), "alice")

        second = pipeline.run(
            [SourceText("later.csv", "Date,Details,Amount\n20/01/2024,Countdown,-5.00\n")],
            user_id="alice",
        )
        summary = pipeline.summarize(second, "2024-01", user_id="alice")

        assert summary.income == Decimal("2000.00")
        assert summary.expenses == Decimal("47.10")

    def test_resubmitted_file_keeps_stored_summary(self, tmp_path: Path) -> None:
        """Re-running a saved file still reports the stored month."""
        pipeline = IngestPipeline(store=JSONFileStore(tmp_path / "store.json"))
        first = pipeline.run([SourceText("anz.csv", SAMPLE_CSV)], user_id="alice")
        pipeline.save(first, "alice")

        again = pipeline.run([SourceText("anz.csv", SAMPLE_CSV)], user_id="alice")
        summary = pipeline.summarize(again, "2024-01", user_id="alice")

        assert again.transactions == []
        assert summary.income == Decimal("2000.00")
        assert summary.expenses == Decimal("42.10")

    def test_saved_rows_not_counted_twice(self) -> None:
        """Summarizing after saving does not double the run's rows."""
        pipeline = IngestPipeline(store=InMemoryStore())
        result = pipeline.run([SourceText("anz.csv", SAMPLE_CSV)], user_id="alice")
        pipeline.save(result, "alice")

        summary = pipeline.summarize(result, "2024-01", user_id="alice")

        assert summary.income == Decimal("2000.00")

    def test_summary_without_user_uses_run_only(self) -> None:
        """No user means only the run's transactions are summarized."""
        pipeline = IngestPipeline(store=InMemoryStore())
        pipeline.save(pipeline.run([SourceText("anz.csv", SAMPLE_CSV)]), "alice")

        result = pipeline.run([SourceText("later.csv", "Date,Details,Amount\n20/01/2024,Countdown,-5.00\n")])

        assert pipeline.summarize(result, "2024-01").income == Decimal("0")

    def test_save_without_store(self) -> None:
        """Test that save needs a store."""
        pipeline = IngestPipeline()
        with pytest.raises(ValueError):
            pipeline.save(pipeline.run([SourceText("anz.csv", SAMPLE_CSV)]), "alice")


class TestAIIntegration:
    """Tests for handing unclassified rows to the categorizer."""

    def test_unclassified_sent_to_categorizer(self) -> None:
        """Test that unclassified rows go to the categorizer."""
        categorizer = MagicMock(spec=AICategorizer)
        pipeline = IngestPipeline(categorizer=categorizer)
        text = SAMPLE_CSV + "03/01/2024,Zqx Ltd,-10.00\n"

        result = pipeline.run([SourceText("anz.csv", text)], use_ai=True)

        categorizer.categorize_unclassified.assert_called_once_with(result.transactions)
        assert result.transactions[2].kind is TransactionKind.OTHER

    def test_categorizer_not_used_without_flag(self) -> None:
        """Test that the categorizer is unused without use_ai."""
        categorizer = MagicMock(spec=AICategorizer)

        IngestPipeline(categorizer=categorizer).run([SourceText("anz.csv", SAMPLE_CSV)])

        categorizer.categorize_unclassified.assert_not_called()
