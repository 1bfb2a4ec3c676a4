"""Tests for the bank-ingest command line."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from bank_ingest.cli import get_log_level, main, validate_output_path

SAMPLE_CSV = "Date,Details,Amount\n01/01/2024,Countdown,-42.10\n02/01/2024,Salary,2000.00\n"


class TestMain:
    """Tests for main."""

    @pytest.fixture
    def workdir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
        """Run inside a temporary directory holding one statement."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / "anz.csv").write_text(SAMPLE_CSV)
        return tmp_path

    def test_successful_run(self, workdir: Path) -> None:
        """Test a run over one good file."""
        assert main(["anz.csv", "--month", "2024-01"]) == 0

    def test_unreadable_input_fails(self, workdir: Path) -> None:
        """Test exit code 1 when no file can be read."""
        (workdir / "empty.csv").write_text("")
        assert main(["empty.csv"]) == 1

    def test_one_good_file_is_enough(self, workdir: Path) -> None:
        """Test that one readable file is enough to succeed."""
        (workdir / "empty.csv").write_text("")
        assert main(["empty.csv", "anz.csv"]) == 0

    def test_invalid_month(self, workdir: Path) -> None:
        """Test that a malformed --month is rejected."""
        assert main(["anz.csv", "--month", "January"]) == 1

    def test_invalid_workers(self, workdir: Path) -> None:
        """Test that --workers must be positive."""
        assert main(["anz.csv", "--workers", "0"]) == 1

    def test_invalid_config(self, workdir: Path) -> None:
        """Test that an invalid settings file is rejected."""
        config_dir = workdir / "config"
        config_dir.mkdir()
        (config_dir / "settings.yaml").write_text("max_workers: 0\n")

        assert main(["anz.csv"]) == 1

    def test_output_files_written(self, workdir: Path) -> None:
        """Test CSV output files."""
        assert main(["anz.csv", "--month", "2024-01", "--output", "out"]) == 0

        assert (workdir / "out" / "transactions.csv").exists()
        assert (workdir / "out" / "summary_2024-01.csv").exists()

    def test_output_outside_cwd_rejected(self, workdir: Path) -> None:
        """Test that --output may not leave the working directory."""
        assert main(["anz.csv", "--output", "../escape"]) == 1

    def test_store_saves_then_deduplicates(self, workdir: Path) -> None:
        """Test that a second run saves nothing new."""
        args = ["anz.csv", "--store", "store.json", "--user", "alice"]

        assert main(args) == 0
        assert main(args) == 0

        data = json.loads((workdir / "store.json").read_text())
        assert len(data["users"]["alice"]) == 2

    def test_no_save(self, workdir: Path) -> None:
        """Test that --no-save leaves the store untouched."""
        assert main(["anz.csv", "--store", "store.json", "--no-save"]) == 0
        assert not (workdir / "store.json").exists()

    def test_corrupt_store(self, workdir: Path) -> None:
        """Test that a corrupt store file fails the run."""
        (workdir / "store.json").write_text("{not json")
        assert main(["anz.csv", "--store", "store.json"]) == 1

    def test_ai_without_key_still_runs(self, workdir: Path) -> None:
        """Test that --ai without a key still completes."""
        with patch.dict("os.environ", {}, clear=True):
            assert main(["anz.csv", "--ai"]) == 0


class TestHelpers:
    """Tests for CLI helper functions."""

    @pytest.mark.parametrize(
        "verbosity,expected",
        [(0, "WARNING"), (1, "INFO"), (2, "DEBUG"), (5, "DEBUG")],
    )
    def test_get_log_level(self, verbosity: int, expected: str) -> None:
        """Test verbosity to log level."""
        assert get_log_level(verbosity) == expected

    def test_get_log_level_default(self) -> None:
        """Test the default level without -v."""
        assert get_log_level(0, "ERROR") == "ERROR"

    def test_validate_output_path_inside(self, tmp_path: Path) -> None:
        """Test a path inside the base directory."""
        assert validate_output_path(Path("out"), tmp_path) == (tmp_path / "out").resolve()

    def test_validate_output_path_escape(self, tmp_path: Path) -> None:
        """Test a path escaping the base directory."""
        with pytest.raises(ValueError, match="escapes"):
            validate_output_path(Path("../elsewhere"), tmp_path)
