"""Tests for configuration loading."""

from decimal import Decimal
from pathlib import Path

import pytest

from bank_ingest.config import Config, ConfigError, load_config
from bank_ingest.models.rule import RuleStage
from bank_ingest.processing.rules import DEFAULT_RULES


def write_config(config_dir: Path, settings: str | None = None, rules: str | None = None) -> Path:
    """Write settings.yaml and/or rules.yaml into a config directory."""
    config_dir.mkdir(parents=True, exist_ok=True)
    if settings is not None:
        (config_dir / "settings.yaml").write_text(settings)
    if rules is not None:
        (config_dir / "rules.yaml").write_text(rules)
    return config_dir


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_files_use_defaults(self, tmp_path: Path) -> None:
        """Test defaults when no config files exist."""
        config = load_config(config_dir=tmp_path / "nowhere")

        assert config.max_workers == 4
        assert config.reversal.window_days == 14
        assert config.reversal.amount_tolerance == Decimal("0.01")
        assert config.aggregation.min_transactions == 3
        assert config.ai.enabled is False
        assert config.custom_rules == []
        assert config.rule_table is DEFAULT_RULES

    def test_settings_values(self, tmp_path: Path) -> None:
        """Test values read from settings.yaml."""
        config_dir = write_config(tmp_path, settings=(
            "parser:\n"
            "  max_rows: 100\n"
            "  default_account: Everyday\n"
            "reversal:\n"
            "  window_days: 7\n"
            "  amount_tolerance: '0.05'\n"
            "aggregation:\n"
            "  top_n: 3\n"
            "ai:\n"
            "  enabled: true\n"
            "  batch_size: 20\n"
            "  model: test-model\n"
            "  max_retries: 2\n"
            "logging:\n"
            "  level: debug\n"
            "max_workers: 2\n"
        ))

        config = load_config(config_dir=config_dir)

        assert config.parser.max_rows == 100
        assert config.parser.default_account == "Everyday"
        assert config.reversal.window_days == 7
        assert config.reversal.amount_tolerance == Decimal("0.05")
        assert config.aggregation.top_n == 3
        assert config.ai.enabled is True
        assert config.ai.batch_size == 20
        assert config.ai.client.model == "test-model"
        assert config.ai.client.max_retries == 2
        assert config.logging.level == "DEBUG"
        assert config.max_workers == 2

    def test_empty_settings_file(self, tmp_path: Path) -> None:
        """Test that an empty settings file uses defaults."""
        config = load_config(config_dir=write_config(tmp_path, settings=""))
        assert config.max_workers == 4

    def test_custom_rules_loaded(self, tmp_path: Path) -> None:
        """Test that rules.yaml rules are added to the table."""
        config_dir = write_config(tmp_path, rules=(
            "rules:\n"
            "  - id: expense:pets\n"
            "    stage: expense\n"
            "    category: Pets\n"
            "    keywords: [petstock]\n"
        ))

        config = load_config(config_dir=config_dir)

        assert [r.id for r in config.custom_rules] == ["expense:pets"]
        assert config.rule_table.for_stage(RuleStage.EXPENSE)[0].id == "expense:pets"

    def test_explicit_paths(self, tmp_path: Path) -> None:
        """Test explicit settings and rules paths."""
        settings = tmp_path / "custom.yaml"
        settings.write_text("max_workers: 8\n")

        config = load_config(settings_path=settings, rules_path=tmp_path / "none.yaml")

        assert config.max_workers == 8


class TestConfigErrors:
    """Tests for invalid configuration."""

    @pytest.mark.parametrize(
        "settings",
        [
            "parser: [unclosed\n",
            "- just\n- a list\n",
            "parser: not-a-mapping\n",
            "max_workers: 0\n",
            "max_workers: lots\n",
            "ai:\n  batch_size: 0\n",
            "reversal:\n  amount_tolerance: abc\n",
        ],
    )
    def test_invalid_settings(self, tmp_path: Path, settings: str) -> None:
        """Test that invalid settings raise ConfigError."""
        config_dir = write_config(tmp_path, settings=settings)

        with pytest.raises(ConfigError):
            load_config(config_dir=config_dir)

    def test_invalid_rules_yaml(self, tmp_path: Path) -> None:
        """Test that malformed rules.yaml raises ConfigError."""
        config_dir = write_config(tmp_path, rules="rules: [unclosed\n")

        with pytest.raises(ConfigError, match="rules.yaml"):
            load_config(config_dir=config_dir)

    def test_from_dict_defaults(self) -> None:
        """Test defaults from an empty dict."""
        config = Config.from_dict({})
        assert config.ai.batch_delay == 0.5
        assert config.logging.file == "bank_ingest.log"
