"""Configuration loading and validation for bank ingestion."""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import yaml

from bank_ingest.models.rule import ClassificationRule, RuleTable
from bank_ingest.processing.ai.client import AIClientConfig
from bank_ingest.processing.rules import DEFAULT_RULES, load_custom_rules
from bank_ingest.utils.logging_config import get_logger

logger = get_logger(__name__)


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


@dataclass
class ParserConfig:
    """Configuration for CSV parsing and normalization.

    Attributes:
        max_rows: Files with more data rows than this are rejected.
        max_description_length: Descriptions are cut to this length.
        default_account: Account name used when none is given.
    """

    max_rows: int = 500_000
    max_description_length: int = 200
    default_account: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "ParserConfig":
        """Create from dictionary."""
        return cls(
            max_rows=int(data.get("max_rows", 500_000)),  # type: ignore[arg-type]
            max_description_length=int(data.get("max_description_length", 200)),  # type: ignore[arg-type]
            default_account=str(data.get("default_account", "")),
        )


@dataclass
class ReversalConfig:
    """Configuration for reversal pair detection.

    Attributes:
        window_days: Maximum days between the debit and credit.
        amount_tolerance: Absolute amounts must differ by less than this.
        similarity_threshold: Levenshtein similarity needed for text to match.
    """

    window_days: int = 14
    amount_tolerance: Decimal = field(default_factory=lambda: Decimal("0.01"))
    similarity_threshold: float = 0.8

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "ReversalConfig":
        """Create from dictionary."""
        try:
            tolerance = Decimal(str(data.get("amount_tolerance", "0.01")))
        except InvalidOperation as e:
            raise ConfigError(f"Invalid reversal.amount_tolerance: {data.get('amount_tolerance')!r}") from e

        return cls(
            window_days=int(data.get("window_days", 14)),  # type: ignore[arg-type]
            amount_tolerance=tolerance,
            similarity_threshold=float(data.get("similarity_threshold", 0.8)),  # type: ignore[arg-type]
        )


@dataclass
class AggregationConfig:
    """Configuration for monthly summaries.

    Attributes:
        min_transactions: Transactions a month needs to be picked as active.
        top_n: Number of expense categories in the ranked list.
    """

    min_transactions: int = 3
    top_n: int = 5

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "AggregationConfig":
        """Create from dictionary."""
        return cls(
            min_transactions=int(data.get("min_transactions", 3)),  # type: ignore[arg-type]
            top_n=int(data.get("top_n", 5)),  # type: ignore[arg-type]
        )


@dataclass
class AIConfig:
    """Configuration for the external categorization service.

    Attributes:
        enabled: Send unclassified transactions to the service.
        batch_size: Transactions per request.
        batch_delay: Seconds between batches.
        client: Connection settings for the API client.
    """

    enabled: bool = False
    batch_size: int = 10
    batch_delay: float = 0.5
    client: AIClientConfig = field(default_factory=AIClientConfig)

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "AIConfig":
        """Create from dictionary."""
        batch_size = int(data.get("batch_size", 10))  # type: ignore[arg-type]
        if batch_size < 1:
            raise ConfigError(f"ai.batch_size must be at least 1, got {batch_size}")

        return cls(
            enabled=bool(data.get("enabled", False)),
            batch_size=batch_size,
            batch_delay=float(data.get("batch_delay", 0.5)),  # type: ignore[arg-type]
            client=AIClientConfig.from_dict(data),
        )


@dataclass
class LoggingConfig:
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Path to log file.
    """

    level: str = "INFO"
    file: str = "bank_ingest.log"

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LoggingConfig":
        """Create from dictionary."""
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            file=str(data.get("file", "bank_ingest.log")),
        )


@dataclass
class Config:
    """Main configuration container.

    Attributes:
        parser: CSV parsing configuration.
        reversal: Reversal pair detection configuration.
        aggregation: Monthly summary configuration.
        ai: External categorization configuration.
        logging: Logging configuration.
        max_workers: Files parsed concurrently.
        custom_rules: Rules loaded from rules.yaml.
    """

    parser: ParserConfig = field(default_factory=ParserConfig)
    reversal: ReversalConfig = field(default_factory=ReversalConfig)
    aggregation: AggregationConfig = field(default_factory=AggregationConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    max_workers: int = 4
    custom_rules: list[ClassificationRule] = field(default_factory=list)

    @property
    def rule_table(self) -> RuleTable:
        """Built-in rules with custom rules placed ahead of their stage."""
        if not self.custom_rules:
            return DEFAULT_RULES
        return DEFAULT_RULES.with_rules(self.custom_rules)

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "Config":
        """Create from the parsed contents of settings.yaml."""
        config = cls()
        if "parser" in data:
            config.parser = ParserConfig.from_dict(_section(data, "parser"))
        if "reversal" in data:
            config.reversal = ReversalConfig.from_dict(_section(data, "reversal"))
        if "aggregation" in data:
            config.aggregation = AggregationConfig.from_dict(_section(data, "aggregation"))
        if "ai" in data:
            config.ai = AIConfig.from_dict(_section(data, "ai"))
        if "logging" in data:
            config.logging = LoggingConfig.from_dict(_section(data, "logging"))

        config.max_workers = int(data.get("max_workers", 4))  # type: ignore[arg-type]
        if config.max_workers < 1:
            raise ConfigError(f"max_workers must be at least 1, got {config.max_workers}")
        return config


def _section(data: dict[str, object], name: str) -> dict[str, object]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {type(section).__name__}")
    return section


def load_yaml_file(path: Path) -> dict[str, object]:
    """Load a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content.

    Raises:
        FileNotFoundError: If file doesn't exist.
        yaml.YAMLError: If file is invalid YAML.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        content = yaml.safe_load(f)

    return content if content else {}


def load_settings(path: Path) -> Config:
    """Load settings from settings.yaml.

    Raises:
        ConfigError: If the file is not valid YAML or a value is invalid.
    """
    try:
        data = load_yaml_file(path)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")

    try:
        return Config.from_dict(data)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in {path}: {e}") from e


def load_config(
    settings_path: Optional[Path] = None,
    rules_path: Optional[Path] = None,
    config_dir: Optional[Path] = None,
) -> Config:
    """Load complete configuration from all config files.

    Missing files fall back to defaults.

    Args:
        settings_path: Path to settings.yaml (or None to use default).
        rules_path: Path to rules.yaml (or None to use default).
        config_dir: Base config directory (default: ./config).

    Returns:
        Complete Config object.

    Raises:
        ConfigError: If a config file exists but is invalid.
    """
    if config_dir is None:
        config_dir = Path("config")

    if settings_path is None:
        settings_path = config_dir / "settings.yaml"
    if rules_path is None:
        rules_path = config_dir / "rules.yaml"

    # Load settings (optional - use defaults if missing)
    if settings_path.exists():
        config = load_settings(settings_path)
        logger.info(f"Loaded settings from {settings_path}")
    else:
        config = Config()
        logger.warning(f"Settings file not found: {settings_path}, using defaults")

    try:
        config.custom_rules = load_custom_rules(rules_path)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {rules_path}: {e}") from e

    return config
