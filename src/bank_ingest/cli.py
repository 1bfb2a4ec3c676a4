"""Command-line interface for bank statement ingestion."""

import argparse
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from bank_ingest import __version__
from bank_ingest.config import Config, ConfigError, load_config
from bank_ingest.models.report import IngestResult, MonthlySummary
from bank_ingest.processing.ai import AICategorizer
from bank_ingest.utils.date_utils import is_valid_month_key
from bank_ingest.utils.logging_config import get_logger, setup_logging

# Load environment variables from .env file (if it exists)
load_dotenv()

console = Console()
logger = get_logger(__name__)

MAX_LISTED_WARNINGS = 10


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="bank-ingest",
        description=(
            "Ingest bank CSV exports, classify transactions and summarize "
            "income and expenses by month"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s statement.csv
  %(prog)s anz_2024.csv asb_2024.csv --account Everyday --month 2024-03
  %(prog)s *.csv --store transactions.json --user alice --output out/
  %(prog)s statement.csv --ai -v
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "files",
        nargs="+",
        type=Path,
        metavar="FILE",
        help="Bank CSV export(s) to ingest",
    )

    parser.add_argument(
        "--account",
        default=None,
        help="Account name stamped on every transaction",
    )

    parser.add_argument(
        "--month",
        default=None,
        help="Reporting month (YYYY-MM); default: most active month",
    )

    # Store
    parser.add_argument(
        "--store",
        type=Path,
        default=None,
        help="JSON store used for duplicate detection and saving",
    )

    parser.add_argument(
        "--user",
        default="default",
        help="Store user ID (default: default)",
    )

    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Check duplicates against the store without saving",
    )

    # Output
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        metavar="DIR",
        help="Write transactions and summary CSV files to this directory",
    )

    parser.add_argument(
        "--config-dir",
        type=Path,
        default=Path("config"),
        help="Base config directory (default: ./config)",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Files parsed concurrently (default: from config)",
    )

    parser.add_argument(
        "--ai",
        action="store_true",
        help="Use AI to categorize transactions the rules could not classify",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (-v, -vv)",
    )

    return parser


def get_log_level(verbosity: int, default: str = "WARNING") -> str:
    """Convert verbosity count to log level.

    Args:
        verbosity: Number of -v flags.
        default: Level used without -v.

    Returns:
        Log level string.
    """
    if verbosity >= 2:
        return "DEBUG"
    elif verbosity >= 1:
        return "INFO"
    else:
        return default


def validate_output_path(path: Path, base_dir: Path | None = None) -> Path:
    """Validate that output path is within allowed directory.

    Prevents path traversal by ensuring the resolved path is within the base
    directory (defaults to current working directory).

    Raises:
        ValueError: If the path escapes the allowed directory.
    """
    if base_dir is None:
        base_dir = Path.cwd()

    resolved_base = base_dir.resolve()
    resolved_path = (base_dir / path).resolve()

    try:
        resolved_path.relative_to(resolved_base)
    except ValueError:
        raise ValueError(
            f"Invalid path: '{path}' escapes the allowed directory. "
            f"Paths must be within '{resolved_base}'"
        ) from None

    return resolved_path


def display_files(result: IngestResult) -> None:
    """Per-file outcome table."""
    table = Table(title="Files")
    table.add_column("File")
    table.add_column("Rows", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Warnings", justify="right")
    table.add_column("Status")

    for file_result in result.files:
        if file_result.failed:
            status = f"[red]{escape(file_result.error or '')}[/red]"
        elif not file_result.transactions:
            status = "[yellow]no rows[/yellow]"
        else:
            status = "[green]ok[/green]"
        skipped = len(file_result.validation.skipped_rows) if file_result.validation else 0
        table.add_row(
            file_result.source,
            str(len(file_result.transactions)),
            str(skipped),
            str(len(file_result.warnings)),
            status,
        )

    console.print(table)


def display_summary(summary: MonthlySummary, result: IngestResult) -> None:
    """Display the monthly summary.

    Args:
        summary: Summary for the reporting month.
        result: Run result (for pair and duplicate counts).
    """
    table = Table(title=f"Summary for {summary.month}", show_header=False)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Income", f"${summary.income:,.2f}")
    table.add_row("Expenses", f"${summary.expenses:,.2f}")
    table.add_row("Balance", f"${summary.balance:,.2f}")
    table.add_row("Savings rate", f"{summary.savings_rate:.1f}%")
    table.add_row("Transactions", str(summary.transaction_count))
    table.add_row("Transfers excluded", str(summary.transfer_count))
    table.add_row("Reversals excluded", str(summary.reversal_count))
    table.add_row("Reversal pairs", str(len(result.reversal_pairs)))
    table.add_row("Duplicates dropped", str(len(result.duplicates)))
    console.print(table)

    if summary.top_expense_categories:
        top = Table(title="Top expense categories")
        top.add_column("Category")
        top.add_column("Amount", justify="right")
        for category, amount in summary.top_expense_categories:
            top.add_row(category, f"${amount:,.2f}")
        console.print(top)


def display_warnings(result: IngestResult) -> None:
    warnings = result.warnings
    if not warnings:
        return
    console.print(f"\n[yellow]Warnings ({len(warnings)}):[/yellow]")
    for w in warnings[:MAX_LISTED_WARNINGS]:
        console.print(f"  - {w}", markup=False)
    if len(warnings) > MAX_LISTED_WARNINGS:
        console.print(f"  ... and {len(warnings) - MAX_LISTED_WARNINGS} more")


def build_categorizer(config: Config) -> Optional[AICategorizer]:
    """Create the AI categorizer, or None when no API key is configured."""
    categorizer = AICategorizer.create(
        client_config=config.ai.client,
        batch_size=config.ai.batch_size,
        batch_delay=config.ai.batch_delay,
    )
    if not categorizer.is_available:
        console.print(
            f"[yellow]AI categorization skipped: {config.ai.client.api_key_env} is not set[/yellow]"
        )
        return None
    return categorizer


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 when at least one file produced rows, 1 otherwise).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.month is not None and not is_valid_month_key(args.month):
        console.print(f"[red]Error: --month must be YYYY-MM, got {args.month!r}[/red]")
        return 1

    if args.workers is not None and args.workers < 1:
        console.print("[red]Error: --workers must be at least 1[/red]")
        return 1

    try:
        config = load_config(config_dir=args.config_dir)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        return 1

    setup_logging(
        level=get_log_level(args.verbose, config.logging.level),
        log_file=config.logging.file,
        console_output=args.verbose > 0,
    )

    if args.workers is not None:
        config.max_workers = args.workers

    output_dir = None
    if args.output is not None:
        try:
            output_dir = validate_output_path(args.output)
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            return 1

    from bank_ingest.output import CSVExporter
    from bank_ingest.processing.pipeline import IngestPipeline
    from bank_ingest.store import JSONFileStore, StoreError

    store = JSONFileStore(args.store) if args.store else None

    categorizer = None
    if args.ai or config.ai.enabled:
        categorizer = build_categorizer(config)

    pipeline = IngestPipeline(
        config=config,
        store=store,
        categorizer=categorizer,
        account=args.account,
    )

    console.print(f"[bold]bank-ingest v{__version__}[/bold]\n")

    try:
        with console.status(f"[bold green]Ingesting {len(args.files)} file(s)..."):
            result = pipeline.run_files(
                args.files,
                user_id=args.user if store else None,
                use_ai=categorizer is not None,
            )
    except StoreError as e:
        console.print(f"[red]Store error: {e}[/red]")
        return 1

    display_files(result)

    if not result.succeeded:
        console.print("[red]No transactions could be read from the input files.[/red]")
        return 1

    try:
        summary = pipeline.summarize(result, args.month, user_id=args.user if store else None)
    except StoreError as e:
        console.print(f"[red]Store error: {e}[/red]")
        return 1
    display_summary(summary, result)
    display_warnings(result)

    if categorizer is not None:
        console.print(f"\n[dim]{categorizer.client.get_usage_summary()}[/dim]")

    if output_dir is not None:
        exporter = CSVExporter(output_dir)
        created = exporter.export(result, [summary])
        console.print(f"\n[green]{len(created)} CSV files written to {output_dir}[/green]")

    if store is not None and not args.no_save:
        try:
            saved = pipeline.save(result, args.user)
        except StoreError as e:
            console.print(f"[red]Store error: {e}[/red]")
            return 1
        console.print(f"[green]Saved {saved} new transactions to {args.store}[/green]")

    return 0


if __name__ == "__main__":
    sys.exit(main())
