#!/usr/bin/env python3
"""Bank statement ingestion tool.

Entry point script wrapping the package CLI for convenient execution.

Usage:
    python ingest_statements.py statement.csv --account Everyday --output out/

For full documentation and options:
    python ingest_statements.py --help
"""

import sys
from pathlib import Path

# Add src to path for development installs
src_path = Path(__file__).parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from bank_ingest.cli import main

if __name__ == "__main__":
    sys.exit(main())
