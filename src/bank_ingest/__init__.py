"""Bank statement CSV ingestion and transaction classification."""

__version__ = "0.1.0"
