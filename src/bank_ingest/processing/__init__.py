"""Transaction processing pipeline components.

``IngestPipeline`` lives in ``bank_ingest.processing.pipeline`` and is not
re-exported here because it depends on ``bank_ingest.config``.
"""

from bank_ingest.processing.aggregator import MonthlyAggregator, summarize_month
from bank_ingest.processing.classifier import TransactionClassifier, classify
from bank_ingest.processing.deduplicator import (
    DuplicateFilter,
    filter_duplicates,
    transaction_signature,
)
from bank_ingest.processing.normalizer import Normalizer
from bank_ingest.processing.reversal_detector import (
    ReversalPairDetector,
    detect_reversal_pairs,
)
from bank_ingest.processing.rules import DEFAULT_RULES, build_default_rules, load_custom_rules

__all__ = [
    "Normalizer",
    "TransactionClassifier",
    "classify",
    "DEFAULT_RULES",
    "build_default_rules",
    "load_custom_rules",
    "ReversalPairDetector",
    "detect_reversal_pairs",
    "DuplicateFilter",
    "filter_duplicates",
    "transaction_signature",
    "MonthlyAggregator",
    "summarize_month",
]
