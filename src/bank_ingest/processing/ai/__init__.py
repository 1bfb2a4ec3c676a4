"""AI-powered transaction categorization module.

This module sends transactions the rule classifier could not place to the
Claude API, in small batches, and falls back to a deterministic local
categorization when the service is unavailable.

Example usage:
    from bank_ingest.processing.ai import AICategorizer

    categorizer = AICategorizer.create()
    if categorizer.is_available:
        result = categorizer.categorize_unclassified(transactions)
        print(f"{result.succeeded} categorized, {result.fallbacks} fallbacks")
"""

from bank_ingest.processing.ai.categorizer import AICategorizer, fallback_categorization
from bank_ingest.processing.ai.client import (
    AIClient,
    AIClientConfig,
    AIClientError,
    APIKeyNotFoundError,
)
from bank_ingest.processing.ai.models import (
    BUDGET_GROUPS,
    AICategorizationResult,
    AIUsageStats,
    BatchResult,
)

__all__ = [
    "AICategorizer",
    "fallback_categorization",
    "AIClient",
    "AIClientConfig",
    "AIClientError",
    "APIKeyNotFoundError",
    "AICategorizationResult",
    "AIUsageStats",
    "BatchResult",
    "BUDGET_GROUPS",
]
