"""AI-specific data models for categorization."""

from dataclasses import dataclass, field

BUDGET_GROUPS = ("Needs", "Wants", "Savings")


@dataclass
class AICategorizationResult:
    """Categorization returned for a single transaction.

    Attributes:
        category: Category name chosen by the service.
        budget_group: One of Needs/Wants/Savings.
        confidence: Confidence in the categorization (0.0-1.0).
        subcategory: Optional finer label.
        source: "ai" when the service answered, "fallback" otherwise.
    """

    category: str
    budget_group: str
    confidence: float
    subcategory: str | None = None
    source: str = "ai"


@dataclass
class BatchResult:
    """Result of categorizing a list of transactions.

    Attributes:
        results: Positionally aligned with the input transactions.
        succeeded: Number answered by the service.
        fallbacks: Number resolved by the local fallback.
        batches: Number of batches sent.
        errors: Error messages from failed batches.
    """

    results: list[AICategorizationResult] = field(default_factory=list)
    succeeded: int = 0
    fallbacks: int = 0
    batches: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class AIUsageStats:
    """Cumulative AI usage statistics for a session."""

    total_requests: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    failed_requests: int = 0
    categorizations_performed: int = 0

    def add_request(self, input_tokens: int, output_tokens: int) -> None:
        """Record a completed request."""
        self.total_requests += 1
        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens
