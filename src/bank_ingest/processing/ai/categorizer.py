"""AI-powered categorization of transactions the rules left unclassified."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from bank_ingest.models.transaction import ClassifiedTransaction, TransactionKind
from bank_ingest.processing.ai.client import AIClient, AIClientConfig, AIClientError
from bank_ingest.processing.ai.models import BUDGET_GROUPS, AICategorizationResult, BatchResult
from bank_ingest.processing.ai.prompts import (
    CATEGORIZATION_SYSTEM_PROMPT,
    build_batch_categorization_prompt,
)
from bank_ingest.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_DELAY = 0.5

FALLBACK_CONFIDENCE = 0.3


def fallback_categorization(amount: Decimal) -> AICategorizationResult:
    """Deterministic local result used when the service cannot answer."""
    if amount > 0:
        return AICategorizationResult("Other Income", "Savings", FALLBACK_CONFIDENCE, source="fallback")
    return AICategorizationResult("Uncategorised", "Needs", FALLBACK_CONFIDENCE, source="fallback")


@dataclass
class AICategorizer:
    """Batch client for the external categorization service.

    Transactions are sent in batches of ``batch_size`` with ``batch_delay``
    seconds between batches. A batch that still fails after the client's
    retry is resolved with ``fallback_categorization``.

    Attributes:
        client: AI API client.
        batch_size: Transactions per request.
        batch_delay: Pause between consecutive batches, in seconds.
    """

    client: AIClient
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay: float = DEFAULT_BATCH_DELAY
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    @classmethod
    def create(
        cls,
        client_config: AIClientConfig | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
    ) -> "AICategorizer":
        """Create a categorizer with its own client."""
        return cls(
            client=AIClient(config=client_config or AIClientConfig()),
            batch_size=max(1, batch_size),
            batch_delay=batch_delay,
        )

    @property
    def is_available(self) -> bool:
        return self.client.is_available

    def categorize(self, transactions: list[ClassifiedTransaction]) -> BatchResult:
        """Categorize transactions and apply the results in place.

        Args:
            transactions: Transactions to send (in order).

        Returns:
            BatchResult aligned with ``transactions``.
        """
        result = BatchResult()

        for batch_start in range(0, len(transactions), self.batch_size):
            if batch_start > 0 and self.batch_delay > 0:
                self.sleep(self.batch_delay)

            batch = transactions[batch_start : batch_start + self.batch_size]
            result.batches += 1
            answers = self._request_batch(batch, result)

            for local_idx, txn in enumerate(batch):
                answer = answers.get(local_idx)
                if answer is None:
                    answer = fallback_categorization(txn.signed_amount)
                    result.fallbacks += 1
                else:
                    result.succeeded += 1
                    self.client.usage_stats.categorizations_performed += 1
                result.results.append(answer)
                self._apply(txn, answer)

        if transactions:
            logger.info(
                f"AI categorized {result.succeeded}/{len(transactions)} transactions "
                f"in {result.batches} batches ({result.fallbacks} fallbacks)"
            )
        return result

    def categorize_unclassified(self, transactions: list[ClassifiedTransaction]) -> BatchResult:
        """Categorize only non-zero transactions the rules left as Other."""
        pending = [
            t for t in transactions
            if t.kind is TransactionKind.OTHER and t.signed_amount != 0
        ]
        logger.info(f"Sending {len(pending)} unclassified transactions for AI categorization")
        return self.categorize(pending)

    def _request_batch(
        self, batch: list[ClassifiedTransaction], result: BatchResult
    ) -> dict[int, AICategorizationResult]:
        """Send one batch; returns answers keyed by 0-based position."""
        payload: list[dict[str, object]] = [
            {
                "description": t.description,
                "amount": float(t.signed_amount),
                "date": t.date.isoformat(),
            }
            for t in batch
        ]
        prompt = build_batch_categorization_prompt(payload)

        try:
            response = self.client.send_message(CATEGORIZATION_SYSTEM_PROMPT, prompt)
            data = self.client.parse_json_response(response)
        except (AIClientError, ValueError) as e:
            logger.warning(f"Batch categorization failed, using fallback: {e}")
            result.errors.append(str(e))
            return {}

        if not isinstance(data, list):
            result.errors.append("Unexpected response format (expected a JSON array)")
            return {}

        answers: dict[int, AICategorizationResult] = {}
        for item in data:
            parsed = self._parse_item(item, len(batch))
            if parsed is None:
                continue
            local_idx, answer = parsed
            if local_idx in answers:
                logger.warning(f"AI returned duplicate index {local_idx + 1}, skipping")
                continue
            answers[local_idx] = answer
        return answers

    @staticmethod
    def _parse_item(item: Any, batch_len: int) -> tuple[int, AICategorizationResult] | None:
        if not isinstance(item, dict):
            return None
        try:
            local_idx = int(item.get("index")) - 1  # type: ignore[arg-type]
        except (TypeError, ValueError):
            logger.warning(f"AI returned non-numeric index: {item.get('index')!r}")
            return None
        if not 0 <= local_idx < batch_len:
            logger.warning(f"AI returned invalid index {local_idx + 1}")
            return None

        category = str(item.get("category") or "").strip()
        if not category:
            return None

        budget_group = str(item.get("budget_group") or "")
        if budget_group not in BUDGET_GROUPS:
            budget_group = ""

        try:
            confidence = max(0.0, min(1.0, float(item.get("confidence", 0.5))))
        except (TypeError, ValueError):
            confidence = 0.5

        subcategory = item.get("subcategory")
        return local_idx, AICategorizationResult(
            category=category,
            budget_group=budget_group,
            confidence=confidence,
            subcategory=str(subcategory) if subcategory else None,
        )

    @staticmethod
    def _apply(txn: ClassifiedTransaction, answer: AICategorizationResult) -> None:
        is_credit = txn.signed_amount > 0
        if answer.category.lower() == "transfer":
            kind = TransactionKind.TRANSFER
        else:
            kind = TransactionKind.INCOME if is_credit else TransactionKind.EXPENSE

        budget_group = answer.budget_group or ("Savings" if is_credit else "Needs")
        txn.reclassify(
            kind=kind,
            category=answer.category,
            subcategory=answer.subcategory,
            confidence=answer.confidence,
            source=answer.source,
            budget_group=budget_group,
        )
