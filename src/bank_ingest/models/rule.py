"""Classification rule data models."""

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from bank_ingest.models.transaction import TransactionKind
from bank_ingest.utils.logging_config import get_logger

logger = get_logger(__name__)

# Maximum pattern length to prevent overly complex patterns
MAX_PATTERN_LENGTH = 500

# Patterns that can cause catastrophic backtracking (ReDoS)
DANGEROUS_PATTERN_SIGNATURES = [
    r'(\w+)+',
    r'(.*)*',
    r'(.+)+',
    r'(\s+)+',
]

# Group with an inner quantifier followed by an outer quantifier, e.g. (a+)+ or (a+){2,}
_NESTED_QUANTIFIER_PATTERN = re.compile(
    r'\([^)]*[+*?][^)]*\)[+*?]|'
    r'\([^)]*[+*?][^)]*\)\{[0-9,]+\}'
)

# Signature of a rule predicate: (lowercased text, signed amount, bank metadata)
Predicate = Callable[[str, Decimal, Mapping[str, str]], bool]


def is_safe_pattern(pattern: str) -> tuple[bool, str]:
    """Check if regex pattern is safe from ReDoS attacks.

    Args:
        pattern: Regex pattern string to validate.

    Returns:
        Tuple of (is_safe, reason if unsafe).
    """
    if len(pattern) > MAX_PATTERN_LENGTH:
        return False, f"Pattern exceeds {MAX_PATTERN_LENGTH} character limit"

    if _NESTED_QUANTIFIER_PATTERN.search(pattern):
        return False, "Pattern contains dangerous nested quantifier"

    for dangerous in DANGEROUS_PATTERN_SIGNATURES:
        if dangerous in pattern:
            return False, "Pattern contains known dangerous signature"

    return True, ""


class RuleStage(Enum):
    """Stage a rule belongs to, in evaluation order."""

    REVERSAL = "reversal"
    TRANSFER = "transfer"
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def kind(self) -> TransactionKind:
        return TransactionKind(self.value)


class MatchMode(Enum):
    """Matching mode for keywords in classification rules."""

    SUBSTRING = "substring"  # "SHELL" matches "SHELLPOINT"
    WORD_BOUNDARY = "word"  # "SHELL" only matches as whole word


@dataclass
class ClassificationRule:
    """One entry of the ordered classification table.

    A rule matches when any of its keywords, any of its regex patterns, or its
    predicate matches. Text passed to ``matches`` is already lowercased.

    Attributes:
        id: Unique identifier for this rule.
        stage: Stage the rule is evaluated in.
        category: Category assigned on match.
        subcategory: Optional subcategory key (e.g. "GROCERIES").
        confidence: Confidence reported on match.
        budget_group: Optional budget group (Needs/Wants/Savings).
        keywords: Keywords for case-insensitive matching.
        regex_patterns: Regex patterns searched in the text.
        predicate: Optional callable for rules that look at amount or metadata.
        match_mode: How keywords are matched.
    """

    id: str
    stage: RuleStage
    category: str
    subcategory: str | None = None
    confidence: float = 0.85
    budget_group: str | None = None
    keywords: list[str] = field(default_factory=list)
    regex_patterns: list[str] = field(default_factory=list)
    predicate: Predicate | None = field(default=None, repr=False, compare=False)
    match_mode: MatchMode = MatchMode.SUBSTRING

    _compiled_patterns: list[re.Pattern[str]] = field(
        default_factory=list, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self.confidence = max(0.0, min(1.0, float(self.confidence)))
        self._compiled_patterns = []
        for pattern in self.regex_patterns:
            is_safe, reason = is_safe_pattern(pattern)
            if not is_safe:
                logger.warning(
                    f"Rejecting unsafe regex pattern '{pattern}' in rule '{self.id}': {reason}"
                )
                continue
            try:
                self._compiled_patterns.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                logger.warning(f"Invalid regex pattern '{pattern}' in rule '{self.id}': {e}")

        if not (self.keywords or self._compiled_patterns or self.predicate):
            logger.warning(f"Rule '{self.id}' has no valid matching criteria and will match nothing")

    def _keyword_matches(self, text: str) -> bool:
        for keyword in self.keywords:
            kw_lower = keyword.lower()
            if self.match_mode == MatchMode.WORD_BOUNDARY:
                if re.search(r'\b' + re.escape(kw_lower) + r'\b', text):
                    return True
            elif kw_lower in text:
                return True
        return False

    def matches(
        self,
        text: str,
        amount: Decimal,
        metadata: Mapping[str, str] | None = None,
    ) -> bool:
        """Check if a transaction matches this rule.

        Args:
            text: Lowercased description and merchant text.
            amount: Signed transaction amount.
            metadata: Bank metadata columns (code, particulars, type).

        Returns:
            True if any keyword, pattern or the predicate matches.
        """
        if self._keyword_matches(text):
            return True
        if any(p.search(text) for p in self._compiled_patterns):
            return True
        if self.predicate is not None:
            return self.predicate(text, amount, metadata or {})
        return False

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "ClassificationRule":
        """Create a rule from a dictionary (e.g. an entry of rules.yaml).

        Args:
            data: Dictionary containing rule data.

        Returns:
            A new ClassificationRule instance.

        Raises:
            ValueError: If the stage is unknown.
        """
        stage = RuleStage(str(data.get("stage", "expense")).lower())

        match_mode = MatchMode.SUBSTRING
        if str(data.get("match_mode", "")).lower() == "word":
            match_mode = MatchMode.WORD_BOUNDARY

        return cls(
            id=str(data["id"]),
            stage=stage,
            category=str(data["category"]),
            subcategory=str(data["subcategory"]) if data.get("subcategory") else None,
            confidence=float(data.get("confidence", 0.85)),  # type: ignore[arg-type]
            budget_group=str(data["budget_group"]) if data.get("budget_group") else None,
            keywords=[str(k) for k in data.get("keywords", []) or []],  # type: ignore[union-attr]
            regex_patterns=[str(p) for p in data.get("regex_patterns", []) or []],  # type: ignore[union-attr]
            match_mode=match_mode,
        )

    def __repr__(self) -> str:
        return (
            f"ClassificationRule(id={self.id!r}, stage={self.stage.value}, "
            f"category={self.category!r})"
        )


def pattern_rule(
    stage: RuleStage,
    key: str,
    category: str,
    patterns: Iterable[str],
    confidence: float,
    budget_group: str | None = None,
) -> ClassificationRule:
    """Build a regex-only rule with id ``<stage>:<key>``."""
    return ClassificationRule(
        id=f"{stage.value}:{key.lower()}",
        stage=stage,
        category=category,
        subcategory=key,
        confidence=confidence,
        budget_group=budget_group,
        regex_patterns=list(patterns),
    )


@dataclass(frozen=True)
class RuleTable:
    """Ordered, immutable set of classification rules."""

    rules: tuple[ClassificationRule, ...] = ()

    def for_stage(self, stage: RuleStage) -> list[ClassificationRule]:
        """Rules of one stage, in table order."""
        return [r for r in self.rules if r.stage is stage]

    def with_rules(self, extra: Iterable[ClassificationRule]) -> "RuleTable":
        """Return a new table with ``extra`` placed ahead of same-stage rules."""
        extra = list(extra)
        ordered: list[ClassificationRule] = []
        for stage in RuleStage:
            ordered.extend(r for r in extra if r.stage is stage)
            ordered.extend(self.for_stage(stage))
        return RuleTable(tuple(ordered))

    def __len__(self) -> int:
        return len(self.rules)


@dataclass(frozen=True)
class Classification:
    """Result of classifying a single transaction."""

    kind: TransactionKind
    category: str
    subcategory: str | None
    confidence: float
    budget_group: str | None = None
    rule_id: str | None = None
