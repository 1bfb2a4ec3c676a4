"""Built-in classification rule tables.

Rules are grouped by stage and evaluated in table order; the first match wins.
Custom rules loaded from ``rules.yaml`` are placed ahead of the built-in rules
of the same stage (see ``RuleTable.with_rules``).
"""

import re
from collections.abc import Mapping
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from bank_ingest.models.rule import ClassificationRule, RuleStage, RuleTable, pattern_rule
from bank_ingest.utils.logging_config import get_logger

logger = get_logger(__name__)

REVERSAL_CONFIDENCE = 0.95
TRANSFER_CONFIDENCE = 0.9
MATCH_CONFIDENCE = 0.85

# Round-amount transfer heuristic: multiples of these, above the floor
ROUND_AMOUNT_STEPS = (Decimal("100"), Decimal("500"))
ROUND_AMOUNT_FLOOR = Decimal("1000")

REVERSAL_PATTERNS = [
    r"\breversal\b", r"\breverse\b", r"\brefund\b", r"\bcorrection\b",
    r"\bcancelled\b", r"\bfailed.*payment\b", r"\breturned.*payment\b",
    r"\bvoid\b", r"\bdispute\b", r"\bchargeback\b",
    r"\bpending.*auth.*reversal", r"\bdeclined.*reversal",
    r"\berror.*correction", r"\bauth.*reversal", r"\bwrongly.*charged",
]

TRANSFER_PATTERNS = [
    r"\btransfer\b", r"\btrf\b", r"\bxfer\b",
    r"transfer.*to.*account", r"transfer.*from.*account", r"internal.*transfer",
    r"between.*accounts", r"own.*account.*transfer", r"account.*to.*account",
    r"from.*savings.*to", r"to.*savings.*from", r"savings.*transfer",
    r"checking.*to.*savings", r"loan.*advance", r"balance.*transfer",
    r"j\s*k\s*m\s*dale.*transfer", r"automatic.*payment.*internal",
    r"ap\s+\d+.*transfer", r"internet.*banking.*transfer", r"online.*transfer",
    r"transfer.*\d{2}-\d{4}-\d{7}-\d{3}", r"\d{2}-\d{4}-\d{7}-\d{3}.*transfer",
    r"move.*money", r"funds.*transfer", r"account.*movement",
]

INCOME_PATTERNS: dict[str, list[str]] = {
    "SALARY": [
        r"salary", r"wage", r"payroll", r"employer", r"pay.*period", r"net.*pay",
        r"gross.*pay", r"payment.*salary", r"pathway.*engineer", r"wages.*credit",
        r"fortnightly.*pay", r"weekly.*pay", r"monthly.*salary",
    ],
    "GOVERNMENT": [
        r"\bird\b", r"working.*for.*families", r"accommodation.*supplement", r"benefit",
        r"tax.*credit", r"winz", r"studylink", r"government.*payment",
        r"pension.*payment", r"disability.*allowance", r"family.*tax.*benefit",
        r"child.*support.*payment",
    ],
    "INVESTMENT": [
        r"dividend", r"interest.*received", r"capital.*gain", r"investment.*return",
        r"sharesies", r"kiwisaver.*contribution", r"bond.*interest",
        r"term.*deposit.*interest", r"mutual.*fund", r"etf.*dividend", r"crypto.*gain",
    ],
    "BUSINESS": [
        r"invoice.*paid", r"payment.*received", r"freelance", r"contractor.*payment",
        r"client.*payment", r"trade.*income", r"business.*income", r"consulting.*fee",
        r"service.*payment", r"commission",
    ],
    "RENTAL": [
        r"rental.*income", r"rent.*received", r"property.*income",
        r"tenant.*payment", r"letting.*income",
    ],
    "OTHER_INCOME": [
        r"gift.*received", r"lottery.*win", r"cash.*back", r"bonus.*payment",
        r"prize.*money", r"insurance.*payout", r"tax.*refund", r"rebate",
    ],
}

# key -> (display name, budget group, patterns)
EXPENSE_PATTERNS: dict[str, tuple[str, str, list[str]]] = {
    "RENT": ("Rent", "Needs", [r"\brent\b", r"rental.*payment"]),
    "MORTGAGE": ("Mortgage", "Needs", [r"mortgage", r"home.*loan", r"loan.*payment"]),
    "RATES": ("Rates", "Needs", [r"\brates\b", r"council", r"city.*council"]),
    "POWER": ("Power", "Needs", [r"powershop", r"meridian", r"contact.*energy", r"genesis", r"electric"]),
    "INSURANCE": ("Insurance", "Needs", [r"vero", r"partners.*life", r"aa.*insurance", r"state.*insurance", r"insurance"]),
    "INTERNET": ("Internet", "Needs", [r"spark", r"vodafone", r"2degrees", r"internet", r"broadband"]),
    "CHILDCARE": ("Childcare", "Needs", [r"grow.*active", r"daycare", r"kindergarten", r"childcare", r"babysitter"]),
    "EDUCATION": ("Education", "Needs", [r"school", r"university", r"course.*fees", r"tuition"]),
    "KIDS_ACTIVITIES": ("Kids Activities", "Wants", [r"swimming", r"sports.*club", r"music.*lessons", r"ballet"]),
    "GROCERIES": ("Groceries", "Needs", [r"new.*world", r"countdown", r"pak.*n.*save", r"woolworths", r"four.*square", r"supermarket"]),
    "FUEL": ("Fuel", "Needs", [r"bp.*connect", r"mobil", r"z.*energy", r"caltex", r"petrol", r"gas.*station"]),
    "PHONE": ("Phone", "Needs", [r"2degrees", r"vodafone", r"spark", r"mobile", r"phone.*bill"]),
    "HEALTHCARE": ("Healthcare", "Needs", [r"chemist", r"pharmacy", r"doctor", r"medical", r"hospital", r"dental"]),
    "DINING": ("Dining Out", "Wants", [r"kfc", r"mcdonalds", r"subway", r"uber.*eats", r"restaurant", r"cafe", r"takeaway"]),
    "ENTERTAINMENT": ("Entertainment", "Wants", [r"spotify", r"netflix", r"sky", r"google", r"youtube", r"movie", r"cinema"]),
    "FITNESS": ("Fitness", "Wants", [r"gym", r"fitness", r"aquagym", r"yoga", r"pilates"]),
    "SHOPPING": ("Shopping", "Wants", [r"warehouse", r"kmart", r"farmers", r"clothing", r"amazon", r"trademe"]),
    "TRAVEL": ("Travel", "Wants", [r"singapore.*airlines", r"jetstar", r"air.*new.*zealand", r"hotel", r"accommodation"]),
    "BANK_FEES": ("Bank Fees", "Needs", [r"monthly.*fee", r"overdraft", r"bank.*fee", r"transaction.*fee"]),
    "CREDIT_CARD": ("Credit Card", "Needs", [r"credit.*card.*payment", r"visa", r"mastercard"]),
}

_TRANSFER_REGEXES = [re.compile(p, re.IGNORECASE) for p in TRANSFER_PATTERNS]


def has_transfer_keyword(text: str) -> bool:
    return any(p.search(text) for p in _TRANSFER_REGEXES)


def has_transfer_metadata(text: str, amount: Decimal, metadata: Mapping[str, str]) -> bool:
    """Bank columns that explicitly flag a transfer."""
    return (
        metadata.get("type", "").strip().lower() == "transfer"
        or "TRF" in metadata.get("code", "").upper()
        or "transfer" in metadata.get("particulars", "").lower()
    )


def is_round_transfer(text: str, amount: Decimal, metadata: Mapping[str, str]) -> bool:
    """Round amount over the floor that also carries a transfer keyword."""
    is_round = any(amount % step == 0 for step in ROUND_AMOUNT_STEPS)
    return is_round and amount > ROUND_AMOUNT_FLOOR and has_transfer_keyword(text)


def build_default_rules() -> RuleTable:
    """Build the built-in rule table in evaluation order."""
    rules: list[ClassificationRule] = [
        ClassificationRule(
            id="reversal:language",
            stage=RuleStage.REVERSAL,
            category="Reversal",
            confidence=REVERSAL_CONFIDENCE,
            regex_patterns=REVERSAL_PATTERNS,
        ),
        ClassificationRule(
            id="transfer:keyword",
            stage=RuleStage.TRANSFER,
            category="Transfer",
            confidence=TRANSFER_CONFIDENCE,
            regex_patterns=TRANSFER_PATTERNS,
        ),
        ClassificationRule(
            id="transfer:metadata",
            stage=RuleStage.TRANSFER,
            category="Transfer",
            confidence=TRANSFER_CONFIDENCE,
            predicate=has_transfer_metadata,
        ),
        # Requires a transfer keyword, so in this order transfer:keyword matches first
        ClassificationRule(
            id="transfer:round_amount",
            stage=RuleStage.TRANSFER,
            category="Transfer",
            confidence=TRANSFER_CONFIDENCE,
            predicate=is_round_transfer,
        ),
    ]

    for key, patterns in INCOME_PATTERNS.items():
        rules.append(
            pattern_rule(RuleStage.INCOME, key, "Income", patterns, MATCH_CONFIDENCE)
        )

    for key, (name, group, patterns) in EXPENSE_PATTERNS.items():
        rules.append(
            pattern_rule(RuleStage.EXPENSE, key, name, patterns, MATCH_CONFIDENCE, group)
        )

    return RuleTable(tuple(rules))


DEFAULT_RULES = build_default_rules()


def load_custom_rules(path: Path) -> list[ClassificationRule]:
    """Load custom rules from a YAML file.

    The file holds a top-level ``rules`` list; each entry needs ``id``,
    ``stage`` and ``category`` plus ``keywords`` and/or ``regex_patterns``.
    Invalid entries are skipped with a warning. A missing file yields no rules.

    Args:
        path: Path to rules.yaml.

    Returns:
        Rules in file order.

    Raises:
        yaml.YAMLError: If the file is not valid YAML.
    """
    if not path.exists():
        logger.debug(f"No custom rules file at {path}")
        return []

    with open(path, encoding="utf-8") as f:
        data: Any = yaml.safe_load(f) or {}

    entries = data.get("rules", []) if isinstance(data, dict) else []
    rules = []
    for entry in entries or []:
        if not isinstance(entry, dict):
            logger.warning(f"Skipping non-mapping rule entry in {path}: {entry!r}")
            continue
        try:
            rules.append(ClassificationRule.from_dict(entry))
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Skipping invalid rule {entry.get('id', '?')!r} in {path}: {e}")

    logger.info(f"Loaded {len(rules)} custom rules from {path}")
    return rules
