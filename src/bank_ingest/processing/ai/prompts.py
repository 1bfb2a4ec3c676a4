"""Prompt templates for AI categorization."""

from bank_ingest.processing.ai.models import BUDGET_GROUPS

CATEGORIZATION_SYSTEM_PROMPT = """You are a financial assistant classifying \
personal bank transactions for budgeting.

Guidelines:
1. Base your categorization on the description, the amount and whether it is a credit or debit
2. Credits are usually income (salary, interest, refunds, gifts, business revenue) \
unless they are clearly a transfer between own accounts
3. Debits are expenses such as groceries, rent, transport, dining, utilities, \
shopping or healthcare
4. Use category "Transfer" only for money moving between the customer's own accounts
5. Budget group must be one of: Needs, Wants, Savings
6. Be conservative - if uncertain, express lower confidence

Response format: Raw JSON only - no markdown code blocks, no explanation outside the JSON."""


def build_batch_categorization_prompt(transactions: list[dict[str, object]]) -> str:
    """Build a prompt for batch categorization.

    Args:
        transactions: List of dicts with description, amount (signed) and date.

    Returns:
        Formatted prompt string.
    """
    txn_list = "\n".join(
        f"{i + 1}. \"{t['description']}\" | "
        f"{'credit' if float(str(t['amount'])) > 0 else 'debit'} "
        f"${abs(float(str(t['amount']))):.2f} | {t['date']}"
        for i, t in enumerate(transactions)
    )
    groups = "|".join(BUDGET_GROUPS)

    return f"""Categorize each transaction:

{txn_list}

Respond with a JSON array, one entry per transaction:
[{{"index": 1, "category": "...", "subcategory": "... or null", \
"budget_group": "{groups}", "confidence": 0.0-1.0}}]"""
