"""Transaction stores: the contract the pipeline needs plus two implementations."""

import json
from datetime import date
from pathlib import Path
from typing import Any, Protocol

from bank_ingest.models.transaction import ClassifiedTransaction, TransactionKind
from bank_ingest.processing.deduplicator import signature_for, transaction_signature
from bank_ingest.utils.decimal_utils import safe_decimal
from bank_ingest.utils.logging_config import get_logger

logger = get_logger(__name__)

STORE_VERSION = 1


class StoreError(Exception):
    """Raised when the store file cannot be read or written."""

    def __init__(self, message: str, file_path: Path | None = None):
        self.message = message
        self.file_path = file_path
        super().__init__(f"{file_path}: {message}" if file_path else message)


class TransactionStore(Protocol):
    def existing_signatures(self, user_id: str) -> set[str]: ...
    def save(self, user_id: str, transactions: list[ClassifiedTransaction]) -> int: ...
    def transactions(self, user_id: str) -> list[ClassifiedTransaction]: ...


class InMemoryStore:
    """Store kept in process memory. Useful for tests and dry runs."""

    def __init__(self) -> None:
        self._records: dict[str, list[ClassifiedTransaction]] = {}

    def existing_signatures(self, user_id: str) -> set[str]:
        return {transaction_signature(t) for t in self._records.get(user_id, [])}

    def save(self, user_id: str, transactions: list[ClassifiedTransaction]) -> int:
        self._records.setdefault(user_id, []).extend(transactions)
        return len(transactions)

    def transactions(self, user_id: str) -> list[ClassifiedTransaction]:
        return list(self._records.get(user_id, []))


def transaction_to_record(txn: ClassifiedTransaction) -> dict[str, Any]:
    """Serialize a classified transaction to a JSON-safe dict."""
    return {
        "id": txn.id,
        "date": txn.date.isoformat(),
        "description": txn.description,
        "merchant": txn.merchant,
        "amount": str(txn.signed_amount),
        "account": txn.account,
        "kind": txn.kind.value,
        "category": txn.category,
        "subcategory": txn.subcategory,
        "budget_group": txn.budget_group,
        "confidence": txn.confidence,
        "category_source": txn.category_source,
        "source_file": txn.source_file,
    }


def record_signature(record: dict[str, Any]) -> str:
    """Signature of a stored record; matches ``transaction_signature``."""
    return signature_for(
        str(record.get("date", "")),
        safe_decimal(record.get("amount")),
        str(record.get("description", "")),
        record.get("merchant"),
    )


def record_to_transaction(record: dict[str, Any]) -> ClassifiedTransaction:
    """Rebuild a classified transaction from a stored record.

    Raises:
        ValueError: If the date or kind cannot be read back.
    """
    signed = safe_decimal(record.get("amount"))
    fields: dict[str, Any] = {
        "date": date.fromisoformat(str(record.get("date", ""))),
        "description": str(record.get("description", "")),
        "amount": abs(signed),
        "raw_amount": signed,
        "account": str(record.get("account") or ""),
        "merchant": record.get("merchant"),
        "source_file": str(record.get("source_file") or ""),
        "kind": TransactionKind(record.get("kind", TransactionKind.OTHER.value)),
        "category": str(record.get("category") or "Other"),
        "subcategory": record.get("subcategory"),
        "confidence": float(record.get("confidence") or 0.0),
        "budget_group": record.get("budget_group"),
        "category_source": str(record.get("category_source") or "rule"),
    }
    if record.get("id"):
        fields["id"] = str(record["id"])
    return ClassifiedTransaction(**fields)


class JSONFileStore:
    """Store backed by a single JSON file, one record list per user.

    File format::

        {"version": 1, "users": {"<user_id>": [<record>, ...]}}

    Nothing is written until ``save`` is called.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"version": STORE_VERSION, "users": {}}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StoreError(f"Invalid JSON: {e}", self.path) from e
        except OSError as e:
            raise StoreError(f"Cannot read store: {e}", self.path) from e

        if not isinstance(data, dict) or not isinstance(data.get("users", {}), dict):
            raise StoreError("Unexpected store layout", self.path)
        data.setdefault("users", {})
        return data

    def records(self, user_id: str) -> list[dict[str, Any]]:
        """Stored records for a user, oldest first."""
        return list(self._load()["users"].get(user_id, []))

    def existing_signatures(self, user_id: str) -> set[str]:
        return {record_signature(r) for r in self.records(user_id)}

    def transactions(self, user_id: str) -> list[ClassifiedTransaction]:
        """Stored records for a user rebuilt as classified transactions."""
        try:
            return [record_to_transaction(r) for r in self.records(user_id)]
        except (AttributeError, TypeError, ValueError) as e:
            raise StoreError(f"Invalid record for user {user_id!r}: {e}", self.path) from e

    def save(self, user_id: str, transactions: list[ClassifiedTransaction]) -> int:
        """Append transactions for a user and rewrite the file.

        Returns:
            Number of records written.
        """
        data = self._load()
        user_records = data["users"].setdefault(user_id, [])
        user_records.extend(transaction_to_record(t) for t in transactions)
        data["version"] = STORE_VERSION

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            tmp_path.replace(self.path)
        except OSError as e:
            raise StoreError(f"Cannot write store: {e}", self.path) from e

        logger.info(f"Saved {len(transactions)} transactions to {self.path}")
        return len(transactions)
