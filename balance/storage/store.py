"""Transaction state container persisted in the local slot."""
import logging
import threading
import uuid
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import ValidationError
from balance.config import settings
from balance.errors import InvalidTransactionError, TransactionNotFoundError
from balance.models.backup import BackupInfo, BackupSnapshot
from balance.models.profile import BackupMode
from balance.models.summary import CategoryTotal, FinancialSummary
from balance.models.transaction import (
    Transaction,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
    other_description_error,
)
from balance.services.backup import BackupService
from balance.storage.local import TRANSACTION_SLOT, LocalStorage

logger = logging.getLogger(__name__)


class TransactionStore:
    """
    Holds the user's transactions and backup mode.

    Every mutation is written through to the `transaction-storage` slot. In
    manual backup mode each mutation also leaves a snapshot behind. Mutations
    are serialized by a lock since request handlers run in worker threads.
    """

    def __init__(self, storage: LocalStorage, backup_service: BackupService):
        self.storage = storage
        self.backup_service = backup_service
        self.transactions: List[Transaction] = []
        self.backup_mode: BackupMode = "manual"
        self._lock = threading.RLock()
        self._load()

    def _load(self):
        """Load persisted state, starting empty when the slot is missing or unreadable."""
        state = self.storage.get_json(TRANSACTION_SLOT, {})
        if not isinstance(state, dict):
            logger.warning("Transaction slot does not hold an object, starting empty")
            return

        if state.get("backup_mode") in ("manual", "automatic"):
            self.backup_mode = state["backup_mode"]

        loaded = []
        for item in state.get("transactions") or []:
            try:
                loaded.append(Transaction.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping unreadable transaction: %s", e)
        self.transactions = loaded

    def _persist(self):
        self.storage.set_json(TRANSACTION_SLOT, {
            "transactions": [t.model_dump(mode="json") for t in self.transactions],
            "backup_mode": self.backup_mode,
        })

    def _after_mutation(self):
        self._persist()
        if self.backup_mode == "manual":
            self.backup_service.create_backup(self.transactions)

    def add_transaction(self, data: TransactionCreate) -> Transaction:
        transaction = Transaction(id=uuid.uuid4().hex, **data.model_dump())
        with self._lock:
            self.transactions = self.transactions + [transaction]
            self._after_mutation()
        logger.info("Added %s transaction %s", transaction.type, transaction.id)
        return transaction

    def get_transaction(self, transaction_id: str) -> Transaction:
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                return transaction
        raise TransactionNotFoundError(transaction_id)

    def update_transaction(self, transaction_id: str, changes: TransactionUpdate) -> Transaction:
        """
        Merge the set fields of `changes` into the stored transaction.

        Raises:
            InvalidTransactionError: If the merged transaction breaks the
                "other" description rule
        """
        with self._lock:
            current = self.get_transaction(transaction_id)
            merged = current.model_dump()
            merged.update(changes.model_dump(exclude_unset=True, exclude_none=True))
            error = other_description_error(merged["category"], merged["description"])
            if error:
                raise InvalidTransactionError(error)
            updated = Transaction.model_validate(merged)

            self.transactions = [updated if t.id == transaction_id else t for t in self.transactions]
            self._after_mutation()
        return updated

    def delete_transaction(self, transaction_id: str) -> None:
        with self._lock:
            self.get_transaction(transaction_id)
            self.transactions = [t for t in self.transactions if t.id != transaction_id]
            self._after_mutation()
        logger.info("Deleted transaction %s", transaction_id)

    def get_transactions_by_type(self, type: TransactionType) -> List[Transaction]:
        return [t for t in self.transactions if t.type == type]

    def get_transactions_by_category(self, category: str) -> List[Transaction]:
        return [t for t in self.transactions if t.category == category]

    def get_transactions_by_date_range(self, start: date, end: date) -> List[Transaction]:
        """Transactions dated within [start, end], both ends inclusive."""
        return [t for t in self.transactions if start <= t.date <= end]

    def search_transactions(self, query: str) -> List[Transaction]:
        needle = query.strip().lower()
        if not needle:
            return list(self.transactions)
        return [
            t for t in self.transactions
            if needle in t.description.lower() or needle in t.category.lower()
        ]

    def get_financial_summary(self) -> FinancialSummary:
        """
        Raw totals without currency conversion.

        Anything that is not income counts towards expenses.
        """
        income_by_currency: Dict[str, Decimal] = defaultdict(Decimal)
        expenses_by_currency: Dict[str, Decimal] = defaultdict(Decimal)
        for t in self.transactions:
            if t.type == "income":
                income_by_currency[t.currency] += t.amount
            else:
                expenses_by_currency[t.currency] += t.amount

        total_income = sum(income_by_currency.values(), Decimal("0"))
        total_expenses = sum(expenses_by_currency.values(), Decimal("0"))
        return FinancialSummary(
            total_income=total_income,
            total_expenses=total_expenses,
            balance=total_income - total_expenses,
            income_by_currency=dict(income_by_currency),
            expenses_by_currency=dict(expenses_by_currency),
        )

    def get_category_totals(self) -> List[CategoryTotal]:
        totals: Dict[str, Decimal] = defaultdict(Decimal)
        for t in self.transactions:
            totals[t.category] += t.amount
        return [CategoryTotal(category=c, amount=a) for c, a in totals.items()]

    def set_backup_mode(self, mode: BackupMode) -> None:
        with self._lock:
            self.backup_mode = mode
            self._persist()
        logger.info("Backup mode set to %s", mode)

    def create_backup(self, description: Optional[str] = None) -> Optional[BackupSnapshot]:
        with self._lock:
            return self.backup_service.create_backup(self.transactions, description)

    def restore_from_backup(self, backup_index: int) -> List[Transaction]:
        """
        Replace current transactions with a snapshot's contents.

        An empty snapshot leaves the current state untouched.
        """
        with self._lock:
            restored = self.backup_service.restore_from_backup(backup_index)
            if restored:
                self.replace_transactions(restored)
        return restored

    def export_data(self, include_backups: bool = False) -> str:
        backups = self.backup_service.get_backups() if include_backups else None
        return self.backup_service.export_data(self.transactions, backups)

    def import_data(self, json_data: str) -> List[Transaction]:
        """Replace current transactions with the imported ones, then snapshot."""
        imported = self.backup_service.import_data(json_data)
        with self._lock:
            self.replace_transactions(imported)
            self.backup_service.create_backup(self.transactions, "Imported data")
        return imported

    def get_backup_info(self) -> BackupInfo:
        return self.backup_service.get_backup_info()

    def replace_transactions(self, transactions: List[Transaction]) -> None:
        with self._lock:
            self.transactions = list(transactions)
            self._persist()
        logger.info("Replaced transactions: %s stored", len(self.transactions))

    def clear(self) -> None:
        with self._lock:
            self.transactions = []
            self._persist()


# Global instance
_store = None


def get_store() -> TransactionStore:
    """Get the transaction store instance."""
    global _store
    if _store is None:
        storage = LocalStorage(settings.database_path)
        backup_service = BackupService(
            storage,
            max_backups=settings.max_backups,
            max_age_days=settings.backup_max_age_days,
        )
        _store = TransactionStore(storage, backup_service)
    return _store


def reset_store() -> None:
    """Drop the global instance so the next `get_store` reloads from disk."""
    global _store
    _store = None
