"""Versioned local snapshots of transaction state, plus JSON export/import."""
import json
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from pydantic import ValidationError
from balance.errors import BackupNotFoundError, InvalidImportError
from balance.models.backup import BACKUP_VERSION, BackupInfo, BackupSnapshot, ExportDocument
from balance.models.transaction import Transaction
from balance.storage.local import BACKUP_SLOT, LocalStorage
from balance.utils.timestamp import from_ms, now_ms

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


def _coerce_transaction(item: Dict[str, Any]) -> Transaction:
    if not isinstance(item, dict):
        raise TypeError("transaction entries must be objects")
    if not item.get("id"):
        item = {**item, "id": uuid.uuid4().hex}
    return Transaction.model_validate(item)


def parse_export_document(json_data: str) -> Tuple[List[Transaction], List[BackupSnapshot]]:
    """
    Parse an export document into transactions and any embedded backups.

    Transactions without an id get a fresh one.

    Raises:
        InvalidImportError: If the document is not valid JSON or lacks a
            `transactions` list
    """
    try:
        data = json.loads(json_data, parse_float=Decimal)
    except (json.JSONDecodeError, TypeError) as e:
        logger.error("Failed to import data: %s", e)
        raise InvalidImportError("Invalid import data")

    if not isinstance(data, dict) or not isinstance(data.get("transactions"), list):
        logger.error("Failed to import data: missing transactions list")
        raise InvalidImportError("Invalid import data")

    try:
        transactions = [_coerce_transaction(item) for item in data["transactions"]]
        backups = [BackupSnapshot.model_validate(item) for item in (data.get("backups") or [])]
    except (ValidationError, TypeError) as e:
        logger.error("Failed to import data: %s", e)
        raise InvalidImportError("Invalid import data")

    logger.info(
        "Parsed import: %s transactions from %s",
        len(transactions),
        data.get("exportDate", "unknown date"),
    )
    return transactions, backups


class BackupService:
    """Keeps a capped, newest-first list of snapshots in the local backup slot."""

    def __init__(self, storage: LocalStorage, max_backups: int = 10, max_age_days: int = 0):
        """
        Args:
            storage: Local key-value storage
            max_backups: Maximum number of snapshots kept
            max_age_days: Drop snapshots older than this many days (0 keeps all)
        """
        self.storage = storage
        self.max_backups = max_backups
        self.max_age_days = max_age_days

    def create_backup(
        self,
        transactions: List[Transaction],
        description: Optional[str] = None,
    ) -> Optional[BackupSnapshot]:
        """
        Prepend a snapshot of `transactions` and prune the list.

        A failure is logged and reported as None; the caller's state is not
        affected.
        """
        try:
            snapshot = BackupSnapshot(
                timestamp=now_ms(),
                transactions=list(transactions),
                version=BACKUP_VERSION,
                description=description,
            )
            backups = self.get_backups()
            backups.insert(0, snapshot)
            backups = self._prune(backups, snapshot.timestamp)
            self._save(backups)
            logger.info("Backup created: %s transactions", len(snapshot.transactions))
            return snapshot
        except Exception as e:
            logger.error("Failed to create backup: %s", e)
            return None

    def _prune(self, backups: List[BackupSnapshot], reference_ms: int) -> List[BackupSnapshot]:
        if self.max_age_days > 0:
            cutoff = reference_ms - self.max_age_days * DAY_MS
            # The newest snapshot always survives.
            backups = backups[:1] + [b for b in backups[1:] if b.timestamp >= cutoff]
        return backups[: self.max_backups]

    def _save(self, backups: List[BackupSnapshot]) -> None:
        self.storage.set_json(BACKUP_SLOT, [b.model_dump(mode="json") for b in backups])

    def get_backups(self) -> List[BackupSnapshot]:
        """All snapshots, newest first. An unreadable slot yields an empty list."""
        raw = self.storage.get_json(BACKUP_SLOT, [])
        if not isinstance(raw, list):
            logger.warning("Backup slot does not hold a list, ignoring it")
            return []

        backups = []
        for item in raw:
            try:
                backups.append(BackupSnapshot.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping unreadable backup: %s", e)
        return backups

    def restore_from_backup(self, backup_index: int) -> List[Transaction]:
        """
        Transactions held by the snapshot at `backup_index`.

        Raises:
            BackupNotFoundError: If the index is out of range
        """
        backups = self.get_backups()
        if not 0 <= backup_index < len(backups):
            raise BackupNotFoundError("Invalid backup index")

        backup = backups[backup_index]
        logger.info(
            "Restored backup: %s transactions from %s",
            len(backup.transactions),
            from_ms(backup.timestamp).isoformat(),
        )
        return list(backup.transactions)

    def build_export(
        self,
        transactions: List[Transaction],
        backups: Optional[List[BackupSnapshot]] = None,
    ) -> ExportDocument:
        return ExportDocument(
            transactions=list(transactions),
            backups=backups,
            export_date=datetime.now(timezone.utc).isoformat(),
            version=BACKUP_VERSION,
            total_transactions=len(transactions),
        )

    def export_data(
        self,
        transactions: List[Transaction],
        backups: Optional[List[BackupSnapshot]] = None,
    ) -> str:
        """Serialize transactions (and optionally backups) to an export document."""
        document = self.build_export(transactions, backups)
        return json.dumps(
            document.model_dump(mode="json", by_alias=True, exclude_none=True),
            indent=2,
        )

    def import_data(self, json_data: str) -> List[Transaction]:
        """Transactions contained in an export document."""
        transactions, _ = parse_export_document(json_data)
        return transactions

    @staticmethod
    def download_filename(today: Optional[date] = None) -> str:
        today = today or date.today()
        return f"balance-backup-{today.isoformat()}.json"

    def clear_backups(self) -> None:
        self.storage.remove_item(BACKUP_SLOT)
        logger.info("All backups cleared")

    def get_backup_info(self) -> BackupInfo:
        backups = self.get_backups()
        if not backups:
            return BackupInfo(count=0, latest=None, total_size=0)
        serialized = json.dumps([b.model_dump(mode="json") for b in backups])
        return BackupInfo(
            count=len(backups),
            latest=from_ms(backups[0].timestamp),
            total_size=len(serialized),
        )
