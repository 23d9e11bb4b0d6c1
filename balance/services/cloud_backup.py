"""Comprehensive hosted backups with integrity metadata and merge-aware restore."""
import hashlib
import json
import logging
import threading
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from balance.errors import BalanceError
from balance.models.backup import (
    CLOUD_BACKUP_VERSION,
    CloudBackupInfo,
    DateRange,
    MergeMode,
    RecoveryResult,
    VerificationResult,
)
from balance.services.hosted import TRANSACTION_FIELDS, HostedBackend
from balance.utils.timestamp import now_ms

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000
INSERT_BATCH_SIZE = 100
REQUIRED_FIELDS = ("id",) + TRANSACTION_FIELDS
RESTORED_FIELDS = REQUIRED_FIELDS + ("created_at", "updated_at")

_backup_lock = threading.Lock()


def serialize_rows(rows: List[Dict[str, Any]]) -> str:
    """Compact JSON used for both the size and the checksum of a backup."""
    return json.dumps(rows, default=float, separators=(",", ":"))


def checksum(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def date_range(rows: List[Dict[str, Any]]) -> DateRange:
    dates = sorted(str(row["date"]) for row in rows if row.get("date"))
    if not dates:
        return DateRange()
    return DateRange(start=dates[0], end=dates[-1])


def _content_key(row: Dict[str, Any]) -> tuple:
    """Row identity ignoring its id; equal amounts match whatever their scale."""
    key = []
    for field in TRANSACTION_FIELDS:
        value = row.get(field)
        if field == "amount" and value is not None:
            try:
                value = Decimal(str(value)).normalize()
            except InvalidOperation:
                pass
        key.append(str(value))
    return tuple(key)


class CloudBackupService:
    """Backups of the full `transactions` table of one signed-in user."""

    def __init__(self, backend: HostedBackend):
        self.backend = backend

    def fetch_all_rows(self) -> List[Dict[str, Any]]:
        """Every transaction row, oldest first, fetched page by page."""
        rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = self.backend.select_rows(
                "transactions",
                order="created_at.asc",
                limit=PAGE_SIZE,
                offset=offset,
            )
            if not page:
                break
            rows.extend(page)
            offset += len(page)
            if len(page) < PAGE_SIZE:
                break
        return rows

    def create_backup(self, description: Optional[str] = None) -> Optional[CloudBackupInfo]:
        """
        Snapshot all transactions into a `backups` row.

        Returns None when another backup is already running or the backend
        call fails.
        """
        if not _backup_lock.acquire(blocking=False):
            logger.warning("Backup already in progress, skipping")
            return None

        try:
            rows = self.fetch_all_rows()
            timestamp = now_ms()
            data = serialize_rows(rows)
            inserted = self.backend.insert_rows("backups", [{
                "user_id": self.backend.user.id,
                "transactions": rows,
                "timestamp": timestamp,
                "version": CLOUD_BACKUP_VERSION,
                "description": description or f"Automatic backup - {len(rows)} transactions",
            }])
            if not inserted:
                logger.warning("Backup insert returned no row")
                return None

            info = CloudBackupInfo(
                id=str(inserted[0]["id"]),
                timestamp=timestamp,
                transaction_count=len(rows),
                date_range=date_range(rows),
                size=len(data.encode("utf-8")),
                checksum=checksum(data),
            )
            logger.info("Hosted backup %s created: %s transactions", info.id, info.transaction_count)
            return info
        except BalanceError as e:
            logger.error("Hosted backup failed: %s", e.message)
            return None
        finally:
            _backup_lock.release()

    def _get_backup_row(self, backup_id: str) -> Optional[Dict[str, Any]]:
        rows = self.backend.select_rows("backups", id=f"eq.{backup_id}")
        return rows[0] if rows else None

    def restore_from_backup(
        self,
        backup_id: str,
        merge_mode: MergeMode = "replace",
        create_backup_before: bool = False,
    ) -> RecoveryResult:
        """
        Restore a backup.

        "replace" deletes current rows first. "merge" and "merge-newer" keep
        current rows and skip backup rows whose id or content already exists.
        Rows are inserted in batches of INSERT_BATCH_SIZE.
        """
        try:
            if create_backup_before:
                self.create_backup("Pre-restore backup")

            backup = self._get_backup_row(backup_id)
            if backup is None:
                return RecoveryResult(success=False, message=f"Backup not found: {backup_id}")

            backup_rows = backup.get("transactions") or []
            to_insert = backup_rows
            conflicts = 0

            if merge_mode in ("merge", "merge-newer"):
                current = self.backend.select_rows("transactions")
                existing_ids = {str(row.get("id")) for row in current}
                existing_content = {_content_key(row) for row in current}
                to_insert = []
                for row in backup_rows:
                    if str(row.get("id")) in existing_ids or _content_key(row) in existing_content:
                        conflicts += 1
                        continue
                    to_insert.append(row)
            else:
                self.backend.delete_rows("transactions")

            user_id = self.backend.user.id
            for i in range(0, len(to_insert), INSERT_BATCH_SIZE):
                batch = to_insert[i:i + INSERT_BATCH_SIZE]
                self.backend.insert_rows("transactions", [
                    {
                        **{f: row[f] for f in RESTORED_FIELDS if row.get(f) is not None},
                        "user_id": user_id,
                    }
                    for row in batch
                ])
        except BalanceError as e:
            logger.error("Restore of backup %s failed: %s", backup_id, e.message)
            return RecoveryResult(success=False, message=f"Restore failed: {e.message}")

        logger.info(
            "Restored backup %s (%s): %s inserted, %s conflicts",
            backup_id, merge_mode, len(to_insert), conflicts,
        )
        return RecoveryResult(
            success=True,
            message="Restore completed successfully",
            transactions_restored=len(to_insert),
            conflicts_resolved=conflicts,
        )

    def list_backups(self) -> List[CloudBackupInfo]:
        rows = self.backend.select_rows("backups", order="timestamp.desc")
        infos = []
        for row in rows:
            transactions = row.get("transactions") or []
            data = serialize_rows(transactions)
            infos.append(CloudBackupInfo(
                id=str(row["id"]),
                timestamp=int(row["timestamp"]),
                transaction_count=len(transactions),
                date_range=date_range(transactions),
                size=len(data.encode("utf-8")),
                checksum=checksum(data),
            ))
        return infos

    def verify_backup(self, backup_id: str) -> VerificationResult:
        backup = self._get_backup_row(backup_id)
        if backup is None:
            return VerificationResult(valid=False, message=f"Backup not found: {backup_id}")

        transactions = backup.get("transactions")
        if not isinstance(transactions, list):
            return VerificationResult(valid=False, message="Backup data is not an array")
        if not transactions:
            return VerificationResult(valid=False, message="Backup contains no transactions")

        invalid = [
            t for t in transactions
            if not isinstance(t, dict) or not all(field in t for field in REQUIRED_FIELDS)
        ]
        if invalid:
            return VerificationResult(
                valid=False,
                message=f"{len(invalid)} transactions missing required fields",
            )
        return VerificationResult(valid=True, message=f"Backup is valid with {len(transactions)} transactions")
