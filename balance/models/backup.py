"""Backup, export and restore models."""
from datetime import datetime, timezone
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from balance.models.transaction import Transaction

BACKUP_VERSION = "1.0.0"
CLOUD_BACKUP_VERSION = "2.0"

MergeMode = Literal["replace", "merge", "merge-newer"]


class BackupSnapshot(BaseModel):
    """A point-in-time copy of the transaction list."""

    timestamp: int = Field(..., description="Creation time in epoch milliseconds")
    transactions: List[Transaction] = Field(default_factory=list)
    version: str = BACKUP_VERSION
    description: Optional[str] = None

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc)


class HostedBackup(BackupSnapshot):
    """A backup row stored in the hosted database."""

    id: str
    user_id: Optional[str] = None


class ExportDocument(BaseModel):
    """Export/import file format."""

    model_config = ConfigDict(populate_by_name=True)

    transactions: List[Transaction]
    backups: Optional[List[BackupSnapshot]] = None
    export_date: str = Field(..., alias="exportDate")
    version: str = BACKUP_VERSION
    total_transactions: int = Field(..., alias="totalTransactions")


class BackupInfo(BaseModel):
    """Overview of the local backup list."""

    count: int = 0
    latest: Optional[datetime] = None
    total_size: int = 0


class DateRange(BaseModel):
    start: str = ""
    end: str = ""


class CloudBackupInfo(BaseModel):
    """Metadata of a comprehensive hosted backup."""

    id: str
    timestamp: int
    transaction_count: int
    date_range: DateRange
    size: int
    checksum: str


class RecoveryResult(BaseModel):
    success: bool
    message: str
    transactions_restored: Optional[int] = None
    conflicts_resolved: Optional[int] = None


class VerificationResult(BaseModel):
    valid: bool
    message: str


class RestoreRequest(BaseModel):
    """Restoring replaces data, so callers must confirm explicitly."""

    confirm: bool = Field(default=False, description="Must be true to proceed")
    merge_mode: MergeMode = "replace"
    create_backup_before: bool = False


class CreateBackupRequest(BaseModel):
    description: Optional[str] = None


class OperationResponse(BaseModel):
    """Generic response carrying a user-facing message."""

    message: str
    transaction_count: Optional[int] = None


class BackupListItem(BaseModel):
    """A local snapshot without its transaction payload."""

    index: int
    timestamp: int
    created_at: datetime
    transaction_count: int
    version: str
    description: Optional[str] = None

    @classmethod
    def from_snapshot(cls, index: int, snapshot: BackupSnapshot) -> "BackupListItem":
        return cls(
            index=index,
            timestamp=snapshot.timestamp,
            created_at=snapshot.created_at,
            transaction_count=len(snapshot.transactions),
            version=snapshot.version,
            description=snapshot.description,
        )
