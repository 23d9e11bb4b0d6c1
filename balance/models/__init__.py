from .transaction import Transaction, TransactionCreate, TransactionUpdate, TransactionType
from .summary import (
    FinancialSummary,
    CategoryTotal,
    CategoryBreakdown,
    TrendResult,
    PeriodAnalysis,
    InvestmentAnalysis,
    TotalsByType,
    ConvertedTransaction,
)
from .backup import (
    BackupSnapshot,
    HostedBackup,
    ExportDocument,
    BackupInfo,
    CloudBackupInfo,
    RecoveryResult,
    RestoreRequest,
)
from .profile import Profile, ProfileUpdate, AuthSession, AuthUser, BackupMode

__all__ = [
    "Transaction",
    "TransactionCreate",
    "TransactionUpdate",
    "TransactionType",
    "FinancialSummary",
    "CategoryTotal",
    "CategoryBreakdown",
    "TrendResult",
    "PeriodAnalysis",
    "InvestmentAnalysis",
    "TotalsByType",
    "ConvertedTransaction",
    "BackupSnapshot",
    "HostedBackup",
    "ExportDocument",
    "BackupInfo",
    "CloudBackupInfo",
    "RecoveryResult",
    "RestoreRequest",
    "Profile",
    "ProfileUpdate",
    "AuthSession",
    "AuthUser",
    "BackupMode",
]
