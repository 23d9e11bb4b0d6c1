from .backup import BackupService, parse_export_document
from .currency import CurrencyService, get_currency_service
from .analytics import AnalyticsService, classify_trend
from .duplicates import DuplicateGuard, find_duplicate_groups, remove_duplicates
from .hosted import HostedBackend
from .cloud_backup import CloudBackupService

__all__ = [
    "BackupService",
    "parse_export_document",
    "CurrencyService",
    "get_currency_service",
    "AnalyticsService",
    "classify_trend",
    "DuplicateGuard",
    "find_duplicate_groups",
    "remove_duplicates",
    "HostedBackend",
    "CloudBackupService",
]
