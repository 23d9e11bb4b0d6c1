from .local import LocalStorage, TRANSACTION_SLOT, BACKUP_SLOT, MIGRATION_SLOT_PREFIX

__all__ = ["LocalStorage", "TRANSACTION_SLOT", "BACKUP_SLOT", "MIGRATION_SLOT_PREFIX"]
