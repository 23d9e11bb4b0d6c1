"""Moving transactions between the local store and the hosted account."""
import logging

from balance.services.hosted import HostedBackend
from balance.storage.local import MIGRATION_SLOT_PREFIX
from balance.storage.store import TransactionStore

logger = logging.getLogger(__name__)


def migrate_on_first_sign_in(backend: HostedBackend, store: TransactionStore) -> int:
    """
    Copy local transactions to a hosted account that has none yet.

    Runs at most once per user: a marker slot records that the account has
    been looked at. Nothing happens (and nothing is marked) while the local
    store is empty.

    Returns:
        Number of transactions migrated
    """
    user_id = backend.user.id
    marker = f"{MIGRATION_SLOT_PREFIX}{user_id}"
    if store.storage.get_item(marker) is not None:
        return 0
    if not store.transactions:
        return 0

    migrated = 0
    if backend.get_all_transactions():
        logger.info("Hosted account %s already holds data, skipping migration", user_id)
    else:
        migrated = backend.migrate_from_local(store.transactions)

    store.storage.set_item(marker, str(migrated))
    return migrated


def pull_from_hosted(backend: HostedBackend, store: TransactionStore) -> int:
    """
    Replace local transactions with the hosted ones.

    The local state is snapshotted first so the pull can be undone.
    """
    transactions = backend.get_all_transactions()
    store.create_backup("Before hosted sync")
    store.replace_transactions(transactions)
    logger.info("Pulled %s transactions from hosted account %s", len(transactions), backend.user.id)
    return len(transactions)
