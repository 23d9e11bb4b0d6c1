"""Accidental duplicate detection and cleanup."""
import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, List, Set

from balance.errors import DuplicateTransactionError
from balance.models.transaction import Transaction, TransactionBase

logger = logging.getLogger(__name__)

DUPLICATE_WINDOW_SECONDS = 5 * 60


class DuplicateGuard:
    """
    Rejects a transaction identical to one added moments ago.

    Identity is the transaction content without its id. A submission counts
    as an accidental duplicate when the same content was added within the
    last five minutes or is still being processed. The check and the
    in-flight mark happen under one lock, so concurrent identical submissions
    let exactly one through.
    """

    def __init__(self, window_seconds: float = DUPLICATE_WINDOW_SECONDS, clock=time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._recent: Dict[tuple, float] = {}
        self._pending: Set[tuple] = set()
        self._lock = threading.Lock()

    def _expire(self, now: float):
        cutoff = now - self.window_seconds
        self._recent = {k: t for k, t in self._recent.items() if t >= cutoff}

    def _seen(self, key: tuple) -> bool:
        self._expire(self._clock())
        return key in self._pending or key in self._recent

    def is_duplicate(self, data: TransactionBase) -> bool:
        with self._lock:
            return self._seen(data.content_key())

    @contextmanager
    def guard(self, data: TransactionBase, intentional: bool = False):
        """
        Mark `data` as in flight for the duration of the block.

        Raises:
            DuplicateTransactionError: If `data` is an accidental duplicate
        """
        key = data.content_key()
        with self._lock:
            if not intentional and self._seen(key):
                logger.warning("Rejected duplicate %s transaction of %s %s", data.type, data.amount, data.currency)
                raise DuplicateTransactionError(
                    "This transaction looks like a duplicate of one added moments ago. "
                    "Submit it again as intentional to keep both."
                )
            self._pending.add(key)

        try:
            yield
            with self._lock:
                self._recent[key] = self._clock()
        finally:
            with self._lock:
                self._pending.discard(key)

    def clear(self):
        with self._lock:
            self._recent.clear()
            self._pending.clear()


def find_duplicate_groups(transactions: List[Transaction]) -> List[List[Transaction]]:
    """Groups of two or more transactions sharing the same content, in input order."""
    groups: Dict[tuple, List[Transaction]] = {}
    for t in transactions:
        groups.setdefault(t.content_key(), []).append(t)
    return [group for group in groups.values() if len(group) > 1]


def remove_duplicates(transactions: List[Transaction]) -> List[Transaction]:
    """Keep the first transaction of every duplicate group."""
    seen = set()
    kept = []
    for t in transactions:
        key = t.content_key()
        if key in seen:
            continue
        seen.add(key)
        kept.append(t)

    removed = len(transactions) - len(kept)
    if removed:
        logger.info("Removed %s duplicate transactions", removed)
    return kept
