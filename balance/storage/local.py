"""Local persistence: named key-value slots in a SQLite file."""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

TRANSACTION_SLOT = "transaction-storage"
BACKUP_SLOT = "balance-backup"
MIGRATION_SLOT_PREFIX = "migrated:"


class LocalStorage:
    """Key-value slots holding serialized JSON documents."""

    def __init__(self, db_path: str = "balance.db"):
        self.db_path = db_path
        self._init_db()

    def _init_db(self):
        """Initialize database tables."""
        with self._get_conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS slots (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    @contextmanager
    def _get_conn(self):
        """Get database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def get_item(self, key: str) -> Optional[str]:
        """Raw string stored under `key`, or None."""
        with self._get_conn() as conn:
            row = conn.execute("SELECT value FROM slots WHERE key = ?", (key,)).fetchone()
            return row["value"] if row else None

    def set_item(self, key: str, value: str) -> None:
        with self._get_conn() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO slots (key, value, updated_at)
                VALUES (?, ?, ?)
            """, (key, value, datetime.now(timezone.utc).isoformat()))
            conn.commit()

    def remove_item(self, key: str) -> None:
        with self._get_conn() as conn:
            conn.execute("DELETE FROM slots WHERE key = ?", (key,))
            conn.commit()

    def keys(self, prefix: str = "") -> List[str]:
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT key FROM slots WHERE key LIKE ? ORDER BY key",
                (prefix + "%",),
            ).fetchall()
            return [row["key"] for row in rows]

    def get_json(self, key: str, default: Any = None) -> Any:
        """
        Decode the JSON document under `key`.

        Unreadable documents are logged and reported as `default`.
        """
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw, parse_float=Decimal)
        except json.JSONDecodeError as e:
            logger.warning("Slot %s holds invalid JSON: %s", key, e)
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value, default=str))
