"""Timer that snapshots transactions while automatic backup mode is on."""
import asyncio
import logging
from typing import Optional

from balance.storage.store import TransactionStore

logger = logging.getLogger(__name__)


class AutoBackupScheduler:
    """Runs `store.create_backup()` every `interval` seconds in an asyncio task."""

    def __init__(self, store: TransactionStore, interval: float = 15 * 60):
        self.store = store
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            if self.store.backup_mode != "automatic":
                continue
            snapshot = self.store.create_backup("Automatic backup")
            if snapshot is None:
                logger.warning("Automatic backup failed, retrying next interval")

    def start(self):
        """Start the timer. A no-op when it is already running."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Automatic backups every %s seconds", self.interval)

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Automatic backups stopped")

    async def sync_with_mode(self):
        """Start or stop the timer to match the store's backup mode."""
        if self.store.backup_mode == "automatic":
            self.start()
        else:
            await self.stop()
