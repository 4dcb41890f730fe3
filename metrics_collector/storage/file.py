"""
Metrics Collector - File Store

Memory store mirrored to a JSON file. The file is always rewritten whole,
through a temporary file that is fsynced and renamed over the target, so a
crash mid-write leaves either the old or the new contents on disk.
"""

import asyncio
import os
import uuid
from pathlib import Path
from typing import Any, Dict, List

import aiofiles
import aiofiles.os
import structlog
from pydantic import ValidationError

from metrics_common.errors import StorageError
from metrics_common.models import Metric, dump_metrics, load_metrics

from .base import BackendKind, checked_counter
from .memory import MemoryMetricStore

logger = structlog.get_logger(__name__)


class FileMetricStore(MemoryMetricStore):
    """Metric store persisted to a JSON file.

    With ``sync_writes`` every mutation rewrites the file before returning;
    otherwise the file is only written by ``save()`` (called on a timer by
    the persistence service and once more at shutdown).
    """

    def __init__(self, path: str, sync_writes: bool = True):
        super().__init__()
        self.path = Path(path)
        self.sync_writes = sync_writes
        self._save_lock = asyncio.Lock()

    @classmethod
    async def open(cls, path: str, sync_writes: bool = True, restore: bool = True) -> "FileMetricStore":
        """Create a store and, if ``restore`` is set, load the existing file."""
        store = cls(path, sync_writes=sync_writes)
        if restore:
            await store.load()
        return store

    @property
    def kind(self) -> BackendKind:
        return BackendKind.FILE

    async def load(self) -> None:
        """Load the backing file into the mirror. A missing file is not an error."""
        if not await aiofiles.os.path.exists(self.path):
            logger.info("Metrics file not found, starting empty", path=str(self.path))
            return

        try:
            async with aiofiles.open(self.path, "rb") as f:
                data = await f.read()
            metrics = load_metrics(data) if data.strip() else []
        except (OSError, ValidationError) as e:
            raise StorageError(f"failed to load metrics from {self.path}: {e}") from e

        async with self._lock.write():
            self._restore(metrics)

        logger.info("Metrics restored from file", path=str(self.path), count=len(metrics))

    async def update_gauge(self, name: str, value: float) -> None:
        async with self._lock.write():
            await self._set(self._gauges, name, value)

    async def update_counter(self, name: str, delta: int) -> None:
        async with self._lock.write():
            total = checked_counter(name, self._counters.get(name, 0) + delta)
            await self._set(self._counters, name, total)

    async def set_counter(self, name: str, value: int) -> None:
        async with self._lock.write():
            await self._set(self._counters, name, checked_counter(name, value))

    async def _set(self, table: Dict[str, Any], name: str, value: Any) -> None:
        """Store one value and, with sync writes, persist it.

        A failed write puts the previous entry back, so the mirror only ever
        holds what reached the disk. Caller must hold the write lock.
        """
        existed = name in table
        previous = table.get(name)
        table[name] = value

        if not self.sync_writes:
            return

        try:
            await self._write(self._snapshot())
        except StorageError:
            if existed:
                table[name] = previous
            else:
                del table[name]
            raise

    async def save(self) -> None:
        """Write the full snapshot to disk."""
        async with self._lock.read():
            await self._write(self._snapshot())

    async def _write(self, metrics: List[Metric]) -> None:
        """Atomically replace the backing file with ``metrics``."""
        data = dump_metrics(metrics, indent=2)
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.tmp")

        async with self._save_lock:
            try:
                await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
                async with aiofiles.open(tmp_path, "wb") as f:
                    await f.write(data)
                    await f.flush()
                    await asyncio.get_running_loop().run_in_executor(None, os.fsync, f.fileno())
                await aiofiles.os.replace(tmp_path, self.path)
            except OSError as e:
                try:
                    await aiofiles.os.remove(tmp_path)
                except OSError:
                    # Temp file was never created
                    pass
                logger.error("Failed to save metrics file", path=str(self.path), error=str(e))
                raise StorageError(f"failed to save metrics to {self.path}: {e}") from e

        logger.debug("Metrics saved to file", path=str(self.path), count=len(metrics))
