"""
Metrics Collector - Storage Package

Interchangeable metric store backends behind one interface.
"""

from typing import TYPE_CHECKING

import structlog

from .base import BackendKind, MetricStore
from .file import FileMetricStore
from .memory import MemoryMetricStore
from .relational import RelationalMetricStore

if TYPE_CHECKING:
    from metrics_collector.config import Settings

logger = structlog.get_logger(__name__)


async def open_store(settings: "Settings") -> MetricStore:
    """Build the backend selected by configuration."""
    backend = settings.backend

    if backend == BackendKind.RELATIONAL:
        store: MetricStore = await RelationalMetricStore.open(settings.database_dsn)
    elif backend == BackendKind.FILE:
        store = await FileMetricStore.open(
            settings.file_storage_path,
            sync_writes=settings.sync_writes,
            restore=settings.restore,
        )
    else:
        store = MemoryMetricStore()

    logger.info("Metric store opened", backend=backend.value)
    return store


__all__ = [
    "BackendKind",
    "MetricStore",
    "MemoryMetricStore",
    "FileMetricStore",
    "RelationalMetricStore",
    "open_store",
]
