"""
Metrics Collector - Relational Store

SQLite-backed store with an in-memory write-through mirror. Reads never hit
the database; every write is an upsert retried through the backoff executor
and reaches the mirror only after it has been committed.
"""

import sqlite3
from typing import Dict, List, Optional, Sequence, Tuple

import aiosqlite
import structlog

from metrics_common.backoff import BackoffExecutor, STORAGE_RETRY_DELAYS
from metrics_common.errors import RetryExhaustedError, SQLiteErrorClassifier, StorageError
from metrics_common.models import Metric

from ..db import connect
from .base import BackendKind, MetricStore, checked_counter
from .locks import RWLock

logger = structlog.get_logger(__name__)

UPSERT_GAUGE = (
    "INSERT INTO gauge (name, value) VALUES (?, ?) "
    "ON CONFLICT (name) DO UPDATE SET value = excluded.value"
)
INCREMENT_COUNTER = (
    "INSERT INTO counter (name, value) VALUES (?, ?) "
    "ON CONFLICT (name) DO UPDATE SET value = counter.value + excluded.value"
)
SET_COUNTER = (
    "INSERT INTO counter (name, value) VALUES (?, ?) "
    "ON CONFLICT (name) DO UPDATE SET value = excluded.value"
)


class RelationalMetricStore(MetricStore):
    """Metric store persisted to SQLite tables ``gauge`` and ``counter``."""

    def __init__(self, db: aiosqlite.Connection, executor: Optional[BackoffExecutor] = None):
        self._db = db
        self._gauges: Dict[str, float] = {}
        self._counters: Dict[str, int] = {}
        self._lock = RWLock()
        self._executor = executor or BackoffExecutor(
            STORAGE_RETRY_DELAYS, SQLiteErrorClassifier(), name="db.write"
        )

    @classmethod
    async def open(cls, dsn: str, executor: Optional[BackoffExecutor] = None) -> "RelationalMetricStore":
        """Connect, migrate and load the mirror with a full table scan."""
        try:
            db = await connect(dsn)
        except sqlite3.Error as e:
            raise StorageError(f"failed to open database {dsn}: {e}") from e

        store = cls(db, executor=executor)
        try:
            await store.load()
        except Exception:
            await db.close()
            raise
        return store

    @property
    def kind(self) -> BackendKind:
        return BackendKind.RELATIONAL

    async def load(self) -> None:
        """Populate the mirror from the database tables."""
        async with self._lock.write():
            try:
                cursor = await self._db.execute("SELECT name, value FROM gauge")
                gauges = {name: float(value) for name, value in await cursor.fetchall()}
                cursor = await self._db.execute("SELECT name, value FROM counter")
                counters = {name: int(value) for name, value in await cursor.fetchall()}
            except sqlite3.Error as e:
                raise StorageError(f"failed to load metrics from database: {e}") from e

            self._gauges = gauges
            self._counters = counters

        logger.info("Metrics loaded from database", gauges=len(gauges), counters=len(counters))

    async def update_gauge(self, name: str, value: float) -> None:
        async with self._lock.write():
            await self._write(UPSERT_GAUGE, (name, value), what=f"gauge {name}")
            self._gauges[name] = value

    async def update_counter(self, name: str, delta: int) -> None:
        async with self._lock.write():
            # SQLite would silently turn an overflowing sum into REAL
            total = checked_counter(name, self._counters.get(name, 0) + delta)
            await self._write(INCREMENT_COUNTER, (name, delta), what=f"counter {name}")
            self._counters[name] = total

    async def set_counter(self, name: str, value: int) -> None:
        async with self._lock.write():
            checked_counter(name, value)
            await self._write(SET_COUNTER, (name, value), what=f"counter {name}")
            self._counters[name] = value

    async def get_gauge(self, name: str) -> Optional[float]:
        async with self._lock.read():
            return self._gauges.get(name)

    async def get_counter(self, name: str) -> Optional[int]:
        async with self._lock.read():
            return self._counters.get(name)

    async def get_all(self) -> List[Metric]:
        async with self._lock.read():
            metrics = [Metric.gauge(n, v) for n, v in sorted(self._gauges.items())]
            metrics.extend(Metric.counter(n, v) for n, v in sorted(self._counters.items()))
            return metrics

    async def save(self) -> None:
        """Upsert the whole mirror in one pass.

        Best effort, not transactional: a failing row does not stop the
        others, whatever succeeded is committed, and the first failure is
        reported afterwards.
        """
        async with self._lock.write():
            statements: List[Tuple[str, Sequence]] = [
                (UPSERT_GAUGE, (name, value)) for name, value in self._gauges.items()
            ]
            statements.extend((SET_COUNTER, (name, value)) for name, value in self._counters.items())

            if not statements:
                return

            failed = 0
            first_error: Optional[BaseException] = None
            for query, params in statements:
                try:
                    await self._executor.run(lambda: self._db.execute(query, params))
                except (sqlite3.Error, RetryExhaustedError) as e:
                    failed += 1
                    if first_error is None:
                        first_error = e

            try:
                await self._executor.run(self._db.commit)
            except (sqlite3.Error, RetryExhaustedError) as e:
                await self._rollback()
                raise StorageError(f"failed to commit metrics snapshot: {e}") from e

        if first_error is not None:
            logger.error("Snapshot save incomplete", failed=failed, total=len(statements), error=str(first_error))
            raise StorageError(
                f"{failed} of {len(statements)} metrics failed to save: {first_error}"
            ) from first_error

        logger.debug("Snapshot saved to database", count=len(statements))

    async def ping(self) -> None:
        try:
            cursor = await self._db.execute("SELECT 1")
            await cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"database ping failed: {e}") from e

    async def close(self) -> None:
        await self._db.close()
        logger.info("Database connection closed")

    async def _write(self, query: str, params: Sequence, what: str) -> None:
        """Execute and commit one statement through the retry schedule."""
        async def attempt() -> None:
            try:
                await self._db.execute(query, params)
                await self._db.commit()
            except sqlite3.Error:
                await self._rollback()
                raise

        try:
            await self._executor.run(attempt)
        except (sqlite3.Error, RetryExhaustedError) as e:
            raise StorageError(f"failed to save {what}: {e}") from e

    async def _rollback(self) -> None:
        try:
            await self._db.rollback()
        except sqlite3.Error as e:
            logger.error("Rollback failed", error=str(e))
