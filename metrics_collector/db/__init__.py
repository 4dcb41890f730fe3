"""
Metrics Collector - Database Module

SQLite connection setup for the relational backend.
"""

import aiosqlite
import structlog

from .migrations import run_migrations

logger = structlog.get_logger(__name__)


async def connect(dsn: str) -> aiosqlite.Connection:
    """Open the metrics database and bring its schema up to date."""
    db = await aiosqlite.connect(dsn)
    try:
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA synchronous=NORMAL")
        await db.execute("PRAGMA busy_timeout=5000")
        await run_migrations(db)
    except Exception:
        await db.close()
        raise

    logger.info("Metrics database initialized", dsn=dsn)
    return db


__all__ = ["connect", "run_migrations"]
