"""
Metrics Collector - Database Migrations

Tracked, ordered schema migrations for the relational backend.
"""

import aiosqlite
import structlog

logger = structlog.get_logger(__name__)


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Apply all pending migrations on an open connection."""
    # Create migrations tracking table
    await db.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT UNIQUE NOT NULL,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    await db.commit()

    cursor = await db.execute("SELECT name FROM schema_migrations")
    applied = {row[0] for row in await cursor.fetchall()}

    migrations = [
        ("001_metrics_tables", migrate_001_metrics_tables),
    ]

    for name, func in migrations:
        if name not in applied:
            await func(db)
            await db.execute("INSERT INTO schema_migrations (name) VALUES (?)", (name,))
            await db.commit()
            logger.info("Migration applied", migration=name)


async def migrate_001_metrics_tables(db: aiosqlite.Connection) -> None:
    """Gauge and counter tables, one row per metric name."""
    await db.execute("""
        CREATE TABLE IF NOT EXISTS gauge (
            name TEXT PRIMARY KEY,
            value DOUBLE PRECISION NOT NULL
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS counter (
            name TEXT PRIMARY KEY,
            value BIGINT NOT NULL
        )
    """)
