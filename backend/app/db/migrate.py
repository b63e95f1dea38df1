"""Numbered SQL migrations for the prep database.

``migrations/0001_init.sql``, ``0002_*.sql`` ... are applied in filename order. Each applied
file is recorded in ``schema_migrations`` by stem, so running again is a no-op.
"""
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from backend.app.db.connection import open_db, transaction

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

_LEDGER_DDL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
  name TEXT PRIMARY KEY,
  applied_at TEXT NOT NULL
);
"""


def migration_names() -> list[str]:
    if not MIGRATIONS_DIR.exists():
        return []
    return [fp.stem for fp in sorted(MIGRATIONS_DIR.glob("*.sql"))]


def applied_migrations(conn: sqlite3.Connection) -> set[str]:
    conn.executescript(_LEDGER_DDL)
    return {row["name"] for row in conn.execute("SELECT name FROM schema_migrations")}


def pending_migrations(db_path: str) -> list[str]:
    """Names not yet recorded in ``db_path``; the doctor command reports these."""
    with open_db(db_path) as conn:
        done = applied_migrations(conn)
    return [name for name in migration_names() if name not in done]


def apply_schema(db_path: str) -> list[str]:
    """Apply pending migrations in order; return the names applied by this call."""
    applied: list[str] = []
    with open_db(db_path) as conn:
        done = applied_migrations(conn)
        conn.commit()
        for name in migration_names():
            if name in done:
                continue
            # executescript commits any open transaction itself; the ledger row follows in its own.
            conn.executescript((MIGRATIONS_DIR / f"{name}.sql").read_text(encoding="utf-8"))
            with transaction(conn):
                conn.execute(
                    "INSERT INTO schema_migrations (name, applied_at) VALUES (?, ?)",
                    (name, datetime.now(timezone.utc).isoformat()),
                )
            applied.append(name)
            logger.info("Applied migration %s to %s", name, db_path)
    return applied
