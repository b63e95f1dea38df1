"""SQLite access for the prep store: connection factory and transaction scope."""
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

# Concurrent API requests each open their own connection; wait on the write lock instead of failing.
BUSY_TIMEOUT_SECONDS = 5.0


def get_connection(db_path: str) -> sqlite3.Connection:
    """Open ``db_path`` (creating parent dirs) with Row access and foreign-key cascades on.

    Callers own the connection and must close it.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path), timeout=BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Commit the block's writes together, or roll all of them back on error."""
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


@contextmanager
def open_db(db_path: str) -> Iterator[sqlite3.Connection]:
    """``get_connection`` scoped to a with-block; used by the CLI commands."""
    conn = get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()
