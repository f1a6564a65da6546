"""
Database connection management for the status ledger.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "quote_engine.db"
BUSY_TIMEOUT_SECONDS = 5.0


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open a ledger connection.

    Missing parent directories are created so ``init --db some/dir/x.db``
    works on a fresh checkout. Writers from other processes are waited on
    for up to ``BUSY_TIMEOUT_SECONDS`` before ``sqlite3.OperationalError``.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection with foreign key constraints enabled
    """
    path = Path(db_path)
    if path.parent != Path("."):
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=BUSY_TIMEOUT_SECONDS)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
