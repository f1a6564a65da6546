"""
Repository pattern for the quote status history ledger.

Status changes are stored as an insert-only event log. There are no UPDATE
or DELETE operations on this table.
"""

import json
import logging
from datetime import datetime
from typing import List, Optional

from quote_engine.core.errors import StaleQuoteState
from quote_engine.core.workflow import INITIAL_STATUS, replay_status_history

from .db import DEFAULT_DB_PATH, get_connection
from .models import QuoteStatus, StatusChangeRecord

logger = logging.getLogger(__name__)

_INSERT_SQL = """
    INSERT INTO quote_status_history
    (id, quote_id, from_status, to_status, changed_at,
     changed_by, changed_by_name, comment, metadata)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_SELECT_SQL = """
    SELECT id, quote_id, from_status, to_status, changed_at,
           changed_by, changed_by_name, comment, metadata
    FROM quote_status_history
"""


def _to_row(record: StatusChangeRecord) -> tuple:
    return (
        record.id,
        record.quote_id,
        record.from_status.value,
        record.to_status.value,
        record.changed_at.isoformat(),
        record.changed_by,
        record.changed_by_name,
        record.comment,
        json.dumps(record.metadata) if record.metadata is not None else None,
    )


def _from_row(row) -> StatusChangeRecord:
    return StatusChangeRecord(
        id=row[0],
        quote_id=row[1],
        from_status=QuoteStatus(row[2]),
        to_status=QuoteStatus(row[3]),
        changed_at=datetime.fromisoformat(row[4]),
        changed_by=row[5],
        changed_by_name=row[6],
        comment=row[7],
        metadata=json.loads(row[8]) if row[8] is not None else None,
    )


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the quote_status_history table if it doesn't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS quote_status_history (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                quote_id TEXT NOT NULL,
                from_status TEXT NOT NULL,
                to_status TEXT NOT NULL,
                changed_at TEXT NOT NULL,
                changed_by TEXT NOT NULL,
                changed_by_name TEXT NOT NULL,
                comment TEXT,
                metadata TEXT
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_quote_status_history_quote
            ON quote_status_history (quote_id, seq)
        """)
        conn.commit()
    finally:
        conn.close()


def _last_status(conn, quote_id: str) -> Optional[QuoteStatus]:
    row = conn.execute(
        "SELECT to_status FROM quote_status_history "
        "WHERE quote_id = ? ORDER BY seq DESC LIMIT 1",
        (quote_id,),
    ).fetchone()
    return QuoteStatus(row[0]) if row else None


def insert_status_change(record: StatusChangeRecord, db_path: str = DEFAULT_DB_PATH) -> None:
    """Append a single status change record to the ledger.

    Args:
        record: The status change to record
        db_path: Path to SQLite database file

    Raises:
        StaleQuoteState: If the record does not start where the quote's
            history currently ends
    """
    insert_status_changes([record], db_path)


def insert_status_changes(records: List[StatusChangeRecord], db_path: str = DEFAULT_DB_PATH) -> None:
    """Append multiple status change records atomically.

    The write lock is taken before the ledger is read, so the continuity
    check and the inserts see the same history even with other processes
    writing to the file. Each record must start from the quote's last
    recorded status (DRAFT for a quote with no history). If any record
    fails none of them are kept.

    Args:
        records: Status change records in the order they happened
        db_path: Path to SQLite database file

    Raises:
        StaleQuoteState: If a record does not continue its quote's history
    """
    if not records:
        return

    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN IMMEDIATE")
        latest = {}
        for record in records:
            if record.quote_id not in latest:
                latest[record.quote_id] = _last_status(conn, record.quote_id) or INITIAL_STATUS
            if record.from_status != latest[record.quote_id]:
                raise StaleQuoteState(
                    record.quote_id,
                    expected=record.from_status,
                    actual=latest[record.quote_id],
                )
            conn.execute(_INSERT_SQL, _to_row(record))
            latest[record.quote_id] = record.to_status
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetch_status_history(quote_id: str, db_path: str = DEFAULT_DB_PATH) -> List[StatusChangeRecord]:
    """Fetch the status history of a quote, oldest first.

    Args:
        quote_id: Quote whose history to read
        db_path: Path to SQLite database file

    Returns:
        Records in insertion order
    """
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            _SELECT_SQL + " WHERE quote_id = ? ORDER BY seq ASC",
            (quote_id,),
        )
        return [_from_row(row) for row in cursor.fetchall()]
    finally:
        conn.close()


class StatusHistoryRepository:
    """Repository for the append-only quote status ledger.

    Higher-level access used by the lifecycle service and the CLI.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def initialize(self) -> None:
        initialize_schema(self.db_path)

    def append(self, record: StatusChangeRecord) -> None:
        insert_status_change(record, self.db_path)
        logger.debug(
            "Recorded status change %s for quote %s: %s -> %s",
            record.id, record.quote_id,
            record.from_status.value, record.to_status.value,
        )

    def append_many(self, records: List[StatusChangeRecord]) -> None:
        insert_status_changes(records, self.db_path)
        logger.debug("Recorded %d status changes", len(records))

    def history(self, quote_id: str) -> List[StatusChangeRecord]:
        return fetch_status_history(quote_id, self.db_path)

    def current_status(self, quote_id: str) -> Optional[QuoteStatus]:
        """Status after the last recorded change, or None for no history."""
        conn = get_connection(self.db_path)
        try:
            return _last_status(conn, quote_id)
        finally:
            conn.close()

    def replay(self, quote_id: str) -> QuoteStatus:
        """Rebuild a quote's status from its ledger.

        Raises:
            InvalidTransition: If the recorded history is inconsistent
        """
        return replay_status_history(self.history(quote_id))
