"""SQLite-backed audit trail store with WAL mode and indexed queries.

Provides functions to initialize the database, insert audit entries, and
query the audit trail with flexible filtering. Uses parameterized queries
exclusively (never string concatenation) to prevent SQL injection.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from replydraft.audit.models import AuditEntry


def init_audit_db(db_path: Path) -> sqlite3.Connection:
    """Create and initialize the audit database with WAL mode and indexes.

    The connection may be used from the event loop thread and from worker
    threads, so ``check_same_thread`` is disabled.  Every audit write runs on
    the event-loop thread (protocol, store expiry listener and sweeper);
    worker threads only read, e.g. the readiness probe's ``SELECT 1``.

    Args:
        db_path: Path to the SQLite database file.  Parent directories are
            created if needed.  ``:memory:`` is accepted for tests.

    Returns:
        An open sqlite3.Connection with WAL mode enabled.
    """
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            event_type TEXT NOT NULL,
            token TEXT,
            thread_id TEXT,
            recipients TEXT,
            subject TEXT,
            body TEXT,
            draft_state TEXT,
            external_draft_id TEXT,
            metadata TEXT
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_token ON audit_log (token)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_thread ON audit_log (thread_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp)")

    conn.commit()
    return conn


def insert_audit_entry(conn: sqlite3.Connection, entry: AuditEntry) -> int:
    """Insert an audit entry into the database.

    Serializes the metadata dict to a JSON string if present.

    Args:
        conn: An open database connection.
        entry: The audit entry to insert.

    Returns:
        The row ID of the inserted entry.
    """
    metadata_json: str | None = None
    if entry.metadata is not None:
        metadata_json = json.dumps(entry.metadata)

    timestamp = datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")

    cursor = conn.execute(
        """
        INSERT INTO audit_log (
            timestamp, event_type, token, thread_id, recipients, subject,
            body, draft_state, external_draft_id, metadata
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            timestamp,
            entry.event_type.value,
            entry.token,
            entry.thread_id,
            entry.recipients,
            entry.subject,
            entry.body,
            entry.draft_state,
            entry.external_draft_id,
            metadata_json,
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def query_audit_trail(
    conn: sqlite3.Connection,
    *,
    token: str | None = None,
    thread_id: str | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    event_type: str | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Query the audit trail with flexible filtering.

    All filters are optional. Results are ordered newest first.

    Args:
        conn: An open database connection.
        token: Filter by confirmation token (exact match).
        thread_id: Filter by thread ID (exact match).
        from_date: Filter entries on or after this ISO 8601 date.
        to_date: Filter entries on or before this ISO 8601 date.
        event_type: Filter by event type (exact match).
        limit: Maximum number of results to return (default 50).

    Returns:
        A list of dicts, one per matching audit entry, newest first.
    """
    conn.row_factory = sqlite3.Row

    conditions: list[str] = []
    params: list[str | int] = []

    if token is not None:
        conditions.append("token = ?")
        params.append(token)

    if thread_id is not None:
        conditions.append("thread_id = ?")
        params.append(thread_id)

    if from_date is not None:
        conditions.append("timestamp >= ?")
        params.append(from_date)

    if to_date is not None:
        conditions.append("timestamp <= ?")
        params.append(to_date)

    if event_type is not None:
        conditions.append("event_type = ?")
        params.append(event_type)

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    # id breaks ties between entries written within the same second
    query = f"SELECT * FROM audit_log {where_clause} ORDER BY timestamp DESC, id DESC LIMIT ?"
    params.append(limit)

    rows = conn.execute(query, params).fetchall()

    results: list[dict[str, Any]] = []
    for row in rows:
        row_dict = dict(row)
        if row_dict.get("metadata") is not None:
            row_dict["metadata"] = json.loads(row_dict["metadata"])
        results.append(row_dict)

    return results


def close_audit_db(conn: sqlite3.Connection) -> None:
    """Close the audit database connection."""
    conn.close()
