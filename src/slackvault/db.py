"""SQLite log of sync passes."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone

from . import config
from .models import PassResult


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_connection() -> sqlite3.Connection:
    """Get a database connection to the sync log."""
    config.ensure_data_dirs()
    conn = sqlite3.connect(str(config.DB_PATH), timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=10000")
    return conn


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS sync_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_at TEXT NOT NULL,
    status TEXT NOT NULL,
    channels INTEGER NOT NULL DEFAULT 0,
    messages_created INTEGER NOT NULL DEFAULT 0,
    threads_updated INTEGER NOT NULL DEFAULT 0,
    files_downloaded INTEGER NOT NULL DEFAULT 0,
    errors TEXT NOT NULL DEFAULT '[]',
    duration_ms INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_sync_runs_run_at ON sync_runs(run_at);
"""


def init_db() -> None:
    """Initialize the database schema."""
    conn = get_connection()
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()


def record_sync_run(result: PassResult, duration_ms: int, status: str = "") -> int:
    """Insert one sync pass into the log. Returns the row id."""
    if not status:
        if result.busy:
            status = "busy"
        elif result.errors:
            status = "partial"
        else:
            status = "ok"
    conn = get_connection()
    try:
        conn.executescript(SCHEMA_SQL)
        cur = conn.execute(
            """INSERT INTO sync_runs
            (run_at, status, channels, messages_created, threads_updated,
             files_downloaded, errors, duration_ms)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                now_iso(),
                status,
                len(result.results),
                result.messages_created,
                result.threads_updated,
                result.files_downloaded,
                json.dumps(result.errors[:50]),
                duration_ms,
            ),
        )
        conn.commit()
        return cur.lastrowid
    finally:
        conn.close()


def get_recent_runs(limit: int = 10) -> list[dict]:
    """Most recent sync passes, newest first."""
    conn = get_connection()
    try:
        conn.executescript(SCHEMA_SQL)
        rows = conn.execute(
            "SELECT * FROM sync_runs ORDER BY id DESC LIMIT ?", (limit,)
        ).fetchall()
        runs = []
        for row in rows:
            run = dict(row)
            run["errors"] = json.loads(run["errors"]) if run["errors"] else []
            runs.append(run)
        return runs
    finally:
        conn.close()
