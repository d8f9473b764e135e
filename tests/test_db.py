"""Tests for the sync-run log."""

from slackvault import config
from slackvault.db import get_connection, get_recent_runs, init_db, record_sync_run
from slackvault.models import ChannelResult, PassResult


def _result(errors=()):
    return PassResult(results=[
        ChannelResult(channel_id="C1", channel_name="general", messages_created=3, files_downloaded=1),
        ChannelResult(channel_id="C2", channel_name="random", errors=list(errors)),
    ])


class TestSyncRuns:
    def test_init_creates_table(self):
        init_db()
        assert config.DB_PATH.exists()
        conn = get_connection()
        try:
            tables = [r["name"] for r in conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()]
        finally:
            conn.close()
        assert "sync_runs" in tables

    def test_record_ok(self):
        row_id = record_sync_run(_result(), 1234)
        run = get_recent_runs()[0]
        assert run["id"] == row_id
        assert run["status"] == "ok"
        assert run["channels"] == 2
        assert run["messages_created"] == 3
        assert run["files_downloaded"] == 1
        assert run["duration_ms"] == 1234
        assert run["errors"] == []

    def test_status_inferred(self):
        record_sync_run(_result(errors=["boom"]), 1)
        record_sync_run(PassResult(busy=True), 0)
        statuses = [r["status"] for r in get_recent_runs()]
        assert statuses == ["busy", "partial"]

    def test_explicit_status(self):
        record_sync_run(_result(), 1, status="error")
        assert get_recent_runs()[0]["status"] == "error"

    def test_recent_newest_first_with_limit(self):
        for i in range(5):
            record_sync_run(_result(), i)
        runs = get_recent_runs(limit=3)
        assert [r["duration_ms"] for r in runs] == [4, 3, 2]
