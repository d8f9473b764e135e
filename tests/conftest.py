"""Shared test fixtures."""

import pytest

from slackvault.models import (
    ChannelConfig,
    HistoryPage,
    SlackMessage,
    SlackUser,
    SyncSettings,
    Thread,
)
from slackvault.slack_api import SlackAPIError
from slackvault.sync_engine import SyncEngine
from slackvault.vault import VaultStore


@pytest.fixture(autouse=True)
def temp_data_dir(monkeypatch, tmp_path):
    """Override data directories to use a temp dir for each test."""
    import slackvault.config as config

    data_dir = tmp_path / "data"
    data_dir.mkdir()

    monkeypatch.setattr(config, "DATA_DIR", data_dir)
    monkeypatch.setattr(config, "DB_PATH", data_dir / "slackvault.db")
    monkeypatch.setattr(config, "SETTINGS_PATH", data_dir / "settings.yaml")
    monkeypatch.setattr(config, "VAULT_PATH", tmp_path / "vault")
    monkeypatch.setattr(config, "DAEMON_PID_FILE", data_dir / "daemon.pid")
    monkeypatch.setattr(config, "DAEMON_LOG_FILE", data_dir / "daemon.log")

    # Keep a developer's .env out of the tests
    monkeypatch.setattr(config, "_env_initialized", True)
    monkeypatch.setattr(config, "SLACK_BOT_TOKEN", "")

    return data_dir


class FakeSlack:
    """In-memory message source with Slack-like paging semantics."""

    def __init__(self):
        self.token = "xoxb-test"
        self.history: dict[str, list[dict]] = {}
        self.threads: dict[tuple[str, str], list[dict]] = {}
        self.users: dict[str, SlackUser] = {}
        self.files: dict[str, bytes] = {}
        self.page_size = 0
        self.fail_history: set[str] = set()
        self.calls: list[tuple] = []

    def set_token(self, token):
        self.token = token

    def calls_of(self, kind):
        return [c for c in self.calls if c[0] == kind]

    def list_history(self, channel_id, oldest=None, limit=200, cursor=None):
        self.calls.append(("history", channel_id, oldest, cursor))
        if channel_id in self.fail_history:
            raise SlackAPIError("channel_not_found")
        messages = [SlackMessage.model_validate(m) for m in self.history.get(channel_id, [])]
        if oldest is not None:
            # Inclusive bound: the engine must drop what it already has
            messages = [m for m in messages if float(m.ts) >= float(oldest)]
        size = self.page_size or max(len(messages), 1)
        start = int(cursor) if cursor else 0
        page = messages[start:start + size]
        has_more = start + size < len(messages)
        return HistoryPage(
            messages=page,
            has_more=has_more,
            next_cursor=str(start + size) if has_more else None,
        )

    def _thread(self, channel_id, ts):
        raw = self.threads.get((channel_id, ts))
        if raw is None:
            raise SlackAPIError("thread_not_found")
        return [SlackMessage.model_validate(m) for m in raw]

    def list_thread_replies(self, channel_id, ts):
        self.calls.append(("replies", channel_id, ts))
        return self._thread(channel_id, ts)[1:]

    def get_thread(self, channel_id, ts):
        self.calls.append(("thread", channel_id, ts))
        messages = self._thread(channel_id, ts)
        return Thread(root=messages[0], replies=messages[1:])

    def get_user_info(self, user_id):
        self.calls.append(("user", user_id))
        if user_id not in self.users:
            raise SlackAPIError("user_not_found")
        return self.users[user_id]

    def download_file(self, url):
        self.calls.append(("download", url))
        if url not in self.files:
            raise SlackAPIError("file_not_found")
        return self.files[url]


@pytest.fixture
def fake_slack():
    slack = FakeSlack()
    slack.users = {
        "UALICE": SlackUser(id="UALICE", name="alice", real_name="Alice Smith", display_name="Alice"),
        "UBOB": SlackUser(id="UBOB", name="bob", real_name="Bob Jones", display_name="Bob"),
    }
    return slack


@pytest.fixture
def vault(tmp_path):
    return VaultStore(tmp_path / "vault")


@pytest.fixture
def make_engine(fake_slack, vault):
    """Factory for an engine over the fake source and a temp vault."""

    def _make(**overrides):
        overrides.setdefault("channels", [ChannelConfig(id="C1", name="general")])
        overrides.setdefault("timezone", "UTC")
        settings = SyncSettings(**overrides)
        return SyncEngine(fake_slack, vault, settings, sleep=lambda s: None)

    return _make
