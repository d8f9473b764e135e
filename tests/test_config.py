"""Tests for the config module (paths, env vars, constants)."""

import os
from pathlib import Path

import slackvault.config as config


class TestEnsureDataDirs:
    def test_creates_directory(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "DATA_DIR", tmp_path / "fresh" / "data")
        config.ensure_data_dirs()
        assert config.DATA_DIR.exists()

    def test_idempotent(self):
        config.ensure_data_dirs()
        config.ensure_data_dirs()
        assert config.DATA_DIR.exists()


class TestEnvVars:
    def test_reads_token_and_vault(self, monkeypatch, tmp_path):
        monkeypatch.setattr(config, "LOG_LEVEL", "INFO")
        monkeypatch.setenv("SLACK_BOT_TOKEN", "xoxb-env")
        monkeypatch.setenv("SLACKVAULT_VAULT_PATH", str(tmp_path / "MyVault"))
        monkeypatch.setenv("SLACKVAULT_LOG_LEVEL", "debug")
        config._init_env_vars()
        assert config.SLACK_BOT_TOKEN == "xoxb-env"
        assert config.VAULT_PATH == Path(tmp_path / "MyVault")
        assert config.LOG_LEVEL == "DEBUG"

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setattr(config, "LOG_LEVEL", "INFO")
        monkeypatch.setenv("SLACKVAULT_LOG_LEVEL", "chatty")
        config._init_env_vars()
        assert config.LOG_LEVEL == "INFO"

    def test_env_file_does_not_override(self, monkeypatch, tmp_path):
        (tmp_path / ".env").write_text("# comment\nSLACK_BOT_TOKEN=from-file\nSLACKVAULT_X=1\n")
        monkeypatch.setattr(config, "PROJECT_ROOT", tmp_path)
        monkeypatch.setenv("SLACK_BOT_TOKEN", "from-env")
        monkeypatch.setenv("SLACKVAULT_X", "")
        config._load_env()
        assert os.environ["SLACK_BOT_TOKEN"] == "from-env"
        assert os.environ["SLACKVAULT_X"] == "1"


class TestConstants:
    def test_endpoints(self):
        assert config.SLACK_ENDPOINTS["conversations_history"].endswith("/conversations.history")
        assert set(config.SLACK_ENDPOINTS) >= {
            "auth_test", "conversations_history", "conversations_replies", "users_info",
        }

    def test_skip_subtypes(self):
        assert "channel_join" in config.SKIP_SUBTYPES
        assert "bot_message" not in config.SKIP_SUBTYPES

    def test_interval_bounds(self):
        assert config.SYNC_INTERVAL_MIN < config.SYNC_INTERVAL_MAX
