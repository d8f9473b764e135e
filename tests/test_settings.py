"""Tests for settings persistence and cursor helpers."""

import yaml

from slackvault import config
from slackvault.models import ChannelConfig, SyncSettings
from slackvault.settings import (
    add_channel,
    advance_cursor,
    get_cursor,
    load_settings,
    remove_channel,
    reset_cursors,
    save_settings,
)


class TestLoadSave:
    def test_missing_file_gives_defaults(self):
        settings = load_settings()
        assert settings.channels == []
        assert settings.note_folder_path == "Slack"
        assert settings.sync_interval == 30

    def test_round_trip(self):
        settings = SyncSettings(
            channels=[ChannelConfig(id="C1", name="general", folder_name="Team")],
            group_messages_by_date=True,
            last_sync_timestamps={"C1": "1700000000.000100"},
        )
        path = save_settings(settings)
        assert path == config.SETTINGS_PATH
        loaded = load_settings()
        assert loaded == settings

    def test_cursor_stays_a_string(self):
        save_settings(SyncSettings(last_sync_timestamps={"C1": "1700000000.000100"}))
        raw = yaml.safe_load(config.SETTINGS_PATH.read_text(encoding="utf-8"))
        assert raw["last_sync_timestamps"]["C1"] == "1700000000.000100"

    def test_partial_file_fills_defaults(self):
        config.SETTINGS_PATH.write_text("auto_sync: true\n", encoding="utf-8")
        settings = load_settings()
        assert settings.auto_sync is True
        assert settings.file_name_template == "{date}-{channelName}-{ts}"

    def test_invalid_file_gives_defaults(self):
        config.SETTINGS_PATH.write_text("channels: [not, a, channel]\n", encoding="utf-8")
        assert load_settings() == SyncSettings()

    def test_broken_yaml_gives_defaults(self):
        config.SETTINGS_PATH.write_text("a: [unclosed\n", encoding="utf-8")
        assert load_settings() == SyncSettings()

    def test_interval_clamped(self):
        assert SyncSettings(sync_interval=0).sync_interval == 1
        assert SyncSettings(sync_interval=1000).sync_interval == 360

    def test_explicit_path(self, tmp_path):
        target = tmp_path / "other" / "s.yaml"
        save_settings(SyncSettings(auto_sync=True), target)
        assert load_settings(target).auto_sync is True
        assert not config.SETTINGS_PATH.exists()

    def test_no_temp_files_left(self):
        save_settings(SyncSettings())
        leftovers = [p.name for p in config.SETTINGS_PATH.parent.iterdir() if p.suffix == ".tmp"]
        assert leftovers == []


class TestCursors:
    def test_advance_forward_only(self):
        settings = SyncSettings()
        assert get_cursor(settings, "C1") is None
        assert advance_cursor(settings, "C1", "100.5") == "100.5"
        assert advance_cursor(settings, "C1", "99.9") == "100.5"
        assert advance_cursor(settings, "C1", "100.6") == "100.6"
        assert get_cursor(settings, "C1") == "100.6"

    def test_numeric_not_lexicographic(self):
        settings = SyncSettings(last_sync_timestamps={"C1": "99.0"})
        assert advance_cursor(settings, "C1", "100.0") == "100.0"

    def test_reset_one_or_all(self):
        settings = SyncSettings(last_sync_timestamps={"C1": "1.0", "C2": "2.0"})
        reset_cursors(settings, "C1")
        assert settings.last_sync_timestamps == {"C2": "2.0"}
        reset_cursors(settings)
        assert settings.last_sync_timestamps == {}


class TestChannels:
    def test_add_channel(self):
        settings = SyncSettings()
        channel = add_channel(settings, "C1", "#general")
        assert channel.name == "general"
        assert channel.enabled
        assert add_channel(settings, "C1", "renamed") is channel
        assert len(settings.channels) == 1

    def test_remove_channel_drops_cursor(self):
        settings = SyncSettings(
            channels=[ChannelConfig(id="C1", name="general")],
            last_sync_timestamps={"C1": "1.0"},
        )
        assert remove_channel(settings, "C1")
        assert settings.channels == []
        assert settings.last_sync_timestamps == {}
        assert not remove_channel(settings, "C1")

    def test_enabled_channels(self):
        settings = SyncSettings(channels=[
            ChannelConfig(id="C1", name="a"),
            ChannelConfig(id="C2", name="b", enabled=False),
        ])
        assert [c.id for c in settings.enabled_channels()] == ["C1"]
