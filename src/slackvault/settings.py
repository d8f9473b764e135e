"""Settings YAML read/write, including the per-channel sync cursors."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from . import config
from .models import ChannelConfig, SyncSettings

logger = logging.getLogger(__name__)


def _settings_path(path: Optional[Path]) -> Path:
    return Path(path) if path else config.SETTINGS_PATH


def load_settings(path: Optional[Path] = None) -> SyncSettings:
    """Read settings from YAML, falling back to defaults.

    Missing keys take their defaults; an unreadable or invalid file is
    logged and replaced by defaults in memory (the file is left alone).
    """
    settings_file = _settings_path(path)
    if not settings_file.exists():
        return SyncSettings()
    try:
        with open(settings_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return SyncSettings.model_validate(data)
    except (yaml.YAMLError, ValidationError, OSError) as e:
        logger.warning("Failed to read settings %s, using defaults: %s", settings_file, e)
        return SyncSettings()


def save_settings(settings: SyncSettings, path: Optional[Path] = None) -> Path:
    """Write settings atomically (temp file + replace). Returns the path."""
    settings_file = _settings_path(path)
    settings_file.parent.mkdir(parents=True, exist_ok=True)
    payload = yaml.safe_dump(
        settings.model_dump(mode="json"),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
    fd, tmp = tempfile.mkstemp(dir=str(settings_file.parent), prefix=".settings-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp, settings_file)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    return settings_file


def get_cursor(settings: SyncSettings, channel_id: str) -> Optional[str]:
    return settings.last_sync_timestamps.get(channel_id)


def advance_cursor(settings: SyncSettings, channel_id: str, ts: str) -> str:
    """Move a channel's cursor forward to ``ts``; never backwards.

    Returns the cursor value after the update.
    """
    current = settings.last_sync_timestamps.get(channel_id)
    if current is None or float(ts) > float(current):
        settings.last_sync_timestamps[channel_id] = ts
        return ts
    return current


def reset_cursors(settings: SyncSettings, channel_id: Optional[str] = None) -> None:
    """Forget saved cursors so the next sync refetches history."""
    if channel_id is None:
        settings.last_sync_timestamps.clear()
    else:
        settings.last_sync_timestamps.pop(channel_id, None)


def add_channel(settings: SyncSettings, channel_id: str, name: str) -> ChannelConfig:
    """Add a channel, or return the existing entry for that ID."""
    for channel in settings.channels:
        if channel.id == channel_id:
            return channel
    channel = ChannelConfig(id=channel_id, name=name.lstrip("#"))
    settings.channels.append(channel)
    return channel


def remove_channel(settings: SyncSettings, channel_id: str) -> bool:
    """Drop a channel and its cursor. Returns False if it was not configured."""
    before = len(settings.channels)
    settings.channels = [c for c in settings.channels if c.id != channel_id]
    reset_cursors(settings, channel_id)
    return len(settings.channels) != before
