"""Note store over a local Obsidian vault directory.

All paths are vault-relative POSIX strings ("Slack/general/note.md").
"""

from __future__ import annotations

import logging
from pathlib import Path

from .templates import normalize_path

logger = logging.getLogger(__name__)


class NoteExistsError(FileExistsError):
    """Target note already exists."""


class NoteNotFoundError(FileNotFoundError):
    """Target note does not exist."""


class VaultStore:
    """Create/read/modify text and binary files under a vault root."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _full(self, path: str) -> Path:
        rel = normalize_path(path)
        full = (self.root / rel).resolve()
        root = self.root.resolve()
        if full != root and root not in full.parents:
            raise ValueError(f"Path escapes vault: {path}")
        return full

    def exists(self, path: str) -> bool:
        return self._full(path).exists()

    def ensure_folder(self, path: str) -> None:
        self._full(path).mkdir(parents=True, exist_ok=True)

    def create_text(self, path: str, content: str) -> None:
        full = self._full(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(full, "x", encoding="utf-8", newline="") as f:
                f.write(content)
        except FileExistsError:
            raise NoteExistsError(path) from None
        logger.debug("Created %s", path)

    def read_text(self, path: str) -> str:
        full = self._full(path)
        if not full.is_file():
            raise NoteNotFoundError(path)
        with open(full, encoding="utf-8", newline="") as f:
            return f.read()

    def modify_text(self, path: str, content: str) -> None:
        full = self._full(path)
        if not full.is_file():
            raise NoteNotFoundError(path)
        with open(full, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        logger.debug("Modified %s", path)

    def create_binary(self, path: str, data: bytes) -> None:
        full = self._full(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(full, "xb") as f:
                f.write(data)
        except FileExistsError:
            raise NoteExistsError(path) from None
        logger.debug("Saved attachment %s (%d bytes)", path, len(data))
