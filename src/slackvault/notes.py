"""Note layout -- where messages land in the vault and what they look like.

Two layouts:
  - Individual notes: one message -> one file, named from
    ``file_name_template``. Never rewritten once created, except to
    retrofit a thread section.
  - Grouped notes: one channel x day -> one file. Each entry is preceded
    by a hidden ``<!-- ts:<id> -->`` marker used for dedup and for
    finding the entry again when its thread grows.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .config import BOT_USER_NAME
from .models import SlackMessage, SyncSettings, ThreadReply
from .templates import (
    apply_template,
    date_folder_path,
    format_date,
    format_time,
    get_tz,
    normalize_path,
    sanitize_file_name,
    template_vars,
    ts_to_datetime,
)
from .vault import NoteNotFoundError

logger = logging.getLogger(__name__)

# Converted Slack text never contains a raw "<", so the hidden marker only
# ever comes from a rendered thread section.
THREAD_MARKER = "<!-- thread -->"
INDIVIDUAL_THREAD_HEADING = f"\n\n---\n\n### Thread\n{THREAD_MARKER}\n\n"
GROUPED_THREAD_HEADING = f"\n\n#### Thread\n{THREAD_MARKER}\n\n"
_MARKER_PREFIX = "<!-- ts:"

_FRONTMATTER_RE = re.compile(r"^---\n(.*?)\n---\n(.*)$", re.DOTALL)
_LIST_ITEM_RE = re.compile(r"^\s+-\s+")


def ts_marker(ts: str) -> str:
    """Hidden identity marker preceding a grouped-note entry."""
    return f"{_MARKER_PREFIX}{ts} -->"


def parse_frontmatter(content: str) -> Optional[tuple[str, str]]:
    """Split a note into (frontmatter, body); None if there is no block."""
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return None
    return match.group(1), match.group(2)


def frontmatter_value(frontmatter: str, key: str) -> Optional[str]:
    """Value of a scalar ``key: value`` line, unquoted."""
    prefix = f"{key}:"
    for line in frontmatter.split("\n"):
        if line.startswith(prefix):
            return line[len(prefix):].strip().strip('"')
    return None


def update_frontmatter_authors(frontmatter: str, new_author: str) -> str:
    """Add an author to the frontmatter author set.

    A single ``author: A`` line is promoted to an ``authors:`` list once a
    second distinct author shows up. Existing order is kept and new
    authors are appended.
    """
    lines = frontmatter.split("\n")
    authors: list[str] = []
    author_line = -1
    list_start = -1
    list_end = -1

    for i, line in enumerate(lines):
        if line.startswith("author: "):
            author_line = i
            authors.append(line[len("author: "):].strip())
        elif line.startswith("authors:"):
            list_start = i
            j = i + 1
            while j < len(lines) and _LIST_ITEM_RE.match(lines[j]):
                authors.append(_LIST_ITEM_RE.sub("", lines[j]).strip())
                j += 1
            list_end = j - 1

    if new_author in authors:
        return frontmatter

    authors.append(new_author)
    authors = list(dict.fromkeys(authors))
    if len(authors) == 1:
        block = f"author: {authors[0]}"
    else:
        block = "authors:\n" + "\n".join(f"  - {a}" for a in authors)

    if author_line >= 0 and list_start >= 0:
        # Both forms present: merge them into one list
        drop = {author_line, *range(list_start, list_end + 1)}
        first = min(drop)
        rest = [line for i, line in enumerate(lines) if i > first and i not in drop]
        lines = lines[:first] + [block] + rest
    elif author_line >= 0:
        lines[author_line] = block
    elif list_start >= 0:
        lines[list_start:list_end + 1] = [block]
    else:
        lines.append(block)
    return "\n".join(lines)


class NoteWriter:
    """Builds note paths and content and writes them through a note store."""

    def __init__(self, store, settings: SyncSettings) -> None:
        self.store = store
        self.settings = settings

    def update_settings(self, settings: SyncSettings) -> None:
        self.settings = settings

    @property
    def tz(self):
        return get_tz(self.settings.timezone)

    # -- paths -------------------------------------------------------------

    def note_folder_path(
        self, channel_name: str, ts: str, folder_name: Optional[str] = None
    ) -> str:
        base = f"{self.settings.note_folder_path}/{folder_name or channel_name}"
        if self.settings.organize_by_date:
            base = f"{base}/{date_folder_path(ts_to_datetime(ts, self.tz))}"
        return normalize_path(base)

    def attachment_folder_path(
        self, channel_name: str, folder_name: Optional[str] = None
    ) -> str:
        return normalize_path(
            f"{self.settings.attachment_folder_path}/{folder_name or channel_name}"
        )

    def template_vars(self, ts: str, channel_name: str, user_name: Optional[str] = None) -> dict:
        return template_vars(ts, channel_name, user_name, self.tz)

    def individual_note_path(
        self, ts: str, channel_name: str, user_name: str, folder_name: Optional[str] = None
    ) -> str:
        variables = self.template_vars(ts, channel_name, user_name)
        file_name = sanitize_file_name(apply_template(self.settings.file_name_template, variables))
        folder = self.note_folder_path(channel_name, ts, folder_name)
        return normalize_path(f"{folder}/{file_name}.md")

    def grouped_note_path(
        self, ts: str, channel_name: str, user_name: str, folder_name: Optional[str] = None
    ) -> str:
        variables = self.template_vars(ts, channel_name, user_name)
        file_name = sanitize_file_name(
            apply_template(self.settings.grouped_file_name_template, variables)
        )
        folder = self.note_folder_path(channel_name, ts, folder_name)
        return normalize_path(f"{folder}/{file_name}.md")

    # -- rendering ---------------------------------------------------------

    def render_individual_thread(self, replies: list[ThreadReply]) -> str:
        section = INDIVIDUAL_THREAD_HEADING
        for reply in replies:
            time_str = format_time(ts_to_datetime(reply.ts, self.tz))
            section += f"**{reply.user_name}** ({time_str}):\n{reply.text}\n\n"
        return section

    def render_grouped_thread(self, replies: list[ThreadReply]) -> str:
        blocks = []
        for reply in replies:
            time_str = format_time(ts_to_datetime(reply.ts, self.tz))
            quoted = reply.text.replace("\n", "\n> ")
            blocks.append(f"> **{reply.user_name}** ({time_str}):\n> {quoted}")
        return GROUPED_THREAD_HEADING + "\n\n".join(blocks)

    def render_individual_note(
        self,
        message: SlackMessage,
        channel_name: str,
        user_name: str,
        markdown_text: str,
        attachment_embeds: list[str],
        thread_replies: Optional[list[ThreadReply]] = None,
    ) -> str:
        dt = ts_to_datetime(message.ts, self.tz)
        lines = ["---", "source: Slack", f"channel: {channel_name}"]
        if self.settings.include_user_name:
            lines.append(f"author: {user_name}")
        lines += [
            f"date: {format_date(dt)}",
            f'time: "{format_time(dt)}"',
            f"timestamp: {message.ts}",
            "---",
            "",
        ]
        content = "\n".join(lines) + markdown_text
        if attachment_embeds:
            content += "\n\n" + "\n".join(attachment_embeds)
        if thread_replies:
            content += self.render_individual_thread(thread_replies)
        return content

    def render_grouped_entry(
        self,
        message: SlackMessage,
        channel_name: str,
        user_name: str,
        markdown_text: str,
        attachment_embeds: list[str],
        thread_replies: Optional[list[ThreadReply]] = None,
    ) -> str:
        variables = {
            **self.template_vars(message.ts, channel_name, user_name),
            "text": markdown_text,
            "userName": user_name,
        }
        entry = apply_template(self.settings.grouped_message_template, variables)
        if attachment_embeds:
            entry += "\n" + "\n".join(attachment_embeds)
        if thread_replies:
            entry += self.render_grouped_thread(thread_replies)
        return f"{ts_marker(message.ts)}\n{entry}"

    # -- writes ------------------------------------------------------------

    def create_individual_note(
        self,
        message: SlackMessage,
        channel_name: str,
        user_name: str,
        markdown_text: str,
        attachment_embeds: list[str],
        thread_replies: Optional[list[ThreadReply]] = None,
        folder_name: Optional[str] = None,
    ) -> Optional[str]:
        """Write a note for one message. Returns None if it already exists."""
        path = self.individual_note_path(message.ts, channel_name, user_name, folder_name)
        if self.store.exists(path):
            logger.debug("Note %s already exists, skipping", path)
            return None
        self.store.ensure_folder(self.note_folder_path(channel_name, message.ts, folder_name))
        content = self.render_individual_note(
            message, channel_name, user_name, markdown_text, attachment_embeds, thread_replies,
        )
        self.store.create_text(path, content)
        return path

    def append_to_grouped_note(
        self,
        message: SlackMessage,
        channel_name: str,
        user_name: str,
        markdown_text: str,
        attachment_embeds: list[str],
        thread_replies: Optional[list[ThreadReply]] = None,
        folder_name: Optional[str] = None,
    ) -> Optional[str]:
        """Append a message entry to its daily note. None if already present."""
        path = self.grouped_note_path(message.ts, channel_name, user_name, folder_name)
        folder = self.note_folder_path(channel_name, message.ts, folder_name)
        self.store.ensure_folder(folder)

        entry = self.render_grouped_entry(
            message, channel_name, user_name, markdown_text, attachment_embeds, thread_replies,
        )

        if self.store.exists(path):
            existing = self.store.read_text(path)
            if ts_marker(message.ts) in existing:
                logger.debug("Entry %s already in %s, skipping", message.ts, path)
                return None
            parsed = parse_frontmatter(existing)
            if parsed and self.settings.include_user_name:
                frontmatter, body = parsed
                frontmatter = update_frontmatter_authors(frontmatter, user_name)
                new_content = f"---\n{frontmatter}\n---\n{body}\n\n{entry}"
            else:
                new_content = f"{existing}\n\n{entry}"
            self.store.modify_text(path, new_content)
        else:
            variables = self.template_vars(message.ts, channel_name, user_name)
            frontmatter = apply_template(self.settings.grouped_frontmatter_template, variables)
            if self.settings.include_user_name:
                frontmatter = update_frontmatter_authors(frontmatter, user_name)
            self.store.create_text(path, f"---\n{frontmatter}\n---\n\n{entry}")
        return path

    def update_individual_note_thread(
        self,
        parent: SlackMessage,
        channel_name: str,
        user_name: str,
        thread_replies: list[ThreadReply],
        folder_name: Optional[str] = None,
    ) -> bool:
        """Replace or add the thread section of an existing individual note.

        Returns True only when the file content actually changed.
        """
        path = self.individual_note_path(parent.ts, channel_name, user_name, folder_name)
        try:
            content = self.store.read_text(path)
        except NoteNotFoundError:
            logger.debug("No note for thread root %s at %s", parent.ts, path)
            return False

        section = self.render_individual_thread(thread_replies)
        parsed = parse_frontmatter(content)
        if parsed is not None:
            note_ts = frontmatter_value(parsed[0], "timestamp")
            if note_ts is not None and note_ts != parent.ts:
                logger.warning(
                    "Note %s belongs to %s, not thread root %s", path, note_ts, parent.ts,
                )
                return False

        # Without frontmatter the note is still matched by path alone
        idx = content.rfind(INDIVIDUAL_THREAD_HEADING)
        base = content[:idx] if idx >= 0 else content.rstrip("\n")
        new_content = base + section

        if new_content == content:
            return False
        self.store.modify_text(path, new_content)
        return True

    def update_grouped_note_thread(
        self,
        parent: SlackMessage,
        channel_name: str,
        user_name: str,
        thread_replies: list[ThreadReply],
        folder_name: Optional[str] = None,
    ) -> bool:
        """Replace or add the thread block inside a grouped-note entry.

        Returns True only when the file content actually changed.
        """
        path = self.grouped_note_path(parent.ts, channel_name, user_name, folder_name)
        try:
            content = self.store.read_text(path)
        except NoteNotFoundError:
            logger.debug("No daily note for thread root %s at %s", parent.ts, path)
            return False

        marker = ts_marker(parent.ts)
        start = content.find(marker)
        if start < 0:
            logger.debug("Entry %s not found in %s", parent.ts, path)
            return False

        end = content.find(_MARKER_PREFIX, start + len(marker))
        if end < 0:
            end = len(content)
        entry = content[start:end]
        core = entry.rstrip("\n")
        trailing = entry[len(core):]

        idx = core.rfind(GROUPED_THREAD_HEADING)
        base = core[:idx] if idx >= 0 else core
        new_entry = base + self.render_grouped_thread(thread_replies) + trailing
        new_content = content[:start] + new_entry + content[end:]

        if new_content == content:
            return False
        self.store.modify_text(path, new_content)
        return True

    def save_attachment(
        self,
        data: bytes,
        file_name: str,
        channel_name: str,
        folder_name: Optional[str] = None,
    ) -> str:
        """Save a downloaded file, suffixing ``_1``, ``_2``... on collision."""
        folder = self.attachment_folder_path(channel_name, folder_name)
        self.store.ensure_folder(folder)

        sanitized = sanitize_file_name(file_name) or "file"
        stem, dot, ext = sanitized.rpartition(".")
        if not dot or not stem:
            stem, ext = sanitized, ""
        path = normalize_path(f"{folder}/{sanitized}")
        counter = 1
        while self.store.exists(path):
            suffix = f".{ext}" if ext else ""
            path = normalize_path(f"{folder}/{stem}_{counter}{suffix}")
            counter += 1

        self.store.create_binary(path, data)
        return path

    @staticmethod
    def create_embed(path: str) -> str:
        """Obsidian embed link for a vault file."""
        return f"![[{path}]]"


def display_user(message: SlackMessage, resolver) -> str:
    """Author display name for a message, ``bot`` when it has no user."""
    return resolver(message.user) if message.user else BOT_USER_NAME
