"""Sync engine -- incremental Slack -> vault mirroring.

One pass walks every enabled channel in turn:

  1. page through history newer than the channel cursor
  2. sort the batch by timestamp and resolve every referenced user once
  3. classify each message as skip / thread reply / top-level
  4. write notes for top-level messages (individual or grouped layout)
  5. advance the cursor to the newest timestamp seen, skipped ones included
  6. retrofit thread sections into notes whose root was synced earlier

Errors on one message, file, or thread are recorded on the channel
result and processing moves on. A failing channel does not stop the
others. Only one pass may run at a time; a second caller gets a busy
result straight away.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, Optional

from . import config
from .config import (
    PAGE_DELAY_SECONDS,
    SKIP_SUBTYPES,
    SYNC_BATCH_SIZE,
)
from .db import record_sync_run
from .markup import UserResolver, collect_user_ids, convert
from .models import (
    ChannelConfig,
    ChannelResult,
    PassResult,
    SlackFile,
    SlackMessage,
    SyncSettings,
    ThreadReply,
)
from .notes import NoteWriter, display_user
from .settings import advance_cursor, get_cursor, load_settings, save_settings
from .slack_api import SlackAPI
from .users import UserDirectory
from .vault import VaultStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def should_skip_message(message: SlackMessage) -> bool:
    """System messages, and messages with neither text nor files."""
    if message.subtype and message.subtype in SKIP_SUBTYPES:
        return True
    return not message.text and not message.files


def is_standalone_upload(message: SlackMessage) -> bool:
    """A bare file drop: at least one file and no text worth rendering."""
    return bool(message.files) and not message.text.strip()


def partition_batch(
    messages: Iterable[SlackMessage],
) -> tuple[list[SlackMessage], list[SlackMessage], list[SlackMessage]]:
    """Split a sorted batch into (skipped, top_level, replies)."""
    skipped: list[SlackMessage] = []
    top_level: list[SlackMessage] = []
    replies: list[SlackMessage] = []
    for message in messages:
        if should_skip_message(message):
            skipped.append(message)
        elif message.is_reply:
            replies.append(message)
        else:
            top_level.append(message)
    return skipped, top_level, replies


def retrofit_candidates(
    top_level: Iterable[SlackMessage], replies: Iterable[SlackMessage]
) -> list[str]:
    """Thread roots to update: reply parents not themselves in the batch."""
    in_batch = {m.ts for m in top_level}
    parents = {m.thread_ts for m in replies if m.thread_ts} - in_batch
    return sorted(parents, key=float)


def latest_ts(messages: Iterable[SlackMessage], floor: Optional[str] = None) -> Optional[str]:
    """Largest timestamp among messages, never below ``floor``."""
    best = floor
    for message in messages:
        if best is None or float(message.ts) > float(best):
            best = message.ts
    return best


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class SyncEngine:
    """Runs sync passes from a message source into a note store."""

    def __init__(
        self,
        source,
        store,
        settings: SyncSettings,
        save_settings: Optional[Callable[[SyncSettings], object]] = None,
        load_settings: Optional[Callable[[], SyncSettings]] = None,
        users: Optional[UserDirectory] = None,
        sleep: Callable[[float], None] = time.sleep,
        record_runs: bool = True,
    ) -> None:
        self.source = source
        self.settings = settings
        self.notes = NoteWriter(store, settings)
        self.users = users or UserDirectory(source.get_user_info, sleep=sleep)
        self._save_settings = save_settings
        self._load_settings = load_settings
        self._sleep = sleep
        self._record_runs = record_runs
        self._lock = threading.Lock()

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    def update_settings(self, settings: SyncSettings) -> None:
        self.settings = settings
        self.notes.update_settings(settings)

    def set_token(self, token: str) -> None:
        """Swap the Slack credential; cached user names belong to the old one."""
        self.source.set_token(token)
        self.users.invalidate()

    # -- pass ----------------------------------------------------------------

    def run_pass(self, channels: Optional[list[ChannelConfig]] = None) -> PassResult:
        """Sync the given channels (default: all enabled ones)."""
        if not self._lock.acquire(blocking=False):
            logger.info("Sync already in progress, ignoring trigger")
            outcome = PassResult(busy=True)
            self._record_run(outcome, 0)
            return outcome
        try:
            if self._load_settings is not None:
                # Pick up edits made on disk since the last pass
                self.update_settings(self._load_settings())
            return self._run_pass(channels)
        finally:
            self._lock.release()

    def _run_pass(self, channels: Optional[list[ChannelConfig]]) -> PassResult:
        start = time.monotonic()
        if channels is None:
            channels = self.settings.channels
        channels = [c for c in channels if c.enabled]
        if not channels:
            logger.info("No channels configured for sync")
            return PassResult()

        logger.info("Syncing %d channel(s)...", len(channels))
        results: list[ChannelResult] = []
        try:
            for channel in channels:
                try:
                    results.append(self.sync_channel(channel))
                except Exception as e:
                    logger.error("Channel %s failed: %s", channel.name, e, exc_info=True)
                    results.append(ChannelResult(
                        channel_id=channel.id,
                        channel_name=channel.name,
                        errors=[str(e)],
                    ))
        finally:
            # Channels finished before any abort keep their advanced cursors
            if self._save_settings is not None:
                self._save_settings(self.settings)

        outcome = PassResult(results=results)
        if outcome.errors:
            logger.warning("Sync finished: %s", outcome.summary())
            for error in outcome.errors:
                logger.warning("  %s", error)
        else:
            logger.info("Sync finished: %s", outcome.summary())

        self._record_run(outcome, int((time.monotonic() - start) * 1000))
        return outcome

    def _record_run(self, outcome: PassResult, duration_ms: int) -> None:
        if not self._record_runs:
            return
        try:
            record_sync_run(outcome, duration_ms)
        except (sqlite3.Error, OSError) as e:
            logger.warning("Could not record sync run: %s", e)

    # -- channel -------------------------------------------------------------

    def fetch_history(self, channel_id: str, oldest: Optional[str]) -> list[SlackMessage]:
        """Every message newer than ``oldest``, across all pages."""
        messages: list[SlackMessage] = []
        page_cursor: Optional[str] = None
        while True:
            page = self.source.list_history(
                channel_id, oldest=oldest, limit=SYNC_BATCH_SIZE, cursor=page_cursor,
            )
            messages.extend(page.messages)
            if not page.has_more or not page.next_cursor:
                break
            page_cursor = page.next_cursor
            self._sleep(PAGE_DELAY_SECONDS)
        return messages

    def sync_channel(self, channel: ChannelConfig) -> ChannelResult:
        result = ChannelResult(channel_id=channel.id, channel_name=channel.name)
        oldest = get_cursor(self.settings, channel.id)

        messages = self.fetch_history(channel.id, oldest)
        if oldest is not None:
            messages = [m for m in messages if float(m.ts) > float(oldest)]
        if not messages:
            logger.debug("Channel %s: nothing new since %s", channel.name, oldest)
            return result

        messages.sort(key=lambda m: float(m.ts))
        self.users.resolve_many(collect_user_ids(messages))
        resolver = self.users.resolve

        _, top_level, replies = partition_batch(messages)
        candidates = retrofit_candidates(top_level, replies)
        logger.info(
            "Channel %s: %d new message(s), %d top-level, %d thread candidate(s)",
            channel.name, len(messages), len(top_level), len(candidates),
        )

        for message in top_level:
            try:
                self._process_message(message, channel, resolver, result)
            except Exception as e:
                logger.warning("Message %s in %s failed: %s", message.ts, channel.name, e)
                result.errors.append(f"Message {message.ts}: {e}")

        advance_cursor(self.settings, channel.id, latest_ts(messages, oldest))

        if self.settings.sync_thread_replies and candidates:
            self._retrofit_threads(channel, candidates, resolver, result)

        return result

    # -- messages ------------------------------------------------------------

    def _render_replies(
        self, replies: list[SlackMessage], resolver: UserResolver
    ) -> list[ThreadReply]:
        return [
            ThreadReply(
                user_name=display_user(reply, resolver),
                text=convert(reply.text, resolver),
                ts=reply.ts,
            )
            for reply in replies
        ]

    def _download_file(self, file: SlackFile, channel: ChannelConfig) -> Optional[str]:
        """Download one file into the vault; None when it cannot be fetched."""
        url = file.download_url
        if not url or file.is_external:
            return None
        data = self.source.download_file(url)
        return self.notes.save_attachment(data, file.name, channel.name, channel.folder_name)

    def _write_note(
        self,
        message: SlackMessage,
        channel: ChannelConfig,
        user_name: str,
        markdown_text: str,
        embeds: list[str],
        thread_replies: Optional[list[ThreadReply]],
    ) -> Optional[str]:
        if self.settings.group_messages_by_date:
            write = self.notes.append_to_grouped_note
        else:
            write = self.notes.create_individual_note
        return write(
            message,
            channel.name,
            user_name,
            markdown_text,
            embeds,
            thread_replies,
            channel.folder_name,
        )

    def _process_message(
        self,
        message: SlackMessage,
        channel: ChannelConfig,
        resolver: UserResolver,
        result: ChannelResult,
    ) -> None:
        user_name = display_user(message, resolver)

        embeds: list[str] = []
        for file in message.files:
            try:
                path = self._download_file(file, channel)
            except Exception as e:
                logger.warning("File %s in %s failed: %s", file.name, channel.name, e)
                result.errors.append(f"File {file.name}: {e}")
                continue
            if path:
                embeds.append(self.notes.create_embed(path))
                result.files_downloaded += 1

        for attachment in message.attachments:
            if attachment.image_url:
                embeds.append(f"![{attachment.title or 'image'}]({attachment.image_url})")

        if is_standalone_upload(message):
            caption = ", ".join(f.title or f.name for f in message.files)
            if self._write_note(message, channel, user_name, caption, embeds, None):
                result.messages_created += 1
            return

        markdown_text = convert(message.text, resolver)

        thread_replies: Optional[list[ThreadReply]] = None
        if self.settings.sync_thread_replies and (message.reply_count or 0) > 0:
            try:
                replies = self.source.list_thread_replies(channel.id, message.ts)
                self.users.resolve_many(collect_user_ids(replies))
                thread_replies = self._render_replies(replies, resolver)
            except Exception as e:
                logger.warning("Thread %s in %s failed: %s", message.ts, channel.name, e)
                result.errors.append(f"Thread {message.ts}: {e}")

        if self._write_note(message, channel, user_name, markdown_text, embeds, thread_replies):
            result.messages_created += 1

    # -- thread retrofit -----------------------------------------------------

    def _retrofit_threads(
        self,
        channel: ChannelConfig,
        parent_ts_list: list[str],
        resolver: UserResolver,
        result: ChannelResult,
    ) -> None:
        """Bring earlier notes up to date with threads that grew since."""
        for i, parent_ts in enumerate(parent_ts_list):
            if i:
                self._sleep(PAGE_DELAY_SECONDS)
            try:
                thread = self.source.get_thread(channel.id, parent_ts)
                if not thread.replies:
                    continue
                self.users.resolve_many(collect_user_ids([thread.root, *thread.replies]))
                parent_name = display_user(thread.root, resolver)
                replies = self._render_replies(thread.replies, resolver)

                if self.settings.group_messages_by_date:
                    updated = self.notes.update_grouped_note_thread(
                        thread.root, channel.name, parent_name, replies, channel.folder_name,
                    )
                else:
                    updated = self.notes.update_individual_note_thread(
                        thread.root, channel.name, parent_name, replies, channel.folder_name,
                    )
                if updated:
                    result.threads_updated += 1
                    logger.debug("Thread %s in %s updated", parent_ts, channel.name)
            except Exception as e:
                logger.warning("Thread update %s in %s failed: %s", parent_ts, channel.name, e)
                result.errors.append(f"Thread update {parent_ts}: {e}")


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def build_engine(
    settings: Optional[SyncSettings] = None,
    token: Optional[str] = None,
    vault_path: Optional[Path] = None,
) -> SyncEngine:
    """Wire a SyncEngine to the Slack API, the vault, and the settings file."""
    config.init()
    if settings is None:
        settings = load_settings()
    api = SlackAPI(token if token is not None else config.SLACK_BOT_TOKEN)
    store = VaultStore(vault_path or config.VAULT_PATH)
    return SyncEngine(
        api, store, settings, save_settings=save_settings, load_settings=load_settings,
    )


def run_slack_sync(engine: Optional[SyncEngine] = None) -> dict:
    """Daemon entry point: one sync pass. Returns a summary dict."""
    if engine is None:
        engine = build_engine()
    if not engine.source.token:
        return {"status": "skipped", "reason": "SLACK_BOT_TOKEN not set"}

    outcome = engine.run_pass()
    if outcome.busy:
        return {"status": "busy"}
    return {
        "status": "error" if outcome.errors else "ok",
        "channels": len(outcome.results),
        "messages_created": outcome.messages_created,
        "threads_updated": outcome.threads_updated,
        "files_downloaded": outcome.files_downloaded,
        "errors": outcome.errors,
    }
