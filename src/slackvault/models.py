"""Pydantic data models for slackvault."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .config import SYNC_INTERVAL_MAX, SYNC_INTERVAL_MIN


# --- Settings Models ---

class ChannelConfig(BaseModel):
    id: str = Field(..., description="Slack channel ID, e.g. C0123ABCD")
    name: str = Field(..., description="Channel name used in paths and templates")
    enabled: bool = True
    folder_name: Optional[str] = Field(
        default=None,
        description="Folder to use instead of the channel name",
    )


class SyncSettings(BaseModel):
    channels: list[ChannelConfig] = Field(default_factory=list)
    note_folder_path: str = "Slack"
    attachment_folder_path: str = "Slack/attachments"
    auto_sync: bool = False
    sync_interval: int = Field(default=30, description="Auto-sync interval in minutes")
    sync_on_startup: bool = False
    organize_by_date: bool = False
    file_name_template: str = "{date}-{channelName}-{ts}"
    group_messages_by_date: bool = False
    grouped_file_name_template: str = "{date}-{channelName}"
    grouped_frontmatter_template: str = "source: Slack\nchannel: {channelName}\ndate: {date}"
    grouped_message_template: str = "**{userName}** ({time}):\n{text}"
    include_user_name: bool = True
    sync_thread_replies: bool = False
    timezone: str = Field(default="", description="IANA zone for dates; empty uses local time")
    last_sync_timestamps: dict[str, str] = Field(default_factory=dict)

    @field_validator("sync_interval")
    @classmethod
    def _clamp_interval(cls, value: int) -> int:
        return max(SYNC_INTERVAL_MIN, min(SYNC_INTERVAL_MAX, value))

    def enabled_channels(self) -> list[ChannelConfig]:
        return [c for c in self.channels if c.enabled]


# --- Slack Models ---

class SlackUser(BaseModel):
    id: str
    name: str
    real_name: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def best_name(self) -> str:
        return self.display_name or self.real_name or self.name


class SlackFile(BaseModel):
    id: str = ""
    name: str = ""
    title: str = ""
    mimetype: str = ""
    filetype: str = ""
    size: int = 0
    url_private_download: Optional[str] = None
    url_private: Optional[str] = None
    mode: str = ""
    is_external: bool = False

    @property
    def download_url(self) -> Optional[str]:
        return self.url_private_download or self.url_private


class SlackAttachment(BaseModel):
    """Unfurled link preview attached to a message."""

    title: Optional[str] = None
    text: Optional[str] = None
    fallback: Optional[str] = None
    image_url: Optional[str] = None
    thumb_url: Optional[str] = None
    from_url: Optional[str] = None
    original_url: Optional[str] = None
    service_name: Optional[str] = None


class SlackMessage(BaseModel):
    ts: str
    type: str = "message"
    subtype: Optional[str] = None
    user: Optional[str] = None
    bot_id: Optional[str] = None
    text: str = ""
    thread_ts: Optional[str] = None
    reply_count: Optional[int] = None
    files: list[SlackFile] = Field(default_factory=list)
    attachments: list[SlackAttachment] = Field(default_factory=list)

    @field_validator("text", mode="before")
    @classmethod
    def _none_text(cls, value):
        return value or ""

    @property
    def is_reply(self) -> bool:
        """True for a reply inside a thread (not the thread root)."""
        return bool(self.thread_ts) and self.thread_ts != self.ts


class HistoryPage(BaseModel):
    messages: list[SlackMessage] = Field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None


class Thread(BaseModel):
    root: SlackMessage
    replies: list[SlackMessage] = Field(default_factory=list)


class ThreadReply(BaseModel):
    """A reply already rendered for note output."""

    user_name: str
    text: str
    ts: str


# --- Result Models ---

class ChannelResult(BaseModel):
    channel_id: str
    channel_name: str
    messages_created: int = 0
    threads_updated: int = 0
    files_downloaded: int = 0
    errors: list[str] = Field(default_factory=list)


class PassResult(BaseModel):
    busy: bool = False
    results: list[ChannelResult] = Field(default_factory=list)

    @property
    def messages_created(self) -> int:
        return sum(r.messages_created for r in self.results)

    @property
    def threads_updated(self) -> int:
        return sum(r.threads_updated for r in self.results)

    @property
    def files_downloaded(self) -> int:
        return sum(r.files_downloaded for r in self.results)

    @property
    def errors(self) -> list[str]:
        return [e for r in self.results for e in r.errors]

    def summary(self) -> str:
        """One-line human summary of the pass."""
        if self.busy:
            return "Sync already in progress"
        text = f"{self.messages_created} note(s), {self.files_downloaded} file(s) synced"
        if self.threads_updated:
            text += f", {self.threads_updated} thread(s) updated"
        if self.errors:
            text += f" ({len(self.errors)} error(s))"
        return text
