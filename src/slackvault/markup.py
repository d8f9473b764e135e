"""Slack mrkdwn -> Markdown conversion.

The conversion is an explicit pipeline over ``MarkupText``:

    protect_code -> rewrite_references -> rewrite_emphasis
        -> unescape_blockquotes -> restore

Code spans are swapped for placeholders first so none of the later
regex passes can touch their content, then put back verbatim at the end.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

UserResolver = Callable[[str], str]

MENTION_RE = re.compile(r"<@([A-Z0-9]+)(?:\|[^>]*)?>")

_FENCED_CODE_RE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE_RE = re.compile(r"`[^`\n]+`")
_PLACEHOLDER_RE = re.compile(r"\x00CODE(\d+)\x00")

_LINK_RE = re.compile(r"<(https?://[^|>]+)\|([^>]+)>")
_BARE_URL_RE = re.compile(r"<(https?://[^>]+)>")
_MAILTO_RE = re.compile(r"<mailto:([^|>]+)\|([^>]+)>")
_NAMED_CHANNEL_RE = re.compile(r"<#[A-Z0-9]+\|([^>]+)>")
_CHANNEL_RE = re.compile(r"<#([A-Z0-9]+)>")
_BROADCAST_RE = re.compile(r"<!(here|channel|everyone)(?:\|[^>]*)?>")

# Emphasis only counts when the delimiters sit at a word boundary:
# string edge, whitespace, or punctuation on both sides.
_EDGE = r"\s.,!?;:()\[\]\"'"
_LEFT = rf"(?<![^{_EDGE}])"
_RIGHT = rf"(?![^{_EDGE}])"
_BOLD_RE = re.compile(_LEFT + r"\*([^*\n]+)\*" + _RIGHT)
_ITALIC_RE = re.compile(_LEFT + r"_([^_\n]+)_" + _RIGHT)
_STRIKE_RE = re.compile(_LEFT + r"~([^~\n]+)~" + _RIGHT)

_BLOCKQUOTE_RE = re.compile(r"^&gt;\s?", re.MULTILINE)


@dataclass
class MarkupText:
    """Text in flight through the converter plus its protected code spans."""

    text: str
    protected: list[str] = field(default_factory=list)

    def _protect(self, pattern: re.Pattern) -> None:
        def _stash(match: re.Match) -> str:
            self.protected.append(match.group(0))
            return f"\x00CODE{len(self.protected) - 1}\x00"

        self.text = pattern.sub(_stash, self.text)

    def protect_code(self) -> "MarkupText":
        self._protect(_FENCED_CODE_RE)
        self._protect(_INLINE_CODE_RE)
        return self

    def rewrite_references(self, resolver: Optional[UserResolver] = None) -> "MarkupText":
        text = self.text
        text = _LINK_RE.sub(r"[\2](\1)", text)
        text = _BARE_URL_RE.sub(r"\1", text)
        text = _MAILTO_RE.sub(r"[\2](mailto:\1)", text)

        def _mention(match: re.Match) -> str:
            user_id = match.group(1)
            return f"@{resolver(user_id) if resolver else user_id}"

        text = MENTION_RE.sub(_mention, text)
        text = _NAMED_CHANNEL_RE.sub(r"#\1", text)
        text = _CHANNEL_RE.sub(r"#\1", text)
        text = _BROADCAST_RE.sub(r"@\1", text)
        self.text = text
        return self

    def rewrite_emphasis(self) -> "MarkupText":
        text = _BOLD_RE.sub(r"**\1**", self.text)
        text = _ITALIC_RE.sub(r"*\1*", text)
        text = _STRIKE_RE.sub(r"~~\1~~", text)
        self.text = text
        return self

    def unescape_blockquotes(self) -> "MarkupText":
        self.text = _BLOCKQUOTE_RE.sub("> ", self.text)
        return self

    def restore(self) -> str:
        return _PLACEHOLDER_RE.sub(lambda m: self.protected[int(m.group(1))], self.text)


def convert(text: str, resolver: Optional[UserResolver] = None) -> str:
    """Convert Slack mrkdwn to standard Markdown."""
    if not text:
        return ""
    return (
        MarkupText(text)
        .protect_code()
        .rewrite_references(resolver)
        .rewrite_emphasis()
        .unescape_blockquotes()
        .restore()
    )


def extract_mentions(text: str) -> list[str]:
    """User IDs referenced via ``<@ID>`` in a message body."""
    if not text:
        return []
    return MENTION_RE.findall(text)


def collect_user_ids(messages: Iterable) -> list[str]:
    """Authors and mentioned users of the given messages, first-seen order."""
    messages = list(messages)
    seen: dict[str, None] = {}
    for msg in messages:
        if msg.user:
            seen.setdefault(msg.user, None)
    for msg in messages:
        for user_id in extract_mentions(msg.text):
            seen.setdefault(user_id, None)
    return list(seen)
