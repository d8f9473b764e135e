"""Slack Web API client -- the message source for the sync engine."""

from __future__ import annotations

import logging
from typing import Optional

import requests

from .config import (
    SLACK_ENDPOINTS,
    SLACK_HTTP_TIMEOUT,
    SYNC_BATCH_SIZE,
    THREAD_REPLIES_LIMIT,
)
from .models import HistoryPage, SlackMessage, SlackUser, Thread

logger = logging.getLogger(__name__)


class SlackAPIError(RuntimeError):
    """Slack answered with ``ok: false``."""

    def __init__(self, error: str, method: str = "") -> None:
        self.error = error
        self.method = method
        super().__init__(f"Slack API error: {error}")


# ---------------------------------------------------------------------------
# Slack API wrapper (raw HTTP, no SDK)
# ---------------------------------------------------------------------------

class SlackAPI:
    """Thin wrapper around the Slack Web API methods the sync needs."""

    def __init__(self, token: str) -> None:
        self._token = token
        self._session = requests.Session()

    @property
    def token(self) -> str:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json; charset=utf-8",
        }

    def _call(self, endpoint: str, params: Optional[dict] = None, method: str = "GET") -> dict:
        """Call a Web API method and return the decoded body.

        Raises SlackAPIError when Slack reports ``ok: false`` and lets
        requests exceptions propagate for transport failures.
        """
        url = SLACK_ENDPOINTS[endpoint]
        resp = self._session.request(
            method,
            url,
            headers=self._headers(),
            params=params,
            timeout=SLACK_HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        data = resp.json()
        if not data.get("ok"):
            raise SlackAPIError(data.get("error", "Unknown error"), endpoint)
        return data

    def test_auth(self) -> dict:
        """Check the token. Never raises; returns ok/team/user/error."""
        try:
            data = self._call("auth_test", method="POST")
            return {"ok": True, "team": data.get("team"), "user": data.get("user")}
        except SlackAPIError as e:
            return {"ok": False, "error": e.error}
        except requests.RequestException as e:
            return {"ok": False, "error": str(e)}

    def list_channels(self) -> list[dict]:
        """All non-archived public and private channels visible to the token."""
        channels: list[dict] = []
        cursor: Optional[str] = None
        while True:
            params = {
                "types": "public_channel,private_channel",
                "exclude_archived": "true",
                "limit": "200",
            }
            if cursor:
                params["cursor"] = cursor
            data = self._call("conversations_list", params)
            channels.extend(data.get("channels") or [])
            cursor = (data.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                break
        return channels

    def list_history(
        self,
        channel_id: str,
        oldest: Optional[str] = None,
        limit: int = SYNC_BATCH_SIZE,
        cursor: Optional[str] = None,
    ) -> HistoryPage:
        """One page of channel history newer than ``oldest``."""
        params = {"channel": channel_id, "limit": str(limit)}
        if oldest:
            params["oldest"] = oldest
        if cursor:
            params["cursor"] = cursor
        data = self._call("conversations_history", params)
        next_cursor = (data.get("response_metadata") or {}).get("next_cursor") or None
        messages = [SlackMessage.model_validate(m) for m in data.get("messages") or []]
        logger.debug(
            "History page for %s: %d message(s), more=%s",
            channel_id, len(messages), bool(next_cursor),
        )
        return HistoryPage(
            messages=messages,
            has_more=bool(next_cursor),
            next_cursor=next_cursor,
        )

    def _replies(self, channel_id: str, thread_ts: str) -> list[SlackMessage]:
        data = self._call(
            "conversations_replies",
            {"channel": channel_id, "ts": thread_ts, "limit": str(THREAD_REPLIES_LIMIT)},
        )
        return [SlackMessage.model_validate(m) for m in data.get("messages") or []]

    def list_thread_replies(self, channel_id: str, thread_ts: str) -> list[SlackMessage]:
        """Replies of a thread, without the root."""
        messages = self._replies(channel_id, thread_ts)
        return messages[1:]

    def get_thread(self, channel_id: str, thread_ts: str) -> Thread:
        """Root message plus all replies."""
        messages = self._replies(channel_id, thread_ts)
        if not messages:
            raise SlackAPIError(f"thread {thread_ts} not found", "conversations_replies")
        return Thread(root=messages[0], replies=messages[1:])

    def get_user_info(self, user_id: str) -> SlackUser:
        data = self._call("users_info", {"user": user_id})
        user = data.get("user") or {}
        profile = user.get("profile") or {}
        return SlackUser(
            id=user_id,
            name=user.get("name") or user_id,
            real_name=user.get("real_name") or profile.get("real_name") or None,
            display_name=profile.get("display_name") or None,
        )

    def download_file(self, url: str) -> bytes:
        resp = self._session.get(
            url,
            headers={"Authorization": f"Bearer {self._token}"},
            timeout=SLACK_HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        return resp.content
