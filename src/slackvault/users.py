"""User directory cache -- Slack user IDs to display names.

Lookups are memoised for ``USER_CACHE_TTL_SECONDS``. A failed lookup
caches the raw ID as the name so one unknown user does not cost a remote
call for every message in a large batch. The cache is keyed by user ID
only; call ``invalidate()`` when the bot token changes.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional

from .config import USER_CACHE_TTL_SECONDS, USER_LOOKUP_DELAY_SECONDS
from .models import SlackUser

logger = logging.getLogger(__name__)


class UserDirectory:
    """TTL cache in front of a ``get_user_info(user_id)`` lookup."""

    def __init__(
        self,
        fetch: Callable[[str], SlackUser],
        ttl_seconds: float = USER_CACHE_TTL_SECONDS,
        lookup_delay: float = USER_LOOKUP_DELAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetch = fetch
        self._ttl = ttl_seconds
        self._delay = lookup_delay
        self._clock = clock
        self._sleep = sleep
        self._entries: dict[str, tuple[SlackUser, Optional[float]]] = {}

    def _fresh(self, user_id: str) -> Optional[SlackUser]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        user, fetched_at = entry
        # Placeholders from failed lookups never expire
        if fetched_at is None or self._clock() - fetched_at < self._ttl:
            return user
        return None

    def lookup(self, user_id: str) -> SlackUser:
        """Return the cached user, fetching on miss or expiry."""
        cached = self._fresh(user_id)
        if cached is not None:
            return cached
        try:
            user = self._fetch(user_id)
            self._entries[user_id] = (user, self._clock())
            logger.debug("Resolved user %s -> %s", user_id, user.best_name)
        except Exception as e:
            logger.debug("User lookup failed for %s, using raw id: %s", user_id, e)
            user = SlackUser(id=user_id, name=user_id)
            self._entries[user_id] = (user, None)
        if self._delay:
            self._sleep(self._delay)
        return user

    def resolve_many(self, user_ids: Iterable[str]) -> None:
        """Warm the cache for every ID not already fresh."""
        for user_id in user_ids:
            if self._fresh(user_id) is None:
                self.lookup(user_id)

    def resolve(self, user_id: str) -> str:
        """Display name from cache only; the raw ID if never resolved."""
        entry = self._entries.get(user_id)
        if entry is None:
            return user_id
        return entry[0].best_name

    def invalidate(self) -> None:
        """Drop every cached entry (credential changed)."""
        self._entries.clear()

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
