"""Paths, constants, and data directory setup."""

import logging
import os
from pathlib import Path

# Base directories
PROJECT_ROOT = Path(__file__).parent.parent.parent


def _load_env() -> None:
    """Load .env file from project root if present. Existing env vars take priority."""
    env_file = PROJECT_ROOT / ".env"
    if not env_file.exists():
        return
    with open(env_file) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()
            if not os.environ.get(key):
                os.environ[key] = value


_env_initialized = False


def init() -> None:
    """Load .env and set env-dependent constants. Safe to call multiple times."""
    global _env_initialized
    if _env_initialized:
        return
    _load_env()
    _init_env_vars()
    _env_initialized = True


def _init_env_vars() -> None:
    """Read environment variables into module-level constants."""
    global SLACK_BOT_TOKEN, VAULT_PATH, LOG_LEVEL

    SLACK_BOT_TOKEN = os.environ.get("SLACK_BOT_TOKEN", "")
    vault_override = os.environ.get("SLACKVAULT_VAULT_PATH", "")
    if vault_override:
        VAULT_PATH = Path(os.path.expanduser(vault_override))
    LOG_LEVEL = os.environ.get("SLACKVAULT_LOG_LEVEL", "INFO").upper()
    if LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        logging.getLogger(__name__).warning(
            "Invalid SLACKVAULT_LOG_LEVEL %r, defaulting to INFO", LOG_LEVEL
        )
        LOG_LEVEL = "INFO"


DATA_DIR = PROJECT_ROOT / "data"
DB_PATH = DATA_DIR / "slackvault.db"
SETTINGS_PATH = DATA_DIR / "settings.yaml"

# Obsidian vault the notes are mirrored into
VAULT_PATH = Path(os.path.expanduser("~")) / "SlackVault"

# Slack Web API
SLACK_BOT_TOKEN = ""  # nosec B105 -- empty default, real value set by init()
SLACK_API_BASE = "https://slack.com/api"
SLACK_ENDPOINTS = {
    "auth_test": f"{SLACK_API_BASE}/auth.test",
    "conversations_list": f"{SLACK_API_BASE}/conversations.list",
    "conversations_history": f"{SLACK_API_BASE}/conversations.history",
    "conversations_replies": f"{SLACK_API_BASE}/conversations.replies",
    "users_info": f"{SLACK_API_BASE}/users.info",
}
SLACK_HTTP_TIMEOUT = 30  # seconds

# Sync engine pacing
SYNC_BATCH_SIZE = 200              # messages per history page
THREAD_REPLIES_LIMIT = 200         # replies per conversations.replies call
PAGE_DELAY_SECONDS = 1.1           # between history pages and thread fetches
USER_LOOKUP_DELAY_SECONDS = 0.2    # after each remote user lookup
USER_CACHE_TTL_SECONDS = 3600      # 1 hour

# Message subtypes that carry no author-visible content
SKIP_SUBTYPES = frozenset({
    "channel_join",
    "channel_leave",
    "channel_topic",
    "channel_purpose",
    "channel_name",
    "channel_archive",
    "channel_unarchive",
    "pinned_item",
    "unpinned_item",
})

# File naming
MAX_FILE_NAME_LEN = 200
UNKNOWN_USER_NAME = "unknown"
BOT_USER_NAME = "bot"

# Auto-sync bounds (minutes)
SYNC_INTERVAL_MIN = 1
SYNC_INTERVAL_MAX = 360

# Daemon
DAEMON_PID_FILE = DATA_DIR / "daemon.pid"
DAEMON_LOG_FILE = DATA_DIR / "daemon.log"
STARTUP_SYNC_DELAY_SECONDS = 5

LOG_LEVEL = "INFO"


def ensure_data_dirs() -> None:
    """Create the data directory if it does not exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
