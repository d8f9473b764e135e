"""Template variables, date formatting, and file-name sanitising.

Note and attachment paths are built from user-supplied templates such as
``{date}-{channelName}-{ts}``. Only known placeholders are substituted;
anything else in braces is left as literal text.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone as dt_timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import MAX_FILE_NAME_LEN, UNKNOWN_USER_NAME

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{([A-Za-z]+)\}")


def get_tz(name: str = "") -> Optional[tzinfo]:
    """Resolve an IANA zone name; empty means the local zone (None)."""
    if not name:
        return None
    if name.upper() == "UTC":
        return dt_timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using local time", name)
        return None


def ts_to_datetime(ts: str, tz: Optional[tzinfo] = None) -> datetime:
    """Convert a Slack timestamp ("1694505278.000000") to a datetime."""
    dt = datetime.fromtimestamp(float(ts), tz=tz or dt_timezone.utc)
    if tz is None:
        return dt.astimezone()
    return dt


def format_date(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d")


def format_date_compact(dt: datetime) -> str:
    return dt.strftime("%Y%m%d")


def format_time(dt: datetime) -> str:
    return dt.strftime("%H:%M:%S")


def format_time_compact(dt: datetime) -> str:
    return dt.strftime("%H%M%S")


def format_datetime_compact(dt: datetime) -> str:
    return dt.strftime("%Y%m%d%H%M%S")


def date_folder_path(dt: datetime) -> str:
    """Folder components for date-organised notes: YYYY/MM/DD."""
    return dt.strftime("%Y/%m/%d")


def sanitize_file_name(name: str, max_len: int = MAX_FILE_NAME_LEN) -> str:
    """Make a string safe for use as a file name."""
    name = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "_", name)
    name = re.sub(r"\s+", "_", name)
    name = re.sub(r"_+", "_", name)
    name = name.strip("_")
    return name[:max_len]


def normalize_path(path: str) -> str:
    """Collapse repeated slashes and trim leading/trailing ones."""
    path = path.replace("\\", "/")
    path = re.sub(r"/+", "/", path)
    return path.strip("/")


def apply_template(template: str, variables: dict[str, str]) -> str:
    """Substitute ``{name}`` placeholders; unknown ones stay literal."""

    def _sub(match: re.Match) -> str:
        key = match.group(1)
        if key in variables:
            return variables[key]
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_sub, template)


def template_vars(
    ts: str,
    channel_name: str,
    user_name: Optional[str] = None,
    tz: Optional[tzinfo] = None,
) -> dict[str, str]:
    """Template variables for a message, all file-name safe."""
    dt = ts_to_datetime(ts, tz)
    return {
        "date": format_date(dt),
        "datecompact": format_date_compact(dt),
        "time": format_time(dt),
        "timecompact": format_time_compact(dt),
        "datetime": format_datetime_compact(dt),
        "ts": sanitize_file_name(ts),
        "channelName": sanitize_file_name(channel_name),
        "userName": sanitize_file_name(user_name or UNKNOWN_USER_NAME),
    }
