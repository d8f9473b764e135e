#!/usr/bin/env python3
"""Reset sync cursors so the next sync fetches all available history.

Usage:
    python scripts/reset_cursors.py             # every channel
    python scripts/reset_cursors.py C0123ABCD   # one channel
"""

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from slackvault.settings import load_settings, reset_cursors, save_settings  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Clear saved Slack sync cursors")
    parser.add_argument("channel_id", nargs="?", help="Channel to reset (default: all)")
    args = parser.parse_args()

    settings = load_settings()
    reset_cursors(settings, args.channel_id)
    path = save_settings(settings)
    target = args.channel_id or "all channels"
    print(f"Cursors reset for {target} ({path})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
