#!/usr/bin/env python3
"""Run a one-shot Slack sync (manual trigger).

Usage:
    python scripts/sync_now.py
    python scripts/sync_now.py --channel C0123ABCD
    python scripts/sync_now.py -v
"""

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from slackvault import config  # noqa: E402
from slackvault.sync_engine import build_engine  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync enabled Slack channels into the vault")
    parser.add_argument("--channel", action="append", default=[],
                        help="Only sync this channel ID (repeatable)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    config.init()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, config.LOG_LEVEL),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    if not config.SLACK_BOT_TOKEN:
        print("SLACK_BOT_TOKEN is not set (env or .env).")
        return 1

    engine = build_engine()
    channels = None
    if args.channel:
        wanted = set(args.channel)
        channels = [c for c in engine.settings.channels if c.id in wanted]
        missing = wanted - {c.id for c in channels}
        if missing:
            print(f"Not configured: {', '.join(sorted(missing))}")
            return 1

    outcome = engine.run_pass(channels)
    print(f"Slack sync complete: {outcome.summary()}")
    for error in outcome.errors:
        print(f"  - {error}")
    return 1 if outcome.errors else 0


if __name__ == "__main__":
    sys.exit(main())
