#!/usr/bin/env python3
"""Manage the channels slackvault syncs.

Usage:
    python scripts/channels.py test              # check the bot token
    python scripts/channels.py fetch             # list channels visible to the bot
    python scripts/channels.py list              # show configured channels
    python scripts/channels.py add C0123ABCD general [--folder Team]
    python scripts/channels.py remove C0123ABCD
    python scripts/channels.py enable|disable C0123ABCD
"""

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from slackvault import config  # noqa: E402
from slackvault.settings import (  # noqa: E402
    add_channel,
    load_settings,
    remove_channel,
    save_settings,
)
from slackvault.slack_api import SlackAPI  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Manage synced Slack channels")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("test", help="Test the bot token")
    sub.add_parser("fetch", help="List channels visible to the bot")
    sub.add_parser("list", help="Show configured channels")
    add = sub.add_parser("add", help="Add a channel")
    add.add_argument("channel_id")
    add.add_argument("name")
    add.add_argument("--folder", default=None, help="Custom folder name")
    for name in ("remove", "enable", "disable"):
        p = sub.add_parser(name)
        p.add_argument("channel_id")
    args = parser.parse_args()

    config.init()

    if args.command in ("test", "fetch"):
        if not config.SLACK_BOT_TOKEN:
            print("SLACK_BOT_TOKEN is not set (env or .env).")
            return 1
        api = SlackAPI(config.SLACK_BOT_TOKEN)
        if args.command == "test":
            result = api.test_auth()
            if result["ok"]:
                print(f"Connected to {result.get('team')} as {result.get('user')}")
                return 0
            print(f"Auth failed: {result.get('error')}")
            return 1
        for channel in api.list_channels():
            member = "member" if channel.get("is_member") else "not a member"
            print(f"{channel['id']}  #{channel['name']}  ({member})")
        return 0

    settings = load_settings()
    if args.command == "list":
        if not settings.channels:
            print("No channels configured.")
        for channel in settings.channels:
            state = "on " if channel.enabled else "off"
            cursor = settings.last_sync_timestamps.get(channel.id, "-")
            folder = f"  folder={channel.folder_name}" if channel.folder_name else ""
            print(f"[{state}] {channel.id}  #{channel.name}  cursor={cursor}{folder}")
        return 0

    if args.command == "add":
        channel = add_channel(settings, args.channel_id, args.name)
        if args.folder:
            channel.folder_name = args.folder
        print(f"Added #{channel.name} ({channel.id})")
    elif args.command == "remove":
        if not remove_channel(settings, args.channel_id):
            print(f"{args.channel_id} is not configured")
            return 1
        print(f"Removed {args.channel_id}")
    else:
        matches = [c for c in settings.channels if c.id == args.channel_id]
        if not matches:
            print(f"{args.channel_id} is not configured")
            return 1
        matches[0].enabled = args.command == "enable"
        print(f"{args.command}d {args.channel_id}")

    save_settings(settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
