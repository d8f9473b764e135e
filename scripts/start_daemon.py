#!/usr/bin/env python3
"""Start the slackvault auto-sync daemon in the foreground.

Usage:
    python scripts/start_daemon.py

Logs go to data/daemon.log and stderr. Ctrl+C to stop.
"""

import logging
import os
import sys
from pathlib import Path

# Ensure the project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from slackvault import config  # noqa: E402


def _is_pid_alive(pid: int) -> bool:
    """Check if a process is running."""
    try:
        os.kill(pid, 0)
        return True
    except (OSError, ProcessLookupError):
        return False


def run_foreground() -> int:
    """Run the daemon in the foreground."""
    config.init()
    config.ensure_data_dirs()

    pid_file = config.DAEMON_PID_FILE
    if pid_file.exists():
        try:
            old_pid = int(pid_file.read_text().strip())
            if old_pid != os.getpid() and _is_pid_alive(old_pid):
                print(f"Daemon already running (pid={old_pid}). Stop it first.")
                return 1
        except ValueError:
            pass
        pid_file.unlink(missing_ok=True)

    handlers = [logging.FileHandler(str(config.DAEMON_LOG_FILE))]
    try:
        sys.stderr.write("")  # Test if stderr is usable
        handlers.append(logging.StreamHandler(sys.stderr))
    except (OSError, ValueError, AttributeError):
        pass

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        handlers=handlers,
    )
    try:
        from slackvault.daemon import build_daemon
        daemon = build_daemon()
        daemon.start()
    except Exception:
        logging.exception("Daemon crashed with unhandled exception")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(run_foreground())
