"""Command line interface for forgestate.

Usage:
    forgestate replay forge-sim.log
    forgestate replay forge-sim.log --steps
    forgestate watch --log-path /srv/forge/forge-sim.log

Snapshots are printed to stdout as JSON; logs go to stderr and to
~/.forgestate/debug.log for bug reports.
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from forgestate.model import MatchPhase
from forgestate.session import Envelope, MatchSession
from forgestate.settings import SETTINGS_DIR, get_settings
from forgestate.watcher import SimulationLogWatcher

logger = logging.getLogger(__name__)

LOG_FILE = SETTINGS_DIR / "debug.log"


def configure_logging(level: str = "INFO") -> None:
    """Send DEBUG to the debug log file and ``level`` to stderr."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    # Remove any existing handlers to avoid duplicates
    for h in root_logger.handlers[:]:
        root_logger.removeHandler(h)

    try:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOG_FILE, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        root_logger.addHandler(file_handler)
    except OSError as e:
        print(f"Warning: debug log disabled ({e})", file=sys.stderr)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)


def _print_envelope(envelope: Envelope) -> None:
    print(json.dumps(envelope), flush=True)


def cmd_replay(args: argparse.Namespace) -> int:
    """Feed a saved simulation log through a session."""
    path: Path = args.log_file
    if not path.exists():
        logger.error(f"Log file not found: {path}")
        return 1

    session = MatchSession(
        match_id=args.match_id or path.stem,
        on_update=_print_envelope if args.steps else None,
        on_complete=_print_envelope if args.steps else None,
    )
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        for chunk in iter(lambda: f.read(64 * 1024), ""):
            session.process_chunk(chunk)
    final_state = session.finish()

    if not args.steps:
        print(json.dumps(final_state.to_dict(), indent=2))
    if session.malformed_lines:
        logger.warning(f"{len(session.malformed_lines)} malformed line(s) skipped")
    return 0


def cmd_watch(args: argparse.Namespace) -> int:
    """Tail a live simulation log until the match ends or Ctrl+C."""
    settings = get_settings()
    backfill = settings.get("backfill") if args.backfill is None else args.backfill
    interval = args.poll_interval or float(settings.get("poll_interval"))

    session = MatchSession(
        match_id=args.match_id,
        on_update=_print_envelope,
        on_complete=_print_envelope,
    )
    watcher = SimulationLogWatcher(
        callback=session.process_chunk,
        log_path=args.log_path,
        backfill=backfill,
    )

    try:
        with watcher:
            while session.state.phase is not MatchPhase.TERMINAL:
                time.sleep(interval)
                # Backup for missed watchdog events
                watcher.poll()
    except KeyboardInterrupt:
        logger.info("Interrupted, finishing match")
    finally:
        session.finish()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="forgestate",
        description="Reconstruct match state from Forge simulation logs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment variables:
  FORGESTATE_LOG_PATH       Default log file for `watch`
  FORGESTATE_BACKFILL       Replay from the last match header (true/false)
  FORGESTATE_POLL_INTERVAL  Seconds between polls
  FORGESTATE_LOG_LEVEL      Console log level

Debug logs are written to ~/.forgestate/debug.log
        """,
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging on stderr",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Replay a saved simulation log")
    replay.add_argument("log_file", type=Path, help="Path to the log file")
    replay.add_argument(
        "--steps",
        action="store_true",
        help="Print every STATE_UPDATE envelope as a JSON line",
    )
    replay.add_argument("--match-id", help="Match identifier (default: file name)")
    replay.set_defaults(func=cmd_replay)

    watch = sub.add_parser("watch", help="Follow a live simulation log")
    watch.add_argument("--log-path", help="Log file to follow")
    watch.add_argument(
        "--backfill",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Replay from the last match header first (default: from settings)",
    )
    watch.add_argument(
        "--poll-interval",
        type=float,
        help="Seconds between polls (default: from settings)",
    )
    watch.add_argument("--match-id", help="Match identifier for envelopes")
    watch.set_defaults(func=cmd_watch)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the forgestate command."""
    args = build_parser().parse_args(argv)
    level = "DEBUG" if args.verbose else get_settings().get("log_level")
    configure_logging(level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
