#!/usr/bin/env python3
"""
CLI for watching paths and printing file events.

Usage:
    python -m dirwatch /path/to/folder --recursive
    python -m dirwatch /path/to/config.json --events modified
    python -m dirwatch /path/to/folder --max-depth 2 --glob "*.xml" --json
"""

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import RECURSIVE, WatchConfig, WatcherConfig
from .exceptions import WatcherError
from .filters import all_of, ignore_patterns, include_glob
from .models import EventType, FileSystemEvent
from .watcher import FileSystemWatcher


logger = logging.getLogger("dirwatch.cli")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""
    
    def __init__(self):
        self.stop_event = threading.Event()
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)
    
    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.stop_event.set()

    def wait(self) -> None:
        while not self.stop_event.wait(timeout=0.5):
            pass


def parse_event_types(value: str) -> List[EventType]:
    """Parse a comma separated list such as 'added,removed'."""
    types = []
    for item in value.split(","):
        item = item.strip().lower()
        if not item:
            continue
        try:
            types.append(EventType(item))
        except ValueError:
            raise argparse.ArgumentTypeError(f"Unknown event type: {item}")
    return types


def build_watch_config(args) -> WatchConfig:
    """Build the per-path config from parsed arguments."""
    filters = []
    if args.glob:
        filters.append(include_glob(*args.glob))
    if args.ignore:
        filters.append(ignore_patterns(args.ignore))

    path_filter = None
    if len(filters) == 1:
        path_filter = filters[0]
    elif filters:
        path_filter = all_of(*filters)

    return WatchConfig(
        max_depth=RECURSIVE if args.recursive else args.max_depth,
        filter=path_filter,
        allowed_event_types=args.events or None,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dirwatch",
        description="Watch files and directories and print change events",
    )
    parser.add_argument("paths", nargs="+", help="Files or directories to watch")
    depth = parser.add_mutually_exclusive_group()
    depth.add_argument("--max-depth", type=int, default=1,
                       help="Directory levels below each path to report (default: 1)")
    depth.add_argument("--recursive", "-r", action="store_true",
                       help="Report the whole subtree")
    parser.add_argument("--glob", action="append", metavar="PATTERN",
                        help="Only report paths matching this glob (repeatable)")
    parser.add_argument("--ignore", action="append", metavar="PATTERN",
                        help="Do not report paths matching this glob (repeatable)")
    parser.add_argument("--events", type=parse_event_types, metavar="TYPES",
                        help="Comma separated event types to report: added,modified,removed")
    parser.add_argument("--debounce", type=int, default=None, metavar="MS",
                        help="Debounce window in milliseconds")
    parser.add_argument("--polling", action="store_true",
                        help="Poll the file system instead of using OS notifications")
    parser.add_argument("--json", action="store_true", help="Print events as JSON lines")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        watch_config = build_watch_config(args)
    except ValueError as e:
        parser.error(str(e))

    config = WatcherConfig.from_env()
    if args.debounce is not None:
        config.debounce_ms = args.debounce
    if args.polling:
        config.use_polling = True

    def print_event(event: FileSystemEvent) -> None:
        if args.json:
            print(json.dumps(event.to_dict()), flush=True)
        else:
            print(f"{event.event_type.name}: {event.path}", flush=True)

    shutdown = GracefulShutdown()

    try:
        watcher = FileSystemWatcher("cli", config=config)
    except WatcherError as e:
        logger.error(f"Could not start watcher: {e}")
        return 1

    with watcher:
        for raw_path in args.paths:
            path = Path(raw_path).resolve()
            watcher.watch(path, print_event, watch_config)
            logger.info(f"  - {path}")
        logger.info("Press Ctrl+C to stop")
        shutdown.wait()

    logger.info("Watcher stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
