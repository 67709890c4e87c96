"""
dirwatch

Turns per-directory watch notifications into a stable, filterable,
depth-bounded stream of file events for files and directory trees.

Features:
- File change events: ADDED, MODIFIED, REMOVED
- Depth-limited recursive watching that follows newly created directories
- Coalescing of contradictory notifications within one batch
- Path filters and allowed event types per watched path
- Listener delivery off the watch thread, with isolated listener failures
"""

from .models import (
    EventType,
    FileSystemEvent,
    RawEventKind,
    RawNotification,
)

from .config import RECURSIVE, WatchConfig, WatcherConfig

from .exceptions import (
    WatcherError,
    WatchServiceError,
    WatchServiceClosedError,
    InvalidConfigError,
    WatcherNotRunningError,
)

from .watch_service import WatchService, WatchKey
from .registry import WatchRegistry, WatchRoot
from .event_processor import EventTranslator, coalesce_events
from .dispatcher import EventDispatcher
from .watcher import FileSystemWatcher
from . import filters


__all__ = [
    # Models
    "EventType",
    "FileSystemEvent",
    "RawEventKind",
    "RawNotification",
    # Config
    "RECURSIVE",
    "WatchConfig",
    "WatcherConfig",
    # Exceptions
    "WatcherError",
    "WatchServiceError",
    "WatchServiceClosedError",
    "InvalidConfigError",
    "WatcherNotRunningError",
    # Components
    "WatchService",
    "WatchKey",
    "WatchRegistry",
    "WatchRoot",
    "EventTranslator",
    "coalesce_events",
    "EventDispatcher",
    "filters",
    # Main API
    "FileSystemWatcher",
]

__version__ = "0.1.0"
