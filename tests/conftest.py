"""Shared fixtures: a scripted watch service and an event recorder."""

import queue
import threading
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

import pytest

from dirwatch.config import WatcherConfig
from dirwatch.exceptions import WatchServiceClosedError
from dirwatch.models import FileSystemEvent, RawEventKind
from dirwatch.watch_service import WatchKey
from dirwatch.watcher import FileSystemWatcher


_CLOSED = object()


class ScriptedWatchService:
    """
    In-memory stand-in for WatchService.

    Hands out real WatchKeys; tests post raw notifications explicitly
    instead of touching the file system watcher.
    """

    def __init__(self, max_pending_events: int = 512, fail_on: Iterable[Path] = ()):
        self.max_pending_events = max_pending_events
        self.fail_on: Set[Path] = {Path(p).resolve() for p in fail_on}
        self.keys: Dict[Path, Tuple[WatchKey, ...]] = {}
        self.registrations: List[Path] = []
        self._ready: "queue.Queue[object]" = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def register(self, directory: Path) -> WatchKey:
        directory = Path(directory).resolve()
        if self._closed:
            raise WatchServiceClosedError("Watch service is closed")
        if directory in self.fail_on:
            raise PermissionError(f"Permission denied: {directory}")
        if not directory.is_dir():
            raise NotADirectoryError(f"Not a directory: {directory}")
        key = WatchKey(self, directory, self.max_pending_events)
        with self._lock:
            self.keys[directory] = self.keys.get(directory, ()) + (key,)
            self.registrations.append(directory)
        return key

    def take(self, timeout: Optional[float] = None) -> Optional[WatchKey]:
        if self._closed:
            raise WatchServiceClosedError("Watch service is closed")
        try:
            item = self._ready.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            self._ready.put(_CLOSED)
            raise WatchServiceClosedError("Watch service is closed")
        return item

    def watched_directories(self) -> List[Path]:
        with self._lock:
            return list(self.keys)

    def close(self, timeout: float = 2.0) -> None:
        if self._closed:
            return
        self._closed = True
        with self._lock:
            keys = [key for group in self.keys.values() for key in group]
            self.keys = {}
        for key in keys:
            key._invalidate(signal=False)
        self._ready.put(_CLOSED)

    def post(self, directory: Path, kind: RawEventKind, name: str = "") -> None:
        """Deliver one raw notification to every key of a directory."""
        for key in self.keys.get(Path(directory).resolve(), ()):
            key._signal_event(kind, name)

    def post_many(self, directory: Path, notifications: Iterable[Tuple[RawEventKind, str]]) -> None:
        for kind, name in notifications:
            self.post(directory, kind, name)

    def _enqueue(self, key: WatchKey) -> None:
        if not self._closed:
            self._ready.put(key)

    def _cancel(self, key: WatchKey) -> None:
        with self._lock:
            remaining = tuple(k for k in self.keys.get(key.directory, ()) if k is not key)
            if remaining:
                self.keys[key.directory] = remaining
            else:
                self.keys.pop(key.directory, None)


class EventRecorder:
    """Thread-safe listener that records delivered events."""

    def __init__(self):
        self.events: List[FileSystemEvent] = []
        self._condition = threading.Condition()

    def __call__(self, event: FileSystemEvent) -> None:
        with self._condition:
            self.events.append(event)
            self._condition.notify_all()

    def wait_for(self, count: int, timeout: float = 2.0) -> bool:
        """Wait until at least ``count`` events have been recorded."""
        with self._condition:
            return self._condition.wait_for(lambda: len(self.events) >= count, timeout=timeout)

    def lines(self) -> List[str]:
        with self._condition:
            return [f"{e.event_type.name}: {e.path}" for e in self.events]


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll a condition until it holds or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def root_dir(tmp_path):
    """A resolved temporary directory to watch."""
    root = tmp_path / "watchPath"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def service():
    service = ScriptedWatchService()
    yield service
    service.close()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def watcher(service):
    config = WatcherConfig(debounce_ms=20, dispatch_workers=1)
    watcher = FileSystemWatcher("test", config=config, watch_service=service)
    yield watcher
    watcher.close()
