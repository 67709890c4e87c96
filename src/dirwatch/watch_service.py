"""Per-directory watch service built on the watchdog library.

The service hands out one WatchKey per registered directory. Raw
notifications accumulate on the key; a key with pending notifications is
queued once and returned by ``take()``. After draining a key with
``poll_events()`` the consumer re-arms it with ``reset()``.
"""

import logging
import os
import queue
import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from watchdog.events import FileSystemEventHandler, DirModifiedEvent
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch
from watchdog.observers.polling import PollingObserver

from .exceptions import WatchServiceError, WatchServiceClosedError
from .models import RawEventKind, RawNotification

logger = logging.getLogger(__name__)

_CLOSED = object()


class WatchKey:
    """
    Registration token for one watched directory.
    
    Keys hash by identity, so two registrations of the same directory
    are distinct keys.
    """

    def __init__(self, service: "WatchService", directory: Path, max_pending_events: int = 512):
        self._service = service
        self._directory = directory
        self._max_pending_events = max_pending_events
        self._events: List[RawNotification] = []
        self._signalled = False
        self._valid = True
        self._cancelled = False
        self._lock = threading.Lock()

    @property
    def directory(self) -> Path:
        """The directory this key watches."""
        return self._directory

    @property
    def is_valid(self) -> bool:
        return self._valid

    def poll_events(self) -> List[RawNotification]:
        """
        Remove and return all pending notifications.
        
        Returns:
            Notifications in arrival order
        """
        with self._lock:
            events = self._events
            self._events = []
            return events

    def reset(self) -> bool:
        """
        Re-arm the key after its notifications have been drained.
        
        Returns:
            False if the key is no longer valid (cancelled, service closed,
            or the directory no longer exists)
        """
        if not self._valid or not self._directory.is_dir():
            logger.debug(f"Watch on {self._directory} is no longer valid")
            self.cancel()
        with self._lock:
            if not self._valid:
                return False
            if self._signalled:
                if self._events:
                    self._service._enqueue(self)
                else:
                    self._signalled = False
            return True

    def cancel(self) -> None:
        """Stop watching. Pending notifications are kept but no new ones arrive."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            self._valid = False
        self._service._cancel(self)

    def _signal_event(self, kind: RawEventKind, name: str) -> None:
        with self._lock:
            if not self._valid:
                return
            if self._events:
                last = self._events[-1]
                if last.kind is RawEventKind.OVERFLOW or (last.kind is kind and last.name == name):
                    self._events[-1] = RawNotification(last.kind, last.name, last.count + 1)
                    return
            if len(self._events) >= self._max_pending_events:
                self._events.append(RawNotification(RawEventKind.OVERFLOW))
            else:
                self._events.append(RawNotification(kind, name))
            self._signal()

    def _invalidate(self, signal: bool = True) -> None:
        with self._lock:
            self._valid = False
            if signal:
                self._signal()

    def _signal(self) -> None:
        if not self._signalled:
            self._signalled = True
            self._service._enqueue(self)

    def __repr__(self) -> str:
        state = "valid" if self._valid else "invalid"
        return f"<WatchKey {self._directory} {state}>"


class DirectoryEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog events of one directory to raw notifications."""

    def __init__(self, service: "WatchService", directory: Path):
        super().__init__()
        self.service = service
        self.directory = directory

    def _is_self(self, raw_path) -> bool:
        return Path(os.fsdecode(raw_path)) == self.directory

    def _emit(self, kind: RawEventKind, raw_path) -> None:
        """Post a notification for an entry directly inside the directory."""
        path = Path(os.fsdecode(raw_path))
        if path.parent != self.directory:
            return
        self.service._post(self.directory, kind, path.name)

    def on_created(self, event):
        self._emit(RawEventKind.CREATE, event.src_path)

    def on_deleted(self, event):
        if self._is_self(event.src_path):
            self.service._invalidate(self.directory)
            return
        self._emit(RawEventKind.DELETE, event.src_path)

    def on_modified(self, event):
        if self._is_self(event.src_path):
            # A changed directory is reported to its parent's watchers
            # as a modification of one of the parent's entries.
            if isinstance(event, DirModifiedEvent):
                self.service._post(self.directory.parent, RawEventKind.MODIFY, self.directory.name)
            return
        self._emit(RawEventKind.MODIFY, event.src_path)

    def on_moved(self, event):
        self._emit(RawEventKind.DELETE, event.src_path)
        self._emit(RawEventKind.CREATE, event.dest_path)


class WatchService:
    """
    Watch service multiplexing watchdog observations into WatchKeys.
    
    One non-recursive watchdog watch is scheduled per directory and shared
    by every key registered for that directory.
    """

    def __init__(
        self,
        use_polling: bool = False,
        poll_interval: float = 1.0,
        max_pending_events: int = 512,
    ):
        """
        Initialize and start the watch service.
        
        Args:
            use_polling: Use the polling observer instead of OS events
            poll_interval: Polling interval in seconds
            max_pending_events: Pending notifications per key before overflow
            
        Raises:
            WatchServiceError: If the underlying observer cannot be started
        """
        self.use_polling = use_polling
        self.max_pending_events = max_pending_events
        self._ready: "queue.Queue[object]" = queue.Queue()
        # Copy-on-write: watchdog threads read it without taking the lock.
        self._keys: Dict[Path, Tuple[WatchKey, ...]] = {}
        self._watches: Dict[Path, ObservedWatch] = {}
        self._lock = threading.Lock()
        self._closed = False

        try:
            if use_polling:
                self._observer = PollingObserver(timeout=poll_interval)
            else:
                self._observer = Observer()
            self._observer.daemon = True
            self._observer.start()
        except (OSError, RuntimeError) as e:
            raise WatchServiceError(f"Could not start watch service: {e}") from e

        logger.debug(f"Watch service started ({type(self._observer).__name__})")

    @property
    def is_closed(self) -> bool:
        return self._closed

    def register(self, directory: Path) -> WatchKey:
        """
        Start watching a directory for create, modify and delete notifications.
        
        Args:
            directory: Directory to watch
            
        Returns:
            A new key for the directory
            
        Raises:
            WatchServiceClosedError: If the service is closed
            NotADirectoryError: If the path is not an existing directory
            OSError: If the platform refuses the watch
        """
        directory = Path(directory).resolve()

        with self._lock:
            if self._closed:
                raise WatchServiceClosedError("Watch service is closed")
            if not directory.is_dir():
                raise NotADirectoryError(f"Not a directory: {directory}")

            if directory not in self._watches:
                handler = DirectoryEventHandler(self, directory)
                self._watches[directory] = self._observer.schedule(
                    handler,
                    str(directory),
                    recursive=False,
                )

            key = WatchKey(self, directory, self.max_pending_events)
            keys = dict(self._keys)
            keys[directory] = keys.get(directory, ()) + (key,)
            self._keys = keys

        logger.debug(f"Registered watch on {directory}")
        return key

    def take(self, timeout: Optional[float] = None) -> Optional[WatchKey]:
        """
        Wait for the next key with pending notifications.
        
        Args:
            timeout: Seconds to wait; None blocks until a key is signalled
            
        Returns:
            A signalled key, or None if the timeout expired
            
        Raises:
            WatchServiceClosedError: If the service is or becomes closed
        """
        if self._closed:
            raise WatchServiceClosedError("Watch service is closed")

        try:
            item = self._ready.get(timeout=timeout)
        except queue.Empty:
            return None

        if item is _CLOSED:
            # Leave the marker for any other waiting consumer.
            self._ready.put(_CLOSED)
            raise WatchServiceClosedError("Watch service is closed")
        return item

    def watched_directories(self) -> List[Path]:
        """Directories with at least one live key."""
        return list(self._keys.keys())

    def close(self, timeout: float = 2.0) -> None:
        """Close the service, invalidate all keys and wake any waiting consumer."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            keys = [key for group in self._keys.values() for key in group]
            self._keys = {}
            self._watches = {}

        for key in keys:
            key._invalidate(signal=False)

        self._observer.stop()
        if threading.current_thread() is not self._observer:
            self._observer.join(timeout=timeout)

        self._ready.put(_CLOSED)
        logger.debug("Watch service closed")

    def _enqueue(self, key: WatchKey) -> None:
        if not self._closed:
            self._ready.put(key)

    def _post(self, directory: Path, kind: RawEventKind, name: str) -> None:
        for key in self._keys.get(directory, ()):
            key._signal_event(kind, name)

    def _invalidate(self, directory: Path) -> None:
        for key in self._keys.get(directory, ()):
            key._invalidate()

    def _cancel(self, key: WatchKey) -> None:
        directory = key.directory
        watch = None

        with self._lock:
            remaining = tuple(k for k in self._keys.get(directory, ()) if k is not key)
            keys = dict(self._keys)
            if remaining:
                keys[directory] = remaining
            else:
                keys.pop(directory, None)
                watch = self._watches.pop(directory, None)
            self._keys = keys

        if watch is not None:
            try:
                self._observer.unschedule(watch)
            except KeyError:
                pass
            logger.debug(f"Unscheduled watch on {directory}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
