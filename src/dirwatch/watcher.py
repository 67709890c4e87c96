"""File system watcher: public API and the watch loop."""

import logging
import threading
from pathlib import Path
from typing import List, Optional

from .config import WatchConfig, WatcherConfig
from .dispatcher import EventDispatcher
from .event_processor import EventTranslator
from .exceptions import WatchServiceClosedError, WatcherNotRunningError
from .registry import Listener, WatchRegistry
from .watch_service import WatchKey, WatchService

logger = logging.getLogger(__name__)


class FileSystemWatcher:
    """
    Watches files and directory trees and notifies listeners of changes.

    A background thread waits on the watch service, lets the notifications
    of a wake-up settle for ``debounce_ms``, translates them into
    FileSystemEvents and hands them to the dispatcher. Listeners run on
    dispatcher threads, never on the watch thread.

    Example:
        with FileSystemWatcher("config") as watcher:
            watcher.watch(Path("app/config.json"), print)
    """

    def __init__(
        self,
        name: str = "filesystem-watcher",
        config: Optional[WatcherConfig] = None,
        watch_service: Optional[WatchService] = None,
    ):
        """
        Create the watcher and start its background thread.

        Args:
            name: Name of the watcher, used in the watch thread's name
            config: Watcher-wide configuration
            watch_service: Service to use instead of a new watchdog-backed one

        Raises:
            WatchServiceError: If the watch service cannot be created
        """
        self.name = name
        self.config = config or WatcherConfig()

        if watch_service is None:
            watch_service = WatchService(
                use_polling=self.config.use_polling,
                poll_interval=self.config.poll_interval,
                max_pending_events=self.config.max_pending_events,
            )
        self._service = watch_service
        self._registry = WatchRegistry(self._service)
        self._translator = EventTranslator(self._registry)
        self._dispatcher = EventDispatcher(
            max_workers=self.config.dispatch_workers,
            thread_name_prefix=self.config.thread_name_prefix,
        )

        self._running = True
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._thread = threading.Thread(
            target=self._watch_loop,
            name=f"file-system-watcher[{name}]",
            daemon=True,
        )
        self._thread.start()

    def watch(self, path: Path, listener: Listener, config: Optional[WatchConfig] = None) -> None:
        """
        Register a listener for a file or directory.

        If the path is already watched the listener joins the existing
        registration and ``config`` is ignored.

        Args:
            path: File or directory to watch; a missing file is watched for creation
            listener: Callable receiving each FileSystemEvent
            config: Depth, filter and event type settings; defaults to WatchConfig()

        Raises:
            TypeError: If the listener is not callable
            WatcherNotRunningError: If the watcher has been closed
        """
        if not callable(listener):
            raise TypeError(f"listener must be callable: {listener!r}")
        if not self._running:
            raise WatcherNotRunningError("Watcher is closed")

        self._registry.register(Path(path), listener, config)

    def unwatch(self, path: Path, listener: Listener) -> bool:
        """
        Remove a listener; the path stops being watched with its last listener.

        Args:
            path: The watched path
            listener: The listener to remove

        Returns:
            True if the listener was registered for the path
        """
        return self._registry.unregister(Path(path), listener)

    def unwatch_all(self) -> int:
        """
        Stop watching every path.

        Returns:
            Number of watched paths dropped
        """
        return self._registry.unregister_all()

    def get_roots(self) -> List[Path]:
        """
        Get the currently watched paths.

        Returns:
            List of canonical paths
        """
        return sorted(self._registry.get_roots())

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def close(self) -> None:
        """
        Stop the watcher.

        No further batches are produced. Deliveries already handed to
        listeners are not interrupted.
        """
        with self._lock:
            if not self._running:
                return
            self._running = False

        self._stop_event.set()
        self._service.close()
        self._dispatcher.shutdown(wait=False)

        if threading.current_thread() is not self._thread:
            self._thread.join(timeout=self.config.shutdown_timeout)
            if self._thread.is_alive():
                logger.warning(f"Watch thread {self._thread.name} did not stop in time")

        self._registry.unregister_all()
        logger.debug(f"Watcher {self.name} closed")

    def _watch_loop(self) -> None:
        """Worker loop that turns signalled keys into dispatched event batches."""
        debounce = self.config.debounce_ms / 1000.0
        logger.debug(f"Watch loop started, debounce={debounce}s")

        while not self._stop_event.is_set():
            try:
                key = self._service.take()
            except WatchServiceClosedError:
                break
            if key is None:
                continue

            # Let the notifications of one logical write accumulate.
            if self._stop_event.wait(timeout=debounce):
                break

            try:
                self._process_key(key)
            except Exception as e:
                logger.error(f"Error processing events for {key.directory}: {e}", exc_info=True)

        logger.debug("Watch loop stopped")

    def _process_key(self, key: WatchKey) -> None:
        """Drain, translate and dispatch one key, then re-arm it."""
        try:
            notifications = key.poll_events()
            root = self._registry.root_for_key(key)
            if root is None:
                return

            events = self._translator.translate(root, key.directory, notifications)
            if events:
                logger.debug(f"Dispatching {len(events)} event(s) for {root.path}")
                self._dispatcher.dispatch(events, root)
        finally:
            if not key.reset():
                self._registry.drop_key(key)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
