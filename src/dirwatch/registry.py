"""Thread-safe registry of watch roots and their watch keys."""

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from .config import WatchConfig
from .exceptions import WatchServiceError
from .models import FileSystemEvent
from .watch_service import WatchKey, WatchService

logger = logging.getLogger(__name__)

Listener = Callable[[FileSystemEvent], None]


def is_walkable_dir(path: Path) -> bool:
    """Check if a path is a real directory (symbolic links are not followed)."""
    return path.is_dir() and not path.is_symlink()


def walk_tree(top: Path, max_depth: int) -> Iterator[Tuple[Path, int]]:
    """
    Walk a directory tree in pre-order, entries of each directory sorted by name.

    Args:
        top: Start of the walk, yielded first with depth 0
        max_depth: Deepest level to yield, relative to top

    Yields:
        (path, depth) tuples for files and directories
    """
    stack = [(top, 0)]
    while stack:
        path, depth = stack.pop()
        yield path, depth

        if depth >= max_depth or not is_walkable_dir(path):
            continue
        try:
            children = sorted(path.iterdir())
        except OSError as e:
            logger.warning(f"Could not traverse directory {path}: {e}")
            continue
        stack.extend((child, depth + 1) for child in reversed(children))


class WatchRoot:
    """
    A single user registration: a file or directory with its own config and listeners.

    A file root watches its parent directory; events are filtered down
    to the file's own path.
    """

    def __init__(self, path: Path, config: WatchConfig, is_file: bool = False):
        self.path = path
        self.config = config
        self.is_file = is_file
        self._listeners: Tuple[Listener, ...] = ()
        self._keys: Dict[Path, WatchKey] = {}

    @property
    def listeners(self) -> Tuple[Listener, ...]:
        """Snapshot of the attached listeners in registration order."""
        return self._listeners

    @property
    def keys(self) -> List[WatchKey]:
        return list(self._keys.values())

    @property
    def watched_directories(self) -> FrozenSet[Path]:
        return frozenset(self._keys)

    def watches(self, directory: Path) -> bool:
        return directory in self._keys

    def _add_listener(self, listener: Listener) -> bool:
        if listener in self._listeners:
            return False
        self._listeners = self._listeners + (listener,)
        return True

    def _remove_listener(self, listener: Listener) -> bool:
        if listener not in self._listeners:
            return False
        self._listeners = tuple(existing for existing in self._listeners if existing != listener)
        return True

    def __repr__(self) -> str:
        kind = "file" if self.is_file else "directory"
        return f"<WatchRoot {kind} {self.path} keys={len(self._keys)} listeners={len(self._listeners)}>"


class WatchRegistry:
    """
    Thread-safe management of watch roots.

    Mutations are serialized by a lock. The key -> root index is replaced
    as a whole on every change, so ``root_for_key`` can be called from the
    watcher thread without locking and always sees a complete index.
    """

    def __init__(self, service: WatchService):
        """
        Initialize the registry.

        Args:
            service: Watch service used to register directories
        """
        self._service = service
        self._roots: Dict[Path, WatchRoot] = {}
        self._roots_by_key: Dict[WatchKey, WatchRoot] = {}
        self._lock = threading.RLock()

    def register(
        self,
        path: Path,
        listener: Listener,
        config: Optional[WatchConfig] = None,
    ) -> WatchRoot:
        """
        Attach a listener to the root for a path, creating the root if needed.

        The config only applies when the root is created; later registrations
        for the same path share the existing root and its config.

        Args:
            path: File or directory to watch
            listener: Callable receiving FileSystemEvents
            config: Watch configuration for a new root

        Returns:
            The root the listener is attached to
        """
        path = Path(path).resolve()

        with self._lock:
            root = self._roots.get(path)
            if root is None:
                root = self._create_root(path, config or WatchConfig())
                self._roots[path] = root
                logger.info(f"Watching {path} (max_depth={root.config.max_depth}, {len(root.keys)} directories)")
            elif config is not None and config != root.config:
                logger.debug(f"Root {path} already registered, keeping its original config")

            root._add_listener(listener)
            return root

    def unregister(self, path: Path, listener: Listener) -> bool:
        """
        Detach a listener; the root is dropped with its last listener.

        Args:
            path: The watched path
            listener: The listener to remove

        Returns:
            True if the listener was attached
        """
        path = Path(path).resolve()

        with self._lock:
            root = self._roots.get(path)
            if root is None:
                return False

            removed = root._remove_listener(listener)
            if not root.listeners:
                self._drop_root(root)
            return removed

    def unregister_all(self) -> int:
        """
        Drop every root and cancel every key.

        Returns:
            Number of roots dropped
        """
        with self._lock:
            roots = list(self._roots.values())
            self._roots = {}
            self._roots_by_key = {}

            for root in roots:
                self._cancel_keys(root)

            if roots:
                logger.info(f"Stopped watching {len(roots)} root(s)")
            return len(roots)

    def add_directory(self, root: WatchRoot, directory: Path) -> bool:
        """
        Watch an additional directory for a root.

        Args:
            root: The owning root
            directory: Directory to watch

        Returns:
            True if a new key was registered; False if the directory was already
            watched, the root is no longer registered, or registration failed
        """
        with self._lock:
            if self._roots.get(root.path) is not root:
                return False

            key = self._watch_directory(root, directory)
            if key is None:
                return False
            self._publish(added={key: root})
            return True

    def drop_key(self, key: WatchKey) -> None:
        """Forget a key whose directory is gone and make sure it is cancelled."""
        with self._lock:
            root = self._roots_by_key.get(key)
            if root is not None:
                if root._keys.get(key.directory) is key:
                    del root._keys[key.directory]
                self._publish(removed=[key])
                logger.debug(f"Dropped watch on {key.directory} for root {root.path}")
        key.cancel()

    def root_for_key(self, key: WatchKey) -> Optional[WatchRoot]:
        """
        Find the root that owns a key.

        Args:
            key: A key returned by the watch service

        Returns:
            The owning root, or None if the key is no longer registered
        """
        return self._roots_by_key.get(key)

    def get_root(self, path: Path) -> Optional[WatchRoot]:
        with self._lock:
            return self._roots.get(Path(path).resolve())

    def get_roots(self) -> FrozenSet[Path]:
        """
        Get the current set of watched paths.

        Returns:
            Frozen set of canonical root paths
        """
        with self._lock:
            return frozenset(self._roots)

    def _create_root(self, path: Path, config: WatchConfig) -> WatchRoot:
        is_file = not path.is_dir()
        root = WatchRoot(path, config, is_file=is_file)
        added: Dict[WatchKey, WatchRoot] = {}

        if is_file:
            parent = path.parent
            try:
                parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning(f"Could not create parent directory {parent}: {e}")
            key = self._watch_directory(root, parent)
            if key is not None:
                added[key] = root
        else:
            for directory, _ in walk_tree(path, config.max_depth - 1):
                if not is_walkable_dir(directory):
                    continue
                key = self._watch_directory(root, directory)
                if key is not None:
                    added[key] = root

        self._publish(added=added)
        return root

    def _watch_directory(self, root: WatchRoot, directory: Path) -> Optional[WatchKey]:
        if root.watches(directory):
            return None
        try:
            key = self._service.register(directory)
        except (OSError, WatchServiceError) as e:
            logger.warning(f"Could not watch directory {directory}: {e}")
            return None
        root._keys[directory] = key
        return key

    def _drop_root(self, root: WatchRoot) -> None:
        del self._roots[root.path]
        self._cancel_keys(root)
        logger.info(f"Stopped watching {root.path}")

    def _cancel_keys(self, root: WatchRoot) -> None:
        keys = root.keys
        root._keys.clear()
        self._publish(removed=keys)
        for key in keys:
            key.cancel()

    def _publish(
        self,
        added: Optional[Dict[WatchKey, WatchRoot]] = None,
        removed: Iterable[WatchKey] = (),
    ) -> None:
        by_key = dict(self._roots_by_key)
        if added:
            by_key.update(added)
        for key in removed:
            by_key.pop(key, None)
        self._roots_by_key = by_key

    def __len__(self) -> int:
        """Return the number of watch roots."""
        with self._lock:
            return len(self._roots)

    def __contains__(self, path: Path) -> bool:
        """Check if a path is a watch root."""
        with self._lock:
            return Path(path).resolve() in self._roots
