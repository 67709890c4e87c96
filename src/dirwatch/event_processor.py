"""Translation of raw watch notifications into filtered, coalesced file events."""

import logging
from pathlib import Path
from typing import Iterable, List, Set

from .config import WatchConfig
from .models import (
    EventType,
    FileSystemEvent,
    RawEventKind,
    RawNotification,
    RAW_KIND_TO_EVENT_TYPE,
)
from .registry import WatchRegistry, WatchRoot, is_walkable_dir, walk_tree

logger = logging.getLogger(__name__)


def is_within(path: Path, root: Path) -> bool:
    """Check if a path is the root itself or lies below it."""
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def coalesce_events(
    events: List[FileSystemEvent],
    added: Set[Path],
    deleted: Set[Path],
) -> List[FileSystemEvent]:
    """
    Drop contradictory events of one batch.

    Coalescing rules:
    - MODIFIED for a path both added and deleted is kept (file replaced
      by a move across file systems)
    - MODIFIED for a path only added or only deleted is dropped
    - ADDED for a deleted path is dropped
    - REMOVED for an added path is dropped

    Args:
        events: Events in production order
        added: Paths created in this batch
        deleted: Paths deleted in this batch

    Returns:
        Surviving events, in their original order
    """
    kept = []
    for event in events:
        path = event.path
        if event.event_type is EventType.MODIFIED:
            if path in added and path in deleted:
                kept.append(event)
                continue
            if path in added or path in deleted:
                continue
        elif event.event_type is EventType.ADDED:
            if path in deleted:
                continue
        elif event.event_type is EventType.REMOVED:
            if path in added:
                continue
        kept.append(event)
    return kept


def apply_filter(config: WatchConfig, events: Iterable[FileSystemEvent]) -> List[FileSystemEvent]:
    """Keep the events whose path passes the configured filter."""
    if config.filter is None:
        return list(events)

    kept = []
    for event in events:
        try:
            accepted = config.filter(event.path)
        except Exception as e:
            logger.error(f"Filter failed for {event.path}: {e}", exc_info=True)
            continue
        if accepted:
            kept.append(event)
    return kept


class EventTranslator:
    """
    Turns one raw batch of a watched directory into semantic events.

    Applies the root's depth limit, allowed event types and filter,
    coalesces contradictory notifications and extends the watch to
    newly created directories.
    """

    def __init__(self, registry: WatchRegistry):
        """
        Initialize the translator.

        Args:
            registry: Registry used to watch newly created directories
        """
        self.registry = registry

    def translate(
        self,
        root: WatchRoot,
        directory: Path,
        notifications: Iterable[RawNotification],
    ) -> List[FileSystemEvent]:
        """
        Translate a raw batch.

        Args:
            root: The root owning the woken key
            directory: The directory the notifications belong to
            notifications: Raw notifications in arrival order

        Returns:
            Events to deliver, in production order
        """
        config = root.config
        root_depth = len(root.path.parts)
        results: List[FileSystemEvent] = []
        added: Set[Path] = set()
        deleted: Set[Path] = set()

        for notification in notifications:
            if notification.kind is RawEventKind.OVERFLOW:
                logger.warning(
                    f"Overflow detected in {directory}, "
                    f"events for {root.path} may have been lost"
                )
                continue

            target = directory / notification.name
            # A file root's parent directory also reports its siblings.
            if not is_within(target, root.path):
                continue

            depth = len(target.parts) - root_depth
            if depth > config.max_depth:
                continue

            event_type = RAW_KIND_TO_EVENT_TYPE[notification.kind]
            allowed = config.is_event_allowed(event_type)

            if notification.kind is RawEventKind.CREATE:
                if allowed:
                    added.add(target)
                if is_walkable_dir(target):
                    results.extend(self._expand_directory(root, target, depth, allowed))
                    continue
            elif notification.kind is RawEventKind.DELETE:
                if allowed:
                    deleted.add(target)

            if allowed:
                results.append(FileSystemEvent(target, event_type))

        results = coalesce_events(results, added, deleted)
        return apply_filter(config, results)

    def _expand_directory(
        self,
        root: WatchRoot,
        directory: Path,
        depth: int,
        emit: bool,
    ) -> List[FileSystemEvent]:
        """Watch a new directory's subtree within the depth budget and report its entries."""
        max_depth = root.config.max_depth
        remaining = max_depth - depth

        if remaining <= 0:
            # Contents would be deeper than max_depth: report the directory only.
            return [FileSystemEvent(directory, EventType.ADDED)] if emit else []

        events = []
        for path, level in walk_tree(directory, remaining):
            # Directories at max_depth are watched too: their own
            # modification is reported to the parent's key.
            if depth + level <= max_depth and is_walkable_dir(path):
                self.registry.add_directory(root, path)
            if emit:
                events.append(FileSystemEvent(path, EventType.ADDED))

        logger.debug(f"New directory {directory} expanded to {len(events)} event(s) for {root.path}")
        return events
