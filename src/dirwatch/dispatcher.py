"""Delivery of event batches to listeners off the watcher thread."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional

from .models import FileSystemEvent
from .registry import WatchRoot

logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Delivers event batches to the listeners of their root.

    Each batch is delivered by a worker thread. Within a batch, events are
    delivered in order and, per event, listeners are called in registration
    order. Batches may be delivered concurrently, so no order holds across
    batches.
    """

    def __init__(self, max_workers: int = 4, thread_name_prefix: str = "dirwatch-dispatch"):
        """
        Initialize the dispatcher.

        Args:
            max_workers: Number of delivery threads
            thread_name_prefix: Name prefix of the delivery threads
        """
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix,
        )
        self._closed = False

    def dispatch(self, events: List[FileSystemEvent], root: WatchRoot) -> Optional[Future]:
        """
        Schedule delivery of a batch.

        Args:
            events: Events in delivery order
            root: The root whose listeners receive the events

        Returns:
            Future of the delivery, or None if nothing was scheduled
        """
        if not events or self._closed:
            return None

        try:
            return self._executor.submit(self._deliver, list(events), root)
        except RuntimeError as e:
            logger.error(f"Could not dispatch {len(events)} event(s) for {root.path}: {e}")
            return None

    def _deliver(self, events: List[FileSystemEvent], root: WatchRoot) -> None:
        for event in events:
            # Snapshot per event so a listener removed mid-batch stops receiving.
            for listener in root.listeners:
                try:
                    listener(event)
                except Exception as e:
                    logger.error(f"Listener {listener!r} failed for {event}: {e}", exc_info=True)

    def shutdown(self, wait: bool = False) -> None:
        """Stop accepting batches. Deliveries already started run to completion."""
        self._closed = True
        self._executor.shutdown(wait=wait)
