"""Configuration for the dirwatch package."""

import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, Optional

from .exceptions import InvalidConfigError
from .models import EventType


# Depth that effectively means "the whole subtree".
RECURSIVE = sys.maxsize

PathFilter = Callable[[Path], bool]


@dataclass(frozen=True)
class WatchConfig:
    """
    Configuration of a single watch root.
    
    Attributes:
        max_depth: How many directory levels below the root are reported.
            1 means only the root's direct children.
        filter: Optional predicate over an event path; events it rejects are dropped
        allowed_event_types: Event types to emit; None means all of them
    """
    max_depth: int = 1
    filter: Optional[PathFilter] = None
    allowed_event_types: Optional[FrozenSet[EventType]] = None

    def __post_init__(self):
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int):
            raise InvalidConfigError(f"max_depth must be an integer: {self.max_depth!r}")
        if self.max_depth <= 0:
            raise InvalidConfigError("Only values greater than 0 are allowed for max_depth.")
        if self.filter is not None and not callable(self.filter):
            raise InvalidConfigError(f"filter must be callable: {self.filter!r}")
        if self.allowed_event_types is not None:
            allowed = frozenset(self.allowed_event_types)
            for event_type in allowed:
                if not isinstance(event_type, EventType):
                    raise InvalidConfigError(f"Unknown event type: {event_type!r}")
            object.__setattr__(self, "allowed_event_types", allowed)

    @property
    def is_recursive(self) -> bool:
        return self.max_depth >= RECURSIVE

    def is_event_allowed(self, event_type: EventType) -> bool:
        """
        Check whether events of the given type should be emitted.
        
        Args:
            event_type: The event type to check
            
        Returns:
            True if no restriction is configured or the type is part of it
        """
        if self.allowed_event_types is not None:
            return event_type in self.allowed_event_types
        return event_type is not None

    def with_max_depth(self, max_depth: int) -> "WatchConfig":
        return replace(self, max_depth=max_depth)

    def with_filter(self, filter: Optional[PathFilter]) -> "WatchConfig":
        return replace(self, filter=filter)

    def with_allowed_event_types(self, *event_types: EventType) -> "WatchConfig":
        allowed: Optional[Iterable[EventType]] = None
        if event_types:
            allowed = [t for t in event_types if t is not None]
        return replace(self, allowed_event_types=allowed)

    @classmethod
    def recursive(cls, **kwargs) -> "WatchConfig":
        """Create a config that watches the whole subtree."""
        return cls(max_depth=RECURSIVE, **kwargs)


@dataclass
class WatcherConfig:
    """
    Watcher-wide configuration options.
    
    Attributes:
        debounce_ms: Milliseconds to wait after a wake-up before draining, so that
            the notifications of one logical write arrive in a single batch
        dispatch_workers: Number of threads delivering event batches to listeners
        use_polling: Use watchdog's polling observer instead of native OS events
        poll_interval: Polling interval in seconds (polling observer only)
        max_pending_events: Pending notifications per watched directory before
            they collapse into a single overflow notification
        shutdown_timeout: Seconds to wait for the watcher thread on close
    """
    debounce_ms: int = 100
    dispatch_workers: int = 4
    use_polling: bool = False
    poll_interval: float = 1.0
    max_pending_events: int = 512
    shutdown_timeout: float = 2.0
    thread_name_prefix: str = field(default="dirwatch-dispatch")

    @classmethod
    def from_env(cls, prefix: str = "DIRWATCH_") -> "WatcherConfig":
        """
        Build a config from environment variables.
        
        Recognised variables (with the default prefix): DIRWATCH_DEBOUNCE_MS,
        DIRWATCH_DISPATCH_WORKERS, DIRWATCH_USE_POLLING, DIRWATCH_POLL_INTERVAL,
        DIRWATCH_MAX_PENDING_EVENTS, DIRWATCH_SHUTDOWN_TIMEOUT.
        """
        config = cls()
        env = os.environ
        if f"{prefix}DEBOUNCE_MS" in env:
            config.debounce_ms = int(env[f"{prefix}DEBOUNCE_MS"])
        if f"{prefix}DISPATCH_WORKERS" in env:
            config.dispatch_workers = int(env[f"{prefix}DISPATCH_WORKERS"])
        if f"{prefix}USE_POLLING" in env:
            config.use_polling = env[f"{prefix}USE_POLLING"].strip().lower() in ("1", "true", "yes", "on")
        if f"{prefix}POLL_INTERVAL" in env:
            config.poll_interval = float(env[f"{prefix}POLL_INTERVAL"])
        if f"{prefix}MAX_PENDING_EVENTS" in env:
            config.max_pending_events = int(env[f"{prefix}MAX_PENDING_EVENTS"])
        if f"{prefix}SHUTDOWN_TIMEOUT" in env:
            config.shutdown_timeout = float(env[f"{prefix}SHUTDOWN_TIMEOUT"])
        return config
