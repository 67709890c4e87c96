"""Data models for the dirwatch package."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
import time


class EventType(Enum):
    """Types of semantic file system events."""
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class RawEventKind(Enum):
    """Kinds of raw notifications reported by the watch service."""
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    OVERFLOW = "overflow"


RAW_KIND_TO_EVENT_TYPE = {
    RawEventKind.CREATE: EventType.ADDED,
    RawEventKind.MODIFY: EventType.MODIFIED,
    RawEventKind.DELETE: EventType.REMOVED,
}


@dataclass(frozen=True)
class FileSystemEvent:
    """
    Represents a file system change delivered to listeners.
    
    Attributes:
        path: Full absolute path to the affected file or directory
        event_type: The type of event (ADDED, MODIFIED, REMOVED)
        timestamp: Unix timestamp when the event was produced
    """
    path: Path
    event_type: EventType
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        if not self.path.is_absolute():
            raise ValueError(f"path must be absolute: {self.path}")

    def __str__(self) -> str:
        return f"{self.event_type.name}: {self.path}"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "path": str(self.path),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FileSystemEvent":
        """Create from dictionary."""
        return cls(
            path=Path(data["path"]),
            event_type=EventType(data["event_type"]),
            timestamp=data.get("timestamp", time.time()),
        )


@dataclass(frozen=True)
class RawNotification:
    """
    Raw notification from the watch service before translation.
    
    Attributes:
        kind: Raw notification kind (create, modify, delete, overflow)
        name: Entry name relative to the watched directory; empty for overflow
        count: Number of identical consecutive notifications collapsed into this one
    """
    kind: RawEventKind
    name: str = ""
    count: int = 1
