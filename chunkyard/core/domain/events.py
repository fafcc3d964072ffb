"""
Event domain models for upload notifications.

Events carry progress and lifecycle notifications from the upload
orchestrator to any interested subscriber (progress streams, audit hooks)
without coupling the orchestrator to them.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional


class EventPriority(IntEnum):
    """Event priority levels for processing order."""
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


@dataclass(frozen=True)
class Event:
    """
    Immutable record of something that happened to an upload session.
    """

    name: str
    """Event name, e.g. ``upload.chunk_received``."""

    data: Any = None
    """Event payload."""

    priority: EventPriority = EventPriority.NORMAL

    timestamp: float = field(default_factory=time.time)

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    source: Optional[str] = None
    """Component that generated the event."""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Event name cannot be empty")

        if not isinstance(self.priority, EventPriority):
            raise ValueError("Priority must be an EventPriority enum value")

    def __lt__(self, other: 'Event') -> bool:
        """Higher priority first, then FIFO by timestamp."""
        if not isinstance(other, Event):
            return NotImplemented

        if self.priority.value != other.priority.value:
            return self.priority.value > other.priority.value

        return self.timestamp < other.timestamp

    @property
    def session_id(self) -> Optional[str]:
        """Session the event refers to, when the payload carries one."""
        if isinstance(self.data, dict):
            return self.data.get("session_id")
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'data': self.data,
            'priority': self.priority.name,
            'timestamp': self.timestamp,
            'event_id': self.event_id,
            'source': self.source,
        }


class UploadEvents:
    """Names of events published by the upload subsystem."""

    INITIATED = "upload.initiated"
    CHUNK_RECEIVED = "upload.chunk_received"
    CHUNK_DUPLICATE = "upload.chunk_duplicate"
    COMPLETED = "upload.completed"
    FAILED = "upload.failed"
    CANCELLED = "upload.cancelled"
    EXPIRED = "upload.expired"
