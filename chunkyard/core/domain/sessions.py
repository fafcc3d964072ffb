"""
Upload session domain models.

An UploadSession is the aggregate root of the chunked upload protocol: it
records who started the upload, what was declared about the file, and which
chunk slots have been filled so far.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Tuple

from .errors import AlreadyCompletedError


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


@dataclass
class UploadSession:
    """
    Server-side record of one file's in-progress chunked upload.

    Chunk bytes live in a fixed arena of ``total_chunks`` slots. A slot is
    either ``None`` (not yet received) or the bytes first received for that
    index; slots are never cleared or overwritten.
    """

    session_id: str
    owner_studio_id: str
    uploader_identity: str
    file_name: str
    content_type: str
    total_size: int
    total_chunks: int
    created_at: datetime
    description: Optional[str] = None
    last_activity_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    _slots: List[Optional[bytes]] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        if not self._slots:
            self._slots = [None] * self.total_chunks
        elif len(self._slots) != self.total_chunks:
            raise ValueError("Chunk arena size must equal total_chunks")

        if self.last_activity_at is None:
            self.last_activity_at = self.created_at

    @classmethod
    def new(
        cls,
        owner_studio_id: str,
        uploader_identity: str,
        file_name: str,
        content_type: str,
        total_size: int,
        total_chunks: int,
        created_at: datetime,
        description: Optional[str] = None
    ) -> 'UploadSession':
        """Create a fresh session with a generated identifier and empty slots."""
        return cls(
            session_id=uuid.uuid4().hex,
            owner_studio_id=owner_studio_id,
            uploader_identity=uploader_identity,
            file_name=file_name,
            content_type=content_type,
            total_size=total_size,
            total_chunks=total_chunks,
            created_at=created_at,
            description=description,
        )

    @property
    def received_indices(self) -> FrozenSet[int]:
        return frozenset(i for i, data in enumerate(self._slots) if data is not None)

    @property
    def uploaded_chunks(self) -> int:
        return sum(1 for data in self._slots if data is not None)

    @property
    def buffered_bytes(self) -> int:
        return sum(len(data) for data in self._slots if data is not None)

    @property
    def has_all_chunks(self) -> bool:
        return all(data is not None for data in self._slots)

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None

    def has_chunk(self, index: int) -> bool:
        return self._slots[index] is not None

    def chunk(self, index: int) -> Optional[bytes]:
        return self._slots[index]

    def store_chunk(self, index: int, data: bytes) -> bool:
        """
        Insert chunk bytes if the slot is empty.

        Returns:
            True if the bytes were stored, False if the slot was already filled.
        """
        if not 0 <= index < self.total_chunks:
            raise IndexError(f"Chunk index {index} outside [0, {self.total_chunks})")

        if self._slots[index] is not None:
            return False

        self._slots[index] = bytes(data)
        return True

    def iter_chunks(self) -> Iterator[Tuple[int, Optional[bytes]]]:
        """Yield ``(index, bytes)`` pairs in logical index order."""
        for index, data in enumerate(self._slots):
            yield index, data

    def touch(self, at: datetime) -> None:
        self.last_activity_at = at

    def mark_completed(self, at: datetime) -> None:
        """Set the completion timestamp. It can only ever be set once."""
        if self.completed_at is not None:
            raise AlreadyCompletedError(
                f"Upload session {self.session_id} has already been completed "
                f"at {self.completed_at.isoformat()}",
                {"session_id": self.session_id},
            )
        self.completed_at = at
        self.last_activity_at = at

    def to_metadata(self) -> Dict[str, Any]:
        """JSON-safe representation without chunk bytes."""
        return {
            "session_id": self.session_id,
            "owner_studio_id": self.owner_studio_id,
            "uploader_identity": self.uploader_identity,
            "file_name": self.file_name,
            "content_type": self.content_type,
            "description": self.description,
            "total_size": self.total_size,
            "total_chunks": self.total_chunks,
            "created_at": _format_datetime(self.created_at),
            "last_activity_at": _format_datetime(self.last_activity_at),
            "completed_at": _format_datetime(self.completed_at),
        }

    @classmethod
    def from_metadata(
        cls,
        data: Dict[str, Any],
        chunks: Optional[Dict[int, bytes]] = None
    ) -> 'UploadSession':
        session = cls(
            session_id=data["session_id"],
            owner_studio_id=data["owner_studio_id"],
            uploader_identity=data["uploader_identity"],
            file_name=data["file_name"],
            content_type=data["content_type"],
            description=data.get("description"),
            total_size=data["total_size"],
            total_chunks=data["total_chunks"],
            created_at=_parse_datetime(data["created_at"]),  # type: ignore[arg-type]
            last_activity_at=_parse_datetime(data.get("last_activity_at")),
            completed_at=_parse_datetime(data.get("completed_at")),
        )
        for index, chunk_data in (chunks or {}).items():
            session.store_chunk(index, chunk_data)
        return session


@dataclass(frozen=True)
class SessionDescriptor:
    """Client-facing progress view of an upload session."""

    session_id: str
    file_name: str
    total_size: int
    total_chunks: int
    uploaded_chunks: int
    progress: float
    created_at: datetime
    completed_at: Optional[datetime] = None

    @property
    def progress_percentage(self) -> float:
        return self.progress * 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "file_name": self.file_name,
            "total_size": self.total_size,
            "total_chunks": self.total_chunks,
            "uploaded_chunks": self.uploaded_chunks,
            "progress": self.progress,
            "progress_percentage": self.progress_percentage,
            "created_at": _format_datetime(self.created_at),
            "completed_at": _format_datetime(self.completed_at),
        }


@dataclass(frozen=True)
class AssetUpload:
    """Assembled payload plus metadata handed to the asset store."""

    data: bytes
    file_name: str
    content_type: str
    size: int
    uploader_identity: str
    owner_studio_id: str
    description: Optional[str] = None


@dataclass(frozen=True)
class AssetDescriptor:
    """Persisted asset as reported by the asset store."""

    asset_id: str
    file_name: str
    content_type: str
    size: int
    checksum: str
    location: str
    created_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "file_name": self.file_name,
            "content_type": self.content_type,
            "size": self.size,
            "checksum": self.checksum,
            "location": self.location,
            "created_at": _format_datetime(self.created_at),
            "metadata": self.metadata,
        }
