"""
Upload service interfaces.

This module defines the contracts between the upload orchestrator and its
collaborators: the session store, the external asset store and the expiry
scheduler.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncContextManager, Dict, List, Optional

from ..domain.sessions import AssetDescriptor, AssetUpload, SessionDescriptor, UploadSession
from .lifecycle import IStartable, IStoppable, IHealthCheckable


class ISessionStore(ABC):
    """
    Keyed store for UploadSession records.

    Chunk-adding mutations must be performed while holding ``lock(session_id)``
    so that concurrent uploads for one session are serialized. Different
    sessions never contend.
    """

    @abstractmethod
    async def create(self, session: UploadSession) -> None:
        """Persist a new session. Raises ValueError if the id already exists."""
        pass

    @abstractmethod
    async def get(self, session_id: str) -> Optional[UploadSession]:
        """Return the session, or None if it does not exist."""
        pass

    @abstractmethod
    async def update(self, session: UploadSession) -> None:
        """Persist the current state of an existing session."""
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Remove a session. Returns True if it existed."""
        pass

    @abstractmethod
    async def list_sessions(self) -> List[UploadSession]:
        """Snapshot of every stored session."""
        pass

    @abstractmethod
    def lock(self, session_id: str) -> AsyncContextManager[None]:
        """Per-session lock guarding the chunk arena."""
        pass


class IAssetStore(ABC):
    """External system of record for finished files."""

    @abstractmethod
    async def upload(self, asset: AssetUpload) -> AssetDescriptor:
        """
        Persist an assembled payload.

        Raises:
            Exception: Any failure; the orchestrator treats it as opaque.
        """
        pass


class IExpiryScheduler(IStartable, IStoppable, IHealthCheckable):
    """Deferred reclamation of upload sessions."""

    @abstractmethod
    def schedule(self, session_id: str, delay_seconds: float) -> datetime:
        """Schedule deletion of a session. Returns the due time. Never blocks."""
        pass

    @abstractmethod
    def unschedule(self, session_id: str) -> bool:
        """Drop a pending deletion job. Returns True if one existed."""
        pass

    @abstractmethod
    def pending_jobs(self) -> Dict[str, datetime]:
        """Pending deletion jobs keyed by session id."""
        pass

    @abstractmethod
    async def run_pending(self, now: Optional[datetime] = None) -> int:
        """Execute every job that is due. Returns the number executed."""
        pass

    @abstractmethod
    async def sweep(self, now: Optional[datetime] = None) -> int:
        """Reconcile jobs with the store and reclaim abandoned sessions."""
        pass


class IUploadOrchestrator(IStartable, IStoppable, IHealthCheckable):
    """
    Protocol engine for chunked uploads.

    Every operation takes the caller identity; only the identity that
    initiated a session may read or mutate it.
    """

    @abstractmethod
    async def initiate(
        self,
        owner_studio_id: str,
        uploader_identity: str,
        file_name: str,
        content_type: str,
        total_size: int,
        total_chunks: int,
        description: Optional[str] = None
    ) -> SessionDescriptor:
        """Create a new upload session."""
        pass

    @abstractmethod
    async def upload_chunk(
        self,
        session_id: str,
        chunk_index: int,
        chunk_bytes: bytes,
        caller_identity: str
    ) -> SessionDescriptor:
        """Store one chunk. Idempotent per index."""
        pass

    @abstractmethod
    async def complete(self, session_id: str, caller_identity: str) -> AssetDescriptor:
        """Merge, verify and hand the payload to the asset store."""
        pass

    @abstractmethod
    async def get_status(self, session_id: str, caller_identity: str) -> Optional[SessionDescriptor]:
        """Current progress, or None if the session does not exist."""
        pass

    @abstractmethod
    async def cancel(self, session_id: str, caller_identity: str) -> None:
        """Delete the session immediately regardless of progress."""
        pass
