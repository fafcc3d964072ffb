"""
Upload orchestrator implementation.

This module drives the chunked upload protocol: session initiation,
idempotent chunk storage, ordered merge with integrity checks, hand-off to
the asset store, cancellation and scheduling of post-completion cleanup.
"""

import time
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Set

from loguru import logger

from ....core.domain.errors import (
    AlreadyCompletedError,
    CompletionInProgressError,
    CorruptedUploadError,
    IncompleteUploadError,
    InvalidCallerError,
    InvalidChunkError,
    InvalidRequestError,
    SessionNotFoundError,
    SizeExceededError,
    UnauthorizedError,
    UploadFailedError,
)
from ....core.domain.events import EventPriority, UploadEvents
from ....core.domain.progress import project
from ....core.domain.sessions import AssetDescriptor, AssetUpload, SessionDescriptor, UploadSession
from ....core.interfaces.lifecycle import IComponent
from ....core.interfaces.messaging import IEventBus
from ....core.interfaces.upload import (
    IAssetStore, IExpiryScheduler, ISessionStore, IUploadOrchestrator
)
from ...config.models import UploadConfig
from ...logging.setup import audit_access_denied


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UploadOrchestrator(IComponent, IUploadOrchestrator):
    """
    Chunked upload protocol engine.

    Chunk insertion runs under the session's store lock. ``complete`` holds
    that lock only while reading and merging; the asset store is called
    outside it, and a second completion of the same session is rejected
    while the first is in flight.
    """

    def __init__(
        self,
        session_store: ISessionStore,
        asset_store: IAssetStore,
        expiry_scheduler: IExpiryScheduler,
        config: Optional[UploadConfig] = None,
        event_bus: Optional[IEventBus] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._store = session_store
        self._assets = asset_store
        self._expiry = expiry_scheduler
        self._config = config or UploadConfig()
        self._event_bus = event_bus
        self._clock = clock or _utcnow

        self._completing: Set[str] = set()
        self._running = False
        self._start_time: Optional[float] = None

        self._stats: Dict[str, int] = {
            "sessions_initiated": 0,
            "chunks_received": 0,
            "duplicate_chunks": 0,
            "uploads_completed": 0,
            "uploads_failed": 0,
            "uploads_cancelled": 0,
            "access_denied": 0,
            "bytes_completed": 0,
        }

    @property
    def name(self) -> str:
        return "UploadOrchestrator"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def config(self) -> UploadConfig:
        return self._config

    async def start(self) -> None:
        if self._running:
            return

        self._running = True
        self._start_time = time.time()
        logger.info(f"Upload orchestrator started (max merge size {self._config.max_merge_size} bytes)")

    async def stop(self) -> None:
        if not self._running:
            return

        if self._completing:
            logger.warning(f"Stopping with {len(self._completing)} completion(s) in flight")

        self._running = False
        logger.info("Upload orchestrator stopped")

    async def configure(self, config: Dict[str, Any]) -> None:
        values = {**asdict(self._config), **config}
        new_config = UploadConfig(**values)

        for key in ("max_merge_size", "max_image_size", "max_video_size", "max_chunk_bytes"):
            if getattr(new_config, key) <= 0:
                raise ValueError(f"{key} must be positive")
        if new_config.completed_retention_seconds < 0:
            raise ValueError("completed_retention_seconds must not be negative")

        self._config = new_config
        logger.info("Upload orchestrator configuration updated")

    async def check_health(self) -> Dict[str, Any]:
        sessions = await self._store.list_sessions()
        completed = sum(1 for s in sessions if s.is_complete)

        return {
            'healthy': self._running,
            'status': 'running' if self._running else 'stopped',
            'details': {
                'active_sessions': len(sessions) - completed,
                'completed_sessions': completed,
                'completions_in_flight': len(self._completing),
                'uptime': time.time() - self._start_time if self._start_time else 0,
                'statistics': dict(self._stats),
            }
        }

    def get_statistics(self) -> Dict[str, int]:
        return dict(self._stats)

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
        uploader = self._require_caller(uploader_identity)

        if not file_name or not file_name.strip():
            raise InvalidRequestError("File name must not be empty")
        if not isinstance(total_size, int) or isinstance(total_size, bool) or total_size <= 0:
            raise InvalidRequestError(
                f"Total size must be a positive integer, got {total_size!r}",
                {"total_size": total_size})
        if not isinstance(total_chunks, int) or isinstance(total_chunks, bool) or total_chunks <= 0:
            raise InvalidRequestError(
                f"Total chunks must be a positive integer, got {total_chunks!r}",
                {"total_chunks": total_chunks})
        if total_chunks > total_size:
            raise InvalidRequestError(
                f"Total chunks ({total_chunks}) cannot exceed total size ({total_size} bytes)",
                {"total_size": total_size, "total_chunks": total_chunks})

        session = UploadSession.new(
            owner_studio_id=owner_studio_id,
            uploader_identity=uploader,
            file_name=file_name,
            content_type=content_type,
            total_size=total_size,
            total_chunks=total_chunks,
            created_at=self._clock(),
            description=description,
        )
        await self._store.create(session)
        self._stats["sessions_initiated"] += 1

        logger.info(f"Initiated upload session {session.session_id} for '{file_name}' "
                    f"({total_size} bytes in {total_chunks} chunks) by {uploader}")

        descriptor = project(session)
        await self._publish(UploadEvents.INITIATED, {
            **descriptor.to_dict(),
            "owner_studio_id": owner_studio_id,
            "content_type": content_type,
        })
        return descriptor

    async def upload_chunk(
        self,
        session_id: str,
        chunk_index: int,
        chunk_bytes: bytes,
        caller_identity: str
    ) -> SessionDescriptor:
        caller = self._require_caller(caller_identity)
        session = await self._require_session(session_id)
        self._authorize(session, caller, "upload_chunk")

        if not 0 <= chunk_index < session.total_chunks:
            raise InvalidChunkError(
                f"Invalid chunk index {chunk_index}. Must be between 0 and {session.total_chunks - 1}",
                {"session_id": session_id, "chunk_index": chunk_index,
                 "total_chunks": session.total_chunks})
        if not chunk_bytes:
            raise InvalidChunkError(
                "Chunk data cannot be empty",
                {"session_id": session_id, "chunk_index": chunk_index})

        self._check_content_limit(session)

        async with self._store.lock(session_id):
            session = await self._require_session(session_id)

            if session.has_chunk(chunk_index):
                self._stats["duplicate_chunks"] += 1
                logger.warning(f"Chunk {chunk_index} already uploaded for session {session_id}, ignoring")
                descriptor = project(session)
                duplicate = True
            else:
                buffered = session.buffered_bytes
                if buffered + len(chunk_bytes) > session.total_size:
                    raise InvalidChunkError(
                        f"Chunk {chunk_index} would exceed declared file size: "
                        f"{buffered} + {len(chunk_bytes)} > {session.total_size}",
                        {"session_id": session_id, "chunk_index": chunk_index,
                         "buffered_bytes": buffered, "total_size": session.total_size})

                session.store_chunk(chunk_index, chunk_bytes)
                session.touch(self._clock())
                await self._save(session)
                self._stats["chunks_received"] += 1
                descriptor = project(session)
                duplicate = False

        if duplicate:
            await self._publish(UploadEvents.CHUNK_DUPLICATE, {
                "session_id": session_id, "chunk_index": chunk_index,
            }, EventPriority.LOW)
        else:
            logger.debug(f"Stored chunk {chunk_index} ({len(chunk_bytes)} bytes) for session {session_id}, "
                         f"progress {descriptor.uploaded_chunks}/{descriptor.total_chunks}")
            await self._publish(UploadEvents.CHUNK_RECEIVED, {
                **descriptor.to_dict(), "chunk_index": chunk_index,
            })

        return descriptor

    async def complete(self, session_id: str, caller_identity: str) -> AssetDescriptor:
        caller = self._require_caller(caller_identity)
        session = await self._require_session(session_id)
        self._authorize(session, caller, "complete")

        if session.is_complete:
            raise self._already_completed(session)
        if session_id in self._completing:
            raise CompletionInProgressError(
                f"Upload session {session_id} is already being completed",
                {"session_id": session_id})

        self._completing.add(session_id)
        try:
            async with self._store.lock(session_id):
                session = await self._require_session(session_id)
                if session.is_complete:
                    raise self._already_completed(session)
                if not session.has_all_chunks:
                    raise IncompleteUploadError(session_id, session.uploaded_chunks, session.total_chunks)

                self._check_merge_size(session)
                payload = self._merge(session)
                asset = AssetUpload(
                    data=payload,
                    file_name=session.file_name,
                    content_type=session.content_type,
                    size=session.total_size,
                    uploader_identity=session.uploader_identity,
                    owner_studio_id=session.owner_studio_id,
                    description=session.description,
                )

            logger.info(f"Merged {session.total_chunks} chunks for session {session_id} "
                        f"({len(payload)} bytes), storing asset")

            try:
                descriptor = await self._assets.upload(asset)
            except Exception as e:
                self._stats["uploads_failed"] += 1
                logger.error(f"Asset store rejected session {session_id}: {e}")
                await self._publish(UploadEvents.FAILED, {
                    "session_id": session_id, "error": str(e),
                }, EventPriority.HIGH)
                raise UploadFailedError(
                    f"Failed to store assembled file for session {session_id}: {e}",
                    {"session_id": session_id}) from e

            async with self._store.lock(session_id):
                current = await self._store.get(session_id)
                if current is None:
                    logger.warning(f"Session {session_id} was cancelled while its asset was being stored; "
                                   f"asset {descriptor.asset_id} is kept")
                else:
                    current.mark_completed(self._clock())
                    await self._save(current)
                    self._expiry.schedule(session_id, self._config.completed_retention_seconds)
        finally:
            self._completing.discard(session_id)

        self._stats["uploads_completed"] += 1
        self._stats["bytes_completed"] += descriptor.size
        logger.info(f"Completed upload session {session_id} as asset {descriptor.asset_id}")

        await self._publish(UploadEvents.COMPLETED, {
            "session_id": session_id, "asset": descriptor.to_dict(),
        }, EventPriority.HIGH)
        return descriptor

    async def get_status(self, session_id: str, caller_identity: str) -> Optional[SessionDescriptor]:
        caller = self._require_caller(caller_identity)
        session = await self._store.get(session_id)
        if session is None:
            return None

        self._authorize(session, caller, "get_status")
        return project(session)

    async def cancel(self, session_id: str, caller_identity: str) -> None:
        caller = self._require_caller(caller_identity)
        session = await self._require_session(session_id)
        self._authorize(session, caller, "cancel")

        async with self._store.lock(session_id):
            session = await self._require_session(session_id)
            self._expiry.unschedule(session_id)
            await self._store.delete(session_id)

        self._stats["uploads_cancelled"] += 1

        logger.info(f"Cancelled upload session {session_id} "
                    f"({session.uploaded_chunks}/{session.total_chunks} chunks received)")
        await self._publish(UploadEvents.CANCELLED, {"session_id": session_id})

    def _require_caller(self, caller_identity: Optional[str]) -> str:
        if caller_identity is None or not str(caller_identity).strip():
            raise InvalidCallerError("Caller identity is required")
        return caller_identity

    async def _require_session(self, session_id: str) -> UploadSession:
        session = await self._store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def _save(self, session: UploadSession) -> None:
        try:
            await self._store.update(session)
        except (KeyError, FileNotFoundError) as e:
            raise SessionNotFoundError(session.session_id) from e

    def _authorize(self, session: UploadSession, caller: str, operation: str) -> None:
        if caller == session.uploader_identity:
            return

        self._stats["access_denied"] += 1
        audit_access_denied(operation, session.session_id, caller, session.uploader_identity)
        raise UnauthorizedError(
            f"Caller is not allowed to {operation.replace('_', ' ')} upload session {session.session_id}",
            {"session_id": session.session_id, "operation": operation})

    @staticmethod
    def _already_completed(session: UploadSession) -> AlreadyCompletedError:
        return AlreadyCompletedError(
            f"Upload session {session.session_id} has already been completed",
            {"session_id": session.session_id})

    def _content_limit(self, content_type: str) -> int:
        if content_type.lower().startswith("image/"):
            return self._config.max_image_size
        return self._config.max_video_size

    def _check_content_limit(self, session: UploadSession) -> None:
        limit = self._content_limit(session.content_type)
        if session.total_size > limit:
            raise SizeExceededError(
                session.total_size, limit,
                f"File size ({session.total_size} bytes) exceeds maximum allowed for "
                f"{session.content_type} ({limit} bytes)")

    def _check_merge_size(self, session: UploadSession) -> None:
        if session.total_size > self._config.max_merge_size:
            raise SizeExceededError(session.total_size, self._config.max_merge_size)
        self._check_content_limit(session)

    @staticmethod
    def _merge(session: UploadSession) -> bytes:
        """
        Concatenate chunks in logical index order into a buffer of exactly
        ``total_size`` bytes.

        Raises:
            CorruptedUploadError: A chunk overflows the remaining space, or the
                chunks do not fill the buffer exactly.
        """
        buffer = bytearray(session.total_size)
        offset = 0

        for index, data in session.iter_chunks():
            if data is None:
                raise IncompleteUploadError(session.session_id, session.uploaded_chunks, session.total_chunks)

            end = offset + len(data)
            if end > session.total_size:
                raise CorruptedUploadError(
                    f"Chunk {index} overflows declared size: offset {offset} + "
                    f"{len(data)} bytes > {session.total_size}",
                    {"session_id": session.session_id, "chunk_index": index,
                     "offset": offset, "total_size": session.total_size})

            buffer[offset:end] = data
            offset = end

        if offset != session.total_size:
            raise CorruptedUploadError(
                f"Merged size {offset} does not match declared size {session.total_size}",
                {"session_id": session.session_id, "merged_size": offset,
                 "total_size": session.total_size})

        return bytes(buffer)

    async def _publish(self, name: str, data: Dict[str, Any],
                       priority: EventPriority = EventPriority.NORMAL) -> None:
        if self._event_bus is None:
            return

        try:
            await self._event_bus.publish(name, data, priority)
        except Exception as e:
            logger.warning(f"Could not publish {name}: {e}")
