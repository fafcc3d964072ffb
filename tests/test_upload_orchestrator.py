"""
Tests for the upload orchestrator.

Covers the chunked upload protocol end to end: ordered merge, idempotent
chunks, ownership, completion guarantees, size limits, and concurrency
on both the in-memory and the file-backed store.
"""

import asyncio
import random
from datetime import datetime, timezone
from typing import List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from chunkyard.core.domain.errors import (
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
from chunkyard.core.domain.events import UploadEvents
from chunkyard.core.domain.sessions import AssetDescriptor, AssetUpload, SessionDescriptor, UploadSession
from chunkyard.core.interfaces.messaging import IEventBus
from chunkyard.core.interfaces.upload import IAssetStore, IExpiryScheduler
from chunkyard.infrastructure.config.models import UploadConfig
from chunkyard.infrastructure.services.upload.orchestrator import UploadOrchestrator
from chunkyard.infrastructure.storage.file import FileSessionStore
from chunkyard.infrastructure.storage.memory import InMemorySessionStore


class RecordingAssetStore(IAssetStore):
    """Asset store that keeps every payload it accepts and can fail on demand."""

    def __init__(self, delay: float = 0.0) -> None:
        self.uploads: List[AssetUpload] = []
        self.calls = 0
        self.fail_next = False
        self.delay = delay
        self.gate: Optional[asyncio.Event] = None

    async def upload(self, asset: AssetUpload) -> AssetDescriptor:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_next:
            self.fail_next = False
            raise ConnectionError("asset store unavailable")

        self.uploads.append(asset)
        return AssetDescriptor(
            asset_id=f"asset-{len(self.uploads)}",
            file_name=asset.file_name,
            content_type=asset.content_type,
            size=asset.size,
            checksum="0" * 64,
            location=f"memory://asset-{len(self.uploads)}",
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )


class SlowSessionStore(InMemorySessionStore):
    """In-memory store that yields to the event loop on every call."""

    async def get(self, session_id: str) -> Optional[UploadSession]:
        await asyncio.sleep(0.001)
        return await super().get(session_id)

    async def update(self, session: UploadSession) -> None:
        await asyncio.sleep(0.001)
        await super().update(session)


class TestUploadOrchestrator:
    """Protocol behavior of the orchestrator."""

    @pytest.fixture
    def store(self) -> InMemorySessionStore:
        return InMemorySessionStore()

    @pytest.fixture
    def assets(self) -> RecordingAssetStore:
        return RecordingAssetStore()

    @pytest.fixture
    def expiry(self) -> Mock:
        return Mock(spec=IExpiryScheduler)

    @pytest.fixture
    def event_bus(self) -> Mock:
        bus = Mock(spec=IEventBus)
        bus.publish = AsyncMock(return_value="event-id")
        return bus

    @pytest.fixture
    def orchestrator(self, store, assets, expiry, event_bus, clock) -> UploadOrchestrator:
        return UploadOrchestrator(
            session_store=store,
            asset_store=assets,
            expiry_scheduler=expiry,
            config=UploadConfig(),
            event_bus=event_bus,
            clock=clock,
        )

    async def _initiate(self, orchestrator: UploadOrchestrator, total_size: int = 15,
                        total_chunks: int = 3, content_type: str = "video/mp4") -> str:
        descriptor = await orchestrator.initiate(
            owner_studio_id="studio-1",
            uploader_identity="alice",
            file_name="clip.mp4",
            content_type=content_type,
            total_size=total_size,
            total_chunks=total_chunks,
        )
        return descriptor.session_id

    async def test_initiate_returns_empty_progress(self, orchestrator, store, event_bus, clock) -> None:
        descriptor = await orchestrator.initiate(
            owner_studio_id="studio-1", uploader_identity="alice", file_name="clip.mp4",
            content_type="video/mp4", total_size=15, total_chunks=3, description="teaser",
        )

        assert descriptor.uploaded_chunks == 0
        assert descriptor.progress == 0.0
        assert descriptor.created_at == clock.now
        session = await store.get(descriptor.session_id)
        assert session is not None
        assert session.uploader_identity == "alice"
        assert session.description == "teaser"
        assert event_bus.publish.await_args.args[0] == UploadEvents.INITIATED

    @pytest.mark.parametrize("identity", [None, "", "   "])
    async def test_initiate_requires_caller(self, orchestrator, identity) -> None:
        with pytest.raises(InvalidCallerError):
            await orchestrator.initiate("studio-1", identity, "clip.mp4", "video/mp4", 15, 3)

    @pytest.mark.parametrize("total_size,total_chunks", [(0, 1), (10, 0), (-5, 1), (3, 4)])
    async def test_initiate_rejects_bad_sizes(self, orchestrator, total_size, total_chunks) -> None:
        with pytest.raises(InvalidRequestError):
            await orchestrator.initiate("studio-1", "alice", "clip.mp4", "video/mp4", total_size, total_chunks)

    async def test_initiate_rejects_blank_file_name(self, orchestrator) -> None:
        with pytest.raises(InvalidRequestError):
            await orchestrator.initiate("studio-1", "alice", " ", "video/mp4", 15, 3)

    async def test_merge_follows_logical_order(self, orchestrator, assets) -> None:
        """Chunks uploaded as 1, 0, 2 merge as chunk0 + chunk1 + chunk2."""
        session_id = await self._initiate(orchestrator)

        await orchestrator.upload_chunk(session_id, 1, b"BBBBB", "alice")
        await orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")
        await orchestrator.upload_chunk(session_id, 2, b"CCCCC", "alice")
        asset = await orchestrator.complete(session_id, "alice")

        assert assets.uploads[0].data == b"AAAAABBBBBCCCCC"
        assert asset.asset_id == "asset-1"
        assert asset.size == 15

    async def test_duplicate_chunk_keeps_original_bytes(self, orchestrator, store, event_bus) -> None:
        """Re-uploading an index with different bytes is a no-op."""
        session_id = await self._initiate(orchestrator)

        first = await orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")
        second = await orchestrator.upload_chunk(session_id, 0, b"ZZZZZ", "alice")

        assert first == second
        assert second.uploaded_chunks == 1
        session = await store.get(session_id)
        assert session.chunk(0) == b"AAAAA"
        assert event_bus.publish.await_args.args[0] == UploadEvents.CHUNK_DUPLICATE

    async def test_upload_chunk_publishes_progress(self, orchestrator, event_bus) -> None:
        session_id = await self._initiate(orchestrator)

        await orchestrator.upload_chunk(session_id, 2, b"CCCCC", "alice")

        name, data = event_bus.publish.await_args.args[:2]
        assert name == UploadEvents.CHUNK_RECEIVED
        assert data["session_id"] == session_id
        assert data["chunk_index"] == 2
        assert data["uploaded_chunks"] == 1

    async def test_upload_chunk_touches_activity(self, orchestrator, store, clock) -> None:
        session_id = await self._initiate(orchestrator)
        later = clock.advance(60)

        await orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")

        assert (await store.get(session_id)).last_activity_at == later

    async def test_incomplete_then_resume(self, orchestrator, store, assets) -> None:
        """Completing early fails but leaves the session usable."""
        session_id = await self._initiate(orchestrator)
        await orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")
        await orchestrator.upload_chunk(session_id, 1, b"BBBBB", "alice")

        with pytest.raises(IncompleteUploadError) as exc_info:
            await orchestrator.complete(session_id, "alice")
        assert exc_info.value.received == 2
        assert exc_info.value.expected == 3
        assert assets.calls == 0

        await orchestrator.upload_chunk(session_id, 2, b"CCCCC", "alice")
        await orchestrator.complete(session_id, "alice")

        assert (await store.get(session_id)).is_complete

    async def test_retry_after_asset_store_failure(self, orchestrator, store, assets, expiry, event_bus) -> None:
        """A failed hand-off leaves the session untouched and can be retried."""
        session_id = await self._initiate(orchestrator)
        for index, data in enumerate([b"AAAAA", b"BBBBB", b"CCCCC"]):
            await orchestrator.upload_chunk(session_id, index, data, "alice")

        assets.fail_next = True
        with pytest.raises(UploadFailedError) as exc_info:
            await orchestrator.complete(session_id, "alice")

        assert isinstance(exc_info.value.__cause__, ConnectionError)
        session = await store.get(session_id)
        assert session.completed_at is None
        assert session.uploaded_chunks == 3
        expiry.schedule.assert_not_called()
        assert event_bus.publish.await_args.args[0] == UploadEvents.FAILED

        asset = await orchestrator.complete(session_id, "alice")

        assert asset.asset_id == "asset-1"
        assert len(assets.uploads) == 1
        assert (await store.get(session_id)).is_complete

    async def test_no_double_completion(self, orchestrator, assets, expiry) -> None:
        session_id = await self._initiate(orchestrator, total_size=5, total_chunks=1)
        await orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")

        await orchestrator.complete(session_id, "alice")
        with pytest.raises(AlreadyCompletedError):
            await orchestrator.complete(session_id, "alice")

        assert assets.calls == 1
        expiry.schedule.assert_called_once_with(session_id, 300.0)

    async def test_concurrent_completion_stores_one_asset(self, store, expiry, clock) -> None:
        """Two simultaneous completions produce exactly one asset store call."""
        assets = RecordingAssetStore(delay=0.05)
        orchestrator = UploadOrchestrator(store, assets, expiry, clock=clock)
        session_id = await self._initiate(orchestrator, total_size=5, total_chunks=1)
        await orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")

        results = await asyncio.gather(
            orchestrator.complete(session_id, "alice"),
            orchestrator.complete(session_id, "alice"),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, AssetDescriptor)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], CompletionInProgressError)
        assert isinstance(failures[0], AlreadyCompletedError)
        assert assets.calls == 1

    async def test_chunk_after_completion_is_noop(self, orchestrator, store) -> None:
        session_id = await self._initiate(orchestrator, total_size=5, total_chunks=1)
        await orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")
        await orchestrator.complete(session_id, "alice")

        descriptor = await orchestrator.upload_chunk(session_id, 0, b"ZZZZZ", "alice")

        assert descriptor.completed_at is not None
        assert (await store.get(session_id)).chunk(0) == b"AAAAA"

    async def test_unauthorized_caller_changes_nothing(self, orchestrator, store, assets, expiry, log_records) -> None:
        """Every operation rejects a different identity without touching state."""
        session_id = await self._initiate(orchestrator)
        await orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")

        with pytest.raises(UnauthorizedError):
            await orchestrator.upload_chunk(session_id, 1, b"BBBBB", "mallory")
        with pytest.raises(UnauthorizedError):
            await orchestrator.complete(session_id, "mallory")
        with pytest.raises(UnauthorizedError):
            await orchestrator.get_status(session_id, "mallory")
        with pytest.raises(UnauthorizedError):
            await orchestrator.cancel(session_id, "mallory")

        session = await store.get(session_id)
        assert session is not None
        assert session.received_indices == frozenset({0})
        assert session.completed_at is None
        assert assets.calls == 0
        expiry.unschedule.assert_not_called()

        audits = [r for r in log_records if r["extra"].get("security_event")]
        assert [r["extra"]["operation"] for r in audits] == ["upload_chunk", "complete", "get_status", "cancel"]
        assert all(r["extra"]["caller"] == "mallory" for r in audits)
        assert all(r["extra"]["owner"] == "alice" for r in audits)

    @pytest.mark.parametrize("identity", [None, ""])
    async def test_operations_require_caller(self, orchestrator, identity) -> None:
        session_id = await self._initiate(orchestrator)

        with pytest.raises(InvalidCallerError):
            await orchestrator.upload_chunk(session_id, 0, b"AAAAA", identity)
        with pytest.raises(InvalidCallerError):
            await orchestrator.complete(session_id, identity)
        with pytest.raises(InvalidCallerError):
            await orchestrator.get_status(session_id, identity)
        with pytest.raises(InvalidCallerError):
            await orchestrator.cancel(session_id, identity)

    async def test_unknown_session(self, orchestrator) -> None:
        with pytest.raises(SessionNotFoundError):
            await orchestrator.upload_chunk("missing", 0, b"x", "alice")
        with pytest.raises(SessionNotFoundError):
            await orchestrator.complete("missing", "alice")
        with pytest.raises(SessionNotFoundError):
            await orchestrator.cancel("missing", "alice")
        assert await orchestrator.get_status("missing", "alice") is None

    @pytest.mark.parametrize("index", [-1, 3, 100])
    async def test_chunk_index_out_of_range(self, orchestrator, index) -> None:
        session_id = await self._initiate(orchestrator)

        with pytest.raises(InvalidChunkError):
            await orchestrator.upload_chunk(session_id, index, b"AAAAA", "alice")

    async def test_empty_chunk_rejected(self, orchestrator) -> None:
        session_id = await self._initiate(orchestrator)

        with pytest.raises(InvalidChunkError):
            await orchestrator.upload_chunk(session_id, 0, b"", "alice")

    async def test_chunk_overflowing_declared_size_rejected(self, orchestrator, store) -> None:
        """Buffered bytes may never exceed the declared total size."""
        session_id = await self._initiate(orchestrator)
        await orchestrator.upload_chunk(session_id, 0, b"AAAAAAAAAA", "alice")

        with pytest.raises(InvalidChunkError):
            await orchestrator.upload_chunk(session_id, 1, b"BBBBBB", "alice")

        assert (await store.get(session_id)).received_indices == frozenset({0})

    async def test_uneven_chunks_are_accepted(self, orchestrator, assets) -> None:
        session_id = await self._initiate(orchestrator)

        await orchestrator.upload_chunk(session_id, 0, b"A", "alice")
        await orchestrator.upload_chunk(session_id, 1, b"BBBBBBBBB", "alice")
        await orchestrator.upload_chunk(session_id, 2, b"CCCCC", "alice")
        await orchestrator.complete(session_id, "alice")

        assert assets.uploads[0].data == b"ABBBBBBBBBCCCCC"

    async def test_short_payload_is_corrupted(self, orchestrator, store, assets) -> None:
        """Chunks that do not fill the declared size fail the merge."""
        session_id = await self._initiate(orchestrator, total_size=10, total_chunks=2)
        await orchestrator.upload_chunk(session_id, 0, b"AAA", "alice")
        await orchestrator.upload_chunk(session_id, 1, b"BBB", "alice")

        with pytest.raises(CorruptedUploadError):
            await orchestrator.complete(session_id, "alice")

        assert assets.calls == 0
        assert (await store.get(session_id)).completed_at is None

    def test_merge_rejects_overflowing_chunk(self) -> None:
        session = UploadSession.new("studio-1", "alice", "f.bin", "application/octet-stream",
                                    total_size=4, total_chunks=2,
                                    created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        session.store_chunk(0, b"AAA")
        session.store_chunk(1, b"BBB")

        with pytest.raises(CorruptedUploadError) as exc_info:
            UploadOrchestrator._merge(session)
        assert exc_info.value.details["chunk_index"] == 1

    async def test_merge_size_limit_checked_before_merge(self, store, assets, expiry, clock) -> None:
        orchestrator = UploadOrchestrator(store, assets, expiry, UploadConfig(max_merge_size=10), clock=clock)
        session_id = await self._initiate(orchestrator, total_size=15, total_chunks=3)
        for index in range(3):
            await orchestrator.upload_chunk(session_id, index, b"xxxxx", "alice")

        with pytest.raises(SizeExceededError) as exc_info:
            await orchestrator.complete(session_id, "alice")

        assert exc_info.value.limit == 10
        assert assets.calls == 0

    async def test_image_size_limit(self, store, assets, expiry, clock) -> None:
        """Images are held to their own, smaller limit."""
        orchestrator = UploadOrchestrator(store, assets, expiry, UploadConfig(max_image_size=10), clock=clock)
        image_id = await self._initiate(orchestrator, total_size=15, content_type="image/png")
        video_id = await self._initiate(orchestrator, total_size=15, content_type="video/mp4")

        with pytest.raises(SizeExceededError):
            await orchestrator.upload_chunk(image_id, 0, b"xxxxx", "alice")

        descriptor = await orchestrator.upload_chunk(video_id, 0, b"xxxxx", "alice")
        assert descriptor.uploaded_chunks == 1

    async def test_cancel_deletes_session(self, orchestrator, store, expiry, event_bus) -> None:
        session_id = await self._initiate(orchestrator)
        await orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")

        await orchestrator.cancel(session_id, "alice")

        assert await store.get(session_id) is None
        assert await orchestrator.get_status(session_id, "alice") is None
        expiry.unschedule.assert_called_once_with(session_id)
        assert event_bus.publish.await_args.args[0] == UploadEvents.CANCELLED

    async def test_cancel_during_asset_upload_still_returns_asset(self, store, expiry, clock) -> None:
        assets = RecordingAssetStore()
        assets.gate = asyncio.Event()
        orchestrator = UploadOrchestrator(store, assets, expiry, clock=clock)
        session_id = await self._initiate(orchestrator, total_size=5, total_chunks=1)
        await orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")

        completion = asyncio.create_task(orchestrator.complete(session_id, "alice"))
        while assets.calls == 0:
            await asyncio.sleep(0.001)
        await orchestrator.cancel(session_id, "alice")
        assets.gate.set()

        asset = await completion
        assert asset.asset_id == "asset-1"
        assert await store.get(session_id) is None
        expiry.schedule.assert_not_called()

    async def test_event_bus_failure_does_not_fail_operation(self, orchestrator, event_bus) -> None:
        event_bus.publish.side_effect = RuntimeError("Event bus is not running")

        session_id = await self._initiate(orchestrator)
        descriptor = await orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")

        assert descriptor.uploaded_chunks == 1

    async def test_works_without_event_bus(self, store, assets, expiry) -> None:
        orchestrator = UploadOrchestrator(store, assets, expiry)
        session_id = await self._initiate(orchestrator, total_size=5, total_chunks=1)

        await orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")
        asset = await orchestrator.complete(session_id, "alice")

        assert asset.size == 5

    async def test_lifecycle_and_health(self, orchestrator) -> None:
        await orchestrator.start()
        session_id = await self._initiate(orchestrator, total_size=5, total_chunks=1)
        await orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")

        health = await orchestrator.check_health()
        assert health["healthy"] is True
        assert health["details"]["active_sessions"] == 1
        assert health["details"]["statistics"]["chunks_received"] == 1

        await orchestrator.stop()
        assert (await orchestrator.check_health())["healthy"] is False

    async def test_configure_validates(self, orchestrator) -> None:
        await orchestrator.configure({"max_merge_size": 1024})
        assert orchestrator.config.max_merge_size == 1024

        with pytest.raises(ValueError):
            await orchestrator.configure({"max_chunk_bytes": 0})
        assert orchestrator.config.max_chunk_bytes > 0


@pytest.fixture(params=["memory", "file"])
def session_store(request, tmp_path):
    """Both store backends, each yielding to the event loop between calls."""
    if request.param == "file":
        return FileSessionStore(str(tmp_path / "sessions"))
    return SlowSessionStore()


class TestOrchestratorConcurrency:
    """Concurrent uploads against stores that yield between calls."""

    @pytest.fixture
    def assets(self) -> RecordingAssetStore:
        return RecordingAssetStore()

    @pytest.fixture
    def orchestrator(self, session_store, assets, clock) -> UploadOrchestrator:
        return UploadOrchestrator(session_store, assets, Mock(spec=IExpiryScheduler), clock=clock)

    async def test_same_index_first_writer_wins(self, orchestrator) -> None:
        descriptor = await orchestrator.initiate("studio-1", "alice", "f.bin", "video/mp4", 10, 2)
        session_id = descriptor.session_id

        results = await asyncio.gather(
            orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice"),
            orchestrator.upload_chunk(session_id, 0, b"BBBBB", "alice"),
        )

        assert all(r.uploaded_chunks == 1 for r in results)
        status = await orchestrator.get_status(session_id, "alice")
        assert status.uploaded_chunks == 1

    async def test_different_indices_all_land(self, orchestrator) -> None:
        """Parallel uploads of distinct indices never lose a chunk."""
        payload = bytes(range(256)) * 4
        chunks = [payload[i:i + 64] for i in range(0, len(payload), 64)]
        descriptor = await orchestrator.initiate(
            "studio-1", "alice", "f.bin", "video/mp4", len(payload), len(chunks))
        session_id = descriptor.session_id

        await asyncio.gather(*(
            orchestrator.upload_chunk(session_id, index, data, "alice")
            for index, data in enumerate(chunks)
        ))

        status = await orchestrator.get_status(session_id, "alice")
        assert status.uploaded_chunks == len(chunks)
        await orchestrator.complete(session_id, "alice")

    @pytest.mark.parametrize("seed", [1, 7, 42])
    async def test_random_permutation_round_trip(self, orchestrator, assets, seed) -> None:
        """Any split uploaded in any order merges back to the original bytes."""
        rng = random.Random(seed)
        payload = bytes(rng.getrandbits(8) for _ in range(997))
        cuts = sorted(rng.sample(range(1, len(payload)), 6))
        bounds = [0] + cuts + [len(payload)]
        chunks = [payload[a:b] for a, b in zip(bounds, bounds[1:])]

        descriptor = await orchestrator.initiate(
            "studio-1", "alice", "f.bin", "video/mp4", len(payload), len(chunks))

        order = list(range(len(chunks)))
        rng.shuffle(order)
        await asyncio.gather(*(
            orchestrator.upload_chunk(descriptor.session_id, index, chunks[index], "alice")
            for index in order
        ))
        await orchestrator.complete(descriptor.session_id, "alice")

        assert assets.uploads[0].data == payload

    @pytest.mark.parametrize("cancel_first", [False, True])
    async def test_cancel_racing_chunk_upload(self, orchestrator, session_store, cancel_first) -> None:
        """A chunk racing a cancel either lands before it or fails as not found."""
        descriptor = await orchestrator.initiate("studio-1", "alice", "f.bin", "video/mp4", 10, 2)
        session_id = descriptor.session_id

        upload = orchestrator.upload_chunk(session_id, 0, b"AAAAA", "alice")
        cancel = orchestrator.cancel(session_id, "alice")
        calls = [cancel, upload] if cancel_first else [upload, cancel]
        results = await asyncio.gather(*calls, return_exceptions=True)
        cancel_result, upload_result = results if cancel_first else results[::-1]

        assert cancel_result is None
        assert isinstance(upload_result, (SessionDescriptor, SessionNotFoundError)), repr(upload_result)
        assert await session_store.get(session_id) is None

        with pytest.raises(SessionNotFoundError):
            await orchestrator.upload_chunk(session_id, 1, b"BBBBB", "alice")


class TestFileStoreRestart:
    """Orchestrator behavior over a durable store reopened on the same directory."""

    async def test_concurrent_chunks_after_restart_all_land(self, tmp_path, clock) -> None:
        directory = str(tmp_path / "sessions")
        before = UploadOrchestrator(
            FileSessionStore(directory), RecordingAssetStore(), Mock(spec=IExpiryScheduler), clock=clock)
        descriptor = await before.initiate("studio-1", "alice", "f.bin", "video/mp4", 40, 8)
        session_id = descriptor.session_id

        assets = RecordingAssetStore()
        after = UploadOrchestrator(
            FileSessionStore(directory), assets, Mock(spec=IExpiryScheduler), clock=clock)
        await asyncio.gather(*(
            after.upload_chunk(session_id, index, bytes([65 + index]) * 5, "alice")
            for index in range(8)
        ))

        status = await after.get_status(session_id, "alice")
        assert status.uploaded_chunks == 8

        duplicate = await after.upload_chunk(session_id, 3, b"ZZZZZ", "alice")
        assert duplicate.uploaded_chunks == 8

        await after.complete(session_id, "alice")
        assert assets.uploads[0].data == b"AAAAABBBBBCCCCCDDDDDEEEEEFFFFFGGGGGHHHHH"

    async def test_resume_after_restart(self, tmp_path, clock) -> None:
        """Chunks received before a restart are kept; the upload finishes afterwards."""
        directory = str(tmp_path / "sessions")
        before = UploadOrchestrator(
            FileSessionStore(directory), RecordingAssetStore(), Mock(spec=IExpiryScheduler), clock=clock)
        descriptor = await before.initiate("studio-1", "alice", "f.bin", "video/mp4", 10, 2)
        await before.upload_chunk(descriptor.session_id, 0, b"AAAAA", "alice")

        assets = RecordingAssetStore()
        after = UploadOrchestrator(
            FileSessionStore(directory), assets, Mock(spec=IExpiryScheduler), clock=clock)
        assert (await after.get_status(descriptor.session_id, "alice")).uploaded_chunks == 1

        await after.upload_chunk(descriptor.session_id, 1, b"BBBBB", "alice")
        await after.complete(descriptor.session_id, "alice")

        assert assets.uploads[0].data == b"AAAAABBBBB"
