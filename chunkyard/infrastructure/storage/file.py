"""
Durable file-backed session store.

Layout under the store directory::

    <session_id>/session.json      metadata (no chunk bytes)
    <session_id>/chunk_<index>.part

Chunk files are write-once. Metadata is written to a temporary file and
atomically replaced so a crash never leaves a half-written record.
"""

import asyncio
import json
import shutil
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import aiofiles
import aiofiles.os
from loguru import logger

from ...core.domain.sessions import UploadSession
from ...core.interfaces.upload import ISessionStore

METADATA_FILE = "session.json"
CHUNK_SUFFIX = ".part"


class FileSessionStore(ISessionStore):
    """
    Session store that survives process restarts.

    Loaded sessions are cached; the per-session locks live in memory only.
    """

    def __init__(self, directory: str) -> None:
        self._directory = Path(directory)
        self._cache: Dict[str, UploadSession] = {}
        self._persisted: Dict[str, Set[int]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._load_locks: Dict[str, asyncio.Lock] = {}
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def _session_dir(self, session_id: str) -> Path:
        # session ids are generated hex strings; reject anything path-like
        if session_id in ("", ".", "..") or Path(session_id).name != session_id or "\\" in session_id:
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self._directory / session_id

    @staticmethod
    def _chunk_path(session_dir: Path, index: int) -> Path:
        return session_dir / f"chunk_{index}{CHUNK_SUFFIX}"

    async def create(self, session: UploadSession) -> None:
        session_dir = self._session_dir(session.session_id)
        if session.session_id in self._cache or await aiofiles.os.path.exists(session_dir):
            raise ValueError(f"Upload session {session.session_id} already exists")

        await aiofiles.os.makedirs(session_dir, exist_ok=True)
        self._cache[session.session_id] = session
        self._persisted[session.session_id] = set()
        self._locks.setdefault(session.session_id, asyncio.Lock())

        await self._write_chunks(session)
        await self._write_metadata(session)
        logger.debug(f"Persisted new session {session.session_id} to {session_dir}")

    async def get(self, session_id: str) -> Optional[UploadSession]:
        if session_id in self._cache:
            return self._cache[session_id]

        try:
            session_dir = self._session_dir(session_id)
        except ValueError:
            return None

        # one cold load per id; the cached object is never replaced
        async with self._load_lock(session_id):
            cached = self._cache.get(session_id)
            if cached is not None:
                return cached

            loaded = await self._load(session_dir)
            if loaded is None:
                self._load_locks.pop(session_id, None)
                return None

            chunks, session = loaded
            self._cache[session_id] = session
            self._persisted[session_id] = chunks
            return session

    async def update(self, session: UploadSession) -> None:
        session_dir = self._session_dir(session.session_id)
        if session.session_id not in self._cache and not await aiofiles.os.path.exists(session_dir):
            raise KeyError(f"Upload session {session.session_id} does not exist")

        self._cache[session.session_id] = session
        await self._write_chunks(session)
        await self._write_metadata(session)

    async def delete(self, session_id: str) -> bool:
        try:
            session_dir = self._session_dir(session_id)
        except ValueError:
            return False

        async with self._load_lock(session_id):
            existed = self._cache.pop(session_id, None) is not None
            self._persisted.pop(session_id, None)
            self._locks.pop(session_id, None)

            if await aiofiles.os.path.exists(session_dir):
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, partial(shutil.rmtree, session_dir, ignore_errors=True))
                existed = True

        self._load_locks.pop(session_id, None)
        return existed

    async def list_sessions(self) -> List[UploadSession]:
        sessions: List[UploadSession] = []
        for entry in await aiofiles.os.listdir(self._directory):
            session = await self.get(entry)
            if session is not None:
                sessions.append(session)
        return sessions

    def lock(self, session_id: str) -> asyncio.Lock:
        if session_id not in self._cache:
            return self._locks.get(session_id) or asyncio.Lock()
        return self._locks.setdefault(session_id, asyncio.Lock())

    async def _write_metadata(self, session: UploadSession) -> None:
        session_dir = self._session_dir(session.session_id)
        target = session_dir / METADATA_FILE
        tmp = session_dir / f"{METADATA_FILE}.tmp"

        async with aiofiles.open(tmp, 'w', encoding='utf-8') as f:
            await f.write(json.dumps(session.to_metadata()))
        await aiofiles.os.replace(tmp, target)

    async def _write_chunks(self, session: UploadSession) -> None:
        session_dir = self._session_dir(session.session_id)
        persisted = self._persisted.setdefault(session.session_id, set())

        for index, data in session.iter_chunks():
            if data is None or index in persisted:
                continue

            target = self._chunk_path(session_dir, index)
            tmp = target.with_suffix(".tmp")
            async with aiofiles.open(tmp, 'wb') as f:
                await f.write(data)
            await aiofiles.os.replace(tmp, target)
            persisted.add(index)

    def _load_lock(self, session_id: str) -> asyncio.Lock:
        return self._load_locks.setdefault(session_id, asyncio.Lock())

    async def _load(self, session_dir: Path) -> Optional[Tuple[Set[int], UploadSession]]:
        metadata_path = session_dir / METADATA_FILE
        if not await aiofiles.os.path.exists(metadata_path):
            return None

        try:
            async with aiofiles.open(metadata_path, 'r', encoding='utf-8') as f:
                metadata = json.loads(await f.read())
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Unreadable session metadata at {metadata_path}: {e}")
            return None

        chunks: Dict[int, bytes] = {}
        for index in range(metadata["total_chunks"]):
            chunk_path = self._chunk_path(session_dir, index)
            if await aiofiles.os.path.exists(chunk_path):
                async with aiofiles.open(chunk_path, 'rb') as f:
                    chunks[index] = await f.read()

        session = UploadSession.from_metadata(metadata, chunks)
        logger.debug(f"Loaded session {session.session_id} from disk "
                     f"({len(chunks)}/{session.total_chunks} chunks)")
        return set(chunks), session
