"""
In-memory session store.
"""

import asyncio
from typing import Dict, List, Optional

from loguru import logger

from ...core.domain.sessions import UploadSession
from ...core.interfaces.upload import ISessionStore


class InMemorySessionStore(ISessionStore):
    """
    Process-local session store.

    Sessions are held by reference, so callers mutate them only while
    holding the session's lock and then call ``update``.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, UploadSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def create(self, session: UploadSession) -> None:
        if session.session_id in self._sessions:
            raise ValueError(f"Upload session {session.session_id} already exists")

        self._sessions[session.session_id] = session
        self._locks.setdefault(session.session_id, asyncio.Lock())
        logger.debug(f"Stored session {session.session_id}")

    async def get(self, session_id: str) -> Optional[UploadSession]:
        return self._sessions.get(session_id)

    async def update(self, session: UploadSession) -> None:
        if session.session_id not in self._sessions:
            raise KeyError(f"Upload session {session.session_id} does not exist")

        self._sessions[session.session_id] = session

    async def delete(self, session_id: str) -> bool:
        self._locks.pop(session_id, None)
        return self._sessions.pop(session_id, None) is not None

    async def list_sessions(self) -> List[UploadSession]:
        return list(self._sessions.values())

    def lock(self, session_id: str) -> asyncio.Lock:
        if session_id not in self._sessions:
            # unknown ids get a throwaway lock so nothing accumulates
            return self._locks.get(session_id) or asyncio.Lock()
        return self._locks.setdefault(session_id, asyncio.Lock())

    def __len__(self) -> int:
        return len(self._sessions)
