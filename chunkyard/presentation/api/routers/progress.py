"""
WebSocket progress stream for upload sessions.

A client connects with the identity that initiated the upload and then
receives every event the orchestrator publishes for that session until
the session reaches a terminal state or the client disconnects.
"""

import asyncio
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from loguru import logger

from ....application.container import Container
from ....core.domain.errors import UploadError
from ....core.domain.events import Event, UploadEvents
from ....core.interfaces.messaging import IEventBus
from ....core.interfaces.upload import IUploadOrchestrator
from ..dependencies import get_websocket_container

router = APIRouter()

TERMINAL_EVENTS = frozenset({
    UploadEvents.COMPLETED,
    UploadEvents.CANCELLED,
    UploadEvents.EXPIRED,
})


def _message(event: Event) -> Dict[str, Any]:
    return {
        "event": event.name,
        "data": event.data,
        "timestamp": event.timestamp,
    }


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass


@router.websocket("/uploads/{session_id}")
async def upload_progress(
    websocket: WebSocket,
    session_id: str,
    identity: Optional[str] = Query(None),
    container: Container = Depends(get_websocket_container)
) -> None:
    """Stream progress events for one upload session."""
    try:
        orchestrator = container.resolve(IUploadOrchestrator)  # type: ignore[type-abstract]
        event_bus = container.resolve(IEventBus)  # type: ignore[type-abstract]
    except Exception as e:
        logger.error(f"Failed to resolve services: {e}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason="Service unavailable")
        return

    try:
        descriptor = await orchestrator.get_status(session_id, identity)  # type: ignore[arg-type]
    except UploadError as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    if descriptor is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=f"Upload session {session_id} not found")
        return

    await websocket.accept()

    queue: "asyncio.Queue[Event]" = asyncio.Queue()

    def on_event(event: Event) -> None:
        if event.session_id == session_id:
            queue.put_nowait(event)

    subscription_id = await event_bus.subscribe("upload.*", on_event)
    disconnect = asyncio.create_task(_wait_for_disconnect(websocket))
    logger.debug(f"Progress stream opened for session {session_id}")

    try:
        await websocket.send_json({"event": "upload.snapshot", "data": descriptor.to_dict()})

        while True:
            next_event = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({next_event, disconnect}, return_when=asyncio.FIRST_COMPLETED)

            if disconnect in done:
                next_event.cancel()
                break

            event = next_event.result()
            await websocket.send_json(_message(event))

            if event.name in TERMINAL_EVENTS:
                await websocket.close()
                break

    except WebSocketDisconnect:
        pass
    finally:
        disconnect.cancel()
        await asyncio.gather(disconnect, return_exceptions=True)
        await event_bus.unsubscribe(subscription_id)
        logger.debug(f"Progress stream closed for session {session_id}")
