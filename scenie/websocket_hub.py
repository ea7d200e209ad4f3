from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from uuid import UUID

from fastapi import WebSocket, status

from scenie.session import PresentationSession

logger = logging.getLogger(__name__)

SESSION_UPDATED = "session_updated"
SESSION_CLOSED = "session_closed"


def session_update_message(session: PresentationSession) -> dict[str, object]:
    """Small "something changed" notice; clients re-fetch the snapshot over HTTP."""

    return {
        "type": SESSION_UPDATED,
        "session_id": str(session.session_id),
        "scene": session.current_scene,
        "transition": session.scenes.fsm.phase.value,
    }


class SessionWebSocketHub:
    """Fan-out of session change notices to the sockets watching each session."""

    def __init__(self) -> None:
        self._watchers: dict[UUID, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    def watcher_count(self, session_id: UUID) -> int:
        return len(self._watchers.get(session_id, ()))

    async def watch(self, session_id: UUID, websocket: WebSocket) -> None:
        # Registered before the handshake completes so a client never misses a notice.
        async with self._lock:
            self._watchers[session_id].add(websocket)
        await websocket.accept()

    async def unwatch(self, session_id: UUID, websocket: WebSocket) -> None:
        async with self._lock:
            sockets = self._watchers.get(session_id)
            if not sockets:
                return
            sockets.discard(websocket)
            if not sockets:
                self._watchers.pop(session_id, None)

    async def publish(self, session: PresentationSession) -> None:
        await self._send(session.session_id, session_update_message(session))

    async def close_session(self, session_id: UUID) -> None:
        """Tell watchers the session is gone, then hang up on them."""

        await self._send(session_id, {"type": SESSION_CLOSED, "session_id": str(session_id)})
        async with self._lock:
            sockets = self._watchers.pop(session_id, set())
        for ws in sockets:
            try:
                await ws.close(code=status.WS_1000_NORMAL_CLOSURE)
            except RuntimeError as e:
                # Already closed from the client side.
                logger.debug("Closing websocket for session %s: %s", session_id, e)

    async def _send(self, session_id: UUID, message: dict[str, object]) -> None:
        async with self._lock:
            sockets = list(self._watchers.get(session_id, ()))

        stale: list[WebSocket] = []
        for ws in sockets:
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.debug("Dropping websocket for session %s: %s", session_id, e)
                stale.append(ws)

        if stale:
            async with self._lock:
                for ws in stale:
                    self._watchers.get(session_id, set()).discard(ws)


hub = SessionWebSocketHub()
