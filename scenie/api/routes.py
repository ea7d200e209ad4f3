from __future__ import annotations

import logging
from uuid import UUID

import redis
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from scenie.api.deps import get_emit_verbosity, get_redis, get_scheduler, get_session_store
from scenie.api.models import (
    ActionResponse,
    EventListResponse,
    PointerEventRequest,
    SessionCreateRequest,
    SessionListResponse,
    SessionSnapshot,
    StreamEvent,
)
from scenie.assets.singleton import get_document
from scenie.core.timers import Scheduler
from scenie.session import PresentationSession
from scenie.session_store import SessionStore
from scenie.streams import EventStream
from scenie.websocket_hub import hub

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_session(sessions: SessionStore, session_id: UUID) -> PresentationSession:
    try:
        return sessions.require(session_id)
    except KeyError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found") from e


@router.websocket("/ws/sessions/{session_id}")
async def session_updates_ws(websocket: WebSocket, session_id: UUID) -> None:
    await hub.watch(session_id, websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.unwatch(session_id, websocket)
    except Exception:
        await hub.unwatch(session_id, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/sessions", response_model=SessionSnapshot, status_code=status.HTTP_201_CREATED)
async def create_session_route(
    payload: SessionCreateRequest,
    r: redis.Redis = Depends(get_redis),
    scheduler: Scheduler = Depends(get_scheduler),
    sessions: SessionStore = Depends(get_session_store),
) -> SessionSnapshot:
    try:
        session = sessions.create(
            document=get_document(),
            scheduler=scheduler,
            verbosity=get_emit_verbosity(),
            r=r,
            stage_width=payload.stage_width,
            stage_height=payload.stage_height,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    await hub.publish(session)
    return session.snapshot()


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions_route(sessions: SessionStore = Depends(get_session_store)) -> SessionListResponse:
    return SessionListResponse(sessions=[s.snapshot() for s in sessions.list_sessions()])


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
async def get_session_route(session_id: UUID, sessions: SessionStore = Depends(get_session_store)) -> SessionSnapshot:
    return _require_session(sessions, session_id).snapshot()


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session_route(session_id: UUID, sessions: SessionStore = Depends(get_session_store)) -> None:
    if not sessions.delete(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    await hub.close_session(session_id)


@router.post("/sessions/{session_id}/click/{node_id}", response_model=ActionResponse)
async def click_route(
    session_id: UUID,
    node_id: str,
    sessions: SessionStore = Depends(get_session_store),
) -> ActionResponse:
    session = _require_session(sessions, session_id)
    handled = session.click(node_id)
    if handled:
        await hub.publish(session)
    return ActionResponse(handled=handled, session=session.snapshot())


@router.post("/sessions/{session_id}/pointer", response_model=ActionResponse)
async def pointer_route(
    session_id: UUID,
    payload: PointerEventRequest,
    sessions: SessionStore = Depends(get_session_store),
) -> ActionResponse:
    session = _require_session(sessions, session_id)
    handled = session.pointer(payload.kind, payload.x, payload.y)
    if handled and payload.kind == "up":
        await hub.publish(session)
    return ActionResponse(handled=handled, session=session.snapshot())


@router.get("/sessions/{session_id}/events", response_model=EventListResponse)
async def list_events_route(
    session_id: UUID,
    count: int = 100,
    r: redis.Redis = Depends(get_redis),
) -> EventListResponse:
    """Debug read of a session's interaction stream (oldest first)."""

    try:
        entries = r.xrange(EventStream(session_id=str(session_id)).key, count=count)
    except redis.RedisError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e

    return EventListResponse(
        session_id=session_id,
        events=[StreamEvent(id=str(entry_id), fields=dict(fields)) for entry_id, fields in entries],
    )
