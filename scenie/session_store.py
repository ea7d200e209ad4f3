from __future__ import annotations

import logging
from uuid import UUID, uuid4

import redis

from scenie.assets.document import GameDocument
from scenie.core.timers import Scheduler
from scenie.presentation import HeadlessPresenter
from scenie.session import PresentationSession
from scenie.streams import Verbosity, make_event_sink

logger = logging.getLogger(__name__)


class SessionStore:
    """In-process registry of running sessions keyed by session id.

    Sessions hold live timers, so they cannot be persisted; a process restart
    drops them.
    """

    def __init__(self) -> None:
        self._sessions: dict[UUID, PresentationSession] = {}

    def create(
        self,
        *,
        document: GameDocument,
        scheduler: Scheduler,
        verbosity: Verbosity,
        r: redis.Redis | None,
        stage_width: float = 1600.0,
        stage_height: float = 900.0,
    ) -> PresentationSession:
        session_id = uuid4()
        session = PresentationSession(
            document=document,
            presenter=HeadlessPresenter(stage_width=stage_width, stage_height=stage_height),
            sink=make_event_sink(verbosity=verbosity, r=r, session_id=str(session_id)),
            scheduler=scheduler,
            session_id=session_id,
        )
        self._sessions[session_id] = session
        logger.info("Created session %s (%d live)", session_id, len(self._sessions))
        session.start()
        return session

    def get(self, session_id: UUID) -> PresentationSession | None:
        return self._sessions.get(session_id)

    def require(self, session_id: UUID) -> PresentationSession:
        session = self.get(session_id)
        if session is None:
            raise KeyError("Session not found")
        return session

    def list_sessions(self) -> list[PresentationSession]:
        return sorted(self._sessions.values(), key=lambda s: s.created_at, reverse=True)

    def delete(self, session_id: UUID) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True

    def clear(self) -> None:
        for session_id in list(self._sessions):
            self.delete(session_id)


store = SessionStore()
