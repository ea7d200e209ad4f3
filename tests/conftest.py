from __future__ import annotations

import copy
import json
import os
from collections.abc import Callable, Generator
from pathlib import Path

import fakeredis
import pytest
from fastapi.testclient import TestClient

from scenie.assets.document import GameDocument
from scenie.assets.registry import parse_document
from scenie.core.events import InteractionEvent
from scenie.core.timers import ManualScheduler
from scenie.presentation import HeadlessPresenter
from scenie.session import PresentationSession
from scenie.session_store import SessionStore


@pytest.fixture(scope="session", autouse=True)
def _init_document_from_test_fixtures() -> None:
    """Initialize the document from `tests/game.json` and forbid the fallback document.

    This keeps tests hermetic and prevents coupling to a real presentation.
    """

    os.environ["SCENIE_STRICT_DOCUMENT"] = "1"
    os.environ.pop("SCENIE_DOCUMENT", None)
    os.environ["SCENIE_EMIT_VERBOSITY"] = "server"

    from scenie.assets.singleton import init_document, reset_document_for_tests

    reset_document_for_tests()

    # Point the loader at a fake project root: tests/ contains game.json.
    test_root = Path(__file__).resolve().parent
    init_document(project_root=test_root)


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[InteractionEvent] = []

    def emit(self, event: InteractionEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[str]:
        return [e.action for e in self.events]

    def of(self, action: str) -> list[InteractionEvent]:
        return [e for e in self.events if e.action == action]


@pytest.fixture()
def document() -> GameDocument:
    from scenie.assets.singleton import get_document

    return get_document()


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def session(document: GameDocument, sink: RecordingSink, scheduler: ManualScheduler) -> PresentationSession:
    s = PresentationSession(
        document=document,
        presenter=HeadlessPresenter(stage_width=1600, stage_height=900),
        sink=sink,
        scheduler=scheduler,
    )
    s.start()
    return s


@pytest.fixture()
def client_and_redis() -> Generator[tuple[TestClient, fakeredis.FakeRedis, ManualScheduler], None, None]:
    """FastAPI TestClient wired to fakeredis, a fresh session store and a virtual clock."""

    from scenie.api.deps import get_redis, get_scheduler, get_session_store
    from scenie.main import app

    r = fakeredis.FakeRedis(decode_responses=True)
    clock = ManualScheduler()
    sessions = SessionStore()

    app.dependency_overrides[get_redis] = lambda: r
    app.dependency_overrides[get_scheduler] = lambda: clock
    app.dependency_overrides[get_session_store] = lambda: sessions
    with TestClient(app) as c:
        yield c, r, clock
    app.dependency_overrides.clear()
    sessions.clear()


@pytest.fixture(scope="session")
def raw_document() -> dict:
    return json.loads((Path(__file__).resolve().parent / "game.json").read_text(encoding="utf-8"))


@pytest.fixture()
def make_session(
    raw_document: dict, sink: RecordingSink, scheduler: ManualScheduler
) -> Callable[[Callable[[dict], None]], PresentationSession]:
    """Build a started session from a tweaked copy of `tests/game.json`."""

    def _make(tweak: Callable[[dict], None]) -> PresentationSession:
        raw = copy.deepcopy(raw_document)
        tweak(raw)
        s = PresentationSession(
            document=parse_document(raw),
            presenter=HeadlessPresenter(stage_width=1600, stage_height=900),
            sink=sink,
            scheduler=scheduler,
        )
        s.start()
        return s

    return _make
