from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Literal
from uuid import UUID, uuid4

from scenie.actions import ClickDispatcher
from scenie.api.models import SessionSnapshot
from scenie.assets.document import GameDocument
from scenie.core.geometry import Position
from scenie.core.timers import Scheduler
from scenie.exploration import ExplorationEngine
from scenie.presentation import HeadlessPresenter, build_scene_nodes
from scenie.quiz import QuizEngine
from scenie.scenes import SceneController
from scenie.streams import EventSink

logger = logging.getLogger(__name__)

PointerKind = Literal["down", "move", "up"]


class PresentationSession:
    """One running presentation: a presenter, the scene controller and both engines.

    Everything here runs on a single event loop; all waiting happens through
    the scheduler.
    """

    def __init__(
        self,
        *,
        document: GameDocument,
        presenter: HeadlessPresenter,
        sink: EventSink,
        scheduler: Scheduler,
        session_id: UUID | None = None,
    ) -> None:
        self.session_id = session_id or uuid4()
        self.created_at = datetime.now(tz=UTC)
        self.document = document
        self.presenter = presenter
        self.sink = sink
        self.scheduler = scheduler
        self.started = False

        build_scene_nodes(presenter, document)
        self.scenes = SceneController(document=document, presenter=presenter, sink=sink, scheduler=scheduler)

        self.quiz: QuizEngine | None = None
        placement = document.quiz_placement()
        if placement is not None:
            quiz_scene, quiz_config = placement
            self.quiz = QuizEngine(
                config=quiz_config,
                scene_name=quiz_scene.name,
                scenes=self.scenes,
                presenter=presenter,
                scheduler=scheduler,
            )
            self.scenes.add_enter_hook(quiz_scene.name, self.quiz.reset_quiz_state)

        self.explorations: dict[str, ExplorationEngine] = {}
        for scene in document.scenes:
            if scene.exploration is None:
                continue
            engine = ExplorationEngine(
                scene=scene, scenes=self.scenes, presenter=presenter, sink=sink, scheduler=scheduler
            )
            self.scenes.add_enter_hook(scene.name, engine.on_enter)
            self.scenes.add_exit_hook(scene.name, engine.on_exit)
            self.explorations[scene.name] = engine

        self.clicks = ClickDispatcher(
            document=document,
            presenter=presenter,
            scenes=self.scenes,
            sink=sink,
            scheduler=scheduler,
            quiz=self.quiz,
        )

    @property
    def current_scene(self) -> str:
        return self.scenes.current_scene

    @property
    def active_exploration(self) -> ExplorationEngine | None:
        engine = self.explorations.get(self.scenes.current_scene)
        return engine if engine is not None and engine.active else None

    def start(self) -> None:
        if self.started:
            return
        self.started = True
        logger.info("Session %s starting at scene %s", self.session_id, self.scenes.current_scene)
        self.scenes.start()

    def click(self, node_id: str) -> bool:
        """Activate a node: engine-owned buttons first, then declared click actions."""

        if self.presenter.dispatch("click", node_id=node_id):
            return True
        return self.clicks.activate(node_id)

    def pointer(self, kind: PointerKind, x: float, y: float) -> bool:
        point = Position(x, y)
        if kind == "down":
            node_id = self.presenter.node_at("pointerdown", point)
            if node_id is None:
                return False
            return self.presenter.dispatch("pointerdown", node_id=node_id, point=point)
        if kind == "move":
            return self.presenter.dispatch("pointermove", point=point)
        return self.presenter.dispatch("pointerup", point=point)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            title=self.document.game.title,
            current_scene=self.scenes.current_scene,
            transition=self.scenes.fsm.phase,
            quiz=self.quiz.snapshot() if self.quiz is not None else None,
            explorations=[e.snapshot() for e in self.explorations.values()],
        )

    def close(self) -> None:
        """Cancel every pending step and tear down anything still on screen."""

        self.scenes.cancel_pending()
        self.clicks.cancel_timers()
        if self.quiz is not None:
            self.quiz.cancel_timers()
        for engine in self.explorations.values():
            engine.cleanup()
        logger.info("Session %s closed", self.session_id)
