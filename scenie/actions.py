from __future__ import annotations

import logging

from scenie.assets.document import ClickAction, GameDocument, PictureElement
from scenie.core.events import InteractionEvent
from scenie.core.timers import Scheduler, TimerGroup
from scenie.presentation import PresentationAdapter
from scenie.quiz import QuizEngine
from scenie.scenes import SceneController
from scenie.streams import EventSink

logger = logging.getLogger(__name__)


class ClickDispatcher:
    """Runs the declared click actions of clickable pictures.

    Clicking an element that is not currently clickable (a locked answer, for
    instance) does nothing and emits nothing.
    """

    def __init__(
        self,
        *,
        document: GameDocument,
        presenter: PresentationAdapter,
        scenes: SceneController,
        sink: EventSink,
        scheduler: Scheduler,
        quiz: QuizEngine | None = None,
    ) -> None:
        self._elements = document.element_index()
        self._default_scale_duration = document.game.default_scale_duration
        self._presenter = presenter
        self._scenes = scenes
        self._sink = sink
        self._quiz = quiz
        self._timers = TimerGroup(scheduler)
        # Delayed scene jumps; any transition that starts first supersedes them.
        self._navigation = TimerGroup(scheduler)
        scenes.add_switch_hook(lambda _target: self._navigation.cancel_all())

    def activate(self, element_id: str) -> bool:
        element = self._elements.get(element_id)
        if not isinstance(element, PictureElement) or not element.clickable:
            return False
        if not self._presenter.has_class(element_id, "clickable") or not self._is_shown(element_id):
            logger.debug("Click on %s ignored: not clickable right now", element_id)
            return False

        self._sink.emit(self.click_event(element))
        for action in element.click_actions:
            self._run(action, element)
        return True

    def _is_shown(self, node_id: str) -> bool:
        # The element and every ancestor must be visible.
        current: str | None = node_id
        while current is not None:
            if self._presenter.has_class(current, "hidden") or self._presenter.get_style(current, "display") == "none":
                return False
            current = self._presenter.parent_of(current)
        return True

    def click_event(self, element: PictureElement) -> InteractionEvent:
        navigate = next(
            (a for a in element.click_actions if a.action == "navigate" and a.target == "scene"),
            None,
        )
        target_scene = str(navigate.value) if navigate is not None and navigate.value is not None else ""

        value = ""
        if self._quiz is not None and any(a.action == "selectAnswer" for a in element.click_actions):
            answer = self._quiz.current_question.answer_for(element.id)
            if answer is not None:
                value = "correct" if answer.correct else "incorrect"
        elif target_scene:
            value = "navigate"

        sub_scene = ""
        if self._quiz is not None and self._scenes.current_scene == self._quiz.scene_name:
            sub_scene = self._quiz.current_question.id

        return InteractionEvent(
            action="button_click",
            scene=self._scenes.current_scene,
            sub_scene=sub_scene,
            element=element.id,
            value=value,
            target=target_scene,
        )

    def _scale_duration(self, action: ClickAction) -> int:
        return action.duration if action.duration is not None else self._default_scale_duration

    def _run(self, action: ClickAction, element: PictureElement) -> None:
        if action.action == "scale":
            duration = self._scale_duration(action)
            original = self._presenter.get_data(element.id, "original_transform") or ""
            scaled = f"scale({action.value})"
            self._presenter.set_style(
                element.id,
                transition=f"transform {duration}ms ease",
                transform=f"{original} {scaled}".strip(),
            )
            self._timers.call_later(duration, lambda: self._presenter.set_style(element.id, transform=original))

        elif action.action == "visibility":
            if action.target is None:
                return
            if action.value == "visible":
                self._presenter.remove_class(action.target, "hidden")
            elif action.value == "hidden":
                self._presenter.add_class(action.target, "hidden")

        elif action.action == "navigate":
            if action.target != "scene" or action.value is None:
                return
            scene = str(action.value)
            scale = next((a for a in element.click_actions if a.action == "scale"), None)
            # Let the press animation play out and back before fading away.
            delay = self._scale_duration(scale) * 2 if scale is not None else 0
            self._navigation.call_later(delay, lambda: self._scenes.switch_scene(scene))

        elif action.action == "selectAnswer":
            if self._quiz is None:
                logger.warning("selectAnswer on %s but the document has no quiz", element.id)
                return
            answer_id = str(action.value) if action.value is not None else element.id
            self._quiz.select_answer(answer_id)

        elif action.action == "continueFromInterstitial":
            if self._quiz is None:
                logger.warning("continueFromInterstitial on %s but the document has no quiz", element.id)
                return
            self._quiz.continue_from_interstitial()

    def cancel_timers(self) -> None:
        self._timers.cancel_all()
        self._navigation.cancel_all()
