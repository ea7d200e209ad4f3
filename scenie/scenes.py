from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from enum import StrEnum

from scenie.affirmation import OVERLAY_CLASS
from scenie.assets.document import ContainerElement, Element, GameDocument, PictureElement, SceneConfig
from scenie.core.events import InteractionEvent
from scenie.core.timers import Scheduler, TimerHandle
from scenie.fsm import SceneTransitionFSM
from scenie.presentation import PAGE_BACKGROUND_ID, ROOT_ID, PresentationAdapter
from scenie.streams import EventSink

logger = logging.getLogger(__name__)

ICON_CLASS = "affirmation-icon"


class TransitionIntent(StrEnum):
    """Why a scene is being entered; passed through to entry hooks."""

    fresh = "fresh"
    continuation = "continuation"


EnterHook = Callable[[TransitionIntent], None]
ExitHook = Callable[[], None]
SwitchHook = Callable[[str], None]


class SceneController:
    """Owns which scene is current and drives fade-out -> swap -> fade-in.

    At most one scene transition and one auto-transition timer are pending at
    any time; starting a transition supersedes both.
    """

    def __init__(
        self,
        *,
        document: GameDocument,
        presenter: PresentationAdapter,
        sink: EventSink,
        scheduler: Scheduler,
    ) -> None:
        self._document = document
        self._presenter = presenter
        self._sink = sink
        self._scheduler = scheduler
        self.current_scene: str = document.initial_scene().name
        self.fsm = SceneTransitionFSM()
        self._transition: TimerHandle | None = None
        self._auto_transition: TimerHandle | None = None
        self._enter_hooks: dict[str, list[EnterHook]] = defaultdict(list)
        self._exit_hooks: dict[str, list[ExitHook]] = defaultdict(list)
        self._switch_hooks: list[SwitchHook] = []

    @property
    def fade_duration(self) -> int:
        return self._document.game.fade_duration

    @property
    def pending_scene(self) -> bool:
        return self._transition is not None and self._transition.pending

    def scene_config(self, name: str) -> SceneConfig | None:
        return self._document.scene(name)

    def add_enter_hook(self, scene: str, hook: EnterHook) -> None:
        self._enter_hooks[scene].append(hook)

    def add_exit_hook(self, scene: str, hook: ExitHook) -> None:
        self._exit_hooks[scene].append(hook)

    def add_switch_hook(self, hook: SwitchHook) -> None:
        """Called with the target name whenever a transition starts."""

        self._switch_hooks.append(hook)

    def start(self) -> None:
        """Enter the initial scene (no fade)."""

        scene = self._document.initial_scene()
        self.current_scene = scene.name
        for hook in self._enter_hooks[scene.name]:
            hook(TransitionIntent.fresh)
        self._presenter.set_style(scene.node_id, display="block")
        self._presenter.remove_class(scene.node_id, "hidden")
        self._after_reveal(scene)

    def cancel_auto_transition(self) -> None:
        if self._auto_transition is not None:
            self._auto_transition.cancel()
            self._auto_transition = None

    def cancel_pending(self) -> None:
        self.cancel_auto_transition()
        if self._transition is not None:
            self._transition.cancel()
            self._transition = None

    def switch_scene(
        self,
        target: str,
        duration: int | None = None,
        *,
        intent: TransitionIntent = TransitionIntent.fresh,
    ) -> bool:
        """Fade out the current scene and, after `duration` ms, reveal `target`.

        Returns False (and does nothing) for an unknown target.
        """

        target_config = self._document.scene(target)
        if target_config is None:
            logger.warning("switch_scene: unknown scene '%s' requested from '%s'", target, self.current_scene)
            return False

        self.cancel_pending()
        for switch_hook in self._switch_hooks:
            switch_hook(target)

        leaving = self._document.scene(self.current_scene)
        if leaving is not None:
            self._presenter.add_class(leaving.node_id, "hidden")
        self.fsm.fade_out()

        delay = self.fade_duration if duration is None else duration
        logger.info("Switching scene %s -> %s (%s, %sms)", self.current_scene, target, intent.value, delay)
        self._transition = self._scheduler.call_later(
            delay, lambda: self._complete_switch(leaving=leaving, target=target_config, intent=intent)
        )
        return True

    def _complete_switch(self, *, leaving: SceneConfig | None, target: SceneConfig, intent: TransitionIntent) -> None:
        self._transition = None

        if leaving is not None:
            self._presenter.set_style(leaving.node_id, display="none")
            for exit_hook in self._exit_hooks[leaving.name]:
                exit_hook()

        if self._clears_on_entry(target):
            self.clear_scene(target.name)

        self.current_scene = target.name
        for hook in self._enter_hooks[target.name]:
            hook(intent)

        self._presenter.set_style(target.node_id, display="block")
        self._presenter.remove_class(target.node_id, "hidden")
        self.fsm.reveal()
        self._after_reveal(target)

    def _after_reveal(self, scene: SceneConfig) -> None:
        self._sink.emit(InteractionEvent.scene_load(scene.name))

        if scene.page_background:
            self._presenter.apply_background(PAGE_BACKGROUND_ID, scene.page_background)
        if scene.container_background:
            self._presenter.apply_background(ROOT_ID, scene.container_background)

        if scene.auto_transition is not None:
            auto = scene.auto_transition
            self._auto_transition = self._scheduler.call_later(auto.delay, lambda: self.switch_scene(auto.scene))

    def _clears_on_entry(self, scene: SceneConfig) -> bool:
        if scene.clear:
            return True
        placement = self._document.quiz_placement()
        return placement is not None and placement[0].name == scene.name and placement[1].clear

    def clear_scene(self, name: str) -> None:
        """Restore every element of a scene to its declared state. Idempotent."""

        scene = self._document.scene(name)
        if scene is None:
            return
        self._clear_elements(scene.elements)

    def _clear_elements(self, elements: list[Element]) -> None:
        for element in elements:
            if isinstance(element, ContainerElement):
                self._clear_elements(element.elements)
                self._reset_visibility(element.id, hidden=element.hidden)
                self._presenter.set_style(element.id, opacity=None)
                self._strip_artifacts(element.id, OVERLAY_CLASS)

            elif isinstance(element, PictureElement):
                node_id = element.id
                if not self._presenter.has_node(node_id):
                    continue
                self._reset_visibility(node_id, hidden=element.hidden)
                if element.clickable:
                    self._presenter.add_class(node_id, "clickable")
                    self._presenter.set_style(node_id, pointer_events=None)
                self._presenter.set_style(
                    node_id,
                    opacity=None,
                    border=None,
                    transform=self._presenter.get_data(node_id, "original_transform"),
                    transform_origin=None,
                    transition=None,
                )
                self._strip_artifacts(node_id, ICON_CLASS, OVERLAY_CLASS)

    def _reset_visibility(self, node_id: str, *, hidden: bool) -> None:
        if hidden:
            self._presenter.add_class(node_id, "hidden")
        else:
            self._presenter.remove_class(node_id, "hidden")

    def _strip_artifacts(self, node_id: str, *classes: str) -> None:
        for child in self._presenter.children_of(node_id):
            if any(self._presenter.has_class(child, c) for c in classes):
                self._presenter.remove_node(child)
