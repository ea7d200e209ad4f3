from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from scenie.api.models import DragPhase, ExplorationSnapshot
from scenie.assets.document import ExplorationTarget, Hitbox, Point, SceneConfig
from scenie.core.events import InteractionEvent
from scenie.core.geometry import Position, Rect, parse_aspect_ratio, parse_percent
from scenie.core.timers import Scheduler, TimerGroup, TimerHandle
from scenie.fsm import DragFSM
from scenie.presentation import CENTERED, ROOT_ID, PresentationAdapter
from scenie.scenes import SceneController, TransitionIntent
from scenie.streams import EventSink

logger = logging.getLogger(__name__)

HANDLE_ID = "exploration-magnifier"
PULSE_CLASS = "exploration-magnifier-pulse"
HITBOX_CLASS = "exploration-hitbox"
POPUP_CLASS = "exploration-popup"
PROGRESS_ID = "exploration-progress"
PROGRESS_IMAGE_ID = "exploration-progress-img"
CONTINUE_ID = "exploration-continue-btn"

OWNED_CLASSES = (HANDLE_ID, HITBOX_CLASS, POPUP_CLASS, PROGRESS_ID, CONTINUE_ID)

SNAP_MS = 300
POPUP_FADE_IN_MS = 10
POPUP_FADE_OUT_MS = 300
CONTINUE_PRESSED_SCALE = 0.9


def hitbox_rect(hitbox: Hitbox) -> Rect:
    """Hitbox in container percent; height is width scaled by the ratio."""

    width = parse_percent(hitbox.size.width)
    height = width * parse_aspect_ratio(hitbox.size.aspect_ratio)
    return Rect(hitbox.position.x, hitbox.position.y, width, height)


def hitbox_id(target: ExplorationTarget) -> str:
    return f"{HITBOX_CLASS}-{target.id}"


def popup_id(target: ExplorationTarget) -> str:
    return f"{POPUP_CLASS}-{target.id}"


@dataclass(slots=True)
class ExplorationRuntimeState:
    discovered: set[str] = field(default_factory=set)
    drag_offset: Position = Position(0.0, 0.0)
    current_popup: str | None = None
    progress_image_index: int = 0
    has_interacted: bool = False
    continue_shown: bool = False
    continue_clicked: bool = False


class ExplorationEngine:
    """Drag-the-handle-and-discover minigame bound to one scene.

    Initialised when its scene is entered and torn down when it is left; the
    static configuration survives teardown so re-entry starts a clean run.
    """

    def __init__(
        self,
        *,
        scene: SceneConfig,
        scenes: SceneController,
        presenter: PresentationAdapter,
        sink: EventSink,
        scheduler: Scheduler,
    ) -> None:
        if scene.exploration is None:
            raise ValueError(f"Scene '{scene.name}' has no exploration config")
        self.scene = scene
        self.config = scene.exploration
        self._scenes = scenes
        self._presenter = presenter
        self._sink = sink
        self._timers = TimerGroup(scheduler)
        self._listeners: list[int] = []
        # Pending fade/dismiss steps per popup node, so a re-shown popup never inherits them.
        self._popup_timers: dict[str, list[TimerHandle]] = {}
        self.runtime = ExplorationRuntimeState()
        self.fsm = DragFSM()
        self.active = False

    @property
    def phase(self) -> DragPhase:
        return self.fsm.phase

    @property
    def is_complete(self) -> bool:
        return len(self.runtime.discovered) >= len(self.config.targets)

    def on_enter(self, intent: TransitionIntent) -> None:
        self.init()

    def on_exit(self) -> None:
        self.cleanup()

    def init(self) -> None:
        if self.active:
            self.cleanup()
        self.runtime = ExplorationRuntimeState()
        self.fsm = DragFSM()
        self._setup_handle()
        self._setup_hitboxes()
        self._setup_progress()
        self._listeners.extend(
            [
                self._presenter.listen("pointerdown", self.start_drag, node_id=HANDLE_ID),
                self._presenter.listen("pointermove", self.update_drag),
                self._presenter.listen("pointerup", self.end_drag),
            ]
        )
        self.active = True
        logger.debug("Exploration started in %s with %d targets", self.scene.name, len(self.config.targets))

    def _setup_handle(self) -> None:
        magnifier = self.config.magnifier
        classes = {HANDLE_ID}
        styles = {
            "position": "absolute",
            "width": magnifier.size,
            "aspect_ratio": "1/1",
            "left": f"{magnifier.initial_position.x}%",
            "top": f"{magnifier.initial_position.y}%",
            "transform": CENTERED,
            "cursor": "grab",
            "z_index": "1000",
        }
        if magnifier.pulse:
            classes.add(PULSE_CLASS)
            if magnifier.pulse_duration:
                styles["--pulse-duration"] = magnifier.pulse_duration
            if magnifier.pulse_scale:
                styles["--pulse-scale"] = magnifier.pulse_scale
        self._presenter.create_node(
            HANDLE_ID, parent_id=self.scene.node_id, kind="handle", classes=classes, styles=styles, image=magnifier.image
        )

    def _setup_hitboxes(self) -> None:
        for target in self.config.targets:
            if not target.image:
                continue
            self._presenter.create_node(
                hitbox_id(target),
                parent_id=self.scene.node_id,
                kind="picture",
                classes={HITBOX_CLASS},
                styles={
                    "position": "absolute",
                    "left": f"{target.hitbox.position.x}%",
                    "top": f"{target.hitbox.position.y}%",
                    "width": target.hitbox.size.width,
                    "aspect_ratio": target.hitbox.size.aspect_ratio,
                    "pointer_events": "none",
                    "z_index": "800",
                },
                image=target.image,
            )

    def _setup_progress(self) -> None:
        progress = self.config.progress
        if progress is None or not progress.enabled:
            return
        styles = {
            "position": "absolute",
            "left": f"{progress.position.x}%",
            "top": f"{progress.position.y}%",
            "transform": CENTERED,
            "z_index": "900",
        }
        if progress.width:
            styles["width"] = progress.width
        if progress.aspect_ratio:
            styles["aspect_ratio"] = progress.aspect_ratio
        self._presenter.create_node(
            PROGRESS_ID, parent_id=self.scene.node_id, kind="container", classes={PROGRESS_ID}, styles=styles
        )
        self._presenter.create_node(
            PROGRESS_IMAGE_ID, parent_id=PROGRESS_ID, kind="picture", image=progress.images.get("0")
        )

    # -- drag gesture ---------------------------------------------------------

    def start_drag(self, point: Position | None) -> bool:
        if not self.active or point is None or self.fsm.current_state != self.fsm.idle:
            return False

        self.fsm.grab()
        self._presenter.set_style(HANDLE_ID, cursor="grabbing")
        if not self.runtime.has_interacted:
            self.runtime.has_interacted = True
            self._presenter.remove_class(HANDLE_ID, PULSE_CLASS)

        # Keep the grab point under the pointer instead of jumping the handle's centre to it.
        self.runtime.drag_offset = point - self._presenter.get_rect(HANDLE_ID).center
        return True

    def update_drag(self, point: Position | None) -> None:
        if point is None or self.fsm.current_state != self.fsm.dragging:
            return

        container = self._presenter.get_rect(ROOT_ID)
        center_x = point.x - self.runtime.drag_offset.x
        center_y = point.y - self.runtime.drag_offset.y

        if self.config.magnifier.drag_bounds != "full":
            handle = self._presenter.get_rect(HANDLE_ID)
            half_w, half_h = handle.width / 2, handle.height / 2
            center_x = max(container.left + half_w, min(center_x, container.right - half_w))
            center_y = max(container.top + half_h, min(center_y, container.bottom - half_h))

        pct = container.to_percent(Position(center_x, center_y))
        self._presenter.set_style(HANDLE_ID, left=f"{pct.x}%", top=f"{pct.y}%")

    def end_drag(self, point: Position | None = None) -> str | None:
        """Finish the gesture and hit-test; returns the discovered target id, if any."""

        if self.fsm.current_state != self.fsm.dragging:
            return None
        self.fsm.release()
        self._presenter.set_style(HANDLE_ID, cursor="grab")
        return self.check_target_hits()

    def handle_center(self) -> Position:
        """Handle centre in container percent."""

        container = self._presenter.get_rect(ROOT_ID)
        return container.to_percent(self._presenter.get_rect(HANDLE_ID).center)

    def check_target_hits(self) -> str | None:
        center = self.handle_center()
        for target in self.config.targets:
            if target.id in self.runtime.discovered and not target.allow_multiple_discoveries:
                continue
            if hitbox_rect(target.hitbox).contains(center):
                self.discover_target(target)
                # One discovery per release.
                return target.id
        return None

    # -- discovery ------------------------------------------------------------

    def discover_target(self, target: ExplorationTarget) -> None:
        self.runtime.discovered.add(target.id)
        logger.info(
            "Discovered %s in %s (%d/%d)",
            target.id,
            self.scene.name,
            len(self.runtime.discovered),
            len(self.config.targets),
        )

        if target.discovered_image:
            self._presenter.set_image(hitbox_id(target), target.discovered_image)

        rect = hitbox_rect(target.hitbox)
        snap = target.snap_position or Point(x=rect.center.x, y=rect.center.y)
        offset = target.snap_offset or Point()
        self._presenter.set_style(
            HANDLE_ID,
            left=f"{snap.x + offset.x}%",
            top=f"{snap.y + offset.y}%",
            transition=f"left {SNAP_MS}ms ease, top {SNAP_MS}ms ease",
        )
        self._timers.call_later(SNAP_MS, lambda: self._presenter.set_style(HANDLE_ID, transition=None))

        self.show_popup(target)
        self.update_progress()
        self.check_completion()

    def show_popup(self, target: ExplorationTarget) -> str:
        if not self.config.allow_multiple_popups and self.runtime.current_popup is not None:
            self._drop_popup(self.runtime.current_popup)
            self.runtime.current_popup = None

        popup = target.popup
        node_id = popup_id(target)
        if self._presenter.has_node(node_id):
            self._drop_popup(node_id)
        center = hitbox_rect(target.hitbox).center
        styles = {
            "position": "absolute",
            "left": f"{center.x + popup.position.x}%",
            "top": f"{center.y + popup.position.y}%",
            "transform": CENTERED,
            "z_index": "999",
            "opacity": "0",
            "transition": f"opacity {POPUP_FADE_OUT_MS}ms ease",
        }
        if popup.width:
            styles["width"] = popup.width
        if popup.aspect_ratio:
            styles["aspect_ratio"] = popup.aspect_ratio
        self._presenter.create_node(
            node_id, parent_id=self.scene.node_id, kind="popup", classes={POPUP_CLASS}, styles=styles, image=popup.image
        )

        dismiss = popup.dismiss
        if dismiss is not None and dismiss.type == "button":
            dismiss_id = f"{node_id}-dismiss"
            self._presenter.create_node(
                dismiss_id,
                parent_id=node_id,
                kind="button",
                classes={"exploration-popup-dismiss"},
                styles={
                    "position": "absolute",
                    "left": f"{dismiss.position.x}%",
                    "top": f"{dismiss.position.y}%",
                    "transform": CENTERED,
                    "z_index": "1000",
                },
                image=dismiss.image,
            )
            self._listeners.append(
                self._presenter.listen("click", lambda _p: self.hide_popup(node_id), node_id=dismiss_id)
            )

        self._popup_timer(node_id, POPUP_FADE_IN_MS, lambda: self._presenter.set_style(node_id, opacity="1"))

        if not self.config.allow_multiple_popups:
            self.runtime.current_popup = node_id

        if dismiss is not None and dismiss.type == "time":
            self._popup_timer(node_id, dismiss.delay, lambda: self.hide_popup(node_id))
        return node_id

    def hide_popup(self, node_id: str | None = None) -> None:
        target_id = node_id or self.runtime.current_popup
        if target_id is None or not self._presenter.has_node(target_id):
            return

        self._presenter.set_style(target_id, opacity="0")

        def _remove() -> None:
            self._drop_popup(target_id)
            if self.runtime.current_popup == target_id:
                self.runtime.current_popup = None

        self._popup_timer(target_id, POPUP_FADE_OUT_MS, _remove)

    def _popup_timer(self, node_id: str, delay_ms: float, callback: Callable[[], None]) -> None:
        handle = self._timers.call_later(delay_ms, callback)
        self._popup_timers.setdefault(node_id, []).append(handle)

    def _drop_popup(self, node_id: str) -> None:
        for handle in self._popup_timers.pop(node_id, []):
            handle.cancel()
        self._presenter.remove_node(node_id)

    def update_progress(self) -> None:
        progress = self.config.progress
        if progress is None or not progress.enabled:
            return
        count = len(self.runtime.discovered)
        # The image map may be sparse; counts without an entry keep the previous image.
        image = progress.images.get(str(count))
        if image:
            self._presenter.set_image(PROGRESS_IMAGE_ID, image)
            self.runtime.progress_image_index = count

    def check_completion(self) -> bool:
        if not self.is_complete:
            return False
        self.show_continue_button()
        return True

    # -- completion -----------------------------------------------------------

    def show_continue_button(self) -> None:
        completion = self.config.completion
        if completion is None or completion.continue_button is None or self.runtime.continue_shown:
            return
        button = completion.continue_button
        self.runtime.continue_shown = True

        styles = {
            "position": "absolute",
            "left": f"{button.position.x}%",
            "top": f"{button.position.y}%",
            "transform": CENTERED,
            "cursor": "pointer",
            "z_index": "1001",
            "opacity": "0",
            "transition": "opacity 500ms ease",
        }
        if button.width:
            styles["width"] = button.width
        if button.aspect_ratio:
            styles["aspect_ratio"] = button.aspect_ratio
        self._presenter.create_node(
            CONTINUE_ID, parent_id=self.scene.node_id, kind="button", classes={CONTINUE_ID}, styles=styles, image=button.image
        )
        self._presenter.set_data(CONTINUE_ID, "original_transform", CENTERED)
        self._listeners.append(self._presenter.listen("click", self.click_continue, node_id=CONTINUE_ID))
        self._timers.call_later(button.fade_in_delay, lambda: self._presenter.set_style(CONTINUE_ID, opacity="1"))

    def click_continue(self, point: Position | None = None) -> bool:
        completion = self.config.completion
        if (
            not self.active
            or self.runtime.continue_clicked
            or completion is None
            or completion.continue_button is None
        ):
            logger.debug("Continue click ignored in %s", self.scene.name)
            return False
        button = completion.continue_button
        self.runtime.continue_clicked = True

        original = self._presenter.get_data(CONTINUE_ID, "original_transform") or CENTERED
        self._presenter.set_style(
            CONTINUE_ID,
            transition=f"transform {button.scale_duration}ms ease",
            transform=f"{original} scale({CONTINUE_PRESSED_SCALE})",
        )
        self._sink.emit(
            InteractionEvent(
                action="continue_button_click",
                scene=self._scenes.current_scene,
                element=CONTINUE_ID,
                target=button.scene,
            )
        )
        self._timers.call_later(button.scale_duration, lambda: self._scenes.switch_scene(button.scene))
        return True

    # -- teardown -------------------------------------------------------------

    def cleanup(self) -> None:
        """Remove everything this minigame put on screen and detach its input. Idempotent."""

        for listener_id in self._listeners:
            self._presenter.unlisten(listener_id)
        self._listeners.clear()
        self._timers.cancel_all()
        self._popup_timers.clear()

        for child in self._presenter.children_of(self.scene.node_id):
            if any(self._presenter.has_class(child, c) for c in OWNED_CLASSES):
                self._presenter.remove_node(child)
        for node_id in (HANDLE_ID, PROGRESS_ID, CONTINUE_ID):
            self._presenter.remove_node(node_id)

        self.runtime = ExplorationRuntimeState()
        self.fsm = DragFSM()
        if self.active:
            logger.debug("Exploration in %s cleaned up", self.scene.name)
        self.active = False

    def snapshot(self) -> ExplorationSnapshot:
        return ExplorationSnapshot(
            scene=self.scene.name,
            active=self.active,
            phase=self.phase,
            discovered_targets=[t.id for t in self.config.targets if t.id in self.runtime.discovered],
            has_interacted=self.runtime.has_interacted,
            handle_x=parse_percent(self._presenter.get_style(HANDLE_ID, "left")),
            handle_y=parse_percent(self._presenter.get_style(HANDLE_ID, "top")),
            current_popup=self.runtime.current_popup,
            complete=self.is_complete,
        )
