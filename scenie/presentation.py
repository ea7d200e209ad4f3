from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Literal, Protocol

from scenie.assets.document import (
    Background,
    ContainerElement,
    Element,
    GameDocument,
    PictureElement,
)
from scenie.core.geometry import Position, Rect, parse_aspect_ratio, parse_percent

logger = logging.getLogger(__name__)

ROOT_ID = "game-container"
PAGE_BACKGROUND_ID = "background"
CENTERED = "translate(-50%, -50%)"

InputEvent = Literal["click", "pointerdown", "pointermove", "pointerup"]
InputHandler = Callable[[Position | None], None]


class PresentationAdapter(Protocol):
    """What the engines need from whatever actually draws the presentation.

    Commands are declarative (classes, styles, images); the only thing read
    back is geometry. Operations on unknown node ids are no-ops.
    """

    def create_node(
        self,
        node_id: str,
        *,
        parent_id: str | None,
        kind: str,
        classes: Iterable[str] = (),
        styles: dict[str, str] | None = None,
        image: str | None = None,
    ) -> None: ...

    def has_node(self, node_id: str) -> bool: ...

    def remove_node(self, node_id: str) -> None: ...

    def parent_of(self, node_id: str) -> str | None: ...

    def children_of(self, node_id: str) -> list[str]: ...

    def add_class(self, node_id: str, name: str) -> None: ...

    def remove_class(self, node_id: str, name: str) -> None: ...

    def has_class(self, node_id: str, name: str) -> bool: ...

    def set_style(self, node_id: str, **styles: str | None) -> None: ...

    def get_style(self, node_id: str, name: str) -> str: ...

    def set_data(self, node_id: str, key: str, value: str) -> None: ...

    def get_data(self, node_id: str, key: str) -> str | None: ...

    def set_image(self, node_id: str, url: str) -> None: ...

    def apply_background(self, node_id: str, backgrounds: list[Background]) -> None: ...

    def get_rect(self, node_id: str) -> Rect: ...

    def listen(self, event: InputEvent, handler: InputHandler, *, node_id: str | None = None) -> int: ...

    def unlisten(self, listener_id: int) -> None: ...


@dataclass(slots=True)
class Node:
    node_id: str
    parent_id: str | None
    kind: str
    classes: set[str] = field(default_factory=set)
    styles: dict[str, str] = field(default_factory=dict)
    data: dict[str, str] = field(default_factory=dict)
    children: list[str] = field(default_factory=list)
    image: str | None = None
    backgrounds: list[Background] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Listener:
    event: InputEvent
    handler: InputHandler
    node_id: str | None


class HeadlessPresenter:
    """In-memory presentation tree with percentage layout geometry.

    Good enough to drive the engines without a browser: nodes positioned with
    `left`/`top`/`width` percentages (and an optional CSS `aspect-ratio`) get
    a pixel rect relative to their parent, root nodes span the stage.
    """

    def __init__(self, *, stage_width: float = 1600.0, stage_height: float = 900.0) -> None:
        self._stage = Rect(0.0, 0.0, stage_width, stage_height)
        self._nodes: dict[str, Node] = {}
        self._listeners: dict[int, Listener] = {}
        self._listener_ids = itertools.count(1)
        self.create_node(PAGE_BACKGROUND_ID, parent_id=None, kind="background")
        self.create_node(ROOT_ID, parent_id=None, kind="container")

    # -- tree -----------------------------------------------------------------

    def create_node(
        self,
        node_id: str,
        *,
        parent_id: str | None,
        kind: str,
        classes: Iterable[str] = (),
        styles: dict[str, str] | None = None,
        image: str | None = None,
    ) -> None:
        if node_id in self._nodes:
            self.remove_node(node_id)
        if parent_id is not None and parent_id not in self._nodes:
            logger.warning("create_node(%s): unknown parent %s", node_id, parent_id)
            return
        self._nodes[node_id] = Node(
            node_id=node_id,
            parent_id=parent_id,
            kind=kind,
            classes=set(classes),
            styles=dict(styles or {}),
            image=image,
        )
        if parent_id is not None:
            self._nodes[parent_id].children.append(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def remove_node(self, node_id: str) -> None:
        node = self._nodes.pop(node_id, None)
        if node is None:
            return
        for child in list(node.children):
            self.remove_node(child)
        if node.parent_id is not None and node.parent_id in self._nodes:
            siblings = self._nodes[node.parent_id].children
            if node_id in siblings:
                siblings.remove(node_id)
        for lid in [lid for lid, lst in self._listeners.items() if lst.node_id == node_id]:
            del self._listeners[lid]

    def parent_of(self, node_id: str) -> str | None:
        node = self._nodes.get(node_id)
        return node.parent_id if node else None

    def children_of(self, node_id: str) -> list[str]:
        node = self._nodes.get(node_id)
        return list(node.children) if node else []

    # -- appearance -----------------------------------------------------------

    def add_class(self, node_id: str, name: str) -> None:
        if node := self._nodes.get(node_id):
            node.classes.add(name)

    def remove_class(self, node_id: str, name: str) -> None:
        if node := self._nodes.get(node_id):
            node.classes.discard(name)

    def has_class(self, node_id: str, name: str) -> bool:
        node = self._nodes.get(node_id)
        return node is not None and name in node.classes

    def is_visible(self, node_id: str) -> bool:
        node = self._nodes.get(node_id)
        return node is not None and "hidden" not in node.classes and node.styles.get("display") != "none"

    def set_style(self, node_id: str, **styles: str | None) -> None:
        node = self._nodes.get(node_id)
        if node is None:
            return
        for name, value in styles.items():
            if value is None or value == "":
                node.styles.pop(name, None)
            else:
                node.styles[name] = str(value)

    def get_style(self, node_id: str, name: str) -> str:
        node = self._nodes.get(node_id)
        return node.styles.get(name, "") if node else ""

    def set_data(self, node_id: str, key: str, value: str) -> None:
        if node := self._nodes.get(node_id):
            node.data[key] = value

    def get_data(self, node_id: str, key: str) -> str | None:
        node = self._nodes.get(node_id)
        return node.data.get(key) if node else None

    def set_image(self, node_id: str, url: str) -> None:
        if node := self._nodes.get(node_id):
            node.image = url

    def get_image(self, node_id: str) -> str | None:
        node = self._nodes.get(node_id)
        return node.image if node else None

    def apply_background(self, node_id: str, backgrounds: list[Background]) -> None:
        if node := self._nodes.get(node_id):
            node.backgrounds = list(backgrounds)

    # -- geometry -------------------------------------------------------------

    def get_rect(self, node_id: str) -> Rect:
        node = self._nodes.get(node_id)
        if node is None:
            return Rect(0.0, 0.0, 0.0, 0.0)
        if node.parent_id is None:
            return self._stage

        parent = self.get_rect(node.parent_id)
        styles = node.styles
        width = parent.width * parse_percent(styles.get("width"), default=100.0) / 100
        if "aspect_ratio" in styles:
            height = width / parse_aspect_ratio(styles["aspect_ratio"])
        else:
            height = parent.height * parse_percent(styles.get("height"), default=100.0) / 100

        left = parent.left + parent.width * parse_percent(styles.get("left")) / 100
        top = parent.top + parent.height * parse_percent(styles.get("top")) / 100
        if CENTERED in styles.get("transform", ""):
            left -= width / 2
            top -= height / 2
        return Rect(left, top, width, height)

    # -- input ----------------------------------------------------------------

    def listen(self, event: InputEvent, handler: InputHandler, *, node_id: str | None = None) -> int:
        lid = next(self._listener_ids)
        self._listeners[lid] = Listener(event=event, handler=handler, node_id=node_id)
        return lid

    def unlisten(self, listener_id: int) -> None:
        self._listeners.pop(listener_id, None)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def node_at(self, event: InputEvent, point: Position) -> str | None:
        """Topmost visible node listening for `event` whose rect contains `point`."""

        hits = [
            lst.node_id for lst in self._listeners.values()
            if lst.event == event and lst.node_id is not None
            and self.is_visible(lst.node_id) and self.get_rect(lst.node_id).contains(point)
        ]
        # Later registrations sit on top, as appended DOM nodes would.
        return hits[-1] if hits else None

    def dispatch(self, event: InputEvent, *, node_id: str | None = None, point: Position | None = None) -> bool:
        """Deliver an input event; node-bound listeners only see events aimed at their node.

        Returns True if at least one listener ran.
        """

        matching = [
            lst for lst in list(self._listeners.values())
            if lst.event == event and (lst.node_id is None or lst.node_id == node_id)
        ]
        for lst in matching:
            lst.handler(point)
        return bool(matching)


def _create_element(presenter: PresentationAdapter, element: Element, parent_id: str) -> None:
    if isinstance(element, ContainerElement):
        classes = {"game-element", "container"}
        if element.hidden:
            classes.add("hidden")
        styles = {"position": "relative", "width": element.width, "height": element.height}
        if element.variant == "vflex":
            styles["flex_direction"] = "column"
        elif element.variant == "hflex":
            styles["flex_direction"] = "row"
        presenter.create_node(element.id, parent_id=parent_id, kind="container", classes=classes, styles=styles)
        if element.background:
            presenter.apply_background(element.id, element.background)
        for child in element.elements:
            _create_element(presenter, child, element.id)

    elif isinstance(element, PictureElement):
        classes = {"game-element", "picture"}
        if element.hidden:
            classes.add("hidden")
        if element.clickable:
            classes.add("clickable")
        presenter.create_node(
            element.id,
            parent_id=parent_id,
            kind="picture",
            classes=classes,
            styles={
                "position": "absolute",
                "left": f"{element.x}%",
                "top": f"{element.y}%",
                "width": element.width,
                "aspect_ratio": element.aspect_ratio,
                "transform": CENTERED,
            },
            image=element.url,
        )
        # Affirmation scaling builds on this and scene clearing restores it.
        presenter.set_data(element.id, "original_transform", CENTERED)
        if element.background:
            presenter.apply_background(element.id, element.background)

    # Quiz markers are configuration only and get no node.


def build_scene_nodes(presenter: PresentationAdapter, document: GameDocument) -> None:
    """Create one node per scene (only the initial one shown) and its element tree."""

    if document.game.page_background:
        presenter.apply_background(PAGE_BACKGROUND_ID, document.game.page_background)
    if document.game.container_background:
        presenter.apply_background(ROOT_ID, document.game.container_background)

    for scene in document.scenes:
        classes = {"scene"} if scene.initial else {"scene", "hidden"}
        styles = {"transition": f"opacity {document.game.fade_duration}ms ease-in-out"}
        if not scene.initial:
            styles["display"] = "none"
        presenter.create_node(scene.node_id, parent_id=ROOT_ID, kind="scene", classes=classes, styles=styles)
        presenter.set_data(scene.node_id, "scene", scene.name)
        if scene.background:
            presenter.apply_background(scene.node_id, scene.background)
        for element in scene.elements:
            _create_element(presenter, element, scene.node_id)
