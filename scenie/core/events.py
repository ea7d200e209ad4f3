from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

EventAction = Literal[
    "scene_load",
    "button_click",
    "continue_button_click",
]


@dataclass(frozen=True, slots=True)
class InteractionEvent:
    """Flat interaction record handed to the event sink.

    Every field is a string; anything not applicable is "" rather than missing.
    `element` is serialized under the wire name `self`.
    """

    action: EventAction
    scene: str = ""
    sub_scene: str = ""
    element: str = ""
    value: str = ""
    target: str = ""

    def as_fields(self) -> dict[str, str]:
        return {
            "scene": self.scene or "",
            "sub_scene": self.sub_scene or "",
            "action": self.action or "",
            "self": self.element or "",
            "value": self.value or "",
            "target": self.target or "",
        }

    @staticmethod
    def scene_load(scene: str) -> InteractionEvent:
        return InteractionEvent(action="scene_load", scene=scene)
