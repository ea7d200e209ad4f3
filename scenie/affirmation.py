from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, TypeVar

from pydantic import BaseModel

from scenie.assets.document import AffirmationConfig, OverlayStyle, Question
from scenie.presentation import PresentationAdapter

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_MS = 2000
DEFAULT_SCALE_MS = 500
DEFAULT_SCALE = 0.8
DEFAULT_DIM_OPACITY = 0.3
DEFAULT_ANIMATION_OPACITY = 0.5

OVERLAY_CLASS = "affirmation-overlay"

M = TypeVar("M", bound=BaseModel)


def _merge_model(base: M, override: M) -> M:
    """Field-wise merge of two documents of the same schema.

    Only fields the override actually declares are considered. Nested models
    merge recursively (a missing base sub-model counts as empty); everything
    else, lists included, is replaced wholesale.
    """

    updates: dict[str, object] = {}
    for name in override.model_fields_set:
        value = getattr(override, name)
        if isinstance(value, BaseModel):
            current = getattr(base, name)
            updates[name] = _merge_model(current if current is not None else type(value)(), value)
        else:
            updates[name] = value
    if not updates:
        return base
    return base.model_copy(update=updates)


def resolve_affirmation(
    quiz_level: AffirmationConfig | None,
    question_level: AffirmationConfig | None,
) -> AffirmationConfig | None:
    """Question-level settings win at every depth; quiz-level settings fill the gaps."""

    if quiz_level is None:
        return question_level
    if question_level is None:
        return quiz_level
    return _merge_model(quiz_level, question_level)


@dataclass(frozen=True, slots=True)
class AffirmationDirective:
    """Effective, fully defaulted affirmation for one question exit."""

    mode: Literal["dim", "overlay", "animation"] | None
    target: Literal["element", "parent"]
    audience: Literal["incorrect", "correct", "all"]
    opacity: float
    scale: float
    duration: int
    scale_duration: int
    overlay: OverlayStyle

    @staticmethod
    def from_config(config: AffirmationConfig) -> AffirmationDirective:
        if config.opacity is not None:
            opacity = config.opacity
        elif config.type == "dim":
            opacity = DEFAULT_DIM_OPACITY
        else:
            opacity = DEFAULT_ANIMATION_OPACITY

        return AffirmationDirective(
            mode=config.type,
            target=config.target or "element",
            audience=config.audience or "incorrect",
            opacity=opacity,
            scale=config.scale if config.scale is not None else DEFAULT_SCALE,
            duration=config.duration if config.duration is not None else DEFAULT_DISPLAY_MS,
            scale_duration=config.scale_duration if config.scale_duration is not None else DEFAULT_SCALE_MS,
            overlay=config.overlay or OverlayStyle(),
        )


def _overlay_styles(style: OverlayStyle, *, opacity: float) -> dict[str, str]:
    styles = {
        "position": "absolute",
        "width": f"{style.width_percent if style.width_percent is not None else 100:g}%",
        "height": f"{style.height_percent if style.height_percent is not None else 100:g}%",
        "background_color": style.colour or "#000000",
        "opacity": str(style.opacity if style.opacity is not None else opacity),
        "border_radius": f"{style.border_radius or 0}px",
        "pointer_events": "none",
        "z_index": "10",
    }
    if (style.position or "center") == "center":
        styles.update(left="50%", top="50%", transform="translate(-50%, -50%)")
    else:
        styles.update(left=f"{style.offset_x or 0}%", top=f"{style.offset_y or 0}%", transform="none")
    return styles


def apply_affirmation(presenter: PresentationAdapter, question: Question, directive: AffirmationDirective) -> list[str]:
    """Style the question's answer nodes according to the directive.

    Returns the ids of the nodes that were touched.
    """

    touched: list[str] = []

    if directive.mode in ("dim", "overlay"):
        for answer in question.answers:
            if answer.correct or not presenter.has_node(answer.element):
                continue
            node_id = answer.element
            if directive.target == "parent":
                parent = presenter.parent_of(node_id)
                if parent is None:
                    continue
                node_id = parent

            if directive.mode == "dim":
                presenter.set_style(node_id, opacity=str(directive.opacity))
            else:
                overlay_id = f"{node_id}-{OVERLAY_CLASS}-{len(presenter.children_of(node_id))}"
                presenter.create_node(
                    overlay_id,
                    parent_id=node_id,
                    kind="overlay",
                    classes={OVERLAY_CLASS},
                    styles=_overlay_styles(directive.overlay, opacity=directive.opacity),
                )
            touched.append(node_id)

    elif directive.mode == "animation":
        if directive.audience == "incorrect":
            answers = [a for a in question.answers if not a.correct]
        elif directive.audience == "correct":
            answers = [a for a in question.answers if a.correct]
        else:
            answers = list(question.answers)
        logger.debug("Animation affirmation for %s answers of %s", directive.audience, question.id)

        for answer in answers:
            if not presenter.has_node(answer.element):
                continue
            current = presenter.get_style(answer.element, "transform")
            scaled = f"scale({directive.scale})"
            presenter.set_style(
                answer.element,
                transition=f"opacity {directive.scale_duration}ms ease, transform {directive.scale_duration}ms ease",
                opacity=str(directive.opacity),
                transform=f"{current} {scaled}" if current else scaled,
            )
            touched.append(answer.element)

    return touched
