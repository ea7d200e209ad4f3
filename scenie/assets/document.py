from __future__ import annotations

from collections.abc import Iterator
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class DocumentModel(BaseModel):
    """Base for every document node: camelCase on the wire, immutable in memory."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Point(DocumentModel):
    x: float = 0.0
    y: float = 0.0


class Background(DocumentModel):
    type: Literal["image", "colour"]
    value: str = ""
    target: Literal["all", "mobile", "tablet", "desktop"] = "all"
    variant: str | None = None
    fallback_colour: str | None = Field(default=None, alias="fallback_colour")
    size: str | None = None
    repeat: str | None = None
    position: str | None = None


class GameSettings(DocumentModel):
    title: str = ""
    fade_duration: int = Field(default=500, ge=0)
    default_scale_duration: int = Field(default=500, ge=0)
    container_aspect_ratio: float = Field(default=16 / 9, gt=0)
    page_background: list[Background] = Field(default_factory=list)
    container_background: list[Background] = Field(default_factory=list)


class ClickAction(DocumentModel):
    action: Literal["scale", "visibility", "navigate", "selectAnswer", "continueFromInterstitial"]
    target: str | None = None
    value: str | float | None = None
    duration: int | None = Field(default=None, ge=0)


class PictureElement(DocumentModel):
    type: Literal["picture"]
    id: str
    url: str = ""
    location: Literal["local", "external"] = "local"
    x: float = 50.0
    y: float = 50.0
    width: str = "10%"
    aspect_ratio: str = "1/1"
    hidden: bool = False
    clickable: bool = False
    click_actions: list[ClickAction] = Field(default_factory=list)
    background: list[Background] = Field(default_factory=list)


class ContainerElement(DocumentModel):
    type: Literal["container"]
    id: str
    hidden: bool = False
    variant: Literal["vflex", "hflex"] | None = None
    width: str = "100%"
    height: str = "100%"
    elements: list[Element] = Field(default_factory=list)
    background: list[Background] = Field(default_factory=list)


class OverlayStyle(DocumentModel):
    colour: str | None = None
    opacity: float | None = None
    width_percent: float | None = None
    height_percent: float | None = None
    position: Literal["center", "topleft"] | None = None
    offset_x: float | None = None
    offset_y: float | None = None
    border_radius: float | None = None


class AffirmationConfig(DocumentModel):
    """Visual feedback applied to answers once a question is exited.

    Every field is optional so a question can override only what it needs;
    see `scenie.affirmation.resolve_affirmation` for how levels combine.
    """

    type: Literal["dim", "overlay", "animation"] | None = None
    target: Literal["element", "parent"] | None = None
    audience: Literal["incorrect", "correct", "all"] | None = None
    opacity: float | None = None
    scale: float | None = None
    duration: int | None = Field(default=None, ge=0)
    scale_duration: int | None = Field(default=None, ge=0)
    overlay: OverlayStyle | None = None


class Answer(DocumentModel):
    element: str
    correct: bool = False


class Interstitials(DocumentModel):
    correct: str | None = None
    incorrect: str | None = None


class Question(DocumentModel):
    id: str
    question_element: str
    answers: list[Answer] = Field(min_length=1)
    max_clicks: int | None = Field(default=None, ge=1)
    interstitials: Interstitials | None = None
    affirmation: AffirmationConfig | None = None

    @property
    def click_budget(self) -> int:
        return self.max_clicks if self.max_clicks is not None else len(self.answers)

    def answer_for(self, element_id: str) -> Answer | None:
        return next((a for a in self.answers if a.element == element_id), None)

    def interstitial_for(self, *, correct: bool) -> str | None:
        if self.interstitials is None:
            return None
        return self.interstitials.correct if correct else self.interstitials.incorrect


class OutcomeThreshold(DocumentModel):
    min_score: float = Field(ge=0)
    scene: str


class Outcomes(DocumentModel):
    thresholds: list[OutcomeThreshold] = Field(default_factory=list)

    @field_validator("thresholds")
    @classmethod
    def _highest_first(cls, v: list[OutcomeThreshold]) -> list[OutcomeThreshold]:
        # Evaluation walks thresholds in order, so the highest bar must come first.
        return sorted(v, key=lambda t: t.min_score, reverse=True)


class QuizConfig(DocumentModel):
    questions: list[Question] = Field(min_length=1)
    outcomes: Outcomes = Field(default_factory=Outcomes)
    affirmation: AffirmationConfig | None = None
    clear: bool = False


class QuizElement(DocumentModel):
    type: Literal["quiz"]
    quiz: QuizConfig = Field(alias="config")


Element = Annotated[Union[ContainerElement, PictureElement, QuizElement], Field(discriminator="type")]


class AutoTransition(DocumentModel):
    delay: int = Field(ge=0)
    scene: str


class HitboxSize(DocumentModel):
    width: str
    aspect_ratio: str = "1/1"


class Hitbox(DocumentModel):
    position: Point
    size: HitboxSize


class PopupDismiss(DocumentModel):
    type: Literal["button", "time"]
    image: str | None = None
    position: Point = Field(default_factory=Point)
    delay: int = Field(default=3000, ge=0)


class PopupConfig(DocumentModel):
    image: str = ""
    position: Point = Field(default_factory=Point)
    width: str | None = None
    aspect_ratio: str | None = None
    dismiss: PopupDismiss | None = None


class ExplorationTarget(DocumentModel):
    id: str
    hitbox: Hitbox
    image: str | None = None
    discovered_image: str | None = None
    snap_position: Point | None = None
    snap_offset: Point | None = None
    popup: PopupConfig = Field(default_factory=PopupConfig)
    allow_multiple_discoveries: bool = False


class MagnifierConfig(DocumentModel):
    image: str = ""
    size: str = "15%"
    initial_position: Point = Field(default_factory=lambda: Point(x=50, y=50))
    pulse: bool = False
    pulse_duration: str | None = None
    pulse_scale: str | None = None
    drag_bounds: Literal["container", "full"] = "container"


class ProgressConfig(DocumentModel):
    enabled: bool = True
    position: Point = Field(default_factory=Point)
    width: str | None = None
    aspect_ratio: str | None = None
    images: dict[str, str] = Field(default_factory=dict)


class ContinueButton(DocumentModel):
    scene: str
    image: str = ""
    position: Point = Field(default_factory=lambda: Point(x=50, y=85))
    width: str | None = None
    aspect_ratio: str | None = None
    fade_in_delay: int = Field(default=1000, ge=0)
    scale_duration: int = Field(default=250, ge=0)


class CompletionConfig(DocumentModel):
    continue_button: ContinueButton | None = None


class ExplorationConfig(DocumentModel):
    magnifier: MagnifierConfig = Field(default_factory=MagnifierConfig)
    targets: list[ExplorationTarget] = Field(default_factory=list)
    progress: ProgressConfig | None = None
    completion: CompletionConfig | None = None
    allow_multiple_popups: bool = False


class SceneConfig(DocumentModel):
    name: str
    initial: bool = False
    elements: list[Element] = Field(default_factory=list)
    clear: bool = False
    auto_transition: AutoTransition | None = None
    background: list[Background] = Field(default_factory=list)
    page_background: list[Background] = Field(default_factory=list)
    container_background: list[Background] = Field(default_factory=list)
    exploration: ExplorationConfig | None = None

    @property
    def node_id(self) -> str:
        return f"{self.name}-scene"


class GameDocument(DocumentModel):
    game: GameSettings = Field(default_factory=GameSettings)
    scenes: list[SceneConfig] = Field(min_length=1)

    def scene(self, name: str) -> SceneConfig | None:
        return next((s for s in self.scenes if s.name == name), None)

    def initial_scene(self) -> SceneConfig:
        scene = next((s for s in self.scenes if s.initial), None)
        if scene is None:
            raise ValueError("Document has no initial scene")
        return scene

    def quiz_placement(self) -> tuple[SceneConfig, QuizConfig] | None:
        """Return the scene holding the quiz marker and its config, if any."""

        for scene in self.scenes:
            for element in iter_elements(scene.elements):
                if isinstance(element, QuizElement):
                    return scene, element.quiz
        return None

    def element_index(self) -> dict[str, PictureElement | ContainerElement]:
        index: dict[str, PictureElement | ContainerElement] = {}
        for scene in self.scenes:
            for element in iter_elements(scene.elements):
                if not isinstance(element, QuizElement):
                    index[element.id] = element
        return index


def iter_elements(elements: list[Element]) -> Iterator[Element]:
    """Depth-first walk over an element tree, parents before children."""

    for element in elements:
        yield element
        if isinstance(element, ContainerElement):
            yield from iter_elements(element.elements)


ContainerElement.model_rebuild()
SceneConfig.model_rebuild()
GameDocument.model_rebuild()
