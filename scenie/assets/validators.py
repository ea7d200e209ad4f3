from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass

from scenie.assets.document import ContainerElement, GameDocument, PictureElement, QuizElement, iter_elements
from scenie.core.geometry import parse_aspect_ratio, parse_percent


class DocumentValidator(ABC):
    """A small, composable check run over a parsed document at load time."""

    @abstractmethod
    def validate(self, *, document: GameDocument) -> None:
        raise NotImplementedError


def _duplicates(values: list[str]) -> list[str]:
    return sorted(v for v, n in Counter(values).items() if n > 1)


@dataclass(frozen=True, slots=True)
class SceneNamesValidator(DocumentValidator):
    """Scene names are unique and exactly one scene is initial."""

    def validate(self, *, document: GameDocument) -> None:
        dupes = _duplicates([s.name for s in document.scenes])
        if dupes:
            raise ValueError(f"Duplicate scene names: {','.join(dupes)}")

        initial = [s.name for s in document.scenes if s.initial]
        if len(initial) != 1:
            raise ValueError(f"Exactly one initial scene required (found {len(initial)})")


@dataclass(frozen=True, slots=True)
class ElementIdsValidator(DocumentValidator):
    """Element ids are unique across the whole document (the presenter is keyed by them)."""

    def validate(self, *, document: GameDocument) -> None:
        ids: list[str] = []
        for scene in document.scenes:
            for element in iter_elements(scene.elements):
                if isinstance(element, (PictureElement, ContainerElement)):
                    ids.append(element.id)
        dupes = _duplicates(ids)
        if dupes:
            raise ValueError(f"Duplicate element ids: {','.join(dupes)}")


@dataclass(frozen=True, slots=True)
class SceneReferenceValidator(DocumentValidator):
    """Every place a scene is named must point at a declared scene."""

    def validate(self, *, document: GameDocument) -> None:
        known = {s.name for s in document.scenes}

        def check(name: str | None, where: str) -> None:
            if name is not None and name not in known:
                raise ValueError(f"Unknown scene '{name}' referenced by {where}")

        for scene in document.scenes:
            if scene.auto_transition is not None:
                check(scene.auto_transition.scene, f"autoTransition of scene '{scene.name}'")

            for element in iter_elements(scene.elements):
                if isinstance(element, PictureElement):
                    for action in element.click_actions:
                        if action.action == "navigate" and action.target == "scene":
                            check(str(action.value), f"navigate action on element '{element.id}'")
                elif isinstance(element, QuizElement):
                    for q in element.quiz.questions:
                        if q.interstitials is not None:
                            check(q.interstitials.correct, f"interstitials of question '{q.id}'")
                            check(q.interstitials.incorrect, f"interstitials of question '{q.id}'")
                    for t in element.quiz.outcomes.thresholds:
                        check(t.scene, "quiz outcome thresholds")

            exploration = scene.exploration
            if exploration is not None and exploration.completion and exploration.completion.continue_button:
                check(exploration.completion.continue_button.scene, f"continue button of scene '{scene.name}'")


@dataclass(frozen=True, slots=True)
class QuizValidator(DocumentValidator):
    def validate(self, *, document: GameDocument) -> None:
        quizzes = [
            element
            for scene in document.scenes
            for element in iter_elements(scene.elements)
            if isinstance(element, QuizElement)
        ]
        if not quizzes:
            return
        if len(quizzes) > 1:
            raise ValueError("At most one quiz per document is supported")

        quiz = quizzes[0].quiz
        dupes = _duplicates([q.id for q in quiz.questions])
        if dupes:
            raise ValueError(f"Duplicate question ids: {','.join(dupes)}")

        elements = document.element_index()
        for q in quiz.questions:
            if q.question_element not in elements:
                raise ValueError(f"Question '{q.id}' references unknown element '{q.question_element}'")
            for a in q.answers:
                if a.element not in elements:
                    raise ValueError(f"Question '{q.id}' answer references unknown element '{a.element}'")

        thresholds = quiz.outcomes.thresholds
        if not thresholds:
            raise ValueError("Quiz outcomes need at least one threshold")
        if not any(t.min_score == 0 for t in thresholds):
            raise ValueError("Quiz outcomes need a catch-all threshold with minScore 0")


@dataclass(frozen=True, slots=True)
class ExplorationValidator(DocumentValidator):
    def validate(self, *, document: GameDocument) -> None:
        for scene in document.scenes:
            exploration = scene.exploration
            if exploration is None:
                continue
            dupes = _duplicates([t.id for t in exploration.targets])
            if dupes:
                raise ValueError(f"Duplicate exploration targets in scene '{scene.name}': {','.join(dupes)}")
            for t in exploration.targets:
                parse_aspect_ratio(t.hitbox.size.aspect_ratio)
                parse_percent(t.hitbox.size.width)


@dataclass(frozen=True, slots=True)
class ValidatorPipeline:
    validators: tuple[DocumentValidator, ...]

    def validate(self, *, document: GameDocument) -> None:
        for v in self.validators:
            v.validate(document=document)


DEFAULT_DOCUMENT_PIPELINE = ValidatorPipeline(
    validators=(
        SceneNamesValidator(),
        ElementIdsValidator(),
        SceneReferenceValidator(),
        QuizValidator(),
        ExplorationValidator(),
    )
)
