from __future__ import annotations

import logging
from dataclasses import dataclass, field

from scenie.affirmation import AffirmationDirective, apply_affirmation, resolve_affirmation
from scenie.api.models import QuizPhase, QuizSnapshot
from scenie.assets.document import Answer, Question, QuizConfig
from scenie.core.timers import Scheduler, TimerGroup
from scenie.fsm import QuizFSM
from scenie.presentation import PresentationAdapter
from scenie.scenes import SceneController, TransitionIntent

logger = logging.getLogger(__name__)

# Lets immediate click feedback (highlight brushes) render before the exit decision.
SETTLE_DELAY_MS = 1000
# Extra wait after the quiz scene fades back in before advancing.
CONTINUE_SETTLE_MS = 50
FALLBACK_OUTCOME_SCENE = "outcome_incorrect"


@dataclass(slots=True)
class QuizRuntimeState:
    current_question_index: int = 0
    question_clicks: dict[str, int] = field(default_factory=dict)
    selected_answers: dict[str, list[Answer]] = field(default_factory=dict)
    is_in_interstitial: bool = False
    last_question_correct: bool | None = None
    locked_elements: list[str] = field(default_factory=list)


def is_question_correct(question: Question, selected: list[Answer]) -> bool:
    """Exact-set match: every correct answer picked, nothing else picked, no repeats."""

    correct = [a for a in question.answers if a.correct]
    picked = {a.element for a in selected}
    got_all_correct = all(a.element in picked for a in correct)
    no_wrong_answers = all(a.correct for a in selected)
    return got_all_correct and no_wrong_answers and len(selected) == len(correct)


class QuizEngine:
    def __init__(
        self,
        *,
        config: QuizConfig,
        scene_name: str,
        scenes: SceneController,
        presenter: PresentationAdapter,
        scheduler: Scheduler,
    ) -> None:
        self.config = config
        self.scene_name = scene_name
        self._scenes = scenes
        self._presenter = presenter
        self._timers = TimerGroup(scheduler)
        self.runtime = QuizRuntimeState()
        self.fsm = QuizFSM()

    @property
    def phase(self) -> QuizPhase:
        return self.fsm.phase

    @property
    def current_question(self) -> Question:
        return self.config.questions[self.runtime.current_question_index]

    @property
    def is_last_question(self) -> bool:
        return self.runtime.current_question_index >= len(self.config.questions) - 1

    def select_answer(self, answer_element_id: str) -> bool:
        """Record a click on an answer of the current question.

        Returns False for anything that cannot count: wrong phase, unknown
        answer, or the question's click budget already spent.
        """

        if self.fsm.current_state != self.fsm.awaiting_answer:
            logger.debug("select_answer(%s) ignored in phase %s", answer_element_id, self.phase.value)
            return False

        question = self.current_question
        answer = question.answer_for(answer_element_id)
        if answer is None:
            logger.debug("select_answer(%s): not an answer of question %s", answer_element_id, question.id)
            return False

        budget = question.click_budget
        clicks = self.runtime.question_clicks.get(question.id, 0)
        if clicks >= budget:
            return False

        self.runtime.question_clicks[question.id] = clicks + 1
        self.runtime.selected_answers.setdefault(question.id, []).append(answer)

        if clicks + 1 >= budget:
            self.lock_answers()
            self._timers.call_later(SETTLE_DELAY_MS, lambda: self.exit_question(question))
        return True

    def lock_answers(self) -> None:
        for answer in self.current_question.answers:
            if self._presenter.has_class(answer.element, "clickable"):
                self._presenter.remove_class(answer.element, "clickable")
                self.runtime.locked_elements.append(answer.element)
        self.fsm.lock_answers()

    def exit_question(self, question: Question) -> None:
        """Score the question, show any affirmation, then branch."""

        if self.fsm.current_state != self.fsm.locked:
            return

        selected = self.runtime.selected_answers.get(question.id, [])
        correct = is_question_correct(question, selected)
        self.runtime.last_question_correct = correct
        interstitial = question.interstitial_for(correct=correct)
        logger.info("Question %s answered %s", question.id, "correctly" if correct else "incorrectly")

        affirmation = resolve_affirmation(self.config.affirmation, question.affirmation)
        if affirmation is None:
            self._branch(interstitial)
            return

        directive = AffirmationDirective.from_config(affirmation)
        apply_affirmation(self._presenter, question, directive)
        self.fsm.affirm()
        self._timers.call_later(directive.duration, lambda: self._branch(interstitial))

    def _branch(self, interstitial: str | None) -> None:
        if interstitial is None:
            self.proceed_after_question()
            return

        # Drop affirmation styling before leaving so a return visit starts clean.
        self._scenes.clear_scene(self.scene_name)
        self.runtime.is_in_interstitial = True
        self.fsm.open_interstitial()
        self._scenes.switch_scene(interstitial)

    def proceed_after_question(self) -> None:
        if not self.is_last_question:
            self.runtime.current_question_index += 1
            self.show_current_question()
            self.fsm.advance()
            return

        outcome = self.get_outcome_scene()
        logger.info("Quiz finished, outcome scene %s", outcome)
        self.fsm.finish()
        self._scenes.switch_scene(outcome)

    def score(self) -> float:
        correct = 0
        for q in self.config.questions:
            selected = self.runtime.selected_answers.get(q.id)
            if selected and is_question_correct(q, selected):
                correct += 1
        return correct / len(self.config.questions)

    def get_outcome_scene(self) -> str:
        score = self.score()
        thresholds = self.config.outcomes.thresholds
        for threshold in thresholds:
            if score >= threshold.min_score:
                return threshold.scene
        return thresholds[-1].scene if thresholds else FALLBACK_OUTCOME_SCENE

    def continue_from_interstitial(self) -> bool:
        if self.fsm.current_state != self.fsm.in_interstitial or not self.runtime.is_in_interstitial:
            logger.debug("continue_from_interstitial ignored in phase %s", self.phase.value)
            return False

        self.runtime.is_in_interstitial = False
        self.runtime.last_question_correct = None

        if self.is_last_question:
            outcome = self.get_outcome_scene()
            self.fsm.finish()
            self._scenes.switch_scene(outcome)
            return True

        self._scenes.switch_scene(self.scene_name, intent=TransitionIntent.continuation)
        self._timers.call_later(self._scenes.fade_duration + CONTINUE_SETTLE_MS, self.proceed_after_question)
        return True

    def show_current_question(self) -> None:
        """Exactly one question element is visible: the one at the current index."""

        for index, question in enumerate(self.config.questions):
            if index == self.runtime.current_question_index:
                self._presenter.remove_class(question.question_element, "hidden")
            else:
                self._presenter.add_class(question.question_element, "hidden")

    def reset_quiz_state(self, reason: TransitionIntent = TransitionIntent.fresh) -> None:
        """Start a fresh attempt, unless the scene is being re-entered mid-quiz."""

        if reason == TransitionIntent.continuation:
            return

        self._timers.cancel_all()
        for element_id in self.runtime.locked_elements:
            self._presenter.add_class(element_id, "clickable")
        self.runtime = QuizRuntimeState()
        self.fsm.restart()
        self.show_current_question()

    def cancel_timers(self) -> None:
        self._timers.cancel_all()

    def snapshot(self) -> QuizSnapshot:
        return QuizSnapshot(
            phase=self.phase,
            current_question_index=self.runtime.current_question_index,
            current_question_id=self.current_question.id,
            question_clicks=dict(self.runtime.question_clicks),
            selected_answers={k: [a.element for a in v] for k, v in self.runtime.selected_answers.items()},
            is_in_interstitial=self.runtime.is_in_interstitial,
            last_question_correct=self.runtime.last_question_correct,
        )
