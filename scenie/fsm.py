from __future__ import annotations

from statemachine import State, StateMachine

from scenie.api.models import DragPhase, QuizPhase, TransitionPhase


class QuizFSM(StateMachine):
    """Phase guard for one quiz attempt.

    awaiting answer -> locked -> (showing affirmation) -> interstitial | next question | finished.
    The engine owns the data; the FSM only decides which moves are legal.
    """

    awaiting_answer = State(QuizPhase.awaiting_answer.value, value=QuizPhase.awaiting_answer.value, initial=True)
    locked = State(QuizPhase.locked.value, value=QuizPhase.locked.value)
    showing_affirmation = State(QuizPhase.showing_affirmation.value, value=QuizPhase.showing_affirmation.value)
    in_interstitial = State(QuizPhase.in_interstitial.value, value=QuizPhase.in_interstitial.value)
    finished = State(QuizPhase.finished.value, value=QuizPhase.finished.value)

    lock_answers = awaiting_answer.to(locked)
    affirm = locked.to(showing_affirmation)
    open_interstitial = locked.to(in_interstitial) | showing_affirmation.to(in_interstitial)
    advance = (
        locked.to(awaiting_answer)
        | showing_affirmation.to(awaiting_answer)
        | in_interstitial.to(awaiting_answer)
    )
    finish = locked.to(finished) | showing_affirmation.to(finished) | in_interstitial.to(finished)
    restart = (
        awaiting_answer.to(awaiting_answer)
        | locked.to(awaiting_answer)
        | showing_affirmation.to(awaiting_answer)
        | in_interstitial.to(awaiting_answer)
        | finished.to(awaiting_answer)
    )

    @property
    def phase(self) -> QuizPhase:
        return QuizPhase(str(self.current_state.value))


class DragFSM(StateMachine):
    """One drag gesture of the exploration handle."""

    idle = State(DragPhase.idle.value, value=DragPhase.idle.value, initial=True)
    dragging = State(DragPhase.dragging.value, value=DragPhase.dragging.value)

    grab = idle.to(dragging)
    release = dragging.to(idle)

    @property
    def phase(self) -> DragPhase:
        return DragPhase(str(self.current_state.value))


class SceneTransitionFSM(StateMachine):
    """Fade bookkeeping for the scene controller; a new fade may supersede a pending one."""

    showing = State(TransitionPhase.showing.value, value=TransitionPhase.showing.value, initial=True)
    fading = State(TransitionPhase.fading.value, value=TransitionPhase.fading.value)

    fade_out = showing.to(fading) | fading.to(fading)
    reveal = fading.to(showing)

    @property
    def phase(self) -> TransitionPhase:
        return TransitionPhase(str(self.current_state.value))
