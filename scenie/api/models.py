from __future__ import annotations

from enum import StrEnum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class QuizPhase(StrEnum):
    awaiting_answer = "awaiting_answer"
    locked = "locked"
    showing_affirmation = "showing_affirmation"
    in_interstitial = "in_interstitial"
    finished = "finished"


class DragPhase(StrEnum):
    idle = "idle"
    dragging = "dragging"


class TransitionPhase(StrEnum):
    showing = "showing"
    fading = "fading"


class SessionCreateRequest(BaseModel):
    # Stage size in pixels; pointer coordinates are interpreted against it.
    stage_width: float = Field(default=1600.0, gt=0)
    stage_height: float = Field(default=900.0, gt=0)


class PointerEventRequest(BaseModel):
    kind: Literal["down", "move", "up"]
    x: float
    y: float


class QuizSnapshot(BaseModel):
    phase: QuizPhase
    current_question_index: int
    current_question_id: str
    question_clicks: dict[str, int] = Field(default_factory=dict)
    selected_answers: dict[str, list[str]] = Field(default_factory=dict)
    is_in_interstitial: bool = False
    last_question_correct: bool | None = None


class ExplorationSnapshot(BaseModel):
    scene: str
    active: bool
    phase: DragPhase
    discovered_targets: list[str] = Field(default_factory=list)
    has_interacted: bool = False
    handle_x: float
    handle_y: float
    current_popup: str | None = None
    complete: bool = False


class SessionSnapshot(BaseModel):
    session_id: UUID
    title: str
    current_scene: str
    transition: TransitionPhase
    quiz: QuizSnapshot | None = None
    explorations: list[ExplorationSnapshot] = Field(default_factory=list)


class SessionListResponse(BaseModel):
    sessions: list[SessionSnapshot]


class ActionResponse(BaseModel):
    handled: bool
    session: SessionSnapshot


class StreamEvent(BaseModel):
    id: str
    fields: dict[str, str]


class EventListResponse(BaseModel):
    session_id: UUID
    events: list[StreamEvent]
