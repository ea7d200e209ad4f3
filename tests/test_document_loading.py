from __future__ import annotations

import json
from pathlib import Path

import pytest

from scenie.assets.document import GameDocument, PictureElement, QuizElement
from scenie.assets.registry import DocumentLoadError, load_document_file, load_game_document, parse_document


def _minimal(**scene_overrides: object) -> dict:
    scene = {"name": "start", "initial": True, "elements": []}
    scene.update(scene_overrides)
    return {"game": {"title": "t"}, "scenes": [scene]}


def test_fixture_document_loads_with_camel_case_keys(document: GameDocument) -> None:
    assert document.game.title == "Fixture Presentation"
    assert document.game.fade_duration == 500
    assert document.game.default_scale_duration == 200
    assert document.initial_scene().name == "title"

    start = document.element_index()["start-btn"]
    assert isinstance(start, PictureElement)
    assert start.aspect_ratio == "3/1"
    assert [a.action for a in start.click_actions] == ["scale", "navigate"]


def test_quiz_marker_is_found_inside_its_scene(document: GameDocument) -> None:
    placement = document.quiz_placement()
    assert placement is not None
    scene, quiz = placement
    assert scene.name == "quiz"
    assert [q.id for q in quiz.questions] == ["q1", "q2", "q3"]
    assert quiz.questions[0].click_budget == 2
    # Quiz markers never show up as addressable elements.
    assert not any(isinstance(e, QuizElement) for e in document.element_index().values())


def test_thresholds_are_sorted_highest_first(document: GameDocument) -> None:
    placement = document.quiz_placement()
    assert placement is not None
    _, quiz = placement
    assert [t.min_score for t in quiz.outcomes.thresholds] == [0.8, 0.5, 0]


def test_document_is_immutable(document: GameDocument) -> None:
    with pytest.raises(Exception):
        document.game.title = "changed"  # type: ignore[misc]


def test_click_budget_defaults_to_number_of_answers() -> None:
    doc = parse_document(
        _minimal(
            elements=[
                {"type": "picture", "id": "q"},
                {"type": "picture", "id": "a"},
                {"type": "picture", "id": "b"},
                {
                    "type": "quiz",
                    "config": {
                        "questions": [
                            {"id": "q1", "questionElement": "q", "answers": [{"element": "a", "correct": True}, {"element": "b"}]}
                        ],
                        "outcomes": {"thresholds": [{"minScore": 0, "scene": "start"}]},
                    },
                },
            ]
        )
    )
    placement = doc.quiz_placement()
    assert placement is not None
    assert placement[1].questions[0].click_budget == 2


@pytest.mark.parametrize(
    "raw, message",
    [
        (
            {"scenes": [{"name": "a", "initial": True}, {"name": "a"}]},
            "Duplicate scene names",
        ),
        (
            {"scenes": [{"name": "a"}, {"name": "b"}]},
            "Exactly one initial scene",
        ),
        (
            _minimal(autoTransition={"delay": 10, "scene": "nowhere"}),
            "Unknown scene 'nowhere'",
        ),
        (
            _minimal(
                elements=[
                    {"type": "picture", "id": "x"},
                    {"type": "container", "id": "box", "elements": [{"type": "picture", "id": "x"}]},
                ]
            ),
            "Duplicate element ids: x",
        ),
        (
            _minimal(
                elements=[
                    {
                        "type": "picture",
                        "id": "go",
                        "clickable": True,
                        "clickActions": [{"action": "navigate", "target": "scene", "value": "missing"}],
                    }
                ]
            ),
            "Unknown scene 'missing'",
        ),
        (
            _minimal(
                elements=[
                    {"type": "picture", "id": "a"},
                    {
                        "type": "quiz",
                        "config": {
                            "questions": [{"id": "q1", "questionElement": "ghost", "answers": [{"element": "a"}]}],
                            "outcomes": {"thresholds": [{"minScore": 0, "scene": "start"}]},
                        },
                    },
                ]
            ),
            "unknown element 'ghost'",
        ),
        (
            _minimal(
                elements=[
                    {"type": "picture", "id": "q"},
                    {"type": "picture", "id": "a"},
                    {
                        "type": "quiz",
                        "config": {
                            "questions": [{"id": "q1", "questionElement": "q", "answers": [{"element": "a"}]}],
                            "outcomes": {"thresholds": [{"minScore": 0.5, "scene": "start"}]},
                        },
                    },
                ]
            ),
            "catch-all",
        ),
        (
            _minimal(
                exploration={
                    "targets": [
                        {"id": "t", "hitbox": {"position": {"x": 0, "y": 0}, "size": {"width": "10%", "aspectRatio": "1/0"}}}
                    ]
                }
            ),
            "zero denominator",
        ),
    ],
)
def test_invalid_documents_are_rejected_at_load(raw: dict, message: str) -> None:
    with pytest.raises(DocumentLoadError) as exc:
        parse_document(raw)
    assert message in str(exc.value)


def test_schema_violations_become_load_errors() -> None:
    with pytest.raises(DocumentLoadError):
        parse_document({"scenes": [{"name": "a", "initial": True, "elements": [{"type": "video", "id": "v"}]}]})


def test_load_document_file_reports_missing_and_malformed_files(tmp_path: Path) -> None:
    with pytest.raises(DocumentLoadError, match="not found"):
        load_document_file(tmp_path / "nope.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(DocumentLoadError, match="not valid JSON"):
        load_document_file(bad)


def test_missing_document_falls_back_unless_strict(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SCENIE_DOCUMENT", raising=False)

    monkeypatch.setenv("SCENIE_STRICT_DOCUMENT", "1")
    with pytest.raises(DocumentLoadError):
        load_game_document(root=tmp_path)

    monkeypatch.setenv("SCENIE_STRICT_DOCUMENT", "0")
    doc = load_game_document(root=tmp_path)
    assert doc.initial_scene().name == "title"


def test_document_path_can_be_overridden(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "custom.json"
    path.write_text(json.dumps(_minimal()), encoding="utf-8")
    monkeypatch.setenv("SCENIE_DOCUMENT", str(path))
    monkeypatch.setenv("SCENIE_STRICT_DOCUMENT", "1")

    doc = load_game_document(root=tmp_path / "elsewhere")
    assert doc.initial_scene().name == "start"
