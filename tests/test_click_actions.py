from __future__ import annotations

from scenie.core.timers import ManualScheduler
from scenie.session import PresentationSession


def test_navigation_button_emits_and_waits_for_scale(
    session: PresentationSession, scheduler: ManualScheduler, sink
) -> None:
    assert session.click("start-btn")

    click = sink.of("button_click")[0]
    assert click.as_fields() == {
        "scene": "title",
        "sub_scene": "",
        "action": "button_click",
        "self": "start-btn",
        "value": "navigate",
        "target": "quiz",
    }
    assert session.presenter.get_style("start-btn", "transform") == "translate(-50%, -50%) scale(0.9)"

    scheduler.advance(100)
    assert session.presenter.get_style("start-btn", "transform") == "translate(-50%, -50%)"
    # Navigation starts after twice the scale duration.
    assert session.scenes.fsm.phase.value == "showing"
    scheduler.advance(100)
    assert session.scenes.fsm.phase.value == "fading"

    scheduler.advance(500)
    assert session.current_scene == "quiz"


def test_visibility_action(session: PresentationSession) -> None:
    assert not session.presenter.is_visible("hint")
    assert session.click("hint-btn")
    assert session.presenter.is_visible("hint")


def test_answer_clicks_report_correctness_and_question(
    session: PresentationSession, scheduler: ManualScheduler, sink
) -> None:
    session.click("start-btn")
    scheduler.run_until_idle()

    session.click("q1-a")
    session.click("q1-c")

    answers = sink.of("button_click")[1:]
    assert [(e.element, e.value, e.sub_scene, e.scene) for e in answers] == [
        ("q1-a", "correct", "q1", "quiz"),
        ("q1-c", "incorrect", "q1", "quiz"),
    ]


def test_elements_in_hidden_scenes_or_unknown_ids_are_ignored(session: PresentationSession, sink) -> None:
    assert not session.click("retry-btn")
    assert not session.click("q1-a")
    assert not session.click("no-such-node")
    # Not clickable at all.
    assert not session.click("title-logo")
    assert sink.of("button_click") == []


def test_repeated_navigation_clicks_change_scene_once(
    session: PresentationSession, scheduler: ManualScheduler, sink
) -> None:
    session.click("explore-btn")
    session.click("explore-btn")
    scheduler.run_until_idle()

    assert session.current_scene == "explore"
    assert [e.scene for e in sink.of("scene_load")] == ["title", "explore"]


def test_transition_started_during_press_cancels_delayed_navigation(make_session, scheduler: ManualScheduler, sink) -> None:
    def title_auto_transition(raw: dict) -> None:
        title = next(s for s in raw["scenes"] if s["name"] == "title")
        title["autoTransition"] = {"delay": 150, "scene": "teaser"}

    session = make_session(title_auto_transition)
    # Navigation to the quiz is due at 200ms; the auto-transition starts at 150ms.
    assert session.click("start-btn")

    scheduler.advance(150 + 500 + 500)

    assert session.current_scene == "teaser"
    assert [e.scene for e in sink.of("scene_load")] == ["title", "teaser"]
