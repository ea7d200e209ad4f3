from __future__ import annotations

from scenie.api.models import TransitionPhase
from scenie.assets.document import GameDocument
from scenie.core.timers import ManualScheduler
from scenie.presentation import PAGE_BACKGROUND_ID, ROOT_ID, HeadlessPresenter, build_scene_nodes
from scenie.scenes import SceneController, TransitionIntent
from scenie.session import PresentationSession


def _visible_scenes(session: PresentationSession) -> list[str]:
    return [s.name for s in session.document.scenes if session.presenter.is_visible(s.node_id)]


def test_start_shows_initial_scene_and_emits_load(session: PresentationSession, sink) -> None:
    assert session.current_scene == "title"
    assert _visible_scenes(session) == ["title"]
    assert [e.as_fields() for e in sink.events] == [
        {"scene": "title", "sub_scene": "", "action": "scene_load", "self": "", "value": "", "target": ""}
    ]


def test_switch_fades_then_swaps(session: PresentationSession, scheduler: ManualScheduler, sink) -> None:
    assert session.scenes.switch_scene("great")
    assert session.scenes.fsm.phase == TransitionPhase.fading
    assert session.presenter.has_class("title-scene", "hidden")
    assert session.current_scene == "title"

    scheduler.advance(499)
    assert session.current_scene == "title"
    scheduler.advance(1)

    assert session.current_scene == "great"
    assert session.scenes.fsm.phase == TransitionPhase.showing
    assert _visible_scenes(session) == ["great"]
    assert session.presenter.get_style("title-scene", "display") == "none"
    assert sink.of("scene_load")[-1].scene == "great"


def test_custom_duration(session: PresentationSession, scheduler: ManualScheduler) -> None:
    session.scenes.switch_scene("great", 100)
    scheduler.advance(100)
    assert session.current_scene == "great"


def test_unknown_scene_is_refused(session: PresentationSession, scheduler: ManualScheduler) -> None:
    assert not session.scenes.switch_scene("nowhere")
    assert scheduler.pending_count == 0
    assert session.scenes.fsm.phase == TransitionPhase.showing
    assert session.current_scene == "title"


def test_auto_transition_fires_after_delay(session: PresentationSession, scheduler: ManualScheduler, sink) -> None:
    session.scenes.switch_scene("teaser")
    scheduler.advance(500)
    assert session.current_scene == "teaser"
    assert session.presenter.node(ROOT_ID).backgrounds[0].value == "img/teaser-bg.png"  # type: ignore[union-attr]

    scheduler.advance(3000 + 500)
    assert session.current_scene == "title"
    assert [e.scene for e in sink.of("scene_load")] == ["title", "teaser", "title"]


def test_new_switch_cancels_pending_auto_transition(
    session: PresentationSession, scheduler: ManualScheduler, sink
) -> None:
    session.scenes.switch_scene("teaser")
    scheduler.advance(500)
    assert session.current_scene == "teaser"

    # Leave before the teaser's auto-transition fires.
    scheduler.advance(1000)
    session.scenes.switch_scene("great")
    scheduler.run_until_idle()

    assert session.current_scene == "great"
    assert [e.scene for e in sink.of("scene_load")] == ["title", "teaser", "great"]


def test_double_switch_results_in_one_scene_change(
    session: PresentationSession, scheduler: ManualScheduler, sink
) -> None:
    session.scenes.switch_scene("great")
    scheduler.advance(200)
    session.scenes.switch_scene("ok")
    scheduler.run_until_idle()

    assert session.current_scene == "ok"
    assert [e.scene for e in sink.of("scene_load")] == ["title", "ok"]
    assert _visible_scenes(session) == ["ok"]


def test_clear_scene_restores_declared_state(session: PresentationSession) -> None:
    presenter = session.presenter
    presenter.remove_class("hint", "hidden")
    presenter.remove_class("start-btn", "clickable")
    presenter.set_style("start-btn", opacity="0.3", transform="translate(-50%, -50%) scale(0.8)")
    presenter.create_node("start-btn-icon", parent_id="start-btn", kind="icon", classes={"affirmation-icon"})

    session.scenes.clear_scene("title")
    session.scenes.clear_scene("title")

    assert not presenter.is_visible("hint")
    assert presenter.has_class("start-btn", "clickable")
    assert presenter.get_style("start-btn", "opacity") == ""
    assert presenter.get_style("start-btn", "transform") == "translate(-50%, -50%)"
    assert not presenter.has_node("start-btn-icon")


def test_clear_on_entry_walks_nested_containers(session: PresentationSession, scheduler: ManualScheduler) -> None:
    presenter = session.presenter
    presenter.create_node("q3-b-frame-overlay", parent_id="q3-b-frame", kind="overlay", classes={"affirmation-overlay"})
    presenter.set_style("q3-b", opacity="0.2")

    session.scenes.switch_scene("quiz")
    scheduler.run_until_idle()

    assert not presenter.has_node("q3-b-frame-overlay")
    assert presenter.get_style("q3-b", "opacity") == ""


def test_hooks_receive_intent_and_exit_runs_before_enter(document: GameDocument, sink) -> None:
    presenter = HeadlessPresenter()
    build_scene_nodes(presenter, document)
    scheduler = ManualScheduler()
    scenes = SceneController(document=document, presenter=presenter, sink=sink, scheduler=scheduler)

    calls: list[str] = []
    scenes.add_exit_hook("title", lambda: calls.append("exit:title"))
    scenes.add_enter_hook("great", lambda intent: calls.append(f"enter:great:{intent.value}"))
    scenes.start()

    scenes.switch_scene("great", intent=TransitionIntent.continuation)
    scheduler.run_until_idle()

    assert calls == ["exit:title", "enter:great:continuation"]


def test_game_level_backgrounds_are_applied(session: PresentationSession) -> None:
    node = session.presenter.node(PAGE_BACKGROUND_ID)
    assert node is not None
    assert node.backgrounds[0].value == "#101010"
