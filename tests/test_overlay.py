from gitmind.events import Key, Notify
from gitmind.overlay import NO, YES, OverlayKind, OverlayManager


def test_only_one_overlay_at_a_time():
    overlay = OverlayManager()

    overlay.show_loading("Analyzing changes with AI")
    overlay.confirm("Cancel commit analysis?", lambda: [])

    assert overlay.kind == OverlayKind.CONFIRMATION
    assert not overlay.is_busy()


def test_loading_stays_hidden_behind_dialogs():
    overlay = OverlayManager()
    overlay.show_error("boom")

    overlay.show_loading("Committing changes")

    assert overlay.kind == OverlayKind.ERROR
    assert overlay.state.message == "boom"


def test_error_does_not_replace_a_confirmation():
    overlay = OverlayManager()
    overlay.confirm("Quit?", lambda: [])

    overlay.show_error("late failure")

    assert overlay.kind == OverlayKind.CONFIRMATION


def test_any_key_dismisses_an_error():
    overlay = OverlayManager()
    overlay.show_error("AI analysis failed", from_analysis=True)

    outcome = overlay.handle_key(Key("x", "x"))

    assert overlay.kind == OverlayKind.NONE
    assert outcome.dismissed_error
    assert outcome.from_analysis


def test_confirmation_defaults_to_no():
    confirmed = []
    overlay = OverlayManager()
    overlay.confirm("Delete?", lambda: confirmed.append(True) or [])

    assert overlay.state.selected_button == NO
    outcome = overlay.handle_key(Key("enter"))

    assert confirmed == []
    assert outcome.commands == []
    assert overlay.kind == OverlayKind.NONE


def test_confirmation_buttons_and_yes():
    overlay = OverlayManager()
    overlay.confirm("Delete?", lambda: [Notify("gone")])

    overlay.handle_key(Key("tab"))
    assert overlay.state.selected_button == YES
    overlay.handle_key(Key("h", "h"))
    assert overlay.state.selected_button == NO
    overlay.handle_key(Key("right"))

    outcome = overlay.handle_key(Key("enter"))

    assert outcome.commands == [Notify("gone")]
    assert overlay.kind == OverlayKind.NONE


def test_escape_closes_confirmation_without_confirming():
    overlay = OverlayManager()
    overlay.confirm("Delete?", lambda: [Notify("gone")])
    overlay.handle_key(Key("right"))

    outcome = overlay.handle_key(Key("escape"))

    assert outcome.commands == []
    assert not overlay.intercepts_input()


def test_clear_loading_leaves_dialogs_alone():
    overlay = OverlayManager()
    overlay.confirm("Delete?", lambda: [])

    overlay.clear_loading()

    assert overlay.kind == OverlayKind.CONFIRMATION
