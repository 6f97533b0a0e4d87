from gitmind.events import Key
from gitmind.widgets import Choice, Form, TextField, Toggle


def _type(field, *keys):
    for k in keys:
        field.handle_key(Key(k, k if len(k) == 1 else None))


def test_text_field_starts_with_cursor_at_end():
    field = TextField("name", "Name", "feature/x")

    _type(field, "y")

    assert field.value == "feature/xy"
    assert field.cursor == 10


def test_text_field_edits_mid_string():
    field = TextField("name", "Name", "feature/lgin")

    _type(field, "left", "left", "left", "o")
    assert field.value == "feature/login"

    _type(field, "home", "delete", "F")
    assert field.value == "Feature/login"

    _type(field, "end", "backspace")
    assert field.value == "Feature/logi"


def test_cursor_stays_inside_the_value():
    field = TextField("name", "Name", "ab")

    _type(field, "right", "right", "home", "left", "left", "backspace")

    assert field.value == "ab"
    assert field.cursor == 0


def test_ctrl_u_clears_before_cursor():
    field = TextField("msg", "Message", "fix: typo")

    _type(field, "left", "left", "left", "left", "ctrl+u")

    assert field.value == "typo"
    assert field.cursor == 0


def test_choice_ignores_letter_keys():
    choice = Choice("theme", "Theme", ["a", "b", "c"])

    assert choice.handle_key(Key("h", "h")) is False
    assert choice.handle_key(Key("l", "l")) is False
    assert choice.index == 0

    choice.handle_key(Key("left"))
    assert choice.value == "c"


def test_form_arrows_move_text_cursor_not_focus():
    form = Form([TextField("name", "Name", "abc"), Toggle("flag", "Flag")])

    form.handle_key(Key("left"))

    assert form.focused.name == "name"
    assert form["name"].cursor == 2
