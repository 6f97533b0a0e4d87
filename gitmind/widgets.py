"""Keyboard-driven form fields and small rendering helpers shared by the screens."""

from dataclasses import dataclass, field

from rich.console import Group, RenderableType
from rich.text import Text

from gitmind.events import Key
from gitmind.theme import Theme


def button_row(theme: Theme, labels: list[str], selected: int) -> Text:
    row = Text()
    for i, label in enumerate(labels):
        if i:
            row.append("   ")
        if i == selected:
            row.append(f" {label} ", style=f"bold reverse {theme.primary}")
        else:
            row.append(f" {label} ", style=theme.muted)
    return row


def menu(theme: Theme, labels: list[str], cursor: int, hints: list[str] | None = None) -> Text:
    out = Text()
    for i, label in enumerate(labels):
        if i:
            out.append("\n")
        if i == cursor:
            out.append(f"▶ {label}", style=theme.style("primary", bold=True))
        else:
            out.append(f"  {label}", style=theme.text)
        if hints and i < len(hints) and hints[i]:
            out.append(f"  {hints[i]}", style=theme.muted)
    return out


def status_line(theme: Theme, error: str = "", success: str = "") -> Text:
    if error:
        return Text(f"✗ {error}", style=theme.error)
    if success:
        return Text(f"✓ {success}", style=theme.success)
    return Text("")


# =============================================================================
# Form fields
# =============================================================================

@dataclass
class TextField:
    name: str
    label: str
    value: str = ""
    placeholder: str = ""
    masked: bool = False
    cursor: int = -1
    captures_text = True

    def __post_init__(self) -> None:
        if self.cursor < 0:
            self.cursor = len(self.value)

    def handle_key(self, key: Key) -> bool:
        k = key.key
        pos = min(self.cursor, len(self.value))
        if k == "left":
            self.cursor = max(0, pos - 1)
        elif k == "right":
            self.cursor = min(len(self.value), pos + 1)
        elif k in ("home", "ctrl+a"):
            self.cursor = 0
        elif k in ("end", "ctrl+e"):
            self.cursor = len(self.value)
        elif k == "backspace":
            if pos:
                self.value = self.value[:pos - 1] + self.value[pos:]
                self.cursor = pos - 1
        elif k == "delete":
            self.value = self.value[:pos] + self.value[pos + 1:]
        elif k == "ctrl+u":
            # Clears everything before the cursor, like a shell
            self.value = self.value[pos:]
            self.cursor = 0
        elif key.is_printable:
            self.value = self.value[:pos] + key.character + self.value[pos:]
            self.cursor = pos + 1
        else:
            return False
        return True

    def render(self, theme: Theme, focused: bool) -> Text:
        line = Text(f"{self.label}: ", style=theme.style("secondary", bold=focused))
        shown = "•" * len(self.value) if self.masked else self.value
        if not focused:
            if shown:
                line.append(shown, style=theme.text)
            elif self.placeholder:
                line.append(self.placeholder, style=theme.muted)
            return line
        pos = min(self.cursor, len(shown))
        line.append(shown[:pos], style=theme.text)
        if pos < len(shown):
            line.append(shown[pos], style=f"reverse {theme.primary}")
            line.append(shown[pos + 1:], style=theme.text)
        else:
            line.append("█", style=theme.primary)
            if not shown and self.placeholder:
                line.append(self.placeholder, style=theme.muted)
        return line


@dataclass
class Toggle:
    name: str
    label: str
    value: bool = False
    captures_text = False

    def handle_key(self, key: Key) -> bool:
        if key.key in ("enter", "space"):
            self.value = not self.value
            return True
        return False

    def render(self, theme: Theme, focused: bool) -> Text:
        box = "[x]" if self.value else "[ ]"
        style = theme.style("primary", bold=True) if focused else theme.style("text")
        return Text(f"{box} {self.label}", style=style)


@dataclass
class Choice:
    name: str
    label: str
    options: list[str] = field(default_factory=list)
    index: int = 0
    captures_text = False

    @property
    def value(self) -> str:
        return self.options[self.index] if self.options else ""

    def select(self, value: str) -> "Choice":
        if value in self.options:
            self.index = self.options.index(value)
        return self

    def handle_key(self, key: Key) -> bool:
        if not self.options:
            return False
        if key.key == "left":
            self.index = (self.index - 1) % len(self.options)
            return True
        if key.key in ("right", "enter", "space"):
            self.index = (self.index + 1) % len(self.options)
            return True
        return False

    def render(self, theme: Theme, focused: bool) -> Text:
        line = Text(f"{self.label}: ", style=theme.style("secondary", bold=focused))
        for i, option in enumerate(self.options):
            if i:
                line.append(" ")
            mark = "◉" if i == self.index else "○"
            line.append(f"{mark} {option}", style=theme.primary if i == self.index else theme.muted)
        return line


@dataclass
class Button:
    name: str
    label: str
    value: None = None
    captures_text = False

    def handle_key(self, key: Key) -> bool:
        return False

    def render(self, theme: Theme, focused: bool) -> Text:
        if focused:
            return Text(f" {self.label} ", style=f"bold reverse {theme.primary}")
        return Text(f" {self.label} ", style=theme.muted)


class Form:
    """A vertical list of fields with one focused at a time."""

    def __init__(self, fields: list, skip: set[str] | None = None) -> None:
        self.fields = fields
        self.skip = skip or set()
        self.focus = 0

    def __getitem__(self, name: str):
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    def values(self) -> dict:
        return {f.name: f.value for f in self.fields if not isinstance(f, Button)}

    @property
    def focused(self):
        return self.fields[self.focus]

    def captures_text(self) -> bool:
        return self.focused.captures_text

    def focus_on(self, name: str) -> None:
        for i, f in enumerate(self.fields):
            if f.name == name:
                self.focus = i
                return

    def move(self, step: int) -> None:
        for _ in range(len(self.fields)):
            self.focus = (self.focus + step) % len(self.fields)
            if self.fields[self.focus].name not in self.skip:
                return

    def handle_key(self, key: Key) -> str | None:
        """Returns the name of a pressed button, if any."""
        if key.key in ("tab", "down"):
            self.move(1)
            return None
        if key.key in ("shift+tab", "up"):
            self.move(-1)
            return None
        current = self.focused
        if isinstance(current, Button):
            if key.key in ("enter", "space"):
                return current.name
            return None
        if current.handle_key(key):
            return None
        if key.key == "enter":
            # Enter on a text field advances, like tab
            self.move(1)
        return None

    def render(self, theme: Theme) -> RenderableType:
        rows = []
        buttons = Text()
        for i, f in enumerate(self.fields):
            if f.name in self.skip:
                continue
            if isinstance(f, Button):
                if buttons:
                    buttons.append("   ")
                buttons.append_text(f.render(theme, i == self.focus))
            else:
                rows.append(f.render(theme, i == self.focus))
        if buttons:
            rows.append(Text(""))
            rows.append(buttons)
        return Group(*rows)
