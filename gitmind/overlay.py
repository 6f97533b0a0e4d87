"""
Blocking layers drawn over the active screen.

Only one overlay exists at a time. Confirmation and error dialogs take every
keypress until dismissed; the loading box takes none but marks the app busy.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from rich.align import Align
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from gitmind.events import Command, Key
from gitmind.theme import Theme
from gitmind.widgets import button_row

LOG = logging.getLogger(__name__)

NO, YES = 0, 1
LOADING_OPERATIONS = {
    "commit-analyzing": "Analyzing Changes",
    "merge-analyzing": "Analyzing Merge",
    "commit-executing": "Executing Commit",
    "merge-executing": "Executing Merge",
}


class OverlayKind(Enum):
    NONE = "none"
    LOADING = "loading"
    CONFIRMATION = "confirmation"
    ERROR = "error"


@dataclass
class OverlayState:
    kind: OverlayKind = OverlayKind.NONE
    message: str = ""
    selected_button: int = NO
    on_confirm: Callable[[], list[Command]] | None = None
    from_analysis: bool = False


@dataclass
class KeyOutcome:
    """What a dismissed dialog asks the orchestrator to do next."""
    commands: list[Command]
    dismissed_error: bool = False
    from_analysis: bool = False


class OverlayManager:
    def __init__(self) -> None:
        self.state = OverlayState()

    @property
    def kind(self) -> OverlayKind:
        return self.state.kind

    def intercepts_input(self) -> bool:
        return self.state.kind in (OverlayKind.CONFIRMATION, OverlayKind.ERROR)

    def is_busy(self) -> bool:
        return self.state.kind == OverlayKind.LOADING

    # Priority: confirmation > error > loading > none

    def show_loading(self, message: str) -> None:
        if self.intercepts_input():
            LOG.debug("loading '%s' hidden behind %s", message, self.state.kind.value)
            return
        self.state = OverlayState(OverlayKind.LOADING, message)

    def clear_loading(self) -> None:
        if self.state.kind == OverlayKind.LOADING:
            self.state = OverlayState()

    def confirm(self, message: str, on_confirm: Callable[[], list[Command]]) -> None:
        self.state = OverlayState(OverlayKind.CONFIRMATION, message, NO, on_confirm)

    def show_error(self, message: str, from_analysis: bool = False) -> None:
        if self.state.kind == OverlayKind.CONFIRMATION:
            return
        self.state = OverlayState(OverlayKind.ERROR, message, from_analysis=from_analysis)

    def clear(self) -> None:
        self.state = OverlayState()

    def handle_key(self, key: Key) -> KeyOutcome:
        state = self.state
        if state.kind == OverlayKind.ERROR:
            self.clear()
            return KeyOutcome([], dismissed_error=True, from_analysis=state.from_analysis)

        if key.key in ("left", "h"):
            state.selected_button = NO
        elif key.key in ("right", "l"):
            state.selected_button = YES
        elif key.key == "tab":
            state.selected_button = YES - state.selected_button
        elif key.key == "escape":
            self.clear()
        elif key.key == "enter":
            self.clear()
            if state.selected_button == YES and state.on_confirm is not None:
                return KeyOutcome(state.on_confirm())
        return KeyOutcome([])

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def render(self, theme: Theme, base: RenderableType, operation: str = "", dots: int = 0) -> RenderableType:
        state = self.state
        if state.kind == OverlayKind.NONE:
            return base

        if state.kind == OverlayKind.CONFIRMATION:
            body = Group(
                Text(state.message, justify="center"),
                Text(""),
                Align.center(button_row(theme, ["No", "Yes"], state.selected_button)),
                Text(""),
                Text("←/→ or Tab to switch • Enter to confirm • Esc to cancel",
                     style=theme.style("muted"), justify="center"),
            )
            title = Text("ℹ Confirmation", style=theme.style("primary", bold=True))
            return Align.center(Panel(body, title=title, border_style=theme.border, width=64),
                                vertical="middle")

        if state.kind == OverlayKind.ERROR:
            body = Group(
                Text(state.message, style=theme.style("text")),
                Text(""),
                Text("Press any key to continue", style=theme.style("muted"), justify="center"),
            )
            title = Text("✗ ERROR", style=theme.style("error", bold=True))
            return Align.center(Panel(body, title=title, border_style=theme.error, width=72),
                                vertical="middle")

        dotted = ("." * dots).ljust(3)
        body = Group(
            Text(LOADING_OPERATIONS.get(operation, "Working"), style=theme.style("primary", bold=True),
                 justify="center"),
            Text(""),
            Text(f"{state.message}{dotted}", justify="center"),
            Text(""),
            Text("Please wait while we process your request...", style=theme.style("muted"),
                 justify="center"),
        )
        title = Text("ℹ AI ANALYSIS", style=theme.style("accent", bold=True))
        box = Panel(body, title=title, border_style=theme.primary, width=60)
        return Group(base, Align.center(box))
