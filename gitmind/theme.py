from dataclasses import dataclass

from rich.style import Style


@dataclass(frozen=True)
class Theme:
    """Named colour roles handed to every render() call."""
    name: str
    primary: str
    secondary: str
    accent: str
    text: str
    muted: str
    success: str
    warning: str
    error: str
    border: str

    def style(self, role: str, bold: bool = False) -> Style:
        return Style(color=getattr(self, role), bold=bold)


THEMES: dict[str, Theme] = {
    "claude-warm": Theme(
        name="claude-warm",
        primary="#D97757",
        secondary="#C4A484",
        accent="#E8B04B",
        text="#F5E6D3",
        muted="#8B7D6B",
        success="#7FB069",
        warning="#E8B04B",
        error="#D64545",
        border="#A0826D",
    ),
    "ocean-blue": Theme(
        name="ocean-blue",
        primary="#4A90D9",
        secondary="#5FB3B3",
        accent="#7FDBFF",
        text="#E0F0FF",
        muted="#6B8BA4",
        success="#2ECC71",
        warning="#F1C40F",
        error="#E74C3C",
        border="#3B6E99",
    ),
    "forest-green": Theme(
        name="forest-green",
        primary="#4CAF50",
        secondary="#8BC34A",
        accent="#CDDC39",
        text="#E8F5E9",
        muted="#6D8B6F",
        success="#66BB6A",
        warning="#FFB300",
        error="#E53935",
        border="#2E7D32",
    ),
    "monochrome": Theme(
        name="monochrome",
        primary="white",
        secondary="bright_black",
        accent="white",
        text="white",
        muted="bright_black",
        success="white",
        warning="white",
        error="white",
        border="bright_black",
    ),
}

DEFAULT_THEME = "claude-warm"


def get_theme(name: str) -> Theme:
    return THEMES.get(name, THEMES[DEFAULT_THEME])
