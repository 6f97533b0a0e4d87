import logging
from dataclasses import dataclass

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from gitmind.events import Command, Event, Key
from gitmind.models import MergeAnalysis, MergeChoice
from gitmind.theme import Theme
from gitmind.widgets import Button, Form, TextField, menu

LOG = logging.getLogger(__name__)


@dataclass
class StrategyOption:
    strategy: str
    label: str
    description: str
    recommended: bool = False


def build_strategies(analysis: MergeAnalysis) -> list[StrategyOption]:
    recommended = analysis.suggested_strategy or "regular"
    options = [
        StrategyOption("squash", "Squash merge", "Combine all commits into one"),
        StrategyOption("regular", "Regular merge", "Keep history with a merge commit"),
    ]
    if analysis.can_merge and recommended == "fast-forward":
        options.append(StrategyOption("fast-forward", "Fast-forward", "Move the target pointer, no merge commit"))
    for option in options:
        option.recommended = option.strategy == recommended
    return options


def default_merge_message(analysis: MergeAnalysis) -> str:
    return analysis.merge_message or f"Merge branch '{analysis.source}'"


class MergeDecisionScreen:
    def __init__(self, analysis: MergeAnalysis) -> None:
        self.analysis = analysis
        self.strategies = build_strategies(analysis)
        self.selected = next((i for i, s in enumerate(self.strategies) if s.recommended), 0)
        self.form: Form | None = None
        self._decision: MergeChoice | None = None
        self._return = False

    def has_decision(self) -> bool:
        return self._decision is not None

    def take_decision(self) -> MergeChoice | None:
        decision, self._decision = self._decision, None
        return decision

    def should_return_to_parent(self) -> bool:
        return self._return

    def is_editing(self) -> bool:
        return self.form is not None

    def update(self, event: Event) -> list[Command]:
        if not isinstance(event, Key):
            return []
        if self.form is None:
            k = event.key
            if k in ("up", "k"):
                self.selected = max(0, self.selected - 1)
            elif k in ("down", "j"):
                self.selected = min(len(self.strategies) - 1, self.selected + 1)
            elif k == "enter":
                self.form = Form([
                    TextField("message", "Message", default_merge_message(self.analysis)),
                    Button("confirm", "Confirm"),
                    Button("cancel", "Cancel"),
                ])
            elif k == "q":
                self._return = True
            return []

        if event.key == "escape":
            self.form = None
            return []
        pressed = self.form.handle_key(event)
        if pressed == "cancel":
            self.form = None
        elif pressed == "confirm":
            strategy = self.strategies[self.selected].strategy
            self._decision = MergeChoice(
                source=self.analysis.source,
                target=self.analysis.target,
                strategy=strategy,
                message=self.form["message"].value.strip(),
            )
            LOG.info("merge decision: %s", strategy)
        return []

    def render(self, theme: Theme) -> RenderableType:
        a = self.analysis
        header = Text(f"{a.source} → {a.target} • {len(a.commits)} commit(s)", style=theme.secondary)
        if a.can_merge:
            header.append(" • no conflicts", style=theme.success)
        else:
            header.append(f" • {len(a.conflicts)} conflict(s)", style=theme.error)

        labels = [s.label + ("  (recommended)" if s.recommended else "") for s in self.strategies]
        info = [Text(a.reasoning or "-", style=theme.text), Text("")]
        for path in a.conflicts[:10]:
            info.append(Text(f"✗ {path}", style=theme.error))
        for commit in a.commits[:8]:
            info.append(Text(f"{commit.short_hash} {commit.message}", style=theme.muted))

        parts: list[RenderableType] = [
            header,
            Panel(menu(theme, labels, self.selected, [s.description for s in self.strategies]),
                  title="Merge strategy", border_style=theme.primary),
            Panel(Group(*info), title="Details", border_style=theme.border),
        ]
        if self.form is not None:
            parts.append(Panel(self.form.render(theme), title="Confirm merge", border_style=theme.accent))
            parts.append(Text("Tab move • Enter confirm • Esc back", style=theme.muted))
        else:
            parts.append(Text("↑↓ choose • Enter review • Esc dashboard", style=theme.muted))
        return Group(*parts)
