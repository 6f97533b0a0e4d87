import logging
from dataclasses import dataclass
from enum import Enum

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from gitmind.events import Command, Event, Key
from gitmind.models import ActionType, CommitAnalysis, CommitChoice
from gitmind.theme import Theme
from gitmind.widgets import Button, Form, TextField, menu

LOG = logging.getLogger(__name__)

PRIMARY_LABELS = {
    ActionType.COMMIT_DIRECT: "Commit to current branch",
    ActionType.REVIEW: "Manual review required",
    ActionType.MERGE: "Merge to parent branch",
}
ALTERNATIVE_LABELS = {
    ActionType.COMMIT_DIRECT: "Commit directly",
    ActionType.CREATE_BRANCH: "Create new branch",
    ActionType.REVIEW: "Review manually",
    ActionType.MERGE: "Merge to parent",
}


@dataclass
class CommitOption:
    action: ActionType
    label: str
    description: str
    message: str
    branch_name: str
    confidence: float


def build_options(analysis: CommitAnalysis, message: str = "", branch_name: str = "") -> list[CommitOption]:
    """Primary recommendation first, then one option per alternative."""
    decision = analysis.decision
    message = message or decision.suggested_message
    branch_name = branch_name or decision.branch_name

    if decision.action == ActionType.CREATE_BRANCH:
        primary_label = f"Create branch '{branch_name}'"
    else:
        primary_label = PRIMARY_LABELS.get(decision.action, "Other option")
    options = [CommitOption(
        action=decision.action,
        label=primary_label,
        description=decision.reasoning,
        message=message,
        branch_name=branch_name,
        confidence=decision.confidence,
    )]
    for alt in decision.alternatives:
        options.append(CommitOption(
            action=alt.action,
            label=ALTERNATIVE_LABELS.get(alt.action, "Other option"),
            description=alt.description,
            message=message,
            branch_name=branch_name,
            confidence=alt.confidence,
        ))
    return options


class Mode(Enum):
    BROWSING = "browsing"
    EDITING = "editing"


class CommitDecisionScreen:
    """Pick one of the analyzer's options, adjust message and branch, confirm."""

    def __init__(self, analysis: CommitAnalysis) -> None:
        self.analysis = analysis
        self.custom_message = ""
        self.custom_branch = ""
        self.options = build_options(analysis)
        self.selected = 0
        self.mode = Mode.BROWSING
        self.form: Form | None = None
        self._decision: CommitChoice | None = None
        self._return = False

    def has_decision(self) -> bool:
        return self._decision is not None

    def take_decision(self) -> CommitChoice | None:
        decision, self._decision = self._decision, None
        return decision

    def should_return_to_parent(self) -> bool:
        return self._return

    def is_editing(self) -> bool:
        return self.mode == Mode.EDITING

    def _open_form(self) -> None:
        option = self.options[self.selected]
        skip = set() if option.action == ActionType.CREATE_BRANCH else {"branch"}
        self.form = Form([
            TextField("message", "Message", option.message),
            TextField("branch", "Branch", option.branch_name, placeholder="feature/..."),
            Button("confirm", "Confirm"),
            Button("cancel", "Cancel"),
        ], skip=skip)
        self.mode = Mode.EDITING

    def update(self, event: Event) -> list[Command]:
        if not isinstance(event, Key):
            return []
        if self.mode == Mode.BROWSING:
            k = event.key
            if k in ("up", "k"):
                self.selected = max(0, self.selected - 1)
            elif k in ("down", "j"):
                self.selected = min(len(self.options) - 1, self.selected + 1)
            elif k == "enter":
                self._open_form()
            elif k == "q":
                self._return = True
            return []

        if event.key == "escape":
            self.mode = Mode.BROWSING
            self.form = None
            return []
        pressed = self.form.handle_key(event)
        if pressed == "cancel":
            self.mode = Mode.BROWSING
            self.form = None
        elif pressed == "confirm":
            values = self.form.values()
            self.custom_message = values["message"].strip()
            self.custom_branch = values["branch"].strip()
            self.options = build_options(self.analysis, self.custom_message, self.custom_branch)
            option = self.options[self.selected]
            self._decision = CommitChoice(option.action, option.message, option.branch_name)
            LOG.info("commit decision: %s", option.action.value)
        return []

    def render(self, theme: Theme) -> RenderableType:
        analysis = self.analysis
        header = Text(f"Branch {analysis.branch.name} • {analysis.repo.change_summary()}",
                      style=theme.secondary)
        if analysis.model:
            header.append(f" • {analysis.model}", style=theme.muted)

        labels = [f"{o.label}  ({o.confidence:.0%})" for o in self.options]
        current = self.options[self.selected]
        detail = Group(
            Text(current.description or "-", style=theme.text),
            Text(""),
            Text(f"Message: {current.message}", style=theme.style("accent")),
        )
        parts: list[RenderableType] = [
            header,
            Panel(menu(theme, labels, self.selected), title="AI recommendation", border_style=theme.primary),
            Panel(detail, title="Details", border_style=theme.border),
        ]
        if self.form is not None:
            parts.append(Panel(self.form.render(theme), title="Confirm commit", border_style=theme.accent))
            parts.append(Text("Tab move • Enter confirm • Esc back", style=theme.muted))
        else:
            parts.append(Text("↑↓ choose • Enter review • Esc dashboard", style=theme.muted))
        return Group(*parts)
