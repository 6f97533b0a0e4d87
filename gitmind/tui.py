"""
Textual driver.

Feeds keys, task completions and ticks into the orchestrator one at a time on
the app's event loop, carries out the commands it returns, and redraws the
single content widget from ``Orchestrator.render()``.
"""

import argparse
import logging
import sys
from pathlib import Path

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import Footer, Header, Label, Static
from textual.worker import Worker, WorkerState

from gitmind import __version__
from gitmind.config import CONFIG_FILE, LOG_FILE, AppConfig, ConfigStore
from gitmind.errors import ConfigError
from gitmind.events import Command, Event, Key, Notify, Quit, RunTask, ScheduleTick, Tick
from gitmind.git import GitBackend
from gitmind.github import GitHubClient
from gitmind.logging_utils import configure_logging
from gitmind.orchestrator import Orchestrator
from gitmind.tasks import Tasks

LOG = logging.getLogger(__name__)

# Textual would otherwise use these for focus cycling and quitting
FORWARDED_KEYS = ("tab", "shift+tab", "ctrl+c")


class GitMindApp(App):
    ENABLE_COMMAND_PALETTE = False

    CSS = """
    Screen {
        background: $surface;
    }

    #main-container {
        height: 1fr;
        padding: 0 1;
    }

    #content {
        width: 100%;
        height: auto;
    }

    #status-bar {
        dock: bottom;
        height: 1;
        background: $primary-background;
        padding: 0 1;
    }

    #status-bar Label {
        width: 100%;
    }
    """

    BINDINGS = [
        Binding("tab", "forward('tab')", "Next", show=False, priority=True),
        Binding("shift+tab", "forward('shift+tab')", "Previous", show=False, priority=True),
        Binding("ctrl+c", "forward('ctrl+c')", "Quit", priority=True),
    ]

    def __init__(self, repo_path: Path, config: AppConfig, store: ConfigStore, onboarding: bool = False) -> None:
        super().__init__()
        self.repo_path = repo_path
        tasks = Tasks(GitBackend(repo_path), GitHubClient(repo_path), store)
        self.orchestrator = Orchestrator(config, store, tasks, onboarding=onboarding)

    def compose(self) -> ComposeResult:
        yield Header()
        with VerticalScroll(id="main-container"):
            yield Static("", id="content")
        with Horizontal(id="status-bar"):
            yield Label("", id="status-label")
        yield Footer()

    def on_mount(self) -> None:
        self.title = "GitMind"
        self.sub_title = str(self.repo_path)
        self._run_commands(self.orchestrator.init())
        self.refresh_view()

    # -------------------------------------------------------------------------
    # Event loop glue
    # -------------------------------------------------------------------------

    def _feed(self, event: Event) -> None:
        self._run_commands(self.orchestrator.handle(event))
        self.refresh_view()

    def _run_commands(self, commands: list[Command]) -> None:
        for cmd in commands:
            if isinstance(cmd, RunTask):
                self.run_worker(cmd.fn, name=cmd.name, thread=True, exit_on_error=False)
            elif isinstance(cmd, ScheduleTick):
                self.set_timer(cmd.delay, lambda: self._feed(Tick()))
            elif isinstance(cmd, Notify):
                self.notify(cmd.message, severity=cmd.severity)
            elif isinstance(cmd, Quit):
                self.exit(message=cmd.message or None)

    def refresh_view(self) -> None:
        self.query_one("#content", Static).update(self.orchestrator.render())
        orch = self.orchestrator
        status = f"{orch.state.value}"
        if orch.dashboard.data.repo is not None:
            repo = orch.dashboard.data.repo
            status += f"  │  {repo.branch}  │  {repo.sync_summary()}"
        self.query_one("#status-label", Label).update(status)

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        if event.state == WorkerState.SUCCESS:
            self._feed(event.worker.result)
        elif event.state == WorkerState.ERROR:
            # Task bodies catch their own errors, so this is a bug in a task builder
            LOG.error("worker %s failed: %s", event.worker.name, event.worker.error)

    def on_key(self, event: events.Key) -> None:
        if event.key in FORWARDED_KEYS:
            return
        event.stop()
        event.prevent_default()
        # Punctuation arrives as names like "left_square_bracket"; the screens want the character
        if event.is_printable and event.character != " ":
            key = event.character
        else:
            key = event.key
        self._feed(Key(key, event.character))

    def action_forward(self, key: str) -> None:
        self._feed(Key(key))


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitmind",
        description="Menu-driven terminal UI for git with AI-assisted commits and merges.",
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Repository to open (default: current directory).",
    )
    parser.add_argument(
        "--onboard",
        action="store_true",
        help="Run the setup wizard even if a config file exists.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_FILE,
        help=f"Config file to use (default: {CONFIG_FILE}).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (can be specified multiple times).",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    configure_logging(args.verbose, LOG_FILE)

    repo_path = Path(args.path).resolve()
    if not repo_path.is_dir():
        print(f"gitmind: {repo_path} is not a directory", file=sys.stderr)
        return 1

    store = ConfigStore(args.config)
    try:
        config = store.load()
    except ConfigError as exc:
        print(f"gitmind: {exc}", file=sys.stderr)
        return 1

    onboarding = args.onboard or not store.exists()
    LOG.info("starting in %s (onboarding=%s)", repo_path, onboarding)
    app = GitMindApp(repo_path, config, store, onboarding=onboarding)
    app.run()
    return app.return_code or 0


if __name__ == "__main__":
    sys.exit(main())
