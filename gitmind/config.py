import copy
import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

from gitmind.errors import ConfigError
from gitmind.theme import THEMES

LOG = logging.getLogger(__name__)


# =============================================================================
# Configuration System
# =============================================================================

CONFIG_VERSION = "2.0"
CONFIG_DIR = Path.home() / ".config" / "gitmind"
CONFIG_FILE = CONFIG_DIR / "config.json"
LOG_FILE = CONFIG_DIR / "gitmind.log"

API_KEY_ENV = "CEREBRAS_API_KEY"

CONVENTIONS = ["conventional", "custom", "none"]
VISIBILITIES = ["public", "private"]
API_TIERS = ["free", "pro"]
AI_PROVIDERS = ["cerebras", "openai"]
LICENSES = ["MIT", "Apache-2.0", "GPL-3.0", "BSD-3-Clause", "None"]
GITIGNORES = ["Python", "Go", "Node", "Rust", "Java", "None"]


@dataclass
class GitSettings:
    main_branch: str = "main"
    protected_branches: list[str] = field(default_factory=lambda: ["main", "master", "develop"])
    auto_push: bool = False
    auto_pull: bool = False
    default_remote: str = "origin"


@dataclass
class GitHubSettings:
    enabled: bool = False
    default_visibility: str = "public"
    default_license: str = "MIT"
    default_gitignore: str = "Python"
    enable_issues: bool = True
    enable_wiki: bool = False
    enable_projects: bool = False
    pr_default_base: str = "main"


@dataclass
class CommitSettings:
    convention: str = "conventional"
    types: list[str] = field(default_factory=lambda: [
        "feat", "fix", "docs", "style", "refactor", "test", "chore",
    ])
    require_scope: bool = False
    require_breaking_marker: bool = True
    max_subject_length: int = 72


@dataclass
class NamingSettings:
    enforce: bool = False
    pattern: str = "feature/{description}"
    allowed_prefixes: list[str] = field(default_factory=lambda: [
        "feature", "hotfix", "bugfix", "release", "refactor",
    ])


@dataclass
class AISettings:
    provider: str = "cerebras"
    api_key: str = ""
    api_tier: str = "free"
    default_model: str = "llama-3.3-70b"
    fallback_model: str = "llama3.1-8b"
    max_diff_size: int = 100000
    include_context: bool = True

    def resolved_api_key(self) -> str:
        """Config value first, then the environment."""
        return self.api_key or os.environ.get(API_KEY_ENV, "")


@dataclass
class UISettings:
    theme: str = "claude-warm"


def _section(cls, data):
    """Build a settings dataclass from a dict, ignoring unknown keys."""
    if not isinstance(data, dict):
        return cls()
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class AppConfig:
    """Application configuration with persistence."""
    version: str = CONFIG_VERSION
    git: GitSettings = field(default_factory=GitSettings)
    github: GitHubSettings = field(default_factory=GitHubSettings)
    commits: CommitSettings = field(default_factory=CommitSettings)
    naming: NamingSettings = field(default_factory=NamingSettings)
    ai: AISettings = field(default_factory=AISettings)
    ui: UISettings = field(default_factory=UISettings)

    @classmethod
    def from_dict(cls, data: dict) -> "AppConfig":
        return cls(
            version=data.get("version", CONFIG_VERSION),
            git=_section(GitSettings, data.get("git")),
            github=_section(GitHubSettings, data.get("github")),
            commits=_section(CommitSettings, data.get("commits")),
            naming=_section(NamingSettings, data.get("naming")),
            ai=_section(AISettings, data.get("ai")),
            ui=_section(UISettings, data.get("ui")),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    def snapshot(self) -> "AppConfig":
        """Detached copy for background tasks; the live object stays on the UI thread."""
        return copy.deepcopy(self)

    @property
    def uses_conventional_commits(self) -> bool:
        return self.commits.convention == "conventional"

    def validate(self) -> None:
        if not self.git.main_branch.strip():
            raise ConfigError("git.main_branch cannot be empty")
        if self.commits.convention not in CONVENTIONS:
            raise ConfigError(f"unknown commit convention '{self.commits.convention}'")
        if self.commits.max_subject_length <= 0:
            raise ConfigError("commits.max_subject_length must be positive")
        if self.github.default_visibility not in VISIBILITIES:
            raise ConfigError(f"unknown visibility '{self.github.default_visibility}'")
        if self.naming.enforce and "{description}" not in self.naming.pattern:
            raise ConfigError("naming.pattern must contain {description}")
        if self.ai.max_diff_size <= 0:
            raise ConfigError("ai.max_diff_size must be positive")
        if self.ai.api_tier not in API_TIERS:
            raise ConfigError(f"unknown API tier '{self.ai.api_tier}'")
        if self.ui.theme not in THEMES:
            raise ConfigError(f"unknown theme '{self.ui.theme}'")


class ConfigStore:
    """Loads and saves AppConfig as JSON."""

    def __init__(self, path: Path = CONFIG_FILE) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> AppConfig:
        """Load config from disk or return defaults."""
        if not self.path.exists():
            LOG.info("no config at %s, using defaults", self.path)
            return AppConfig()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            raise ConfigError(f"cannot read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{self.path} does not contain a JSON object")
        return AppConfig.from_dict(data)

    def save(self, config: AppConfig) -> str | None:
        """Save config to disk. Returns an error message instead of raising."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(config.to_dict(), f, indent=2)
        except OSError as exc:
            LOG.warning("saving config to %s failed: %s", self.path, exc)
            return str(exc)
        LOG.info("config saved to %s", self.path)
        return None
