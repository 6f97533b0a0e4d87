import json
import logging
import shutil
import subprocess
import webbrowser
from pathlib import Path

from gitmind.errors import GitHubError
from gitmind.models import CreateRepoOptions, RepoInfo

LOG = logging.getLogger(__name__)

GH_TIMEOUT = 30


def run_gh(args: list[str], cwd: Path, timeout: int = GH_TIMEOUT) -> tuple[bool, str]:
    try:
        result = subprocess.run(
            ["gh"] + args,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        if result.returncode == 0:
            return True, result.stdout.strip()
        else:
            error = result.stderr.strip() or result.stdout.strip()
            for line in error.split('\n'):
                if line.strip():
                    return False, line.strip()
            return False, "Unknown error"
    except subprocess.TimeoutExpired:
        return False, "Command timed out"
    except OSError as e:
        return False, str(e)


class GitHubClient:
    """GitHub operations through the gh CLI."""

    def __init__(self, repo_path: Path) -> None:
        self.repo_path = repo_path

    def is_available(self) -> bool:
        return shutil.which("gh") is not None

    def is_authenticated(self) -> bool:
        ok, _ = run_gh(["auth", "status"], self.repo_path, timeout=10)
        return ok

    def _call(self, args: list[str]) -> str:
        ok, output = run_gh(args, self.repo_path)
        if not ok:
            raise GitHubError(f"gh {' '.join(args[:2])}: {output}")
        return output

    def view_repo_web(self) -> None:
        ok, output = run_gh(["repo", "view", "--json", "url", "--jq", ".url"], self.repo_path)
        if not ok:
            raise GitHubError(f"gh repo view: {output}")
        if not webbrowser.open(output):
            raise GitHubError(f"could not open a browser for {output}")

    def get_repo_info(self) -> RepoInfo:
        output = self._call(["repo", "view", "--json", "nameWithOwner,description,visibility,url"])
        try:
            data = json.loads(output) if output else {}
        except json.JSONDecodeError as exc:
            raise GitHubError(f"unexpected gh output: {exc}") from exc
        return RepoInfo(
            full_name=data.get("nameWithOwner", ""),
            description=data.get("description") or "",
            visibility=(data.get("visibility") or "").lower(),
            url=data.get("url", ""),
        )

    def get_current_user(self) -> str:
        return self._call(["api", "user", "--jq", ".login"])

    def create_repository(self, options: CreateRepoOptions) -> str:
        """Create the repository and return its clone URL."""
        args = ["repo", "create", options.name, "--private" if options.private else "--public"]
        if options.description:
            args += ["--description", options.description]
        if options.license and options.license != "None":
            args += ["--license", options.license]
        if options.gitignore and options.gitignore != "None":
            args += ["--gitignore", options.gitignore]
        if options.add_readme:
            args.append("--add-readme")
        if not options.enable_issues:
            args.append("--disable-issues")
        if not options.enable_wiki:
            args.append("--disable-wiki")
        LOG.info("gh %s", " ".join(args))
        output = self._call(args)
        # gh prints the new repository's web URL
        url = output.splitlines()[-1].strip() if output else ""
        if not url.startswith("https://"):
            raise GitHubError(f"gh repo create returned no URL: {output!r}")
        return url + ".git"
