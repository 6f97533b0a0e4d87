"""AI analysis over an OpenAI-compatible chat completions endpoint."""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any
from urllib import error, request

from gitmind.config import AISettings
from gitmind.errors import AIError
from gitmind.models import ActionType, Alternative, BranchInfo, Decision, RepoStatus

LOG = logging.getLogger(__name__)

PROVIDER_URLS = {
    "cerebras": "https://api.cerebras.ai/v1/chat/completions",
    "openai": "https://api.openai.com/v1/chat/completions",
}

REQUEST_TIMEOUT = 60.0
MAX_ATTEMPTS = 3
MERGE_STRATEGIES = ("regular", "squash", "fast-forward")

_DECISION_SCHEMA = {
    "type": "object",
    "properties": {
        "commit_message": {"type": "string"},
        "action": {"type": "string", "enum": ["commit-direct", "create-branch", "review"]},
        "confidence": {"type": "number"},
        "reasoning": {"type": "string"},
        "branch_name": {"type": "string"},
        "alternatives": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "action": {"type": "string"},
                    "description": {"type": "string"},
                    "confidence": {"type": "number"},
                },
                "required": ["action", "description", "confidence"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["commit_message", "action", "confidence", "reasoning"],
    "additionalProperties": False,
}

_MERGE_SCHEMA = {
    "type": "object",
    "properties": {
        "merge_message": {"type": "string"},
        "strategy": {"type": "string", "enum": list(MERGE_STRATEGIES)},
        "reasoning": {"type": "string"},
    },
    "required": ["merge_message", "strategy", "reasoning"],
    "additionalProperties": False,
}


@dataclass
class CommitAnalysisRequest:
    repo: RepoStatus
    branch: BranchInfo
    diff: str
    recent_log: list[str] = field(default_factory=list)
    user_prompt: str = ""
    conventional: bool = True


@dataclass
class MergeMessageRequest:
    source: str
    target: str
    commits: list[str]
    can_merge: bool = True


@dataclass
class MergeSuggestion:
    strategy: str
    message: str
    reasoning: str


def reduce_diff(diff: str, limit: int) -> str:
    if len(diff) <= limit:
        return diff
    return diff[:limit] + "\n... [diff truncated]"


def parse_decision(content: str) -> Decision:
    """Turn the model's JSON answer into a Decision."""
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise AIError(f"AI response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise AIError("AI response is not a JSON object")

    message = str(data.get("commit_message", "")).strip()
    if not message:
        raise AIError("AI response has no commit message")

    alternatives = []
    for item in data.get("alternatives") or []:
        if not isinstance(item, dict):
            continue
        alternatives.append(Alternative(
            action=ActionType.parse(str(item.get("action", ""))),
            description=str(item.get("description", "")),
            confidence=_clamp(item.get("confidence", 0.0)),
        ))

    return Decision(
        action=ActionType.parse(str(data.get("action", ""))),
        reasoning=str(data.get("reasoning", "")),
        confidence=_clamp(data.get("confidence", 0.0)),
        suggested_message=message,
        branch_name=str(data.get("branch_name") or ""),
        alternatives=alternatives,
    )


def parse_merge_suggestion(content: str) -> MergeSuggestion:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise AIError(f"AI response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise AIError("AI response is not a JSON object")
    strategy = str(data.get("strategy", "regular"))
    if strategy not in MERGE_STRATEGIES:
        strategy = "regular"
    return MergeSuggestion(
        strategy=strategy,
        message=str(data.get("merge_message", "")).strip(),
        reasoning=str(data.get("reasoning", "")),
    )


def _clamp(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(1.0, number))


class AIAnalyzer:
    """Thin client for commit and merge recommendations."""

    def __init__(self, settings: AISettings, sleep=time.sleep) -> None:
        self.settings = settings
        self._sleep = sleep

    @property
    def model(self) -> str:
        return self.settings.default_model

    def diff_limit(self) -> int:
        if self.settings.api_tier == "free":
            return max(1, self.settings.max_diff_size // 4)
        return self.settings.max_diff_size

    def build_commit_prompt(self, req: CommitAnalysisRequest) -> str:
        lines = [
            "You are an expert Git workflow assistant. Analyze the following code changes and provide recommendations.",
            "",
            f"Repository: {req.repo.path}",
            f"Current branch: {req.branch.name}",
            f"Changes: {req.repo.change_summary()}",
            "",
        ]
        if req.recent_log and self.settings.include_context:
            lines.append("Recent commits:")
            lines.extend(f"- {message}" for message in req.recent_log[:3])
            lines.append("")
        if req.diff:
            lines.append("Changes (git diff):")
            lines.append(reduce_diff(req.diff, self.diff_limit()))
            lines.append("")
        if req.user_prompt:
            lines.append(f"User context: {req.user_prompt}")
            lines.append("")
        first = "1. A clear, concise commit message"
        if req.conventional:
            first += " following conventional commits format (type(scope): description)"
        lines += [
            "Based on these changes, provide:",
            first,
            "2. Your recommendation: should this be committed directly or in a new branch?",
            "3. Brief reasoning for your recommendation",
            "4. Alternative approaches if applicable",
        ]
        return "\n".join(lines)

    def build_merge_prompt(self, req: MergeMessageRequest) -> str:
        lines = [
            "You are an expert Git workflow assistant. Write a merge commit message and pick a merge strategy.",
            "",
            f"Merging '{req.source}' into '{req.target}' ({len(req.commits)} commit(s)).",
            "Conflicts expected: " + ("no" if req.can_merge else "yes"),
            "",
            "Commits:",
        ]
        lines.extend(f"- {message}" for message in req.commits[:20])
        lines += ["", "Strategies: regular, squash, fast-forward."]
        return "\n".join(lines)

    def analyze_commit(self, req: CommitAnalysisRequest) -> Decision:
        content = self._complete(self.build_commit_prompt(req), "commit_analysis", _DECISION_SCHEMA)
        decision = parse_decision(content)
        LOG.info("commit analysis: %s (%.2f)", decision.action.value, decision.confidence)
        return decision

    def suggest_merge(self, req: MergeMessageRequest) -> MergeSuggestion:
        content = self._complete(self.build_merge_prompt(req), "merge_analysis", _MERGE_SCHEMA)
        return parse_merge_suggestion(content)

    def _complete(self, prompt: str, schema_name: str, schema: dict) -> str:
        api_key = self.settings.resolved_api_key()
        if not api_key:
            raise AIError("no API key configured (set ai.api_key in Settings)")
        url = PROVIDER_URLS.get(self.settings.provider)
        if not url:
            raise AIError(f"unsupported AI provider '{self.settings.provider}'")

        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "strict": True, "schema": schema},
            },
            "max_completion_tokens": 1000,
            "temperature": 0.7,
        }

        status, response_payload = 0, None
        for attempt in range(1, MAX_ATTEMPTS + 1):
            status, response_payload = self._request_json(url, api_key=api_key, data=payload)
            if status == 200:
                break
            if status not in (0, 429) and status < 500:
                break
            if attempt < MAX_ATTEMPTS:
                LOG.warning("AI request failed (status=%s), retry %d", status, attempt)
                self._sleep(2 ** (attempt - 1))

        if status != 200 or not isinstance(response_payload, dict):
            detail = ""
            if isinstance(response_payload, dict):
                detail = str(response_payload.get("message") or response_payload.get("error") or "")
            raise AIError(f"AI request failed (status={status}) {detail}".strip())

        choices = response_payload.get("choices", [])
        if not isinstance(choices, list) or not choices:
            raise AIError("AI response has no choices")
        message = choices[0].get("message", {}) if isinstance(choices[0], dict) else {}
        content = message.get("content", "") if isinstance(message, dict) else ""
        if not isinstance(content, str) or not content.strip():
            raise AIError("AI response is empty")
        return content

    def _request_json(
        self,
        url: str,
        *,
        api_key: str,
        data: dict[str, Any],
        timeout: float = REQUEST_TIMEOUT,
    ) -> tuple[int, dict[str, Any] | None]:
        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {api_key}"}
        body = json.dumps(data).encode("utf-8")
        req = request.Request(url, headers=headers, data=body, method="POST")
        try:
            with request.urlopen(req, timeout=timeout) as response:
                status = int(getattr(response, "status", 200))
                raw_body = response.read().decode("utf-8", errors="ignore")
                try:
                    payload = json.loads(raw_body) if raw_body else {}
                except json.JSONDecodeError:
                    payload = {}
                return status, payload if isinstance(payload, dict) else {}
        except error.HTTPError as exc:
            raw_body = exc.read().decode("utf-8", errors="ignore")
            try:
                payload = json.loads(raw_body) if raw_body else {}
            except json.JSONDecodeError:
                payload = {}
            return int(exc.code), payload if isinstance(payload, dict) else {}
        except (error.URLError, OSError) as exc:
            LOG.warning("AI request to %s failed: %s", url, exc)
            return 0, None
