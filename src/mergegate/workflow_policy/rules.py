"""Text-level policy rules for GitHub Actions workflow files.

Each rule takes the workflow basename and its raw text and returns the
violations it found. Rules are line/regex scans on purpose: they must flag
policy breaks even in YAML that would not parse.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

ALLOWED_WRITE_SCOPES_BY_FILE: dict[str, frozenset[str]] = {
    "claude-auto-fix.yml": frozenset({"contents", "pull-requests", "issues", "id-token", "actions", "checks"}),
    "claude-assistant.yml": frozenset({"contents", "pull-requests", "issues", "id-token", "actions"}),
    "codex-assistant.yml": frozenset({"contents", "pull-requests", "issues", "id-token", "actions"}),
    "retry-stale-prs.yml": frozenset({"contents", "pull-requests", "issues", "checks"}),
    "claude-code-review.yml": frozenset({"contents", "pull-requests", "issues", "id-token", "actions"}),
    "retry-review-failures.yml": frozenset({"actions", "checks", "contents", "pull-requests", "issues"}),
    "refresh-open-pr-branches.yml": frozenset({"contents", "pull-requests", "issues"}),
    "branch-hygiene.yml": frozenset({"contents"}),
    "automation-canary.yml": frozenset({"contents", "pull-requests", "issues"}),
    "automation-gate.yml": frozenset(),
}

ALLOWED_MODELS: tuple[str, ...] = ("claude-opus-4-6", "gpt-5.3-codex")
ALLOWED_EFFORT = "xhigh"

BASH_STAR_MARKER = "workflow-policy: allow-bash-star"
ELIGIBILITY_GATE_REFERENCE = "mergegate eligibility"
MERGE_CAPABLE_WORKFLOWS: frozenset[str] = frozenset({"claude-auto-fix.yml", "retry-stale-prs.yml"})
REVIEW_WORKFLOW = "claude-code-review.yml"

_PERMISSIONS_RE = re.compile(r"^(\s*)permissions:\s*(.*)$")
_PERMISSION_ENTRY_RE = re.compile(r"^\s*([A-Za-z0-9-]+):\s*([A-Za-z-]+)\s*$")
_CLAUDE_ACTION_RE = re.compile(r"uses:\s*anthropics/claude-code-action@", re.MULTILINE)
_CODEX_ACTION_RE = re.compile(r"uses:\s*openai/codex-action@", re.MULTILINE)
_CLAUDE_MODEL_RE = re.compile(r"--model\s+([A-Za-z0-9._:-]+)")
_CODEX_MODEL_RE = re.compile(r"""^\s*model:\s*['"]?([A-Za-z0-9._:-]+)['"]?\s*$""", re.MULTILINE)
_CODEX_EFFORT_RE = re.compile(r"""^\s*effort:\s*['"]?([A-Za-z0-9._:-]+)['"]?\s*$""", re.MULTILINE)
_GH_PR_MERGE_RE = re.compile(r"\bgh\s+pr\s+merge\b")

_REVIEW_BANNED_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^\s*plugin_marketplaces:\s*", re.MULTILINE), "reintroduces plugin_marketplaces, which is not allowed by policy."),
    (re.compile(r"^\s*plugins:\s*", re.MULTILINE), "reintroduces plugins, which is not allowed by policy."),
    (re.compile(r"^\s*settings:\s*", re.MULTILINE), "reintroduces settings input, which is blocked by policy."),
    (re.compile(r"/code-review\b"), "reintroduces slash-command review prompts, which are not allowed by policy."),
)


@dataclass(frozen=True)
class PermissionEntry:
    """One permission grant found under a ``permissions:`` block."""

    scope: str
    value: str
    line: int


def collect_permission_entries(content: str) -> list[PermissionEntry]:
    """Find every permission grant, including inline ``permissions: write-all``."""
    entries: list[PermissionEntry] = []
    lines = content.splitlines()

    for index, line in enumerate(lines):
        match = _PERMISSIONS_RE.match(line)
        if not match:
            continue

        base_indent = len(match.group(1))
        if match.group(2).strip().lower() == "write-all":
            entries.append(PermissionEntry(scope="*", value="write-all", line=index + 1))

        for offset, next_line in enumerate(lines[index + 1 :], start=index + 2):
            stripped = next_line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            indent = len(next_line) - len(next_line.lstrip())
            if indent <= base_indent:
                break
            entry = _PERMISSION_ENTRY_RE.match(next_line)
            if entry:
                entries.append(PermissionEntry(scope=entry.group(1), value=entry.group(2).lower(), line=offset))

    return entries


def check_permissions(file_name: str, content: str) -> list[str]:
    violations: list[str] = []
    allowed = ALLOWED_WRITE_SCOPES_BY_FILE.get(file_name)

    for entry in collect_permission_entries(content):
        if entry.value == "write-all":
            violations.append(f"{file_name}:{entry.line} uses permissions: write-all, which is not allowed.")
            continue
        if entry.value != "write":
            continue
        if allowed is None or entry.scope not in allowed:
            violations.append(
                f"{file_name}:{entry.line} grants write permission to '{entry.scope}', "
                "which is outside policy for this workflow."
            )
    return violations


def check_models(file_name: str, content: str) -> list[str]:
    """Agent actions must pin an allow-listed model (and effort, for Codex)."""
    violations: list[str] = []
    uses_claude = bool(_CLAUDE_ACTION_RE.search(content))
    uses_codex = bool(_CODEX_ACTION_RE.search(content))
    claude_models = _CLAUDE_MODEL_RE.findall(content)
    codex_models = _CODEX_MODEL_RE.findall(content)
    codex_efforts = _CODEX_EFFORT_RE.findall(content)

    if uses_claude and not claude_models:
        violations.append(
            f"{file_name} uses anthropics/claude-code-action but does not declare an explicit --model value."
        )
    if uses_codex and not codex_models:
        violations.append(f"{file_name} uses openai/codex-action but does not declare an explicit model value.")
    if uses_codex and not codex_efforts:
        violations.append(f"{file_name} uses openai/codex-action but does not declare an explicit effort value.")

    allowed_list = ", ".join(ALLOWED_MODELS)
    for model in [*claude_models, *codex_models]:
        if model.lower() not in ALLOWED_MODELS:
            violations.append(f"{file_name} uses disallowed model '{model}'. Allowed models: {allowed_list}.")

    for effort in codex_efforts:
        if effort.lower() != ALLOWED_EFFORT:
            violations.append(f"{file_name} uses disallowed effort '{effort}'. Allowed effort: {ALLOWED_EFFORT}.")
    return violations


def check_unrestricted_shell(file_name: str, content: str) -> list[str]:
    if "Bash(*)" in content and BASH_STAR_MARKER not in content:
        return [
            f"{file_name} includes Bash(*) but is missing an explicit policy marker comment: {BASH_STAR_MARKER}."
        ]
    return []


def check_merge_bypass(file_name: str, content: str) -> list[str]:
    """Direct merge calls must go through the eligibility gate."""
    merges = "pulls.merge(" in content or bool(_GH_PR_MERGE_RE.search(content))
    if merges and ELIGIBILITY_GATE_REFERENCE not in content:
        return [f"{file_name} contains direct merge logic but does not reference `{ELIGIBILITY_GATE_REFERENCE}`."]
    return []


def check_merge_capable_reference(file_name: str, content: str) -> list[str]:
    if file_name in MERGE_CAPABLE_WORKFLOWS and ELIGIBILITY_GATE_REFERENCE not in content:
        return [f"{file_name} is merge-capable but does not reference `{ELIGIBILITY_GATE_REFERENCE}`."]
    return []


def check_review_workflow(file_name: str, content: str) -> list[str]:
    if file_name != REVIEW_WORKFLOW:
        return []
    return [f"{file_name} {message}" for pattern, message in _REVIEW_BANNED_PATTERNS if pattern.search(content)]


RULES = (
    check_permissions,
    check_models,
    check_unrestricted_shell,
    check_merge_bypass,
    check_merge_capable_reference,
    check_review_workflow,
)
