"""Static policy linter for CI workflow files."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from mergegate.workflow_policy.rules import RULES, collect_permission_entries


def lint_workflow(file_name: str, content: str) -> list[str]:
    """Run every rule against one workflow's text."""
    violations: list[str] = []
    for rule in RULES:
        violations.extend(rule(file_name, content))
    return violations


def check_workflow_files(paths: Iterable[str | Path]) -> list[str]:
    """Lint each workflow file; unreadable paths are violations too."""
    violations: list[str] = []
    for raw_path in paths:
        path = Path(raw_path)
        if not path.is_file():
            violations.append(f"{raw_path}: file not found.")
            continue
        violations.extend(lint_workflow(path.name, path.read_text(encoding="utf-8")))
    return violations


__all__ = ["check_workflow_files", "collect_permission_entries", "lint_workflow"]
