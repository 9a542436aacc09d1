"""Merge policy: which checks gate a merge, and how policy files are loaded."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from mergegate.schemas.validator import validate_data

DEFAULT_POLICY_RELATIVE_PATH = Path(".mergegate/policy.yaml")

POLICY_REASON_MISSING = "POLICY_MISSING"
POLICY_REASON_PARSE_ERROR = "POLICY_PARSE_ERROR"
POLICY_REASON_SCHEMA_INVALID = "POLICY_SCHEMA_INVALID"
POLICY_REASON_UNKNOWN_PRESET = "POLICY_UNKNOWN_PRESET"


class PolicyError(ValueError):
    """Merge policy configuration error."""

    reason_code: str

    def __init__(self, message: str, reason_code: str = POLICY_REASON_SCHEMA_INVALID) -> None:
        super().__init__(message)
        self.reason_code = reason_code


@dataclass(frozen=True)
class MergePolicy:
    """Named checks and labels the evaluator consults."""

    name: str
    required_checks: tuple[str, ...]
    required_check_prefixes: tuple[str, ...] = ()
    review_check: str | None = "review"
    workflow_safety_check: str = "Workflow Safety"
    opt_out_labels: tuple[str, ...] = ("no-auto-merge",)
    workflow_paths: tuple[str, ...] = (".github/workflows/",)

    @property
    def review_required(self) -> bool:
        return self.review_check is not None and self.review_check in self.required_checks

    def touches_workflows(self, filenames: list[str] | tuple[str, ...]) -> bool:
        """True if any path lies under a CI-configuration directory."""
        return any(name.startswith(self.workflow_paths) for name in filenames)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "required_checks": list(self.required_checks),
            "required_check_prefixes": list(self.required_check_prefixes),
            "review_check": self.review_check,
            "workflow_safety_check": self.workflow_safety_check,
            "opt_out_labels": list(self.opt_out_labels),
            "workflow_paths": list(self.workflow_paths),
        }


# Single consolidated gate standing in for the underlying jobs.
AGGREGATE_POLICY = MergePolicy(
    name="aggregate",
    required_checks=("Automation Gate",),
)

LEGACY_POLICY = MergePolicy(
    name="legacy",
    required_checks=("Quality", "review"),
    required_check_prefixes=("Coverage Gate (",),
)

PRESETS: dict[str, MergePolicy] = {
    AGGREGATE_POLICY.name: AGGREGATE_POLICY,
    LEGACY_POLICY.name: LEGACY_POLICY,
}

DEFAULT_POLICY = AGGREGATE_POLICY

POLICY_FILE_TEMPLATE: dict[str, Any] = {
    "preset": DEFAULT_POLICY.name,
    "required_checks": list(DEFAULT_POLICY.required_checks),
    "required_check_prefixes": list(DEFAULT_POLICY.required_check_prefixes),
    "review_check": DEFAULT_POLICY.review_check,
    "workflow_safety_check": DEFAULT_POLICY.workflow_safety_check,
    "opt_out_labels": list(DEFAULT_POLICY.opt_out_labels),
    "workflow_paths": list(DEFAULT_POLICY.workflow_paths),
}


def get_preset(name: str) -> MergePolicy:
    """Return a built-in policy by name."""
    try:
        return PRESETS[name.strip().lower()]
    except KeyError:
        known = ", ".join(sorted(PRESETS))
        raise PolicyError(
            f"unknown policy preset `{name}` (known: {known})",
            POLICY_REASON_UNKNOWN_PRESET,
        ) from None


def policy_path_for_repo(repo_root: Path) -> Path:
    """Return canonical policy file path for a repository."""
    return repo_root.resolve() / DEFAULT_POLICY_RELATIVE_PATH


def ensure_default_policy(repo_root: Path, *, force: bool = False) -> Path:
    """Create default policy YAML deterministically."""
    output_path = policy_path_for_repo(repo_root)
    if output_path.exists() and not force:
        raise FileExistsError(f"Policy file already exists: {output_path}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    rendered = yaml.safe_dump(POLICY_FILE_TEMPLATE, sort_keys=True)
    output_path.write_text(rendered, encoding="utf-8")
    return output_path


def policy_from_dict(raw: dict[str, Any]) -> MergePolicy:
    """Validate a policy mapping and overlay it on its preset."""
    ok, errors = validate_data(raw, "merge_policy", strict=False)
    if not ok:
        raise PolicyError("policy schema validation failed: " + "; ".join(errors))

    base = get_preset(str(raw.get("preset", DEFAULT_POLICY.name)))
    overrides: dict[str, Any] = {}
    for key in ("required_checks", "required_check_prefixes", "opt_out_labels", "workflow_paths"):
        if key in raw:
            overrides[key] = _normalize_names(raw[key])
    for key in ("review_check", "workflow_safety_check"):
        if key in raw:
            value = raw[key]
            overrides[key] = value.strip() if isinstance(value, str) else value

    if not overrides:
        return base
    policy = replace(base, name=f"{base.name}+file", **overrides)
    if not policy.required_checks and not policy.required_check_prefixes:
        raise PolicyError("policy requires no checks: set required_checks or required_check_prefixes")
    return policy


def load_policy(path: Path) -> MergePolicy:
    """Load and validate a merge policy file."""
    if not path.exists():
        raise PolicyError(f"Missing policy file at {path}", POLICY_REASON_MISSING)

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise PolicyError(f"policy.yaml parse error: {exc}", POLICY_REASON_PARSE_ERROR) from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise PolicyError(
            "policy.yaml parse error: expected mapping at top level",
            POLICY_REASON_PARSE_ERROR,
        )
    return policy_from_dict(raw)


def resolve_policy(
    *,
    preset: str | None = None,
    policy_file: Path | None = None,
    repo_root: Path | None = None,
) -> MergePolicy:
    """Pick the effective policy: explicit file, explicit preset, repo file, default."""
    if policy_file is not None:
        return load_policy(policy_file)
    if preset:
        return get_preset(preset)
    if repo_root is not None:
        candidate = policy_path_for_repo(repo_root)
        if candidate.exists():
            return load_policy(candidate)
    return DEFAULT_POLICY


def _normalize_names(value: list[str]) -> tuple[str, ...]:
    """Strip names, drop blanks and duplicates, keep declaration order."""
    seen: set[str] = set()
    normalized: list[str] = []
    for item in value:
        cleaned = item.strip()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            normalized.append(cleaned)
    return tuple(normalized)
