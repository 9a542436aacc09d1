"""Eligibility domain types: pull request snapshot, check runs, decisions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from mergegate.eligibility.policy import DEFAULT_POLICY, MergePolicy

PrState = Literal["open", "closed", "merged"]

Reason = Literal[
    "pr_not_open",
    "sha_mismatch",
    "no_auto_merge_label",
    "pending_checks",
    "merge_conflict",
    "behind_main",
    "review_failed",
    "workflow_safety_missing",
    "workflow_safety_failed",
    "safe_to_merge",
]

REASON_PR_NOT_OPEN: Reason = "pr_not_open"
REASON_SHA_MISMATCH: Reason = "sha_mismatch"
REASON_NO_AUTO_MERGE_LABEL: Reason = "no_auto_merge_label"
REASON_PENDING_CHECKS: Reason = "pending_checks"
REASON_MERGE_CONFLICT: Reason = "merge_conflict"
REASON_BEHIND_MAIN: Reason = "behind_main"
REASON_REVIEW_FAILED: Reason = "review_failed"
REASON_WORKFLOW_SAFETY_MISSING: Reason = "workflow_safety_missing"
REASON_WORKFLOW_SAFETY_FAILED: Reason = "workflow_safety_failed"
REASON_SAFE_TO_MERGE: Reason = "safe_to_merge"

REASONS: tuple[Reason, ...] = (
    REASON_PR_NOT_OPEN,
    REASON_SHA_MISMATCH,
    REASON_NO_AUTO_MERGE_LABEL,
    REASON_PENDING_CHECKS,
    REASON_MERGE_CONFLICT,
    REASON_BEHIND_MAIN,
    REASON_REVIEW_FAILED,
    REASON_WORKFLOW_SAFETY_MISSING,
    REASON_WORKFLOW_SAFETY_FAILED,
    REASON_SAFE_TO_MERGE,
)

PASSING_CONCLUSIONS: frozenset[str] = frozenset({"success", "skipped"})


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a GitHub ISO-8601 timestamp; empty values yield None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def short_sha(sha: str | None) -> str:
    """Abbreviate a commit id for human-readable details."""
    return sha[:7] if sha else "unknown"


@dataclass(frozen=True)
class PullRequestSnapshot:
    """Pull request metadata as seen at one point in time."""

    number: int
    state: PrState
    head_sha: str
    base_ref: str
    mergeable: bool | None
    mergeable_state: str
    labels: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> PullRequestSnapshot:
        """Build a snapshot from a GitHub pull request JSON object."""
        state = str(payload.get("state") or "closed")
        if state == "closed" and payload.get("merged"):
            state = "merged"
        head = payload.get("head") or {}
        base = payload.get("base") or {}
        labels = frozenset(
            label["name"]
            for label in payload.get("labels") or []
            if isinstance(label, dict) and label.get("name")
        )
        return cls(
            number=int(payload.get("number") or 0),
            state=state,  # type: ignore[arg-type]
            head_sha=str(head.get("sha") or ""),
            base_ref=str(base.get("ref") or "main"),
            mergeable=payload.get("mergeable"),
            mergeable_state=str(payload.get("mergeable_state") or "unknown"),
            labels=labels,
        )


@dataclass(frozen=True)
class CheckRun:
    """One reported result of a CI job against a commit."""

    name: str
    status: str  # queued, in_progress, completed
    conclusion: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> CheckRun:
        return cls(
            name=str(payload["name"]),
            status=str(payload.get("status") or "queued"),
            conclusion=payload.get("conclusion"),
            started_at=parse_timestamp(payload.get("started_at")),
            completed_at=parse_timestamp(payload.get("completed_at")),
        )

    @property
    def completed(self) -> bool:
        return self.status == "completed"

    @property
    def passed(self) -> bool:
        """True when completed with a success or skipped conclusion."""
        return self.completed and self.conclusion in PASSING_CONCLUSIONS

    def summary(self) -> str:
        return f"{self.status}/{self.conclusion or 'none'}"


@dataclass(frozen=True)
class EvaluationInput:
    """Everything the evaluator needs to judge one pull request."""

    pull_request: PullRequestSnapshot
    expected_head_sha: str | None = None
    require_workflow_safety: bool = False
    workflow_files_changed: bool = False
    check_runs: tuple[CheckRun, ...] = ()
    policy: MergePolicy = DEFAULT_POLICY

    @property
    def requires_workflow_safety(self) -> bool:
        return bool(self.require_workflow_safety and self.workflow_files_changed)


@dataclass(frozen=True)
class Decision:
    """Merge-eligibility verdict.

    ``eligible`` is derived from ``reason`` so the two can never disagree.
    """

    reason: Reason
    details: str
    requires_workflow_safety: bool

    @property
    def eligible(self) -> bool:
        return self.reason == REASON_SAFE_TO_MERGE

    def to_dict(self) -> dict[str, Any]:
        return {
            "eligible": self.eligible,
            "reason": self.reason,
            "details": self.details,
            "requires_workflow_safety": self.requires_workflow_safety,
        }
