"""Merge-eligibility evaluator.

``evaluate`` is pure: it reads an :class:`EvaluationInput` and returns a
:class:`Decision` without I/O, clocks, or randomness. Precedence lives in
``GATES``, an ordered tuple walked front to back; the first gate that yields
an outcome decides, and later gates are never consulted.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from functools import cached_property

from mergegate.eligibility.checks import RequiredRuns, latest_runs_by_name, resolve_required_runs
from mergegate.eligibility.types import (
    REASON_BEHIND_MAIN,
    REASON_MERGE_CONFLICT,
    REASON_NO_AUTO_MERGE_LABEL,
    REASON_PENDING_CHECKS,
    REASON_PR_NOT_OPEN,
    REASON_REVIEW_FAILED,
    REASON_SAFE_TO_MERGE,
    REASON_SHA_MISMATCH,
    REASON_WORKFLOW_SAFETY_FAILED,
    REASON_WORKFLOW_SAFETY_MISSING,
    CheckRun,
    Decision,
    EvaluationInput,
    Reason,
    short_sha,
)


@dataclass(frozen=True)
class Outcome:
    """Reason and explanation produced by a gate that fired."""

    reason: Reason
    details: str


class _Context:
    """Per-call view of the input; derived data is computed on first use."""

    def __init__(self, evaluation: EvaluationInput) -> None:
        self.evaluation = evaluation
        self.pr = evaluation.pull_request
        self.policy = evaluation.policy

    @cached_property
    def runs(self) -> dict[str, CheckRun]:
        return latest_runs_by_name(self.evaluation.check_runs)

    @cached_property
    def required(self) -> RequiredRuns:
        return resolve_required_runs(self.policy, self.runs)


GateCheck = Callable[[_Context], Outcome | None]


@dataclass(frozen=True)
class Gate:
    """One named step of the precedence chain."""

    name: str
    check: GateCheck


def _pr_open(ctx: _Context) -> Outcome | None:
    if ctx.pr.state != "open":
        return Outcome(REASON_PR_NOT_OPEN, f"PR #{ctx.pr.number} is not open (state={ctx.pr.state}).")
    return None


def _head_sha_matches(ctx: _Context) -> Outcome | None:
    expected = ctx.evaluation.expected_head_sha
    if expected and ctx.pr.head_sha != expected:
        return Outcome(
            REASON_SHA_MISMATCH,
            f"PR head changed from {short_sha(expected)} to {short_sha(ctx.pr.head_sha)}.",
        )
    return None


def _no_opt_out_label(ctx: _Context) -> Outcome | None:
    for label in ctx.policy.opt_out_labels:
        if label in ctx.pr.labels:
            return Outcome(REASON_NO_AUTO_MERGE_LABEL, f"PR has the {label} label.")
    return None


def _mergeability_known(ctx: _Context) -> Outcome | None:
    if ctx.pr.mergeable is None:
        return Outcome(REASON_PENDING_CHECKS, "GitHub mergeability is still being calculated.")
    return None


def _no_conflicts(ctx: _Context) -> Outcome | None:
    if ctx.pr.mergeable is False or ctx.pr.mergeable_state == "dirty":
        return Outcome(REASON_MERGE_CONFLICT, f"PR currently has merge conflicts with {ctx.pr.base_ref}.")
    return None


def _up_to_date(ctx: _Context) -> Outcome | None:
    if ctx.pr.mergeable_state == "behind":
        return Outcome(REASON_BEHIND_MAIN, f"PR branch is behind {ctx.pr.base_ref} and needs update.")
    return None


def _required_checks(ctx: _Context) -> Outcome | None:
    required = ctx.required
    if required.missing:
        return Outcome(
            REASON_PENDING_CHECKS,
            f"Required checks have not started yet: {', '.join(required.missing)}.",
        )

    inspected = required.inspected
    running = [run.name for run in inspected if not run.completed]
    if running:
        return Outcome(REASON_PENDING_CHECKS, f"Required checks still running: {', '.join(running)}.")

    review = required.review
    if review is not None and not review.passed:
        return Outcome(
            REASON_REVIEW_FAILED,
            f"{review.name} check failed with conclusion {review.conclusion or 'none'}.",
        )

    # A failed non-review check stays pending so a re-run can still clear it.
    failed = [f"{run.name} ({run.conclusion or 'none'})" for run in inspected if not run.passed]
    if failed:
        return Outcome(REASON_PENDING_CHECKS, f"Required checks failed: {', '.join(failed)}.")
    return None


def _workflow_safety(ctx: _Context) -> Outcome | None:
    if not ctx.evaluation.requires_workflow_safety:
        return None

    name = ctx.policy.workflow_safety_check
    run = ctx.runs.get(name)
    if run is None:
        return Outcome(
            REASON_WORKFLOW_SAFETY_MISSING,
            f"{name} check is required for workflow-file changes but is missing.",
        )
    if not run.completed:
        return Outcome(REASON_PENDING_CHECKS, f"{name} check is still running.")
    if not run.passed:
        return Outcome(
            REASON_WORKFLOW_SAFETY_FAILED,
            f"{name} check failed with conclusion {run.conclusion or 'none'}.",
        )
    return None


GATES: tuple[Gate, ...] = (
    Gate("pr_open", _pr_open),
    Gate("head_sha_matches", _head_sha_matches),
    Gate("no_opt_out_label", _no_opt_out_label),
    Gate("mergeability_known", _mergeability_known),
    Gate("no_conflicts", _no_conflicts),
    Gate("up_to_date", _up_to_date),
    Gate("required_checks", _required_checks),
    Gate("workflow_safety", _workflow_safety),
)


def _safe_details(ctx: _Context) -> str:
    required = ctx.required
    parts = [f"{run.name}={run.summary()}" for run in required.named]
    parts.extend(
        f"{prefix}*={len(runs)} checks" for prefix, runs in sorted(required.prefixed.items())
    )
    if required.review is not None:
        parts.append(f"{required.review.name}={required.review.summary()}")
    if ctx.evaluation.requires_workflow_safety:
        name = ctx.policy.workflow_safety_check
        parts.append(f"{name}={ctx.runs[name].summary()}")
    return f"All required checks passed on {short_sha(ctx.pr.head_sha)} ({', '.join(parts)})."


def evaluate(evaluation: EvaluationInput) -> Decision:
    """Decide whether the pull request described by ``evaluation`` may merge now."""
    ctx = _Context(evaluation)
    requires_workflow_safety = evaluation.requires_workflow_safety

    for gate in GATES:
        outcome = gate.check(ctx)
        if outcome is not None:
            return Decision(
                reason=outcome.reason,
                details=outcome.details,
                requires_workflow_safety=requires_workflow_safety,
            )

    return Decision(
        reason=REASON_SAFE_TO_MERGE,
        details=_safe_details(ctx),
        requires_workflow_safety=requires_workflow_safety,
    )
