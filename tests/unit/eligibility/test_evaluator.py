"""Tests for the merge-eligibility evaluator precedence chain."""

from __future__ import annotations

from dataclasses import replace

import pytest

from mergegate.eligibility import (
    GATES,
    LEGACY_POLICY,
    REASONS,
    EvaluationInput,
    evaluate,
)
from mergegate.eligibility.policy import MergePolicy


def test_gate_order_is_fixed() -> None:
    assert [gate.name for gate in GATES] == [
        "pr_open",
        "head_sha_matches",
        "no_opt_out_label",
        "mergeability_known",
        "no_conflicts",
        "up_to_date",
        "required_checks",
        "workflow_safety",
    ]


def test_clean_pr_with_green_gate_is_safe(make_input, make_run) -> None:
    decision = evaluate(make_input(make_run("Automation Gate")))

    assert decision.reason == "safe_to_merge"
    assert decision.eligible is True
    assert decision.requires_workflow_safety is False
    assert decision.details.startswith("All required checks passed on abc1234")
    assert "Automation Gate=completed/success" in decision.details


def test_opt_out_label_wins_regardless_of_checks(make_input, make_pr, make_run) -> None:
    pr = make_pr(labels=frozenset({"no-auto-merge", "bug"}))

    green = evaluate(make_input(make_run("Automation Gate"), pr=pr))
    red = evaluate(make_input(make_run("Automation Gate", conclusion="failure"), pr=pr))

    assert green.reason == red.reason == "no_auto_merge_label"
    assert green.details == "PR has the no-auto-merge label."


def test_unknown_mergeability_is_pending(make_input, make_pr, make_run) -> None:
    decision = evaluate(make_input(make_run("Automation Gate"), pr=make_pr(mergeable=None)))

    assert decision.reason == "pending_checks"
    assert decision.eligible is False
    assert decision.details == "GitHub mergeability is still being calculated."


def test_missing_workflow_safety_run_blocks_workflow_change(make_input, make_run) -> None:
    decision = evaluate(
        make_input(
            make_run("Automation Gate"),
            require_workflow_safety=True,
            workflow_files_changed=True,
        )
    )

    assert decision.reason == "workflow_safety_missing"
    assert decision.requires_workflow_safety is True
    assert decision.details == (
        "Workflow Safety check is required for workflow-file changes but is missing."
    )


def test_behind_overrides_green_checks(make_input, make_pr, make_run) -> None:
    decision = evaluate(make_input(make_run("Automation Gate"), pr=make_pr(mergeable_state="behind")))

    assert decision.reason == "behind_main"
    assert decision.details == "PR branch is behind main and needs update."


def test_review_failure_beats_failing_aggregate_gate(make_input, make_run) -> None:
    decision = evaluate(
        make_input(
            make_run("Automation Gate", conclusion="failure"),
            make_run("review", conclusion="failure"),
        )
    )

    assert decision.reason == "review_failed"
    assert decision.details == "review check failed with conclusion failure."


@pytest.mark.parametrize("state", ["closed", "merged"])
def test_non_open_pr_short_circuits(make_input, make_pr, state) -> None:
    decision = evaluate(make_input(pr=make_pr(state=state), expected_head_sha="other"))

    assert decision.reason == "pr_not_open"
    assert decision.details == f"PR #42 is not open (state={state})."


def test_head_mismatch_precedes_label(make_input, make_pr, make_run) -> None:
    pr = make_pr(labels=frozenset({"no-auto-merge"}))
    decision = evaluate(make_input(make_run("Automation Gate"), pr=pr, expected_head_sha="fff9999aaa"))

    assert decision.reason == "sha_mismatch"
    assert decision.details == "PR head changed from fff9999 to abc1234."


def test_matching_or_absent_expected_head_passes(make_input, make_pr, make_run) -> None:
    pr = make_pr()
    assert evaluate(make_input(make_run("Automation Gate"), pr=pr, expected_head_sha=pr.head_sha)).eligible
    assert evaluate(make_input(make_run("Automation Gate"), pr=pr, expected_head_sha=None)).eligible
    assert evaluate(make_input(make_run("Automation Gate"), pr=pr, expected_head_sha="")).eligible


@pytest.mark.parametrize(
    ("mergeable", "mergeable_state"),
    [(False, "clean"), (True, "dirty"), (False, "dirty")],
)
def test_conflicts_block_merge(make_input, make_pr, make_run, mergeable, mergeable_state) -> None:
    pr = make_pr(mergeable=mergeable, mergeable_state=mergeable_state, base_ref="develop")
    decision = evaluate(make_input(make_run("Automation Gate"), pr=pr))

    assert decision.reason == "merge_conflict"
    assert decision.details == "PR currently has merge conflicts with develop."


def test_conflict_precedes_behind(make_input, make_pr, make_run) -> None:
    pr = make_pr(mergeable=False, mergeable_state="behind")
    assert evaluate(make_input(make_run("Automation Gate"), pr=pr)).reason == "merge_conflict"


def test_unrecognized_mergeable_state_is_not_blocking(make_input, make_pr, make_run) -> None:
    pr = make_pr(mergeable_state="unstable")
    assert evaluate(make_input(make_run("Automation Gate"), pr=pr)).reason == "safe_to_merge"


def test_missing_required_check_is_pending(make_input) -> None:
    decision = evaluate(make_input())

    assert decision.reason == "pending_checks"
    assert decision.details == "Required checks have not started yet: Automation Gate."


@pytest.mark.parametrize("status", ["queued", "in_progress"])
def test_running_required_check_is_pending(make_input, make_run, status) -> None:
    decision = evaluate(make_input(make_run("Automation Gate", status=status)))

    assert decision.reason == "pending_checks"
    assert decision.details == "Required checks still running: Automation Gate."


def test_failed_non_review_check_stays_pending(make_input, make_run) -> None:
    decision = evaluate(make_input(make_run("Automation Gate", conclusion="failure")))

    assert decision.reason == "pending_checks"
    assert decision.details == "Required checks failed: Automation Gate (failure)."


def test_skipped_conclusion_passes(make_input, make_run) -> None:
    assert evaluate(make_input(make_run("Automation Gate", conclusion="skipped"))).eligible


@pytest.mark.parametrize("conclusion", ["neutral", "cancelled", "timed_out", "action_required"])
def test_other_conclusions_do_not_pass(make_input, make_run, conclusion) -> None:
    decision = evaluate(make_input(make_run("Automation Gate", conclusion=conclusion)))
    assert decision.reason == "pending_checks"


def test_running_review_is_pending_not_failed(make_input, make_run) -> None:
    decision = evaluate(
        make_input(make_run("Automation Gate"), make_run("review", status="in_progress"))
    )

    assert decision.reason == "pending_checks"
    assert decision.details == "Required checks still running: review."


def test_review_absent_is_ignored_under_aggregate_policy(make_input, make_run) -> None:
    decision = evaluate(make_input(make_run("Automation Gate")))
    assert "review=" not in decision.details


def test_review_present_is_reported_when_passing(make_input, make_run) -> None:
    decision = evaluate(make_input(make_run("Automation Gate"), make_run("review")))

    assert decision.reason == "safe_to_merge"
    assert decision.details.endswith("(Automation Gate=completed/success, review=completed/success).")


def test_later_rerun_of_gate_decides(make_input, make_run) -> None:
    decision = evaluate(
        make_input(
            make_run("Automation Gate", conclusion="success", minute=5),
            make_run("Automation Gate", conclusion="failure", minute=1),
        )
    )
    assert decision.reason == "safe_to_merge"

    decision = evaluate(
        make_input(
            make_run("Automation Gate", conclusion="success", minute=1),
            make_run("Automation Gate", conclusion="failure", minute=5),
        )
    )
    assert decision.reason == "pending_checks"


def test_unrelated_failing_checks_are_ignored(make_input, make_run) -> None:
    decision = evaluate(
        make_input(make_run("Automation Gate"), make_run("lint", conclusion="failure"))
    )
    assert decision.reason == "safe_to_merge"


def test_workflow_safety_requires_both_flags(make_input, make_run) -> None:
    only_flag = evaluate(make_input(make_run("Automation Gate"), require_workflow_safety=True))
    only_files = evaluate(make_input(make_run("Automation Gate"), workflow_files_changed=True))

    assert only_flag.reason == only_files.reason == "safe_to_merge"
    assert only_flag.requires_workflow_safety is False
    assert only_files.requires_workflow_safety is False


def test_workflow_safety_running_is_pending(make_input, make_run) -> None:
    decision = evaluate(
        make_input(
            make_run("Automation Gate"),
            make_run("Workflow Safety", status="in_progress"),
            require_workflow_safety=True,
            workflow_files_changed=True,
        )
    )

    assert decision.reason == "pending_checks"
    assert decision.details == "Workflow Safety check is still running."


def test_workflow_safety_failure(make_input, make_run) -> None:
    decision = evaluate(
        make_input(
            make_run("Automation Gate"),
            make_run("Workflow Safety", conclusion="failure"),
            require_workflow_safety=True,
            workflow_files_changed=True,
        )
    )

    assert decision.reason == "workflow_safety_failed"
    assert decision.details == "Workflow Safety check failed with conclusion failure."


def test_workflow_safety_pass_is_reported(make_input, make_run) -> None:
    decision = evaluate(
        make_input(
            make_run("Automation Gate"),
            make_run("Workflow Safety"),
            require_workflow_safety=True,
            workflow_files_changed=True,
        )
    )

    assert decision.reason == "safe_to_merge"
    assert decision.requires_workflow_safety is True
    assert "Workflow Safety=completed/success" in decision.details


def test_short_circuit_still_reports_workflow_safety_flag(make_input, make_pr) -> None:
    decision = evaluate(
        make_input(
            pr=make_pr(state="closed"),
            require_workflow_safety=True,
            workflow_files_changed=True,
        )
    )

    assert decision.reason == "pr_not_open"
    assert decision.requires_workflow_safety is True


def test_pending_required_check_precedes_missing_workflow_safety(make_input, make_run) -> None:
    decision = evaluate(
        make_input(
            make_run("Automation Gate", status="queued"),
            require_workflow_safety=True,
            workflow_files_changed=True,
        )
    )
    assert decision.reason == "pending_checks"


def test_legacy_policy_requires_every_named_check(make_input, make_run) -> None:
    decision = evaluate(
        make_input(make_run("Quality"), policy=LEGACY_POLICY)
    )

    assert decision.reason == "pending_checks"
    assert decision.details == "Required checks have not started yet: review, Coverage Gate (*."


def test_legacy_policy_safe_summarizes_prefixed_checks(make_input, make_run) -> None:
    decision = evaluate(
        make_input(
            make_run("Quality"),
            make_run("review"),
            make_run("Coverage Gate (unit)"),
            make_run("Coverage Gate (integration)", conclusion="skipped"),
            policy=LEGACY_POLICY,
        )
    )

    assert decision.reason == "safe_to_merge"
    assert decision.details == (
        "All required checks passed on abc1234 "
        "(Quality=completed/success, Coverage Gate (*=2 checks, review=completed/success)."
    )


def test_legacy_policy_failed_prefixed_check_is_pending(make_input, make_run) -> None:
    decision = evaluate(
        make_input(
            make_run("Quality"),
            make_run("review"),
            make_run("Coverage Gate (unit)", conclusion="failure"),
            policy=LEGACY_POLICY,
        )
    )

    assert decision.reason == "pending_checks"
    assert decision.details == "Required checks failed: Coverage Gate (unit) (failure)."


def test_legacy_policy_review_failure(make_input, make_run) -> None:
    decision = evaluate(
        make_input(
            make_run("Quality", conclusion="failure"),
            make_run("review", conclusion="failure"),
            make_run("Coverage Gate (unit)"),
            policy=LEGACY_POLICY,
        )
    )
    assert decision.reason == "review_failed"


def test_custom_opt_out_labels(make_input, make_pr, make_run) -> None:
    policy = replace(MergePolicy(name="custom", required_checks=("ci",)), opt_out_labels=("hold",))

    held = evaluate(make_input(make_run("ci"), pr=make_pr(labels=frozenset({"hold"})), policy=policy))
    default_label = evaluate(
        make_input(make_run("ci"), pr=make_pr(labels=frozenset({"no-auto-merge"})), policy=policy)
    )

    assert held.reason == "no_auto_merge_label"
    assert held.details == "PR has the hold label."
    assert default_label.reason == "safe_to_merge"


def test_evaluation_is_deterministic(make_input, make_run) -> None:
    evaluation = make_input(
        make_run("Automation Gate", minute=3),
        make_run("review", conclusion="failure", minute=1),
        make_run("Automation Gate", status="in_progress", minute=2),
    )

    decisions = {evaluate(evaluation) for _ in range(10)}
    assert len(decisions) == 1


def test_eligible_iff_safe_to_merge(make_input, make_pr, make_run) -> None:
    inputs: list[EvaluationInput] = [
        make_input(make_run("Automation Gate")),
        make_input(pr=make_pr(state="closed")),
        make_input(make_run("Automation Gate"), pr=make_pr(mergeable=None)),
        make_input(make_run("Automation Gate"), pr=make_pr(mergeable_state="behind")),
        make_input(make_run("Automation Gate", conclusion="failure"), make_run("review", conclusion="failure")),
    ]

    for evaluation in inputs:
        decision = evaluate(evaluation)
        assert decision.reason in REASONS
        assert decision.eligible is (decision.reason == "safe_to_merge")
        assert decision.to_dict()["eligible"] is decision.eligible
        assert decision.details
