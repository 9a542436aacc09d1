"""Pure merge-eligibility decision engine."""

from mergegate.eligibility.checks import latest_runs_by_name
from mergegate.eligibility.evaluator import GATES, evaluate
from mergegate.eligibility.policy import (
    AGGREGATE_POLICY,
    DEFAULT_POLICY,
    LEGACY_POLICY,
    MergePolicy,
    PolicyError,
    load_policy,
    resolve_policy,
)
from mergegate.eligibility.types import (
    REASONS,
    CheckRun,
    Decision,
    EvaluationInput,
    PullRequestSnapshot,
)

__all__ = [
    "AGGREGATE_POLICY",
    "DEFAULT_POLICY",
    "GATES",
    "LEGACY_POLICY",
    "REASONS",
    "CheckRun",
    "Decision",
    "EvaluationInput",
    "MergePolicy",
    "PolicyError",
    "PullRequestSnapshot",
    "evaluate",
    "latest_runs_by_name",
    "load_policy",
    "resolve_policy",
]
