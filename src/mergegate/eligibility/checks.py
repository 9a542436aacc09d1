"""Check-run bookkeeping: latest-wins deduplication and required-run lookup."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from mergegate.eligibility.policy import MergePolicy
from mergegate.eligibility.types import CheckRun

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def run_timestamp(run: CheckRun) -> datetime:
    """Ordering key for a run: started_at, else completed_at, else the epoch."""
    stamp = run.started_at or run.completed_at or EPOCH
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=UTC)
    return stamp


def latest_runs_by_name(check_runs: Iterable[CheckRun]) -> dict[str, CheckRun]:
    """Collapse re-runs so each check name maps to its latest run.

    A run replaces the one already held when its timestamp is greater than or
    equal to it, so on a tie the run listed later wins.
    """
    by_name: dict[str, CheckRun] = {}
    for run in check_runs:
        existing = by_name.get(run.name)
        if existing is None or run_timestamp(run) >= run_timestamp(existing):
            by_name[run.name] = run
    return by_name


@dataclass(frozen=True)
class RequiredRuns:
    """Runs the policy inspects, resolved against the deduplicated set."""

    named: tuple[CheckRun, ...]
    prefixed: dict[str, tuple[CheckRun, ...]]
    review: CheckRun | None
    missing: tuple[str, ...]

    @property
    def inspected(self) -> tuple[CheckRun, ...]:
        """Every inspected run in a stable order, review last."""
        runs = list(self.named)
        for prefix in sorted(self.prefixed):
            runs.extend(run for run in self.prefixed[prefix] if run not in runs)
        if self.review is not None:
            runs = [run for run in runs if run != self.review]
            runs.append(self.review)
        return tuple(runs)


def resolve_required_runs(policy: MergePolicy, runs: dict[str, CheckRun]) -> RequiredRuns:
    """Look up the runs a policy requires; absent ones are reported as missing."""
    named: list[CheckRun] = []
    missing: list[str] = []

    for name in policy.required_checks:
        run = runs.get(name)
        if run is None:
            missing.append(name)
        elif name != policy.review_check:
            named.append(run)

    prefixed: dict[str, tuple[CheckRun, ...]] = {}
    for prefix in policy.required_check_prefixes:
        matches = tuple(runs[name] for name in sorted(runs) if name.startswith(prefix))
        if matches:
            prefixed[prefix] = matches
        else:
            missing.append(f"{prefix}*")

    review = runs.get(policy.review_check) if policy.review_check else None
    return RequiredRuns(
        named=tuple(named),
        prefixed=prefixed,
        review=review,
        missing=tuple(missing),
    )
