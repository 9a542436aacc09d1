"""Assemble an evaluation snapshot for one pull request from the GitHub API."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from mergegate.eligibility.evaluator import evaluate
from mergegate.eligibility.policy import DEFAULT_POLICY, MergePolicy
from mergegate.eligibility.types import CheckRun, Decision, EvaluationInput, PullRequestSnapshot
from mergegate.github.client import DEFAULT_API_URL, GitHubClient
from mergegate.github.errors import GitHubApiError, PreconditionError
from mergegate.github.retry import retry_until

logger = logging.getLogger(__name__)

MERGEABILITY_ATTEMPTS = 4
MERGEABILITY_DELAY_SECONDS = 1.5


def fetch_pull_request(
    client: GitHubClient,
    owner: str,
    repo: str,
    pr_number: int,
    *,
    attempts: int = MERGEABILITY_ATTEMPTS,
    delay_seconds: float = MERGEABILITY_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> PullRequestSnapshot:
    """Fetch PR metadata, re-polling while GitHub is still computing mergeability."""
    path = f"/repos/{owner}/{repo}/pulls/{pr_number}"
    snapshot = retry_until(
        lambda: PullRequestSnapshot.from_api(client.get_object(path)),
        done=lambda pr: pr.mergeable is not None,
        attempts=attempts,
        delay_seconds=delay_seconds,
        sleep=sleep,
        label=f"mergeability of {owner}/{repo}#{pr_number}",
    )
    if snapshot.mergeable is None:
        logger.info("%s/%s#%d: mergeability still unknown after %d attempts", owner, repo, pr_number, attempts)
    return snapshot


def fetch_changed_files(client: GitHubClient, owner: str, repo: str, pr_number: int) -> list[str]:
    """Return the path of every file touched by the PR."""
    files = client.get_list(f"/repos/{owner}/{repo}/pulls/{pr_number}/files")
    return [str(item["filename"]) for item in files if isinstance(item, dict) and item.get("filename")]


def fetch_check_runs(client: GitHubClient, owner: str, repo: str, head_sha: str) -> list[CheckRun]:
    """Return every check run reported against ``head_sha``."""
    path = f"/repos/{owner}/{repo}/commits/{head_sha}/check-runs"
    check_runs: list[CheckRun] = []
    for item in client.get_list(path, items_key="check_runs"):
        if not isinstance(item, dict) or not item.get("name"):
            continue
        try:
            check_runs.append(CheckRun.from_api(item))
        except ValueError as exc:
            raise GitHubApiError(path, 200, f"malformed check run {item['name']!r}: {exc}") from exc
    return check_runs


def _require_inputs(owner: str | None, repo: str | None, pr_number: int | None) -> None:
    missing = [
        name
        for name, value in (("owner", owner), ("repo", repo), ("pr_number", pr_number))
        if not value
    ]
    if missing:
        raise PreconditionError(f"Missing required inputs: {', '.join(missing)}.")


def build_evaluation_input(
    client: GitHubClient,
    *,
    owner: str,
    repo: str,
    pr_number: int,
    expected_head_sha: str | None = None,
    require_workflow_safety: bool = False,
    policy: MergePolicy = DEFAULT_POLICY,
    sleep: Callable[[float], None] = time.sleep,
) -> EvaluationInput:
    """Fetch everything the evaluator needs, one request at a time."""
    _require_inputs(owner, repo, pr_number)

    pull_request = fetch_pull_request(client, owner, repo, pr_number, sleep=sleep)
    changed = fetch_changed_files(client, owner, repo, pr_number)
    check_runs = fetch_check_runs(client, owner, repo, pull_request.head_sha)
    workflow_files_changed = policy.touches_workflows(changed)

    logger.info(
        "%s/%s#%d: state=%s mergeable=%s/%s files=%d workflow_files_changed=%s check_runs=%d",
        owner,
        repo,
        pr_number,
        pull_request.state,
        pull_request.mergeable,
        pull_request.mergeable_state,
        len(changed),
        workflow_files_changed,
        len(check_runs),
    )
    return EvaluationInput(
        pull_request=pull_request,
        expected_head_sha=expected_head_sha or None,
        require_workflow_safety=require_workflow_safety,
        workflow_files_changed=workflow_files_changed,
        check_runs=tuple(check_runs),
        policy=policy,
    )


def evaluate_merge_eligibility(
    *,
    owner: str,
    repo: str,
    pr_number: int,
    token: str,
    expected_head_sha: str | None = None,
    require_workflow_safety: bool = False,
    policy: MergePolicy = DEFAULT_POLICY,
    client: GitHubClient | None = None,
    base_url: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Decision:
    """Fetch a fresh snapshot and evaluate it.

    The token is an explicit argument; resolving it from the environment is
    the caller's job.
    """
    if not token or not token.strip():
        raise PreconditionError("Missing GitHub token. Set GITHUB_TOKEN or GH_TOKEN.")
    _require_inputs(owner, repo, pr_number)

    owns_client = client is None
    if client is None:
        client = GitHubClient(token, base_url=base_url or DEFAULT_API_URL)
    try:
        evaluation = build_evaluation_input(
            client,
            owner=owner,
            repo=repo,
            pr_number=pr_number,
            expected_head_sha=expected_head_sha,
            require_workflow_safety=require_workflow_safety,
            policy=policy,
            sleep=sleep,
        )
    finally:
        if owns_client:
            client.close()

    decision = evaluate(evaluation)
    logger.info("%s/%s#%d: %s (%s)", owner, repo, pr_number, decision.reason, decision.details)
    return decision
