"""GitHub snapshot fetcher for the merge-eligibility gate."""

from mergegate.github.client import GitHubClient
from mergegate.github.errors import (
    GitHubApiError,
    GitHubError,
    GitHubTransportError,
    PreconditionError,
)
from mergegate.github.fetcher import (
    build_evaluation_input,
    evaluate_merge_eligibility,
    fetch_changed_files,
    fetch_check_runs,
    fetch_pull_request,
)
from mergegate.github.retry import retry_until

__all__ = [
    "GitHubApiError",
    "GitHubClient",
    "GitHubError",
    "GitHubTransportError",
    "PreconditionError",
    "build_evaluation_input",
    "evaluate_merge_eligibility",
    "fetch_changed_files",
    "fetch_check_runs",
    "fetch_pull_request",
    "retry_until",
]
