"""Errors raised while assembling a pull request snapshot."""

from __future__ import annotations

ERROR_BODY_LIMIT = 400


class PreconditionError(ValueError):
    """Raised before any network call when required inputs are absent."""


class GitHubError(RuntimeError):
    """Base class for failures talking to the GitHub API."""


class GitHubApiError(GitHubError):
    """Raised when the API answers with a non-success status."""

    def __init__(self, path: str, status_code: int, body: str = ""):
        detail = body[:ERROR_BODY_LIMIT]
        super().__init__(f"GitHub API request failed ({status_code}) for {path}: {detail}")
        self.path = path
        self.status_code = status_code
        self.body = body


class GitHubTransportError(GitHubError):
    """Raised when a request never produced a response."""

    def __init__(self, path: str, cause: Exception):
        super().__init__(f"GitHub API request failed for {path}: {cause}")
        self.path = path
