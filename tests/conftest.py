"""Pytest configuration and fixtures for mergegate tests."""
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from mergegate.eligibility.types import CheckRun, EvaluationInput, PullRequestSnapshot

HEAD_SHA = "abc1234def5678"


def pytest_sessionfinish(session, exitstatus):
    """Check that coverage data was collected if --cov was requested.

    This prevents silent "no data collected" scenarios that produce 0% coverage
    without failing the test run.
    """
    cov_enabled = any("--cov" in str(arg) for arg in session.config.args)
    if not cov_enabled:
        return

    coverage_files = list(Path.cwd().glob(".coverage*"))
    if not coverage_files:
        pytest.exit(
            "Coverage was enabled but no data was collected. "
            "Check that tests import from 'mergegate' (the package) not 'src/mergegate' (filesystem path).",
            returncode=1
        )


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Undo configure_logging() so caplog keeps seeing package records."""
    logger = logging.getLogger("mergegate")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]


def _ts(minute: int) -> datetime:
    return datetime(2026, 1, 1, 12, minute, tzinfo=UTC)


@pytest.fixture
def make_pr() -> Callable[..., PullRequestSnapshot]:
    """Factory for an open, clean, mergeable PR snapshot."""

    def _make(**overrides: Any) -> PullRequestSnapshot:
        fields: dict[str, Any] = {
            "number": 42,
            "state": "open",
            "head_sha": HEAD_SHA,
            "base_ref": "main",
            "mergeable": True,
            "mergeable_state": "clean",
            "labels": frozenset(),
        }
        fields.update(overrides)
        return PullRequestSnapshot(**fields)

    return _make


@pytest.fixture
def make_run() -> Callable[..., CheckRun]:
    """Factory for a check run; ``minute`` sets started_at on a fixed day."""

    def _make(
        name: str,
        status: str = "completed",
        conclusion: str | None = "success",
        minute: int | None = 0,
        completed_minute: int | None = None,
    ) -> CheckRun:
        return CheckRun(
            name=name,
            status=status,
            conclusion=conclusion if status == "completed" else None,
            started_at=_ts(minute) if minute is not None else None,
            completed_at=_ts(completed_minute) if completed_minute is not None else None,
        )

    return _make


@pytest.fixture
def make_input(make_pr) -> Callable[..., EvaluationInput]:
    """Factory for an evaluation input around a default PR snapshot."""

    def _make(
        *runs: CheckRun,
        pr: PullRequestSnapshot | None = None,
        **overrides: Any,
    ) -> EvaluationInput:
        return EvaluationInput(
            pull_request=pr if pr is not None else make_pr(),
            check_runs=tuple(runs),
            **overrides,
        )

    return _make
