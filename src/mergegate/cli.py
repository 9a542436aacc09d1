"""mergegate CLI - merge-eligibility gate and workflow policy linter."""

import json
from enum import Enum
from pathlib import Path

import typer
from rich.console import Console

from mergegate import __version__
from mergegate.eligibility.policy import (
    PolicyError,
    ensure_default_policy,
    resolve_policy,
)
from mergegate.github.client import DEFAULT_API_URL
from mergegate.github.errors import GitHubError, PreconditionError
from mergegate.github.fetcher import evaluate_merge_eligibility
from mergegate.obs.logging import configure_logging
from mergegate.schemas.validator import validate_data
from mergegate.utils.parsing import parse_boolean, split_repository
from mergegate.workflow_policy import check_workflow_files

cli = typer.Typer(
    name="mergegate",
    help="mergegate - decide whether a pull request is safe to merge automatically",
    no_args_is_help=True,
)
policy_app = typer.Typer(help="Merge policy file helpers", no_args_is_help=True)
cli.add_typer(policy_app, name="policy")

# stdout carries only machine-readable results.
console = Console(stderr=True)


class PolicyPreset(str, Enum):
    """Built-in merge policies."""

    AGGREGATE = "aggregate"
    LEGACY = "legacy"


def _version_option_callback(value: bool) -> None:
    """Handle eager --version option."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@cli.callback()
def _cli_callback(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show mergegate version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """Decide whether a pull request is safe to merge automatically."""
    _ = version


def _resolve_owner_repo(owner: str | None, repo: str | None) -> tuple[str, str]:
    if repo and "/" in repo:
        try:
            split_owner, split_repo = split_repository(repo)
        except ValueError as exc:
            raise PreconditionError(str(exc)) from exc
        if owner and owner != split_owner:
            raise PreconditionError(f"--owner {owner} conflicts with repository {repo}.")
        return split_owner, split_repo
    if not owner or not repo:
        raise PreconditionError("Missing required inputs: owner, repo.")
    return owner, repo


@cli.command()
def eligibility(
    owner: str | None = typer.Option(None, "--owner", help="Repository owner"),
    repo: str | None = typer.Option(
        None,
        "--repo",
        envvar="GITHUB_REPOSITORY",
        help="Repository name, or owner/name",
    ),
    pr_number: int | None = typer.Option(None, "--pr-number", help="Pull request number"),
    head_sha: str | None = typer.Option(
        None,
        "--head-sha",
        help="Head commit the caller expects; a different head yields sha_mismatch",
    ),
    require_workflow_safety: str = typer.Option(
        "false",
        "--require-workflow-safety",
        help="Require the workflow-safety check when workflow files change (true/false)",
    ),
    preset: PolicyPreset | None = typer.Option(None, "--preset", help="Built-in merge policy"),
    policy_file: Path | None = typer.Option(None, "--policy-file", help="Merge policy YAML file"),
    repo_root: Path | None = typer.Option(
        None,
        "--repo-root",
        help="Repository root holding .mergegate/policy.yaml",
    ),
    api_url: str = typer.Option(DEFAULT_API_URL, "--api-url", envvar="GITHUB_API_URL", help="GitHub API base URL"),
    token: str | None = typer.Option(
        None,
        "--token",
        envvar=["GITHUB_TOKEN", "GH_TOKEN"],
        show_default=False,
        help="GitHub token (defaults to GITHUB_TOKEN or GH_TOKEN)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log fetch progress to stderr"),
) -> None:
    """Evaluate merge eligibility and print the decision as one JSON line.

    Ineligible pull requests still exit 0; only bad inputs (2) and API
    failures (1) exit non-zero.
    """
    configure_logging(verbose=verbose)
    try:
        if not token or not token.strip():
            raise PreconditionError("Missing GitHub token. Set GITHUB_TOKEN or GH_TOKEN.")
        resolved_owner, resolved_repo = _resolve_owner_repo(owner, repo)
        if not pr_number:
            raise PreconditionError("Missing required inputs: pr-number.")
        policy = resolve_policy(
            preset=preset.value if preset else None,
            policy_file=policy_file,
            repo_root=repo_root,
        )

        decision = evaluate_merge_eligibility(
            owner=resolved_owner,
            repo=resolved_repo,
            pr_number=pr_number,
            token=token,
            expected_head_sha=head_sha or None,
            require_workflow_safety=parse_boolean(require_workflow_safety),
            policy=policy,
            base_url=api_url,
        )
    except (PreconditionError, PolicyError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(2) from exc
    except GitHubError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc

    payload = decision.to_dict()
    validate_data(payload, "decision", strict=True)
    typer.echo(json.dumps(payload))


def _parse_files(files: str | None, files_json: str | None) -> list[str]:
    if files_json:
        parsed = json.loads(files_json)
        if not isinstance(parsed, list):
            raise ValueError("--files-json must be a JSON array of paths")
        return [str(item) for item in parsed]
    if files:
        return [item.strip() for item in files.split(",") if item.strip()]
    return []


@cli.command("workflow-policy")
def workflow_policy(
    files: str | None = typer.Option(None, "--files", help="Comma-separated workflow file paths"),
    files_json: str | None = typer.Option(None, "--files-json", help="JSON array of workflow file paths"),
) -> None:
    """Lint workflow files against the automation policy."""
    try:
        paths = _parse_files(files, files_json)
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(2) from exc

    if not paths:
        typer.echo("No workflow files provided to policy checker; nothing to validate.")
        return

    violations = check_workflow_files(paths)
    if violations:
        typer.echo("Workflow policy violations found:", err=True)
        for violation in violations:
            typer.echo(f"- {violation}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Workflow policy check passed for {len(paths)} file(s).")


@policy_app.command("init")
def policy_init(
    repo_root: Path = typer.Option(Path("."), "--repo-root", help="Repository root"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing policy file"),
) -> None:
    """Write the default .mergegate/policy.yaml."""
    try:
        path = ensure_default_policy(repo_root, force=force)
    except FileExistsError as exc:
        console.print(f"[yellow]{exc}[/yellow] (use --force to overwrite)")
        raise typer.Exit(2) from exc
    typer.echo(str(path))


@policy_app.command("show")
def policy_show(
    preset: PolicyPreset | None = typer.Option(None, "--preset", help="Built-in merge policy"),
    policy_file: Path | None = typer.Option(None, "--policy-file", help="Merge policy YAML file"),
    repo_root: Path | None = typer.Option(None, "--repo-root", help="Repository root"),
) -> None:
    """Print the effective merge policy as JSON."""
    try:
        policy = resolve_policy(
            preset=preset.value if preset else None,
            policy_file=policy_file,
            repo_root=repo_root,
        )
    except PolicyError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc} ({exc.reason_code})")
        raise typer.Exit(2) from exc
    typer.echo(json.dumps(policy.to_dict(), indent=2))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
