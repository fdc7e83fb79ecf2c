"""Warden CLI — the main entry point for the repository governance configurator."""

from __future__ import annotations

import json
import logging
import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from warden import __version__
from warden.config import DEFAULT_SPEC_PATH, Settings
from warden.errors import AuthError, ResolutionError, ValidationError

console = Console()
logger = logging.getLogger("warden")

EXIT_BRANCH_FAILURE = 1
EXIT_FATAL = 2
EXIT_FILE_EXISTS = 1

_STATE_STYLES = {
    "matched": "green",
    "skipped": "yellow",
    "mismatched": "red",
    "failed": "red",
    "cancelled": "magenta",
}


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level (default: WARDEN_LOG_LEVEL or WARNING)",
)
@click.option("-v", "--verbose", is_flag=True, help="Shortcut for --log-level INFO")
@click.pass_context
def main(ctx: click.Context, log_level: str | None, verbose: bool):
    """Warden — repository governance configurator.

    Apply a declarative branch-protection policy to a GitHub repository and
    verify that the live settings match it.
    """
    ctx.ensure_object(dict)
    try:
        settings = Settings.from_env()
    except ValueError as e:
        console.print(f"[red]Configuration error:[/] {e}")
        ctx.exit(EXIT_FATAL)
    if verbose and not log_level:
        log_level = "INFO"
    settings = settings.with_overrides(log_level=log_level)
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.obj["settings"] = settings


# ── Apply ────────────────────────────────────────────────────────────


@main.command()
@click.argument("spec_file", required=False)
@click.option("--repo", "-r", default="", help="Target repository (OWNER/NAME or remote URL)")
@click.option("--path", "-p", default=".", help="Local checkout used to infer the repository")
@click.option("--branch", "-b", multiple=True, help="Branch to process (repeatable, replaces the spec's list)")
@click.option("--dry-run", is_flag=True, help="Diff against live state without applying")
@click.option("--verify-only", is_flag=True, help="Only check existence and verify live state")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.option("--interactive", is_flag=True, help="Allow 'gh auth login' when no credentials are found")
@click.option("--timeout", type=float, default=None, help="Per-request timeout in seconds")
@click.option("--api-url", default=None, help="API base URL (GitHub Enterprise)")
@click.option("--token", default=None, help="API token (default: GITHUB_TOKEN / GH_TOKEN / gh CLI)")
@click.pass_context
def apply(
    ctx: click.Context,
    spec_file: str | None,
    repo: str,
    path: str,
    branch: tuple[str, ...],
    dry_run: bool,
    verify_only: bool,
    as_json: bool,
    interactive: bool,
    timeout: float | None,
    api_url: str | None,
    token: str | None,
):
    """Apply branch protection from SPEC_FILE and verify the result.

    SPEC_FILE defaults to .github/branch-protection.yml in the checkout, or
    the built-in policy (main required, develop optional) when absent.
    """
    from warden.auth.session import authenticate
    from warden.platform.client import GitHubClient
    from warden.sync.results import RunMode
    from warden.sync.runner import GovernanceRunner
    from warden.utils.git_ops import WorkingContext, resolve_repository

    if dry_run and verify_only:
        raise click.UsageError("--dry-run and --verify-only are mutually exclusive")
    mode = RunMode.DRY_RUN if dry_run else RunMode.VERIFY_ONLY if verify_only else RunMode.APPLY

    settings: Settings = ctx.obj["settings"].with_overrides(
        timeout=timeout, api_url=api_url, token=token
    )
    transport = ctx.obj.get("transport")

    # Spec problems are fatal before any network activity.
    try:
        spec = _load_governance(spec_file, Path(path))
        if branch:
            try:
                spec = spec.select(branch)
            except ValueError as e:
                raise ValidationError([str(e)], "--branch")
    except ValidationError as e:
        _print_validation_error(e)
        ctx.exit(EXIT_FATAL)

    try:
        session = authenticate(settings, interactive=interactive, transport=transport)
        repository = resolve_repository(WorkingContext(path=Path(path), slug=repo), settings.host)
    except AuthError as e:
        console.print(f"[red]Authentication failed:[/] {escape(e.reason)}")
        console.print("Set GITHUB_TOKEN, or run 'gh auth login' (or pass --interactive).")
        ctx.exit(EXIT_FATAL)
    except ResolutionError as e:
        console.print(f"[red]Could not determine repository:[/] {escape(str(e))}")
        console.print("Pass --repo OWNER/NAME or run inside a checkout with a GitHub remote.")
        ctx.exit(EXIT_FATAL)

    if not as_json:
        console.print(
            f"\n[bold blue]Warden[/] — {mode.value}: {repository.slug} "
            f"({len(spec.rules)} branch(es), as {session.login or 'unknown user'})\n"
        )

    cancel_event = threading.Event()
    with GitHubClient(settings, session.token, transport=transport) as client:
        runner = GovernanceRunner(client, repository, mode=mode, cancel_event=cancel_event)
        with _cancel_on_interrupt(cancel_event):
            report = runner.run(spec)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(report)
        console.print(
            f"\nReview in the browser: https://{settings.host}/{repository.slug}/settings/branches"
        )
    ctx.exit(report.exit_code)


# ── Validate ─────────────────────────────────────────────────────────


@main.command()
@click.argument("spec_file")
@click.pass_context
def validate(ctx: click.Context, spec_file: str):
    """Validate a governance spec file without contacting the platform."""
    from warden.policy.loader import load_spec

    console.print(f"\n[bold blue]Warden[/] — Validating: {spec_file}\n")

    try:
        spec = load_spec(spec_file)
    except ValidationError as e:
        _print_validation_error(e)
        ctx.exit(EXIT_FATAL)

    table = Table(title=f"Branches ({len(spec.rules)})")
    table.add_column("Branch", style="cyan")
    table.add_column("Required", justify="center")
    table.add_column("Reviews", justify="right")
    table.add_column("Status checks")

    for rule in spec.rules:
        checks = rule.policy.required_status_checks
        table.add_row(
            rule.target.name,
            "[green]Y[/]" if rule.target.required else "N",
            str(rule.policy.required_approving_review_count),
            ", ".join(checks.contexts) if checks and checks.contexts else "-",
        )

    console.print(table)
    console.print("\n[green]Valid![/]")


# ── Init ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("path", default=DEFAULT_SPEC_PATH)
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def init(ctx: click.Context, path: str, force: bool):
    """Write the built-in governance spec to PATH for editing."""
    from warden.policy.loader import default_spec, dump_spec

    target = Path(path)
    if target.exists() and not force:
        console.print(f"[red]{target} already exists.[/] Use --force to overwrite.")
        ctx.exit(EXIT_FILE_EXISTS)

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(dump_spec(default_spec()), encoding="utf-8")
    console.print(f"[green]Governance spec written to:[/] {target}")


# ── Schema ───────────────────────────────────────────────────────────


@main.command(name="schema")
def dump_schema():
    """Print the JSON Schema for governance spec files."""
    from warden.policy.loader import get_schema

    click.echo(json.dumps(get_schema(), indent=2))


# ── Helpers ──────────────────────────────────────────────────────────


def _load_governance(spec_file: str | None, checkout: Path):
    from warden.policy.loader import default_spec, load_spec

    if spec_file:
        return load_spec(spec_file)
    candidate = checkout / DEFAULT_SPEC_PATH
    if candidate.exists():
        logger.info("Using spec file %s", candidate)
        return load_spec(candidate)
    logger.info("No spec file found, using the built-in policy")
    return default_spec()


def _print_validation_error(error: ValidationError) -> None:
    console.print(f"[red]Invalid governance spec[/] {error.source}".rstrip())
    for issue in error.issues:
        console.print(f"  [red]x[/] {escape(issue)}")


def _print_report(report) -> None:
    table = Table(title=f"Branch protection ({report.mode.value})")
    table.add_column("Branch", style="cyan")
    table.add_column("Required", justify="center")
    table.add_column("Applied", justify="center")
    table.add_column("State")
    table.add_column("Details")

    for result in report.results:
        style = _STATE_STYLES.get(result.state.value, "white")
        table.add_row(
            result.branch,
            "Y" if result.required else "N",
            "[green]Y[/]" if result.applied else "-",
            f"[{style}]{result.state.value}[/]",
            escape(result.reason),
        )
    console.print(table)

    for result in report.results:
        if result.verification is None or result.verification.matches:
            continue
        lines = [
            f"{name}: expected {diff.expected!r}, actual {diff.actual!r}"
            for name, diff in result.verification.diffs.items()
        ]
        console.print(Panel(escape("\n".join(lines)), title=f"{result.branch} differences"))
        if result.planned_payload is not None:
            console.print(f"Would send for [cyan]{result.branch}[/]:")
            console.print_json(data=result.planned_payload)

    if report.cancelled:
        console.print("[magenta]Run cancelled; remaining branches were not processed.[/]")


@contextmanager
def _cancel_on_interrupt(event: threading.Event):
    """Turn SIGINT into a cancellation request observed between branches."""

    def _handler(signum, frame):
        console.print("\n[yellow]Interrupt received, stopping after the current branch...[/]")
        event.set()

    try:
        previous = signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # signal handlers can only be installed from the main thread
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


if __name__ == "__main__":
    main()
