"""review command: review a pull request, or list pull requests."""

from __future__ import annotations

import sys
from contextlib import redirect_stdout
from pathlib import Path

import click
from github import GithubException
from rich.console import Console

from prsift_core.config import Config, ConfigError, load_config
from prsift_core.gh.host import GithubHost, get_repo, list_pull_requests
from prsift_core.reviewer import ReviewSummary, run_review

console = Console()


class _Tee:
    """Write-through to several text streams (terminal plus --out file)."""

    def __init__(self, *streams):
        self.streams = streams

    def write(self, data: str) -> int:
        for s in self.streams:
            s.write(data)
        return len(data)

    def flush(self) -> None:
        for s in self.streams:
            s.flush()

    def isatty(self) -> bool:
        return False


def prepare_config(ctx: click.Context, overrides: dict | None = None, require_analyzer: bool = True) -> Config:
    """Load config for a command and resolve credentials, raising UsageError when they are missing."""
    from prsift_cli.auth import resolve_github_token

    config_path = (ctx.obj or {}).get("config_path", ".prsift.yml")
    config = load_config(config_path, cli_overrides=overrides)
    config.github_token = resolve_github_token(api_url=config.github_api_url)
    try:
        if require_analyzer:
            config.require_credentials()
        elif not config.github_token:
            raise ConfigError("No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.")
    except ConfigError as e:
        raise click.UsageError(str(e))
    return config


def print_summary(summary: ReviewSummary) -> None:
    if summary.status != "reviewed":
        return
    report = summary.report
    console.print(
        f"\n[bold]PR #{summary.pr_number}[/bold] "
        f"({'incremental' if summary.is_incremental else 'full'} review): "
        f"{len(summary.reviewed_files)} file(s), {summary.findings} finding(s), "
        f"{summary.actionable} actionable, {summary.skipped_findings} skipped."
    )
    if report is not None and (report.replies_failed or report.notes_failed):
        console.print(
            f"[yellow]{report.replies_failed} reply(ies) and {report.notes_failed} file note(s) failed.[/yellow]"
        )
    if summary.planned_writes:
        console.print(f"[yellow]Dry run: {len(summary.planned_writes)} write(s) suppressed.[/yellow]")


def _list_prs(config: Config, repo: str, state: str, limit: int) -> None:
    this_repo = get_repo(repo, token=config.github_token, api_url=config.github_api_url)
    prs = list_pull_requests(this_repo, state=state, limit=limit)
    if not prs:
        console.print(f"[yellow]No {state} pull requests found.[/yellow]")
        return
    console.print(f"\n{state.capitalize()} pull requests:")
    for pr in prs:
        console.print(f"  [bold]#{pr.number}[/bold]  {pr.title}  [dim]({pr.user.login})[/dim]")


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, default=None, help="Pull request number to review.")
@click.option("--dry-run", is_flag=True, help="Compute everything but print writes instead of posting them.")
@click.option("--full", "full_review", is_flag=True, help="Review all changed files even if a previous review exists.")
@click.option(
    "--out",
    "out_path",
    is_flag=False,
    flag_value="",
    default=None,
    help="Also write console output to a file (default: dry/pr-<n>.txt).",
)
@click.option("--list-prs", is_flag=True, help="List pull requests instead of reviewing one.")
@click.option(
    "--state",
    type=click.Choice(["open", "closed", "all"]),
    default="open",
    show_default=True,
    help="Pull request state for --list-prs.",
)
@click.option("--limit", type=click.IntRange(min=1), default=20, show_default=True, help="Maximum PRs to list.")
@click.option(
    "--model",
    type=click.Choice(["anthropic", "openai"]),
    default=None,
    help="Analysis provider. Overrides config file.",
)
@click.pass_context
def review_cmd(
    ctx,
    repo: str,
    pr_number: int | None,
    dry_run: bool,
    full_review: bool,
    out_path: str | None,
    list_prs: bool,
    state: str,
    limit: int,
    model: str | None,
):
    """Review a pull request and post the results on GitHub.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub token (or use the gh CLI)
      ANTHROPIC_API_KEY    Required when using --model anthropic
      OPENAI_API_KEY       Required when using --model openai
    """
    if list_prs:
        config = prepare_config(ctx, require_analyzer=False)
        _list_prs(config, repo, state, limit)
        return

    if pr_number is None:
        raise click.UsageError("Pass --pr <number>, or --list-prs to see pull requests.")

    config = prepare_config(ctx, {"model": model})

    try:
        host = GithubHost.connect(repo, pr_number, config.github_token, config.github_api_url)
    except GithubException as e:
        raise click.ClickException(f"PR #{pr_number} not found in {repo}: {e}")

    if out_path is None:
        summary = run_review(host, config, force_full=full_review, dry_run=dry_run)
        print_summary(summary)
        return

    path = Path(out_path or f"dry/pr-{pr_number}.txt")
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f, redirect_stdout(_Tee(sys.stdout, f)):
        summary = run_review(host, config, force_full=full_review, dry_run=dry_run)
        print_summary(summary)
    console.print(f"[dim]Output written to {path}[/dim]")
