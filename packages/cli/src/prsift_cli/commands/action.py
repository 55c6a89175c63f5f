"""action command: review the pull request of the current GitHub Actions event."""

from __future__ import annotations

import logging

import click
from rich.console import Console

from prsift_core.gh.event import load_event_context
from prsift_core.gh.host import GithubHost
from prsift_core.reviewer import run_review

from prsift_cli.commands.review import prepare_config, print_summary

console = Console()
logger = logging.getLogger(__name__)


@click.command("action")
@click.option("--dry-run", is_flag=True, help="Compute everything but print writes instead of posting them.")
@click.option("--full", "full_review", is_flag=True, help="Review all changed files even if a previous review exists.")
@click.pass_context
def action_cmd(ctx, dry_run: bool, full_review: bool):
    """Review the pull request that triggered this workflow run.

    Reads GITHUB_EVENT_NAME, GITHUB_EVENT_PATH and GITHUB_REPOSITORY. Events
    other than pull_request and pull_request_target are ignored.
    """
    event = load_event_context()
    if event is None:
        console.print("[yellow]No pull request in this event; nothing to review.[/yellow]")
        return

    config = prepare_config(ctx)
    host = GithubHost.connect(event.repo, event.number, config.github_token, config.github_api_url)
    logger.info("Reviewing %s#%d at %s", event.repo, event.number, event.head_sha[:7])
    summary = run_review(host, config, force_full=full_review, dry_run=dry_run)
    print_summary(summary)
