"""CLI entry point for prsift.

Commands:
  review   review a pull request from your terminal, or list pull requests
  action   review the pull request that triggered a GitHub Actions run
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prsift_cli.commands.action import action_cmd
from prsift_cli.commands.review import review_cmd

console = Console()


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=verbose)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("prsift"),
    prog_name="prsift",
)
@click.option(
    "--config",
    "config_path",
    default=".prsift.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRSIFT_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show progress logs.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Incremental, idempotent pull request reviews on GitHub."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(review_cmd)
main.add_command(action_cmd)
