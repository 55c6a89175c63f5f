"""Pull-request context when running inside a GitHub Actions workflow."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from prsift_core.models import PullRequestInfo

logger = logging.getLogger(__name__)

SUPPORTED_EVENTS = ("pull_request", "pull_request_target")


def load_event_context(environ: dict | None = None) -> PullRequestInfo | None:
    """Read the triggering pull request from the Actions environment.

    Returns None (after logging a warning) for unsupported events or a
    payload without a ``pull_request`` object.
    """
    env = os.environ if environ is None else environ
    event_name = env.get("GITHUB_EVENT_NAME", "")
    if event_name not in SUPPORTED_EVENTS:
        logger.warning("Unsupported GitHub event: %r", event_name)
        return None

    event_path = env.get("GITHUB_EVENT_PATH")
    if not event_path or not Path(event_path).exists():
        logger.warning("GITHUB_EVENT_PATH is not set or does not exist.")
        return None
    with open(event_path, encoding="utf-8") as f:
        payload = json.load(f)

    pr = payload.get("pull_request")
    if not pr:
        logger.warning("`pull_request` is missing from the event payload.")
        return None

    repo = env.get("GITHUB_REPOSITORY") or payload.get("repository", {}).get("full_name", "")
    return PullRequestInfo(
        repo=repo,
        number=int(pr["number"]),
        title=pr.get("title") or "",
        body=pr.get("body") or "",
        head_sha=pr.get("head", {}).get("sha", ""),
        base_sha=pr.get("base", {}).get("sha", ""),
        html_url=pr.get("html_url") or "",
    )
