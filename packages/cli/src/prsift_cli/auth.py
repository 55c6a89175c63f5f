"""Finding a GitHub token for the review commands.

Inside Actions the workflow token arrives as GITHUB_TOKEN. On a laptop the
reviewer usually has a `gh` session already, so we borrow it; for GitHub
Enterprise the session is looked up for the host behind ``github_api_url``.
"""

from __future__ import annotations

import logging
import os
import subprocess
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
_GH_TIMEOUT = 5


def gh_hostname(api_url: str | None) -> str | None:
    """Map a REST base URL to the hostname `gh` stores its session under.

    ``https://api.github.com`` → None (gh's default host),
    ``https://ghe.example.com/api/v3`` → ``ghe.example.com``.
    """
    host = urlparse(api_url or GITHUB_API_URL).hostname
    if not host or host in ("api.github.com", "github.com"):
        return None
    return host


def _gh_session_token(hostname: str | None) -> str | None:
    cmd = ["gh", "auth", "token"]
    if hostname:
        cmd += ["--hostname", hostname]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=_GH_TIMEOUT)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        logger.debug("gh CLI not available for token lookup.")
        return None
    token = result.stdout.strip() if result.returncode == 0 else ""
    if not token:
        logger.debug("gh has no session for %s.", hostname or "github.com")
        return None
    logger.debug("Using the gh CLI session token for %s.", hostname or "github.com")
    return token


def resolve_github_token(environ: dict | None = None, api_url: str | None = None) -> str | None:
    """GITHUB_TOKEN first, then the `gh` session for ``api_url``'s host. None when neither exists."""
    env = os.environ if environ is None else environ
    return env.get("GITHUB_TOKEN") or _gh_session_token(gh_hostname(api_url))
