"""Encoding of the run state carried invisibly inside the overview comment.

The overview comment body ends with a JSON payload wrapped in two sentinel
markers. Both markers together form an HTML comment, so GitHub renders
nothing for them. Only this module knows the wire format; everything else
works with the decoded :class:`~prsift_core.models.RunState`.
"""

from __future__ import annotations

import json
import logging

from prsift_core.models import RunState

logger = logging.getLogger(__name__)

PAYLOAD_TAG_OPEN = "\n<!-- prsift: payload --"
PAYLOAD_TAG_CLOSE = "\n-- prsift: payload -->"


def encode(commits: list[str]) -> str:
    return PAYLOAD_TAG_OPEN + json.dumps({"commits": list(commits)}) + PAYLOAD_TAG_CLOSE


def decode(body: str | None) -> RunState | None:
    """Extract the RunState from a comment body, or None if absent or malformed. Never raises."""
    if not body:
        return None
    start = body.find(PAYLOAD_TAG_OPEN)
    if start == -1:
        return None
    start += len(PAYLOAD_TAG_OPEN)
    end = body.find(PAYLOAD_TAG_CLOSE, start)
    if end == -1:
        return None
    try:
        payload = json.loads(body[start:end])
    except json.JSONDecodeError as e:
        logger.info("Could not parse run state payload: %s", e)
        return None
    if not isinstance(payload, dict):
        return None
    commits = payload.get("commits")
    if not isinstance(commits, list):
        return RunState(commits=[])
    return RunState(commits=[c for c in commits if isinstance(c, str)])
