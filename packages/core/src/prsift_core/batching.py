"""Scope partitioning and character-budget batching of file diffs."""

from __future__ import annotations

import logging

from prsift_core.models import FileDiff

logger = logging.getLogger(__name__)

# Fixed allowance per file for the section header and markup around its hunks.
FILE_OVERHEAD_CHARS = 200

DEFAULT_SCOPES = ("data-model", "flows", "apex")
CATCH_ALL_SCOPE = "apex"


def _is_flow(name: str) -> bool:
    return "/flows/" in name and name.endswith(".flow-meta.xml")


def _is_data_model(name: str) -> bool:
    if "/objects/" in name and (name.endswith(".object-meta.xml") or "/fields/" in name):
        return True
    return "/globalvaluesets/" in name


def classify_scope(filename: str) -> str:
    """Return the single scope a file belongs to.

    Declarative data-model files and flow definitions get their own focused
    passes; everything else (code, UI, config) lands in the catch-all pass.
    """
    name = (filename or "").lower()
    if _is_flow(name):
        return "flows"
    if _is_data_model(name):
        return "data-model"
    return CATCH_ALL_SCOPE


def filter_by_scope(files: list[FileDiff], scope: str) -> list[FileDiff]:
    """Return the files in ``scope``, preserving order.

    An unknown scope name selects every file, so a misconfigured scope list
    degrades to a single full pass rather than silently reviewing nothing.
    """
    scope = (scope or "").lower()
    if scope not in DEFAULT_SCOPES:
        return list(files)
    return [f for f in files if classify_scope(f.filename) == scope]


def estimate_chars(file_diff: FileDiff) -> int:
    hunks_size = sum(len(h.diff) for h in file_diff.hunks)
    return hunks_size + len(file_diff.filename or "") + FILE_OVERHEAD_CHARS


def batch_by_chars(files: list[FileDiff], max_chars: int) -> list[list[FileDiff]]:
    """Greedily pack files into batches whose estimated size stays within ``max_chars``.

    A file is never split: one that alone exceeds the budget becomes its own
    oversized batch.
    """
    batches: list[list[FileDiff]] = []
    current: list[FileDiff] = []
    size = 0
    for file_diff in files:
        estimate = estimate_chars(file_diff)
        if current and size + estimate > max_chars:
            batches.append(current)
            current = []
            size = 0
        if estimate > max_chars:
            logger.warning(
                "%s (~%d chars) exceeds the batch budget of %d; sending it alone",
                file_diff.filename,
                estimate,
                max_chars,
            )
        current.append(file_diff)
        size += estimate
    if current:
        batches.append(current)
    return batches
