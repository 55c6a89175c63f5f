"""Deciding which files and commits a run must (re-)review."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from github import GithubException

from prsift_core import state
from prsift_core.gh.host import HostClient
from prsift_core.models import Commit, FileDiff

logger = logging.getLogger(__name__)


@dataclass
class ReviewScope:
    files: list[FileDiff]
    commits: list[Commit]
    is_incremental: bool
    last_reviewed: str | None = None

    @property
    def early_exit(self) -> bool:
        """True when every current commit was already reviewed: skip analysis and posting."""
        return not self.commits


def resolve_review_scope(
    host: HostClient,
    head_sha: str,
    commits: list[Commit],
    file_diffs: list[FileDiff],
    overview_body: str | None,
    force_full: bool = False,
) -> ReviewScope:
    """Compute the files and commits to review from the previous run's recorded state.

    ``overview_body`` is the body of the overview comment left by an earlier
    run, or None when there is none. Without it (or with ``force_full``) the
    whole PR is in scope. Otherwise only files touched between the last
    reviewed commit and ``head_sha`` are kept, even if other files still
    appear in the full PR diff.
    """
    if overview_body is None or force_full:
        logger.info("Running full review%s", " (forced)" if force_full else "")
        return ReviewScope(files=list(file_diffs), commits=list(commits), is_incremental=False)

    run_state = state.decode(overview_body)
    if run_state is None:
        logger.info("No readable run state in the overview comment; treating every commit as new.")
        reviewed: list[str] = []
    else:
        reviewed = run_state.commits
    last_reviewed = reviewed[-1] if reviewed else None

    files = list(file_diffs)
    if last_reviewed and last_reviewed != head_sha:
        try:
            changed = set(host.compare_files(last_reviewed, head_sha))
        except GithubException as e:
            # A force-push can make the old sha unreachable; review every file instead.
            logger.warning("Could not compare %s...%s, reviewing all files: %s", last_reviewed[:7], head_sha[:7], e)
        else:
            files = [f for f in files if f.filename in changed]
            logger.info(
                "Incremental review %s → %s: %d of %d file(s) changed",
                last_reviewed[:7],
                head_sha[:7],
                len(files),
                len(file_diffs),
            )

    seen = set(reviewed)
    new_commits = [c for c in commits if c.sha not in seen]
    return ReviewScope(
        files=files,
        commits=new_commits,
        is_incremental=True,
        last_reviewed=last_reviewed,
    )
