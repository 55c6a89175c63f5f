"""Posting a reconciled plan to the host without losing findings.

Replies and file-level notes target existing resources, so each one is sent
on its own. New inline comments go out as review objects of at most
``batch_size`` comments. The first review carries the summary body. If the
host rejects a batch (typically because a line falls outside the diff it
accepts), the batch's comments are retried one by one on a small worker
pool. Any comment that still fails becomes a PR-level comment with a code
excerpt, upserted by signature so reruns do not duplicate it.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from prsift_core.comments import COMMENT_SIGNATURE, build_comment, make_upsert_signature
from prsift_core.diff import unified_excerpt
from prsift_core.gh.host import HostClient
from prsift_core.models import DraftComment, FileDiff
from prsift_core.reconcile import FileNote, ReconcilePlan, Reply

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_CONCURRENCY = 3
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 0.25

OK = "ok"
FALLBACK_OK = "fallback-ok"
FALLBACK_FAILED = "fallback-failed"


def with_retries(fn, attempts: int = DEFAULT_RETRY_ATTEMPTS, delay: float = DEFAULT_RETRY_DELAY):
    """Call ``fn`` up to ``attempts`` times, sleeping ``delay * n`` seconds after the n-th failure.

    Re-raises the last error once attempts are exhausted.
    """
    for attempt in range(attempts):
        try:
            return fn()
        except Exception as e:
            if attempt == attempts - 1:
                raise
            logger.debug("Host call failed (attempt %d/%d): %s", attempt + 1, attempts, e)
            time.sleep(delay * (attempt + 1))


def chunk(items: list, size: int) -> list[list]:
    if size <= 0:
        return [items] if items else []
    return [items[i : i + size] for i in range(0, len(items), size)]


@dataclass
class SubmissionReport:
    outcomes: list[tuple[DraftComment, str]] = field(default_factory=list)
    replies_posted: int = 0
    replies_failed: int = 0
    notes_created: int = 0
    notes_updated: int = 0
    notes_failed: int = 0

    def count(self, outcome: str) -> int:
        return sum(1 for _, o in self.outcomes if o == outcome)


class CommentSubmitter:
    def __init__(
        self,
        host: HostClient,
        head_sha: str,
        files: list[FileDiff],
        batch_size: int = DEFAULT_BATCH_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_codeblock_lines: int = 60,
    ):
        self.host = host
        self.head_sha = head_sha
        self.files = files
        self.batch_size = batch_size
        self.concurrency = max(1, concurrency)
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.max_codeblock_lines = max_codeblock_lines

    def _retry(self, fn):
        return with_retries(fn, self.retry_attempts, self.retry_delay)

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def submit(self, plan: ReconcilePlan, summary_body: str) -> SubmissionReport:
        report = SubmissionReport()
        for reply in plan.replies:
            self._submit_reply(reply, report)
        for note in plan.file_notes:
            self._submit_file_note(note, report)

        batches = chunk(plan.anchored, self.batch_size)
        if not batches:
            self._submit_summary_only(summary_body)
            return report

        for i, batch in enumerate(batches):
            body = summary_body if i == 0 else f"Additional review comments (batch {i + 1}/{len(batches)})."
            try:
                self._retry(lambda: self.host.submit_review(self.head_sha, body, batch))
            except Exception as e:
                logger.info("Batch review %d/%d failed, falling back to per-comment posting: %s", i + 1, len(batches), e)
                report.outcomes.extend(self._fallback(batch))
                if i == 0:
                    self._submit_summary_only(summary_body)
            else:
                report.outcomes.extend((d, OK) for d in batch)
        return report

    def upsert_issue_comment(self, signature: str, body: str) -> str:
        """Update the PR-level comment carrying ``signature``, or create one. Returns "updated" or "created".

        The comment list is re-read on every call so that concurrent runs see
        each other's comments as early as possible.
        """
        existing = next((c for c in self.host.list_issue_comments() if signature in c.body), None)
        if existing is not None:
            self.host.update_issue_comment(existing.id, body)
            return "updated"
        self.host.create_issue_comment(body)
        return "created"

    # ------------------------------------------------------------------ #
    # Individual resources                                                 #
    # ------------------------------------------------------------------ #

    def _submit_reply(self, reply: Reply, report: SubmissionReport) -> None:
        try:
            self._retry(lambda: self.host.reply_to_review_comment(reply.thread.root.id, reply.body))
            report.replies_posted += 1
        except Exception as e:
            report.replies_failed += 1
            logger.warning("Could not reply to thread %s on %s: %s", reply.thread.root.id, reply.thread.file, e)

    def _submit_file_note(self, note: FileNote, report: SubmissionReport) -> None:
        try:
            result = self._retry(lambda: self.upsert_issue_comment(note.signature, note.body))
        except Exception as e:
            report.notes_failed += 1
            logger.warning("Could not post file-level comment for %s: %s", note.finding.file, e)
            return
        if result == "updated":
            report.notes_updated += 1
        else:
            report.notes_created += 1

    def _submit_summary_only(self, summary_body: str) -> None:
        try:
            self._retry(lambda: self.host.submit_review(self.head_sha, summary_body, []))
        except Exception as e:
            logger.warning("Could not submit review summary: %s", e)

    # ------------------------------------------------------------------ #
    # Fallback path                                                        #
    # ------------------------------------------------------------------ #

    def _fallback(self, batch: list[DraftComment]) -> list[tuple[DraftComment, str]]:
        def post(draft: DraftComment) -> None:
            self._retry(lambda: self.host.create_review_comment(self.head_sha, draft))

        with ThreadPoolExecutor(max_workers=min(self.concurrency, len(batch))) as executor:
            futures = [executor.submit(post, d) for d in batch]

        outcomes = []
        for draft, future in zip(batch, futures):
            error = future.exception()
            if error is None:
                outcomes.append((draft, FALLBACK_OK))
                continue
            logger.info("Inline comment on %s:%d rejected: %s", draft.path, draft.line, error)
            try:
                self._retry(lambda d=draft: self.upsert_issue_comment(*self._top_level(d)))
                outcomes.append((draft, FALLBACK_OK))
            except Exception as e:
                logger.warning("Could not post fallback comment for %s:%d: %s", draft.path, draft.line, e)
                outcomes.append((draft, FALLBACK_FAILED))
        return outcomes

    def _top_level(self, draft: DraftComment) -> tuple[str, str]:
        """Signature and body of the PR-level stand-in for an inline comment."""
        finding = draft.finding
        header = finding.header if finding else ""
        text = draft.body.replace(COMMENT_SIGNATURE, "").rstrip()

        file_diff = next((f for f in self.files if draft.path in (f.filename, f.previous_filename)), None)
        rename_note = ""
        if file_diff is not None and file_diff.status == "renamed":
            rename_note = f"\n\nRenamed: {file_diff.previous_filename} → {file_diff.filename}"

        code = ""
        if finding and finding.highlighted_code.strip():
            code = f"\n\n```\n{finding.highlighted_code}\n```"
        else:
            excerpt = unified_excerpt(self.files, draft.path, draft.line)
            if excerpt:
                code = f"\n\n```diff\n{excerpt}\n```"

        signature = make_upsert_signature("fallback", draft.path, draft.line, header, text)
        body = f"{signature}\n{text}\n\nContext: {draft.path}:{draft.line}{rename_note}" + code
        return signature, build_comment(body, self.max_codeblock_lines)
