"""Tests for posting a reconciled plan, including the fallback paths."""

from unittest.mock import MagicMock

import pytest

from conftest import InMemoryHost
from prsift_core.comments import COMMENT_SIGNATURE, build_comment
from prsift_core.diff import parse_file_diff
from prsift_core.models import AIComment, Comment, CommentThread, DraftComment, File
from prsift_core.reconcile import reconcile
from prsift_core.submission import (
    FALLBACK_FAILED,
    FALLBACK_OK,
    OK,
    CommentSubmitter,
    SubmissionReport,
    chunk,
    with_retries,
)

PATCH = "@@ -1,3 +1,4 @@\n ctx\n+added one\n+added two\n ctx2\n"
LONG = "This dereferences a value that can be None when the cache is cold."


def _submitter(host, files=None, **kwargs):
    kwargs.setdefault("retry_delay", 0)
    kwargs.setdefault("concurrency", 2)
    return CommentSubmitter(host, "c2", files or [], **kwargs)


def _draft(path="a.ts", line=2, content=LONG, highlighted_code=""):
    finding = AIComment(file=path, content=content, header="Null deref", end_line=line, highlighted_code=highlighted_code)
    return DraftComment(path=path, line=line, body=build_comment(content), finding=finding)


class TestWithRetries:
    def test_returns_first_success(self, mocker):
        sleep = mocker.patch("prsift_core.submission.time.sleep")
        fn = MagicMock(side_effect=[RuntimeError("boom"), "ok"])
        assert with_retries(fn, attempts=3, delay=0.5) == "ok"
        sleep.assert_called_once_with(0.5)

    def test_delay_grows_linearly_and_last_error_is_raised(self, mocker):
        sleep = mocker.patch("prsift_core.submission.time.sleep")
        fn = MagicMock(side_effect=RuntimeError("boom"))
        with pytest.raises(RuntimeError, match="boom"):
            with_retries(fn, attempts=3, delay=0.25)
        assert fn.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [0.25, 0.5]


def test_chunk():
    assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunk([], 2) == []


class TestSubmit:
    def test_batches_with_summary_on_first(self):
        host = InMemoryHost()
        drafts = [_draft(line=i + 1) for i in range(5)]
        plan = reconcile([d.finding for d in drafts], [], {}, {"a.ts"})
        report = _submitter(host, batch_size=2).submit(plan, "SUMMARY")
        bodies = [body for body, _ in host.reviews]
        assert bodies[0] == "SUMMARY"
        assert bodies[1:] == ["Additional review comments (batch 2/3).", "Additional review comments (batch 3/3)."]
        assert [len(c) for _, c in host.reviews] == [2, 2, 1]
        assert report.count(OK) == 5

    def test_summary_only_review_when_nothing_is_anchored(self):
        host = InMemoryHost()
        _submitter(host).submit(reconcile([], [], {}, set()), "SUMMARY")
        assert host.reviews == [("SUMMARY", [])]

    def test_replies_are_posted_individually(self):
        root = Comment(id=5, author="prsift", body="x" + COMMENT_SIGNATURE, path="a.ts", anchor_line=2)
        host = InMemoryHost(review_comments=[root])
        finding = AIComment(file="a.ts", content=LONG, end_line=2)
        plan = reconcile([finding], [CommentThread(file="a.ts", root=root)], {}, {"a.ts"})
        report = _submitter(host).submit(plan, "SUMMARY")
        assert report.replies_posted == 1
        assert ("reply_to_review_comment", 5, plan.replies[0].body) in host.calls

    def test_failed_reply_does_not_block_others(self):
        host = MagicMock()
        host.reply_to_review_comment.side_effect = [RuntimeError("gone")] * 3 + [None]
        threads = [
            CommentThread(file="a.ts", root=Comment(id=i, author="prsift", body="x", path="a.ts", anchor_line=i))
            for i in (1, 2)
        ]
        findings = [AIComment(file="a.ts", content=LONG, end_line=i) for i in (1, 2)]
        report = _submitter(host).submit(reconcile(findings, threads, {}, {"a.ts"}), "S")
        assert report.replies_failed == 1
        assert report.replies_posted == 1


class TestFileNotes:
    def test_idempotent_file_level_upsert(self):
        host = InMemoryHost()
        finding = AIComment(file="a.ts", header="H", content="C")
        for _ in range(2):
            plan = reconcile([finding], [], {}, {"a.ts"})
            _submitter(host).submit(plan, "SUMMARY")
        signature = plan.file_notes[0].signature
        matching = [c for c in host.issue_comments if signature in c.body]
        assert len(matching) == 1
        assert sum(1 for c in host.calls if c[0] == "create_issue_comment") == 1
        assert sum(1 for c in host.calls if c[0] == "update_issue_comment") == 1

    def test_changed_header_creates_a_new_comment(self):
        host = InMemoryHost()
        for header in ("H1", "H2"):
            plan = reconcile([AIComment(file="a.ts", header=header, content="C")], [], {}, {"a.ts"})
            _submitter(host).submit(plan, "SUMMARY")
        assert len(host.issue_comments) == 2

    def test_report_counts(self):
        host = InMemoryHost()
        finding = AIComment(file="a.ts", header="H", content="C")
        first = _submitter(host).submit(reconcile([finding], [], {}, {"a.ts"}), "S")
        second = _submitter(host).submit(reconcile([finding], [], {}, {"a.ts"}), "S")
        assert (first.notes_created, first.notes_updated) == (1, 0)
        assert (second.notes_created, second.notes_updated) == (0, 1)


class TestFallback:
    def _files(self):
        return [parse_file_diff(File("a.ts", "modified", PATCH), []), parse_file_diff(File("b.ts", "modified", PATCH), [])]

    def test_batch_failure_posts_each_comment_individually(self):
        host = InMemoryHost()
        host.fail_review_batches = True
        drafts = [_draft("a.ts", 2), _draft("b.ts", 3)]
        plan = reconcile([d.finding for d in drafts], [], {}, {"a.ts", "b.ts"})
        report = _submitter(host, self._files()).submit(plan, "SUMMARY")

        attempted = {(c[1], c[2]) for c in host.calls if c[0] == "create_review_comment"}
        assert attempted == {("a.ts", 2), ("b.ts", 3)}
        assert report.count(FALLBACK_OK) == 2
        # the summary still goes out on its own
        assert host.reviews == [("SUMMARY", [])]

    def test_rejected_comment_becomes_top_level_with_context(self):
        host = InMemoryHost()
        host.fail_review_batches = True
        host.reject_paths = {"b.ts"}
        plan = reconcile([_draft("a.ts", 2).finding, _draft("b.ts", 3).finding], [], {}, {"a.ts", "b.ts"})
        report = _submitter(host, self._files()).submit(plan, "SUMMARY")

        assert report.count(FALLBACK_OK) == 2
        fallback = [c for c in host.issue_comments if "Context: b.ts:3" in c.body]
        assert len(fallback) == 1
        assert "```diff\n" in fallback[0].body
        assert "3 +added two" in fallback[0].body
        assert fallback[0].body.endswith(COMMENT_SIGNATURE)

    def test_fallback_prefers_highlighted_code(self):
        host = InMemoryHost()
        signature, body = _submitter(host, self._files())._top_level(_draft("a.ts", 2, highlighted_code="added one"))
        assert "```\nadded one\n```" in body
        assert "```diff" not in body
        assert signature in body

    def test_fallback_comment_is_not_duplicated_on_rerun(self):
        host = InMemoryHost()
        host.fail_review_batches = True
        host.reject_paths = {"a.ts"}
        for _ in range(2):
            plan = reconcile([_draft("a.ts", 2).finding], [], {}, {"a.ts"})
            _submitter(host, self._files()).submit(plan, "SUMMARY")
        assert len([c for c in host.issue_comments if "Context: a.ts:2" in c.body]) == 1

    def test_total_failure_is_reported(self):
        host = MagicMock()
        host.submit_review.side_effect = RuntimeError("422")
        host.create_review_comment.side_effect = RuntimeError("422")
        host.list_issue_comments.side_effect = RuntimeError("500")
        plan = reconcile([_draft("a.ts", 2).finding], [], {}, {"a.ts"})
        report = _submitter(host, self._files(), retry_attempts=2).submit(plan, "SUMMARY")
        assert report.count(FALLBACK_FAILED) == 1
        assert host.create_review_comment.call_count == 2

    def test_renamed_file_note_in_fallback(self):
        files = [parse_file_diff(File("new.ts", "renamed", PATCH, previous_filename="old.ts"), [])]
        _, body = _submitter(InMemoryHost(), files)._top_level(_draft("new.ts", 2))
        assert "Renamed: old.ts → new.ts" in body


def test_report_count_by_outcome():
    d = _draft()
    report = SubmissionReport(outcomes=[(d, OK), (d, FALLBACK_OK), (d, OK)])
    assert report.count(OK) == 2
    assert report.count(FALLBACK_FAILED) == 0
