"""Tests for incremental scope resolution."""

from unittest.mock import MagicMock

from github import GithubException

from prsift_core import state
from prsift_core.models import Commit, FileDiff
from prsift_core.scope import resolve_review_scope


def _files(*names):
    return [FileDiff(filename=n, status="modified") for n in names]


def _commits(*shas):
    return [Commit(sha=s, message=f"commit {s}") for s in shas]


def _overview(*shas):
    return "PR Summary: x\n" + state.encode(list(shas))


def test_no_overview_means_full_review():
    host = MagicMock()
    scope = resolve_review_scope(host, "c2", _commits("c1", "c2"), _files("a.ts", "x.ts"), None)
    assert not scope.is_incremental
    assert [f.filename for f in scope.files] == ["a.ts", "x.ts"]
    assert [c.sha for c in scope.commits] == ["c1", "c2"]
    host.compare_files.assert_not_called()


def test_forced_full_review_ignores_state():
    host = MagicMock()
    scope = resolve_review_scope(
        host, "c2", _commits("c1", "c2"), _files("a.ts"), _overview("c1", "c2"), force_full=True
    )
    assert not scope.is_incremental
    assert [c.sha for c in scope.commits] == ["c1", "c2"]
    assert not scope.early_exit


def test_incremental_exclusion():
    host = MagicMock()
    host.compare_files.return_value = ["x.ts"]
    scope = resolve_review_scope(host, "c2", _commits("c1", "c2"), _files("a.ts", "x.ts", "b.ts"), _overview("c1"))
    assert scope.is_incremental
    assert [f.filename for f in scope.files] == ["x.ts"]
    assert [c.sha for c in scope.commits] == ["c2"]
    assert scope.last_reviewed == "c1"
    host.compare_files.assert_called_once_with("c1", "c2")


def test_compare_only_lists_files_outside_the_pr():
    host = MagicMock()
    host.compare_files.return_value = ["unrelated.ts"]
    scope = resolve_review_scope(host, "c2", _commits("c1", "c2"), _files("a.ts"), _overview("c1"))
    assert scope.files == []


def test_head_already_reviewed_is_early_exit():
    host = MagicMock()
    scope = resolve_review_scope(host, "c2", _commits("c1", "c2"), _files("a.ts"), _overview("c1", "c2"))
    assert scope.early_exit
    assert scope.commits == []
    host.compare_files.assert_not_called()


def test_malformed_state_treats_every_commit_as_new():
    host = MagicMock()
    body = "overview" + state.PAYLOAD_TAG_OPEN + "{oops" + state.PAYLOAD_TAG_CLOSE
    scope = resolve_review_scope(host, "c2", _commits("c1", "c2"), _files("a.ts"), body)
    assert scope.is_incremental
    assert [c.sha for c in scope.commits] == ["c1", "c2"]
    assert [f.filename for f in scope.files] == ["a.ts"]
    host.compare_files.assert_not_called()


def test_compare_failure_falls_back_to_all_files():
    host = MagicMock()
    host.compare_files.side_effect = GithubException(404, {"message": "Not Found"}, None)
    scope = resolve_review_scope(host, "c3", _commits("c2", "c3"), _files("a.ts", "b.ts"), _overview("c1"))
    assert [f.filename for f in scope.files] == ["a.ts", "b.ts"]
    assert [c.sha for c in scope.commits] == ["c2", "c3"]


def test_rebased_history_keeps_only_unseen_commits():
    host = MagicMock()
    host.compare_files.return_value = ["a.ts"]
    scope = resolve_review_scope(host, "n2", _commits("c1", "n1", "n2"), _files("a.ts"), _overview("c1", "old"))
    assert [c.sha for c in scope.commits] == ["n1", "n2"]
    host.compare_files.assert_called_once_with("old", "n2")
