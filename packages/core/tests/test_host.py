"""Tests for the PyGithub-backed host and the dry-run wrapper."""

from types import SimpleNamespace
from unittest.mock import MagicMock

from conftest import InMemoryHost
from prsift_core.gh.host import DryRunHost, GithubHost, _to_comment
from prsift_core.models import DraftComment


def _review_comment(**overrides):
    data = dict(
        id=1,
        user=SimpleNamespace(login="alice"),
        body="nit",
        path="a.ts",
        line=10,
        original_line=8,
        start_line=None,
        original_start_line=None,
        in_reply_to_id=None,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


class TestToComment:
    def test_current_anchor(self):
        c = _to_comment(_review_comment(start_line=7))
        assert (c.author, c.anchor_line, c.anchor_start_line) == ("alice", 10, 7)

    def test_outdated_comment_falls_back_to_original_lines(self):
        c = _to_comment(_review_comment(line=None, original_start_line=5))
        assert (c.anchor_line, c.anchor_start_line) == (8, 5)

    def test_reply_and_missing_body(self):
        c = _to_comment(_review_comment(body=None, in_reply_to_id=1, user=None))
        assert c.body == ""
        assert c.author == ""
        assert c.in_reply_to_id == 1


class TestGithubHost:
    def _host(self):
        repo, pull = MagicMock(), MagicMock()
        repo.full_name = "acme/app"
        pull.number = 7
        pull.title = "T"
        pull.body = None
        pull.head.sha = "c2"
        pull.base.sha = "b0"
        pull.html_url = "https://github.com/acme/app/pull/7"
        return GithubHost(repo, pull), repo, pull

    def test_pull_request_info(self):
        host, _, _ = self._host()
        info = host.get_pull_request()
        assert (info.repo, info.number, info.body, info.head_sha) == ("acme/app", 7, "", "c2")

    def test_list_commits_and_files(self):
        host, _, pull = self._host()
        pull.get_commits.return_value = [SimpleNamespace(sha="c1", commit=SimpleNamespace(message="feat"))]
        pull.get_files.return_value = [
            SimpleNamespace(filename="new.ts", status="renamed", patch=None, previous_filename="old.ts")
        ]
        assert host.list_commits()[0].message == "feat"
        f = host.list_files()[0]
        assert (f.filename, f.previous_filename, f.patch) == ("new.ts", "old.ts", None)

    def test_multi_line_review_comment(self):
        host, repo, pull = self._host()
        host.create_review_comment("c2", DraftComment(path="a.ts", line=10, body="b", start_line=8))
        pull.create_review_comment.assert_called_once_with(
            "b", repo.get_commit.return_value, "a.ts", line=10, side="RIGHT", start_line=8, start_side="RIGHT"
        )

    def test_submit_review_serializes_drafts(self):
        host, repo, pull = self._host()
        host.submit_review("c2", "SUMMARY", [DraftComment(path="a.ts", line=3, body="b")])
        repo.get_commit.assert_called_once_with("c2")
        kwargs = pull.create_review.call_args.kwargs
        assert kwargs["body"] == "SUMMARY"
        assert kwargs["event"] == "COMMENT"
        assert kwargs["comments"] == [{"path": "a.ts", "body": "b", "line": 3, "side": "RIGHT"}]

    def test_compare_files(self):
        host, repo, _ = self._host()
        repo.compare.return_value = SimpleNamespace(files=[SimpleNamespace(filename="x.ts")])
        assert host.compare_files("c1", "c2") == ["x.ts"]
        repo.compare.assert_called_once_with("c1", "c2")

    def test_update_issue_comment(self):
        host, _, pull = self._host()
        host.update_issue_comment(5, "new body")
        pull.get_issue_comment.assert_called_once_with(5)
        pull.get_issue_comment.return_value.edit.assert_called_once_with("new body")


class TestDryRunHost:
    def test_reads_pass_through_and_writes_are_recorded(self):
        inner = InMemoryHost()
        host = DryRunHost(inner)
        assert host.get_pull_request().number == 7

        created = host.create_issue_comment("hello")
        host.update_issue_comment(created.id, "hello again")
        host.submit_review("c2", "SUMMARY", [DraftComment(path="a.ts", line=1, body="b")])
        host.reply_to_review_comment(3, "reply")
        host.update_title("New title")

        assert inner.writes == []
        assert created.id < 0
        assert [action for action, _ in host.writes] == [
            "create comment",
            f"update comment {created.id}",
            "submit COMMENT review with 1 inline comment(s)",
            "reply to comment 3",
            "update title to 'New title'",
        ]

    def test_fake_ids_are_unique(self):
        host = DryRunHost(InMemoryHost())
        assert host.create_issue_comment("a").id != host.create_issue_comment("b").id
