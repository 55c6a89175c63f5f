"""Shared fixtures: an in-memory HostClient for pipeline-level tests."""

import pytest

from prsift_core.gh.host import HostClient
from prsift_core.models import Comment, IssueComment, PullRequestInfo


class InMemoryHost(HostClient):
    """A pull request held in memory. Writes mutate its state and are logged in ``calls``."""

    def __init__(self, pr=None, commits=None, files=None, issue_comments=None, review_comments=None):
        self.pr = pr or PullRequestInfo(repo="acme/app", number=7, title="Add tiers", head_sha="c2", base_sha="b0")
        self.commits = list(commits or [])
        self.files = list(files or [])
        self.issue_comments = list(issue_comments or [])
        self.review_comments = list(review_comments or [])
        self.compare_result: list[str] | None = None
        self.calls: list[tuple] = []
        self.reviews: list[tuple[str, list]] = []
        self.fail_review_batches = False
        self.reject_paths: set[str] = set()
        self._next_id = 1000

    def _id(self):
        self._next_id += 1
        return self._next_id

    # reads
    def get_pull_request(self):
        return self.pr

    def list_commits(self):
        return list(self.commits)

    def list_files(self):
        return list(self.files)

    def list_issue_comments(self):
        return list(self.issue_comments)

    def list_review_comments(self):
        return list(self.review_comments)

    def compare_files(self, base_sha, head_sha):
        self.calls.append(("compare_files", base_sha, head_sha))
        return list(self.compare_result or [])

    # writes
    def create_issue_comment(self, body):
        self.calls.append(("create_issue_comment", body))
        comment = IssueComment(id=self._id(), body=body, author="prsift")
        self.issue_comments.append(comment)
        return comment

    def update_issue_comment(self, comment_id, body):
        self.calls.append(("update_issue_comment", comment_id, body))
        for c in self.issue_comments:
            if c.id == comment_id:
                c.body = body

    def create_review_comment(self, commit_sha, draft):
        self.calls.append(("create_review_comment", draft.path, draft.line))
        if draft.path in self.reject_paths:
            raise RuntimeError("line must be part of the diff")
        self.review_comments.append(
            Comment(id=self._id(), author="prsift", body=draft.body, path=draft.path, anchor_line=draft.line)
        )

    def reply_to_review_comment(self, comment_id, body):
        self.calls.append(("reply_to_review_comment", comment_id, body))
        parent = next(c for c in self.review_comments if c.id == comment_id)
        self.review_comments.append(
            Comment(id=self._id(), author="prsift", body=body, path=parent.path, in_reply_to_id=comment_id)
        )

    def submit_review(self, commit_sha, body, comments, event="COMMENT"):
        self.calls.append(("submit_review", len(comments)))
        if comments and self.fail_review_batches:
            raise RuntimeError("Unprocessable Entity")
        self.reviews.append((body, list(comments)))
        for d in comments:
            self.review_comments.append(
                Comment(id=self._id(), author="prsift", body=d.body, path=d.path, anchor_line=d.line)
            )

    def update_title(self, title):
        self.calls.append(("update_title", title))
        self.pr.title = title

    @property
    def writes(self):
        return [c for c in self.calls if c[0] != "compare_files"]


@pytest.fixture
def memory_host():
    return InMemoryHost()
