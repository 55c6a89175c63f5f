"""Source-control host interface and its GitHub implementation.

The pipeline only talks to :class:`HostClient`. :class:`GithubHost` is the
single place where PyGithub objects are touched: it converts them into the
plain dataclasses from :mod:`prsift_core.models` and back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from itertools import islice

from github import Auth, Github
from rich.console import Console

from prsift_core.models import Comment, Commit, DraftComment, File, IssueComment, PullRequestInfo

console = Console()

DEFAULT_API_URL = "https://api.github.com"


class HostClient(ABC):
    """Everything the review pipeline needs from the host, scoped to one pull request.

    Listings are always fully drained before they are returned.
    """

    @abstractmethod
    def get_pull_request(self) -> PullRequestInfo: ...

    @abstractmethod
    def list_commits(self) -> list[Commit]: ...

    @abstractmethod
    def list_files(self) -> list[File]: ...

    @abstractmethod
    def list_issue_comments(self) -> list[IssueComment]: ...

    @abstractmethod
    def create_issue_comment(self, body: str) -> IssueComment: ...

    @abstractmethod
    def update_issue_comment(self, comment_id: int, body: str) -> None: ...

    @abstractmethod
    def list_review_comments(self) -> list[Comment]: ...

    @abstractmethod
    def create_review_comment(self, commit_sha: str, draft: DraftComment) -> None: ...

    @abstractmethod
    def reply_to_review_comment(self, comment_id: int, body: str) -> None: ...

    @abstractmethod
    def submit_review(self, commit_sha: str, body: str, comments: list[DraftComment], event: str = "COMMENT") -> None:
        """Create a review carrying ``comments`` and submit it with ``event``."""

    @abstractmethod
    def compare_files(self, base_sha: str, head_sha: str) -> list[str]:
        """Filenames changed between two commits."""

    @abstractmethod
    def update_title(self, title: str) -> None: ...


def get_repo(repo_name: str, token: str, api_url: str = DEFAULT_API_URL):
    return Github(auth=Auth.Token(token), base_url=api_url).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def list_pull_requests(repo, state: str = "open", limit: int = 10) -> list:
    return list(islice(repo.get_pulls(state=state), limit))


def _login(obj) -> str:
    user = getattr(obj, "user", None)
    return getattr(user, "login", "") or ""


def _to_comment(c) -> Comment:
    # line is None for comments whose line left the current diff (e.g. after a
    # force-push); original_line still locates them.
    line = c.line if c.line is not None else getattr(c, "original_line", None)
    start_line = getattr(c, "start_line", None)
    if start_line is None:
        start_line = getattr(c, "original_start_line", None)
    return Comment(
        id=c.id,
        author=_login(c),
        body=c.body or "",
        path=c.path,
        anchor_line=line,
        anchor_start_line=start_line,
        in_reply_to_id=getattr(c, "in_reply_to_id", None),
    )


class GithubHost(HostClient):
    """HostClient backed by a PyGithub Repository and PullRequest."""

    def __init__(self, repo, pull):
        self.repo = repo
        self.pull = pull

    @classmethod
    def connect(cls, repo_name: str, pr_number: int, token: str, api_url: str = DEFAULT_API_URL) -> GithubHost:
        repo = get_repo(repo_name, token, api_url)
        return cls(repo, get_pull(repo, pr_number))

    def get_pull_request(self) -> PullRequestInfo:
        pull = self.pull
        return PullRequestInfo(
            repo=self.repo.full_name,
            number=pull.number,
            title=pull.title or "",
            body=pull.body or "",
            head_sha=pull.head.sha,
            base_sha=pull.base.sha,
            html_url=pull.html_url or "",
        )

    def list_commits(self) -> list[Commit]:
        return [Commit(sha=c.sha, message=c.commit.message or "") for c in self.pull.get_commits()]

    def list_files(self) -> list[File]:
        return [
            File(
                filename=f.filename,
                status=f.status,
                patch=f.patch,
                previous_filename=getattr(f, "previous_filename", None),
            )
            for f in self.pull.get_files()
        ]

    def list_issue_comments(self) -> list[IssueComment]:
        return [IssueComment(id=c.id, body=c.body or "", author=_login(c)) for c in self.pull.get_issue_comments()]

    def create_issue_comment(self, body: str) -> IssueComment:
        c = self.pull.create_issue_comment(body)
        return IssueComment(id=c.id, body=c.body or body, author=_login(c))

    def update_issue_comment(self, comment_id: int, body: str) -> None:
        self.pull.get_issue_comment(comment_id).edit(body)

    def list_review_comments(self) -> list[Comment]:
        return [_to_comment(c) for c in self.pull.get_review_comments()]

    def create_review_comment(self, commit_sha: str, draft: DraftComment) -> None:
        kwargs = {"line": draft.line, "side": "RIGHT"}
        if draft.start_line is not None and draft.start_line < draft.line:
            kwargs["start_line"] = draft.start_line
            kwargs["start_side"] = "RIGHT"
        self.pull.create_review_comment(draft.body, self.repo.get_commit(commit_sha), draft.path, **kwargs)

    def reply_to_review_comment(self, comment_id: int, body: str) -> None:
        self.pull.create_review_comment_reply(comment_id, body)

    def submit_review(self, commit_sha: str, body: str, comments: list[DraftComment], event: str = "COMMENT") -> None:
        self.pull.create_review(
            commit=self.repo.get_commit(commit_sha),
            body=body,
            event=event,
            comments=[d.to_api() for d in comments],
        )

    def compare_files(self, base_sha: str, head_sha: str) -> list[str]:
        return [f.filename for f in self.repo.compare(base_sha, head_sha).files]

    def update_title(self, title: str) -> None:
        self.pull.edit(title=title)


class DryRunHost(HostClient):
    """Delegates reads to a real host and prints writes instead of performing them.

    Every suppressed write is also appended to :attr:`writes` so callers can
    inspect what a live run would have done.
    """

    def __init__(self, inner: HostClient):
        self.inner = inner
        self.writes: list[tuple[str, dict]] = []
        self._next_id = -1

    def _record(self, action: str, **details) -> None:
        self.writes.append((action, details))
        console.print(f"[yellow]DRY-RUN:[/yellow] would {action}")
        body = details.get("body")
        if body:
            console.print(body, markup=False, highlight=False)

    def get_pull_request(self) -> PullRequestInfo:
        return self.inner.get_pull_request()

    def list_commits(self) -> list[Commit]:
        return self.inner.list_commits()

    def list_files(self) -> list[File]:
        return self.inner.list_files()

    def list_issue_comments(self) -> list[IssueComment]:
        return self.inner.list_issue_comments()

    def list_review_comments(self) -> list[Comment]:
        return self.inner.list_review_comments()

    def compare_files(self, base_sha: str, head_sha: str) -> list[str]:
        return self.inner.compare_files(base_sha, head_sha)

    def create_issue_comment(self, body: str) -> IssueComment:
        self._record("create comment", body=body)
        comment_id = self._next_id
        self._next_id -= 1
        return IssueComment(id=comment_id, body=body)

    def update_issue_comment(self, comment_id: int, body: str) -> None:
        self._record(f"update comment {comment_id}", body=body)

    def create_review_comment(self, commit_sha: str, draft: DraftComment) -> None:
        self._record(f"comment on {draft.path}:{draft.line}", body=draft.body)

    def reply_to_review_comment(self, comment_id: int, body: str) -> None:
        self._record(f"reply to comment {comment_id}", body=body)

    def submit_review(self, commit_sha: str, body: str, comments: list[DraftComment], event: str = "COMMENT") -> None:
        self._record(
            f"submit {event} review with {len(comments)} inline comment(s)",
            body=body,
            comments=[d.to_api() for d in comments],
        )
        for d in comments:
            console.print(f"  [bold cyan]{d.path}[/bold cyan] line [bold]{d.line}[/bold]")
            console.print(f"  {d.body}", markup=False, highlight=False)

    def update_title(self, title: str) -> None:
        self._record(f"update title to {title!r}")
