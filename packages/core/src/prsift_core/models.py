"""Data model shared by every stage of the review pipeline.

These types are host-agnostic: the GitHub adapter converts PyGithub objects
into them once per run, and every downstream stage (diff parsing, batching,
reconciliation, submission) works on these plain dataclasses only.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class File:
    """A changed file as reported by the host for the current head."""

    filename: str
    status: str  # "added" | "modified" | "removed" | "renamed"
    patch: str | None = None
    previous_filename: str | None = None


@dataclass(frozen=True)
class Commit:
    sha: str
    message: str = ""


@dataclass
class Comment:
    """An inline review comment.

    ``anchor_line`` is the end line of the comment's range and
    ``anchor_start_line`` its first line for multi-line comments.
    """

    id: int
    author: str
    body: str
    path: str
    anchor_line: int | None = None
    anchor_start_line: int | None = None
    in_reply_to_id: int | None = None


@dataclass
class IssueComment:
    """A PR-level (non-inline) comment."""

    id: int
    body: str
    author: str = ""


@dataclass
class CommentThread:
    """A root comment and its replies, in fetch order."""

    file: str
    root: Comment
    replies: list[Comment] = field(default_factory=list)

    @property
    def comments(self) -> list[Comment]:
        return [self.root, *self.replies]

    @property
    def anchor(self) -> int | None:
        """The line used to place this thread inside a hunk (start line preferred)."""
        if self.root.anchor_start_line is not None:
            return self.root.anchor_start_line
        return self.root.anchor_line


@dataclass
class Hunk:
    start_line: int
    end_line: int
    diff: str
    comment_threads: list[CommentThread] = field(default_factory=list)


@dataclass
class FileDiff:
    filename: str
    status: str
    hunks: list[Hunk] = field(default_factory=list)
    previous_filename: str | None = None


@dataclass
class AIComment:
    """A single finding returned by the analysis backend.

    ``end_line`` set to None means the finding concerns the whole file.
    """

    file: str
    content: str
    header: str = ""
    label: str = ""
    critical: bool = False
    highlighted_code: str = ""
    start_line: int | None = None
    end_line: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> AIComment:
        def _line(value):
            try:
                line = int(value)
            except (TypeError, ValueError):
                return None
            return line if line > 0 else None

        return cls(
            file=str(data.get("file") or ""),
            content=str(data.get("content") or ""),
            header=str(data.get("header") or ""),
            label=str(data.get("label") or ""),
            critical=bool(data.get("critical", False)),
            highlighted_code=str(data.get("highlighted_code") or ""),
            start_line=_line(data.get("start_line")),
            end_line=_line(data.get("end_line")),
        )

    @property
    def is_file_level(self) -> bool:
        return self.end_line is None


@dataclass
class RunState:
    """The set of commits already incorporated into the latest posted review."""

    commits: list[str] = field(default_factory=list)

    @property
    def last_reviewed(self) -> str | None:
        return self.commits[-1] if self.commits else None


@dataclass
class DraftComment:
    """A new inline comment ready for submission."""

    path: str
    line: int
    body: str
    start_line: int | None = None
    finding: AIComment | None = None

    def to_api(self) -> dict:
        data = {"path": self.path, "body": self.body, "line": self.line, "side": "RIGHT"}
        if self.start_line is not None and self.start_line < self.line:
            data["start_line"] = self.start_line
            data["start_side"] = "RIGHT"
        return data


@dataclass
class PullRequestInfo:
    """The pull request being reviewed, as of the current head."""

    repo: str  # owner/name
    number: int
    title: str = ""
    body: str = ""
    head_sha: str = ""
    base_sha: str = ""
    html_url: str = ""

    @property
    def repo_url(self) -> str | None:
        """Web URL of the repository, used for commit links."""
        if "/pull/" not in self.html_url:
            return None
        return self.html_url.rsplit("/pull/", 1)[0]
