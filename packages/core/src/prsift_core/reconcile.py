"""Matching fresh findings against what is already on the pull request.

Every finding ends up in exactly one bucket of a :class:`ReconcilePlan`:

- ``replies``: anchored findings that land on an existing thread's range,
- ``anchored``: anchored findings that start a new inline thread,
- ``file_notes``: file-level findings, upserted as PR-level comments keyed by
  a content-derived signature,
- ``skipped``: low-value findings and anything over the inline cap. They are
  reported in the review summary rather than posted.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from prsift_core.comments import build_comment, make_upsert_signature
from prsift_core.models import AIComment, CommentThread, DraftComment, FileDiff

logger = logging.getLogger(__name__)

DEFAULT_MAX_COMMENTS = 40

HIGH_VALUE_LABELS = frozenset({"security", "possible bug", "bug", "performance"})
_RISK_KEYWORDS_RE = re.compile(r"\b(sql|xss|csrf|injection|overflow|sqli|dos|race|leak)\b", re.IGNORECASE)
_MIN_SUBSTANTIVE_CHARS = 30


@dataclass
class Reply:
    thread: CommentThread
    body: str
    finding: AIComment


@dataclass
class FileNote:
    signature: str
    body: str
    finding: AIComment


@dataclass
class ReconcilePlan:
    replies: list[Reply] = field(default_factory=list)
    anchored: list[DraftComment] = field(default_factory=list)
    file_notes: list[FileNote] = field(default_factory=list)
    skipped: list[AIComment] = field(default_factory=list)

    @property
    def actionable(self) -> list[AIComment]:
        """Line-anchored findings that will be posted inline (replies included)."""
        return [r.finding for r in self.replies] + [d.finding for d in self.anchored if d.finding is not None]


def build_rename_map(files: list[FileDiff]) -> dict[str, str]:
    """Map each renamed file's previous path to its current path."""
    return {f.previous_filename: f.filename for f in files if f.previous_filename and f.previous_filename != f.filename}


def resolve_path(path: str, rename_map: dict[str, str]) -> str:
    return rename_map.get(path, path)


def _range_key(path: str, end_line: int | None, start_line: int | None) -> tuple[str, int | None, int | None]:
    # A start line equal to (or past) the end line describes a single-line anchor.
    if start_line is not None and end_line is not None and start_line >= end_line:
        start_line = None
    return path, end_line, start_line


class ThreadIndex:
    """Threads keyed by (resolved path, end line, start line) of their root comment."""

    def __init__(self, threads: list[CommentThread], rename_map: dict[str, str] | None = None):
        self.rename_map = rename_map or {}
        self._index: dict[tuple[str, int | None, int | None], CommentThread] = {}
        for thread in threads:
            root = thread.root
            if root.anchor_line is None:
                continue
            key = _range_key(resolve_path(thread.file, self.rename_map), root.anchor_line, root.anchor_start_line)
            self._index[key] = thread

    def find(self, path: str, end_line: int | None, start_line: int | None = None) -> CommentThread | None:
        if end_line is None:
            return None
        return self._index.get(_range_key(resolve_path(path, self.rename_map), end_line, start_line))

    def __len__(self) -> int:
        return len(self._index)


def is_worth_posting(finding: AIComment) -> bool:
    """Heuristic gate for inline comments.

    Critical findings and high-value labels always qualify. Anything else has
    to carry some substance: enough text, a code suggestion, or a concrete
    risk keyword.
    """
    content = (finding.content or "").strip()
    label = (finding.label or "").strip().lower()
    if finding.critical or label in HIGH_VALUE_LABELS:
        return True
    if len(content) >= _MIN_SUBSTANTIVE_CHARS:
        return True
    return "```" in content or bool(_RISK_KEYWORDS_RE.search(content))


def filter_findings(findings: list[AIComment], pr_filenames: set[str], rename_map: dict[str, str]) -> list[AIComment]:
    """Drop findings with no content or pointing at files outside the PR."""
    kept = []
    for f in findings:
        if not (f.content or "").strip():
            continue
        if resolve_path(f.file, rename_map) not in pr_filenames:
            logger.debug("Dropping finding for %s: not part of this PR", f.file)
            continue
        kept.append(f)
    return kept


def format_finding(finding: AIComment) -> str:
    heading = []
    if finding.critical:
        heading.append("**[CRITICAL]**")
    elif finding.label:
        heading.append(f"**[{finding.label.upper()}]**")
    if finding.header:
        heading.append(finding.header.strip())
    content = finding.content.strip()
    return f"{' '.join(heading)}\n\n{content}" if heading else content


def build_file_note(finding: AIComment, rename_map: dict[str, str], max_codeblock_lines: int = 60) -> FileNote:
    target = resolve_path(finding.file, rename_map)
    signature = make_upsert_signature("file-note", target, None, finding.header, finding.content)
    header = f"{finding.header.strip()}\n\n" if finding.header.strip() else ""
    code = f"\n\n```\n{finding.highlighted_code}\n```" if finding.highlighted_code.strip() else ""
    raw = f"{signature}\n{header}{finding.content.strip()}\n\nFile: {target}{code}"
    return FileNote(signature=signature, body=build_comment(raw, max_codeblock_lines), finding=finding)


def reconcile(
    findings: list[AIComment],
    threads: list[CommentThread],
    rename_map: dict[str, str],
    pr_filenames: set[str],
    max_comments: int = DEFAULT_MAX_COMMENTS,
    max_codeblock_lines: int = 60,
) -> ReconcilePlan:
    """Sort findings into replies, new inline comments, file-level upserts and skipped."""
    plan = ReconcilePlan()
    index = ThreadIndex(threads, rename_map)

    line_findings: list[AIComment] = []
    for finding in filter_findings(findings, pr_filenames, rename_map):
        if finding.is_file_level:
            plan.file_notes.append(build_file_note(finding, rename_map, max_codeblock_lines))
        elif is_worth_posting(finding):
            line_findings.append(finding)
        else:
            plan.skipped.append(finding)

    if len(line_findings) > max_comments:
        logger.info("Capping inline comments at %d (%d over)", max_comments, len(line_findings) - max_comments)
        plan.skipped.extend(line_findings[max_comments:])
        line_findings = line_findings[:max_comments]

    for finding in line_findings:
        path = resolve_path(finding.file, rename_map)
        body = build_comment(format_finding(finding), max_codeblock_lines)
        thread = index.find(path, finding.end_line, finding.start_line)
        if thread is not None:
            plan.replies.append(Reply(thread=thread, body=body, finding=finding))
            continue
        start = finding.start_line if finding.start_line and finding.start_line < finding.end_line else None
        plan.anchored.append(DraftComment(path=path, line=finding.end_line, body=body, start_line=start, finding=finding))

    return plan
