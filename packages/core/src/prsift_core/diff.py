"""Unified-diff parsing into line-anchored hunks.

A GitHub patch is a sequence of ``@@ -a,b +c,d @@`` blocks. Each block becomes
one Hunk anchored to *new-file* line numbers, since that is the side review
comments are posted against. Existing comment threads are attached to the
hunk whose range contains their anchor so the analysis step can see prior
discussion next to the code it refers to.
"""

from __future__ import annotations

import re

from prsift_core.models import CommentThread, File, FileDiff, Hunk

HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

_STATUS_VERBS = {
    "added": "added",
    "removed": "removed",
    "renamed": "renamed",
}


def _hunk_range(header_match: re.Match) -> tuple[int, int]:
    new_start = int(header_match.group(3))
    new_len = int(header_match.group(4)) if header_match.group(4) is not None else 1
    # A zero-length new range (pure deletion) still needs a valid single-point anchor.
    start = max(new_start, 1)
    end = max(start, new_start + new_len - 1)
    return start, end


def _split_hunks(patch: str) -> list[tuple[int, int, list[str]]]:
    hunks: list[tuple[int, int, list[str]]] = []
    current: list[str] | None = None
    for line in patch.split("\n"):
        match = HUNK_HEADER_RE.match(line)
        if match:
            start, end = _hunk_range(match)
            current = [line]
            hunks.append((start, end, current))
            continue
        if current is None:
            # File headers ("diff --git", "---", "+++") before the first hunk.
            continue
        current.append(line)
    return hunks


def _belongs_to(thread: CommentThread, file: File) -> bool:
    return thread.file == file.filename or (
        file.previous_filename is not None and thread.file == file.previous_filename
    )


def parse_file_diff(file: File, existing_threads: list[CommentThread]) -> FileDiff:
    """Parse one file's patch into hunks and attach the threads anchored inside them.

    A file without a patch (binary or too large for the host to render)
    yields a FileDiff with no hunks.
    """
    file_diff = FileDiff(
        filename=file.filename,
        status=file.status,
        previous_filename=file.previous_filename,
    )
    if not file.patch:
        return file_diff

    threads = [t for t in existing_threads if _belongs_to(t, file)]
    for start, end, lines in _split_hunks(file.patch):
        while len(lines) > 1 and lines[-1] == "":
            lines.pop()
        hunk = Hunk(start_line=start, end_line=end, diff="\n".join(lines))
        hunk.comment_threads = [t for t in threads if t.anchor is not None and start <= t.anchor <= end]
        file_diff.hunks.append(hunk)
    return file_diff


def split_hunk_lines(hunk: Hunk) -> tuple[list[tuple[int, str]], list[str]]:
    """Split a hunk body into the post-change view (numbered) and the pre-change view.

    Context lines belong to both views; ``+`` lines only to the new one and
    ``-`` lines only to the old one.
    """
    new_lines: list[tuple[int, str]] = []
    old_lines: list[str] = []
    line_no = hunk.start_line
    for line in hunk.diff.split("\n")[1:]:
        if line.startswith("\\"):
            continue
        if line.startswith("+"):
            new_lines.append((line_no, line))
            line_no += 1
        elif line.startswith("-"):
            old_lines.append(line)
        else:
            new_lines.append((line_no, line))
            old_lines.append(line)
            line_no += 1
    return new_lines, old_lines


def _file_header(file_diff: FileDiff) -> str:
    verb = _STATUS_VERBS.get(file_diff.status, "modified")
    if file_diff.status == "renamed" and file_diff.previous_filename:
        return f"## File {verb}: '{file_diff.previous_filename}' → '{file_diff.filename}'"
    return f"## File {verb}: '{file_diff.filename}'"


def _render_thread(thread: CommentThread) -> list[str]:
    out = [f"@{thread.root.author}: {thread.root.body.strip()}"]
    for reply in thread.replies:
        out.append(f"  @{reply.author}: {reply.body.strip()}")
    return out


def generate_file_code_diff(file_diff: FileDiff) -> str:
    """Render a FileDiff as the prompt-friendly text sent to the analysis backend."""
    out = [_file_header(file_diff), ""]
    for hunk in file_diff.hunks:
        new_lines, old_lines = split_hunk_lines(hunk)
        out.append(hunk.diff.split("\n", 1)[0])
        out.append("__new hunk__")
        out.extend(f"{n} {line}" for n, line in new_lines)
        if old_lines:
            out.append("__old hunk__")
            out.extend(old_lines)
        if hunk.comment_threads:
            out.append("__existing_comment_thread__")
            for thread in hunk.comment_threads:
                out.extend(_render_thread(thread))
        out.append("")
    return "\n".join(out).rstrip() + "\n"


def count_new_hunk_lines(rendered: str) -> list[int]:
    """Count the numbered rows of every ``__new hunk__`` block in rendered output."""
    counts: list[int] = []
    in_block = False
    for line in rendered.split("\n"):
        if line == "__new hunk__":
            counts.append(0)
            in_block = True
            continue
        if line.startswith("__") or not line or line.startswith("@@") or line.startswith("## "):
            in_block = False
            continue
        if in_block and line.split(" ", 1)[0].isdigit():
            counts[-1] += 1
    return counts


def unified_excerpt(files: list[FileDiff], path: str, line: int, context_lines: int = 2) -> str | None:
    """Return a few diff rows around ``line`` (new-file numbering), or None if not in any hunk."""
    file_diff = next((f for f in files if f.filename == path), None) or next(
        (f for f in files if f.previous_filename == path), None
    )
    if file_diff is None:
        return None
    hunk = next((h for h in file_diff.hunks if h.start_line <= line <= h.end_line), None)
    if hunk is None:
        return None

    rows: list[tuple[int | None, str]] = []
    line_no = hunk.start_line
    for row in hunk.diff.split("\n")[1:]:
        if row.startswith("\\"):
            continue
        if row.startswith("-"):
            rows.append((None, row))
        else:
            rows.append((line_no, row))
            line_no += 1

    idx = next((i for i, (n, _) in enumerate(rows) if n == line), None)
    if idx is None:
        return None
    window = rows[max(0, idx - context_lines) : idx + context_lines + 1]
    return "\n".join(f"{n} {s}" if n is not None else s for n, s in window)
