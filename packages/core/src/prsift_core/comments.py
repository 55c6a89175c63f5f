"""Comment threads, comment bodies and the invisible tags embedded in them."""

from __future__ import annotations

from collections import defaultdict

from prsift_core.models import Comment, CommentThread

COMMENT_SIGNATURE = "\n<!-- prsift: comment -->"
MENTIONS = ("@prsift",)

_TRUNCATION_MARKER = "... (truncated; more lines omitted) ..."


def build_comment_threads(comments: list[Comment]) -> list[CommentThread]:
    """Group a flat review-comment listing into threads in a single pass.

    Roots are comments with a body, no parent and an anchor line. Replies
    keep the order in which the host returned them. Replies whose parent is
    not a root (deleted, or unanchored outdated roots) are dropped.
    """
    replies_by_parent: dict[int, list[Comment]] = defaultdict(list)
    roots: list[Comment] = []
    for c in comments:
        if c.in_reply_to_id:
            replies_by_parent[c.in_reply_to_id].append(c)
            continue
        has_anchor = c.anchor_line is not None or c.anchor_start_line is not None
        if c.body and has_anchor:
            roots.append(c)
    return [CommentThread(file=r.path, root=r, replies=replies_by_parent.get(r.id, [])) for r in roots]


def is_own_comment(body: str) -> bool:
    return COMMENT_SIGNATURE.strip() in (body or "")


def is_thread_relevant(thread: CommentThread) -> bool:
    """True if we posted into this thread or somebody addressed us in it."""
    for c in thread.comments:
        if is_own_comment(c.body) or any(m in (c.body or "") for m in MENTIONS):
            return True
    return False


def truncate_code_blocks(text: str, max_lines: int) -> str:
    """Cap the number of lines inside each fenced code block."""
    out: list[str] = []
    in_fence = False
    code_lines = 0
    for line in text.split("\n"):
        if line.startswith("```"):
            in_fence = not in_fence
            code_lines = 0
            out.append(line)
            continue
        if not in_fence:
            out.append(line)
            continue
        code_lines += 1
        if code_lines <= max_lines:
            out.append(line)
        elif code_lines == max_lines + 1:
            out.append(_TRUNCATION_MARKER)
    return "\n".join(out)


def build_comment(content: str, max_codeblock_lines: int = 60) -> str:
    """Final body for anything we post: truncated code blocks plus our signature."""
    return truncate_code_blocks(content, max_codeblock_lines) + "\n\n" + COMMENT_SIGNATURE


def hash_string(value: str) -> str:
    """djb2-xor over the string, as an unsigned 32-bit hex token."""
    h = 5381
    for ch in value:
        h = ((h * 33) ^ ord(ch)) & 0xFFFFFFFF
    return format(h, "x")


def make_stable_key(kind: str, file: str, line: int | None, header: str = "", content: str = "") -> str:
    first_line = (content or "").split("\n")[0].strip().lower()
    discriminator = (header or first_line)[:80]
    return f"{kind}|{file}|{line or 0}|{discriminator}"


def make_upsert_signature(kind: str, file: str, line: int | None, header: str = "", content: str = "") -> str:
    """Invisible tag identifying one logical finding across runs.

    The same kind, file, line and header (or first content line when there
    is no header) always produce the same tag.
    """
    key = make_stable_key(kind, file, line, header, content)
    # Keep the key from terminating the HTML comment early.
    safe_key = key.replace("\n", " ").replace("--", "-‐")
    return f"<!-- prsift: upsert:{hash_string(key)}:{safe_key} -->"
