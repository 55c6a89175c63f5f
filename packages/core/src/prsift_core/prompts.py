"""Prompt construction for the analysis backend and decoding of its answers.

Two prompts are run per review: a summary prompt over the whole PR and a
review prompt per batch of files. The review prompt comes in a generic and
a metadata-focused variant; the output schema is identical for both.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from prsift_core.diff import generate_file_code_diff
from prsift_core.models import AIComment, FileDiff

logger = logging.getLogger(__name__)

_MAX_COMMIT_SUBJECTS = 100

_METADATA_SUFFIXES = (".cls", ".trigger", ".apex", ".page", ".cmp", ".component", ".resource", "-meta.xml")
_BUNDLE_DIRS = ("/lwc/", "/aura/")
_BUNDLE_SUFFIXES = (".js", ".ts", ".html", ".css", ".xml")


@dataclass
class PullRequestSummary:
    title: str
    description: str


@dataclass
class PullRequestReview:
    review: dict = field(default_factory=dict)
    documentation: str = ""
    comments: list[AIComment] = field(default_factory=list)


def is_metadata_file(filename: str) -> bool:
    """True for declarative metadata and platform code files that get the metadata-focused prompt."""
    name = (filename or "").lower()
    if name.endswith(_METADATA_SUFFIXES):
        return True
    return any(d in name for d in _BUNDLE_DIRS) and name.endswith(_BUNDLE_SUFFIXES)


def should_use_metadata(files: list[FileDiff], mode: str = "auto") -> bool:
    mode = (mode or "auto").lower()
    if mode == "on":
        return True
    if mode == "off":
        return False
    return any(is_metadata_file(f.filename) for f in files)


# ---------------------------------------------------------------------- #
# Summary                                                                  #
# ---------------------------------------------------------------------- #

_SUMMARY_SYSTEM_PROMPT = """You are summarizing a GitHub Pull Request (PR) for its reviewers.
Read the PR title, description, commit messages and file diffs, then describe
what the PR changes and why, in plain language.

Respond with **only** a valid JSON object:

{
  "title": "<concise PR title, at most 72 characters, imperative mood>",
  "description": "<two to five sentences summarizing the change and its purpose>"
}

Do not return any text outside the JSON object."""


def build_summary_prompt(
    title: str, description: str, commit_messages: list[str], files: list[FileDiff], max_chars: int = 0
) -> str:
    subjects = [(m or "").split("\n")[0] for m in commit_messages][-_MAX_COMMIT_SUBJECTS:]
    diffs = "\n\n".join(generate_file_code_diff(f) for f in files)
    if max_chars and len(diffs) > max_chars:
        diffs = diffs[:max_chars] + "\n... [diff truncated]"
    commits = "\n".join(f"- {s}" for s in subjects)
    return f"""<PR title>
{title}
</PR title>

<PR Description>
{description}
</PR Description>

<Commit Messages>
{commits}
</Commit Messages>

<PR File Diffs>
{diffs}
</PR File Diffs>
"""


def run_summary_prompt(
    analyzer,
    title: str,
    description: str,
    commit_messages: list[str],
    files: list[FileDiff],
    max_chars: int = 0,
) -> PullRequestSummary:
    """Ask the backend for a PR title and description.

    Falls back to the PR's own title and description when the backend gives
    no usable answer.
    """
    prompt = build_summary_prompt(title, description, commit_messages, files, max_chars)
    data = analyzer.analyze(_SUMMARY_SYSTEM_PROMPT, prompt)
    if not data:
        logger.warning("Summary prompt returned nothing usable; keeping the PR's own title and description.")
        return PullRequestSummary(title=title, description=description)
    return PullRequestSummary(
        title=str(data.get("title") or title).strip(),
        description=str(data.get("description") or description).strip(),
    )


# ---------------------------------------------------------------------- #
# Review                                                                   #
# ---------------------------------------------------------------------- #

REVIEW_OUTPUT_SCHEMA = {
    "review": {
        "estimated_effort_to_review": "<integer 1-5: effort for an experienced developer to review this PR>",
        "score": "<integer 0-100: PR quality, 100 means production-grade with no issues>",
        "has_relevant_tests": "<true if the PR adds or updates relevant tests>",
        "security_concerns": "<summary of potential security issues, or 'No'>",
    },
    "documentation": (
        "<concise markdown the author can paste into the PR description or release notes: "
        "Summary/Rationale and a Release Notes Entry. No test, deployment or rollback notes.>"
    ),
    "comments": [
        {
            "file": "<full path of the relevant file>",
            "start_line": "<line number (inclusive) from a '__new hunk__' section where the comment starts>",
            "end_line": "<line number (inclusive) from a '__new hunk__' section where the comment ends; "
            "null for a comment about the whole file>",
            "header": "<concise, single-sentence overview of the comment>",
            "content": "<actionable comment in markdown; fenced code suggestions with a language tag, "
            "at most 15 lines>",
            "highlighted_code": "<short snippet from a '__new hunk__' the comment refers to, without line numbers>",
            "label": "<single label: 'security', 'possible bug', 'bug', 'performance', 'enhancement', ...>",
            "critical": "<true if the PR should not be merged without addressing this comment>",
        }
    ],
}

_GENERIC_FOCUS = """You are a strict and precise senior code reviewer reviewing a GitHub Pull Request (PR).
Provide only high-value, actionable comments that improve correctness, security
and performance. Do not comment on cosmetic formatting unless it causes
functional issues."""

_METADATA_FOCUS = """You are a senior platform developer reviewing a GitHub Pull Request (PR) that
contains application code and declarative metadata. Provide only high-value,
actionable comments that improve correctness, security, performance and
compliance with platform best practices.

Focus areas by artifact type:
- Code (classes/triggers): no queries or writes inside loops; respect platform limits;
  enforce object and field level access checks; avoid hard-coded IDs and secrets;
  do not swallow exceptions.
- Queries: use bind variables, never concatenate user input; keep filters selective.
- UI components: avoid unsanitized HTML and excessive server round-trips.
- Objects and fields: justify new objects; check new fields against existing ones
  for duplicates; prefer shared value sets over ad-hoc picklists; no hard-coded
  IDs in defaults or formulas.
- Flows: fault paths on every data element; no lookups or updates inside loops;
  selective entry conditions.
- Profiles and permission sets: least privilege; no silent widening of access."""

_COMMON_RULES = """Rules:
- Only comment on code introduced in this PR (lines starting with '+').
- Also consider implications of removed lines (e.g. deleted null checks, dropped permission guards).
- Lines in '__existing_comment_thread__' blocks are earlier discussion; do not repeat them.
- If no actionable issues are found, return an empty comments array."""


def build_review_system_prompt(metadata: bool, guidelines: str = "", style_guide_rules: str | None = None) -> str:
    parts = [_METADATA_FOCUS if metadata else _GENERIC_FOCUS]
    if guidelines and guidelines.strip():
        parts.append(guidelines.strip())
    parts.append(_COMMON_RULES)
    if style_guide_rules and style_guide_rules.strip():
        parts.append(f"Guidelines to enforce (critical violations should be marked critical):\n{style_guide_rules.strip()}")
    parts.append(
        "Respond with **only** a valid JSON object of this shape:\n\n"
        + json.dumps(REVIEW_OUTPUT_SCHEMA, indent=2)
        + "\n\nDo not return any text outside the JSON object."
    )
    return "\n\n".join(parts)


def build_review_prompt(title: str, description: str, summary: str, files: list[FileDiff]) -> str:
    diffs = "\n\n".join(generate_file_code_diff(f) for f in files)
    return f"""<PR title>
{title}
</PR title>

<PR Description>
{description}
</PR Description>

<PR Summary>
{summary}
</PR Summary>

<PR File Diffs>
{diffs}
</PR File Diffs>
"""


def parse_review(data: dict | None) -> PullRequestReview:
    if not data:
        return PullRequestReview()
    raw_comments = data.get("comments") or []
    if not isinstance(raw_comments, list):
        raw_comments = []
    review = data.get("review")
    return PullRequestReview(
        review=review if isinstance(review, dict) else {},
        documentation=str(data.get("documentation") or ""),
        comments=[AIComment.from_dict(c) for c in raw_comments if isinstance(c, dict)],
    )


def run_review_prompt(
    analyzer,
    title: str,
    description: str,
    summary: str,
    files: list[FileDiff],
    metadata: bool = False,
    guidelines: str = "",
    style_guide_rules: str | None = None,
) -> PullRequestReview:
    """Review one batch of files. An unusable backend answer yields an empty review."""
    system_prompt = build_review_system_prompt(metadata, guidelines, style_guide_rules)
    prompt = build_review_prompt(title, description, summary, files)
    result = parse_review(analyzer.analyze(system_prompt, prompt))
    logger.debug("Review prompt over %d file(s) returned %d finding(s)", len(files), len(result.comments))
    return result
