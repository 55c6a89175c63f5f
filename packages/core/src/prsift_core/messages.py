"""Markdown bodies for the PR-level comments and the review description."""

from __future__ import annotations

import re

from prsift_core import state
from prsift_core.models import AIComment, Commit, FileDiff
from prsift_core.prompts import PullRequestSummary

OVERVIEW_MESSAGE_SIGNATURE = "\n<!-- prsift: overview message -->"
DOCUMENTATION_SIGNATURE = "\n<!-- prsift: documentation -->"
REVIEW_SIGNATURE = "\n<!-- prsift: review -->"

_STATUS_ICONS = {"added": "➕", "removed": "➖", "renamed": "📝"}
_MAX_SUMMARY_CHARS = 500

# (category, predicate over the lower-cased filename); first match wins.
_CATEGORIES = (
    ("Apex", lambda n: "/classes/" in n and n.endswith(".cls")),
    ("Triggers", lambda n: "/triggers/" in n and n.endswith(".trigger")),
    ("Flows", lambda n: "/flows/" in n and n.endswith(".flow-meta.xml")),
    ("Objects", lambda n: "/objects/" in n and n.endswith(".object-meta.xml")),
    ("Fields", lambda n: "/objects/" in n and "/fields/" in n and n.endswith(".field-meta.xml")),
    ("Layouts", lambda n: "/layouts/" in n and n.endswith(".layout-meta.xml")),
    ("PermissionSets", lambda n: "/permissionsets/" in n and n.endswith(".permissionset-meta.xml")),
    ("Profiles", lambda n: "/profiles/" in n and n.endswith(".profile-meta.xml")),
    ("GlobalValueSets", lambda n: "/globalvaluesets/" in n and n.endswith(".globalvalueset-meta.xml")),
    ("LWC", lambda n: "/lwc/" in n),
    ("Aura", lambda n: "/aura/" in n),
)

_FIELD_RE = re.compile(r"objects/([^/]+)/fields/([^/]+)\.field-meta\.xml$", re.IGNORECASE)
_FLOW_RE = re.compile(r"flows/([^/]+)\.flow-meta\.xml$", re.IGNORECASE)
_CLASS_RE = re.compile(r"classes/([^/]+)\.cls$", re.IGNORECASE)
_RATIONALE_HEADING_RE = re.compile(r"^\s*(summary/rationale|rationale)\s*:?\s*", re.IGNORECASE)


def _hunk_count(file_diff: FileDiff) -> str:
    n = len(file_diff.hunks)
    return f"_({n} {'hunk' if n == 1 else 'hunks'})_"


def _commit_ref(sha: str, repo_url: str | None) -> str:
    short = sha[:7]
    return f"[{short}]({repo_url.rstrip('/')}/commit/{sha})" if repo_url else f"`{short}`"


def build_loading_message(
    base_sha: str, commits: list[Commit], files: list[FileDiff], repo_url: str | None = None
) -> str:
    """The "in progress" overview body shown while analysis runs."""
    lines = ["⏳ **Analyzing changes in this PR...** ⏳", "", "_This might take a few minutes, please wait_", ""]

    lines.append("<details>\n<summary>📥 Commits</summary>\n")
    head = commits[-1].sha[:7] if commits else base_sha[:7]
    lines.append(f"Analyzing changes from base (`{base_sha[:7]}`) to latest commit (`{head}`):")
    for commit in reversed(commits):
        subject = (commit.message or "").split("\n")[0]
        lines.append(f"- {_commit_ref(commit.sha, repo_url)}: {subject}")
    lines.append("\n</details>\n")

    lines.append(f"<details>\n<summary>📁 Files being considered ({len(files)})</summary>\n")
    for f in files:
        text = f"{_STATUS_ICONS.get(f.status, '🔄')} {f.filename}"
        if f.status == "renamed" and f.previous_filename:
            text += f" (from {f.previous_filename})"
        lines.append(f"{text} {_hunk_count(f)}")
    lines.append("\n</details>\n")

    return "\n".join(lines) + OVERVIEW_MESSAGE_SIGNATURE


def _category(filename: str) -> str | None:
    name = filename.lower()
    return next((label for label, match in _CATEGORIES if match(name)), None)


def _highlights(files: list[FileDiff]) -> list[str]:
    new_fields, changed_fields, flows, classes = [], [], [], []
    for f in files:
        field_match = _FIELD_RE.search(f.filename)
        flow_match = _FLOW_RE.search(f.filename)
        class_match = _CLASS_RE.search(f.filename)
        if field_match:
            name = f"{field_match.group(1)}.{field_match.group(2)}"
            if f.status == "added":
                new_fields.append(name)
            elif f.status == "modified":
                changed_fields.append(name)
        elif flow_match:
            flows.append(flow_match.group(1))
        elif class_match and not class_match.group(1).lower().endswith("test"):
            classes.append(class_match.group(1))

    bullets = []
    if new_fields:
        bullets.append(f"New custom fields: {', '.join(new_fields)}")
    if changed_fields:
        bullets.append(f"Changed custom fields: {', '.join(changed_fields)}")
    if flows:
        bullets.append(f"Flows changed: {', '.join(flows)}")
    if classes:
        bullets.append(f"Apex classes changed: {', '.join(classes)}")
    return bullets


def build_overview_message(
    summary: PullRequestSummary,
    commits: list[str],
    files: list[FileDiff],
    rationale: str | None = None,
) -> str:
    """The final overview body. Carries the overview signature and the run state over ``commits``."""
    desc = " ".join((summary.description or "").split())
    if len(desc) > _MAX_SUMMARY_CHARS:
        desc = desc[: _MAX_SUMMARY_CHARS - 3] + "..."

    counters: dict[str, int] = {}
    for f in files:
        category = _category(f.filename)
        if category:
            counters[category] = counters.get(category, 0) + 1
    categories = ", ".join(f"{k}({v})" for k, v in sorted(counters.items()))

    message = f"PR Summary: {desc}\n\n"
    message += f"Scope: {len(files)} files changed" + (f"; {categories}" if categories else "") + "\n\n"

    bullets = _highlights(files)
    if bullets:
        message += "Highlights:\n- " + "\n- ".join(bullets) + "\n\n"

    if rationale and rationale.strip():
        message += f"Rationale:\n\n{_RATIONALE_HEADING_RE.sub('', rationale.strip(), count=1)}\n\n"

    return message + OVERVIEW_MESSAGE_SIGNATURE + state.encode(commits)


def _finding_line(finding: AIComment) -> str:
    if finding.end_line is None:
        where = finding.file
    elif finding.start_line and finding.start_line < finding.end_line:
        where = f"{finding.file} [{finding.start_line}-{finding.end_line}]"
    else:
        where = f"{finding.file} [{finding.end_line}]"
    label = f"{finding.label}: " if finding.label else ""
    title = finding.header or finding.content.split("\n")[0]
    return f"- `{where}` {label}{title}"


def build_review_summary(
    files: list[FileDiff],
    actionable: list[AIComment],
    skipped: list[AIComment],
    incremental_base: str | None = None,
    head_sha: str | None = None,
) -> str:
    """Review description posted with the first batch of inline comments."""
    lines = ["## Review summary\n"]

    if incremental_base and head_sha:
        lines.append(f"_Incremental review: `{incremental_base[:7]}` → `{head_sha[:7]}`_\n")

    critical = sum(1 for c in actionable if c.critical)
    if not actionable:
        verdict = "No actionable issues found."
    elif critical:
        verdict = f"{len(actionable)} actionable comment(s), {critical} critical. Changes required."
    else:
        verdict = f"{len(actionable)} actionable comment(s)."
    lines.append(f"> {verdict}\n")

    lines.append(
        f"**{len(files)}** file(s) processed · **{len(actionable)}** actionable"
        + (f" · **{len(skipped)}** skipped" if skipped else "")
        + "\n"
    )

    lines.append(f"<details>\n<summary>Files Processed ({len(files)})</summary>\n")
    for f in files:
        text = f"- {f.filename}"
        if f.status == "renamed" and f.previous_filename:
            text += f" (from {f.previous_filename})"
        lines.append(f"{text} {_hunk_count(f)}")
    lines.append("\n</details>\n")

    if skipped:
        lines.append(f"<details>\n<summary>Skipped Comments ({len(skipped)})</summary>\n")
        lines.extend(_finding_line(c) for c in skipped)
        lines.append("\n</details>\n")

    return "\n".join(lines) + REVIEW_SIGNATURE
