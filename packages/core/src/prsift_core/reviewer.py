"""Core PR review orchestration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rich.console import Console

from prsift_core.batching import batch_by_chars, filter_by_scope
from prsift_core.comments import MENTIONS, build_comment_threads, is_thread_relevant
from prsift_core.config import Config, load_guidelines, parse_scopes
from prsift_core.diff import parse_file_diff
from prsift_core.docs import build_documentation
from prsift_core.gh.host import DryRunHost, HostClient
from prsift_core.messages import (
    DOCUMENTATION_SIGNATURE,
    OVERVIEW_MESSAGE_SIGNATURE,
    build_loading_message,
    build_overview_message,
    build_review_summary,
)
from prsift_core.models import AIComment, FileDiff, IssueComment
from prsift_core.prompts import run_review_prompt, run_summary_prompt, should_use_metadata
from prsift_core.providers.anthropic import AnthropicReviewer
from prsift_core.providers.openai import OpenAIReviewer
from prsift_core.reconcile import build_rename_map, reconcile
from prsift_core.scope import resolve_review_scope
from prsift_core.submission import FALLBACK_FAILED, CommentSubmitter, SubmissionReport

console = Console()
logger = logging.getLogger(__name__)

SKIP_PHRASES = tuple(f"{m}{sep}{word}" for m in MENTIONS for sep in (" ", ": ") for word in ("ignore", "skip"))

REVIEWED = "reviewed"
SKIPPED = "skipped"
NO_NEW_COMMITS = "no-new-commits"


@dataclass
class ReviewSummary:
    """Result returned by run_review."""

    repo: str
    pr_number: int
    head_sha: str
    status: str  # "reviewed" | "skipped" | "no-new-commits"
    is_incremental: bool = False
    reviewed_files: list[str] = field(default_factory=list)
    findings: int = 0
    actionable: int = 0
    skipped_findings: int = 0
    report: SubmissionReport | None = None
    planned_writes: list[tuple[str, dict]] = field(default_factory=list)


def _get_reviewer(config: Config):
    if config.model == "anthropic":
        return AnthropicReviewer(api_key=config.anthropic_api_key)
    if config.model == "openai":
        return OpenAIReviewer(api_key=config.openai_api_key)
    raise ValueError(f"Unknown model provider: {config.model!r}. Choose 'anthropic' or 'openai'.")


def skip_phrase(description: str) -> str | None:
    """Return the opt-out phrase found in a PR description, if any."""
    text = (description or "").lower()
    return next((p for p in SKIP_PHRASES if p in text), None)


def find_overview_comment(comments: list[IssueComment]) -> IssueComment | None:
    return next((c for c in comments if OVERVIEW_MESSAGE_SIGNATURE in (c.body or "")), None)


def _upsert_documentation(submitter: CommentSubmitter, files: list[FileDiff]) -> None:
    """Post or refresh the deterministic documentation comment. Failures only warn."""
    documentation = build_documentation(files)
    if not documentation:
        return
    try:
        result = submitter.upsert_issue_comment(DOCUMENTATION_SIGNATURE, documentation + "\n\n" + DOCUMENTATION_SIGNATURE)
        logger.info("Documentation comment %s", result)
    except Exception as e:
        logger.warning("Could not post documentation comment: %s", e)


def _analyze(
    analyzer, config: Config, guidelines: str, title: str, description: str, summary: str, files: list[FileDiff]
) -> tuple[list[AIComment], str | None]:
    """Run every configured scope pass over ``files``; return all findings and the first documentation block."""
    findings: list[AIComment] = []
    rationale: str | None = None
    total_batches = 0
    for scope in parse_scopes(config.review_scopes) or []:
        subset = filter_by_scope(files, scope)
        if not subset:
            continue
        batches = batch_by_chars(subset, config.max_review_chars)
        total_batches += len(batches)
        for i, batch in enumerate(batches, 1):
            console.print(f"  ({scope} {i}/{len(batches)}) Reviewing {len(batch)} file(s)")
            part = run_review_prompt(
                analyzer,
                title=title,
                description=description,
                summary=summary,
                files=batch,
                metadata=should_use_metadata(batch, config.metadata_mode),
                guidelines=guidelines,
                style_guide_rules=config.style_guide_rules,
            )
            findings.extend(part.comments)
            if rationale is None and part.documentation.strip():
                rationale = part.documentation.strip()
        logger.info("Review pass %r completed in %d batch(es)", scope, len(batches))
    console.print(f"Reviewed {len(files)} file(s) in {total_batches} batch(es): {len(findings)} finding(s).")
    return findings, rationale


def run_review(
    host: HostClient,
    config: Config,
    force_full: bool = False,
    dry_run: bool = False,
    analyzer=None,
) -> ReviewSummary:
    """Run the full PR review pipeline against ``host`` and return a ReviewSummary.

    With ``dry_run`` every host write is printed instead of sent; the
    computed content is the same as for a live run.
    """
    if dry_run:
        host = DryRunHost(host)

    pr = host.get_pull_request()
    head_sha = pr.head_sha

    def result(status: str, **kwargs) -> ReviewSummary:
        writes = host.writes if isinstance(host, DryRunHost) else []
        return ReviewSummary(
            repo=pr.repo, pr_number=pr.number, head_sha=head_sha, status=status, planned_writes=writes, **kwargs
        )

    phrase = skip_phrase(pr.body)
    if phrase:
        console.print(f"[yellow]Skipping PR #{pr.number}: description contains '{phrase}'.[/yellow]")
        return result(SKIPPED)

    commits = host.list_commits()
    logger.info("Fetched %d commit(s)", len(commits))

    overview = find_overview_comment(host.list_issue_comments())
    incremental = overview is not None and not force_full

    # Threads are only shown to the backend on incremental runs, where earlier findings exist.
    threads = build_comment_threads(host.list_review_comments()) if incremental else []
    file_diffs = [parse_file_diff(f, threads) for f in host.list_files()]

    scope = resolve_review_scope(
        host, head_sha, commits, file_diffs, overview.body if overview else None, force_full=force_full
    )
    submitter = CommentSubmitter(
        host,
        head_sha,
        file_diffs,
        batch_size=config.review_batch_size,
        concurrency=config.submit_concurrency,
        retry_attempts=config.retry_attempts,
        retry_delay=config.retry_delay,
        max_codeblock_lines=config.max_codeblock_lines,
    )

    if scope.early_exit:
        _upsert_documentation(submitter, scope.files)
        console.print("[yellow]No new commits since the last review. Nothing to do.[/yellow]")
        return result(NO_NEW_COMMITS, is_incremental=scope.is_incremental)

    base_sha = scope.last_reviewed or pr.base_sha
    loading = build_loading_message(base_sha, scope.commits, scope.files, pr.repo_url)
    if overview is not None:
        host.update_issue_comment(overview.id, loading)
    else:
        overview = host.create_issue_comment(loading)
    console.print(
        f"[cyan]{'Incremental' if scope.is_incremental else 'Full'} review of PR #{pr.number}: "
        f"{len(scope.commits)} new commit(s), {len(scope.files)} file(s)[/cyan]"
    )

    analyzer = analyzer if analyzer is not None else _get_reviewer(config)
    guidelines = load_guidelines(config)

    summary = run_summary_prompt(
        analyzer, pr.title, pr.body, [c.message for c in commits], file_diffs, config.max_review_chars
    )
    logger.info("Generated pull request summary: %s", summary.title)

    if config.allow_title_update and any(m in pr.title for m in MENTIONS):
        try:
            host.update_title(summary.title)
        except Exception as e:
            logger.warning("Could not update PR title: %s", e)

    all_shas = [c.sha for c in commits]
    host.update_issue_comment(overview.id, build_overview_message(summary, all_shas, scope.files))

    findings, rationale = _analyze(analyzer, config, guidelines, pr.title, pr.body, summary.description, scope.files)

    _upsert_documentation(submitter, scope.files)

    try:
        host.update_issue_comment(overview.id, build_overview_message(summary, all_shas, scope.files, rationale))
    except Exception as e:
        logger.warning("Could not update overview comment with rationale: %s", e)

    relevant = [t for t in build_comment_threads(host.list_review_comments()) if is_thread_relevant(t)]
    plan = reconcile(
        findings,
        relevant,
        build_rename_map(file_diffs),
        {f.filename for f in file_diffs},
        max_comments=config.max_comments,
        max_codeblock_lines=config.max_codeblock_lines,
    )
    review_body = build_review_summary(
        scope.files,
        plan.actionable,
        plan.skipped,
        incremental_base=scope.last_reviewed if scope.is_incremental else None,
        head_sha=head_sha,
    )
    report = submitter.submit(plan, review_body)

    failed = report.count(FALLBACK_FAILED)
    console.print(
        f"[green]Review posted: {len(plan.replies)} reply(ies), {len(plan.anchored)} inline comment(s), "
        f"{len(plan.file_notes)} file note(s), {len(plan.skipped)} skipped.[/green]"
    )
    if failed:
        console.print(f"[red]{failed} comment(s) could not be posted.[/red]")

    return result(
        REVIEWED,
        is_incremental=scope.is_incremental,
        reviewed_files=[f.filename for f in scope.files],
        findings=len(findings),
        actionable=len(plan.actionable),
        skipped_findings=len(plan.skipped),
        report=report,
    )
