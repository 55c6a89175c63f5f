"""Tests for the PR-level comment bodies."""

from prsift_core import state
from prsift_core.messages import (
    OVERVIEW_MESSAGE_SIGNATURE,
    REVIEW_SIGNATURE,
    build_loading_message,
    build_overview_message,
    build_review_summary,
)
from prsift_core.models import AIComment, Commit, FileDiff, Hunk
from prsift_core.prompts import PullRequestSummary

FIELD = "force-app/main/default/objects/Account/fields/Tier__c.field-meta.xml"
FLOW = "force-app/main/default/flows/Onboard.flow-meta.xml"
CLASS = "force-app/main/default/classes/TierService.cls"
TEST_CLASS = "force-app/main/default/classes/TierServiceTest.cls"


def _fd(name, status="modified", hunks=1, previous=None):
    return FileDiff(name, status, hunks=[Hunk(1, 1, "@@ -1 +1 @@") for _ in range(hunks)], previous_filename=previous)


class TestLoadingMessage:
    def test_lists_commits_newest_first_and_files(self):
        commits = [Commit("aaaaaaa111", "first\n\nbody"), Commit("bbbbbbb222", "second")]
        files = [_fd("a.ts", "added"), _fd("b.ts", "renamed", hunks=2, previous="old.ts")]
        body = build_loading_message("base0000000", commits, files, "https://github.com/acme/app")

        assert body.startswith("⏳ **Analyzing changes in this PR...** ⏳")
        assert "from base (`base000`) to latest commit (`bbbbbbb`)" in body
        assert body.index("second") < body.index("first")
        assert "[aaaaaaa](https://github.com/acme/app/commit/aaaaaaa111): first" in body
        assert "Files being considered (2)" in body
        assert "➕ a.ts _(1 hunk)_" in body
        assert "📝 b.ts (from old.ts) _(2 hunks)_" in body
        assert body.endswith(OVERVIEW_MESSAGE_SIGNATURE)

    def test_plain_shas_without_repo_url(self):
        body = build_loading_message("base000", [Commit("abcdef123", "x")], [])
        assert "- `abcdef1`: x" in body


class TestOverviewMessage:
    def test_sections_and_state(self):
        files = [_fd(FIELD, "added"), _fd(FLOW), _fd(CLASS), _fd(TEST_CLASS), _fd("README.md")]
        summary = PullRequestSummary(title="T", description="Adds   a\ntier field.")
        body = build_overview_message(summary, ["c1", "c2"], files, rationale="Summary/Rationale: Needed for billing.")

        assert body.startswith("PR Summary: Adds a tier field.\n\n")
        assert "Scope: 5 files changed; Apex(2), Fields(1), Flows(1)" in body
        assert "- New custom fields: Account.Tier__c" in body
        assert "- Flows changed: Onboard" in body
        assert "- Apex classes changed: TierService\n" in body
        assert "Rationale:\n\nNeeded for billing." in body
        assert OVERVIEW_MESSAGE_SIGNATURE in body
        assert state.decode(body).commits == ["c1", "c2"]

    def test_summary_is_capped(self):
        body = build_overview_message(PullRequestSummary("T", "x" * 600), [], [])
        first_line = body.split("\n")[0]
        assert first_line == "PR Summary: " + "x" * 497 + "..."

    def test_no_highlights_or_rationale(self):
        body = build_overview_message(PullRequestSummary("T", "d"), ["c1"], [_fd("a.ts")])
        assert "Scope: 1 files changed\n" in body
        assert "Highlights" not in body
        assert "Rationale" not in body


class TestReviewSummary:
    def test_clean_review(self):
        body = build_review_summary([_fd("a.ts")], [], [])
        assert "> No actionable issues found." in body
        assert "Skipped Comments" not in body
        assert body.endswith(REVIEW_SIGNATURE)

    def test_critical_verdict_and_skipped_list(self):
        actionable = [AIComment("a.ts", "c", critical=True, end_line=3), AIComment("a.ts", "d", end_line=4)]
        skipped = [
            AIComment("a.ts", "Rename this", label="style", start_line=2, end_line=5),
            AIComment("b.ts", "whole file", header="Split module"),
        ]
        body = build_review_summary([_fd("a.ts"), _fd("b.ts")], actionable, skipped, "c1aaaaaaa", "c2bbbbbbb")
        assert "_Incremental review: `c1aaaaa` → `c2bbbbb`_" in body
        assert "> 2 actionable comment(s), 1 critical. Changes required." in body
        assert "**2** file(s) processed · **2** actionable · **2** skipped" in body
        assert "Skipped Comments (2)" in body
        assert "- `a.ts [2-5]` style: Rename this" in body
        assert "- `b.ts` Split module" in body
