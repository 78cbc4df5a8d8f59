"""
Unit tests for PR publication (comments, inline threads, description, labels).
"""

from unittest.mock import AsyncMock, patch

import pytest

from pr_agent.errors import PublicationError
from pr_agent.models import (
    AnalysisKind,
    CombinedResult,
    InlineComment,
    NormalizedResult,
    PRContext,
    SeparateComment,
)
from pr_agent.services.comment_publisher import (
    INLINE_PREFIX,
    MAX_DESCRIPTION_LENGTH,
    CommentPublisher,
    parse_labels,
    truncate_description,
)
from pr_agent.utils.metrics import RunMetrics


REVIEW_TEXT = (
    "## 🔍 Code Review Summary\n\nOverall the change is fine.\n\n"
    "## 📁 File-Specific Comments\n\n"
    "#### `src/app.py` (Line 10)\nHandle the None case.\n"
    "#### `src/db.py` (Lines 3-5)\nUse a context manager.\n"
)


def _separate(kind, raw):
    result = NormalizedResult(raw_response=raw, kind=kind)
    return SeparateComment(kind=kind, title=kind.display_title, emoji=kind.emoji, result=result)


@pytest.fixture
def publisher(devops_client):
    return CommentPublisher(devops_client, metrics=RunMetrics("review"), comment_delay=0, inline_delay=0)


class TestParseLabels:
    """Tests for label parsing."""

    def test_parses_scored_labels(self):
        content = (
            "## 🏷️ Suggested Labels\n"
            "- Bug Fix: 4/5 - fixes retry handling\n"
            "- security:2 - minor\n"
            "- not a label line\n"
            "* feature: 3/5\n"
        )

        assert parse_labels(content) == ["bug-fix:4/5", "security:2 - minor"]

    def test_empty(self):
        assert parse_labels("") == []


class TestTruncateDescription:
    """Tests for PR description truncation."""

    def test_short_description_unchanged(self):
        assert truncate_description("Short.") == "Short."

    def test_cuts_at_sentence_boundary(self):
        sentence = "This sentence is part of the description. "
        description = sentence * 120

        truncated = truncate_description(description)

        body, notice = truncated.split("\n\n*[Description truncated", 1)
        assert body.endswith("description.")
        assert len(body) > MAX_DESCRIPTION_LENGTH * 0.8
        assert f"Original length: {len(description)} characters" in notice

    def test_hard_cut_without_boundary(self):
        description = "x" * 5000

        truncated = truncate_description(description)

        assert truncated.startswith("x" * 3950)
        assert not truncated.startswith("x" * 3951)


class TestPublishSingle:
    """Tests for single-kind publication."""

    @pytest.mark.asyncio
    async def test_posts_comment_and_inline_threads(self, publisher, pr_context, git_client):
        result = NormalizedResult(raw_response=REVIEW_TEXT, kind=AnalysisKind.REVIEW)

        with patch("pr_agent.services.comment_publisher.asyncio.sleep", new_callable=AsyncMock):
            await publisher.publish(pr_context, result)

        assert len(git_client.threads) == 3
        assert git_client.threads[0].comments[0].content.startswith("## 🤖 AI Review")

        inline = git_client.threads[1]
        assert inline.comments[0].content == f"{INLINE_PREFIX}Handle the None case."
        assert inline.thread_context.file_path == "/src/app.py"
        assert inline.thread_context.right_file_start.line == 10
        assert git_client.threads[2].thread_context.right_file_start.line == 3
        assert publisher.metrics.comments_posted == 1
        assert publisher.metrics.inline_comments_posted == 2

    @pytest.mark.asyncio
    async def test_non_pr_build_does_nothing(self, publisher, git_client):
        await publisher.publish(PRContext(is_pr=False), NormalizedResult(raw_response=REVIEW_TEXT))

        assert git_client.calls == []


class TestPublishCombined:
    """Tests for comprehensive publication."""

    @pytest.mark.asyncio
    async def test_posts_each_kind_then_description_and_labels(self, devops_client, pr_context, git_client):
        publisher = CommentPublisher(devops_client, comment_delay=2.0, inline_delay=0.5)
        combined = CombinedResult(
            separate_comments=[
                _separate(AnalysisKind.DESCRIBE, "## 📋 Summary\n\nAdds retries to the model client."),
                _separate(AnalysisKind.REVIEW, REVIEW_TEXT),
            ],
            description_update="## 📋 Summary\n\nAdds retries.",
            labels_update="- enhancement: 4/5 - new retry logic\n",
        )

        with patch("pr_agent.services.comment_publisher.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await publisher.publish(pr_context, combined)

        bot_comments = [t for t in git_client.threads if t.thread_context is None]
        assert [t.comments[0].content.split("\n")[0] for t in bot_comments] == [
            "## 🤖 AI Description",
            "## 🤖 AI Review",
        ]
        assert git_client.description == "## 📋 Summary\n\nAdds retries."
        assert git_client.labels == ["enhancement:4/5"]

        delays = [c.args[0] for c in mock_sleep.await_args_list]
        assert delays.count(2.0) == 1
        assert delays.count(0.5) == 2

    @pytest.mark.asyncio
    async def test_rerun_updates_existing_comments(self, publisher, pr_context, git_client):
        combined = CombinedResult(separate_comments=[_separate(AnalysisKind.TESTS, "## Test Cases for Pull Request:\n\nNone")])

        await publisher.publish(pr_context, combined)
        await publisher.publish(pr_context, combined)

        assert len(git_client.threads) == 1


class TestInlineComments:
    """Tests for inline thread posting."""

    @pytest.mark.asyncio
    async def test_failures_are_skipped(self, publisher):
        publisher.client.create_thread = AsyncMock(side_effect=[PublicationError("500"), 7])
        comments = [
            InlineComment(file_path="a.py", line_number=1, content="one"),
            InlineComment(file_path="/b.py", line_number=2, content="two"),
        ]

        result = await publisher.publish_inline_comments(comments)

        assert result.published_count == 1
        assert result.failed_count == 1
        assert result.success is False
        second_call = publisher.client.create_thread.await_args_list[1]
        assert second_call.kwargs["file_path"] == "/b.py"

    @pytest.mark.asyncio
    async def test_no_comments(self, publisher):
        result = await publisher.publish_inline_comments([])

        assert result.success is True
        assert result.published_count == 0


class TestDescriptionAndLabels:
    """Tests for PR metadata updates."""

    @pytest.mark.asyncio
    async def test_description_failure_returns_false(self, publisher):
        publisher.client.update_description = AsyncMock(side_effect=PublicationError("403"))

        assert await publisher.update_description("text") is False

    @pytest.mark.asyncio
    async def test_long_description_truncated(self, publisher, git_client):
        assert await publisher.update_description("word " * 2000) is True

        assert "Description truncated" in git_client.description

    @pytest.mark.asyncio
    async def test_each_label_independent(self, publisher):
        publisher.client.add_label = AsyncMock(side_effect=[PublicationError("409"), None])

        result = await publisher.update_labels("- bug: 2/5\n- docs: 1/5\n")

        assert result.published_count == 1
        assert result.failed_count == 1

    @pytest.mark.asyncio
    async def test_no_labels(self, publisher):
        result = await publisher.update_labels("nothing here")

        assert result.success is False
        assert result.published_count == 0
