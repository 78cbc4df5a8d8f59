"""
Comment Publisher component.

Posts analysis results to an Azure DevOps pull request:
- one bot comment per analysis kind (through the CommentReconciler)
- inline suggestion threads extracted from the model's Markdown
- PR description updates from the describe analysis
- PR labels from the labels analysis

Publication failures are logged and never abort the run.
"""

import asyncio
from typing import List, Optional

from pr_agent.analyzers.inline_extractor import extract_inline_comments
from pr_agent.errors import PublicationError
from pr_agent.models import (
    AnalysisKind,
    AnalysisResult,
    CombinedResult,
    InlineComment,
    NormalizedResult,
    PRContext,
    PublishResult,
)
from pr_agent.services.comment_reconciler import CommentReconciler, format_analysis_comment
from pr_agent.services.devops_client import AzureDevOpsClient
from pr_agent.utils.logging import get_logger
from pr_agent.utils.metrics import RunMetrics
from pr_agent.utils.resilience import handle_partial_failure

logger = get_logger(__name__)

COMMENT_DELAY_SECONDS = 2.0
INLINE_DELAY_SECONDS = 0.5
INLINE_PREFIX = "🤖 **AI Suggestion**\n\n"

MAX_DESCRIPTION_LENGTH = 4000
DESCRIPTION_NOTICE_ROOM = 100
DESCRIPTION_HARD_CUT_ROOM = 50
SENTENCE_BOUNDARIES = (". ", "! ", "? ", "\n\n")


def truncate_description(description: str, limit: int = MAX_DESCRIPTION_LENGTH) -> str:
    """
    Fit a description under the PR description limit.

    Cuts at the last sentence boundary when it lies beyond 80% of the limit,
    otherwise hard-cuts, then appends a notice with the original length.
    """
    if not description or len(description) <= limit:
        return description

    truncated = description[:limit - DESCRIPTION_NOTICE_ROOM]
    last_boundary = max(truncated.rfind(boundary) for boundary in SENTENCE_BOUNDARIES)

    if last_boundary > limit * 0.8:
        result = description[:last_boundary + 1]
    else:
        result = description[:limit - DESCRIPTION_HARD_CUT_ROOM]

    return (
        f"{result}\n\n*[Description truncated due to length limit. "
        f"Original length: {len(description)} characters]*"
    )


def parse_labels(content: str) -> List[str]:
    """
    Parse ``- name:X/5 - reasoning`` lines into label names.

    Names are lower-cased with whitespace replaced by dashes; scores with a
    slash are normalized to ``name:X/5``.
    """
    labels: List[str] = []
    for line in (content or "").split("\n"):
        stripped = line.strip()
        if not stripped.startswith("- "):
            continue

        label_part = stripped[2:].strip()
        if ":" not in label_part:
            continue

        parts = label_part.split(":")
        name = "-".join(parts[0].strip().split()).lower()
        score_part = parts[1].strip()

        if "/" in score_part:
            score = score_part.split("/")[0].strip()
            labels.append(f"{name}:{score}/5")
        else:
            labels.append(f"{name}:{score_part}")
    return labels


class CommentPublisher:
    """Publishes analysis results to a pull request."""

    def __init__(
        self,
        client: AzureDevOpsClient,
        reconciler: Optional[CommentReconciler] = None,
        metrics: Optional[RunMetrics] = None,
        comment_delay: float = COMMENT_DELAY_SECONDS,
        inline_delay: float = INLINE_DELAY_SECONDS,
    ):
        """
        Initialize the publisher.

        Args:
            client: Azure DevOps client bound to the target PR
            reconciler: Comment reconciler (built from client if omitted)
            metrics: Optional run metrics collector
            comment_delay: Seconds between bot comments in comprehensive mode
            inline_delay: Seconds between inline comment threads
        """
        self.client = client
        self.reconciler = reconciler or CommentReconciler(client)
        self.metrics = metrics
        self.comment_delay = comment_delay
        self.inline_delay = inline_delay

    async def publish(self, pr_context: PRContext, result: AnalysisResult) -> None:
        """Publish a single or comprehensive result to the PR."""
        if not pr_context.is_pr:
            logger.info("Not a PR build - skipping PR publication")
            return

        if isinstance(result, CombinedResult):
            await self.publish_combined(pr_context, result)
        else:
            await self.publish_single(pr_context, result)

    async def publish_single(self, pr_context: PRContext, result: NormalizedResult) -> None:
        kind = result.kind or AnalysisKind.REVIEW
        await self._publish_comment(pr_context, kind, result)
        await self.publish_inline_comments(extract_inline_comments(result.raw_response))

    async def publish_combined(self, pr_context: PRContext, result: CombinedResult) -> None:
        """
        Post one comment per analysis kind, in order, then update the
        description and labels.
        """
        total = len(result.separate_comments)
        logger.info(f"Posting {total} separate analysis comments to PR #{pr_context.pr_number}")

        for index, separate in enumerate(result.separate_comments):
            logger.info(f"Posting {separate.kind.value} analysis comment ({index + 1}/{total})")
            await self._publish_comment(pr_context, separate.kind, separate.result)

            if index < total - 1:
                await asyncio.sleep(self.comment_delay)

            await self.publish_inline_comments(extract_inline_comments(separate.result.raw_response))

        if result.description_update:
            await self.update_description(result.description_update)

        if result.labels_update:
            await self.update_labels(result.labels_update)

    async def _publish_comment(self, pr_context: PRContext, kind: AnalysisKind, result: NormalizedResult) -> None:
        body = format_analysis_comment(result, kind, pr_context.pr_number)
        outcome = await self.reconciler.publish(pr_context, kind, body)
        if outcome.success and self.metrics:
            self.metrics.record_comment()

    async def publish_inline_comments(self, comments: List[InlineComment]) -> PublishResult:
        """
        Post one inline thread per comment, anchored on the right file side.

        Individual failures are logged and skipped.
        """
        if not comments:
            return PublishResult(success=True, published_count=0, failed_count=0)

        logger.info(f"Posting {len(comments)} inline comments")

        published_count = 0
        errors = []

        for comment in comments:
            file_path = comment.file_path if comment.file_path.startswith("/") else f"/{comment.file_path}"
            try:
                await self.client.create_thread(
                    f"{INLINE_PREFIX}{comment.content}",
                    file_path=file_path,
                    line=comment.line_number,
                )
                published_count += 1
                logger.debug(f"Posted inline comment on {comment.file_path}:{comment.line_number}")
            except PublicationError as e:
                logger.error(f"Failed to post inline comment on {comment.file_path}: {e}")
                errors.append(f"{comment.file_path}:{comment.line_number} - {e}")

            await asyncio.sleep(self.inline_delay)

        handle_partial_failure(
            "inline comment posting",
            total_items=len(comments),
            successful_items=published_count,
            errors=errors,
            context={"pr_id": self.client.pr_context.pr_number},
        )

        if self.metrics:
            self.metrics.record_inline_comments(published_count)

        return PublishResult(
            success=not errors,
            published_count=published_count,
            failed_count=len(errors),
            errors=errors,
        )

    async def update_description(self, description: str) -> bool:
        """Replace the PR description, truncating to the service limit."""
        text = truncate_description(description)
        try:
            await self.client.update_description(text)
        except PublicationError as e:
            logger.error(f"Failed to update PR description: {e}")
            return False
        logger.info(f"PR description updated ({len(text)} characters)")
        return True

    async def update_labels(self, labels_content: str) -> PublishResult:
        """Add every label parsed from the labels analysis, independently."""
        labels = parse_labels(labels_content)
        if not labels:
            logger.warning("No labels found in labels analysis response")
            return PublishResult(success=False, published_count=0, failed_count=0)

        logger.info(f"Adding labels to PR: {', '.join(labels)}")

        published_count = 0
        errors = []
        for label in labels:
            try:
                await self.client.add_label(label)
                published_count += 1
            except PublicationError as e:
                logger.warning(f"Failed to add label {label}: {e}")
                errors.append(f"{label} - {e}")

        handle_partial_failure(
            "label update",
            total_items=len(labels),
            successful_items=published_count,
            errors=errors,
            context={"pr_id": self.client.pr_context.pr_number},
        )

        return PublishResult(
            success=not errors,
            published_count=published_count,
            failed_count=len(errors),
            errors=errors,
        )
