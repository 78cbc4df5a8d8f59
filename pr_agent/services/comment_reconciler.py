"""
Comment Reconciler component.

Keeps at most one durable bot comment per analysis kind on a pull request.
Each bot comment starts with a ``🤖 AI <title>`` header where the title is
unique per kind; a later run finds that header and edits the comment in place
instead of posting a duplicate.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pr_agent.errors import PublicationError
from pr_agent.models import (
    AnalysisKind,
    CommentPublishResult,
    NormalizedResult,
    PRContext,
    ThreadComment,
)
from pr_agent.services.devops_client import AzureDevOpsClient
from pr_agent.utils.logging import get_logger

logger = get_logger(__name__)

BOT_MARKER = "🤖 AI"
MAX_COMMENT_LENGTH = 32000
TRUNCATION_MARGIN = 500
TRUNCATION_NOTICE = "\n\n---\n\n*[Comment truncated due to length limit]*"
FOOTER = "---\n*Auto Generated by Azure DevOps PR Agent*"
RAW_RESPONSE_MIN_LENGTH = 50


def comment_marker(kind: AnalysisKind) -> str:
    """Header substring identifying the bot comment for a kind."""
    return f"{BOT_MARKER} {kind.comment_title}"


def comment_header(kind: AnalysisKind, pr_number: Optional[int], now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    timestamp = now.strftime("%Y-%m-%d %H:%M:%S")
    header = f"## {comment_marker(kind)}\n\n"
    if pr_number is not None:
        header += f"*Generated on {timestamp} UTC for PR #{pr_number}*\n\n---\n\n"
    else:
        header += f"*Generated on {timestamp} UTC*\n\n---\n\n"
    return header


def truncate_comment(body: str, limit: int = MAX_COMMENT_LENGTH) -> str:
    """
    Cut an over-long body, keeping its beginning (and so its header).

    The result is always at most ``limit`` characters.
    """
    if len(body) <= limit:
        return body
    logger.warning(f"Comment too long ({len(body)} characters), truncating")
    return body[:limit - TRUNCATION_MARGIN] + TRUNCATION_NOTICE


def _render_findings(result: NormalizedResult) -> str:
    summary = result.summary
    content = "### 📊 Summary\n"
    content += (
        f"Quality: {summary.quality_score}% | Security: {summary.security_score}% | "
        f"Issues: {summary.issues_found} | Suggestions: {summary.suggestions_count}\n\n"
    )

    issues = [issue for issue in result.issues if issue.message.strip()]
    if issues:
        content += "### ⚠️ Issues Found\n"
        for index, issue in enumerate(issues, 1):
            content += f"{index}. **{issue.severity.value}**: {issue.message}"
            if issue.file:
                content += f" (`{issue.file}:{issue.line}`)"
            content += "\n"
        content += "\n"

    suggestions = [s for s in result.suggestions if s.message.strip()]
    if suggestions:
        content += "### 💡 Suggestions\n"
        for index, suggestion in enumerate(suggestions, 1):
            content += f"{index}. **{suggestion.message}**\n"
        content += "\n"

    if not issues and not suggestions:
        content += "### ℹ️ Analysis Complete\nNo specific issues or suggestions found.\n\n"

    return content


def format_analysis_comment(
    result: NormalizedResult,
    kind: AnalysisKind,
    pr_number: Optional[int] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Render one analysis result as a PR comment body.

    The model's own Markdown is used when it carries real content; otherwise
    the body is rebuilt from the summary, issues and suggestions.

    Args:
        result: Normalized result to render
        kind: Kind whose header the comment carries
        pr_number: PR number shown in the header
        now: Timestamp override

    Returns:
        Comment body, at most MAX_COMMENT_LENGTH characters
    """
    raw = (result.raw_response or "").strip()
    if len(raw) > RAW_RESPONSE_MIN_LENGTH:
        content = f"{raw}\n\n"
    else:
        content = _render_findings(result)

    body = comment_header(kind, pr_number, now) + content
    body = truncate_comment(body, MAX_COMMENT_LENGTH - len(FOOTER))
    return body + FOOTER


def find_bot_comment(threads: List[ThreadComment], kind: AnalysisKind) -> Optional[ThreadComment]:
    """First thread whose first comment carries this kind's bot header."""
    marker = comment_marker(kind)
    for thread in threads:
        content = thread.content or ""
        if BOT_MARKER in content and marker in content:
            return thread
    return None


class CommentReconciler:
    """Creates or updates the single bot comment for an analysis kind."""

    def __init__(self, client: AzureDevOpsClient):
        self.client = client

    async def publish(self, pr_context: PRContext, kind: AnalysisKind, body: str) -> CommentPublishResult:
        """
        Publish a comment body for a kind, updating the existing one if present.

        Bodies without the kind's bot header get one prepended.

        Update failures fall back to creating a new thread. Listing failures
        are treated as "no existing comment". Never raises.

        Args:
            pr_context: Target pull request
            kind: Analysis kind the body belongs to
            body: Comment body

        Returns:
            What was done, including any error
        """
        if not pr_context.is_pr:
            logger.info("Not a PR build - skipping comment posting")
            return CommentPublishResult()

        # The header is what later runs look up
        if comment_marker(kind) not in body:
            body = comment_header(kind, pr_context.pr_number) + body
        body = truncate_comment(body)
        log = logger.with_context(pr_id=str(pr_context.pr_number), kind=kind.value)

        try:
            existing = find_bot_comment(await self.client.list_threads(), kind)
        except PublicationError as e:
            log.warning(f"Failed to check existing comments: {e}")
            existing = None

        if existing is not None:
            try:
                await self.client.update_comment(existing.thread_id, existing.comment_id, body)
                log.info(f"Updated existing {kind.value} comment in thread {existing.thread_id}")
                return CommentPublishResult(thread_id=existing.thread_id, updated=True)
            except PublicationError as e:
                log.warning(f"Failed to update existing comment, creating a new one: {e}")

        try:
            thread_id = await self.client.create_thread(body)
        except PublicationError as e:
            log.error(f"Failed to post {kind.value} comment: {e}")
            return CommentPublishResult(error=str(e))

        log.info(f"Created new {kind.value} comment thread {thread_id}")
        return CommentPublishResult(thread_id=thread_id, created=True)
