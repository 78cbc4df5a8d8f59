"""
Azure DevOps Git client for pull request publication.

Thin async wrapper over the Azure DevOps Python SDK. SDK calls are blocking,
so each one runs in a worker thread via ``asyncio.to_thread``. Failures are
raised as PublicationError; callers decide whether to log or fall back.
"""

import asyncio
from typing import Any, Callable, List, Optional

from azure.devops.connection import Connection
from azure.devops.v7_1.git.models import (
    Comment,
    CommentPosition,
    CommentThread,
    CommentThreadContext,
    GitPullRequest,
    WebApiCreateTagRequestData,
)
from msrest.authentication import BasicAuthentication

from pr_agent.errors import PublicationError
from pr_agent.models import ChangedFile, ChangeType, PRContext, ThreadComment
from pr_agent.utils.logging import get_logger
from pr_agent.utils.metrics import RunMetrics, track_api_call

logger = get_logger(__name__)

THREAD_STATUS_ACTIVE = 1


def _item_path(item: Any) -> Optional[str]:
    if item is None:
        return None
    if isinstance(item, dict):
        return item.get("path")
    return getattr(item, "path", None)


def _parse_change_type(raw: Any) -> Optional[ChangeType]:
    """Map an SDK change type (e.g. 'edit' or 'edit, rename') to ChangeType."""
    if raw is None:
        return None
    for part in str(raw).lower().replace(" ", "").split(","):
        try:
            return ChangeType(part)
        except ValueError:
            continue
    return None


class AzureDevOpsClient:
    """Pull request operations needed by the publication layer."""

    def __init__(
        self,
        pr_context: PRContext,
        personal_access_token: str,
        git_client: Any = None,
        metrics: Optional[RunMetrics] = None,
    ):
        """
        Initialize the client for one pull request.

        Args:
            pr_context: Target pull request
            personal_access_token: PAT or System.AccessToken
            git_client: Pre-built SDK git client (tests inject a mock)
            metrics: Optional run metrics collector
        """
        self.pr_context = pr_context
        self.metrics = metrics

        if git_client is None:
            credentials = BasicAuthentication('', personal_access_token)
            connection = Connection(base_url=pr_context.organization_url, creds=credentials)
            git_client = connection.clients_v7_1.get_git_client()
        self._git_client = git_client

        self._logger = logger.with_context(pr_id=str(pr_context.pr_number))

    @property
    def _repository(self) -> str:
        return self.pr_context.repository_name

    @property
    def _project(self) -> str:
        return self.pr_context.project_name

    @property
    def _pr_id(self) -> int:
        return int(self.pr_context.pr_number)

    async def _call(self, operation: str, method: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            async with track_api_call(self.metrics, "azure_devops", self._logger, operation, method):
                return await asyncio.to_thread(func, *args, **kwargs)
        except Exception as e:
            raise PublicationError(f"Azure DevOps {operation} failed: {e}") from e

    async def list_threads(self) -> List[ThreadComment]:
        """
        List PR comment threads as (thread id, first comment) pairs.

        Threads without comments are skipped.
        """
        threads = await self._call(
            "get_threads", "GET",
            self._git_client.get_threads,
            repository_id=self._repository,
            pull_request_id=self._pr_id,
            project=self._project,
        )

        result = []
        for thread in threads or []:
            comments = getattr(thread, "comments", None) or []
            if not comments:
                continue
            first = comments[0]
            result.append(ThreadComment(
                thread_id=thread.id,
                comment_id=getattr(first, "id", None) or 1,
                content=getattr(first, "content", None),
            ))
        return result

    async def create_thread(
        self,
        content: str,
        file_path: Optional[str] = None,
        line: Optional[int] = None,
    ) -> Optional[int]:
        """
        Create an active comment thread.

        Args:
            content: Comment text (Markdown)
            file_path: Repository path for an inline thread
            line: Right-side line the inline thread anchors to

        Returns:
            New thread id
        """
        thread_context = None
        if file_path is not None and line is not None:
            thread_context = CommentThreadContext(
                file_path=file_path,
                right_file_start=CommentPosition(line=line, offset=1),
                right_file_end=CommentPosition(line=line, offset=1),
            )

        thread = CommentThread(
            comments=[Comment(content=content, parent_comment_id=0, comment_type="text")],
            status=THREAD_STATUS_ACTIVE,
            thread_context=thread_context,
        )

        created = await self._call(
            "create_thread", "POST",
            self._git_client.create_thread,
            comment_thread=thread,
            repository_id=self._repository,
            pull_request_id=self._pr_id,
            project=self._project,
        )
        return getattr(created, "id", None)

    async def update_comment(self, thread_id: int, comment_id: int, content: str) -> None:
        """Replace the content of an existing comment."""
        await self._call(
            "update_comment", "PATCH",
            self._git_client.update_comment,
            comment=Comment(content=content),
            repository_id=self._repository,
            pull_request_id=self._pr_id,
            thread_id=thread_id,
            comment_id=comment_id,
            project=self._project,
        )

    async def update_description(self, description: str) -> None:
        """Replace the PR description."""
        await self._call(
            "update_pull_request", "PATCH",
            self._git_client.update_pull_request,
            git_pull_request_to_update=GitPullRequest(description=description),
            repository_id=self._repository,
            pull_request_id=self._pr_id,
            project=self._project,
        )

    async def add_label(self, name: str) -> None:
        """Attach a label (tag) to the PR."""
        await self._call(
            "create_pull_request_label", "POST",
            self._git_client.create_pull_request_label,
            label=WebApiCreateTagRequestData(name=name),
            repository_id=self._repository,
            pull_request_id=self._pr_id,
            project=self._project,
        )

    async def get_changed_files(self) -> List[ChangedFile]:
        """
        Paths changed in the latest PR iteration, deletions excluded.

        Never raises: any failure yields an empty list so the caller can
        fall back to analyzing every file.
        """
        try:
            iterations = await self._call(
                "get_pull_request_iterations", "GET",
                self._git_client.get_pull_request_iterations,
                repository_id=self._repository,
                pull_request_id=self._pr_id,
                project=self._project,
            )
            if not iterations:
                return []

            latest = iterations[-1]
            changes = await self._call(
                "get_pull_request_iteration_changes", "GET",
                self._git_client.get_pull_request_iteration_changes,
                repository_id=self._repository,
                pull_request_id=self._pr_id,
                iteration_id=latest.id,
                project=self._project,
            )
        except PublicationError as e:
            self._logger.warning(f"Failed to get changed files: {e}")
            return []

        changed = []
        for entry in getattr(changes, "change_entries", None) or []:
            raw_type = getattr(entry, "change_type", None)
            if raw_type is not None and str(raw_type).lower() == "delete":
                continue
            path = _item_path(getattr(entry, "item", None))
            if not path:
                continue
            changed.append(ChangedFile(
                path=path[1:] if path.startswith("/") else path,
                change_type=_parse_change_type(raw_type),
            ))

        self._logger.info(f"Found {len(changed)} changed files in PR #{self._pr_id}")
        return changed
