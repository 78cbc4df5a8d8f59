"""Pull request context data model."""

from typing import Optional

from pr_agent.models.base import CamelModel


class PRContext(CamelModel):
    """Pull request the run targets, resolved once per run."""

    is_pr: bool = False
    pr_number: Optional[int] = None
    title: Optional[str] = None
    author: Optional[str] = None
    source_branch: Optional[str] = None
    target_branch: Optional[str] = None
    organization_url: Optional[str] = None
    project_name: Optional[str] = None
    repository_name: Optional[str] = None
    pr_url: Optional[str] = None

    @property
    def can_publish(self) -> bool:
        """Whether enough is known to call the pull request APIs."""
        return bool(
            self.is_pr
            and self.pr_number
            and self.organization_url
            and self.project_name
            and self.repository_name
        )
