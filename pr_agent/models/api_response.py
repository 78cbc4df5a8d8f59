"""Publication result data models."""

from typing import List, Optional

from pydantic import BaseModel


class PublishResult(BaseModel):
    """Result of a batch publishing operation."""

    success: bool
    published_count: int
    failed_count: int
    errors: List[str] = []


class CommentPublishResult(BaseModel):
    """Outcome of publishing one bot comment."""

    thread_id: Optional[int] = None
    updated: bool = False
    created: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.updated or self.created
