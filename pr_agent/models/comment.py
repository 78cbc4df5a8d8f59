"""Comment data models."""

from typing import Optional

from pydantic import BaseModel


class InlineComment(BaseModel):
    """Suggestion anchored to a line of a changed file."""

    file_path: str
    line_number: int
    content: str


class ThreadComment(BaseModel):
    """The parts of an existing PR comment thread the reconciler reads."""

    thread_id: int
    comment_id: int = 1
    content: Optional[str] = None
