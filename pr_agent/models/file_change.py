"""File record data models."""

from enum import Enum
from typing import Optional

from pr_agent.models.base import CamelModel


class ChangeType(str, Enum):
    """Type of file change in a pull request iteration."""

    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"
    RENAME = "rename"


class ChangedFile(CamelModel):
    """Path reported as changed by the latest PR iteration."""

    path: str
    change_type: Optional[ChangeType] = None


class FileRecord(CamelModel):
    """File selected for analysis, with its text content."""

    path: str
    content: str
    size: int
    change_type: Optional[ChangeType] = None
