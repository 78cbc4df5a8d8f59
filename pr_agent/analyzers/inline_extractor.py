"""
Inline annotation extraction.

Finds per-file sections shaped like ``#### `path/to/file.py` (Lines 10-12)``
in model output and turns each into an InlineComment anchored at the start
line of the range.
"""

import re
from typing import List

from pr_agent.models import InlineComment

FILE_SECTION_PATTERN = re.compile(
    r"####\s*`([^`]+)`\s*\(Lines?\s*(\d+)(?:-(\d+))?\)([\s\S]*?)(?=####\s*`|\Z)"
)


def extract_inline_comments(text: str) -> List[InlineComment]:
    """
    Extract anchored inline comments from response text.

    Sections with an empty body, blank path or a start line below 1 are
    dropped.

    Args:
        text: Raw or normalized model response

    Returns:
        Inline comments in order of appearance
    """
    comments: List[InlineComment] = []
    if not text:
        return comments

    for match in FILE_SECTION_PATTERN.finditer(text):
        file_path = match.group(1).strip()
        content = match.group(4).strip()
        try:
            start_line = int(match.group(2))
        except ValueError:
            continue

        if not file_path or start_line < 1 or not content:
            continue

        comments.append(InlineComment(
            file_path=file_path,
            line_number=start_line,
            content=content,
        ))

    return comments


class InlineAnnotationExtractor:
    """Object form of extract_inline_comments for injection into publishers."""

    def extract(self, text: str) -> List[InlineComment]:
        return extract_inline_comments(text)
