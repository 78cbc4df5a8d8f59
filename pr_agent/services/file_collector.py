"""
File collection for analysis.

Walks the source directory (or restricts to the PR's changed files) and
reads each selected file as UTF-8 text.
"""

import os
from pathlib import Path
from typing import Iterable, List, Optional

from wcmatch import glob

from pr_agent.models import ChangedFile, FileRecord
from pr_agent.utils.logging import get_logger

logger = get_logger(__name__)

SKIPPED_DIRECTORIES = frozenset({"node_modules", ".git", "dist", "build", ".vscode"})

GLOB_FLAGS = glob.GLOBSTAR | glob.DOTGLOB | glob.MATCHBASE


def matches_pattern(relative_path: str, patterns: Iterable[str]) -> bool:
    """
    Return True if a path matches any glob pattern.

    Supports:
    - globstar patterns on the relative path: "**/*.py", "src/**/test_*.py"
    - slash-less patterns against the basename: "*.lock", "*.min.js"
    - directory prefixes: "migrations/"

    A single "*" never crosses a "/".
    """
    for pattern in patterns:
        if pattern.endswith("/"):
            if f"/{relative_path}".find(f"/{pattern}") != -1:
                return True
            continue
        if glob.globmatch(relative_path, pattern, flags=GLOB_FLAGS):
            return True
    return False


def is_selected(relative_path: str, include_patterns: List[str], exclude_patterns: List[str]) -> bool:
    """Exclude patterns win; with include patterns present, a file must match one."""
    if exclude_patterns and matches_pattern(relative_path, exclude_patterns):
        return False
    if include_patterns:
        return matches_pattern(relative_path, include_patterns)
    return True


class FileCollector:
    """Selects and reads the files sent to the model."""

    def __init__(
        self,
        source_directory: str,
        include_patterns: Optional[List[str]] = None,
        exclude_patterns: Optional[List[str]] = None,
    ):
        self.root = Path(source_directory)
        self.include_patterns = include_patterns or []
        self.exclude_patterns = exclude_patterns or []

    def collect_all_files(self) -> List[FileRecord]:
        """Walk the source directory and read every selected file."""
        records: List[FileRecord] = []

        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRECTORIES)

            for filename in sorted(filenames):
                full_path = Path(dirpath) / filename
                relative_path = full_path.relative_to(self.root).as_posix()

                if not is_selected(relative_path, self.include_patterns, self.exclude_patterns):
                    continue

                record = self._read(full_path, relative_path)
                if record is not None:
                    records.append(record)

        logger.info(f"Collected {len(records)} files from {self.root}")
        return records

    def collect_specific_files(self, changed_files: List[ChangedFile]) -> List[FileRecord]:
        """Read only the changed files that exist locally and pass the patterns."""
        records: List[FileRecord] = []

        for changed in changed_files:
            relative_path = changed.path.lstrip("/")
            full_path = self.root / relative_path

            if not full_path.is_file():
                logger.debug(f"Changed file not found locally: {relative_path}")
                continue
            if not is_selected(relative_path, self.include_patterns, self.exclude_patterns):
                continue

            record = self._read(full_path, relative_path)
            if record is not None:
                records.append(record.model_copy(update={"change_type": changed.change_type}))

        logger.info(f"Collected {len(records)} of {len(changed_files)} changed files")
        return records

    def _read(self, full_path: Path, relative_path: str) -> Optional[FileRecord]:
        try:
            content = full_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping unreadable file {relative_path}: {e}")
            return None
        return FileRecord(path=relative_path, content=content, size=len(content.encode("utf-8")))
