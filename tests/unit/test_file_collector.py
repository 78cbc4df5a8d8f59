"""
Unit tests for file collection.
"""

import pytest

from pr_agent.models import ChangedFile, ChangeType
from pr_agent.services.file_collector import FileCollector, is_selected, matches_pattern


@pytest.fixture
def source_tree(tmp_path):
    files = {
        "src/app.py": "print('app')\n",
        "src/util.py": "def helper():\n    pass\n",
        "src/generated/schema.py": "SCHEMA = {}\n",
        "README.md": "# Demo\n",
        "poetry.lock": "lock\n",
        "node_modules/pkg/index.js": "module.exports = {}\n",
        ".git/config": "[core]\n",
        "build/out.txt": "artifact\n",
    }
    for path, content in files.items():
        full_path = tmp_path / path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_text(content, encoding="utf-8")
    return tmp_path


class TestPatterns:
    """Tests for glob matching."""

    @pytest.mark.parametrize("path, patterns, expected", [
        ("src/app.py", ["*.py"], True),
        ("src/app.py", ["src/*.py"], True),
        ("poetry.lock", ["*.lock"], True),
        ("src/generated/schema.py", ["generated/"], True),
        ("src/app.py", ["generated/"], False),
        ("README.md", ["*.py"], False),
        ("app.py", ["**/*.py"], True),
        ("src/generated/schema.py", ["**/*.py"], True),
        ("src/generated/schema.py", ["src/*.py"], False),
        ("src/generated/schema.py", ["src/**/*.py"], True),
        (".github/workflows/ci.yml", ["**/*.yml"], True),
    ])
    def test_matches_pattern(self, path, patterns, expected):
        assert matches_pattern(path, patterns) is expected

    def test_exclude_wins_over_include(self):
        assert is_selected("src/generated/schema.py", ["*.py"], ["generated/"]) is False

    def test_globstar_include_keeps_root_files(self):
        assert is_selected("app.py", ["**/*.py"], []) is True

    def test_no_patterns_selects_everything(self):
        assert is_selected("anything.bin", [], []) is True


class TestFileCollector:
    """Tests for walking and reading files."""

    def test_collect_all_skips_tool_directories(self, source_tree):
        records = FileCollector(str(source_tree)).collect_all_files()

        paths = [record.path for record in records]
        assert paths == ["README.md", "poetry.lock", "src/app.py", "src/util.py", "src/generated/schema.py"]

    def test_collect_all_with_patterns(self, source_tree):
        collector = FileCollector(str(source_tree), include_patterns=["*.py"], exclude_patterns=["generated/"])

        records = collector.collect_all_files()

        assert [record.path for record in records] == ["src/app.py", "src/util.py"]
        assert records[0].content == "print('app')\n"
        assert records[0].size == len("print('app')\n")

    def test_skips_non_utf8_files(self, source_tree):
        (source_tree / "image.bin").write_bytes(b"\xff\xfe\x00\x81")

        records = FileCollector(str(source_tree)).collect_all_files()

        assert "image.bin" not in [record.path for record in records]

    def test_collect_specific_files(self, source_tree):
        collector = FileCollector(str(source_tree))

        records = collector.collect_specific_files([
            ChangedFile(path="/src/app.py", change_type=ChangeType.EDIT),
            ChangedFile(path="/src/deleted.py", change_type=ChangeType.DELETE),
            ChangedFile(path="/README.md", change_type=ChangeType.ADD),
        ])

        assert [record.path for record in records] == ["src/app.py", "README.md"]
        assert records[0].change_type == ChangeType.EDIT
        assert records[1].change_type == ChangeType.ADD

    def test_collect_specific_files_applies_patterns(self, source_tree):
        collector = FileCollector(str(source_tree), exclude_patterns=["*.md"])

        records = collector.collect_specific_files([
            ChangedFile(path="/src/app.py"),
            ChangedFile(path="/README.md"),
        ])

        assert [record.path for record in records] == ["src/app.py"]
