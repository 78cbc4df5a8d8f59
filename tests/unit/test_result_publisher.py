"""
Unit tests for result reporting, output formats and threshold gating.
"""

import json
import xml.etree.ElementTree as ET

import pytest

from pr_agent.errors import OutputError, ThresholdError
from pr_agent.models import (
    AnalysisKind,
    CombinedResult,
    Issue,
    NormalizedResult,
    ResultSummary,
    SeparateComment,
    Severity,
    Suggestion,
)
from pr_agent.services.result_publisher import (
    ResultPublisher,
    check_thresholds,
    escape_xml,
    format_json,
    format_junit,
    format_markdown,
    format_sarif,
)


@pytest.fixture
def result():
    return NormalizedResult(
        summary=ResultSummary(quality_score=82, security_score=91, issues_found=2, suggestions_count=1),
        issues=[
            Issue(severity=Severity.ERROR, message='Query built with "+" & <input>', file="src/db.py", line=14,
                  description="Use parameters"),
            Issue(severity=Severity.WARNING, message="Broad except", file="src/app.py", line=1),
        ],
        suggestions=[Suggestion(message="Add type hints to public functions")],
        raw_response="## 🔍 Code Review Summary\n\nTwo problems found in the data access layer.",
        kind=AnalysisKind.REVIEW,
    )


@pytest.fixture
def echoed():
    return []


def _publisher(echoed, **kwargs):
    return ResultPublisher(echo=echoed.append, **kwargs)


class TestFormats:
    """Tests for the output file formats."""

    def test_json_uses_camel_case(self, result):
        data = json.loads(format_json(result))

        assert data["summary"]["qualityScore"] == 82
        assert data["summary"]["suggestionsCount"] == 1
        assert data["issues"][0]["severity"] == "error"
        assert data["rawResponse"].startswith("## 🔍")

    def test_sarif_document(self, result):
        data = json.loads(format_sarif(result))

        assert data["version"] == "2.1.0"
        run = data["runs"][0]
        assert run["tool"]["driver"]["name"] == "PR Agent"
        first, second = run["results"]
        assert first["message"]["text"] == result.issues[0].message
        assert second["message"]["text"] == "Broad except"
        assert first["level"] == "error"
        assert first["ruleId"] == "unknown"
        assert first["locations"][0]["physicalLocation"]["artifactLocation"]["uri"] == "src/db.py"
        assert first["locations"][0]["physicalLocation"]["region"]["startLine"] == 14
        assert second["level"] == "warning"

    def test_junit_is_well_formed_and_escaped(self, result):
        document = format_junit(result)
        suite = ET.fromstring(document.split("\n", 1)[1])

        assert suite.tag == "testsuite"
        assert suite.get("tests") == "2"
        assert suite.get("failures") == "2"
        cases = suite.findall("testcase")
        assert cases[0].get("name") == 'Query built with "+" & <input>'
        assert cases[0].get("classname") == "src/db.py"
        failure = cases[0].find("failure")
        assert failure.get("type") == "error"
        assert "File: src/db.py:14" in failure.text

    def test_junit_without_issues(self):
        document = format_junit(NormalizedResult())

        assert 'tests="0" failures="0"' in document

    def test_escape_xml(self):
        assert escape_xml("a<b>&'\"") == "a&lt;b&gt;&amp;&apos;&quot;"
        assert escape_xml(None) == ""

    def test_markdown_single(self, result):
        text = format_markdown(result)

        assert "### 📊 Summary" in text
        assert "- **Quality Score**: 82%" in text
        assert "#### 1. error: Query built with" in text
        assert "**File**: `src/db.py`:14" in text
        assert "### 💡 Suggestions" in text
        assert "### 📝 Detailed Analysis" in text

    def test_markdown_combined(self, result):
        combined = CombinedResult(
            summary=ResultSummary(quality_score=82, security_score=91, issues_found=2, suggestions_count=1),
            separate_comments=[
                SeparateComment(kind=AnalysisKind.REVIEW, title="Code Review", emoji="🔍", result=result),
                SeparateComment(kind=AnalysisKind.TESTS, title="Test Suggestions", emoji="🧪",
                                result=NormalizedResult(kind=AnalysisKind.TESTS)),
            ],
        )

        text = format_markdown(combined)

        assert text.startswith("# 🤖 Azure DevOps PR Agent - Analysis Results")
        assert "- **Total Analyses**: 2" in text
        assert "- **Analysis Types**: Code Review, Test Suggestions" in text
        assert "## 🔍 Code Review Analysis" in text
        assert "\n---\n\n## 🧪 Test Suggestions Analysis" in text


class TestThresholds:
    """Tests for quality and security gating."""

    def test_passing_scores(self, result):
        check_thresholds(result, 80, 90)

    def test_quality_checked_first(self, result):
        with pytest.raises(ThresholdError) as exc_info:
            check_thresholds(result, 90, 95)

        assert exc_info.value.metric == "quality"
        assert str(exc_info.value) == "Quality score 82% is below threshold 90%"

    def test_security_failure(self, result):
        with pytest.raises(ThresholdError) as exc_info:
            check_thresholds(result, 80, 95)

        assert exc_info.value.metric == "security"

    def test_threshold_equal_to_score_passes(self, result):
        check_thresholds(result, 82, 91)


class TestResultPublisher:
    """Tests for the console summary and output file."""

    def test_print_summary(self, result, echoed):
        _publisher(echoed).print_summary(result)

        assert echoed[:4] == [
            "📈 Quality Score: 82%",
            "🔒 Security Score: 91%",
            "📝 Issues Found: 2",
            "💡 Suggestions: 1",
        ]
        assert "🔍 Key Issues Found:" in echoed
        assert "2. warning: Broad except (src/app.py:1)" in echoed

    def test_print_summary_caps_issue_list(self, echoed):
        many = NormalizedResult(issues=[Issue(message=f"Problem number {i}") for i in range(8)])

        _publisher(echoed).print_summary(many)

        assert "5. warning: Problem number 4 (Detected from analysis:1)" in echoed
        assert not any(line.startswith("6. ") for line in echoed)
        assert echoed[-1] == "... and 3 more issues"

    def test_write_output_creates_directories(self, result, echoed, tmp_path):
        output = tmp_path / "reports" / "nested" / "results.sarif"
        publisher = _publisher(echoed, output_format="sarif", output_file=str(output))

        publisher.process(result)

        assert json.loads(output.read_text(encoding="utf-8"))["version"] == "2.1.0"

    def test_junit_publish_command(self, result, echoed, tmp_path):
        output = tmp_path / "results.xml"
        publisher = _publisher(echoed, output_format="junit", output_file=str(output), publish_results=True)

        publisher.process(result)

        assert echoed[-1] == (
            "##vso[results.publish type=JUnit;mergeResults=false;"
            f"runTitle=PR Agent Analysis Results;resultFiles={output};]"
        )

    def test_no_publish_command_for_other_formats(self, result, echoed, tmp_path):
        publisher = _publisher(echoed, output_format="json", output_file=str(tmp_path / "r.json"), publish_results=True)

        publisher.process(result)

        assert not any(line.startswith("##vso[results.publish") for line in echoed)

    def test_output_written_before_threshold_failure(self, result, echoed, tmp_path):
        output = tmp_path / "results.json"
        publisher = _publisher(echoed, output_file=str(output), quality_threshold=95)

        with pytest.raises(ThresholdError):
            publisher.process(result)

        assert output.exists()

    def test_unwritable_output_raises_output_error(self, result, echoed, tmp_path):
        blocker = tmp_path / "taken"
        blocker.write_text("not a directory", encoding="utf-8")
        publisher = _publisher(echoed, output_file=str(blocker / "results.json"))

        with pytest.raises(OutputError, match="Failed to write results"):
            publisher.process(result)
