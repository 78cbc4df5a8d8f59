"""
Result Publisher component.

Reports an analysis result outside the pull request:
- console summary of scores and the first issues
- serialization to json, markdown, junit or sarif and the output file
- Azure Pipelines test result publishing for JUnit output
- quality and security threshold gating
"""

import json
from pathlib import Path
from typing import Callable, List, Optional
from xml.sax.saxutils import escape

import click

from pr_agent.errors import OutputError, ThresholdError
from pr_agent.models import AnalysisResult, CombinedResult, Issue, NormalizedResult, Severity
from pr_agent.utils.logging import get_logger

logger = get_logger(__name__)

MAX_CONSOLE_ISSUES = 5
MIN_DETAILED_RESPONSE_LENGTH = 50
SARIF_VERSION = "2.1.0"
SARIF_SCHEMA = "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json"
TOOL_NAME = "PR Agent"
TOOL_VERSION = "1.0.0"
TEST_RUN_TITLE = "PR Agent Analysis Results"

_XML_ENTITIES = {"'": "&apos;", '"': "&quot;"}


def escape_xml(text: str) -> str:
    return escape(text or "", _XML_ENTITIES)


def format_json(result: AnalysisResult) -> str:
    return result.model_dump_json(by_alias=True, indent=2)


def _format_single_markdown(result: NormalizedResult) -> str:
    summary = result.summary
    lines = [
        "### 📊 Summary",
        "",
        f"- **Quality Score**: {summary.quality_score}%",
        f"- **Security Score**: {summary.security_score}%",
        f"- **Issues Found**: {summary.issues_found}",
        f"- **Suggestions**: {summary.suggestions_count}",
        "",
    ]

    if result.issues:
        lines.extend(["### ⚠️ Issues Found", ""])
        for index, issue in enumerate(result.issues, start=1):
            lines.extend([
                f"#### {index}. {issue.severity.value}: {issue.message}",
                "",
                f"**File**: `{issue.file}`:{issue.line}",
                "",
            ])
            if issue.description:
                lines.extend([f"**Description**: {issue.description}", ""])

    if result.suggestions:
        lines.extend(["### 💡 Suggestions", ""])
        lines.extend(
            f"{index}. {suggestion.message}"
            for index, suggestion in enumerate(result.suggestions, start=1)
        )
        lines.append("")

    if len(result.raw_response) > MIN_DETAILED_RESPONSE_LENGTH:
        lines.extend(["### 📝 Detailed Analysis", "", result.raw_response, ""])

    return "\n".join(lines) + "\n"


def format_markdown(result: AnalysisResult) -> str:
    """Render a Markdown report; comprehensive runs get one section per kind."""
    if not isinstance(result, CombinedResult):
        return _format_single_markdown(result)

    summary = result.summary
    parts = [
        "# 🤖 Azure DevOps PR Agent - Analysis Results\n\n",
        "## 📊 Overall Summary\n\n",
        f"- **Quality Score**: {summary.quality_score}%\n",
        f"- **Security Score**: {summary.security_score}%\n",
        f"- **Total Analyses**: {len(result.separate_comments)}\n",
        f"- **Analysis Types**: {', '.join(c.title for c in result.separate_comments)}\n\n",
    ]

    sections = [
        f"## {separate.emoji} {separate.title} Analysis\n\n{_format_single_markdown(separate.result)}"
        for separate in result.separate_comments
    ]
    parts.append("\n---\n\n".join(sections))
    return "".join(parts)


def format_junit(result: AnalysisResult) -> str:
    """One failing test case per issue."""
    issues = result.issues
    cases = []
    for issue in issues:
        cases.append(
            f'<testcase name="{escape_xml(issue.message)}" classname="{escape_xml(issue.file)}">'
            f'<failure message="{escape_xml(issue.message)}" type="{issue.severity.value}">\n'
            f"{escape_xml(issue.description)}\n"
            f"File: {escape_xml(issue.file)}:{issue.line}\n"
            f"</failure></testcase>"
        )

    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<testsuite name="PR Agent Analysis" tests="{len(issues)}" failures="{len(issues)}" time="0">\n'
        + "\n".join(cases)
        + "\n</testsuite>"
    )


def _sarif_result(issue: Issue) -> dict:
    return {
        "ruleId": "unknown",
        "message": {"text": issue.message},
        "locations": [{
            "physicalLocation": {
                "artifactLocation": {"uri": issue.file},
                "region": {"startLine": issue.line or 1},
            }
        }],
        "level": "error" if issue.severity == Severity.ERROR else "warning",
    }


def format_sarif(result: AnalysisResult) -> str:
    document = {
        "version": SARIF_VERSION,
        "$schema": SARIF_SCHEMA,
        "runs": [{
            "tool": {"driver": {"name": TOOL_NAME, "version": TOOL_VERSION}},
            "results": [_sarif_result(issue) for issue in result.issues],
        }],
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


FORMATTERS = {
    "json": format_json,
    "markdown": format_markdown,
    "junit": format_junit,
    "sarif": format_sarif,
}


def check_thresholds(result: AnalysisResult, quality_threshold: int, security_threshold: int) -> None:
    """
    Gate the result on the configured minimum scores.

    Raises:
        ThresholdError: For the first failing gate (quality, then security)
    """
    summary = result.summary
    if summary.quality_score < quality_threshold:
        raise ThresholdError("quality", summary.quality_score, quality_threshold)
    if summary.security_score < security_threshold:
        raise ThresholdError("security", summary.security_score, security_threshold)


class ResultPublisher:
    """Writes and reports results for the pipeline run."""

    def __init__(
        self,
        output_format: str = "json",
        output_file: Optional[str] = None,
        publish_results: bool = False,
        quality_threshold: int = 80,
        security_threshold: int = 90,
        echo: Callable[[str], None] = click.echo,
    ):
        self.output_format = output_format
        self.output_file = output_file
        self.publish_results = publish_results
        self.quality_threshold = quality_threshold
        self.security_threshold = security_threshold
        self.echo = echo

    def process(self, result: AnalysisResult) -> None:
        """
        Report the result, write the output file, then gate on thresholds.

        Raises:
            OutputError: If the output file cannot be written
            ThresholdError: If a score is below its threshold
        """
        self.print_summary(result)

        if self.output_file:
            self.write_output(result, self.output_file)
            if self.publish_results and self.output_format == "junit":
                self.echo(
                    f"##vso[results.publish type=JUnit;mergeResults=false;"
                    f"runTitle={TEST_RUN_TITLE};resultFiles={self.output_file};]"
                )

        check_thresholds(result, self.quality_threshold, self.security_threshold)

    def render(self, result: AnalysisResult) -> str:
        formatter = FORMATTERS.get(self.output_format, format_json)
        return formatter(result)

    def write_output(self, result: AnalysisResult, output_file: str) -> Path:
        """
        Write the rendered result, creating parent directories.

        Raises:
            OutputError: If the file cannot be written
        """
        path = Path(output_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.render(result), encoding="utf-8")
        except OSError as e:
            raise OutputError(f"Failed to write results to {output_file}: {e}") from e
        logger.info(f"Results saved to: {output_file}")
        return path

    def print_summary(self, result: AnalysisResult) -> None:
        summary = result.summary
        self.echo(f"📈 Quality Score: {summary.quality_score}%")
        self.echo(f"🔒 Security Score: {summary.security_score}%")
        self.echo(f"📝 Issues Found: {summary.issues_found}")
        self.echo(f"💡 Suggestions: {summary.suggestions_count}")

        issues: List[Issue] = result.issues
        if not issues:
            return

        self.echo("")
        self.echo("🔍 Key Issues Found:")
        for index, issue in enumerate(issues[:MAX_CONSOLE_ISSUES], start=1):
            self.echo(f"{index}. {issue.severity.value}: {issue.message} ({issue.file}:{issue.line})")
        if len(issues) > MAX_CONSOLE_ISSUES:
            self.echo(f"... and {len(issues) - MAX_CONSOLE_ISSUES} more issues")
