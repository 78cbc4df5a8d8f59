"""
Response normalizer: turns raw model output into a NormalizedResult.

Model output is not contractually structured, so normalization never fails.
Structured (JSON object) replies are validated against the result shape and
used directly when they fit. Everything else goes through an ordered chain of
independent heuristics:

1. Kind-specific shape repair (describe, ask, tests)
2. Score extraction (first matching pattern by priority wins)
3. Issue extraction (all patterns accumulate)
4. Suggestion extraction (per line, first matching pattern wins)
5. Fallback placeholder suggestion for long, unmatched text
"""

import json
import re
import logging
from typing import Any, Callable, Dict, List, Optional, Pattern

from pydantic import ValidationError

from pr_agent.analyzers.prompt_builder import DEFAULT_ASK_QUESTION
from pr_agent.models import (
    AnalysisKind,
    FreeTextResponse,
    Issue,
    ModelResponse,
    NormalizedResult,
    ResultSummary,
    Severity,
    StructuredResponse,
    Suggestion,
)
from pr_agent.models.analysis import DEFAULT_QUALITY_SCORE, DEFAULT_SECURITY_SCORE

logger = logging.getLogger(__name__)

FALLBACK_MIN_LENGTH = 100
ISSUE_MIN_LENGTH = 11
SUGGESTION_MIN_LENGTH = 16

UNLOCALIZED_FILE = "Detected from analysis"
FALLBACK_SUGGESTION = "See detailed analysis below"
FALLBACK_DESCRIPTION = "Comprehensive AI analysis provided in raw response"

# Ordered by priority; the first pattern yielding an accepted value wins.
QUALITY_PATTERNS: List[Pattern[str]] = [
    re.compile(r"quality[:\s]*(\d+)", re.IGNORECASE),
    re.compile(r"score[:\s]*(\d+)", re.IGNORECASE),
    re.compile(r"rating[:\s]*(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)%"),
    re.compile(r"\|\s*\**Overall Quality\**\s*\|\s*(\d+)", re.IGNORECASE),
    re.compile(r"\|\s*\**Quality\**\s*\|\s*(\d+)", re.IGNORECASE),
]

SECURITY_PATTERNS: List[Pattern[str]] = [
    re.compile(r"security[:\s]*(\d+)", re.IGNORECASE),
    re.compile(r"vulnerability[:\s]*(\d+)", re.IGNORECASE),
    re.compile(r"risk[:\s]*(\d+)", re.IGNORECASE),
    re.compile(r"\|\s*\**Security\**\s*\|\s*(\d+)", re.IGNORECASE),
    re.compile(r"\|\s*\**Security Score\**\s*\|\s*(\d+)", re.IGNORECASE),
]

ISSUE_PATTERNS: List[Pattern[str]] = [
    re.compile(r"(?:warning|error|issue|problem)[:\s]*([^\n]+)", re.IGNORECASE),
    re.compile(r"(?:⚠️|❌|🚨)[:\s]*([^\n]+)"),
    re.compile(r"(?:file|line)[:\s]*([^\n]+)", re.IGNORECASE),
]

SUGGESTION_PATTERNS: List[Pattern[str]] = [
    re.compile(r"^[\d\-\*\•]\s*(.+)"),
    re.compile(r"^(?:suggest|recommend|consider|improve)[:\s]*(.+)", re.IGNORECASE),
    re.compile(r"^(?:you should|it would be better|try to)[:\s]*(.+)", re.IGNORECASE),
]

HEADING_PATTERNS: List[Pattern[str]] = [
    re.compile(r"^#+\s*"),
    re.compile(r"^\*\*.*\*\*$"),
]

ISSUE_NOISE_MARKERS = ("AI-detected",)
SUGGESTION_NOISE_MARKERS = ("AI-generated", "No description")

# Keys whose string values are treated as prose when a reply is JSON-ish
_PROSE_KEYS = ("summary", "description", "answer", "overview", "purpose", "changes", "content")
_QUOTED_VALUE = re.compile(r'"[^"\n]+"\s*:\s*"((?:[^"\\\n]|\\.){20,})"')

DESCRIBE_HEADERS = ("## 📋 Summary", "## 🎯 Purpose")
ASK_QUESTION_HEADER = "## ❓ Question"
ASK_ANSWER_HEADER = "## 📝 Answer"
TESTS_HEADER = "## Test Cases for Pull Request:"
TESTS_SUMMARY_HEADER = "### Summary"


# --- Shape repair -----------------------------------------------------------

def looks_like_json(text: str) -> bool:
    stripped = text.strip()
    return stripped.startswith("{") or stripped.startswith('"')


def extract_prose(text: str) -> str:
    """
    Pull human-readable sentences out of JSON-ish model output.

    Parsable JSON contributes the string values of well-known keys (or, if
    none are present, every top-level string value). Unparsable JSON-ish text
    contributes any long quoted values. Returns an empty string when nothing
    readable is found.
    """
    try:
        data = json.loads(text)
    except ValueError:
        values = [m.group(1).replace('\\"', '"') for m in _QUOTED_VALUE.finditer(text)]
        return "\n\n".join(values)

    if isinstance(data, str):
        return data.strip()
    if not isinstance(data, dict):
        return ""

    preferred = [
        str(data[key]).strip() for key in _PROSE_KEYS
        if isinstance(data.get(key), str) and data[key].strip()
    ]
    if preferred:
        return "\n\n".join(preferred)

    return "\n\n".join(v.strip() for v in data.values() if isinstance(v, str) and v.strip())


def repair_describe(text: str, question: Optional[str] = None) -> str:
    """Coerce a describe reply into the PR description skeleton."""
    if any(header in text for header in DESCRIBE_HEADERS) and not looks_like_json(text):
        return text

    prose = extract_prose(text) if looks_like_json(text) else text.strip()
    summary = prose or "This pull request contains code changes that improve functionality and maintainability."

    return (
        f"## 📋 Summary\n\n{summary}\n\n"
        "## 🎯 Purpose\n\n"
        "- **Problem**: Not stated in the analysis\n"
        "- **Solution**: See summary above\n"
        "- **Value**: See summary above\n\n"
        "## 🔧 Changes\n\nSee the files changed in this pull request.\n\n"
        "## 🧪 Testing\n\nStandard testing procedures.\n\n"
        "## 📝 Notes\n\nReview the changes for quality and correctness."
    )


def repair_ask(text: str, question: Optional[str] = None) -> str:
    """Coerce an ask reply into the Question/Answer skeleton."""
    question = question or DEFAULT_ASK_QUESTION

    if ASK_QUESTION_HEADER in text and ASK_ANSWER_HEADER in text:
        return text

    if looks_like_json(text):
        answer = extract_prose(text) or "The analysis did not return a readable answer."
    elif ASK_QUESTION_HEADER in text:
        return text
    else:
        answer = text.strip()

    return (
        f"{ASK_QUESTION_HEADER}\n{question}\n\n"
        f"{ASK_ANSWER_HEADER}\n{answer}\n\n"
        "## 🔍 Key Changes\n- See the files changed in this pull request\n\n"
        "## 📁 Relevant Files\n- Modified files in this PR"
    )


def repair_tests(text: str, question: Optional[str] = None) -> str:
    """Coerce a tests reply into the test-case skeleton."""
    if TESTS_HEADER in text and TESTS_SUMMARY_HEADER in text:
        return text

    if looks_like_json(text):
        summary = extract_prose(text) or "Comprehensive testing strategy for the changes in this pull request."
    elif TESTS_HEADER in text:
        return text
    else:
        summary = text.strip()

    return (
        f"{TESTS_HEADER}\n\n"
        f"{TESTS_SUMMARY_HEADER}\n{summary}\n\n"
        "### Edge Cases and Error Scenarios\n"
        "- Test with empty/null parameters\n"
        "- Test with malformed input\n"
        "- Test failure and permission paths\n\n"
        "### Integration Testing Recommendations\n"
        "- End-to-end execution of the changed flow"
    )


SHAPE_REPAIRS: Dict[AnalysisKind, Callable[[str, Optional[str]], str]] = {
    AnalysisKind.DESCRIBE: repair_describe,
    AnalysisKind.ASK: repair_ask,
    AnalysisKind.TESTS: repair_tests,
}


# --- Scores -----------------------------------------------------------------

def clamp_score(score: int) -> int:
    return max(0, min(100, score))


def extract_quality_score(text: str) -> Optional[int]:
    """First quality pattern (by priority) yielding a value in [0, 100]."""
    for pattern in QUALITY_PATTERNS:
        match = pattern.search(text)
        if match:
            score = int(match.group(1))
            if 0 <= score <= 100:
                return score
    return None


def extract_security_score(text: str) -> Optional[int]:
    """
    First security pattern (by priority) yielding an accepted value.

    Values in [0, 10] are read as a 0-10 scale and multiplied by 10; values
    in (10, 100] are taken as percentages.
    """
    for pattern in SECURITY_PATTERNS:
        match = pattern.search(text)
        if match:
            score = int(match.group(1))
            if 0 <= score <= 10:
                return score * 10
            if score <= 100:
                return score
    return None


# --- Issues and suggestions -------------------------------------------------

def extract_issues(text: str, kind: AnalysisKind) -> List[Issue]:
    """Accumulate issues from every issue pattern, in pattern order."""
    issues: List[Issue] = []
    for pattern in ISSUE_PATTERNS:
        for match in pattern.finditer(text):
            issue_text = match.group(1).strip()
            if len(issue_text) < ISSUE_MIN_LENGTH:
                continue
            if any(marker in issue_text for marker in ISSUE_NOISE_MARKERS):
                continue
            issues.append(Issue(
                severity=Severity.WARNING,
                message=issue_text,
                file=UNLOCALIZED_FILE,
                line=1,
                description=f"Issue identified during {kind.value} analysis",
            ))
    return issues


def _is_heading(line: str) -> bool:
    return any(pattern.match(line) for pattern in HEADING_PATTERNS)


def extract_suggestions(text: str, kind: AnalysisKind) -> List[Suggestion]:
    """Scan line by line; the first matching suggestion pattern decides."""
    suggestions: List[Suggestion] = []
    for line in text.split("\n"):
        trimmed = line.strip()
        if not trimmed or _is_heading(trimmed):
            continue

        for pattern in SUGGESTION_PATTERNS:
            match = pattern.match(trimmed)
            if not match:
                continue
            suggestion_text = (match.group(1) or match.group(0)).strip()
            if (
                len(suggestion_text) >= SUGGESTION_MIN_LENGTH
                and not any(marker in suggestion_text for marker in SUGGESTION_NOISE_MARKERS)
            ):
                suggestions.append(Suggestion(
                    message=suggestion_text,
                    description=f"{kind.value} improvement suggestion",
                    category=kind,
                ))
            break
    return suggestions


def fallback_suggestions(text: str) -> List[Suggestion]:
    """Placeholder pointing readers at the raw text when nothing was extracted."""
    if len(text) > FALLBACK_MIN_LENGTH:
        return [Suggestion(message=FALLBACK_SUGGESTION, description=FALLBACK_DESCRIPTION)]
    return []


# --- Normalizer -------------------------------------------------------------

def _has_result_shape(payload: Dict[str, Any]) -> bool:
    return (
        isinstance(payload.get("summary"), dict)
        and isinstance(payload.get("issues"), list)
        and isinstance(payload.get("suggestions"), list)
    )


class ResponseNormalizer:
    """Maps a ModelResponse to a NormalizedResult. Never raises."""

    def normalize(
        self,
        response: ModelResponse,
        kind: AnalysisKind,
        question: Optional[str] = None,
    ) -> NormalizedResult:
        """
        Normalize one model response.

        Args:
            response: Structured or free-text model reply
            kind: Analysis kind the reply belongs to
            question: Question asked (ask/reply kinds), used by shape repair

        Returns:
            Normalized result for the kind
        """
        if isinstance(response, StructuredResponse):
            result = self.normalize_structured(response.payload, kind)
            if result is not None:
                return result
            text = json.dumps(response.payload, indent=2, ensure_ascii=False, default=str)
        elif isinstance(response, FreeTextResponse):
            text = response.text
        else:
            text = str(response)

        return self.normalize_text(text, kind, question)

    def normalize_structured(self, payload: Dict[str, Any], kind: AnalysisKind) -> Optional[NormalizedResult]:
        """
        Validate a JSON payload against the result shape.

        Returns:
            The validated result, or None when the payload does not fit and
            should be treated as text
        """
        if not _has_result_shape(payload):
            logger.debug(f"Structured {kind.value} payload lacks result shape, treating as text")
            return None

        try:
            data = {key: value for key, value in payload.items() if key not in ("kind", "analysisType")}
            result = NormalizedResult.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Structured {kind.value} payload failed validation, treating as text: {e.error_count()} errors")
            return None

        summary = result.summary
        clamped = summary.model_copy(update={
            "quality_score": clamp_score(summary.quality_score),
            "security_score": clamp_score(summary.security_score),
        })
        if clamped != summary:
            logger.warning(
                f"Structured {kind.value} scores out of range "
                f"(quality {summary.quality_score}, security {summary.security_score}), clamped to 0-100"
            )

        return result.model_copy(update={"kind": kind, "summary": clamped})

    def normalize_text(
        self,
        text: str,
        kind: AnalysisKind,
        question: Optional[str] = None,
    ) -> NormalizedResult:
        """Run the free-text heuristic chain."""
        text = text or ""

        repair = SHAPE_REPAIRS.get(kind)
        if repair is not None:
            text = repair(text, question)

        quality_score = extract_quality_score(text)
        security_score = extract_security_score(text)
        issues = extract_issues(text, kind)
        suggestions = extract_suggestions(text, kind)

        logger.info(
            f"Parsed {len(issues)} issues and {len(suggestions)} suggestions from {kind.value} response",
            extra={"kind": kind.value, "response_length": len(text)}
        )

        summary = ResultSummary(
            quality_score=DEFAULT_QUALITY_SCORE if quality_score is None else quality_score,
            security_score=DEFAULT_SECURITY_SCORE if security_score is None else security_score,
            issues_found=len(issues),
            suggestions_count=len(suggestions),
        )

        if not issues and not suggestions:
            suggestions = fallback_suggestions(text)

        return NormalizedResult(
            summary=summary,
            issues=issues,
            suggestions=suggestions,
            raw_response=text,
            kind=kind,
        )
