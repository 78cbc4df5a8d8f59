"""Analysis request and result data models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pr_agent.models.base import CamelModel
from pr_agent.models.file_change import FileRecord


class AnalysisKind(str, Enum):
    """Kind of analysis requested from the model."""

    DESCRIBE = "describe"
    REVIEW = "review"
    COMPLIANCE = "compliance"
    AUTO_APPROVE = "auto-approve"
    ASK = "ask"
    IMPROVE = "improve"
    TESTS = "tests"
    SECURITY = "security"
    LABELS = "labels"
    REPLY = "reply"

    @property
    def comment_title(self) -> str:
        """Title used in the bot comment header; unique per kind."""
        return COMMENT_TITLES[self]

    @property
    def display_title(self) -> str:
        return DISPLAY_TITLES[self]

    @property
    def emoji(self) -> str:
        return EMOJIS[self]


COMMENT_TITLES: Dict[AnalysisKind, str] = {
    AnalysisKind.DESCRIBE: "Description",
    AnalysisKind.REVIEW: "Review",
    AnalysisKind.COMPLIANCE: "Compliance",
    AnalysisKind.AUTO_APPROVE: "Auto-Approve",
    AnalysisKind.ASK: "Answer",
    AnalysisKind.IMPROVE: "Improvement",
    AnalysisKind.TESTS: "Tests",
    AnalysisKind.SECURITY: "Security",
    AnalysisKind.LABELS: "Labels",
    AnalysisKind.REPLY: "Reply",
}

DISPLAY_TITLES: Dict[AnalysisKind, str] = {
    AnalysisKind.DESCRIBE: "Overall Recommendations",
    AnalysisKind.REVIEW: "Code Review",
    AnalysisKind.COMPLIANCE: "Compliance Check",
    AnalysisKind.AUTO_APPROVE: "Auto-Approval Status",
    AnalysisKind.ASK: "AI Answer",
    AnalysisKind.IMPROVE: "Improvement Suggestions",
    AnalysisKind.TESTS: "Test Suggestions",
    AnalysisKind.SECURITY: "Security Check",
    AnalysisKind.LABELS: "Labels",
    AnalysisKind.REPLY: "Comment Reply",
}

EMOJIS: Dict[AnalysisKind, str] = {
    AnalysisKind.DESCRIBE: "📝",
    AnalysisKind.REVIEW: "🔍",
    AnalysisKind.COMPLIANCE: "📋",
    AnalysisKind.AUTO_APPROVE: "✅",
    AnalysisKind.ASK: "❓",
    AnalysisKind.IMPROVE: "🚀",
    AnalysisKind.TESTS: "🧪",
    AnalysisKind.SECURITY: "🔒",
    AnalysisKind.LABELS: "🏷️",
    AnalysisKind.REPLY: "💬",
}

# Kinds run by comprehensive mode, in posting order. Labels run afterwards.
COMPREHENSIVE_KINDS: List[AnalysisKind] = [
    AnalysisKind.DESCRIBE,
    AnalysisKind.REVIEW,
    AnalysisKind.COMPLIANCE,
    AnalysisKind.AUTO_APPROVE,
    AnalysisKind.ASK,
    AnalysisKind.IMPROVE,
    AnalysisKind.TESTS,
]

ALL_ANALYSES = "all"
ANALYSIS_TYPES: List[str] = [kind.value for kind in AnalysisKind] + [ALL_ANALYSES]
OUTPUT_FORMATS: List[str] = ["json", "markdown", "junit", "sarif"]

DEFAULT_QUALITY_SCORE = 75
DEFAULT_SECURITY_SCORE = 80


class Severity(str, Enum):
    """Severity of an issue."""

    WARNING = "warning"
    ERROR = "error"
    INFO = "info"


class Issue(CamelModel):
    """Problem reported by the model. ``line`` 1 means not localized."""

    severity: Severity = Severity.WARNING
    message: str
    file: str = "Detected from analysis"
    line: int = 1
    description: str = ""
    category: Optional[AnalysisKind] = None


class Suggestion(CamelModel):
    """Improvement proposed by the model."""

    message: str
    description: str = ""
    category: Optional[AnalysisKind] = None


class ResultSummary(CamelModel):
    """Scores and counts for one analysis or a roll-up of several."""

    quality_score: int = DEFAULT_QUALITY_SCORE
    security_score: int = DEFAULT_SECURITY_SCORE
    issues_found: int = 0
    suggestions_count: int = Field(
        0,
        validation_alias=AliasChoices("suggestionsCount", "suggestions_count", "suggestions"),
        serialization_alias="suggestionsCount",
    )

    @classmethod
    def zero(cls) -> "ResultSummary":
        return cls(quality_score=0, security_score=0, issues_found=0, suggestions_count=0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NormalizedResult(CamelModel):
    """Canonical result of one analysis kind."""

    summary: ResultSummary = Field(default_factory=ResultSummary)
    issues: List[Issue] = []
    suggestions: List[Suggestion] = []
    raw_response: str = ""
    kind: Optional[AnalysisKind] = None
    timestamp: datetime = Field(default_factory=_utcnow)
    degraded: bool = False

    @classmethod
    def failed(cls, kind: AnalysisKind, message: str) -> "NormalizedResult":
        """Placeholder recorded when a kind could not be analyzed."""
        return cls(
            summary=ResultSummary.zero(),
            raw_response=f"Analysis failed: {message}",
            kind=kind,
            degraded=True,
        )


class SeparateComment(CamelModel):
    """One per-kind comment to publish in comprehensive mode."""

    kind: AnalysisKind
    title: str
    emoji: str
    result: NormalizedResult


class CombinedResult(CamelModel):
    """Aggregate of a comprehensive ('all') run."""

    analyses: Dict[AnalysisKind, NormalizedResult] = {}
    summary: ResultSummary = Field(default_factory=ResultSummary.zero)
    separate_comments: List[SeparateComment] = []
    description_update: Optional[str] = None
    labels_update: Optional[str] = None
    issues: List[Issue] = []
    suggestions: List[Suggestion] = []
    raw_response: str = ""
    kind: Literal["all"] = ALL_ANALYSES
    timestamp: datetime = Field(default_factory=_utcnow)


AnalysisResult = Union[NormalizedResult, CombinedResult]


class AnalysisOptions(CamelModel):
    """Options forwarded with every analysis request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    question: Optional[str] = None
    output_format: str = "json"
    custom_prompt: Optional[str] = None
    enable_security_scan: bool = False
    enable_compliance_check: bool = False


class RequestMetadata(CamelModel):
    """Build metadata attached to analysis requests."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    build_id: Optional[str] = None
    build_number: Optional[str] = None
    branch: Optional[str] = None
    commit: Optional[str] = None
    repository: Optional[str] = None


class AnalysisRequest(CamelModel):
    """Immutable request for one analysis kind."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    kind: AnalysisKind = Field(alias="type")
    files: List[FileRecord] = []
    options: AnalysisOptions = Field(default_factory=AnalysisOptions)
    metadata: RequestMetadata = Field(default_factory=RequestMetadata)
    title: Optional[str] = None
    description: Optional[str] = None


class StructuredResponse(CamelModel):
    """Model reply that was already a JSON object."""

    tag: Literal["structured"] = "structured"
    payload: Dict[str, Any]


class FreeTextResponse(CamelModel):
    """Model reply as plain (usually Markdown) text."""

    tag: Literal["free_text"] = "free_text"
    text: str


ModelResponse = Union[StructuredResponse, FreeTextResponse]
