"""Data models for the Azure DevOps PR Agent."""

from .analysis import (
    ALL_ANALYSES,
    ANALYSIS_TYPES,
    COMPREHENSIVE_KINDS,
    OUTPUT_FORMATS,
    AnalysisKind,
    AnalysisOptions,
    AnalysisRequest,
    AnalysisResult,
    CombinedResult,
    FreeTextResponse,
    Issue,
    ModelResponse,
    NormalizedResult,
    RequestMetadata,
    ResultSummary,
    SeparateComment,
    Severity,
    StructuredResponse,
    Suggestion,
)
from .api_response import CommentPublishResult, PublishResult
from .comment import InlineComment, ThreadComment
from .file_change import ChangedFile, ChangeType, FileRecord
from .pr_context import PRContext

__all__ = [
    # Analysis models
    "ALL_ANALYSES",
    "ANALYSIS_TYPES",
    "COMPREHENSIVE_KINDS",
    "OUTPUT_FORMATS",
    "AnalysisKind",
    "AnalysisOptions",
    "AnalysisRequest",
    "AnalysisResult",
    "CombinedResult",
    "FreeTextResponse",
    "Issue",
    "ModelResponse",
    "NormalizedResult",
    "RequestMetadata",
    "ResultSummary",
    "SeparateComment",
    "Severity",
    "StructuredResponse",
    "Suggestion",
    # Publication models
    "CommentPublishResult",
    "PublishResult",
    # Comment models
    "InlineComment",
    "ThreadComment",
    # File models
    "ChangedFile",
    "ChangeType",
    "FileRecord",
    # PR models
    "PRContext",
]
