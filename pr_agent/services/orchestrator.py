"""
Analysis Orchestrator component.

Drives one or many analysis kinds against the model endpoint:
- Single-kind mode: one request, bounded retries with exponential backoff
  on transport failures, then normalization of the first successful reply
- Comprehensive mode: the fixed kind list run strictly in order, each kind
  isolated so a failure yields a degraded placeholder instead of aborting,
  followed by a separate labels analysis

The combined result is an explicit accumulator folded through the loop.
"""

from typing import List, Optional

from pr_agent.analyzers.prompt_builder import DEFAULT_ASK_QUESTION
from pr_agent.analyzers.response_normalizer import ResponseNormalizer
from pr_agent.errors import TransportError
from pr_agent.models import (
    COMPREHENSIVE_KINDS,
    AnalysisKind,
    AnalysisOptions,
    AnalysisRequest,
    AnalysisResult,
    CombinedResult,
    FileRecord,
    NormalizedResult,
    RequestMetadata,
    ResultSummary,
    SeparateComment,
)
from pr_agent.models.analysis import ALL_ANALYSES
from pr_agent.services.model_client import ModelClient
from pr_agent.utils.logging import get_logger, log_phase_transition
from pr_agent.utils.metrics import RunMetrics
from pr_agent.utils.resilience import retry_with_backoff

logger = get_logger(__name__)

RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 10.0


def fold_result(combined: CombinedResult, kind: AnalysisKind, result: NormalizedResult) -> CombinedResult:
    """
    Fold one successful per-kind result into the accumulator.

    Scores roll up as the maximum over reporting kinds; counts sum. Issues
    and suggestions are tagged with the kind they came from.
    """
    summary = ResultSummary(
        quality_score=max(combined.summary.quality_score, result.summary.quality_score),
        security_score=max(combined.summary.security_score, result.summary.security_score),
        issues_found=combined.summary.issues_found + result.summary.issues_found,
        suggestions_count=combined.summary.suggestions_count + result.summary.suggestions_count,
    )

    update = {
        "analyses": {**combined.analyses, kind: result},
        "summary": summary,
        "separate_comments": combined.separate_comments + [
            SeparateComment(kind=kind, title=kind.display_title, emoji=kind.emoji, result=result)
        ],
        "issues": combined.issues + [i.model_copy(update={"category": kind}) for i in result.issues],
        "suggestions": combined.suggestions + [
            s.model_copy(update={"category": kind}) for s in result.suggestions
        ],
    }
    if kind == AnalysisKind.DESCRIBE:
        update["description_update"] = result.raw_response

    return combined.model_copy(update=update)


def fold_failure(combined: CombinedResult, kind: AnalysisKind, message: str) -> CombinedResult:
    """Record a degraded placeholder for a kind that could not be analyzed."""
    placeholder = NormalizedResult.failed(kind, message)
    return combined.model_copy(update={
        "separate_comments": combined.separate_comments + [
            SeparateComment(kind=kind, title=kind.display_title, emoji=kind.emoji, result=placeholder)
        ],
    })


def fold_labels(combined: CombinedResult, result: Optional[NormalizedResult]) -> CombinedResult:
    """Attach the labels analysis; it does not take part in the roll-up."""
    if result is None:
        return combined.model_copy(update={"labels_update": None})
    return combined.model_copy(update={
        "analyses": {**combined.analyses, AnalysisKind.LABELS: result},
        "labels_update": result.raw_response,
    })


def summarize_comprehensive(combined: CombinedResult) -> str:
    """Markdown overview stored as the combined raw response."""
    summary = combined.summary
    lines = [
        "## Comprehensive Analysis Summary",
        "",
        f"**Analysis Types Completed:** {len(combined.analyses)}",
    ]
    lines.extend(f"- {separate.title}: {_status(separate.result)}" for separate in combined.separate_comments)
    lines.extend([
        "",
        "**Total Findings:**",
        f"- Issues identified: {summary.issues_found}",
        f"- Suggestions provided: {summary.suggestions_count}",
        f"- Quality score: {summary.quality_score}%",
        f"- Security score: {summary.security_score}%",
        "",
        "Each analysis type has posted a separate detailed comment with specific findings and recommendations.",
    ])
    return "\n".join(lines)


def _status(result: NormalizedResult) -> str:
    return "failed" if result.degraded else "completed"


class AnalysisOrchestrator:
    """Runs analyses against the model with retries and per-kind isolation."""

    def __init__(
        self,
        model_client: ModelClient,
        normalizer: Optional[ResponseNormalizer] = None,
        retry_count: int = 3,
        base_delay: float = RETRY_BASE_DELAY,
        max_delay: float = RETRY_MAX_DELAY,
        metrics: Optional[RunMetrics] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            model_client: Transport to the model endpoint
            normalizer: Response normalizer (default instance if omitted)
            retry_count: Total attempts per analysis
            base_delay: Backoff delay after the first failed attempt (seconds)
            max_delay: Backoff delay cap (seconds)
            metrics: Optional run metrics collector
        """
        self.model_client = model_client
        self.normalizer = normalizer or ResponseNormalizer()
        self.retry_count = retry_count
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.metrics = metrics

    async def run(
        self,
        analysis_type: str,
        files: List[FileRecord],
        options: Optional[AnalysisOptions] = None,
        metadata: Optional[RequestMetadata] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> AnalysisResult:
        """Dispatch to comprehensive mode for 'all', single-kind mode otherwise."""
        options = options or AnalysisOptions()
        metadata = metadata or RequestMetadata()

        if analysis_type == ALL_ANALYSES:
            return await self.run_comprehensive(files, options, metadata, title, description)

        request = AnalysisRequest(
            kind=AnalysisKind(analysis_type),
            files=files,
            options=options,
            metadata=metadata,
            title=title,
            description=description,
        )
        return await self.run_single(request)

    async def run_single(self, request: AnalysisRequest) -> NormalizedResult:
        """
        Analyze one request.

        Transport failures are retried up to ``retry_count`` attempts; a
        reply that normalizes poorly is not retried.

        Raises:
            TransportError: When every attempt failed
        """
        kind = request.kind.value
        log = logger.with_context(kind=kind)

        log_phase_transition(log, kind, "model_call", "started")
        call = retry_with_backoff(
            max_retries=self.retry_count,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exceptions=(TransportError,),
        )(self.model_client.analyze)

        try:
            response = await call(request)
        except TransportError:
            log_phase_transition(log, kind, "model_call", "failed")
            if self.metrics:
                self.metrics.record_analysis(succeeded=False)
            raise
        log_phase_transition(log, kind, "model_call", "completed")

        result = self.normalizer.normalize(response, request.kind, request.options.question)
        log_phase_transition(log, kind, "normalize", "completed")

        if self.metrics:
            self.metrics.record_analysis(succeeded=True)
        return result

    async def run_comprehensive(
        self,
        files: List[FileRecord],
        options: AnalysisOptions,
        metadata: RequestMetadata,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> CombinedResult:
        """
        Run every comprehensive kind in order, then labels.

        Never raises for per-kind failures; they become degraded entries.
        """
        logger.info(f"Running comprehensive analysis ({len(COMPREHENSIVE_KINDS)} kinds plus labels)")
        combined = CombinedResult()

        for kind in COMPREHENSIVE_KINDS:
            kind_options = options
            if kind == AnalysisKind.ASK:
                kind_options = options.model_copy(update={"question": options.question or DEFAULT_ASK_QUESTION})

            request = AnalysisRequest(
                kind=kind,
                files=files,
                options=kind_options,
                metadata=metadata,
                title=title,
                description=description,
            )

            try:
                result = await self.run_single(request)
            except Exception as e:
                logger.warning(f"{kind.value} analysis failed: {e}", extra={"kind": kind.value}, exc_info=True)
                combined = fold_failure(combined, kind, str(e))
                continue

            combined = fold_result(combined, kind, result)
            logger.info(
                f"{kind.value} analysis completed - Issues: {len(result.issues)}, "
                f"Suggestions: {len(result.suggestions)}"
            )

        labels_request = AnalysisRequest(
            kind=AnalysisKind.LABELS,
            files=files,
            options=options,
            metadata=metadata,
            title=title,
            description=description,
        )
        try:
            labels_result = await self.run_single(labels_request)
        except Exception as e:
            logger.warning(f"labels analysis failed: {e}", extra={"kind": AnalysisKind.LABELS.value})
            labels_result = None
        combined = fold_labels(combined, labels_result)

        combined = combined.model_copy(update={"raw_response": summarize_comprehensive(combined)})

        logger.info(
            f"Comprehensive analysis completed: {len(combined.analyses)} analyses run, "
            f"quality {combined.summary.quality_score}%, security {combined.summary.security_score}%"
        )
        return combined
