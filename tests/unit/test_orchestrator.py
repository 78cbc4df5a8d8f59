"""
Unit tests for the analysis orchestrator.
"""

from unittest.mock import AsyncMock, patch

import pytest

from pr_agent.analyzers.prompt_builder import DEFAULT_ASK_QUESTION
from pr_agent.errors import TransportError
from pr_agent.models import (
    COMPREHENSIVE_KINDS,
    AnalysisKind,
    AnalysisOptions,
    CombinedResult,
    FileRecord,
    FreeTextResponse,
    NormalizedResult,
    StructuredResponse,
)
from pr_agent.services.orchestrator import AnalysisOrchestrator
from pr_agent.utils.metrics import RunMetrics

FILES = [FileRecord(path="src/app.py", content="def run():\n    return 1\n", size=24)]


def _payload(quality, security, issues=(), suggestions=(), raw=""):
    return StructuredResponse(payload={
        "summary": {
            "qualityScore": quality,
            "securityScore": security,
            "issuesFound": len(issues),
            "suggestionsCount": len(suggestions),
        },
        "issues": [
            {"severity": "warning", "message": message, "file": "src/app.py", "line": 2}
            for message in issues
        ],
        "suggestions": [{"message": message} for message in suggestions],
        "rawResponse": raw,
    })


class ScriptedModelClient:
    """Model client replaying scripted outcomes per kind."""

    def __init__(self, outcomes, default=None):
        self.outcomes = {kind: list(values) for kind, values in outcomes.items()}
        self.default = default
        self.requests = []

    async def analyze(self, request):
        self.requests.append(request)
        queue = self.outcomes.get(request.kind)
        outcome = queue.pop(0) if queue else self.default
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def mock_sleep():
    with patch("pr_agent.utils.resilience.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


class TestSingleKind:
    """Tests for single-kind mode."""

    @pytest.mark.asyncio
    async def test_retries_transport_errors_then_succeeds(self, mock_sleep):
        client = ScriptedModelClient({
            AnalysisKind.REVIEW: [TransportError("unavailable", status_code=503), _payload(88, 95)],
        })
        metrics = RunMetrics("review")
        orchestrator = AnalysisOrchestrator(client, retry_count=3, metrics=metrics)

        result = await orchestrator.run("review", FILES)

        assert isinstance(result, NormalizedResult)
        assert result.kind == AnalysisKind.REVIEW
        assert result.summary.quality_score == 88
        assert len(client.requests) == 2
        mock_sleep.assert_awaited_once_with(1.0)
        assert metrics.analyses_completed == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise(self, mock_sleep):
        client = ScriptedModelClient({}, default=TransportError("boom", status_code=500))
        metrics = RunMetrics("security")
        orchestrator = AnalysisOrchestrator(client, retry_count=3, metrics=metrics)

        with pytest.raises(TransportError):
            await orchestrator.run("security", FILES)

        assert len(client.requests) == 3
        assert [call.args[0] for call in mock_sleep.await_args_list] == [1.0, 2.0]
        assert metrics.analyses_failed == 1

    @pytest.mark.asyncio
    async def test_free_text_reply_is_normalized_not_retried(self, mock_sleep):
        client = ScriptedModelClient({}, default=FreeTextResponse(text="Quality: 72\nSecurity: 85"))
        orchestrator = AnalysisOrchestrator(client, retry_count=3)

        result = await orchestrator.run("review", FILES)

        assert result.summary.quality_score == 72
        assert result.summary.security_score == 85
        assert len(client.requests) == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_request_carries_title_and_options(self, mock_sleep):
        client = ScriptedModelClient({}, default=_payload(80, 90))
        orchestrator = AnalysisOrchestrator(client)

        await orchestrator.run(
            "ask",
            FILES,
            options=AnalysisOptions(question="Is this safe?"),
            title="Harden input parsing",
        )

        request = client.requests[0]
        assert request.kind == AnalysisKind.ASK
        assert request.title == "Harden input parsing"
        assert request.options.question == "Is this safe?"
        assert request.files == FILES


class TestComprehensive:
    """Tests for comprehensive ('all') mode."""

    @pytest.mark.asyncio
    async def test_runs_kinds_in_order_then_labels(self, mock_sleep):
        client = ScriptedModelClient({}, default=_payload(80, 90))
        orchestrator = AnalysisOrchestrator(client)

        result = await orchestrator.run("all", FILES)

        assert isinstance(result, CombinedResult)
        assert [r.kind for r in client.requests] == COMPREHENSIVE_KINDS + [AnalysisKind.LABELS]
        assert [c.kind for c in result.separate_comments] == COMPREHENSIVE_KINDS

    @pytest.mark.asyncio
    async def test_failed_kind_becomes_degraded_placeholder(self, mock_sleep):
        client = ScriptedModelClient(
            {AnalysisKind.REVIEW: [TransportError("boom")] * 3},
            default=_payload(70, 85),
        )
        orchestrator = AnalysisOrchestrator(client, retry_count=3)

        result = await orchestrator.run("all", FILES)

        assert len(result.separate_comments) == 7
        review = next(c for c in result.separate_comments if c.kind == AnalysisKind.REVIEW)
        assert review.result.degraded is True
        assert review.result.raw_response.startswith("Analysis failed:")
        assert review.result.summary.quality_score == 0
        assert AnalysisKind.REVIEW not in result.analyses
        # six kinds plus labels
        assert len(result.analyses) == 7
        assert "- Code Review: failed" in result.raw_response

    @pytest.mark.asyncio
    async def test_scores_roll_up_as_maximum(self, mock_sleep):
        client = ScriptedModelClient(
            {
                AnalysisKind.DESCRIBE: [_payload(60, 70)],
                AnalysisKind.REVIEW: [_payload(85, 65, issues=["Unchecked None return"])],
                AnalysisKind.COMPLIANCE: [_payload(75, 95, suggestions=["Add a license header"])],
                AnalysisKind.LABELS: [_payload(100, 100)],
            },
            default=_payload(50, 50),
        )
        orchestrator = AnalysisOrchestrator(client)

        result = await orchestrator.run("all", FILES)

        assert result.summary.quality_score == 85
        assert result.summary.security_score == 95
        assert result.summary.issues_found == 1
        assert result.summary.suggestions_count == 1
        assert result.issues[0].category == AnalysisKind.REVIEW
        assert result.suggestions[0].category == AnalysisKind.COMPLIANCE

    @pytest.mark.asyncio
    async def test_all_kinds_failing_yields_zero_scores(self, mock_sleep):
        client = ScriptedModelClient({}, default=TransportError("down"))
        orchestrator = AnalysisOrchestrator(client, retry_count=1)

        result = await orchestrator.run("all", FILES)

        assert result.summary.quality_score == 0
        assert result.summary.security_score == 0
        assert all(c.result.degraded for c in result.separate_comments)
        assert result.labels_update is None
        assert result.description_update is None

    @pytest.mark.asyncio
    async def test_description_and_labels_updates(self, mock_sleep):
        client = ScriptedModelClient(
            {
                AnalysisKind.DESCRIBE: [_payload(80, 90, raw="## 📋 Summary\n\nAdds retry handling.")],
                AnalysisKind.LABELS: [_payload(80, 90, raw="- enhancement: 4/5")],
            },
            default=_payload(80, 90),
        )
        orchestrator = AnalysisOrchestrator(client)

        result = await orchestrator.run("all", FILES)

        assert result.description_update == "## 📋 Summary\n\nAdds retry handling."
        assert result.labels_update == "- enhancement: 4/5"

    @pytest.mark.asyncio
    async def test_labels_failure_leaves_labels_update_empty(self, mock_sleep):
        client = ScriptedModelClient(
            {AnalysisKind.LABELS: [TransportError("labels down")]},
            default=_payload(80, 90),
        )
        orchestrator = AnalysisOrchestrator(client, retry_count=1)

        result = await orchestrator.run("all", FILES)

        assert result.labels_update is None
        assert len(result.separate_comments) == 7
        assert AnalysisKind.LABELS not in result.analyses

    @pytest.mark.asyncio
    async def test_ask_gets_default_question(self, mock_sleep):
        client = ScriptedModelClient({}, default=_payload(80, 90))
        orchestrator = AnalysisOrchestrator(client)

        await orchestrator.run("all", FILES)

        ask = next(r for r in client.requests if r.kind == AnalysisKind.ASK)
        review = next(r for r in client.requests if r.kind == AnalysisKind.REVIEW)
        assert ask.options.question == DEFAULT_ASK_QUESTION
        assert review.options.question is None

    @pytest.mark.asyncio
    async def test_ask_keeps_configured_question(self, mock_sleep):
        client = ScriptedModelClient({}, default=_payload(80, 90))
        orchestrator = AnalysisOrchestrator(client)

        await orchestrator.run("all", FILES, options=AnalysisOptions(question="Does this break the API?"))

        ask = next(r for r in client.requests if r.kind == AnalysisKind.ASK)
        assert ask.options.question == "Does this break the API?"
