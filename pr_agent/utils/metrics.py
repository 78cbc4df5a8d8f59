"""
Run metrics collection and emission.

This module tracks, for a single task run:
- Total execution time
- Number of analyses run and failed
- Number of PR comments and inline comments posted
- API call counts and latency per service

Nothing leaves the process; metrics are emitted as log records.
"""

import time
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from contextlib import asynccontextmanager

from pr_agent.utils.logging import get_logger, log_api_call

logger = get_logger(__name__)


class RunMetrics:
    """
    Collects metrics during one pipeline task run.

    Tracks:
    - Execution start/end time
    - Analyses completed and failed
    - Comments and inline comments posted
    - API call counts and latency
    """

    def __init__(self, analysis_type: str, pr_id: Optional[str] = None):
        """
        Initialize metrics collector.

        Args:
            analysis_type: Requested analysis type (a kind or 'all')
            pr_id: Pull request number, if the run targets a PR
        """
        self.analysis_type = analysis_type
        self.pr_id = pr_id

        # Timing metrics
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.duration_ms: Optional[int] = None

        # Analysis metrics
        self.files_analyzed: int = 0
        self.analyses_completed: int = 0
        self.analyses_failed: int = 0
        self.comments_posted: int = 0
        self.inline_comments_posted: int = 0

        # API metrics
        self.api_calls: Dict[str, int] = {}
        self.api_latencies: Dict[str, list[float]] = {}

        # Status
        self.status: str = "running"
        self.error_message: Optional[str] = None

    def start(self) -> None:
        """Mark run start."""
        self.start_time = datetime.now(timezone.utc)
        self.status = "running"
        logger.debug(
            f"Metrics collection started for {self.analysis_type}",
            extra={"pr_id": self.pr_id, "analysis_type": self.analysis_type}
        )

    def complete(self, status: str = "succeeded", error_message: Optional[str] = None) -> None:
        """
        Mark run completion.

        Args:
            status: Final status ('succeeded' or 'failed')
            error_message: Error message if failed
        """
        self.end_time = datetime.now(timezone.utc)
        self.status = status
        self.error_message = error_message

        if self.start_time:
            duration = (self.end_time - self.start_time).total_seconds()
            self.duration_ms = int(duration * 1000)

    def record_files_analyzed(self, count: int) -> None:
        self.files_analyzed = count

    def record_analysis(self, succeeded: bool = True) -> None:
        if succeeded:
            self.analyses_completed += 1
        else:
            self.analyses_failed += 1

    def record_comment(self) -> None:
        self.comments_posted += 1

    def record_inline_comments(self, count: int) -> None:
        self.inline_comments_posted += count

    def record_api_call(self, service: str, duration_ms: float) -> None:
        """
        Record API call and latency.

        Args:
            service: Service name (e.g., 'azure_devops', 'model')
            duration_ms: Call duration in milliseconds
        """
        self.api_calls[service] = self.api_calls.get(service, 0) + 1

        if service not in self.api_latencies:
            self.api_latencies[service] = []
        self.api_latencies[service].append(duration_ms)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """
        Get summary of collected metrics.

        Returns:
            Dictionary of metrics
        """
        summary = {
            "analysis_type": self.analysis_type,
            "pr_id": self.pr_id,
            "status": self.status,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
            "files_analyzed": self.files_analyzed,
            "analyses_completed": self.analyses_completed,
            "analyses_failed": self.analyses_failed,
            "comments_posted": self.comments_posted,
            "inline_comments_posted": self.inline_comments_posted,
            "api_calls": self.api_calls,
        }

        if self.api_latencies:
            latency_stats = {}
            for service, latencies in self.api_latencies.items():
                if latencies:
                    latency_stats[service] = {
                        "count": len(latencies),
                        "min_ms": round(min(latencies), 2),
                        "max_ms": round(max(latencies), 2),
                        "avg_ms": round(sum(latencies) / len(latencies), 2),
                    }
            summary["api_latencies"] = latency_stats

        if self.error_message:
            summary["error_message"] = self.error_message

        return summary

    def emit(self) -> None:
        """Emit every numeric counter through emit_metric."""
        tags = {"analysis_type": self.analysis_type, "status": self.status}
        if self.duration_ms is not None:
            emit_metric("pr_agent.run.duration_ms", self.duration_ms, **tags)
        emit_metric("pr_agent.files_analyzed", self.files_analyzed, **tags)
        emit_metric("pr_agent.analyses.completed", self.analyses_completed, **tags)
        emit_metric("pr_agent.analyses.failed", self.analyses_failed, **tags)
        emit_metric("pr_agent.comments.posted", self.comments_posted, **tags)
        emit_metric("pr_agent.inline_comments.posted", self.inline_comments_posted, **tags)
        for service, count in self.api_calls.items():
            emit_metric("pr_agent.api.calls", count, service=service, **tags)


@asynccontextmanager
async def track_api_call(
    metrics: Optional[RunMetrics],
    service: str,
    logger_adapter,
    endpoint: str = "",
    method: str = ""
):
    """
    Context manager to track API call timing.

    Usage:
        async with track_api_call(metrics, "azure_devops", logger, "get_threads", "GET"):
            threads = await client.list_threads(ctx)

    Args:
        metrics: Run metrics collector (optional)
        service: Service name
        logger_adapter: Logger for logging API calls
        endpoint: Endpoint or SDK operation name
        method: HTTP method

    Yields:
        None
    """
    start_time = time.time()
    error = None

    try:
        yield
    except Exception as e:
        error = e
        raise
    finally:
        duration_ms = (time.time() - start_time) * 1000

        if metrics:
            metrics.record_api_call(service, duration_ms)

        log_api_call(
            logger_adapter,
            service=service,
            endpoint=endpoint,
            method=method,
            duration_ms=duration_ms,
            error=str(error) if error else None
        )


def emit_metric(metric_name: str, value: float, **tags: Any) -> None:
    """
    Emit a metric as a structured log record.

    Args:
        metric_name: Metric name
        value: Metric value
        **tags: Metric tags/labels
    """
    logger.info(
        f"Metric: {metric_name}",
        extra={
            "metric_name": metric_name,
            "metric_value": value,
            "metric_tags": tags,
        }
    )
