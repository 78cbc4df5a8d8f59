"""
Utility modules for the PR Agent.
"""

from pr_agent.utils.logging import (
    get_logger,
    setup_logging,
    log_phase_transition,
    log_api_call,
    log_error_with_context,
)
from pr_agent.utils.metrics import (
    RunMetrics,
    track_api_call,
    emit_metric,
)
from pr_agent.utils.resilience import (
    retry_with_backoff,
    handle_partial_failure,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "log_phase_transition",
    "log_api_call",
    "log_error_with_context",
    "RunMetrics",
    "track_api_call",
    "emit_metric",
    "retry_with_backoff",
    "handle_partial_failure",
]
