"""
Exception hierarchy for the PR Agent task.

Only configuration and threshold failures are fatal for the pipeline step.
Transport failures are retried and, in comprehensive mode, isolated per
analysis kind. Publication failures are logged and never abort a run.
"""


class PRAgentError(Exception):
    """Base class for all PR Agent errors."""
    pass


class ConfigurationError(PRAgentError):
    """Missing or invalid task configuration (endpoint, key, source directory)."""
    pass


class TransportError(PRAgentError):
    """Model endpoint call failed: non-2xx status, network failure or timeout."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class TransportTimeoutError(TransportError):
    """Model endpoint call exceeded the configured timeout."""
    pass


class PublicationError(PRAgentError):
    """Posting a comment, label or description update to the PR failed."""
    pass


class OutputError(PRAgentError):
    """Writing the results output file failed."""
    pass


class ThresholdError(PRAgentError):
    """Quality or security score fell below the configured minimum."""

    def __init__(self, metric: str, score: int, threshold: int):
        super().__init__(
            f"{metric.capitalize()} score {score}% is below threshold {threshold}%"
        )
        self.metric = metric
        self.score = score
        self.threshold = threshold
