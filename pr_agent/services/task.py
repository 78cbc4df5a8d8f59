"""
Pipeline task runner.

One run of the pipeline step:
1. Validate settings and resolve the target pull request
2. Collect files (the PR's changed files when available, otherwise all)
3. Run the requested analysis (a single kind or the comprehensive set)
4. Report the result (console, output file, threshold gating)
5. Publish comments, inline annotations, description and labels to the PR
"""

import os
from typing import Callable, List, Mapping, Optional

import click

from pr_agent.config import TaskSettings
from pr_agent.errors import ConfigurationError, OutputError, ThresholdError, TransportError
from pr_agent.models import AnalysisOptions, AnalysisResult, FileRecord, PRContext, RequestMetadata
from pr_agent.services.comment_publisher import CommentPublisher
from pr_agent.services.devops_client import AzureDevOpsClient
from pr_agent.services.file_collector import FileCollector
from pr_agent.services.model_client import ModelClient, create_model_client
from pr_agent.services.orchestrator import AnalysisOrchestrator
from pr_agent.services.pr_context import detect_pr_context
from pr_agent.services.result_publisher import ResultPublisher
from pr_agent.utils.logging import get_logger, log_error_with_context, setup_logging
from pr_agent.utils.metrics import RunMetrics

logger = get_logger(__name__)

EXIT_SUCCEEDED = 0
EXIT_FAILED = 1

DevOpsClientFactory = Callable[[PRContext, str, RunMetrics], AzureDevOpsClient]


def _default_devops_client(pr_context: PRContext, token: str, metrics: RunMetrics) -> AzureDevOpsClient:
    return AzureDevOpsClient(pr_context, token, metrics=metrics)


def task_complete_command(result: str, message: str) -> str:
    """Azure Pipelines logging command that sets the step result."""
    return f"##vso[task.complete result={result};]{message}"


class PipelineTask:
    """Runs the PR Agent for one pipeline step."""

    def __init__(
        self,
        settings: TaskSettings,
        model_client: Optional[ModelClient] = None,
        devops_client_factory: DevOpsClientFactory = _default_devops_client,
        environ: Optional[Mapping[str, str]] = None,
        echo: Callable[[str], None] = click.echo,
        comment_delay: Optional[float] = None,
        inline_delay: Optional[float] = None,
        retry_base_delay: Optional[float] = None,
    ):
        """
        Initialize the task.

        Args:
            settings: Task settings
            model_client: Model transport override (built from settings if omitted)
            devops_client_factory: Builds the Azure DevOps client for a PR
            environ: Environment used for PR detection (defaults to os.environ)
            echo: Console writer for summaries and logging commands
            comment_delay: Override for the delay between bot comments
            inline_delay: Override for the delay between inline threads
            retry_base_delay: Override for the first retry backoff delay
        """
        self.settings = settings
        self.model_client = model_client
        self.devops_client_factory = devops_client_factory
        self.environ = os.environ if environ is None else environ
        self.echo = echo
        self.comment_delay = comment_delay
        self.inline_delay = inline_delay
        self.retry_base_delay = retry_base_delay

        self.failure_message: Optional[str] = None

    async def run(self) -> int:
        """
        Execute the task.

        Returns:
            Process exit code (0 succeeded, 1 failed)
        """
        settings = self.settings
        setup_logging(settings.log_level, settings.log_format)
        logger.info(f"Starting PR Agent analysis: {settings.analysis_type}")

        try:
            settings.validate_required()
        except ConfigurationError as e:
            return self._fail(str(e), e)

        pr_context = detect_pr_context(settings.pr_url, self.environ)
        if pr_context.is_pr:
            logger.info(
                f"PR build detected: #{pr_context.pr_number} - {pr_context.title}",
                extra={"pr_id": str(pr_context.pr_number)},
            )

        metrics = RunMetrics(settings.analysis_type, str(pr_context.pr_number) if pr_context.is_pr else None)
        metrics.start()

        devops_client = self._build_devops_client(pr_context, metrics)

        files = await self._collect_files(devops_client)
        if not files:
            self.echo("⚠️ No files found for analysis")
            metrics.complete("succeeded")
            return EXIT_SUCCEEDED
        metrics.record_files_analyzed(len(files))

        try:
            result = await self._analyze(files, pr_context, metrics)
        except TransportError as e:
            metrics.complete("failed", str(e))
            self._emit_telemetry(metrics)
            return self._fail(f"Analysis failed after {settings.retry_count} attempts: {e}", e)

        publisher = ResultPublisher(
            output_format=settings.output_format,
            output_file=settings.output_file,
            publish_results=settings.publish_results,
            quality_threshold=settings.quality_threshold,
            security_threshold=settings.security_threshold,
            echo=self.echo,
        )
        threshold_failure: Optional[ThresholdError] = None
        try:
            publisher.process(result)
        except ThresholdError as e:
            threshold_failure = e
        except OutputError as e:
            metrics.complete("failed", str(e))
            self._emit_telemetry(metrics)
            return self._fail(str(e), e)

        if settings.create_work_items:
            logger.info("Work item creation is not supported; createWorkItems is ignored")

        if devops_client is not None:
            await self._comment_publisher(devops_client, metrics).publish(pr_context, result)

        if threshold_failure is not None:
            metrics.complete("failed", str(threshold_failure))
            self._emit_telemetry(metrics)
            return self._fail(str(threshold_failure))

        metrics.complete("succeeded")
        self._emit_telemetry(metrics)
        self.echo("🎉 PR Agent analysis completed successfully")
        return EXIT_SUCCEEDED

    def _build_devops_client(self, pr_context: PRContext, metrics: RunMetrics) -> Optional[AzureDevOpsClient]:
        if not pr_context.is_pr:
            return None
        if not pr_context.can_publish:
            logger.warning("PR details incomplete - PR publication disabled")
            return None
        token = self.settings.azure_devops_pat
        if not token:
            logger.warning("No Azure DevOps access token (AZURE_DEVOPS_PAT or System.AccessToken) - PR publication disabled")
            return None
        return self.devops_client_factory(pr_context, token, metrics)

    async def _collect_files(self, devops_client: Optional[AzureDevOpsClient]) -> List[FileRecord]:
        settings = self.settings
        collector = FileCollector(
            settings.source_directory,
            include_patterns=settings.include_pattern_list,
            exclude_patterns=settings.exclude_pattern_list,
        )

        if devops_client is not None:
            changed_files = await devops_client.get_changed_files()
            if changed_files:
                logger.info(f"Found {len(changed_files)} changed files in PR")
                return collector.collect_specific_files(changed_files)
            logger.info("No changed files detected, analyzing all files")

        return collector.collect_all_files()

    async def _analyze(self, files: List[FileRecord], pr_context: PRContext, metrics: RunMetrics) -> AnalysisResult:
        settings = self.settings
        model_client = self.model_client or create_model_client(settings, metrics=metrics)

        orchestrator_kwargs = {}
        if self.retry_base_delay is not None:
            orchestrator_kwargs["base_delay"] = self.retry_base_delay
        orchestrator = AnalysisOrchestrator(
            model_client,
            retry_count=settings.retry_count,
            metrics=metrics,
            **orchestrator_kwargs,
        )

        options = AnalysisOptions(
            question=settings.question,
            output_format=settings.output_format,
            custom_prompt=settings.custom_prompt,
            enable_security_scan=settings.enable_security_scan,
            enable_compliance_check=settings.enable_compliance_check,
        )
        metadata = RequestMetadata(
            build_id=settings.build_id,
            build_number=settings.build_number,
            branch=settings.source_branch_name,
            commit=settings.source_version,
            repository=settings.repository_name,
        )

        result = await orchestrator.run(
            settings.analysis_type,
            files,
            options=options,
            metadata=metadata,
            title=pr_context.title if pr_context.is_pr else None,
        )
        self.echo("✅ Analysis completed successfully")
        return result

    def _comment_publisher(self, devops_client: AzureDevOpsClient, metrics: RunMetrics) -> CommentPublisher:
        kwargs = {}
        if self.comment_delay is not None:
            kwargs["comment_delay"] = self.comment_delay
        if self.inline_delay is not None:
            kwargs["inline_delay"] = self.inline_delay
        return CommentPublisher(devops_client, metrics=metrics, **kwargs)

    def _emit_telemetry(self, metrics: RunMetrics) -> None:
        if self.settings.enable_telemetry:
            metrics.emit()

    def _fail(self, message: str, error: Optional[Exception] = None) -> int:
        self.failure_message = message
        if error is not None:
            log_error_with_context(logger, f"Task failed: {message}", error, phase="task")
        else:
            logger.error(f"Task failed: {message}", extra={"phase": "task"})
        self.echo(task_complete_command("Failed", message))
        return EXIT_FAILED
