"""Pipeline services package."""

from pr_agent.services.comment_publisher import CommentPublisher
from pr_agent.services.comment_reconciler import CommentReconciler
from pr_agent.services.devops_client import AzureDevOpsClient
from pr_agent.services.file_collector import FileCollector
from pr_agent.services.model_client import (
    AzureOpenAIModelClient,
    GenericModelClient,
    ModelClient,
    create_model_client,
)
from pr_agent.services.orchestrator import AnalysisOrchestrator
from pr_agent.services.pr_context import detect_pr_context, parse_pr_url
from pr_agent.services.result_publisher import ResultPublisher
from pr_agent.services.task import PipelineTask

__all__ = [
    'AnalysisOrchestrator',
    'AzureDevOpsClient',
    'AzureOpenAIModelClient',
    'CommentPublisher',
    'CommentReconciler',
    'FileCollector',
    'GenericModelClient',
    'ModelClient',
    'PipelineTask',
    'ResultPublisher',
    'create_model_client',
    'detect_pr_context',
    'parse_pr_url',
]
