"""
Task configuration management.

Settings are read from pipeline task inputs (``INPUT_*`` variables as exposed
by the Azure Pipelines agent), falling back to plain environment variables
and a local ``.env`` file.
"""

import os
from typing import List, Optional

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings

from pr_agent.errors import ConfigurationError
from pr_agent.models.analysis import ANALYSIS_TYPES, OUTPUT_FORMATS


def _input(name: str, *fallbacks: str) -> AliasChoices:
    return AliasChoices(f"INPUT_{name.upper()}", *fallbacks)


class TaskSettings(BaseSettings):
    """Task settings loaded from pipeline inputs and environment variables."""

    # Analysis
    analysis_type: str = Field("review", validation_alias=_input("analysisType"))
    question: Optional[str] = Field(None, validation_alias=_input("question"))
    custom_prompt: Optional[str] = Field(None, validation_alias=_input("customPrompt"))

    # Model endpoint
    api_endpoint: Optional[str] = Field(
        None, validation_alias=_input("apiEndpoint", "AZURE_OPENAI_ENDPOINT")
    )
    api_key: Optional[str] = Field(
        None, validation_alias=_input("apiKey", "AZURE_OPENAI_API_KEY")
    )
    deployment_name: str = Field(
        "gpt-4.1", validation_alias=_input("deploymentName", "AZURE_OPENAI_DEPLOYMENT_NAME")
    )
    api_version: str = Field(
        "2024-02-15-preview", validation_alias=_input("apiVersion", "AZURE_OPENAI_API_VERSION")
    )
    timeout_minutes: int = Field(10, validation_alias=_input("timeout"))
    retry_count: int = Field(3, ge=1, validation_alias=_input("retryCount"))

    # Files
    source_directory: str = Field(
        default_factory=os.getcwd, validation_alias=_input("sourceDirectory")
    )
    include_patterns: str = Field("", validation_alias=_input("includePatterns"))
    exclude_patterns: str = Field("", validation_alias=_input("excludePatterns"))

    # Checks and gating
    enable_security_scan: bool = Field(False, validation_alias=_input("enableSecurityScan"))
    enable_compliance_check: bool = Field(False, validation_alias=_input("enableComplianceCheck"))
    quality_threshold: int = Field(80, validation_alias=_input("qualityThreshold"))
    security_threshold: int = Field(90, validation_alias=_input("securityThreshold"))

    # Output
    output_format: str = Field("json", validation_alias=_input("outputFormat"))
    output_file: Optional[str] = Field(None, validation_alias=_input("outputFile"))
    publish_results: bool = Field(False, validation_alias=_input("publishResults"))
    create_work_items: bool = Field(False, validation_alias=_input("createWorkItems"))
    enable_telemetry: bool = Field(False, validation_alias=_input("enableTelemetry"))

    # Azure DevOps
    pr_url: Optional[str] = Field(None, validation_alias=_input("prUrl", "PR_URL"))
    azure_devops_pat: Optional[str] = Field(
        None, validation_alias=AliasChoices("AZURE_DEVOPS_PAT", "SYSTEM_ACCESSTOKEN")
    )

    # Build metadata
    build_id: Optional[str] = Field(None, validation_alias="BUILD_BUILDID")
    build_number: Optional[str] = Field(None, validation_alias="BUILD_BUILDNUMBER")
    repository_name: Optional[str] = Field(None, validation_alias="BUILD_REPOSITORY_NAME")
    source_branch_name: Optional[str] = Field(None, validation_alias="BUILD_SOURCEBRANCHNAME")
    source_version: Optional[str] = Field(None, validation_alias="BUILD_SOURCEVERSION")

    # Application
    log_level: str = Field("INFO", validation_alias=AliasChoices("INPUT_LOGLEVEL", "LOG_LEVEL"))
    log_format: str = Field("json", validation_alias=AliasChoices("INPUT_LOGFORMAT", "LOG_FORMAT"))

    class Config:
        env_file = ".env"
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"

    @property
    def include_pattern_list(self) -> List[str]:
        return _split_lines(self.include_patterns)

    @property
    def exclude_pattern_list(self) -> List[str]:
        return _split_lines(self.exclude_patterns)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_minutes * 60.0

    def validate_required(self) -> None:
        """
        Check the settings a run cannot start without.

        Raises:
            ConfigurationError: If endpoint, key or source directory is
                missing, or an option holds an unknown value
        """
        if not self.api_endpoint:
            raise ConfigurationError(
                "Azure OpenAI endpoint is required. Set it via apiEndpoint input "
                "or AZURE_OPENAI_ENDPOINT environment variable."
            )
        if not self.api_key:
            raise ConfigurationError(
                "Azure OpenAI API key is required. Set it via apiKey input "
                "or AZURE_OPENAI_API_KEY environment variable."
            )
        if self.analysis_type not in ANALYSIS_TYPES:
            raise ConfigurationError(
                f"Unknown analysis type '{self.analysis_type}'. "
                f"Expected one of: {', '.join(ANALYSIS_TYPES)}"
            )
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigurationError(
                f"Unknown output format '{self.output_format}'. "
                f"Expected one of: {', '.join(OUTPUT_FORMATS)}"
            )
        if not os.path.isdir(self.source_directory):
            raise ConfigurationError(f"Source directory does not exist: {self.source_directory}")


def _split_lines(value: str) -> List[str]:
    return [line.strip() for line in (value or "").splitlines() if line.strip()]


def load_settings(**overrides) -> TaskSettings:
    """
    Build TaskSettings from the environment plus explicit overrides.

    Raises:
        ConfigurationError: If an input cannot be parsed (e.g. a
            non-numeric threshold)
    """
    try:
        return TaskSettings(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigurationError(f"Invalid task configuration: {problems}") from e
