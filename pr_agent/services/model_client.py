"""
Model transport clients.

Two endpoint shapes are supported, selected by the configured URL:
- Azure OpenAI (host contains ``openai.azure.com``): chat completions for a
  deployment, authenticated with an ``api-key`` header
- Generic PR Agent API: ``POST /api/analyze`` with a bearer token and the
  AnalysisRequest as JSON body

Both return a ModelResponse. Any non-2xx status, network failure or timeout
is raised as TransportError so the orchestrator can retry it.
"""

import json
from typing import Any, Optional, Protocol
from urllib.parse import urljoin

import httpx
import openai
from openai import AsyncAzureOpenAI

from pr_agent.analyzers.prompt_builder import PromptBuilder, SYSTEM_PROMPT
from pr_agent.errors import TransportError, TransportTimeoutError
from pr_agent.models import AnalysisRequest, FreeTextResponse, ModelResponse, StructuredResponse
from pr_agent.utils.logging import get_logger
from pr_agent.utils.metrics import RunMetrics, track_api_call

logger = get_logger(__name__)

AZURE_OPENAI_HOST_MARKER = "openai.azure.com"
USER_AGENT = "Azure-DevOps-PR-Agent/1.0.0"
MAX_TOKENS = 4000
TEMPERATURE = 0.1


def is_azure_openai_endpoint(endpoint: str) -> bool:
    return AZURE_OPENAI_HOST_MARKER in (endpoint or "")


def parse_model_content(content: Optional[str]) -> ModelResponse:
    """Wrap model output as Structured when it is a JSON object, else FreeText."""
    content = content or ""
    try:
        data = json.loads(content)
    except ValueError:
        return FreeTextResponse(text=content)
    if isinstance(data, dict):
        return StructuredResponse(payload=data)
    return FreeTextResponse(text=content)


class ModelClient(Protocol):
    """Sends one analysis request to the model endpoint."""

    async def analyze(self, request: AnalysisRequest) -> ModelResponse:
        ...


class AzureOpenAIModelClient:
    """Chat-completions client for an Azure OpenAI deployment."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        deployment: str,
        api_version: str,
        timeout: float = 600.0,
        prompt_builder: Optional[PromptBuilder] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[RunMetrics] = None,
    ):
        """
        Initialize the Azure OpenAI client.

        Args:
            endpoint: Azure OpenAI resource URL
            api_key: Resource key (sent as ``api-key``)
            deployment: Deployment name
            api_version: API version query parameter
            timeout: Per-call timeout in seconds
            prompt_builder: Prompt builder (default instance if omitted)
            http_client: httpx client override
            metrics: Optional run metrics collector
        """
        self.deployment = deployment
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.metrics = metrics
        # Retries are owned by the orchestrator
        self.client = AsyncAzureOpenAI(
            api_key=api_key,
            api_version=api_version,
            azure_endpoint=endpoint,
            timeout=timeout,
            max_retries=0,
            default_headers={"User-Agent": USER_AGENT},
            http_client=http_client,
        )
        logger.info(f"Initialized Azure OpenAI client for deployment {deployment} (api-version {api_version})")

    async def analyze(self, request: AnalysisRequest) -> ModelResponse:
        prompt = self.prompt_builder.build_for_request(request)
        log = logger.with_context(kind=request.kind.value)

        try:
            async with track_api_call(self.metrics, "model", log, f"deployments/{self.deployment}/chat/completions", "POST"):
                response = await self.client.chat.completions.create(
                    model=self.deployment,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    max_tokens=MAX_TOKENS,
                    temperature=TEMPERATURE,
                )
        except openai.APITimeoutError as e:
            raise TransportTimeoutError(f"API request timed out: {e}") from e
        except openai.APIStatusError as e:
            raise TransportError(
                f"API request failed with status {e.status_code}: {e.message}",
                status_code=e.status_code,
            ) from e
        except openai.APIError as e:
            raise TransportError(f"API request failed: {e}") from e

        if not response.choices:
            return FreeTextResponse(text="")
        return parse_model_content(response.choices[0].message.content)


class GenericModelClient:
    """Client for a PR Agent compatible ``/api/analyze`` endpoint."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        timeout: float = 600.0,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[RunMetrics] = None,
    ):
        self.url = urljoin(endpoint, "/api/analyze")
        self.api_key = api_key
        self.timeout = timeout
        self.metrics = metrics
        self._http_client = http_client

    async def analyze(self, request: AnalysisRequest) -> ModelResponse:
        body = request.model_dump(mode="json", by_alias=True)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "User-Agent": USER_AGENT,
        }
        log = logger.with_context(kind=request.kind.value)

        try:
            async with track_api_call(self.metrics, "model", log, self.url, "POST"):
                if self._http_client is not None:
                    response = await self._http_client.post(self.url, json=body, headers=headers, timeout=self.timeout)
                else:
                    async with httpx.AsyncClient(timeout=self.timeout) as client:
                        response = await client.post(self.url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise TransportTimeoutError(f"API request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise TransportError(f"API request failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"API request failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        return self._parse_body(response)

    @staticmethod
    def _parse_body(response: httpx.Response) -> ModelResponse:
        try:
            data: Any = response.json()
        except ValueError:
            return FreeTextResponse(text=response.text)
        if isinstance(data, dict):
            return StructuredResponse(payload=data)
        if isinstance(data, str):
            return FreeTextResponse(text=data)
        return FreeTextResponse(text=response.text)


def create_model_client(
    settings,
    prompt_builder: Optional[PromptBuilder] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    metrics: Optional[RunMetrics] = None,
) -> ModelClient:
    """
    Build the transport matching the configured endpoint.

    Args:
        settings: TaskSettings
        prompt_builder: Prompt builder for chat-completions requests
        http_client: httpx client override
        metrics: Optional run metrics collector

    Returns:
        Model client
    """
    if is_azure_openai_endpoint(settings.api_endpoint):
        return AzureOpenAIModelClient(
            endpoint=settings.api_endpoint,
            api_key=settings.api_key,
            deployment=settings.deployment_name,
            api_version=settings.api_version,
            timeout=settings.timeout_seconds,
            prompt_builder=prompt_builder,
            http_client=http_client,
            metrics=metrics,
        )

    logger.info(f"Using PR Agent API format at {settings.api_endpoint}")
    return GenericModelClient(
        endpoint=settings.api_endpoint,
        api_key=settings.api_key,
        timeout=settings.timeout_seconds,
        http_client=http_client,
        metrics=metrics,
    )
