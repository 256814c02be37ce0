"""
Classifier client abstraction.

Provides a single-call interface over OpenAI-compatible chat completion
providers:
- OpenAI API (api.openai.com)
- OpenRouter (openrouter.ai/api/v1)
- Any other OpenAI-compatible endpoint

Clients never raise into the pipeline: provider failures come back as
Err(ApiError) with a kind the caller can act on. There is no internal retry;
retry policy belongs to whoever drives the pipeline.
"""

import time
from abc import ABC, abstractmethod
from typing import Optional

import openai
import structlog
from openai import OpenAI

from ..config import Settings, settings
from ..models.results import ApiError, ApiErrorKind, Err, Ok, Result


logger = structlog.get_logger(__name__)

PROVIDER_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "openrouter": "https://openrouter.ai/api/v1",
}

SYSTEM_PROMPT = "You identify shared activity suggestions in chat messages and answer with JSON only."


class ClassifierClient(ABC):
    """
    Abstract base class for classifier clients.

    Concrete implementations send one prompt and return the raw response
    text. `provider` and `model` identify the client in request cache keys.
    """

    def __init__(self, provider: str, model: str):
        self.provider = provider
        self.model = model
        self.logger = logger.bind(classifier_client=self.__class__.__name__, model=model)

    @abstractmethod
    def complete(self, prompt: str) -> Result:
        """
        Send a classification prompt.

        Args:
            prompt: Full prompt text for one batch

        Returns:
            Ok(response_text) or Err(ApiError)
        """


def _retry_after(error: openai.APIStatusError) -> Optional[float]:
    value = error.response.headers.get("retry-after") if error.response is not None else None
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


def map_openai_error(error: Exception) -> ApiError:
    """
    Map an openai SDK exception to an ApiError.

    Examples:
        >>> map_openai_error(rate_limit_error).kind
        <ApiErrorKind.RATE_LIMIT: 'rate_limit'>
    """
    message = str(error)

    if isinstance(error, openai.RateLimitError):
        if getattr(error, "code", None) == "insufficient_quota":
            return ApiError(kind=ApiErrorKind.QUOTA, message=message)
        return ApiError(kind=ApiErrorKind.RATE_LIMIT, message=message, retry_after=_retry_after(error))
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ApiError(kind=ApiErrorKind.AUTH, message=message)
    if isinstance(error, openai.APIConnectionError):
        # APITimeoutError is a subclass
        return ApiError(kind=ApiErrorKind.NETWORK, message=message)
    if isinstance(error, (openai.BadRequestError, openai.NotFoundError, openai.UnprocessableEntityError)):
        return ApiError(kind=ApiErrorKind.INVALID_REQUEST, message=message)
    if isinstance(error, openai.APIStatusError):
        if error.status_code == 402:
            return ApiError(kind=ApiErrorKind.QUOTA, message=message)
        return ApiError(kind=ApiErrorKind.NETWORK, message=message)
    return ApiError(kind=ApiErrorKind.INVALID_RESPONSE, message=message)


class OpenAICompatibleClient(ClassifierClient):
    """
    Chat-completions client for OpenAI-compatible providers.
    """

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: str = PROVIDER_BASE_URLS["openai"],
        provider_name: str = "openai",
        temperature: float = 0.1,
        max_tokens: int = 4096,
        timeout_seconds: float = 120,
        client: Optional[OpenAI] = None,
    ):
        super().__init__(provider=provider_name, model=model)
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens

        # SDK retries disabled; failures surface as typed errors
        self.client = client or OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
        )

    def complete(self, prompt: str) -> Result:
        start_time = time.time()

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as e:
            error = map_openai_error(e)
            self.logger.warning(
                "classifier_call_failed",
                provider=self.provider,
                error_kind=error.kind.value,
                error=str(e),
            )
            return Err(error)

        if not response.choices or not response.choices[0].message.content:
            return Err(ApiError(kind=ApiErrorKind.INVALID_RESPONSE, message="Empty classifier response"))

        usage = response.usage
        self.logger.debug(
            "classifier_call_completed",
            provider=self.provider,
            latency_ms=int((time.time() - start_time) * 1000),
            tokens_total=usage.total_tokens if usage else None,
            finish_reason=response.choices[0].finish_reason,
        )
        return Ok(response.choices[0].message.content)


def create_classifier_client(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    config: Optional[Settings] = None,
    **override_kwargs,
) -> ClassifierClient:
    """
    Factory for the configured classifier client.

    Priority order for configuration:
    1. Explicit parameters passed to this function
    2. Settings

    Args:
        provider: "openai" or "openrouter"
        model: Provider-specific model name
        config: Settings to read defaults from (default: global settings)
        **override_kwargs: api_key, base_url, temperature, max_tokens,
            timeout_seconds

    Returns:
        Configured ClassifierClient

    Raises:
        ValueError: If the provider is unknown or no API key is configured
    """
    config = config or settings
    provider = provider or config.classifier_provider
    model = model or config.classifier_model

    if provider not in PROVIDER_BASE_URLS:
        raise ValueError(
            f"Unknown classifier provider: {provider}. "
            f"Supported: {', '.join(PROVIDER_BASE_URLS)}"
        )

    api_key = override_kwargs.get("api_key", config.classifier_api_key)
    if not api_key:
        raise ValueError(f"{provider} API key required (set CHAT_ACTIVITIES_CLASSIFIER_API_KEY)")

    base_url = (
        override_kwargs.get("base_url") or config.classifier_base_url or PROVIDER_BASE_URLS[provider]
    )

    logger.info("creating_classifier_client", provider=provider, model=model)

    return OpenAICompatibleClient(
        model=model,
        api_key=api_key,
        base_url=base_url,
        provider_name=provider,
        temperature=override_kwargs.get("temperature", config.classifier_temperature),
        max_tokens=override_kwargs.get("max_tokens", config.classifier_max_tokens),
        timeout_seconds=override_kwargs.get("timeout_seconds", config.classifier_timeout_seconds),
    )
