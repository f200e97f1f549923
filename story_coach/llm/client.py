"""
LLM client abstraction for multiple LLM providers.

Provides async interface for LLM calls with:
- Structured logging of requests/responses
- Per-attempt timeout plus an overall per-call deadline
- Bounded retries with exponential backoff (timeouts, 429, 5xx)
- Usage tracking (tokens)
- Three-client architecture (classification, extraction, generation)

Supported providers:
- anthropic: Claude models
- openai: OpenAI chat completion models
- deepseek: DeepSeek models
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

import httpx
import structlog

from story_coach.core.config import settings
from story_coach.core.exceptions import (
    ConfigurationError,
    LLMError,
    LLMRateLimitError,
    LLMResponseParseError,
    LLMTimeoutError,
)

log = structlog.get_logger(__name__)


LLMClientType = Literal["classification", "extraction", "generation"]


# =============================================================================
# Default configurations for each client type
# =============================================================================

# Override the provider via environment variables (LLM_GENERATION_PROVIDER, etc.)

CLASSIFICATION_DEFAULTS = dict(
    provider="anthropic",
    model="claude-sonnet-4-6",
    temperature=0.2,  # Archetype labels should be stable
    max_tokens=512,
    timeout=20.0,
)

EXTRACTION_DEFAULTS = dict(
    provider="anthropic",
    model="claude-sonnet-4-6",
    temperature=0.5,
    max_tokens=700,
    timeout=30.0,
)

GENERATION_DEFAULTS = dict(
    provider="anthropic",
    model="claude-sonnet-4-6",
    temperature=0.7,
    max_tokens=1500,
    timeout=45.0,
)

DEFAULTS_MAP: Dict[LLMClientType, Dict[str, Any]] = {
    "classification": CLASSIFICATION_DEFAULTS,
    "extraction": EXTRACTION_DEFAULTS,
    "generation": GENERATION_DEFAULTS,
}

PROVIDER_MODELS = {
    "openai": "gpt-4o-mini",
    "deepseek": "deepseek-chat",
}

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


# =============================================================================
# Response and Base Classes
# =============================================================================


@dataclass
class LLMResponse:
    """Standardized LLM response."""

    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    latency_ms: float = 0.0
    raw_response: Optional[Dict[str, Any]] = None


class LLMClient(ABC):
    """Abstract base for LLM providers."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        deadline: Optional[float] = None,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            prompt: User message/prompt
            system: Optional system prompt
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens in response
            timeout: Per-attempt timeout override in seconds
            deadline: Overall budget in seconds for the call, retries included

        Returns:
            LLMResponse with content and metadata
        """
        pass


class HTTPLLMClient(LLMClient):
    """Shared retry/deadline loop for the HTTP providers.

    Subclasses build the request (``_endpoint``, ``_headers``, ``_payload``)
    and read the reply (``_parse``); everything else lives here.
    """

    provider_name = "http"

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        client_type: LLMClientType,
        max_retries: Optional[int] = None,
        deadline: Optional[float] = None,
        base_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.client_type = client_type
        self.max_retries = settings.llm_max_retries if max_retries is None else max_retries
        self.deadline = deadline or settings.llm_call_deadline_seconds
        self.base_delay = base_delay
        # Injected in tests (httpx.MockTransport); None means real network
        self.transport = transport

    @abstractmethod
    def _endpoint(self) -> str: ...

    @abstractmethod
    def _headers(self) -> Dict[str, str]: ...

    @abstractmethod
    def _payload(
        self, prompt: str, system: Optional[str], temperature: float, max_tokens: int
    ) -> Dict[str, Any]: ...

    @abstractmethod
    def _parse(self, data: Dict[str, Any]) -> LLMResponse: ...

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        deadline: Optional[float] = None,
    ) -> LLMResponse:
        """
        Call the provider with automatic retry on timeout, rate limit and 5xx.

        The remaining deadline caps every attempt's timeout and every backoff
        sleep; no attempt starts once the deadline has expired.

        Raises:
            LLMTimeoutError: Retries exhausted on timeout, or deadline expired
            LLMRateLimitError: Retries exhausted on rate limit (429)
            LLMError: Non-retryable HTTP error, retries exhausted on 5xx,
                or a transport failure
        """
        temperature = self.temperature if temperature is None else temperature
        max_tokens = self.max_tokens if max_tokens is None else max_tokens
        timeout = self.timeout if timeout is None else timeout
        budget = self.deadline if deadline is None else deadline
        expires_at = time.monotonic() + budget

        payload = self._payload(prompt, system, temperature, max_tokens)

        def remaining() -> float:
            return expires_at - time.monotonic()

        for attempt in range(self.max_retries + 1):
            if remaining() <= 0:
                raise LLMTimeoutError(
                    f"LLM call deadline of {budget}s expired before attempt {attempt + 1}"
                )
            attempt_timeout = min(timeout, remaining())
            start = time.perf_counter()

            log.debug(
                "llm_call_start",
                provider=self.provider_name,
                client_type=self.client_type,
                model=self.model,
                prompt_length=len(prompt),
                system_length=len(system) if system else 0,
                attempt=attempt + 1,
                timeout_seconds=round(attempt_timeout, 2),
            )

            try:
                async with httpx.AsyncClient(
                    timeout=attempt_timeout, transport=self.transport
                ) as client:
                    response = await client.post(
                        self._endpoint(), headers=self._headers(), json=payload
                    )
                    response.raise_for_status()
                    try:
                        data = response.json()
                    except ValueError as e:
                        raise LLMResponseParseError(
                            f"{self.provider_name} returned a non-JSON body"
                        ) from e

                result = self._parse(data)
                result.latency_ms = (time.perf_counter() - start) * 1000

                log.info(
                    "llm_call_complete",
                    provider=self.provider_name,
                    client_type=self.client_type,
                    model=result.model,
                    latency_ms=round(result.latency_ms, 2),
                    input_tokens=result.usage.get("input_tokens", 0),
                    output_tokens=result.usage.get("output_tokens", 0),
                    attempt=attempt + 1,
                )
                return result

            except httpx.TimeoutException as e:
                log.warning(
                    "llm_timeout",
                    provider=self.provider_name,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    timeout_seconds=round(attempt_timeout, 2),
                )
                if attempt >= self.max_retries:
                    raise LLMTimeoutError(
                        f"LLM call timed out after {attempt + 1} attempts "
                        f"(timeout={timeout}s)"
                    ) from e
                failure: LLMError = LLMTimeoutError("timeout")

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code not in RETRYABLE_STATUS:
                    log.error(
                        "llm_http_error",
                        provider=self.provider_name,
                        status_code=status_code,
                    )
                    raise LLMError(
                        f"{self.provider_name} returned HTTP {status_code}"
                    ) from e

                log.warning(
                    "llm_retryable_status",
                    provider=self.provider_name,
                    status_code=status_code,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                )
                if attempt >= self.max_retries:
                    if status_code == 429:
                        raise LLMRateLimitError(
                            f"Rate limit exceeded after {attempt + 1} attempts"
                        ) from e
                    raise LLMError(
                        f"{self.provider_name} returned HTTP {status_code} "
                        f"after {attempt + 1} attempts"
                    ) from e
                failure = (
                    LLMRateLimitError("rate limited")
                    if status_code == 429
                    else LLMError(f"HTTP {status_code}")
                )

            except httpx.RequestError as e:
                log.error("llm_transport_error", provider=self.provider_name, error=str(e))
                raise LLMError(f"{self.provider_name} request failed: {e}") from e

            delay = self.base_delay * (2**attempt)
            if delay >= remaining():
                raise LLMTimeoutError(
                    f"LLM call deadline of {budget}s leaves no room to retry"
                ) from failure
            log.info(
                "llm_retry_scheduled",
                provider=self.provider_name,
                delay_seconds=delay,
                next_attempt=attempt + 2,
            )
            await asyncio.sleep(delay)

        # Unreachable: loop either returns LLMResponse or raises an exception
        assert False, "unreachable"


# =============================================================================
# Anthropic Client
# =============================================================================


class AnthropicClient(HTTPLLMClient):
    """Anthropic Claude API client (Messages API)."""

    provider_name = "anthropic"

    def __init__(self, *args, api_key: Optional[str] = None, **kwargs):
        """
        Raises:
            ConfigurationError: If API key is not configured
        """
        super().__init__(*args, **kwargs)
        self.api_key = api_key or settings.anthropic_api_key
        self.base_url = "https://api.anthropic.com/v1"

        if not self.api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY not configured. Set it in .env.")

        log.info(
            "anthropic_client_initialized",
            client_type=self.client_type,
            model=self.model,
            timeout=self.timeout,
        )

    def _endpoint(self) -> str:
        return f"{self.base_url}/messages"

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "content-type": "application/json",
            "anthropic-version": "2023-06-01",
        }

    def _payload(self, prompt, system, temperature, max_tokens):
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if system:
            payload["system"] = system
        return payload

    def _parse(self, data: Dict[str, Any]) -> LLMResponse:
        content = ""
        if data.get("content"):
            content = data["content"][0].get("text", "")
        usage = data.get("usage", {})
        return LLMResponse(
            content=content,
            model=data.get("model", self.model),
            usage={
                "input_tokens": usage.get("input_tokens", 0),
                "output_tokens": usage.get("output_tokens", 0),
            },
            raw_response=data,
        )


# =============================================================================
# OpenAI-Compatible Client
# =============================================================================


class OpenAICompatibleClient(HTTPLLMClient):
    """
    Client for providers that follow the OpenAI chat completions format:
    - OpenAI: https://api.openai.com/v1
    - DeepSeek: https://api.deepseek.com
    """

    def __init__(self, *args, base_url: str, provider_name: str, api_key: str, **kwargs):
        super().__init__(*args, **kwargs)
        self.base_url = base_url
        self.provider_name = provider_name
        self.api_key = api_key

        log.info(
            "openai_compatible_client_initialized",
            provider=self.provider_name,
            client_type=self.client_type,
            model=self.model,
            timeout=self.timeout,
        )

    def _endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, prompt, system, temperature, max_tokens):
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    def _parse(self, data: Dict[str, Any]) -> LLMResponse:
        content = ""
        if data.get("choices"):
            content = data["choices"][0].get("message", {}).get("content", "") or ""
        usage = data.get("usage", {})
        return LLMResponse(
            content=content,
            model=data.get("model", self.model),
            usage={
                "input_tokens": usage.get("prompt_tokens", 0),
                "output_tokens": usage.get("completion_tokens", 0),
            },
            raw_response=data,
        )


PROVIDER_ENDPOINTS = {
    "openai": ("https://api.openai.com/v1", "openai_api_key", "OPENAI_API_KEY"),
    "deepseek": ("https://api.deepseek.com", "deepseek_api_key", "DEEPSEEK_API_KEY"),
}


# =============================================================================
# Client Factory Functions
# =============================================================================


def get_llm_client(client_type: LLMClientType) -> LLMClient:
    """
    Factory for LLM client based on client type.

    Uses the defaults for each client type, with optional environment
    variable overrides (LLM_CLASSIFICATION_PROVIDER, etc.).

    Args:
        client_type: "classification", "extraction", or "generation"

    Returns:
        LLMClient instance configured for the specified client type

    Raises:
        ConfigurationError: If unknown provider configured or API key missing
    """
    defaults = DEFAULTS_MAP[client_type]

    provider = getattr(settings, f"llm_{client_type}_provider", None) or defaults["provider"]
    common = dict(
        temperature=defaults["temperature"],
        max_tokens=defaults["max_tokens"],
        timeout=defaults["timeout"],
        client_type=client_type,
    )

    if provider == "anthropic":
        return AnthropicClient(model=defaults["model"], **common)

    if provider in PROVIDER_ENDPOINTS:
        base_url, key_attr, env_name = PROVIDER_ENDPOINTS[provider]
        api_key = getattr(settings, key_attr)
        if not api_key:
            raise ConfigurationError(f"{env_name} not configured. Set it in .env.")
        return OpenAICompatibleClient(
            model=PROVIDER_MODELS[provider],
            base_url=base_url,
            provider_name=provider,
            api_key=api_key,
            **common,
        )

    raise ConfigurationError(
        f"Unknown LLM provider '{provider}' for {client_type}. "
        f"Supported providers: anthropic, openai, deepseek"
    )


def get_optional_llm_client(client_type: LLMClientType) -> Optional[LLMClient]:
    """
    Client for ``client_type`` when LLM backends are enabled and configured.

    Returns None when settings.llm_enabled is false or the provider is
    misconfigured; callers then run on their heuristic/template backends.
    """
    if not settings.llm_enabled:
        return None
    try:
        return get_llm_client(client_type)
    except ConfigurationError as e:
        log.warning("llm_client_unavailable", client_type=client_type, error=e.message)
        return None
