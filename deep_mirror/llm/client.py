"""
LLM client abstraction.

Provides async interface for LLM calls with:
- Structured logging of requests/responses
- Timeout handling
- Usage tracking (tokens)
- Transport failures mapped onto the AIServiceError hierarchy

Calls are never retried here. A failed call surfaces immediately so the
session can offer an explicit retry to the user.

Supported providers:
- anthropic: Claude models via the Messages API
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import time

import httpx
import structlog

from deep_mirror.core.config import settings
from deep_mirror.core.exceptions import (
    AIAPIError,
    AINetworkError,
    AITimeoutError,
    ConfigurationError,
    MalformedResponseError,
)

log = structlog.get_logger(__name__)

ANTHROPIC_API_VERSION = "2023-06-01"

SUPPORTED_PROVIDERS = ("anthropic",)


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
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            prompt: User message/prompt
            system: Optional system prompt
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens in response
            timeout: Optional timeout override in seconds (uses default if None)

        Returns:
            LLMResponse with content and metadata
        """
        pass


# =============================================================================
# Anthropic Client
# =============================================================================


class AnthropicClient(LLMClient):
    """Anthropic Claude API client.

    Uses httpx for async HTTP calls to the Messages API.
    """

    def __init__(
        self,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        timeout: float = 60.0,
        api_key: Optional[str] = None,
        base_url: str = "https://api.anthropic.com/v1",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Anthropic client.

        Args:
            model: Model ID (e.g., claude-sonnet-4-20250514)
            temperature: Default sampling temperature
            max_tokens: Default maximum tokens in response
            timeout: Request timeout in seconds
            api_key: API key (defaults to settings.anthropic_api_key)
            base_url: Messages API base URL
            transport: Optional httpx transport (tests use httpx.MockTransport)

        Raises:
            ConfigurationError: If API key is not configured
        """
        self.api_key = api_key or settings.anthropic_api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.base_url = base_url
        self._transport = transport

        if not self.api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY not configured. Set it in .env.")

        log.info(
            "anthropic_client_initialized",
            model=self.model,
            timeout=self.timeout,
        )

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> LLMResponse:
        """
        Call the Anthropic Messages API once.

        Args:
            prompt: User message
            system: Optional system prompt
            temperature: Sampling temperature (defaults to init value)
            max_tokens: Max tokens (defaults to init value)
            timeout: Optional timeout override in seconds (uses default if None)

        Returns:
            LLMResponse with content and usage stats

        Raises:
            AITimeoutError: The HTTP call timed out
            AINetworkError: The service could not be reached
            AIAPIError: The service answered with a non-success status
            MalformedResponseError: The body is not a Messages API payload
        """
        if max_tokens is None:
            max_tokens = self.max_tokens
        if temperature is None:
            temperature = self.temperature
        if timeout is None:
            timeout = self.timeout

        headers = {
            "x-api-key": self.api_key,
            "content-type": "application/json",
            "anthropic-version": ANTHROPIC_API_VERSION,
        }

        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }

        if system:
            payload["system"] = system

        start = time.perf_counter()

        log.debug(
            "llm_call_start",
            provider="anthropic",
            model=self.model,
            prompt_length=len(prompt),
            system_length=len(system) if system else 0,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/messages",
                    headers=headers,
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()

        except httpx.TimeoutException as e:
            log.warning("llm_timeout", provider="anthropic", timeout_seconds=timeout)
            raise AITimeoutError(f"AI request timed out after {timeout}s") from e

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            log.error("llm_http_error", provider="anthropic", status_code=status_code)
            raise AIAPIError(
                f"AI service returned status {status_code}", status_code=status_code
            ) from e

        except httpx.TransportError as e:
            log.warning("llm_network_error", provider="anthropic", error=str(e))
            raise AINetworkError(f"Network error while contacting AI service: {e}") from e

        except ValueError as e:
            # response.json() on a non-JSON body
            raise MalformedResponseError("AI service returned a non-JSON body") from e

        latency_ms = (time.perf_counter() - start) * 1000

        content = ""
        blocks = data.get("content") if isinstance(data, dict) else None
        if blocks and isinstance(blocks[0], dict) and blocks[0].get("type", "text") == "text":
            content = blocks[0].get("text", "")

        if not content:
            log.warning("llm_empty_content", provider="anthropic", model=self.model)
            raise MalformedResponseError("AI service returned no text content")

        usage = {
            "input_tokens": data.get("usage", {}).get("input_tokens", 0),
            "output_tokens": data.get("usage", {}).get("output_tokens", 0),
        }

        log.info(
            "llm_call_complete",
            provider="anthropic",
            model=self.model,
            latency_ms=round(latency_ms, 2),
            input_tokens=usage["input_tokens"],
            output_tokens=usage["output_tokens"],
        )

        return LLMResponse(
            content=content,
            model=data.get("model", self.model),
            usage=usage,
            latency_ms=latency_ms,
            raw_response=data,
        )


# =============================================================================
# Client Factory
# =============================================================================


def get_llm_client(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    timeout: Optional[float] = None,
) -> LLMClient:
    """
    Factory for the LLM client used by all AI requests.

    Args:
        provider: Provider name (defaults to settings.llm_provider)
        model: Model ID (defaults to settings.llm_model)
        timeout: HTTP timeout in seconds (defaults to settings.ai_request_timeout)

    Returns:
        LLMClient instance

    Raises:
        ConfigurationError: If the provider is unknown or its API key is missing
    """
    provider = provider or settings.llm_provider
    model = model or settings.llm_model
    timeout = timeout or settings.ai_request_timeout

    if provider == "anthropic":
        return AnthropicClient(model=model, timeout=timeout)

    raise ConfigurationError(
        f"Unknown LLM provider '{provider}'. "
        f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
    )
