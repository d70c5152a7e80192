"""Tests for LLM client."""

import json
from unittest.mock import patch

import httpx
import pytest

from deep_mirror.core.exceptions import (
    AIAPIError,
    AINetworkError,
    AITimeoutError,
    ConfigurationError,
    MalformedResponseError,
)
from deep_mirror.llm.client import AnthropicClient, LLMResponse, get_llm_client

MODEL = "claude-sonnet-4-20250514"


def make_client(handler) -> AnthropicClient:
    return AnthropicClient(
        model=MODEL,
        temperature=0.7,
        max_tokens=1024,
        timeout=30.0,
        api_key="test-key",
        transport=httpx.MockTransport(handler),
    )


def ok_body(text="Hello, world!"):
    return {
        "content": [{"type": "text", "text": text}],
        "model": MODEL,
        "usage": {"input_tokens": 10, "output_tokens": 5},
    }


class TestAnthropicClient:
    """Tests for AnthropicClient."""

    def test_init_with_api_key(self):
        """Client initializes with explicit API key."""
        client = AnthropicClient(model=MODEL, api_key="test-key")
        assert client.api_key == "test-key"

    def test_init_without_api_key_raises(self):
        """Client raises if no API key available."""
        with patch("deep_mirror.llm.client.settings") as mock_settings:
            mock_settings.anthropic_api_key = None
            with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
                AnthropicClient(model=MODEL)

    def test_init_uses_settings_defaults(self):
        with patch("deep_mirror.llm.client.settings") as mock_settings:
            mock_settings.anthropic_api_key = "settings-key"

            client = AnthropicClient(model=MODEL, timeout=30.0)

            assert client.api_key == "settings-key"
            assert client.model == MODEL
            assert client.timeout == 30.0

    async def test_complete_success(self):
        """complete() returns LLMResponse on success."""
        client = make_client(lambda request: httpx.Response(200, json=ok_body()))

        response = await client.complete("Say hello")

        assert isinstance(response, LLMResponse)
        assert response.content == "Hello, world!"
        assert response.usage["input_tokens"] == 10
        assert response.usage["output_tokens"] == 5

    async def test_complete_sends_system_prompt_and_params(self):
        """complete() includes system prompt and sampling overrides in the request."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["payload"] = json.loads(request.content)
            seen["headers"] = request.headers
            return httpx.Response(200, json=ok_body("Response"))

        client = make_client(handler)
        await client.complete("User message", system="You are helpful", temperature=0.2, max_tokens=300)

        payload = seen["payload"]
        assert payload["system"] == "You are helpful"
        assert payload["temperature"] == 0.2
        assert payload["max_tokens"] == 300
        assert payload["messages"] == [{"role": "user", "content": "User message"}]
        assert seen["headers"]["x-api-key"] == "test-key"

    async def test_status_error_maps_to_api_error(self):
        """Non-2xx responses raise AIAPIError with the status code."""
        client = make_client(lambda request: httpx.Response(529, json={"error": "overloaded"}))

        with pytest.raises(AIAPIError) as exc_info:
            await client.complete("hi")

        assert exc_info.value.status_code == 529

    async def test_timeout_maps_to_timeout_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(AITimeoutError):
            await make_client(handler).complete("hi")

    async def test_connect_error_maps_to_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(AINetworkError):
            await make_client(handler).complete("hi")

    async def test_non_json_body_is_malformed(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(MalformedResponseError):
            await client.complete("hi")

    async def test_empty_content_is_malformed(self):
        body = {"content": [], "model": MODEL, "usage": {}}
        client = make_client(lambda request: httpx.Response(200, json=body))

        with pytest.raises(MalformedResponseError):
            await client.complete("hi")

    async def test_no_retry_on_failure(self):
        """A failed call is made exactly once."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        with pytest.raises(AIAPIError):
            await make_client(handler).complete("hi")

        assert len(calls) == 1


class TestGetLLMClient:
    """Tests for get_llm_client factory."""

    def test_returns_anthropic_client(self):
        with patch("deep_mirror.llm.client.settings") as mock_settings:
            mock_settings.anthropic_api_key = "test-key"
            mock_settings.llm_provider = "anthropic"
            mock_settings.llm_model = MODEL
            mock_settings.ai_request_timeout = 45.0

            client = get_llm_client()

            assert isinstance(client, AnthropicClient)
            assert client.timeout == 45.0

    def test_raises_for_unknown_provider(self):
        with patch("deep_mirror.llm.client.settings") as mock_settings:
            mock_settings.llm_provider = "unknown"
            mock_settings.llm_model = MODEL
            mock_settings.ai_request_timeout = 45.0
            mock_settings.anthropic_api_key = "test-key"

            with pytest.raises(ConfigurationError, match="Unknown LLM provider"):
                get_llm_client()


class TestLLMResponse:
    """Tests for LLMResponse dataclass."""

    def test_create_response(self):
        response = LLMResponse(
            content="Hello",
            model=MODEL,
            usage={"input_tokens": 10, "output_tokens": 5},
            latency_ms=150.5,
        )

        assert response.content == "Hello"
        assert response.latency_ms == 150.5

    def test_response_defaults(self):
        """LLMResponse has sensible defaults."""
        response = LLMResponse(content="Hi", model="test")

        assert response.usage == {}
        assert response.latency_ms == 0.0
        assert response.raw_response is None
