"""Tests for LLM client."""

import json
from typing import List

import httpx
import pytest

from story_coach.core.exceptions import (
    ConfigurationError,
    LLMError,
    LLMRateLimitError,
    LLMResponseParseError,
    LLMTimeoutError,
)
from story_coach.llm import client as client_module
from story_coach.llm.client import (
    AnthropicClient,
    LLMResponse,
    OpenAICompatibleClient,
    get_llm_client,
    get_optional_llm_client,
)

ANTHROPIC_REPLY = {
    "content": [{"type": "text", "text": "Hello, world!"}],
    "model": "claude-test",
    "usage": {"input_tokens": 10, "output_tokens": 5},
}


def scripted_transport(*responses) -> httpx.MockTransport:
    """MockTransport replying with ``responses`` in order.

    Each item is a status code (empty body), a dict (200 JSON), an
    httpx.Response, or an exception class raised for the request.
    """
    queue = list(responses)
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        item = queue.pop(0)
        if isinstance(item, type) and issubclass(item, Exception):
            raise item("scripted failure", request=request)
        if isinstance(item, int):
            return httpx.Response(item)
        if isinstance(item, dict):
            return httpx.Response(200, json=item)
        return item

    transport = httpx.MockTransport(handler)
    transport.seen = seen
    return transport


def anthropic(transport, **kwargs) -> AnthropicClient:
    options = dict(
        model="claude-test",
        temperature=0.2,
        max_tokens=256,
        timeout=5.0,
        client_type="generation",
        api_key="test-key",
        max_retries=2,
        base_delay=0.0,
        transport=transport,
    )
    options.update(kwargs)
    return AnthropicClient(**options)


class TestAnthropicClient:
    """Tests for AnthropicClient."""

    @pytest.mark.asyncio
    async def test_complete_success(self):
        """complete() returns LLMResponse on success."""
        transport = scripted_transport(ANTHROPIC_REPLY)

        response = await anthropic(transport).complete("Say hello")

        assert isinstance(response, LLMResponse)
        assert response.content == "Hello, world!"
        assert response.usage == {"input_tokens": 10, "output_tokens": 5}
        assert response.latency_ms >= 0

    @pytest.mark.asyncio
    async def test_system_prompt_in_payload(self):
        """complete() sends the system prompt and API headers."""
        transport = scripted_transport(ANTHROPIC_REPLY)

        await anthropic(transport).complete("User message", system="You are a coach")

        request = transport.seen[0]
        payload = json.loads(request.content)
        assert payload["system"] == "You are a coach"
        assert payload["messages"] == [{"role": "user", "content": "User message"}]
        assert request.headers["x-api-key"] == "test-key"
        assert str(request.url) == "https://api.anthropic.com/v1/messages"

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        """5xx replies are retried until one succeeds."""
        transport = scripted_transport(503, 500, ANTHROPIC_REPLY)

        response = await anthropic(transport).complete("hi")

        assert response.content == "Hello, world!"
        assert len(transport.seen) == 3

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self):
        transport = scripted_transport(429, 429)

        with pytest.raises(LLMRateLimitError):
            await anthropic(transport, max_retries=1).complete("hi")
        assert len(transport.seen) == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        transport = scripted_transport(400)

        with pytest.raises(LLMError, match="HTTP 400"):
            await anthropic(transport).complete("hi")
        assert len(transport.seen) == 1

    @pytest.mark.asyncio
    async def test_timeouts_exhausted(self):
        transport = scripted_transport(httpx.ReadTimeout, httpx.ReadTimeout)

        with pytest.raises(LLMTimeoutError, match="2 attempts"):
            await anthropic(transport, max_retries=1).complete("hi")

    @pytest.mark.asyncio
    async def test_deadline_stops_backoff(self):
        """A backoff longer than the remaining deadline is not slept."""
        transport = scripted_transport(503, ANTHROPIC_REPLY)

        with pytest.raises(LLMTimeoutError, match="no room to retry"):
            await anthropic(transport, base_delay=30.0).complete("hi", deadline=1.0)
        assert len(transport.seen) == 1

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        transport = scripted_transport(httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(LLMResponseParseError, match="non-JSON"):
            await anthropic(transport).complete("hi")

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        transport = scripted_transport(httpx.ConnectError)

        with pytest.raises(LLMError, match="request failed"):
            await anthropic(transport).complete("hi")

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(client_module.settings, "anthropic_api_key", None)

        with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
            anthropic(None, api_key=None)


class TestOpenAICompatibleClient:
    @pytest.mark.asyncio
    async def test_chat_completion_format(self):
        transport = scripted_transport(
            {
                "choices": [{"message": {"content": "{\"ok\": true}"}}],
                "model": "deepseek-chat",
                "usage": {"prompt_tokens": 7, "completion_tokens": 3},
            }
        )
        client = OpenAICompatibleClient(
            model="deepseek-chat",
            temperature=0.5,
            max_tokens=100,
            timeout=5.0,
            client_type="extraction",
            base_url="https://api.deepseek.com",
            provider_name="deepseek",
            api_key="ds-key",
            transport=transport,
        )

        response = await client.complete("hi", system="sys")

        assert response.content == '{"ok": true}'
        assert response.usage == {"input_tokens": 7, "output_tokens": 3}
        payload = json.loads(transport.seen[0].content)
        assert payload["messages"][0] == {"role": "system", "content": "sys"}
        assert transport.seen[0].headers["authorization"] == "Bearer ds-key"


class TestGetLLMClient:
    """Tests for get_llm_client factory."""

    def test_default_provider(self, monkeypatch):
        monkeypatch.setattr(client_module.settings, "anthropic_api_key", "test-key")
        monkeypatch.setattr(client_module.settings, "llm_generation_provider", None)

        client = get_llm_client("generation")

        assert isinstance(client, AnthropicClient)
        assert client.temperature == 0.7

    def test_provider_override(self, monkeypatch):
        monkeypatch.setattr(client_module.settings, "llm_classification_provider", "deepseek")
        monkeypatch.setattr(client_module.settings, "deepseek_api_key", "ds-key")

        client = get_llm_client("classification")

        assert isinstance(client, OpenAICompatibleClient)
        assert client.model == "deepseek-chat"

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setattr(client_module.settings, "llm_generation_provider", "unknown")

        with pytest.raises(ConfigurationError, match="Unknown LLM provider"):
            get_llm_client("generation")

    def test_optional_client_disabled(self, monkeypatch):
        monkeypatch.setattr(client_module.settings, "llm_enabled", False)
        assert get_optional_llm_client("generation") is None

    def test_optional_client_misconfigured(self, monkeypatch):
        monkeypatch.setattr(client_module.settings, "llm_enabled", True)
        monkeypatch.setattr(client_module.settings, "llm_extraction_provider", "openai")
        monkeypatch.setattr(client_module.settings, "openai_api_key", None)

        assert get_optional_llm_client("extraction") is None


class TestLLMResponse:
    def test_response_defaults(self):
        response = LLMResponse(content="Hi", model="test")

        assert response.usage == {}
        assert response.latency_ms == 0.0
        assert response.raw_response is None
