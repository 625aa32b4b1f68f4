"""
Unit tests for the LLM module.
Tests providers (mocked httpx), factory, error classification and the gateway.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from companion.core.errors import GenerationFailure
from companion.llm.anthropic_provider import AnthropicProvider, AnthropicStreamError
from companion.llm.base import LLMMessage, LLMStreamEvent
from companion.llm.factory import create_llm_provider
from companion.llm.gateway import CancellationToken, GenerationGateway, classify_provider_error
from companion.llm.openai_provider import OpenAIProvider

from conftest import FakeProvider


def mock_async_client(post_response=None, stream_lines=None):
    """An ``httpx.AsyncClient`` replacement usable as an async context manager."""
    instance = AsyncMock()
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=False)
    if post_response is not None:
        instance.post.return_value = post_response

    if stream_lines is not None:
        async def aiter_lines():
            for line in stream_lines:
                yield line

        response = MagicMock()
        response.raise_for_status = MagicMock()
        response.aiter_lines = aiter_lines
        stream_cm = MagicMock()
        stream_cm.__aenter__ = AsyncMock(return_value=response)
        stream_cm.__aexit__ = AsyncMock(return_value=False)
        instance.stream = MagicMock(return_value=stream_cm)
    return instance


async def collect(stream):
    return [event async for event in stream]


class TestLLMMessage:
    def test_text_message(self):
        msg = LLMMessage.text("user", "Hello")
        assert msg.role == "user"
        assert msg.content == "Hello"

    def test_stream_event_helpers(self):
        assert LLMStreamEvent.delta("hi").type == "delta"
        done = LLMStreamEvent.done(model="m")
        assert done.type == "done"
        assert done.usage == {}


class TestOpenAIProvider:
    """Tests for the OpenAI-compatible provider."""

    def test_headers(self):
        provider = OpenAIProvider(api_key="sk-test123")
        headers = provider._get_headers()
        assert headers["Authorization"] == "Bearer sk-test123"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_chat_completion_success(self):
        provider = OpenAIProvider(api_key="test-key")
        mock_response = MagicMock()
        mock_response.json.return_value = {
            "choices": [{"message": {"content": "Test response"}}],
            "model": "gpt-4o",
            "usage": {"prompt_tokens": 10, "completion_tokens": 5}
        }
        mock_response.raise_for_status = MagicMock()

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value = mock_async_client(post_response=mock_response)

            result = await provider.chat_completion([LLMMessage.text("user", "Hello")])

            assert result.content == "Test response"
            assert result.model == "gpt-4o"

    @pytest.mark.asyncio
    async def test_stream_parses_sse(self):
        provider = OpenAIProvider(api_key="test-key")
        lines = [
            'data: ' + json.dumps({"model": "gpt-4o", "choices": [{"delta": {"role": "assistant"}}]}),
            '',
            'data: ' + json.dumps({"choices": [{"delta": {"content": "Hel"}}]}),
            'data: ' + json.dumps({"choices": [{"delta": {"content": "lo"}}]}),
            'data: ' + json.dumps({"choices": [], "usage": {"prompt_tokens": 3, "completion_tokens": 2}}),
            'data: [DONE]',
        ]

        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_async_client(stream_lines=lines)
            mock_client.return_value = instance

            events = await collect(provider.chat_completion_stream([LLMMessage.text("user", "Hi")]))

            payload = instance.stream.call_args.kwargs["json"]
            assert payload["stream"] is True
            assert payload["stream_options"] == {"include_usage": True}

        assert [e.content for e in events if e.type == "delta"] == ["Hel", "lo"]
        assert events[-1].type == "done"
        assert events[-1].usage["completion_tokens"] == 2


class TestAnthropicProvider:
    """Tests for the Anthropic Messages API provider."""

    def test_headers(self):
        provider = AnthropicProvider(api_key="ak-test")
        headers = provider._get_headers()
        assert headers["x-api-key"] == "ak-test"
        assert headers["anthropic-version"] == "2023-06-01"

    def test_system_lifted_and_user_first(self):
        provider = AnthropicProvider(api_key="ak-test")
        payload = provider._build_payload(
            [
                LLMMessage.text("system", "Be kind"),
                LLMMessage.text("assistant", "Hi there"),
                LLMMessage.text("user", "Hello"),
            ],
            temperature=None,
            max_tokens=None,
        )
        assert payload["system"] == "Be kind"
        assert [m["role"] for m in payload["messages"]] == ["user", "assistant", "user"]
        assert payload["max_tokens"] == 1024

    @pytest.mark.asyncio
    async def test_chat_completion_joins_text_blocks(self):
        provider = AnthropicProvider(api_key="ak-test")
        mock_response = MagicMock()
        mock_response.json.return_value = {
            "content": [{"type": "text", "text": "Good "}, {"type": "text", "text": "morning"}],
            "model": "claude-test",
            "usage": {"input_tokens": 4, "output_tokens": 2},
            "stop_reason": "end_turn",
        }
        mock_response.raise_for_status = MagicMock()

        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_async_client(post_response=mock_response)
            mock_client.return_value = instance

            result = await provider.chat_completion([LLMMessage.text("user", "Hi")])

            assert instance.post.call_args.args[0] == "https://api.anthropic.com/v1/messages"

        assert result.content == "Good morning"
        assert result.usage["output_tokens"] == 2

    @pytest.mark.asyncio
    async def test_stream_events(self):
        provider = AnthropicProvider(api_key="ak-test")
        lines = [
            "event: message_start",
            'data: ' + json.dumps({"type": "message_start", "message": {"model": "claude-test", "usage": {"input_tokens": 9}}}),
            'data: ' + json.dumps({"type": "content_block_delta", "delta": {"type": "text_delta", "text": "One "}}),
            'data: ' + json.dumps({"type": "ping"}),
            'data: ' + json.dumps({"type": "content_block_delta", "delta": {"type": "text_delta", "text": "two"}}),
            'data: ' + json.dumps({"type": "message_delta", "usage": {"output_tokens": 2}}),
            'data: ' + json.dumps({"type": "message_stop"}),
        ]

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value = mock_async_client(stream_lines=lines)
            events = await collect(provider.chat_completion_stream([LLMMessage.text("user", "Hi")]))

        assert [e.content for e in events if e.type == "delta"] == ["One ", "two"]
        assert events[-1].model == "claude-test"
        assert events[-1].usage == {"input_tokens": 9, "output_tokens": 2}

    @pytest.mark.asyncio
    async def test_stream_error_event_raises(self):
        provider = AnthropicProvider(api_key="ak-test")
        lines = [
            'data: ' + json.dumps({"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Par"}}),
            'data: ' + json.dumps({"type": "error", "error": {"type": "overloaded_error", "message": "busy"}}),
        ]

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value = mock_async_client(stream_lines=lines)
            with pytest.raises(AnthropicStreamError) as exc_info:
                await collect(provider.chat_completion_stream([LLMMessage.text("user", "Hi")]))

        assert exc_info.value.error_type == "overloaded_error"


class TestFactory:
    """Tests for LLM provider factory."""

    def test_create_anthropic_provider(self):
        provider = create_llm_provider("anthropic", api_key="key", model="claude-x")
        assert isinstance(provider, AnthropicProvider)
        assert provider.model == "claude-x"

    def test_create_openai_provider_with_kwargs(self):
        provider = create_llm_provider("openai", api_key="key", base_url="http://localhost:8080/v1", timeout=5)
        assert isinstance(provider, OpenAIProvider)
        assert provider.base_url == "http://localhost:8080/v1"
        assert provider.timeout == 5

    def test_no_api_key_returns_none(self):
        assert create_llm_provider("anthropic", api_key="") is None

    def test_unsupported_provider_raises(self):
        with pytest.raises(ValueError, match="Unsupported"):
            create_llm_provider("volcengine", api_key="key")


def status_error(code):
    request = httpx.Request("POST", "https://llm.example.com")
    return httpx.HTTPStatusError("boom", request=request, response=httpx.Response(code, request=request))


class TestClassifyProviderError:
    @pytest.mark.parametrize("exc, kind", [
        (httpx.ReadTimeout("slow"), "timeout"),
        (status_error(429), "rate_limited"),
        (status_error(401), "unauthorized"),
        (status_error(403), "unauthorized"),
        (status_error(503), "unavailable"),
        (status_error(400), "provider_error"),
        (httpx.ConnectError("refused"), "network"),
        (AnthropicStreamError("overloaded_error", "busy"), "rate_limited"),
        (AnthropicStreamError("api_error", "oops"), "provider_error"),
        (RuntimeError("weird"), "provider_error"),
    ])
    def test_kinds(self, exc, kind):
        failure = classify_provider_error(exc)
        assert isinstance(failure, GenerationFailure)
        assert failure.kind == kind
        assert failure.code == "generation_failed"


class TestGenerationGateway:
    """complete / stream_reply semantics."""

    @pytest.mark.asyncio
    async def test_complete_prepends_system(self):
        provider = FakeProvider(greeting="Hello!")
        gateway = GenerationGateway(provider)

        text = await gateway.complete("Be warm", [LLMMessage.text("user", "greet")])

        assert text == "Hello!"
        assert provider.complete_calls[0][0].role == "system"
        assert provider.complete_calls[0][0].content == "Be warm"

    @pytest.mark.asyncio
    async def test_unconfigured_provider_unavailable(self):
        gateway = GenerationGateway(None)
        with pytest.raises(GenerationFailure) as exc_info:
            await gateway.complete("sys", [])
        assert exc_info.value.kind == "unavailable"
        assert not gateway.available

    @pytest.mark.asyncio
    async def test_stream_forwards_in_order(self):
        gateway = GenerationGateway(FakeProvider(fragments=["a", "b", "c"]))
        forwarded = []

        async def on_fragment(fragment):
            forwarded.append(fragment)

        result = await gateway.stream_reply("sys", [LLMMessage.text("user", "hi")], on_fragment)

        assert forwarded == ["a", "b", "c"]
        assert result.text == "abc"
        assert result.fragments == 3
        assert result.usage == {"output_tokens": 3}
        assert not result.cancelled

    @pytest.mark.asyncio
    async def test_cancel_stops_forwarding_but_drains(self):
        provider = FakeProvider(fragments=["a", "b", "c", "d"])
        gateway = GenerationGateway(provider)
        token = CancellationToken()
        forwarded = []

        async def on_fragment(fragment):
            forwarded.append(fragment)
            token.cancel("client gone")

        result = await gateway.stream_reply("sys", [], on_fragment, token)

        assert forwarded == ["a"]
        assert result.cancelled
        assert result.text == "abcd"
        assert provider.finished_streams == 1
        assert token.reason == "client gone"

    @pytest.mark.asyncio
    async def test_failure_is_classified_not_retried(self):
        provider = FakeProvider(fragments=["a", "b"], fail_after=1, error=status_error(429))
        gateway = GenerationGateway(provider)
        forwarded = []

        async def on_fragment(fragment):
            forwarded.append(fragment)

        with pytest.raises(GenerationFailure) as exc_info:
            await gateway.stream_reply("sys", [], on_fragment)

        assert exc_info.value.kind == "rate_limited"
        assert forwarded == ["a"]
        assert len(provider.stream_calls) == 1

    @pytest.mark.asyncio
    async def test_failure_after_cancel_is_swallowed(self):
        provider = FakeProvider(fragments=["a", "b"], fail_after=1)
        gateway = GenerationGateway(provider)
        token = CancellationToken()
        token.cancel()

        result = await gateway.stream_reply("sys", [], AsyncMock(), token)

        assert result.cancelled
        assert result.text == "a"
