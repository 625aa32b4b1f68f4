"""
Anthropic Messages API Provider.
Uses httpx directly; system messages are lifted into the top-level ``system``
field as the Messages API requires.
"""

import json
import logging
import time
from typing import Optional, List, Dict, Any, AsyncGenerator, Tuple

import httpx

from .base import LLMProvider, LLMMessage, LLMResponse, LLMStreamEvent

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicStreamError(Exception):
    """An ``error`` event arrived inside an otherwise successful stream."""

    def __init__(self, error_type: str, message: str):
        super().__init__(f"{error_type}: {message}")
        self.error_type = error_type


class AnthropicProvider(LLMProvider):
    """Provider for the Anthropic Messages API."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        base_url: str = "https://api.anthropic.com",
        default_temperature: float = 0.7,
        default_max_tokens: int = 1024,
        timeout: float = 120.0,
    ):
        super().__init__(api_key, model, base_url, default_temperature, default_max_tokens, timeout)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    @staticmethod
    def _split_system(messages: List[LLMMessage]) -> Tuple[str, List[LLMMessage]]:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        return system, [m for m in messages if m.role != "system"]

    def _build_payload(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float],
        max_tokens: Optional[int],
        stream: bool = False,
    ) -> Dict[str, Any]:
        system, conversation = self._split_system(messages)
        formatted = self._format_messages(conversation)
        if formatted and formatted[0]["role"] == "assistant":
            # Conversation must open with a user turn (greetings are assistant-first)
            formatted.insert(0, {"role": "user", "content": "(session started)"})
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": formatted,
            "max_tokens": max_tokens or self.default_max_tokens,
            "temperature": temperature if temperature is not None else self.default_temperature,
        }
        if system:
            payload["system"] = system
        if stream:
            payload["stream"] = True
        return payload

    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        start_time = time.time()
        url = f"{self.base_url}/v1/messages"
        payload = self._build_payload(messages, temperature, max_tokens)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API call starting: provider=anthropic, model={payload['model']}, "
                f"{self._summarize_request(messages)}"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                resp.raise_for_status()
                data = resp.json()
        except Exception as e:
            logger.error(
                f"LLM API call failed: {e}",
                extra={"extra_fields": {
                    "provider": "anthropic",
                    "model": self.model,
                    "duration_ms": round((time.time() - start_time) * 1000, 2),
                    "error": str(e),
                }}
            )
            raise

        text = "".join(
            block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"
        )
        usage = data.get("usage", {})
        logger.info(
            "LLM API call completed",
            extra={"extra_fields": {
                "provider": "anthropic",
                "model": data.get("model", self.model),
                "input_tokens": usage.get("input_tokens", 0),
                "output_tokens": usage.get("output_tokens", 0),
                "stop_reason": data.get("stop_reason"),
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            }}
        )
        return LLMResponse(content=text, model=data.get("model", self.model), usage=usage, raw=data)

    async def chat_completion_stream(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncGenerator[LLMStreamEvent, None]:
        start_time = time.time()
        url = f"{self.base_url}/v1/messages"
        payload = self._build_payload(messages, temperature, max_tokens, stream=True)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API stream starting: provider=anthropic, model={payload['model']}, "
                f"{self._summarize_request(messages)}"
            )

        usage: Dict[str, int] = {}
        model = self.model
        content_length = 0

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            async with client.stream("POST", url, json=payload, headers=self._get_headers()) as response:
                response.raise_for_status()

                async for line in response.aiter_lines():
                    # Event names are repeated inside the data payload's "type"
                    if not line.startswith("data: "):
                        continue
                    try:
                        event = json.loads(line[6:])
                    except json.JSONDecodeError:
                        continue

                    event_type = event.get("type")
                    if event_type == "message_start":
                        message = event.get("message", {})
                        model = message.get("model", model)
                        usage.update(message.get("usage", {}))
                    elif event_type == "content_block_delta":
                        delta = event.get("delta", {})
                        if delta.get("type") == "text_delta" and delta.get("text"):
                            content_length += len(delta["text"])
                            yield LLMStreamEvent.delta(delta["text"])
                    elif event_type == "message_delta":
                        usage.update(event.get("usage", {}))
                    elif event_type == "error":
                        error = event.get("error", {})
                        raise AnthropicStreamError(error.get("type", "error"), error.get("message", ""))
                    elif event_type == "message_stop":
                        break

        logger.info(
            "LLM API stream completed",
            extra={"extra_fields": {
                "provider": "anthropic",
                "model": model,
                "input_tokens": usage.get("input_tokens", 0),
                "output_tokens": usage.get("output_tokens", 0),
                "duration_ms": round((time.time() - start_time) * 1000, 2),
                "content_length": content_length,
            }}
        )
        yield LLMStreamEvent.done(model=model, usage=usage)
