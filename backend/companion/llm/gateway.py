"""
Generation Gateway - the only way the rest of the service talks to a model.

Two operations are exposed:

* ``complete`` returns a whole text (used for session greetings).
* ``stream_reply`` pushes fragments to a callback in arrival order and returns
  the accumulated result once the provider signals completion.

A ``CancellationToken`` threads connection-close through to the in-flight
call: once cancelled, fragments stop being forwarded but the provider stream
is still drained to its natural end, and the result comes back flagged
``cancelled`` so the caller can discard it.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

import httpx

from ..core.errors import GenerationFailure
from .anthropic_provider import AnthropicStreamError
from .base import LLMMessage, LLMProvider

logger = logging.getLogger(__name__)

FragmentCallback = Callable[[str], Awaitable[None]]


class CancellationToken:
    """One-shot cancellation flag shared between a connection and its stream."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class StreamResult:
    """Outcome of a ``stream_reply`` call."""
    text: str = ""
    fragments: int = 0
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    cancelled: bool = False


def classify_provider_error(exc: BaseException) -> GenerationFailure:
    """Map a provider exception onto a ``GenerationFailure`` kind."""
    if isinstance(exc, GenerationFailure):
        return exc
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return GenerationFailure("Generation timed out", kind="timeout")
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 429:
            return GenerationFailure("Generation rate limited", kind="rate_limited")
        if status in (401, 403):
            return GenerationFailure("Generation credentials rejected", kind="unauthorized")
        if status >= 500:
            return GenerationFailure(f"Generation service unavailable ({status})", kind="unavailable")
        return GenerationFailure(f"Generation request rejected ({status})", kind="provider_error")
    if isinstance(exc, httpx.TransportError):
        return GenerationFailure("Generation service unreachable", kind="network")
    if isinstance(exc, AnthropicStreamError):
        if exc.error_type in ("rate_limit_error", "overloaded_error"):
            return GenerationFailure("Generation rate limited", kind="rate_limited")
        return GenerationFailure(f"Generation stream error: {exc.error_type}", kind="provider_error")
    return GenerationFailure(f"Generation failed: {exc}", kind="provider_error")


class GenerationGateway:
    """Wraps an ``LLMProvider`` behind ``complete`` / ``stream_reply``."""

    def __init__(
        self,
        provider: Optional[LLMProvider],
        max_tokens: int = 1024,
        greeting_max_tokens: int = 256,
    ):
        self.provider = provider
        self.max_tokens = max_tokens
        self.greeting_max_tokens = greeting_max_tokens

    @property
    def available(self) -> bool:
        return self.provider is not None

    def _require_provider(self) -> LLMProvider:
        if self.provider is None:
            raise GenerationFailure("No generation provider configured", kind="unavailable")
        return self.provider

    @staticmethod
    def _build_messages(system_prompt: str, messages: List[LLMMessage]) -> List[LLMMessage]:
        return [LLMMessage(role="system", content=system_prompt), *messages]

    async def complete(
        self,
        system_prompt: str,
        messages: List[LLMMessage],
        max_tokens: Optional[int] = None,
    ) -> str:
        provider = self._require_provider()
        try:
            response = await provider.chat_completion(
                self._build_messages(system_prompt, messages),
                max_tokens=max_tokens or self.greeting_max_tokens,
            )
        except Exception as e:
            failure = classify_provider_error(e)
            logger.error(
                f"Generation failed: {failure.reason}",
                extra={"extra_fields": {"provider": provider.name, "kind": failure.kind}}
            )
            raise failure from e
        return response.content

    async def stream_reply(
        self,
        system_prompt: str,
        messages: List[LLMMessage],
        on_fragment: FragmentCallback,
        cancel: Optional[CancellationToken] = None,
    ) -> StreamResult:
        """
        Stream a reply, awaiting ``on_fragment`` for every text fragment.

        Raises:
            GenerationFailure: the provider failed before completion and the
                token was not cancelled. Nothing is retried.
        """
        provider = self._require_provider()
        cancel = cancel or CancellationToken()
        result = StreamResult()
        parts: List[str] = []
        start_time = time.time()

        try:
            async for event in provider.chat_completion_stream(
                self._build_messages(system_prompt, messages),
                max_tokens=self.max_tokens,
            ):
                if event.type == "done":
                    result.model = event.model
                    result.usage = event.usage
                    continue
                if not event.content:
                    continue
                parts.append(event.content)
                result.fragments += 1
                if not cancel.cancelled:
                    await on_fragment(event.content)
        except Exception as e:
            if cancel.cancelled:
                # Nobody is listening any more; the result is discarded anyway
                logger.info(
                    "Cancelled stream ended with provider error",
                    extra={"extra_fields": {"provider": provider.name, "error": str(e)}}
                )
                result.text = "".join(parts)
                result.cancelled = True
                return result
            failure = classify_provider_error(e)
            logger.error(
                f"Generation stream failed: {failure.reason}",
                extra={"extra_fields": {
                    "provider": provider.name,
                    "kind": failure.kind,
                    "fragments": result.fragments,
                    "duration_ms": round((time.time() - start_time) * 1000, 2),
                }}
            )
            raise failure from e

        result.text = "".join(parts)
        result.cancelled = cancel.cancelled
        if result.cancelled:
            logger.info(
                "Stream drained after cancellation, result discarded",
                extra={"extra_fields": {
                    "provider": provider.name,
                    "reason": cancel.reason,
                    "fragments": result.fragments,
                }}
            )
        return result
