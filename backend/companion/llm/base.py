"""
LLM Provider Base - Abstract base for all LLM API providers.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, AsyncGenerator, Literal
from dataclasses import dataclass, field


@dataclass
class LLMMessage:
    """A message in a conversation."""
    role: str  # "system", "user", "assistant"
    content: str

    @staticmethod
    def text(role: str, text: str) -> "LLMMessage":
        return LLMMessage(role=role, content=text)


@dataclass
class LLMResponse:
    """Response from a non-streaming LLM API call."""
    content: str
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    raw: Optional[Dict[str, Any]] = None


@dataclass
class LLMStreamEvent:
    """
    One item of a streamed completion.

    ``delta`` events carry a text fragment; the single final ``done`` event
    carries the model name and token usage.
    """
    type: Literal["delta", "done"]
    content: str = ""
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)

    @staticmethod
    def delta(content: str) -> "LLMStreamEvent":
        return LLMStreamEvent(type="delta", content=content)

    @staticmethod
    def done(model: str = "", usage: Optional[Dict[str, int]] = None) -> "LLMStreamEvent":
        return LLMStreamEvent(type="done", model=model, usage=usage or {})


class LLMProvider(ABC):
    """
    Abstract base class for LLM API providers.
    Providers raise their transport errors (httpx) unchanged; classification
    happens in the generation gateway.
    """

    name = "base"

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None,
                 default_temperature: float = 0.7, default_max_tokens: int = 1024,
                 timeout: float = 120.0):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens
        self.timeout = timeout

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: Conversation, optionally starting with system messages
            temperature: Sampling temperature override
            max_tokens: Max tokens override

        Returns:
            LLMResponse with the generated content
        """

    @abstractmethod
    def chat_completion_stream(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncGenerator[LLMStreamEvent, None]:
        """
        Stream a chat completion.

        Yields:
            LLMStreamEvent: ``delta`` events in arrival order, then one ``done``
        """

    def _format_messages(self, messages: List[LLMMessage]) -> List[Dict[str, Any]]:
        """Convert LLMMessage list to API-compatible format."""
        return [{"role": m.role, "content": m.content} for m in messages]

    def _summarize_request(self, messages: List[LLMMessage]) -> str:
        summary = f"{len(messages)} messages"
        if messages:
            summary += f", last: {messages[-1].content[:200]}"
        return summary
