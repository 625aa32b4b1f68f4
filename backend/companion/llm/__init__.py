"""
LLM Provider Layer.
Providers speak to model APIs; the gateway is what the rest of the app uses.
"""

from .base import LLMProvider, LLMMessage, LLMResponse, LLMStreamEvent
from .factory import create_llm_provider
from .gateway import GenerationGateway, CancellationToken, StreamResult, classify_provider_error

__all__ = [
    "LLMProvider",
    "LLMMessage",
    "LLMResponse",
    "LLMStreamEvent",
    "create_llm_provider",
    "GenerationGateway",
    "CancellationToken",
    "StreamResult",
    "classify_provider_error",
]
