"""
Server context - every long-lived collaborator, constructed once at startup.

Nothing in the request or websocket path reaches for module-level singletons;
handlers receive a ``ServerContext`` and read their collaborators from it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..llm.base import LLMProvider
from ..llm.factory import create_llm_provider
from ..llm.gateway import GenerationGateway
from ..services import MemoryService, SessionService
from ..storage import ChatHistory, LocalStorage, MemoryStore, SessionStore, StorageInterface, UserStore
from .context import ContextAssembler
from .relevance import RelevanceEngine

logger = logging.getLogger(__name__)


@dataclass
class ServerContext:
    settings: object
    storage: StorageInterface
    user_store: UserStore
    session_store: SessionStore
    chat_history: ChatHistory
    memory_store: MemoryStore
    relevance: RelevanceEngine
    assembler: ContextAssembler
    gateway: GenerationGateway
    sessions: SessionService
    memories: MemoryService


def build_provider(settings) -> Optional[LLMProvider]:
    provider = create_llm_provider(
        provider=settings.llm_provider,
        api_key=settings.resolved_llm_api_key(),
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        timeout=settings.llm_timeout_seconds,
        default_max_tokens=settings.llm_max_tokens,
    )
    if provider is None:
        logger.warning("No LLM API key configured; generation is unavailable")
    else:
        logger.info(f"LLM provider ready: {provider.name} ({provider.model})")
    return provider


def build_server_context(
    settings,
    storage: Optional[StorageInterface] = None,
    provider: Optional[LLMProvider] = None,
) -> ServerContext:
    """
    Wire up stores, engines and services.

    ``storage`` and ``provider`` default to the filesystem store and the
    configured LLM provider; tests pass their own.
    """
    storage = storage or LocalStorage(settings.local_storage_path)
    if provider is None:
        provider = build_provider(settings)

    user_store = UserStore(storage)
    session_store = SessionStore(storage)
    chat_history = ChatHistory(storage)
    memory_store = MemoryStore(storage)
    relevance = RelevanceEngine(
        memory_store,
        top_k=settings.relevance_top_k,
        recent_days=settings.relevance_recent_days,
    )
    gateway = GenerationGateway(
        provider,
        max_tokens=settings.llm_max_tokens,
        greeting_max_tokens=settings.greeting_max_tokens,
    )
    return ServerContext(
        settings=settings,
        storage=storage,
        user_store=user_store,
        session_store=session_store,
        chat_history=chat_history,
        memory_store=memory_store,
        relevance=relevance,
        assembler=ContextAssembler(user_store, session_store, memory_store, relevance, settings),
        gateway=gateway,
        sessions=SessionService(user_store, session_store, chat_history, gateway, settings),
        memories=MemoryService(memory_store, settings),
    )
