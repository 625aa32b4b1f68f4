"""
Focus session lifecycle: start with a greeting, end, abandon, resume, history.
"""

import logging
from typing import List, Optional

from ..core.errors import CompanionError, SessionNotFound, UnknownOwnerError
from ..core.prompts import greeting_prompts
from ..core.validation import validate_task
from ..llm.base import LLMMessage
from ..llm.gateway import GenerationGateway
from ..models.session import (
    ChatTurn,
    FocusSession,
    SessionHistory,
    SessionStartRequest,
    SessionStartResponse,
)
from ..storage import ChatHistory, SessionStore, UserStore

logger = logging.getLogger(__name__)


class SessionService:
    """Coordinates the session store, chat history and greeting generation."""

    def __init__(
        self,
        user_store: UserStore,
        session_store: SessionStore,
        chat_history: ChatHistory,
        gateway: GenerationGateway,
        settings,
    ):
        self.user_store = user_store
        self.session_store = session_store
        self.chat_history = chat_history
        self.gateway = gateway
        self.settings = settings

    async def start(self, owner_id: str, request: SessionStartRequest) -> SessionStartResponse:
        """
        Open a new focus session and try to greet the owner.

        A greeting failure never fails the start; the response simply carries
        ``greeting=None``.

        Raises:
            ValidationError: the declared task is too long
            SessionAlreadyActive: the owner already has an active session
        """
        task = validate_task(request.declared_task, self.settings.max_task_length)
        session = await self.session_store.create(
            owner_id,
            declared_task=task,
            duration_planned=request.duration_planned or self.settings.default_duration_minutes,
            check_in_frequency=request.check_in_frequency or self.settings.default_check_in_minutes,
        )

        greeting = None
        try:
            greeting = await self._generate_greeting(owner_id, session)
            if greeting:
                await self.chat_history.append_turn(owner_id, session.id, "assistant", greeting)
            else:
                greeting = None
        except CompanionError as e:
            logger.warning(
                f"Failed to generate greeting: {e}",
                extra={"extra_fields": {"owner_id": owner_id, "session_id": session.id, "code": e.code}}
            )
            greeting = None

        return SessionStartResponse(session=session, greeting=greeting)

    async def _generate_greeting(self, owner_id: str, session: FocusSession) -> str:
        user = await self.user_store.get_user(owner_id)
        if user is None:
            raise UnknownOwnerError(owner_id)

        recent = await self.session_store.recent_completed(owner_id, exclude_id=session.id, limit=1)
        last_task = recent[0].task if recent else None
        system_prompt, request = greeting_prompts(user.name, session.declared_task, last_task)
        return await self.gateway.complete(
            system_prompt,
            [LLMMessage(role="user", content=request)],
            max_tokens=self.settings.greeting_max_tokens,
        )

    async def get(self, owner_id: str, session_id: str) -> FocusSession:
        session = await self.session_store.find(session_id, owner_id)
        if session is None:
            raise SessionNotFound()
        return session

    async def get_active(self, owner_id: str) -> Optional[FocusSession]:
        return await self.session_store.get_active(owner_id)

    async def history(self, owner_id: str, limit: int = 20, offset: int = 0) -> SessionHistory:
        sessions, total = await self.session_store.list_history(owner_id, limit=limit, offset=offset)
        return SessionHistory(sessions=sessions, total=total, limit=limit, offset=offset)

    async def messages(self, owner_id: str, session_id: str) -> List[ChatTurn]:
        await self.get(owner_id, session_id)
        return await self.chat_history.list_turns(owner_id, session_id)

    async def end(self, owner_id: str, session_id: str, outcome: Optional[str] = None) -> FocusSession:
        return await self.session_store.complete(session_id, owner_id, outcome)

    async def abandon(self, owner_id: str, session_id: str) -> FocusSession:
        return await self.session_store.abandon(session_id, owner_id)

    async def resume(self, owner_id: str, session_id: str) -> FocusSession:
        return await self.session_store.resume(session_id, owner_id)

    async def purge(self, owner_id: str, session_id: str) -> bool:
        """Delete a session and its chat history."""
        if not await self.session_store.purge(session_id, owner_id):
            return False
        await self.chat_history.purge_session(owner_id, session_id)
        return True
