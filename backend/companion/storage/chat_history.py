"""
Chat History - Append-only, per-session log of chat turns.

Turns are stored one JSON object per line next to the session document, so an
append never rewrites earlier turns and file order is creation order.
"""

import json
import logging
import uuid
from typing import List

from ..core.errors import SessionNotFound, StorageError
from ..models import ChatTurn
from .base_store import BaseStore, is_safe_id

logger = logging.getLogger(__name__)


class ChatHistory(BaseStore):
    """Reads and appends ``users/{owner}/sessions/{session_id}.turns.jsonl``."""

    def _session_path(self, owner_id: str, session_id: str) -> str:
        return f"{self.owner_path(owner_id)}/sessions/{session_id}.json"

    def _turns_path(self, owner_id: str, session_id: str) -> str:
        return f"{self.owner_path(owner_id)}/sessions/{session_id}.turns.jsonl"

    async def _require_session(self, owner_id: str, session_id: str) -> None:
        if not (is_safe_id(owner_id) and is_safe_id(session_id)):
            raise SessionNotFound()
        if not await self.storage.exists(self._session_path(owner_id, session_id)):
            raise SessionNotFound()

    async def append_turn(self, owner_id: str, session_id: str, role: str, content: str) -> ChatTurn:
        """
        Durably append one turn.

        Raises:
            SessionNotFound: the session does not exist for this owner
            StorageError: the append did not complete
        """
        await self._require_session(owner_id, session_id)
        turn = ChatTurn(id=str(uuid.uuid4()), session_id=session_id, role=role, content=content)
        line = json.dumps(turn.model_dump(mode="json"), ensure_ascii=False) + "\n"

        async with self.owner_lock(owner_id):
            if not await self.storage.append(self._turns_path(owner_id, session_id), line):
                raise StorageError(f"Failed to persist {role} turn for session {session_id}")

        logger.debug(
            f"Persisted {role} turn",
            extra={"extra_fields": {
                "session_id": session_id,
                "turn_id": turn.id,
                "content_length": len(content),
            }}
        )
        return turn

    async def list_turns(self, owner_id: str, session_id: str) -> List[ChatTurn]:
        """All turns for a session in creation order."""
        await self._require_session(owner_id, session_id)
        content = await self.storage.load(self._turns_path(owner_id, session_id))
        if content is None:
            return []
        return [
            ChatTurn.model_validate_json(line)
            for line in content.decode("utf-8").splitlines()
            if line.strip()
        ]

    async def purge_session(self, owner_id: str, session_id: str) -> bool:
        if not (is_safe_id(owner_id) and is_safe_id(session_id)):
            return False
        return await self.storage.delete(self._turns_path(owner_id, session_id))
