"""
Session Store - Focus sessions scoped by owner.

Invariant: at most one ``active`` session per owner. ``create`` and ``resume``
check and write under the owner's lock so two concurrent starts cannot both
succeed.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, List, Tuple

from ..core.errors import (
    SessionNotFound, SessionNotActive, SessionAlreadyActive, InvalidSessionTransition,
)
from ..models import FocusSession, SessionStatus, SessionSummary
from .base_store import BaseStore, is_safe_id

logger = logging.getLogger(__name__)


def _minutes_between(start: datetime, end: datetime) -> int:
    return round((end - start).total_seconds() / 60)


class SessionStore(BaseStore):
    """Reads and writes ``users/{owner}/sessions/{session_id}.json``."""

    def _sessions_dir(self, owner_id: str) -> str:
        return f"{self.owner_path(owner_id)}/sessions"

    def session_path(self, owner_id: str, session_id: str) -> str:
        return f"{self._sessions_dir(owner_id)}/{session_id}.json"

    async def _save(self, session: FocusSession) -> None:
        await self._write_json(
            self.session_path(session.owner_id, session.id),
            session.model_dump(mode="json"),
        )

    async def _list_all(self, owner_id: str) -> List[FocusSession]:
        if not is_safe_id(owner_id):
            return []
        sessions = []
        for path in await self.storage.list(self._sessions_dir(owner_id), pattern="*.json"):
            data = await self._read_json(path)
            if data is not None:
                sessions.append(FocusSession.model_validate(data))
        return sessions

    async def find(self, session_id: str, owner_id: str) -> Optional[FocusSession]:
        """Find a session by id, only if it belongs to ``owner_id``."""
        if not (is_safe_id(session_id) and is_safe_id(owner_id)):
            return None
        data = await self._read_json(self.session_path(owner_id, session_id))
        if data is None:
            return None
        session = FocusSession.model_validate(data)
        return session if session.owner_id == owner_id else None

    async def is_active(self, session_id: str, owner_id: str) -> bool:
        session = await self.find(session_id, owner_id)
        return session is not None and session.is_active

    async def get_active(self, owner_id: str) -> Optional[FocusSession]:
        for session in await self._list_all(owner_id):
            if session.is_active:
                return session
        return None

    async def create(
        self,
        owner_id: str,
        declared_task: Optional[str],
        duration_planned: int,
        check_in_frequency: int,
    ) -> FocusSession:
        """
        Create a new active session.

        Raises:
            SessionAlreadyActive: if the owner already has an active session
        """
        async with self.owner_lock(owner_id):
            existing = await self.get_active(owner_id)
            if existing is not None:
                raise SessionAlreadyActive(existing.id)

            session = FocusSession(
                id=str(uuid.uuid4()),
                owner_id=owner_id,
                declared_task=declared_task,
                duration_planned=duration_planned,
                check_in_frequency=check_in_frequency,
            )
            await self._save(session)

        logger.info(
            f"Started focus session {session.id}",
            extra={"extra_fields": {"owner_id": owner_id, "session_id": session.id}}
        )
        return session

    async def _finish(
        self,
        session_id: str,
        owner_id: str,
        status: SessionStatus,
        outcome: Optional[str] = None,
    ) -> FocusSession:
        async with self.owner_lock(owner_id):
            session = await self.find(session_id, owner_id)
            if session is None:
                raise SessionNotFound()
            if not session.is_active:
                raise SessionNotActive()

            now = datetime.now(timezone.utc)
            updates = {
                "status": status,
                "ended_at": now,
                "duration_actual": _minutes_between(session.started_at, now),
            }
            if outcome is not None:
                updates["outcome"] = outcome
            session = session.model_copy(update=updates)
            await self._save(session)

        logger.info(
            f"Focus session {session_id} {status.value}",
            extra={"extra_fields": {"owner_id": owner_id, "session_id": session_id}}
        )
        return session

    async def complete(self, session_id: str, owner_id: str, outcome: Optional[str] = None) -> FocusSession:
        return await self._finish(session_id, owner_id, SessionStatus.COMPLETED, outcome)

    async def abandon(self, session_id: str, owner_id: str) -> FocusSession:
        return await self._finish(session_id, owner_id, SessionStatus.ABANDONED)

    async def resume(self, session_id: str, owner_id: str) -> FocusSession:
        """
        Move a terminal session back to ``active``.

        Raises:
            SessionNotFound: unknown or foreign session
            InvalidSessionTransition: the session is already active
            SessionAlreadyActive: another session is active for this owner
        """
        async with self.owner_lock(owner_id):
            session = await self.find(session_id, owner_id)
            if session is None:
                raise SessionNotFound()
            if session.is_active:
                raise InvalidSessionTransition("Session is already active")
            other = await self.get_active(owner_id)
            if other is not None:
                raise SessionAlreadyActive(other.id)

            session = session.model_copy(update={"status": SessionStatus.ACTIVE, "ended_at": None})
            await self._save(session)
        return session

    async def list_history(self, owner_id: str, limit: int = 20, offset: int = 0) -> Tuple[List[FocusSession], int]:
        """Sessions newest first, with the total count."""
        sessions = sorted(await self._list_all(owner_id), key=lambda s: s.started_at, reverse=True)
        return sessions[offset:offset + limit], len(sessions)

    async def recent_completed(
        self,
        owner_id: str,
        exclude_id: Optional[str] = None,
        limit: int = 10,
    ) -> List[SessionSummary]:
        """Summaries of the most recently ended completed sessions."""
        completed = [
            s for s in await self._list_all(owner_id)
            if s.status == SessionStatus.COMPLETED and s.id != exclude_id
        ]
        completed.sort(key=lambda s: s.ended_at or s.started_at, reverse=True)
        return [
            SessionSummary(
                date=s.ended_at or s.started_at,
                task=s.declared_task or "Unspecified task",
                outcome=s.outcome,
                duration_minutes=s.duration_actual or s.duration_planned or 0,
            )
            for s in completed[:limit]
        ]

    async def purge(self, session_id: str, owner_id: str) -> bool:
        """Delete a session document. Callers cascade to its chat history."""
        if await self.find(session_id, owner_id) is None:
            return False
        return await self.storage.delete(self.session_path(owner_id, session_id))
