"""
Context Assembler - Builds the per-turn system prompt for the companion.

The assembled context merges the owner profile, recent completed sessions,
per-category memory buckets and the relevance engine's picks for the current
task. It is rebuilt on every turn because memories may change between turns.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..config import settings as default_settings
from ..models import SessionSummary
from ..storage import UserStore, SessionStore, MemoryStore
from ..storage.memory_store import importance_order
from .errors import UnknownOwnerError
from .prompts import (
    PromptContext, render_prompt, get_template,
    NOT_YET_SHARED, FIRST_SESSION, NO_RELEVANT_CONTEXT, NOT_SPECIFIED,
)
from .relevance import RelevanceEngine

logger = logging.getLogger(__name__)

# Prompt bucket -> memory category
MEMORY_BUCKETS = {
    "projects": "project",
    "challenges": "challenge",
    "insights": "insight",
    "distractions": "distraction",
    "goals": "goal",
    "wins": "win",
    "preferences": "preference",
}


@dataclass
class CurrentSession:
    declared_task: str
    duration_planned: int
    check_in_frequency: int


@dataclass
class UserContext:
    """Structured context for one owner and (optionally) one session."""
    user_name: str
    work_context: str
    interests: List[str]
    recent_sessions: List[SessionSummary]
    memories: Dict[str, List[str]]
    relevant_memories: List[str] = field(default_factory=list)
    current_session: Optional[CurrentSession] = None


def format_list(items: List[str]) -> str:
    return "\n".join(f"- {item}" for item in items) if items else NOT_YET_SHARED


def format_session_date(summary: SessionSummary) -> str:
    return f"{summary.date:%A}, {summary.date:%b} {summary.date.day}"


class ContextAssembler:
    """Turns stored owner data into a rendered system prompt."""

    def __init__(
        self,
        user_store: UserStore,
        session_store: SessionStore,
        memory_store: MemoryStore,
        relevance: RelevanceEngine,
        settings=None,
    ):
        self.user_store = user_store
        self.session_store = session_store
        self.memory_store = memory_store
        self.relevance = relevance
        self.settings = settings or default_settings

    async def _memory_buckets(self, owner_id: str) -> Dict[str, List[str]]:
        memories = importance_order(await self.memory_store.list_owner_memories(owner_id))
        limit = self.settings.memories_per_category
        return {
            bucket: [m.content for m in memories if m.category == category][:limit]
            for bucket, category in MEMORY_BUCKETS.items()
        }

    async def build_user_context(self, owner_id: str, current_session_id: Optional[str] = None) -> UserContext:
        """
        Collect everything the prompt needs for ``owner_id``.

        Raises:
            UnknownOwnerError: the owner record does not exist
        """
        user = await self.user_store.get_user(owner_id)
        if user is None:
            raise UnknownOwnerError(owner_id)

        recent = await self.session_store.recent_completed(
            owner_id,
            exclude_id=current_session_id,
            limit=self.settings.recent_sessions_limit,
        )

        current = None
        declared_task = ""
        if current_session_id:
            session = await self.session_store.find(current_session_id, owner_id)
            if session is not None:
                declared_task = session.declared_task or ""
                current = CurrentSession(
                    declared_task=session.declared_task or NOT_SPECIFIED,
                    duration_planned=session.duration_planned or self.settings.default_duration_minutes,
                    check_in_frequency=session.check_in_frequency or self.settings.default_check_in_minutes,
                )

        relevant = []
        if declared_task:
            relevant = await self.relevance.relevant_memories(owner_id, declared_task)
            if relevant and self.settings.touch_relevant_memories:
                await self.memory_store.touch(owner_id, [m.id for m in relevant])

        return UserContext(
            user_name=user.name,
            work_context=user.work_context or NOT_YET_SHARED,
            interests=list(user.interests),
            recent_sessions=recent,
            memories=await self._memory_buckets(owner_id),
            relevant_memories=[f"[{m.category}] {m.content}" for m in relevant],
            current_session=current,
        )

    def format_context(self, context: UserContext) -> PromptContext:
        """Flatten a UserContext into prompt placeholder values."""
        recent_sessions = FIRST_SESSION
        if context.recent_sessions:
            lines = []
            for summary in context.recent_sessions[:self.settings.recent_sessions_rendered]:
                outcome = f" {summary.outcome}" if summary.outcome else ""
                lines.append(
                    f"**{format_session_date(summary)} ({summary.duration_minutes} min):** "
                    f"{summary.task}.{outcome}"
                )
            recent_sessions = "\n\n".join(lines)

        current = context.current_session
        duration = current.duration_planned if current else self.settings.default_duration_minutes
        check_in = current.check_in_frequency if current else self.settings.default_check_in_minutes

        return PromptContext(
            user_name=context.user_name,
            work_context=context.work_context,
            current_projects=format_list(context.memories.get("projects", [])),
            interests=", ".join(context.interests) if context.interests else NOT_YET_SHARED,
            challenges=format_list(context.memories.get("challenges", [])),
            distractions=format_list(context.memories.get("distractions", [])),
            insights=format_list(context.memories.get("insights", [])),
            goals=format_list(context.memories.get("goals", [])),
            recent_wins=format_list(context.memories.get("wins", [])),
            preferences=format_list(context.memories.get("preferences", [])),
            recent_sessions=recent_sessions,
            relevant_context=(
                "\n".join(context.relevant_memories) if context.relevant_memories else NO_RELEVANT_CONTEXT
            ),
            declared_task=current.declared_task if current else NOT_SPECIFIED,
            session_duration=f"{duration} minutes",
            check_in_frequency=f"every {check_in} minutes",
        )

    async def render(self, owner_id: str, session_id: Optional[str] = None) -> str:
        """Build, format and render the system prompt for one turn."""
        context = await self.build_user_context(owner_id, session_id)
        prompt = render_prompt(get_template(self.settings.prompt_version), self.format_context(context))
        logger.debug(
            f"Rendered context for owner {owner_id}",
            extra={"extra_fields": {
                "owner_id": owner_id,
                "session_id": session_id,
                "recent_sessions": len(context.recent_sessions),
                "relevant_memories": len(context.relevant_memories),
                "prompt_length": len(prompt),
            }}
        )
        return prompt
