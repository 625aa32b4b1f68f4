"""
Memory service - validated CRUD over the owner's memory store.
"""

import logging
from typing import List, Optional

from ..core.errors import MemoryNotFound, ValidationError
from ..core.validation import (
    MEMORY_CATEGORIES,
    validate_category,
    validate_importance,
    validate_memory_content,
)
from ..models.memory import MemoryCreate, MemoryItem, MemoryStats, MemoryUpdate
from ..storage import MemoryStore

logger = logging.getLogger(__name__)

CATEGORY_DESCRIPTIONS = {
    "project": "Current projects you're working on",
    "interest": "Your interests and hobbies",
    "challenge": "Common challenges or blockers you face",
    "insight": "Insights about what works for you",
    "distraction": "Known distractions to watch for",
    "goal": "Short or long-term goals",
    "preference": "How you like to interact (tone, style)",
    "win": "Past wins to reference for encouragement",
    "context": "General context about your life/work",
}


class MemoryService:
    def __init__(self, memory_store: MemoryStore, settings):
        self.memory_store = memory_store
        self.settings = settings

    def _validate_create(self, data: MemoryCreate) -> MemoryCreate:
        return MemoryCreate(
            category=validate_category(data.category),
            content=validate_memory_content(data.content, self.settings.max_memory_content_length),
            importance=validate_importance(data.importance),
            source=data.source,
        )

    async def list(self, owner_id: str, category: Optional[str] = None, search: Optional[str] = None) -> List[MemoryItem]:
        """All memories, or those matching a search string or a category."""
        if search:
            return await self.memory_store.search(owner_id, search)
        if category:
            return await self.memory_store.by_category(owner_id, validate_category(category))
        return await self.memory_store.list_owner_memories(owner_id)

    async def get(self, owner_id: str, memory_id: str) -> MemoryItem:
        memory = await self.memory_store.get(owner_id, memory_id)
        if memory is None:
            raise MemoryNotFound()
        return memory

    async def create(self, owner_id: str, data: MemoryCreate) -> MemoryItem:
        memory = await self.memory_store.create(owner_id, self._validate_create(data))
        logger.info(
            f"Created {memory.category} memory",
            extra={"extra_fields": {"owner_id": owner_id, "memory_id": memory.id}}
        )
        return memory

    async def create_many(self, owner_id: str, items: List[MemoryCreate]) -> List[MemoryItem]:
        """Validate every item first so a bad entry creates nothing."""
        if not items:
            raise ValidationError("memories array is required", code="empty_content")
        validated = [self._validate_create(item) for item in items]
        return [await self.memory_store.create(owner_id, item) for item in validated]

    async def update(self, owner_id: str, memory_id: str, data: MemoryUpdate) -> MemoryItem:
        changes = MemoryUpdate(
            content=(
                validate_memory_content(data.content, self.settings.max_memory_content_length)
                if data.content is not None else None
            ),
            importance=validate_importance(data.importance) if data.importance is not None else None,
            category=validate_category(data.category) if data.category is not None else None,
        )
        return await self.memory_store.update(owner_id, memory_id, changes)

    async def delete(self, owner_id: str, memory_id: str) -> None:
        if not await self.memory_store.delete(owner_id, memory_id):
            raise MemoryNotFound()

    async def search(self, owner_id: str, query: str) -> List[MemoryItem]:
        if not query or not query.strip():
            raise ValidationError("Search query is required", code="empty_content")
        return await self.memory_store.search(owner_id, query.strip())

    async def stats(self, owner_id: str) -> MemoryStats:
        return await self.memory_store.stats(owner_id)

    @staticmethod
    def categories() -> dict:
        return {"categories": list(MEMORY_CATEGORIES), "descriptions": CATEGORY_DESCRIPTIONS}
