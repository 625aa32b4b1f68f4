"""
Memory Store - Durable facts about an owner, one document per owner.

``list_owner_memories`` returns rows in storage (insertion) order; callers
that need a ranking sort for themselves.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from ..core.errors import MemoryNotFound
from ..core.validation import MEMORY_CATEGORIES
from ..models import MemoryItem, MemoryCreate, MemoryUpdate, MemoryStats
from .base_store import BaseStore, is_safe_id

logger = logging.getLogger(__name__)


def importance_order(memories: List[MemoryItem]) -> List[MemoryItem]:
    """Most important first, most recently referenced breaking ties."""
    return sorted(memories, key=lambda m: (m.importance, m.last_referenced), reverse=True)


class MemoryStore(BaseStore):
    """Reads and writes ``users/{owner}/memories.json``."""

    def _memories_path(self, owner_id: str) -> str:
        return f"{self.owner_path(owner_id)}/memories.json"

    async def _load(self, owner_id: str) -> List[MemoryItem]:
        if not is_safe_id(owner_id):
            return []
        rows = await self._read_json(self._memories_path(owner_id)) or []
        return [MemoryItem.model_validate(row) for row in rows]

    async def _store(self, owner_id: str, memories: List[MemoryItem]) -> None:
        await self._write_json(
            self._memories_path(owner_id),
            [m.model_dump(mode="json") for m in memories],
        )

    async def list_owner_memories(self, owner_id: str) -> List[MemoryItem]:
        return await self._load(owner_id)

    async def get(self, owner_id: str, memory_id: str) -> Optional[MemoryItem]:
        for memory in await self._load(owner_id):
            if memory.id == memory_id:
                return memory
        return None

    async def by_category(self, owner_id: str, category: str) -> List[MemoryItem]:
        return importance_order([m for m in await self._load(owner_id) if m.category == category])

    async def create(self, owner_id: str, data: MemoryCreate) -> MemoryItem:
        memory = MemoryItem(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            category=data.category,
            content=data.content,
            importance=data.importance,
            source=data.source,
        )
        async with self.owner_lock(owner_id):
            memories = await self._load(owner_id)
            memories.append(memory)
            await self._store(owner_id, memories)
        return memory

    async def update(self, owner_id: str, memory_id: str, data: MemoryUpdate) -> MemoryItem:
        """
        Update content, importance or category in place.

        Raises:
            MemoryNotFound: no such memory for this owner
        """
        async with self.owner_lock(owner_id):
            memories = await self._load(owner_id)
            for index, memory in enumerate(memories):
                if memory.id == memory_id:
                    changes = data.model_dump(exclude_unset=True, exclude_none=True)
                    memories[index] = memory.model_copy(update=changes)
                    await self._store(owner_id, memories)
                    return memories[index]
        raise MemoryNotFound()

    async def delete(self, owner_id: str, memory_id: str) -> bool:
        async with self.owner_lock(owner_id):
            memories = await self._load(owner_id)
            remaining = [m for m in memories if m.id != memory_id]
            if len(remaining) == len(memories):
                return False
            await self._store(owner_id, remaining)
        return True

    async def touch(self, owner_id: str, memory_ids: List[str]) -> int:
        """Bump ``last_referenced`` to now. Returns how many rows were touched."""
        if not memory_ids:
            return 0
        wanted = set(memory_ids)
        now = datetime.now(timezone.utc)
        async with self.owner_lock(owner_id):
            memories = await self._load(owner_id)
            touched = 0
            for index, memory in enumerate(memories):
                if memory.id in wanted:
                    memories[index] = memory.model_copy(update={"last_referenced": now})
                    touched += 1
            if touched:
                await self._store(owner_id, memories)
        return touched

    async def search(self, owner_id: str, query: str) -> List[MemoryItem]:
        needle = query.lower()
        return importance_order([m for m in await self._load(owner_id) if needle in m.content.lower()])

    async def stats(self, owner_id: str, now: Optional[datetime] = None) -> MemoryStats:
        now = now or datetime.now(timezone.utc)
        week_ago = now - timedelta(days=7)
        memories = await self._load(owner_id)

        by_category: Dict[str, int] = {category: 0 for category in MEMORY_CATEGORIES}
        for memory in memories:
            by_category[memory.category] = by_category.get(memory.category, 0) + 1

        return MemoryStats(
            total=len(memories),
            by_category=by_category,
            recently_added=sum(1 for m in memories if m.created_at > week_ago),
            recently_referenced=sum(1 for m in memories if m.last_referenced > week_ago),
        )
