"""
Relevance Engine - Picks the memories worth surfacing for a declared task.

Scoring, per memory:
    +1    for each task token (length > 3) found as a case-insensitive substring
    +0.5  x importance
    +1    if last referenced within the recency window
    +0.5  for coaching categories (distraction, challenge, insight)

Items scoring <= 0 are dropped; the rest are sorted by score, descending, and
the first ``top_k`` returned. The sort is stable, so ties keep storage order.
Scoring never touches ``last_referenced``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from ..models import MemoryItem
from ..storage import MemoryStore

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 4
IMPORTANCE_WEIGHT = 0.5
RECENCY_BONUS = 1.0
COACHING_BONUS = 0.5
COACHING_CATEGORIES = frozenset({"distraction", "challenge", "insight"})


@dataclass
class ScoredMemory:
    memory: MemoryItem
    score: float


def tokenize_task(task: str) -> List[str]:
    """Lower-cased whitespace tokens, dropping ones too short to discriminate."""
    return [token for token in task.lower().split() if len(token) >= MIN_TOKEN_LENGTH]


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def score_memory(
    memory: MemoryItem,
    tokens: List[str],
    now: datetime,
    recent_window: timedelta = timedelta(days=7),
) -> float:
    content = memory.content.lower()
    score = float(sum(1 for token in tokens if token in content))
    score += memory.importance * IMPORTANCE_WEIGHT
    if now - _as_utc(memory.last_referenced) < recent_window:
        score += RECENCY_BONUS
    if memory.category in COACHING_CATEGORIES:
        score += COACHING_BONUS
    return score


class RelevanceEngine:
    """Ranks an owner's memories against a free-text task."""

    def __init__(self, memory_store: MemoryStore, top_k: int = 5, recent_days: int = 7):
        self.memory_store = memory_store
        self.top_k = top_k
        self.recent_window = timedelta(days=recent_days)

    def rank(
        self,
        memories: List[MemoryItem],
        task: str,
        now: Optional[datetime] = None,
    ) -> List[ScoredMemory]:
        """Score, filter and order ``memories``; pure, no I/O."""
        now = now or datetime.now(timezone.utc)
        tokens = tokenize_task(task)
        scored = [
            ScoredMemory(memory, score_memory(memory, tokens, now, self.recent_window))
            for memory in memories
        ]
        scored = [item for item in scored if item.score > 0]
        scored.sort(key=lambda item: item.score, reverse=True)
        return scored[:self.top_k]

    async def relevant_memories(
        self,
        owner_id: str,
        task: str,
        now: Optional[datetime] = None,
    ) -> List[MemoryItem]:
        """Top-K memories for ``task`` among those owned by ``owner_id``."""
        memories = await self.memory_store.list_owner_memories(owner_id)
        ranked = self.rank(memories, task, now)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Relevance ranked {len(memories)} memories, kept {len(ranked)}",
                extra={"extra_fields": {
                    "owner_id": owner_id,
                    "scores": [round(item.score, 2) for item in ranked],
                }}
            )
        return [item.memory for item in ranked]
