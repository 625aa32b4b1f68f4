"""
Memory Models - Durable, categorized facts about the owner.
"""

from datetime import datetime, timezone
from typing import Optional, Dict
from pydantic import BaseModel, Field


class MemoryItem(BaseModel):
    """A stored memory row."""
    id: str
    owner_id: str
    category: str
    content: str
    importance: int = 1  # 1-5 scale
    last_referenced: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: Optional[str] = None  # provenance tag, e.g. "user" or "session:<id>"


class MemoryCreate(BaseModel):
    category: str
    content: str
    importance: int = 1
    source: Optional[str] = None


class MemoryUpdate(BaseModel):
    content: Optional[str] = None
    importance: Optional[int] = None
    category: Optional[str] = None


class MemoryStats(BaseModel):
    total: int
    by_category: Dict[str, int]
    recently_added: int
    recently_referenced: int
