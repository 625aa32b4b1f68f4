"""
Focus Session Models - Defines structures for timed work sessions and their chat turns.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Literal
from pydantic import BaseModel, Field


class SessionStatus(str, Enum):
    """Lifecycle status of a focus session."""
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class FocusSession(BaseModel):
    """One bounded unit of declared work."""
    id: str
    owner_id: str
    declared_task: Optional[str] = None
    duration_planned: int = 25  # minutes
    duration_actual: Optional[int] = None  # minutes
    check_in_frequency: int = 15  # minutes
    status: SessionStatus = SessionStatus.ACTIVE
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    ended_at: Optional[datetime] = None
    outcome: Optional[str] = None  # post-session reflection

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self.status in (SessionStatus.COMPLETED, SessionStatus.ABANDONED)


class SessionStartRequest(BaseModel):
    """Request body for starting a focus session."""
    declared_task: Optional[str] = None
    duration_planned: Optional[int] = Field(None, gt=0, le=24 * 60)
    check_in_frequency: Optional[int] = Field(None, gt=0, le=24 * 60)


class SessionStartResponse(BaseModel):
    session: FocusSession
    greeting: Optional[str] = None


class SessionEndRequest(BaseModel):
    outcome: Optional[str] = Field(None, max_length=5000)


class SessionHistory(BaseModel):
    sessions: List[FocusSession]
    total: int
    limit: int
    offset: int


class SessionSummary(BaseModel):
    """Compact view of a completed session for prompt context."""
    date: datetime
    task: str
    outcome: Optional[str] = None
    duration_minutes: int = 0


class ChatTurn(BaseModel):
    """One role-tagged message inside a session's history."""
    id: str
    session_id: str
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
