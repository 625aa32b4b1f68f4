"""Models module."""

from .user import Identity, UserProfile, UserProfileUpdate, UserCreate, Token, TokenData
from .session import (
    SessionStatus, FocusSession, SessionStartRequest, SessionStartResponse,
    SessionEndRequest, SessionHistory, SessionSummary, ChatTurn,
)
from .memory import MemoryItem, MemoryCreate, MemoryUpdate, MemoryStats

__all__ = [
    'Identity', 'UserProfile', 'UserProfileUpdate', 'UserCreate', 'Token', 'TokenData',
    'SessionStatus', 'FocusSession', 'SessionStartRequest', 'SessionStartResponse',
    'SessionEndRequest', 'SessionHistory', 'SessionSummary', 'ChatTurn',
    'MemoryItem', 'MemoryCreate', 'MemoryUpdate', 'MemoryStats',
]
