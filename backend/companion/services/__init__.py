"""Services module - session lifecycle and memory management."""

from .sessions import SessionService
from .memories import MemoryService

__all__ = ['SessionService', 'MemoryService']
