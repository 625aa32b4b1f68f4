"""API module."""

from .sessions import router as sessions_router
from .memories import router as memories_router
from .users import router as users_router

__all__ = ['sessions_router', 'memories_router', 'users_router']
