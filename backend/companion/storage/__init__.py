"""Storage module - storage backends and the keyed-row stores built on them."""

from .interface import StorageInterface
from .local_storage import LocalStorage
from .user_store import UserStore
from .session_store import SessionStore
from .chat_history import ChatHistory
from .memory_store import MemoryStore

__all__ = [
    'StorageInterface', 'LocalStorage',
    'UserStore', 'SessionStore', 'ChatHistory', 'MemoryStore',
]
