"""
Shared plumbing for the keyed-row stores.

Rows are JSON documents addressed by relative path. Each owner gets its own
subtree (``users/{owner_id}/...``) and its own asyncio lock, so read-modify-write
cycles for one owner are serialized without blocking other owners.
"""

import asyncio
import json
import re
import weakref
from typing import Any, Optional

from ..core.errors import StorageError
from .interface import StorageInterface

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def is_safe_id(value: Optional[str]) -> bool:
    """Ids become path segments; anything else is treated as not found."""
    return bool(value) and isinstance(value, str) and bool(_SAFE_ID.match(value))


class BaseStore:
    """Base class holding the storage backend and per-owner locks."""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        # Entries live only while some coroutine holds or awaits the lock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def owner_lock(self, owner_id: str) -> asyncio.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[owner_id] = lock
        return lock

    @staticmethod
    def owner_path(owner_id: str) -> str:
        return f"users/{owner_id}"

    async def _read_json(self, path: str) -> Optional[Any]:
        content = await self.storage.load(path)
        if content is None:
            return None
        return json.loads(content.decode("utf-8"))

    async def _write_json(self, path: str, data: Any) -> None:
        content = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        if not await self.storage.save(path, content):
            raise StorageError(f"Failed to write {path}")
