"""
Storage Interface - Abstract base class for all storage implementations.
The keyed-row stores (users, sessions, chat history, memories) only talk to
this interface, so a database-backed implementation can replace LocalStorage.
"""

from abc import ABC, abstractmethod
from typing import Optional, List


class StorageInterface(ABC):
    """Contract for blob-style storage addressed by relative path."""

    @abstractmethod
    async def save(self, path: str, content: bytes | str) -> bool:
        """
        Save content to the specified path, replacing any previous content.

        Args:
            path: Relative path (e.g., "users/123/memories.json")
            content: Content to save (bytes or str)

        Returns:
            bool: True if save was successful, False otherwise
        """

    @abstractmethod
    async def load(self, path: str) -> Optional[bytes]:
        """
        Load content from the specified path.

        Returns:
            Optional[bytes]: File content, or None if the path doesn't exist
        """

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check whether content exists at the specified path."""

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete content at the specified path.

        Returns:
            bool: True if something was deleted
        """

    @abstractmethod
    async def list(self, path: str, pattern: Optional[str] = None) -> List[str]:
        """
        List files directly inside a directory.

        Args:
            path: Directory path to list
            pattern: Optional glob pattern to filter files (e.g., "*.json")

        Returns:
            List[str]: Sorted relative paths
        """

    @abstractmethod
    async def append(self, path: str, content: str) -> bool:
        """
        Append content to a file, creating it if needed.

        Returns:
            bool: True if append was successful
        """
