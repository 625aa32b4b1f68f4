"""
User Store - Owner profiles, one JSON document per user.
"""

import logging
import uuid
from typing import Optional, List

from ..models import UserProfile, UserProfileUpdate
from .base_store import BaseStore, is_safe_id

logger = logging.getLogger(__name__)


class UserStore(BaseStore):
    """Reads and writes ``users/{user_id}.json``."""

    def _user_path(self, user_id: str) -> str:
        return f"users/{user_id}.json"

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        """
        Get a user profile by id.

        Args:
            user_id: User ID

        Returns:
            Optional[UserProfile]: Profile or None if not found
        """
        if not is_safe_id(user_id):
            return None
        data = await self._read_json(self._user_path(user_id))
        if data is None:
            return None
        return UserProfile.model_validate(data)

    async def create_user(
        self,
        name: str,
        email: Optional[str] = None,
        work_context: Optional[str] = None,
        interests: Optional[List[str]] = None,
        user_id: Optional[str] = None,
    ) -> UserProfile:
        """Create and persist a new owner profile."""
        user = UserProfile(
            id=user_id or str(uuid.uuid4()),
            name=name,
            email=email,
            work_context=work_context,
            interests=interests or [],
        )
        await self._write_json(self._user_path(user.id), user.model_dump(mode="json"))
        logger.info(f"Created user {user.id}")
        return user

    async def update_profile(self, user_id: str, updates: UserProfileUpdate) -> Optional[UserProfile]:
        """
        Apply a partial profile update.

        Returns:
            Optional[UserProfile]: Updated profile or None if the user doesn't exist
        """
        async with self.owner_lock(user_id):
            user = await self.get_user(user_id)
            if user is None:
                return None
            changes = updates.model_dump(exclude_unset=True, exclude_none=True)
            user = user.model_copy(update=changes)
            await self._write_json(self._user_path(user_id), user.model_dump(mode="json"))
            return user
