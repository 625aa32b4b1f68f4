"""
User API endpoints - Registration and the owner's own profile.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from ..core.server_context import ServerContext
from ..models import Token, UserCreate, UserProfile, UserProfileUpdate
from ..utils.auth import create_access_token, get_current_user_id
from .deps import get_context

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    context: ServerContext = Depends(get_context),
):
    """
    Create an owner profile and issue an access token for it.

    The token is what websocket clients pass as ``?token=``.
    """
    user = await context.user_store.create_user(
        name=user_data.name,
        email=user_data.email,
        work_context=user_data.work_context,
        interests=user_data.interests,
    )
    return Token(access_token=create_access_token({"sub": user.id}), user=user)


@router.get("/me", response_model=UserProfile)
async def get_me(
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    user = await context.user_store.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.patch("/me", response_model=UserProfile)
async def update_me(
    updates: UserProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    """Update name, work context or interests."""
    user = await context.user_store.update_profile(user_id, updates)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
