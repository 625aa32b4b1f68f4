"""
User Models - Owner profile and authenticated identity.
"""

from datetime import datetime, timezone
from typing import Optional, List
from pydantic import BaseModel, EmailStr, Field


class Identity(BaseModel):
    """Minimal identity attached to an authenticated connection."""
    id: str
    name: str
    email: Optional[str] = None


class UserProfile(BaseModel):
    """Owner profile used to personalize the companion."""
    id: str
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    work_context: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def identity(self) -> Identity:
        return Identity(id=self.id, name=self.name, email=self.email)


class UserProfileUpdate(BaseModel):
    """Profile update model - all fields optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    work_context: Optional[str] = Field(None, max_length=5000)
    interests: Optional[List[str]] = None


class TokenData(BaseModel):
    """Token payload data."""
    user_id: Optional[str] = None


class UserCreate(BaseModel):
    """Registration payload for a new owner."""
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    work_context: Optional[str] = Field(None, max_length=5000)
    interests: List[str] = Field(default_factory=list)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserProfile
