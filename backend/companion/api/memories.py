"""
Memory API endpoints - Manage the owner's long-lived personal context.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from ..core.errors import CompanionError
from ..core.server_context import ServerContext
from ..models import MemoryCreate, MemoryItem, MemoryStats, MemoryUpdate
from ..services.memories import MemoryService
from ..utils.auth import get_current_user_id
from .deps import get_context, http_error

router = APIRouter(prefix="/memories", tags=["memories"])


class BulkMemoryCreate(BaseModel):
    memories: List[MemoryCreate]


@router.get("", response_model=List[MemoryItem])
async def list_memories(
    category: Optional[str] = None,
    search: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    """All memories, optionally filtered by ``category`` or ``search``."""
    try:
        return await context.memories.list(user_id, category=category, search=search)
    except CompanionError as e:
        raise http_error(e)


@router.post("", response_model=MemoryItem, status_code=status.HTTP_201_CREATED)
async def create_memory(
    request: MemoryCreate,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    try:
        return await context.memories.create(user_id, request)
    except CompanionError as e:
        raise http_error(e)


@router.post("/bulk", response_model=List[MemoryItem], status_code=status.HTTP_201_CREATED)
async def create_memories(
    request: BulkMemoryCreate,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    try:
        return await context.memories.create_many(user_id, request.memories)
    except CompanionError as e:
        raise http_error(e)


@router.get("/stats", response_model=MemoryStats)
async def get_memory_stats(
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    return await context.memories.stats(user_id)


@router.get("/categories")
async def get_memory_categories():
    """Valid categories with a short description of each."""
    return MemoryService.categories()


@router.get("/search", response_model=List[MemoryItem])
async def search_memories(
    q: str = Query(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    """Case-insensitive substring search over memory content."""
    try:
        return await context.memories.search(user_id, q)
    except CompanionError as e:
        raise http_error(e)


@router.get("/{memory_id}", response_model=MemoryItem)
async def get_memory(
    memory_id: str,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    try:
        return await context.memories.get(user_id, memory_id)
    except CompanionError as e:
        raise http_error(e)


@router.patch("/{memory_id}", response_model=MemoryItem)
async def update_memory(
    memory_id: str,
    request: MemoryUpdate,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    try:
        return await context.memories.update(user_id, memory_id, request)
    except CompanionError as e:
        raise http_error(e)


@router.delete("/{memory_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_memory(
    memory_id: str,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    try:
        await context.memories.delete(user_id, memory_id)
    except CompanionError as e:
        raise http_error(e)
