"""
Session API endpoints - Start, inspect and finish focus sessions.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..core.errors import CompanionError
from ..core.server_context import ServerContext
from ..models import (
    ChatTurn,
    FocusSession,
    SessionEndRequest,
    SessionHistory,
    SessionStartRequest,
    SessionStartResponse,
)
from ..utils.auth import get_current_user_id
from .deps import get_context, http_error

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("/start", response_model=SessionStartResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    request: SessionStartRequest,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    """
    Begin a new focus session.

    The response carries the companion's greeting, or ``null`` when it could
    not be generated. Returns 409 with the existing ``sessionId`` when a
    session is already active.
    """
    try:
        return await context.sessions.start(user_id, request)
    except CompanionError as e:
        raise http_error(e)


@router.get("/active", response_model=FocusSession)
async def get_active_session(
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    session = await context.sessions.get_active(user_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active session")
    return session


@router.get("/history", response_model=SessionHistory)
async def get_session_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    """Sessions newest first."""
    return await context.sessions.history(user_id, limit=limit, offset=offset)


@router.get("/{session_id}", response_model=FocusSession)
async def get_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    try:
        return await context.sessions.get(user_id, session_id)
    except CompanionError as e:
        raise http_error(e)


@router.get("/{session_id}/messages", response_model=List[ChatTurn])
async def get_session_messages(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    try:
        return await context.sessions.messages(user_id, session_id)
    except CompanionError as e:
        raise http_error(e)


@router.post("/{session_id}/end", response_model=FocusSession)
async def end_session(
    session_id: str,
    request: Optional[SessionEndRequest] = None,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    """End a focus session with an optional reflection."""
    try:
        return await context.sessions.end(user_id, session_id, request.outcome if request else None)
    except CompanionError as e:
        raise http_error(e)


@router.post("/{session_id}/abandon", response_model=FocusSession)
async def abandon_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    try:
        return await context.sessions.abandon(user_id, session_id)
    except CompanionError as e:
        raise http_error(e)


@router.post("/{session_id}/resume", response_model=FocusSession)
async def resume_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    """Reopen a completed or abandoned session."""
    try:
        return await context.sessions.resume(user_id, session_id)
    except CompanionError as e:
        raise http_error(e)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    context: ServerContext = Depends(get_context),
):
    """Delete a session together with its chat history."""
    if not await context.sessions.purge(user_id, session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
