"""
Shared router dependencies and domain-error mapping.
"""

from fastapi import HTTPException, Request, status

from ..core.errors import (
    CompanionError,
    InvalidSessionTransition,
    MemoryNotFound,
    SessionAlreadyActive,
    SessionNotActive,
    SessionNotFound,
    UnknownOwnerError,
    ValidationError,
)
from ..core.server_context import ServerContext


def get_context(request: Request) -> ServerContext:
    return request.app.state.context


def http_error(exc: CompanionError) -> HTTPException:
    """Translate a domain error into the matching HTTP status."""
    if isinstance(exc, (SessionNotFound, MemoryNotFound, UnknownOwnerError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.reason)
    if isinstance(exc, SessionAlreadyActive):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": exc.reason, "sessionId": exc.active_session_id},
        )
    if isinstance(exc, (ValidationError, SessionNotActive, InvalidSessionTransition)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.reason)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.reason)
