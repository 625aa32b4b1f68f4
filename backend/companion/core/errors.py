"""
Error taxonomy shared by the protocol handler, services and HTTP routers.

Every error carries a stable ``code`` (machine readable, safe to branch on)
and a human-readable ``reason`` that is sent to clients verbatim.
"""

from typing import Optional


class CompanionError(Exception):
    """Base class for all domain errors."""

    code: str = "error"

    def __init__(self, reason: str, code: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return self.reason


class AuthenticationError(CompanionError):
    """Missing, invalid or expired token. Fatal to a connection."""

    code = "auth_required"


class ProtocolViolation(CompanionError):
    """Illegal transition for the current connection state."""

    code = "protocol_violation"


class ValidationError(CompanionError):
    """Oversized or malformed input, rejected before any state mutation."""

    code = "invalid_input"


class GenerationFailure(CompanionError):
    """
    The generation call failed.

    ``kind`` classifies the cause: timeout, rate_limited, unauthorized,
    unavailable, network, provider_error or unknown_owner.
    """

    code = "generation_failed"

    def __init__(self, reason: str, kind: str = "provider_error"):
        super().__init__(reason)
        self.kind = kind


class UnknownOwnerError(CompanionError):
    """The context assembler could not resolve the owner record."""

    code = "unknown_owner"

    def __init__(self, owner_id: str):
        super().__init__(f"User not found: {owner_id}")
        self.owner_id = owner_id


class SessionNotFound(CompanionError):
    code = "session_not_found"

    def __init__(self, reason: str = "Session not found"):
        super().__init__(reason)


class SessionNotActive(CompanionError):
    code = "session_not_active"

    def __init__(self, reason: str = "Session is not active"):
        super().__init__(reason)


class SessionAlreadyActive(CompanionError):
    """The owner already has an active focus session."""

    code = "session_already_active"

    def __init__(self, active_session_id: str):
        super().__init__("You already have an active session")
        self.active_session_id = active_session_id


class InvalidSessionTransition(CompanionError):
    code = "invalid_transition"


class MemoryNotFound(CompanionError):
    code = "memory_not_found"

    def __init__(self, reason: str = "Memory not found"):
        super().__init__(reason)


class StorageError(CompanionError):
    """A write to the backing store did not complete."""

    code = "storage_error"
