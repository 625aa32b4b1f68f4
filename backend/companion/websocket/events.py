"""
Wire events for the ``/ws`` protocol.

Each direction is a closed set of tagged variants discriminated on ``type``.
Client frames are parsed into exactly one of ``JoinEvent``, ``TurnEvent`` or
``LeaveEvent``; anything else becomes a ``ProtocolViolation``.
"""

import json
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..core.errors import ProtocolViolation
from ..models.user import Identity


# ============ Client -> Server ============

class ClientEvent(BaseModel):
    class Config:
        populate_by_name = True
        extra = "ignore"


class JoinEvent(ClientEvent):
    """Bind the connection to a focus session."""
    type: Literal["join"] = "join"
    session_id: Optional[str] = Field(None, alias="sessionId")


class TurnEvent(ClientEvent):
    """Submit one chat turn."""
    type: Literal["message"] = "message"
    content: Optional[str] = None


class LeaveEvent(ClientEvent):
    """Unbind from the current session."""
    type: Literal["leave"] = "leave"


ClientMessage = Annotated[Union[JoinEvent, TurnEvent, LeaveEvent], Field(discriminator="type")]
CLIENT_EVENT_TYPES = ("join", "message", "leave")

_client_adapter = TypeAdapter(ClientMessage)


def parse_client_event(raw: Union[str, bytes, Dict[str, Any]]) -> Union[JoinEvent, TurnEvent, LeaveEvent]:
    """
    Parse one inbound frame.

    Raises:
        ProtocolViolation: ``invalid_message`` for undecodable or badly shaped
            frames, ``unknown_type`` for a well-formed frame with a type
            outside the client variant set
    """
    data = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ProtocolViolation("Invalid message format", code="invalid_message")

    if not isinstance(data, dict):
        raise ProtocolViolation("Invalid message format", code="invalid_message")

    event_type = data.get("type")
    if event_type not in CLIENT_EVENT_TYPES:
        raise ProtocolViolation(f"Unknown message type: {event_type}", code="unknown_type")

    try:
        return _client_adapter.validate_python(data)
    except PydanticValidationError:
        raise ProtocolViolation("Invalid message format", code="invalid_message")


# ============ Server -> Client ============

class ServerEvent(BaseModel):
    class Config:
        populate_by_name = True

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AuthenticatedEvent(ServerEvent):
    type: Literal["authenticated"] = "authenticated"
    user: Identity
    content: str = "Connected and authenticated"


class JoinedEvent(ServerEvent):
    type: Literal["join"] = "join"
    session_id: str = Field(..., alias="sessionId")
    content: str = "Connected to session"


class StreamStartEvent(ServerEvent):
    type: Literal["stream_start"] = "stream_start"


class StreamChunkEvent(ServerEvent):
    type: Literal["stream_chunk"] = "stream_chunk"
    content: str


class StreamEndEvent(ServerEvent):
    """Full reply; only sent after the assistant turn is persisted."""
    type: Literal["stream_end"] = "stream_end"
    content: str


class LeftEvent(ServerEvent):
    type: Literal["leave"] = "leave"
    session_id: Optional[str] = Field(None, alias="sessionId")
    content: str = "Disconnected from session"


class ErrorEvent(ServerEvent):
    type: Literal["error"] = "error"
    error: str
    code: Optional[str] = None

    @classmethod
    def from_error(cls, exc: Exception, default_code: str = "error") -> "ErrorEvent":
        return cls(error=getattr(exc, "reason", str(exc)), code=getattr(exc, "code", default_code))


ServerMessage = Union[
    AuthenticatedEvent,
    JoinedEvent,
    StreamStartEvent,
    StreamChunkEvent,
    StreamEndEvent,
    LeftEvent,
    ErrorEvent,
]
