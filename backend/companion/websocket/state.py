"""
Per-connection protocol state and the registry that owns it.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from ..llm.gateway import CancellationToken
from ..models.user import Identity


class ConnectionPhase(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    JOINED = "joined"
    STREAMING = "streaming"
    CLOSED = "closed"


@dataclass
class ConnectionState:
    """Everything the handler knows about one live connection."""
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    identity: Optional[Identity] = None
    session_id: Optional[str] = None
    phase: ConnectionPhase = ConnectionPhase.UNAUTHENTICATED
    stream_task: Optional[asyncio.Task] = None
    cancel_token: Optional[CancellationToken] = None

    @property
    def user_id(self) -> Optional[str]:
        return self.identity.id if self.identity else None

    @property
    def is_streaming(self) -> bool:
        return self.phase == ConnectionPhase.STREAMING

    def bind(self, session_id: str) -> None:
        self.session_id = session_id
        self.phase = ConnectionPhase.JOINED

    def unbind(self) -> Optional[str]:
        previous, self.session_id = self.session_id, None
        self.phase = ConnectionPhase.AUTHENTICATED
        return previous


class ConnectionRegistry:
    """Connection id -> state. Entries must be removed when the connection closes."""

    def __init__(self):
        self._states: Dict[str, ConnectionState] = {}

    def add(self, state: ConnectionState) -> ConnectionState:
        self._states[state.connection_id] = state
        return state

    def get(self, connection_id: str) -> Optional[ConnectionState]:
        return self._states.get(connection_id)

    def remove(self, connection_id: str) -> Optional[ConnectionState]:
        return self._states.pop(connection_id, None)

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._states
