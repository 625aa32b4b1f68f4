"""
Session Protocol Handler - drives one websocket connection through

    UNAUTHENTICATED -> AUTHENTICATED -> JOINED <-> STREAMING
                                   ^------ leave --'

and any state -> CLOSED on disconnect.

Turns run as background tasks so the receive loop keeps reading while a reply
streams: a second ``message`` is rejected as busy, and a dropped connection is
noticed immediately and cancels forwarding through the turn's
``CancellationToken``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Set, Union

from ..core.errors import (
    CompanionError,
    GenerationFailure,
    ProtocolViolation,
    UnknownOwnerError,
    ValidationError,
)
from ..core.logging_config import LoggerAdapter
from ..core.server_context import ServerContext
from ..core.validation import validate_message_content
from ..llm.base import LLMMessage
from ..llm.gateway import CancellationToken
from ..utils.auth import validate_identity
from .events import (
    AuthenticatedEvent,
    ErrorEvent,
    JoinEvent,
    JoinedEvent,
    LeaveEvent,
    LeftEvent,
    ServerEvent,
    StreamChunkEvent,
    StreamEndEvent,
    StreamStartEvent,
    TurnEvent,
    parse_client_event,
)
from .state import ConnectionPhase, ConnectionRegistry, ConnectionState
from .transport import ConnectionClosed, Transport

logger = logging.getLogger(__name__)

AUTH_REQUIRED_MESSAGE = "Authentication required. Connect with ?token=xxx"
GENERATION_FAILED_MESSAGE = "Failed to generate response"


@dataclass
class TurnCheck:
    """Result of the pre-turn guard."""
    allowed: bool
    content: str = ""
    error: Optional[CompanionError] = None

    @classmethod
    def reject(cls, error: CompanionError) -> "TurnCheck":
        return cls(allowed=False, error=error)


class SessionProtocolHandler:
    """Owns the registry of live connections and runs the protocol for each."""

    def __init__(self, context: ServerContext):
        self.context = context
        self.settings = context.settings
        self.registry = ConnectionRegistry()
        self._turn_tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------ #
    # Connection lifecycle
    # ------------------------------------------------------------------ #

    async def serve(self, transport: Transport, token: Optional[str]) -> None:
        """Authenticate, then process frames until the peer disconnects."""
        state = await self.connect(transport, token)
        if state is None:
            return
        try:
            while state.phase != ConnectionPhase.CLOSED:
                try:
                    raw = await transport.receive_frame()
                except ConnectionClosed:
                    break
                await self.handle_frame(transport, state, raw)
        finally:
            self.disconnect(state)

    async def connect(self, transport: Transport, token: Optional[str]) -> Optional[ConnectionState]:
        """
        Authenticate a freshly opened transport.

        On failure an error event is sent and the transport is closed with the
        auth close code before this returns; no state is registered.
        """
        identity = await validate_identity(token, self.context.user_store)
        if identity is None:
            logger.info("Rejected unauthenticated websocket connection")
            try:
                await transport.send_json(ErrorEvent(error=AUTH_REQUIRED_MESSAGE, code="auth_required").to_wire())
            except ConnectionClosed:
                pass
            await transport.close(code=self.settings.ws_auth_close_code, reason="Authentication required")
            return None

        state = self.registry.add(ConnectionState(identity=identity, phase=ConnectionPhase.AUTHENTICATED))
        self._log(state).info("Websocket authenticated")
        await self._send(transport, state, AuthenticatedEvent(user=identity))
        return state

    def disconnect(self, state: ConnectionState) -> None:
        """Release everything owned by the connection. Safe to call twice."""
        if state.cancel_token is not None:
            state.cancel_token.cancel("connection closed")
        was_streaming = state.is_streaming
        state.phase = ConnectionPhase.CLOSED
        if self.registry.remove(state.connection_id) is not None:
            self._log(state).info(
                "Websocket closed",
                extra={"extra_fields": {"was_streaming": was_streaming}}
            )

    async def drain(self) -> None:
        """Wait for in-flight turns, including ones orphaned by a disconnect."""
        while self._turn_tasks:
            await asyncio.gather(*list(self._turn_tasks), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Frame dispatch
    # ------------------------------------------------------------------ #

    async def handle_frame(self, transport: Transport, state: ConnectionState, raw: Union[str, bytes, dict]) -> None:
        try:
            event = parse_client_event(raw)
            if isinstance(event, JoinEvent):
                await self.on_join(transport, state, event)
            elif isinstance(event, TurnEvent):
                await self.on_turn(transport, state, event)
            elif isinstance(event, LeaveEvent):
                await self.on_leave(transport, state)
            else:
                raise ProtocolViolation("Invalid message format", code="invalid_message")
        except (ProtocolViolation, ValidationError) as e:
            self._log(state).info(f"Rejected frame: {e.reason}", extra={"extra_fields": {"code": e.code}})
            await self._send(transport, state, ErrorEvent.from_error(e))

    def _reject_while_streaming(self, state: ConnectionState) -> None:
        if state.is_streaming:
            raise ProtocolViolation("A response is still streaming. Wait for it to finish.", code="busy")

    async def on_join(self, transport: Transport, state: ConnectionState, event: JoinEvent) -> None:
        if not event.session_id:
            raise ProtocolViolation("sessionId is required to join", code="session_id_required")
        self._reject_while_streaming(state)

        session = await self.context.session_store.find(event.session_id, state.user_id)
        if session is None:
            raise ProtocolViolation("Session not found", code="session_not_found")
        if not session.is_active:
            raise ProtocolViolation("Session is not active", code="session_not_active")

        state.bind(session.id)
        self._log(state).info("Joined session")
        await self._send(transport, state, JoinedEvent(session_id=session.id))

    async def on_leave(self, transport: Transport, state: ConnectionState) -> None:
        self._reject_while_streaming(state)
        previous = state.unbind()
        self._log(state).info("Left session", extra={"extra_fields": {"session_id": previous}})
        await self._send(transport, state, LeftEvent(session_id=previous))

    # ------------------------------------------------------------------ #
    # Turns
    # ------------------------------------------------------------------ #

    async def check_turn_allowed(self, state: ConnectionState, event: TurnEvent) -> TurnCheck:
        """Every precondition for accepting a turn, checked in one place."""
        if state.is_streaming:
            return TurnCheck.reject(
                ProtocolViolation("A response is still streaming. Wait for it to finish.", code="busy")
            )
        if state.phase != ConnectionPhase.JOINED or state.session_id is None:
            return TurnCheck.reject(
                ProtocolViolation("Not connected to a session. Send a join message first.", code="not_joined")
            )
        if not event.content:
            return TurnCheck.reject(ProtocolViolation("Message content is required", code="content_required"))
        try:
            content = validate_message_content(event.content, self.settings.max_message_length)
        except ValidationError as e:
            return TurnCheck.reject(e)

        # Status can change out-of-band between turns
        if not await self.context.session_store.is_active(state.session_id, state.user_id):
            return TurnCheck.reject(ProtocolViolation("Session is no longer active", code="session_not_active"))
        return TurnCheck(allowed=True, content=content)

    async def on_turn(self, transport: Transport, state: ConnectionState, event: TurnEvent) -> None:
        check = await self.check_turn_allowed(state, event)
        if not check.allowed:
            raise check.error

        session_id = state.session_id
        try:
            await self.context.chat_history.append_turn(state.user_id, session_id, "user", check.content)
        except CompanionError as e:
            self._log(state).error(f"Failed to persist user turn: {e.reason}")
            await self._send(transport, state, ErrorEvent(error="Failed to save message", code=e.code))
            return

        token = CancellationToken()
        state.cancel_token = token
        state.phase = ConnectionPhase.STREAMING
        task = asyncio.create_task(self._run_turn(transport, state, session_id, token))
        state.stream_task = task
        self._turn_tasks.add(task)
        task.add_done_callback(self._turn_tasks.discard)

    async def _run_turn(
        self,
        transport: Transport,
        state: ConnectionState,
        session_id: str,
        token: CancellationToken,
    ) -> None:
        log = self._log(state).bind(session_id=session_id)
        owner_id = state.user_id

        async def forward(fragment: str) -> None:
            await self._send(transport, state, StreamChunkEvent(content=fragment), token)

        try:
            if not await self._send(transport, state, StreamStartEvent(), token):
                log.info("Connection closed before reply started")
                return

            system_prompt = await self.context.assembler.render(owner_id, session_id)
            history = await self.context.chat_history.list_turns(owner_id, session_id)
            messages = [LLMMessage(role=turn.role, content=turn.content) for turn in history]
            if token.cancelled:
                log.info("Connection closed before generation started")
                return

            result = await self.context.gateway.stream_reply(system_prompt, messages, forward, token)
            if result.cancelled or token.cancelled:
                log.info(
                    "Discarded reply for closed connection",
                    extra={"extra_fields": {"fragments": result.fragments}}
                )
                return

            # Persisted even if the session ended mid-stream
            await self.context.chat_history.append_turn(owner_id, session_id, "assistant", result.text)
            self._end_stream(state, token)
            log.info(
                "Reply streamed",
                extra={"extra_fields": {
                    "fragments": result.fragments,
                    "content_length": len(result.text),
                    "usage": result.usage,
                }}
            )
            await self._send(transport, state, StreamEndEvent(content=result.text), token)
        except UnknownOwnerError as e:
            log.error(f"Context assembly failed, unknown owner: {e.owner_id}")
            await self._fail_turn(transport, state, token)
        except GenerationFailure as e:
            log.error(f"Generation failed ({e.kind}): {e.reason}")
            await self._fail_turn(transport, state, token)
        except CompanionError as e:
            log.error(f"Turn failed: {e.reason}", extra={"extra_fields": {"code": e.code}})
            await self._fail_turn(transport, state, token)
        except Exception:
            log.exception("Unexpected error while streaming reply")
            await self._fail_turn(transport, state, token)
        finally:
            self._end_stream(state, token)

    def _end_stream(self, state: ConnectionState, token: CancellationToken) -> None:
        """Return to JOINED, unless the connection has moved on."""
        if state.cancel_token is not token:
            return
        state.cancel_token = None
        state.stream_task = None
        if state.phase == ConnectionPhase.STREAMING:
            state.phase = ConnectionPhase.JOINED

    async def _fail_turn(self, transport: Transport, state: ConnectionState, token: CancellationToken) -> None:
        self._end_stream(state, token)
        if not token.cancelled:
            await self._send(
                transport, state, ErrorEvent(error=GENERATION_FAILED_MESSAGE, code="generation_failed"), token
            )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _send(
        self,
        transport: Transport,
        state: ConnectionState,
        event: ServerEvent,
        token: Optional[CancellationToken] = None,
    ) -> bool:
        """Send one event; a closed peer cancels the turn instead of raising."""
        if state.phase == ConnectionPhase.CLOSED or (token is not None and token.cancelled):
            return False
        try:
            await transport.send_json(event.to_wire())
            return True
        except ConnectionClosed:
            if token is not None:
                token.cancel("send failed")
            return False

    def _log(self, state: ConnectionState) -> LoggerAdapter:
        return LoggerAdapter(logger, {
            "connection_id": state.connection_id,
            "user_id": state.user_id,
            "session_id": state.session_id,
        })
