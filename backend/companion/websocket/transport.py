"""
Transport seam between the protocol handler and a concrete socket.
"""

from typing import Any, Dict, Protocol, Union

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState


class ConnectionClosed(Exception):
    """The peer is gone; nothing more can be sent or received."""


class Transport(Protocol):
    async def send_json(self, data: Dict[str, Any]) -> None: ...

    async def receive_frame(self) -> Union[str, bytes]: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class WebSocketTransport:
    """Adapts a Starlette ``WebSocket`` to ``Transport``."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send_json(self, data: Dict[str, Any]) -> None:
        if self.websocket.application_state != WebSocketState.CONNECTED:
            raise ConnectionClosed()
        try:
            await self.websocket.send_json(data)
        except (WebSocketDisconnect, RuntimeError) as e:
            raise ConnectionClosed() from e

    async def receive_frame(self) -> Union[str, bytes]:
        """Next text or binary frame; decoding is left to the protocol layer."""
        try:
            message = await self.websocket.receive()
        except (WebSocketDisconnect, RuntimeError) as e:
            raise ConnectionClosed() from e
        if message["type"] == "websocket.disconnect":
            raise ConnectionClosed()
        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes") or b""

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.websocket.application_state == WebSocketState.CONNECTED:
            await self.websocket.close(code=code, reason=reason)
