"""Websocket protocol: wire events, connection state and the session handler."""

from .handler import SessionProtocolHandler
from .transport import ConnectionClosed, WebSocketTransport

__all__ = ['SessionProtocolHandler', 'ConnectionClosed', 'WebSocketTransport']
