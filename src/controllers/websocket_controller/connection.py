"""
WebSocket Connection

Adapts a Quart websocket to the Connection interface used by terminal
sessions: inbound frames become "message" events, a client disconnect
becomes a single "close" event.
"""

import uuid
from typing import Optional

from pyee.asyncio import AsyncIOEventEmitter
from tools.logger import log_debug, log_info
from use_cases.terminal_session.interfaces import ConnectionState
from use_cases.terminal_session.messages import Message, encode_message

NORMAL_CLOSURE = 1000
INTERNAL_ERROR = 1011


class WebSocketConnection(AsyncIOEventEmitter):

    def __init__(self, websocket, connection_id: Optional[str] = None):
        """
        Args:
            websocket: Quart websocket object (not the context-local proxy)
            connection_id: Identity for the registry, random if omitted
        """
        super().__init__()
        self.websocket = websocket
        self.connection_id = connection_id or uuid.uuid4().hex
        self._state = ConnectionState.OPEN
        self._close_emitted = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    async def accept(self):
        await self.websocket.accept()

    async def send(self, message: Message):
        """Send a message to the client, dropped when the socket is not open."""
        if not self.is_open:
            log_debug(f"Cannot send message, connection {self.connection_id} is {self._state.value}")
            return

        try:
            await self.websocket.send(encode_message(message))
        except Exception as e:
            log_debug(f"Error sending to connection {self.connection_id}: {e}")
            self.mark_closed()

    async def receive_loop(self):
        """Emit every inbound frame until the socket stops being open."""
        while self.is_open:
            raw = await self.websocket.receive()
            self.emit("message", raw)

    def mark_closed(self):
        self._state = ConnectionState.CLOSED

    def handle_disconnect(self):
        """The client went away. Emits "close" at most once."""
        self.mark_closed()
        if self._close_emitted:
            return
        self._close_emitted = True
        log_info(f"Socket connection {self.connection_id} closed")
        self.emit("close")

    async def close(self, code: int = NORMAL_CLOSURE):
        """Close the socket from the server side."""
        if not self.is_open:
            return
        self.mark_closed()
        try:
            await self.websocket.close(code)
        except Exception as e:
            log_debug(f"Error closing connection {self.connection_id}: {e}")
