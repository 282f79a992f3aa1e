"""
Terminal Session

Bridges one client connection to one terminal process.

Every event from either side (process output, process exit, inbound client
frame, connection close) is pushed onto a single queue and handled by one
pump task, so each stream is processed in the order it was produced.
"""

import asyncio
from datetime import datetime
from enum import Enum
from typing import Optional

from tools.logger import log_debug, log_error, log_info, log_warning
from use_cases.terminal_session.interfaces import (
    Connection,
    ConnectionState,
    ProcessHandle,
)
from use_cases.terminal_session.messages import (
    INITIALIZE_DOCKER_IMAGE,
    INITIALIZE_DOCKER_IMAGE_COMMANDS,
    MalformedMessageError,
    Message,
    MessageType,
    close_message,
    decode_message,
    terminal_exit,
    terminal_output,
)

TERMINATION_SIGNAL = "SIGHUP"


class SessionState(Enum):
    """Terminal session states."""
    ACTIVE = "active"             # Forwarding in both directions
    TERMINATING = "terminating"   # Close or exit observed, releasing both sides
    TERMINATED = "terminated"     # Connection and process released


class _Event(Enum):
    OUTPUT = "output"
    EXIT = "exit"
    INBOUND = "inbound"
    CLOSE = "close"


class Session:
    """
    Binds a Connection to a ProcessHandle.

    The process is spawned by the registry before the session is built, so
    no client frame is ever handled without a process behind it. Teardown
    happens once, on whichever of process exit or connection close is
    processed first; later signals are ignored.
    """

    def __init__(self, connection: Connection, process: ProcessHandle, registry):
        self.connection = connection
        self.process = process
        self.connection_id = connection.connection_id
        self.state = SessionState.ACTIVE
        self.created_at = datetime.now()

        self._registry = registry
        self._events: asyncio.Queue = asyncio.Queue()
        self._pump_task: Optional[asyncio.Task] = None
        self._terminated = asyncio.Event()
        self._exit_seen = False
        self._close_seen = False

    def start(self):
        """Subscribe to both sides and start processing events."""
        if self._pump_task is not None:
            return

        self.process.on("data", self._on_process_data)
        self.process.on("exit", self._on_process_exit)
        self.connection.on("message", self._on_connection_message)
        self.connection.on("close", self._on_connection_close)

        self._pump_task = asyncio.create_task(self._pump())
        self.process.start()
        log_info(f"Session {self.connection_id} bound to pid {self.process.pid}")

    # Event sources

    def _enqueue(self, kind: _Event, payload=None):
        if self.state is SessionState.TERMINATED:
            log_debug(f"Session {self.connection_id} dropped {kind.value} event after termination")
            return
        self._events.put_nowait((kind, payload))

    def _on_process_data(self, chunk: str):
        self._enqueue(_Event.OUTPUT, chunk)

    def _on_process_exit(self, code: int):
        if self._exit_seen:
            log_debug(f"Ignoring repeated exit notification for pid {self.process.pid}")
            return
        self._exit_seen = True
        self._enqueue(_Event.EXIT, code)

    def _on_connection_message(self, raw):
        self._enqueue(_Event.INBOUND, raw)

    def _on_connection_close(self):
        if self._close_seen:
            return
        self._close_seen = True
        self.connection.mark_closed()
        self._enqueue(_Event.CLOSE, close_message())

    # Pump

    async def _pump(self):
        try:
            while self.state is not SessionState.TERMINATED:
                kind, payload = await self._events.get()
                try:
                    await self._dispatch(kind, payload)
                except Exception as e:
                    log_error(f"Error handling {kind.value} event in session {self.connection_id}: {e}")
                finally:
                    self._events.task_done()
        finally:
            while not self._events.empty():
                self._events.get_nowait()
                self._events.task_done()

    async def _dispatch(self, kind: _Event, payload):
        if self.state is not SessionState.ACTIVE:
            log_debug(f"Session {self.connection_id} ignoring {kind.value} in state {self.state.value}")
            return

        if kind is _Event.OUTPUT:
            await self._send(terminal_output(payload))
        elif kind is _Event.INBOUND:
            self._handle_inbound(payload)
        elif kind is _Event.EXIT:
            await self._terminate_on_exit(payload)
        elif kind is _Event.CLOSE:
            await self._terminate_on_close(payload)

    # Client -> process

    def _handle_inbound(self, raw):
        try:
            message = decode_message(raw)
        except MalformedMessageError as e:
            log_warning(f"Dropping malformed message in session {self.connection_id}: {e.message}")
            return

        if message.type is MessageType.DATA:
            self._handle_data(message.data)
        elif message.type is MessageType.RESIZE:
            self._resize(message.data["cols"], message.data["rows"])

    def _handle_data(self, data: str):
        if data == INITIALIZE_DOCKER_IMAGE:
            log_info(f"Initializing docker image from session {self.connection_id}")
            for command in INITIALIZE_DOCKER_IMAGE_COMMANDS:
                if not self._write(command):
                    break
            return
        self._write(data)

    def _write(self, text: str) -> bool:
        try:
            self.process.write(text)
            return True
        except OSError as e:
            log_error(f"Error writing to pid {self.process.pid}: {e}")
            return False

    def _resize(self, cols: int, rows: int):
        try:
            self.process.resize(cols, rows)
        except OSError as e:
            log_error(f"Error resizing pid {self.process.pid} to {cols}x{rows}: {e}")

    # Process -> client

    async def _send(self, message: Message):
        if self.connection.state is not ConnectionState.OPEN:
            return
        await self.connection.send(message)

    # Teardown

    def _signal_process(self):
        try:
            self.process.kill(TERMINATION_SIGNAL)
        except Exception as e:
            log_error(f"Error signalling pid {self.process.pid}: {e}")

    async def _terminate_on_exit(self, code: int):
        self.state = SessionState.TERMINATING
        log_info(f"Process {self.process.pid} of session {self.connection_id} exited with code {code}")

        self._signal_process()
        await self._send(terminal_exit(code))

        try:
            await self.connection.close()
        except Exception as e:
            log_debug(f"Error closing connection {self.connection_id}: {e}")

        await self._registry.remove_session(self.connection_id, self)
        self._finish()

    async def _terminate_on_close(self, message: Message):
        self.state = SessionState.TERMINATING
        log_info(f"Connection {self.connection_id} closed ({message.to_dict()})")

        terminated = await self._registry.handle_connection_closed(self.connection_id)
        if self not in terminated:
            # The registry no longer tracked this session
            self._signal_process()
        self._finish()

    def _finish(self):
        self.process.remove_listener("data", self._on_process_data)
        self.process.remove_listener("exit", self._on_process_exit)
        self.connection.remove_listener("message", self._on_connection_message)
        self.connection.remove_listener("close", self._on_connection_close)

        self.state = SessionState.TERMINATED
        self._terminated.set()
        log_info(f"Session {self.connection_id} terminated")

    # Introspection

    async def wait_terminated(self):
        """Block until both sides of the session are released."""
        await self._terminated.wait()

    async def flush(self):
        """Wait until every event enqueued so far has been handled."""
        await self._events.join()

    @property
    def is_terminated(self) -> bool:
        return self.state is SessionState.TERMINATED

    def describe(self) -> dict:
        return {
            "pid": self.process.pid,
            "state": self.state.value,
            "cols": self.process.cols,
            "rows": self.process.rows,
            "created_at": self.created_at.isoformat(),
        }
