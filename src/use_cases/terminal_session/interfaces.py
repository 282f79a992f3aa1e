"""
Capability interfaces consumed by a terminal session.

A session never depends on the websocket or PTY implementation directly,
only on these two protocols. Both sides are pyee event emitters.
"""

from enum import Enum
from typing import Any, Callable, Protocol, Union

from use_cases.terminal_session.messages import Message


class ConnectionState(Enum):
    OPEN = "open"
    CLOSED = "closed"


class Connection(Protocol):
    """
    A duplex message channel to one client.

    Events:
        "message" (raw: str | bytes): an inbound frame
        "close" (): the client went away; emitted once
    """

    connection_id: str

    @property
    def state(self) -> ConnectionState: ...

    async def send(self, message: Message) -> None: ...

    def mark_closed(self) -> None: ...

    async def close(self) -> None: ...

    def on(self, event: str, f: Callable = ...) -> Any: ...

    def remove_listener(self, event: str, f: Callable) -> None: ...


class ProcessHandle(Protocol):
    """
    A terminal process driven through a pseudo-terminal.

    Events:
        "data" (chunk: str): output produced by the process
        "exit" (code: int): the process terminated

    No event is emitted before start() is called.
    """

    pid: int
    cols: int
    rows: int

    def start(self) -> None: ...

    def write(self, text: str) -> None: ...

    def resize(self, cols: int, rows: int) -> None: ...

    def kill(self, sig: Union[str, int] = "SIGHUP") -> None: ...

    def on(self, event: str, f: Callable = ...) -> Any: ...

    def remove_listener(self, event: str, f: Callable) -> None: ...
