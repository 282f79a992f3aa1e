"""Shared test fixtures for the terminal gateway."""

from __future__ import annotations

import itertools
import os
import tempfile

# The logger creates its directories on import
os.environ.setdefault("TERMINAL_GATEWAY_LOG_DIR", tempfile.mkdtemp(prefix="terminal-gateway-"))

import pytest
from pyee.asyncio import AsyncIOEventEmitter

from tools.config import ClosePolicy
from use_cases.terminal_session import ConnectionState, SessionRegistry

_pids = itertools.count(1000)


class FakeConnection(AsyncIOEventEmitter):
    """In-memory Connection recording every message sent to the client."""

    def __init__(self, connection_id: str) -> None:
        super().__init__()
        self.connection_id = connection_id
        self.sent: list[dict] = []
        self.close_calls = 0
        self._state = ConnectionState.OPEN

    @property
    def state(self) -> ConnectionState:
        return self._state

    async def send(self, message) -> None:
        self.sent.append(message.to_dict())

    def mark_closed(self) -> None:
        self._state = ConnectionState.CLOSED

    async def close(self) -> None:
        self.close_calls += 1
        self.mark_closed()

    def disconnect(self) -> None:
        """Simulate the client going away."""
        self.emit("close")


class FakeProcess(AsyncIOEventEmitter):
    """In-memory ProcessHandle recording writes, resizes and signals."""

    def __init__(self, cols: int = 80, rows: int = 24) -> None:
        super().__init__()
        self.pid = next(_pids)
        self.cols = cols
        self.rows = rows
        self.writes: list[str] = []
        self.resizes: list[tuple[int, int]] = []
        self.kills: list[str] = []
        self.started = False
        self.subscribed_at_start = False
        self.fail_writes = False
        self.fail_resizes = False

    def start(self) -> None:
        self.started = True
        self.subscribed_at_start = bool(self.listeners("data")) and bool(self.listeners("exit"))

    def write(self, text: str) -> None:
        if self.fail_writes:
            raise OSError("input/output error")
        self.writes.append(text)

    def resize(self, cols: int, rows: int) -> None:
        if self.fail_resizes:
            raise OSError("inappropriate ioctl for device")
        self.resizes.append((cols, rows))
        self.cols = cols
        self.rows = rows

    def kill(self, sig="SIGHUP") -> None:
        self.kills.append(sig)


@pytest.fixture()
def processes() -> list[FakeProcess]:
    """Every fake process spawned during the test, in spawn order."""
    return []


@pytest.fixture()
def process_factory(processes):
    async def factory(shell=None, cols=80, rows=24):
        process = FakeProcess(cols, rows)
        processes.append(process)
        return process

    return factory


@pytest.fixture()
def registry(process_factory) -> SessionRegistry:
    return SessionRegistry(process_factory=process_factory)


@pytest.fixture()
def scoped_registry(process_factory) -> SessionRegistry:
    return SessionRegistry(process_factory=process_factory, close_policy=ClosePolicy.SESSION)


@pytest.fixture()
def make_connection():
    ids = itertools.count(1)

    def factory(connection_id: str | None = None) -> FakeConnection:
        return FakeConnection(connection_id or f"conn-{next(ids)}")

    return factory
