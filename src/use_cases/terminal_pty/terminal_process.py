"""
Terminal Process

Wraps a shell running under a local pseudo-terminal and exposes it as an
event emitter: "data" with decoded output chunks, "exit" with the exit code.
"""

import asyncio
import codecs
import os
import signal
from typing import Optional, Union

import psutil
from ptyprocess import PtyProcess
from pyee.asyncio import AsyncIOEventEmitter
from tools.logger import log_debug, log_info, log_warning

CHUNK_SIZE = 4096

# Time a terminated shell gets before it is escalated to SIGKILL
KILL_GRACE_SECONDS = 2.0


def resolve_signal(sig: Union[str, int, signal.Signals]) -> signal.Signals:
    """Turn "SIGHUP", "HUP" or 1 into signal.SIGHUP."""
    if isinstance(sig, signal.Signals):
        return sig
    if isinstance(sig, int):
        return signal.Signals(sig)
    name = sig.upper()
    if not name.startswith("SIG"):
        name = f"SIG{name}"
    try:
        return signal.Signals[name]
    except KeyError:
        raise ValueError(f"Unknown signal: {sig}") from None


class TerminalProcess(AsyncIOEventEmitter):
    """
    A shell attached to a pseudo-terminal.

    Output is read with an event loop reader on the PTY master, so no thread
    is held per session. Once the PTY reports EOF the child is reaped in the
    default executor and "exit" is emitted exactly once.
    """

    def __init__(self, pty_process: PtyProcess, cols: int, rows: int):
        super().__init__()
        self._process = pty_process
        self.cols = cols
        self.rows = rows

        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._reading = False
        self._exited = False
        self._exit_code: Optional[int] = None
        self._exit_task: Optional[asyncio.Task] = None
        self._escalation_task: Optional[asyncio.Task] = None

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def is_alive(self) -> bool:
        return not self._exited

    @property
    def exit_code(self) -> Optional[int]:
        return self._exit_code

    def start(self):
        """Begin forwarding PTY output as "data" events."""
        if self._reading or self._exit_task is not None:
            return
        loop = asyncio.get_running_loop()
        loop.add_reader(self._process.fd, self._on_readable)
        self._reading = True

    def _stop_reading(self):
        if not self._reading:
            return
        self._reading = False
        try:
            asyncio.get_running_loop().remove_reader(self._process.fd)
        except (OSError, ValueError) as e:
            log_debug(f"Error removing PTY reader for pid {self.pid}: {e}")

    def _on_readable(self):
        try:
            data = os.read(self._process.fd, CHUNK_SIZE)
        except OSError:
            # Linux reports EIO on the master once the slave side is gone
            data = b""

        if data:
            text = self._decoder.decode(data)
            if text:
                self.emit("data", text)
            return

        tail = self._decoder.decode(b"", final=True)
        if tail:
            self.emit("data", tail)

        self._stop_reading()
        if self._exit_task is None:
            self._exit_task = asyncio.ensure_future(self._watch_exit())

    def _wait_sync(self) -> int:
        """Reap the child (blocking, runs in executor) and map its status."""
        exit_status = self._process.wait()
        try:
            self._process.close()
        except OSError as e:
            log_debug(f"Error closing PTY for pid {self.pid}: {e}")
        if exit_status is None:
            # Killed by a signal, report it the way shells do
            return 128 + (self._process.signalstatus or 0)
        return exit_status

    async def _watch_exit(self):
        loop = asyncio.get_running_loop()
        try:
            code = await loop.run_in_executor(None, self._wait_sync)
        except Exception as e:
            log_warning(f"Error waiting for pid {self.pid}: {e}")
            code = -1

        self._exited = True
        self._exit_code = code
        if self._escalation_task and not self._escalation_task.done():
            self._escalation_task.cancel()

        log_info(f"Terminal process {self.pid} exited with code {code}")
        self.emit("exit", code)

    def write(self, text: str):
        """Write input to the PTY. OSError propagates to the caller."""
        data = text.encode("utf-8")
        while data:
            written = os.write(self._process.fd, data)
            data = data[written:]

    def resize(self, cols: int, rows: int):
        """Set the PTY window size. OSError propagates to the caller."""
        self._process.setwinsize(rows, cols)
        self.cols = cols
        self.rows = rows
        log_debug(f"Resized pid {self.pid} to {cols}x{rows}")

    def kill(self, sig: Union[str, int] = "SIGHUP"):
        """
        Signal the shell and every descendant it spawned.

        If the shell is still running after KILL_GRACE_SECONDS it is sent
        SIGKILL. Safe to call after the process has exited. A process that
        was never started is started here so its exit is still reaped.
        """
        if self._exited:
            return
        signum = resolve_signal(sig)
        self.start()

        try:
            children = psutil.Process(self.pid).children(recursive=True)
        except psutil.Error:
            children = []

        try:
            os.kill(self.pid, signum)
        except ProcessLookupError:
            return

        for child in children:
            try:
                child.send_signal(signum)
            except psutil.Error:
                pass

        log_debug(f"Sent {signum.name} to pid {self.pid} and {len(children)} children")

        if signum != signal.SIGKILL and self._escalation_task is None:
            self._escalation_task = asyncio.ensure_future(self._escalate())

    async def _escalate(self):
        await asyncio.sleep(KILL_GRACE_SECONDS)
        if self._exited:
            return
        log_warning(f"Terminal process {self.pid} ignored termination, sending SIGKILL")
        self.kill(signal.SIGKILL)
