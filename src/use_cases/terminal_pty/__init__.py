"""
Terminal PTY Use Case

Provides local shell processes attached to pseudo-terminals.
Each process is exposed as an event emitter consumed by a terminal session.
"""

from use_cases.terminal_pty.terminal_process import TerminalProcess, resolve_signal
from use_cases.terminal_pty.create_terminal_process import (
    TerminalSpawnError,
    spawn_terminal_process,
)

__all__ = [
    "TerminalProcess",
    "TerminalSpawnError",
    "resolve_signal",
    "spawn_terminal_process",
]
