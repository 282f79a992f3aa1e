"""
Create Terminal Process

Spawns a shell attached to a local pseudo-terminal.
"""

import asyncio
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from ptyprocess import PtyProcess
from tools.config import DEFAULT_COLS, DEFAULT_ROWS, default_shell
from tools.logger import log_debug, log_info, log_warning
from use_cases.terminal_pty.terminal_process import TerminalProcess

# Thread pool for blocking fork/exec
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="pty_")

FALLBACK_SHELL = "/bin/sh"


class TerminalSpawnError(Exception):
    """Raised when a terminal process could not be started."""


def _resolve_shell(shell: str) -> str:
    if os.path.isabs(shell) and not os.access(shell, os.X_OK):
        log_warning(f"Shell {shell} not executable, trying {FALLBACK_SHELL}")
        return FALLBACK_SHELL
    return shell


def _spawn_sync(shell: str, cols: int, rows: int) -> PtyProcess:
    """
    Synchronous fork/exec of the shell under a PTY.

    Args:
        shell: Shell executable
        cols: Terminal column count
        rows: Terminal row count

    Returns:
        The spawned PtyProcess
    """
    env = dict(os.environ)
    env["TERM"] = "xterm-256color"
    env["COLUMNS"] = str(cols)
    env["LINES"] = str(rows)

    process = PtyProcess.spawn(
        [_resolve_shell(shell)],
        cwd=os.path.expanduser("~"),
        env=env,
        dimensions=(rows, cols),
    )
    log_debug(f"Spawned {shell} (pid {process.pid}) at {cols}x{rows}")
    return process


async def spawn_terminal_process(
    shell: Optional[str] = None,
    cols: int = DEFAULT_COLS,
    rows: int = DEFAULT_ROWS,
) -> TerminalProcess:
    """
    Spawn a shell-backed terminal process.

    The fork/exec is offloaded to a thread pool to avoid blocking the event
    loop. The returned process does not read its output until start() is
    called, so subscribers attached before then see every event.

    Raises:
        TerminalSpawnError: if the shell could not be started
    """
    shell = shell or default_shell()
    loop = asyncio.get_running_loop()

    try:
        pty_process = await loop.run_in_executor(
            _executor, _spawn_sync, shell, cols, rows
        )
    except (OSError, ValueError) as e:
        raise TerminalSpawnError(f"Error spawning {shell}: {e}") from e

    process = TerminalProcess(pty_process, cols=cols, rows=rows)
    log_info(f"Terminal process spawned (pid {process.pid})")
    return process
