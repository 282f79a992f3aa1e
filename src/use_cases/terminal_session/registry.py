"""
Session Registry

Tracks every live terminal session by connection identity and applies the
configured close policy when a client disconnects.
"""

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

from tools.config import (
    DEFAULT_CLOSE_POLICY,
    DEFAULT_COLS,
    DEFAULT_ROWS,
    ClosePolicy,
)
from tools.logger import log_debug, log_error, log_info, log_warning
from use_cases.terminal_pty import spawn_terminal_process
from use_cases.terminal_session.interfaces import Connection, ProcessHandle
from use_cases.terminal_session.session import TERMINATION_SIGNAL, Session

ProcessFactory = Callable[..., Awaitable[ProcessHandle]]


def _kill_orphan_on_spawn(spawn: asyncio.Future):
    if spawn.cancelled() or spawn.exception() is not None:
        return
    _kill_orphan(spawn.result())


def _kill_orphan(process: ProcessHandle):
    log_warning(f"Killing pid {process.pid} spawned for a connection that already closed")
    try:
        process.kill(TERMINATION_SIGNAL)
    except Exception as e:
        log_error(f"Error terminating orphaned pid {process.pid}: {e}")


class SessionRegistry:
    """
    Manages terminal sessions.

    Each session is keyed by the identity of the connection it is bound to.
    All mutations happen under one asyncio.Lock. Spawning a process happens
    outside the lock so slow spawns do not hold up other connections.
    """

    def __init__(
        self,
        process_factory: Optional[ProcessFactory] = None,
        close_policy: ClosePolicy = DEFAULT_CLOSE_POLICY,
        shell: Optional[str] = None,
        cols: int = DEFAULT_COLS,
        rows: int = DEFAULT_ROWS,
    ):
        if process_factory is None:
            process_factory = spawn_terminal_process

        self.close_policy = ClosePolicy(close_policy)
        self._process_factory = process_factory
        self._shell = shell
        self._cols = cols
        self._rows = rows
        self._sessions: Dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def create_session(self, connection: Connection) -> Session:
        """
        Spawn a terminal process and bind it to a connection.

        Args:
            connection: Newly accepted client connection

        Returns:
            The started Session

        Raises:
            Whatever the process factory raises; nothing is registered
        """
        connection_id = connection.connection_id

        spawn = asyncio.ensure_future(
            self._process_factory(shell=self._shell, cols=self._cols, rows=self._rows)
        )
        try:
            process = await asyncio.shield(spawn)
        except asyncio.CancelledError:
            # The client left mid-spawn, the process must not outlive it
            spawn.add_done_callback(_kill_orphan_on_spawn)
            raise
        except Exception as e:
            log_error(f"Failed to spawn terminal for connection {connection_id}: {e}")
            raise

        session = Session(connection, process, self)

        try:
            async with self._lock:
                previous = self._sessions.pop(connection_id, None)
                if previous:
                    log_warning(f"Session {connection_id} already exists, replacing it")
                    self._terminate_unlocked(previous)

                self._sessions[connection_id] = session
                session.start()
                active = len(self._sessions)
        except asyncio.CancelledError:
            # Cancelled while waiting for the lock, nothing was registered
            _kill_orphan(process)
            raise

        log_info(f"Created session {connection_id} (pid {process.pid}), {active} active")
        return session

    async def remove_session(self, connection_id: str, session: Optional[Session] = None) -> bool:
        """
        Remove a session entry without signalling its process.

        Args:
            connection_id: Connection identity of the session
            session: If given, only remove the entry when it is this session

        Returns:
            True if an entry was removed, False otherwise
        """
        async with self._lock:
            current = self._sessions.get(connection_id)
            if current is None or (session is not None and current is not session):
                log_debug(f"Session {connection_id} not registered, nothing to remove")
                return False
            del self._sessions[connection_id]
            log_debug(f"Removed session {connection_id}")
            return True

    def _terminate_unlocked(self, session: Session):
        """Signal a session's process (caller holds the lock)."""
        try:
            session.process.kill(TERMINATION_SIGNAL)
        except Exception as e:
            log_error(f"Error terminating pid {session.process.pid}: {e}")

    async def terminate_session(self, connection_id: str) -> List[Session]:
        """
        Signal one session's process and drop its entry.

        Returns:
            The sessions that were terminated (empty if not found)
        """
        async with self._lock:
            session = self._sessions.pop(connection_id, None)
            if not session:
                log_debug(f"Session {connection_id} not found for termination")
                return []
            self._terminate_unlocked(session)

        log_info(f"Terminated session {connection_id}")
        return [session]

    async def terminate_all(self) -> List[Session]:
        """
        Signal every tracked process and clear the registry.

        Returns:
            The sessions that were terminated
        """
        async with self._lock:
            sessions = list(self._sessions.values())
            for session in sessions:
                self._terminate_unlocked(session)
            self._sessions.clear()

        if sessions:
            log_info(f"Terminated all {len(sessions)} sessions")
        return sessions

    async def handle_connection_closed(self, connection_id: str) -> List[Session]:
        """Apply the close policy for a connection that went away."""
        if self.close_policy is ClosePolicy.GLOBAL:
            return await self.terminate_all()
        return await self.terminate_session(connection_id)

    def get_session(self, connection_id: str) -> Optional[Session]:
        """Get session by connection ID."""
        return self._sessions.get(connection_id)

    def list_sessions(self) -> Dict[str, dict]:
        """List all active sessions with their info."""
        return {
            connection_id: session.describe()
            for connection_id, session in self._sessions.items()
        }

    def get_session_count(self) -> int:
        """Get the number of active sessions."""
        return len(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._sessions
