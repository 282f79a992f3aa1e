"""
Terminal Session Use Case

Bridges client connections to terminal processes: one session per
connection, tracked by a server-wide registry.
"""

from use_cases.terminal_session.interfaces import (
    Connection,
    ConnectionState,
    ProcessHandle,
)
from use_cases.terminal_session.messages import (
    MalformedMessageError,
    Message,
    MessageType,
    decode_message,
    encode_message,
)
from use_cases.terminal_session.session import Session, SessionState
from use_cases.terminal_session.registry import SessionRegistry

__all__ = [
    "Connection",
    "ConnectionState",
    "MalformedMessageError",
    "Message",
    "MessageType",
    "ProcessHandle",
    "Session",
    "SessionRegistry",
    "SessionState",
    "decode_message",
    "encode_message",
]
