"""
Terminal Message Protocol

JSON envelopes exchanged with the browser terminal.

    Input (browser -> gateway):
        {"type": "data", "data": "ls -la\\r"}
        {"type": "resize", "data": {"cols": 120, "rows": 40}}

    Output (gateway -> browser):
        {"type": "terminalOutput", "data": "output text"}
        {"type": "terminalExit", "data": 0}

    Internal (never sent):
        {"type": "close"}
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from tools.contract_validation import (
    ChoiceType,
    ContractValidationError,
    PositiveIntegerType,
    StringType,
    check_contract,
)


class MessageType(str, Enum):
    DATA = "data"
    RESIZE = "resize"
    TERMINAL_OUTPUT = "terminalOutput"
    TERMINAL_EXIT = "terminalExit"
    CLOSE = "close"


INBOUND_TYPES = (MessageType.DATA.value, MessageType.RESIZE.value)

ENVELOPE_CONTRACT = {
    "type": ChoiceType(*INBOUND_TYPES),
}

DATA_CONTRACT = {
    "type": StringType,
    "data": StringType,
}

RESIZE_CONTRACT = {
    "type": StringType,
    "data": {
        "cols": PositiveIntegerType,
        "rows": PositiveIntegerType,
    },
}

CONTRACTS = {
    MessageType.DATA: DATA_CONTRACT,
    MessageType.RESIZE: RESIZE_CONTRACT,
}

# Sentinel payload that builds the worker docker image in the shell
INITIALIZE_DOCKER_IMAGE = "initializeDockerImage"
INITIALIZE_DOCKER_IMAGE_COMMANDS = (
    "docker build -t abstruse ~/.abstruse/docker-files\r",
    "exit\r",
)


class MalformedMessageError(ContractValidationError):
    """Raised when an inbound frame cannot be decoded into a Message."""


@dataclass(frozen=True)
class Message:
    type: MessageType
    data: Any = None

    def to_dict(self) -> dict:
        if self.type is MessageType.CLOSE:
            return {"type": self.type.value}
        return {"type": self.type.value, "data": self.data}


def decode_message(raw: Union[str, bytes]) -> Message:
    """
    Decode and validate an inbound frame.

    Raises:
        MalformedMessageError: for undecodable JSON or a payload whose shape
            does not match its tag
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        payload = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedMessageError("invalid_json", f"Invalid JSON: {e}") from e

    try:
        check_contract(ENVELOPE_CONTRACT, payload)
        message_type = MessageType(payload["type"])
        check_contract(CONTRACTS[message_type], payload)
    except ContractValidationError as e:
        raise MalformedMessageError(e.error_type, e.message) from e

    if message_type is MessageType.RESIZE:
        return Message(
            message_type,
            {"cols": payload["data"]["cols"], "rows": payload["data"]["rows"]},
        )
    return Message(message_type, payload["data"])


def encode_message(message: Union[Message, dict]) -> str:
    if isinstance(message, Message):
        message = message.to_dict()
    return json.dumps(message)


def terminal_output(chunk: str) -> Message:
    return Message(MessageType.TERMINAL_OUTPUT, chunk)


def terminal_exit(code: int) -> Message:
    return Message(MessageType.TERMINAL_EXIT, code)


def close_message() -> Message:
    return Message(MessageType.CLOSE)
