"""Wire message decoding and encoding."""

from __future__ import annotations

import json

import pytest

from use_cases.terminal_session import (
    MalformedMessageError,
    Message,
    MessageType,
    decode_message,
    encode_message,
)
from use_cases.terminal_session.messages import close_message, terminal_exit, terminal_output


def test_decode_data() -> None:
    message = decode_message('{"type": "data", "data": "ls\\r"}')

    assert message == Message(MessageType.DATA, "ls\r")


def test_decode_resize_from_bytes() -> None:
    message = decode_message(b'{"type": "resize", "data": {"cols": 100, "rows": 40}}')

    assert message.type is MessageType.RESIZE
    assert message.data == {"cols": 100, "rows": 40}


def test_decode_resize_drops_extra_fields() -> None:
    raw = json.dumps({"type": "resize", "data": {"cols": 10, "rows": 5, "px": 3}})

    assert decode_message(raw).data == {"cols": 10, "rows": 5}


@pytest.mark.parametrize(
    ("raw", "error_type"),
    [
        ("{not json", "invalid_json"),
        (b"\xff\xfe", "invalid_json"),
        ('"data"', "invalid_type"),
        ('{"data": "x"}', "missing_field"),
        ('{"type": "shutdown", "data": "x"}', "invalid_type"),
        ('{"type": "terminalExit", "data": 0}', "invalid_type"),
        ('{"type": "data", "data": 5}', "invalid_type"),
        ('{"type": "resize", "data": {"cols": 80}}', "missing_field"),
        ('{"type": "resize", "data": {"cols": true, "rows": 24}}', "invalid_type"),
        ('{"type": "resize", "data": {"cols": 80.5, "rows": 24}}', "invalid_type"),
        ('{"type": "resize", "data": {"cols": -1, "rows": 24}}', "invalid_type"),
        ('{"type": "resize", "data": "80x24"}', "invalid_type"),
    ],
)
def test_decode_rejects_malformed_frames(raw, error_type) -> None:
    with pytest.raises(MalformedMessageError) as exc_info:
        decode_message(raw)

    assert exc_info.value.error_type == error_type


def test_encode_outbound_messages() -> None:
    assert json.loads(encode_message(terminal_output("hi\r\n"))) == {
        "type": "terminalOutput",
        "data": "hi\r\n",
    }
    assert json.loads(encode_message(terminal_exit(2))) == {"type": "terminalExit", "data": 2}


def test_close_message_has_no_payload() -> None:
    assert close_message().to_dict() == {"type": "close"}
