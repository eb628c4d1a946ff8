"""JSON frame codec for the session connection."""

import dataclasses
import json
from datetime import date, datetime
from enum import Enum
from typing import Any

from sessionlink.domain.exceptions.realtime import FrameDecodeError
from sessionlink.domain.model.realtime.message import InboundMessage, OutboundMessage

_ENVELOPE_KEYS = frozenset({"type", "channel"})


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_frame(message: OutboundMessage) -> str:
    """Encode an outbound message as a JSON text frame.

    Raises:
        TypeError, ValueError: If the payload is not serializable.
    """
    return json.dumps(message.to_dict(), default=_json_default, ensure_ascii=False)


def decode_frame(frame: str | bytes | bytearray) -> InboundMessage:
    """Decode one inbound frame.

    The payload is taken from ``payload``, else ``data``, else whatever
    top-level keys remain besides ``type`` and ``channel``.

    Raises:
        FrameDecodeError: If the frame is not a JSON object with a string type.
    """
    if isinstance(frame, (bytes, bytearray)):
        try:
            text = bytes(frame).decode("utf-8")
        except UnicodeDecodeError as e:
            raise FrameDecodeError("Frame is not valid UTF-8", bytes(frame), e) from e
    elif isinstance(frame, str):
        text = frame
    else:
        raise FrameDecodeError(f"Unsupported frame type: {type(frame).__name__}")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise FrameDecodeError("Frame is not valid JSON", text, e) from e

    if not isinstance(data, dict):
        raise FrameDecodeError("Frame is not a JSON object", text)

    msg_type = data.get("type")
    if not isinstance(msg_type, str) or not msg_type:
        raise FrameDecodeError("Frame has no message type", text)

    channel = data.get("channel")
    if channel is not None and not isinstance(channel, str):
        raise FrameDecodeError("Frame channel must be a string", text)

    if "payload" in data:
        payload = data["payload"]
    elif "data" in data:
        payload = data["data"]
    else:
        payload = {k: v for k, v in data.items() if k not in _ENVELOPE_KEYS} or None

    return InboundMessage(type=msg_type, payload=payload, channel=channel)
