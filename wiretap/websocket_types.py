"""WebSocket handshake and frame models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional

_PREVIEW_LIMIT = 50
_SIMPLE_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    "\\": "\\\\",
    '"': '\\"',
}


def _quote(raw: bytes) -> str:
    """Double-quote bytes as text, escaping what is not printable."""
    out = []
    for ch in raw.decode("utf-8", errors="surrogateescape"):
        code = ord(ch)
        if ch in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[ch])
        elif 0xDC80 <= code <= 0xDCFF:
            out.append(f"\\x{code - 0xDC00:02x}")
        elif ch.isprintable():
            out.append(ch)
        elif code < 0x80:
            out.append(f"\\x{code:02x}")
        elif code < 0x10000:
            out.append(f"\\u{code:04x}")
        else:
            out.append(f"\\U{code:08x}")
    return '"' + "".join(out) + '"'


class WebSocketOpcode(IntEnum):
    """WebSocket frame opcodes."""

    CONTINUATION = 0x0
    TEXT = 0x1
    BINARY = 0x2
    CLOSE = 0x8
    PING = 0x9
    PONG = 0xA

    @classmethod
    def _missing_(cls, value: object) -> Optional["WebSocketOpcode"]:
        if isinstance(value, int):
            member = int.__new__(cls, value)
            member._name_ = f"UNKNOWN_{value}"
            member._value_ = value
            return member
        return None

    def __str__(self) -> str:
        name = _OPCODE_NAMES.get(int(self))
        return name if name is not None else f"Unknown({int(self)})"

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)

    def is_control(self) -> bool:
        """Control opcodes are 0x8 and above."""
        return int(self) >= 0x8


_OPCODE_NAMES = {
    0x0: "Continuation",
    0x1: "Text",
    0x2: "Binary",
    0x8: "Close",
    0x9: "Ping",
    0xA: "Pong",
}


@dataclass
class WebSocketHandshake:
    """Information from a WebSocket upgrade request or response."""

    is_request: bool = False
    resource_path: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    key: str = ""
    protocol: str = ""
    extensions: List[str] = field(default_factory=list)
    version: str = ""

    def sec_websocket_key(self) -> str:
        """The Sec-WebSocket-Key header, falling back to ``key``."""
        return self.headers.get("Sec-WebSocket-Key", self.key)

    def sec_websocket_protocol(self) -> str:
        """The Sec-WebSocket-Protocol header, falling back to ``protocol``."""
        return self.headers.get("Sec-WebSocket-Protocol", self.protocol)


@dataclass
class WebSocketFrame:
    """A single WebSocket frame with its unmasked payload."""

    fin: bool = False
    rsv1: bool = False
    rsv2: bool = False
    rsv3: bool = False
    opcode: int = 0
    masked: bool = False
    masking_key: bytes = b""
    payload_length: int = 0
    payload: bytes = b""

    def opcode_type(self) -> WebSocketOpcode:
        """The opcode as a :class:`WebSocketOpcode`."""
        return WebSocketOpcode(self.opcode)

    def is_control(self) -> bool:
        return self.opcode >= 0x8

    def is_text(self) -> bool:
        return self.opcode == WebSocketOpcode.TEXT

    def is_binary(self) -> bool:
        return self.opcode == WebSocketOpcode.BINARY

    def is_close(self) -> bool:
        return self.opcode == WebSocketOpcode.CLOSE

    def is_ping(self) -> bool:
        return self.opcode == WebSocketOpcode.PING

    def is_pong(self) -> bool:
        return self.opcode == WebSocketOpcode.PONG

    def summary(self) -> str:
        """Return a one-line description of the frame."""
        op_name = str(self.opcode_type())
        if self.is_text() and self.payload:
            preview = bytes(self.payload)
            if len(preview) > _PREVIEW_LIMIT:
                preview = preview[:_PREVIEW_LIMIT] + b"..."
            return f"WebSocket {op_name}: {_quote(preview)}"
        if self.payload_length > 0:
            return f"WebSocket {op_name} ({self.payload_length} bytes)"
        return f"WebSocket {op_name}"

    def close_code(self) -> int:
        """The status code of a close frame, or 0."""
        if not self.is_close() or len(self.payload) < 2:
            return 0
        return int.from_bytes(self.payload[:2], "big")

    def close_reason(self) -> str:
        """The reason text of a close frame, or an empty string."""
        if not self.is_close() or len(self.payload) <= 2:
            return ""
        return bytes(self.payload[2:]).decode("utf-8", errors="replace")

    def text_payload(self) -> str:
        """The payload decoded as UTF-8 text."""
        return bytes(self.payload).decode("utf-8", errors="replace")