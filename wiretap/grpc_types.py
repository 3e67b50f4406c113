"""gRPC message, status and stream models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional


class GRPCStatus(IntEnum):
    """gRPC status codes."""

    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16

    @classmethod
    def _missing_(cls, value: object) -> Optional["GRPCStatus"]:
        if isinstance(value, int):
            member = int.__new__(cls, value)
            member._name_ = f"STATUS_{value}"
            member._value_ = value
            return member
        return None

    def __str__(self) -> str:
        if 0 <= int(self) <= 16:
            return self.name
        return f"STATUS({int(self)})"

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)

    def is_ok(self) -> bool:
        """True for the OK status."""
        return int(self) == 0

    def is_error(self) -> bool:
        """True for any status other than OK."""
        return int(self) != 0


@dataclass
class GRPCMessage:
    """A single length-prefixed gRPC message."""

    compressed: bool = False
    length: int = 0
    payload: bytes = b""
    decoded_fields: Dict[int, Any] = field(default_factory=dict)
    decoded_message: Any = None
    message_type: str = ""
    service_method: str = ""
    is_request: bool = False
    status: GRPCStatus = GRPCStatus.OK
    status_message: str = ""

    def summary(self) -> str:
        """Return a one-line description of the message."""
        label = self.service_method or self.message_type
        if label:
            return f"gRPC {label} ({self.length} bytes)"
        return f"gRPC message ({self.length} bytes)"

    def has_decoded_fields(self) -> bool:
        """True when schema-less decoding produced any fields."""
        return bool(self.decoded_fields)


@dataclass
class GRPCStream:
    """A gRPC call with its request and response messages."""

    method: str = ""
    service_name: str = ""
    method_name: str = ""
    is_client_stream: bool = False
    is_server_stream: bool = False
    request_messages: List[GRPCMessage] = field(default_factory=list)
    response_messages: List[GRPCMessage] = field(default_factory=list)
    status: GRPCStatus = GRPCStatus.OK
    status_message: str = ""
    metadata: Dict[str, List[str]] = field(default_factory=dict)

    def add_request(self, msg: GRPCMessage) -> None:
        """Record a request message."""
        msg.is_request = True
        self.request_messages.append(msg)

    def add_response(self, msg: GRPCMessage) -> None:
        """Record a response message."""
        msg.is_request = False
        self.response_messages.append(msg)

    def summary(self) -> str:
        """Return a one-line description of the call."""
        return (
            f"gRPC {self.method} (req:{len(self.request_messages)}, "
            f"resp:{len(self.response_messages)}, status:{GRPCStatus(int(self.status))})"
        )