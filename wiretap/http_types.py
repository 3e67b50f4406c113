"""HTTP/1.x and HTTP/2 conversation, request, response and frame models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, IntEnum, IntFlag
from typing import Any, Dict, List, Optional, Union
from urllib.parse import SplitResult


class HTTPVersion(IntEnum):
    """HTTP protocol version."""

    HTTP_1_0 = 0
    HTTP_1_1 = 1
    HTTP_2 = 2
    HTTP_20 = 2

    @classmethod
    def _missing_(cls, value: object) -> Optional["HTTPVersion"]:
        if isinstance(value, int):
            member = int.__new__(cls, value)
            member._name_ = f"UNKNOWN_{value}"
            member._value_ = value
            return member
        return None

    def __str__(self) -> str:
        return _VERSION_NAMES.get(int(self), "Unknown")

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


_VERSION_NAMES = {0: "HTTP/1.0", 1: "HTTP/1.1", 2: "HTTP/2"}


class HTTPMethod(str, Enum):
    """Common HTTP request methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    PATCH = "PATCH"
    CONNECT = "CONNECT"
    TRACE = "TRACE"

    def __str__(self) -> str:
        return self.value

    def __format__(self, spec: str) -> str:
        return format(self.value, spec)


def _first_header(headers: Dict[str, List[str]], name: str) -> str:
    values = headers.get(name)
    return values[0] if values else ""


@dataclass
class HTTPRequest:
    """An HTTP request."""

    method: Union[HTTPMethod, str] = ""
    uri: str = ""
    path: str = ""
    raw_path: str = ""
    query_string: str = ""
    parsed_url: Optional[SplitResult] = None
    version: HTTPVersion = HTTPVersion.HTTP_1_0
    host: str = ""
    headers: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""
    content_length: int = 0
    content_type: str = ""
    content_encoding: str = ""
    body_truncated: bool = False
    raw_request_line: str = ""
    timestamp: Optional[datetime] = None

    def get_header(self, name: str) -> str:
        """Return the first value of a header, or an empty string."""
        return _first_header(self.headers, name)


@dataclass
class HTTPResponse:
    """An HTTP response."""

    status_code: int = 0
    status_text: str = ""
    version: HTTPVersion = HTTPVersion.HTTP_1_0
    headers: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""
    content_length: int = 0
    content_type: str = ""
    content_encoding: str = ""
    body_truncated: bool = False
    raw_status_line: str = ""
    timestamp: Optional[datetime] = None

    def get_header(self, name: str) -> str:
        """Return the first value of a header, or an empty string."""
        return _first_header(self.headers, name)

    def is_success(self) -> bool:
        """True for 2xx status codes."""
        return 200 <= self.status_code < 300

    def is_redirect(self) -> bool:
        """True for 3xx status codes."""
        return 300 <= self.status_code < 400

    def is_client_error(self) -> bool:
        """True for 4xx status codes."""
        return 400 <= self.status_code < 500

    def is_server_error(self) -> bool:
        """True for 5xx status codes."""
        return 500 <= self.status_code < 600


@dataclass
class HTTPConversation:
    """An HTTP request together with its response, if one was seen."""

    id: int = 0
    connection_id: int = 0
    version: HTTPVersion = HTTPVersion.HTTP_1_0
    request: Optional[HTTPRequest] = None
    response: Optional[HTTPResponse] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    response_time: timedelta = field(default_factory=timedelta)
    request_packets: List[int] = field(default_factory=list)
    response_packets: List[int] = field(default_factory=list)
    stream_id: int = 0

    def summary(self) -> str:
        """Return e.g. ``GET /index.html → 200``."""
        if self.request is None:
            return "Incomplete request"
        status = f" → {self.response.status_code}" if self.response is not None else ""
        return f"{self.request.method}{' '}{self.request.path}{status}"


@dataclass
class Header:
    """An HTTP/2 header name and value."""

    name: str = ""
    value: str = ""


class HTTP2FrameType(IntEnum):
    """HTTP/2 frame types."""

    DATA = 0x0
    HEADERS = 0x1
    PRIORITY = 0x2
    RST_STREAM = 0x3
    SETTINGS = 0x4
    PUSH_PROMISE = 0x5
    PING = 0x6
    GOAWAY = 0x7
    WINDOW_UPDATE = 0x8
    CONTINUATION = 0x9

    @classmethod
    def _missing_(cls, value: object) -> Optional["HTTP2FrameType"]:
        if isinstance(value, int):
            member = int.__new__(cls, value)
            member._name_ = f"UNKNOWN_{value}"
            member._value_ = value
            return member
        return None

    def __str__(self) -> str:
        if 0 <= int(self) <= 0x9:
            return self.name
        return f"UNKNOWN(0x{int(self):x})"

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


class HTTP2FrameFlags(IntFlag):
    """HTTP/2 frame flags."""

    END_STREAM = 0x1
    END_HEADERS = 0x4
    PADDED = 0x8
    PRIORITY = 0x20

    def has(self, flag: "HTTP2FrameFlags") -> bool:
        """Report whether ``flag`` is set."""
        return (int(self) & int(flag)) != 0

    def __str__(self) -> str:
        names = [
            name
            for name, flag in (
                ("END_STREAM", HTTP2FrameFlags.END_STREAM),
                ("END_HEADERS", HTTP2FrameFlags.END_HEADERS),
                ("PADDED", HTTP2FrameFlags.PADDED),
                ("PRIORITY", HTTP2FrameFlags.PRIORITY),
            )
            if self.has(flag)
        ]
        return ",".join(names)

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


@dataclass
class HTTP2Frame:
    """A decoded HTTP/2 frame."""

    type: HTTP2FrameType = HTTP2FrameType.DATA
    flags: HTTP2FrameFlags = HTTP2FrameFlags(0)
    stream_id: int = 0
    length: int = 0
    data: bytes = b""
    payload: bytes = b""
    headers: List[Header] = field(default_factory=list)
    settings: Dict[int, int] = field(default_factory=dict)
    last_stream_id: int = 0
    error_code: int = 0
    debug_data: bytes = b""
    depends_on: int = 0
    weight: int = 0
    exclusive: bool = False
    window_increment: int = 0
    parsed: Any = None


@dataclass
class HTTP2Headers:
    """Decoded HTTP/2 pseudo-headers and regular headers."""

    method: str = ""
    scheme: str = ""
    authority: str = ""
    path: str = ""
    status: str = ""
    headers: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class HTTP2Settings:
    """HTTP/2 connection settings."""

    header_table_size: int = 0
    enable_push: bool = False
    max_concurrent_streams: int = 0
    initial_window_size: int = 0
    max_frame_size: int = 0
    max_header_list_size: int = 0