"""Core packet, flow and DNS record models."""

from __future__ import annotations

import ipaddress
import struct
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_FNV_OFFSET = 14695981039346656037
_FNV_PRIME = 1099511628211
_MASK64 = (1 << 64) - 1
_V4_MAPPED_PREFIX = bytes(10) + b"\xff\xff"


def _coerce_ip(value: Any) -> Optional[IPAddress]:
    """Normalise an address; IPv4-mapped IPv6 addresses become IPv4."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = ipaddress.ip_address(bytes(value))
    elif isinstance(value, str):
        value = ipaddress.ip_address(value)
    elif not isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        raise TypeError(f"not an IP address: {value!r}")
    if isinstance(value, ipaddress.IPv6Address) and value.ipv4_mapped is not None:
        return value.ipv4_mapped
    return value


def _ip_string(ip: Optional[IPAddress]) -> str:
    return "<nil>" if ip is None else str(ip)


def _to16(ip: Optional[IPAddress]) -> bytes:
    if ip is None:
        return b""
    if isinstance(ip, ipaddress.IPv4Address):
        return _V4_MAPPED_PREFIX + ip.packed
    return ip.packed


class Protocol(IntEnum):
    """Network and application protocols recognised in a capture."""

    UNKNOWN = 0
    ETHERNET = 1
    ARP = 2
    IPV4 = 3
    IPV6 = 4
    ICMP = 5
    ICMPV6 = 6
    TCP = 7
    UDP = 8
    DNS = 9
    HTTP = 10
    HTTP2 = 11
    TLS = 12
    WEBSOCKET = 13

    @classmethod
    def _missing_(cls, value: object) -> Optional["Protocol"]:
        if isinstance(value, int):
            member = int.__new__(cls, value)
            member._name_ = f"UNKNOWN_{value}"
            member._value_ = value
            return member
        return None

    def __str__(self) -> str:
        return _PROTOCOL_NAMES.get(int(self), "Unknown")

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


_PROTOCOL_NAMES = {
    Protocol.ETHERNET: "Ethernet",
    Protocol.ARP: "ARP",
    Protocol.IPV4: "IPv4",
    Protocol.IPV6: "IPv6",
    Protocol.ICMP: "ICMP",
    Protocol.ICMPV6: "ICMPv6",
    Protocol.TCP: "TCP",
    Protocol.UDP: "UDP",
    Protocol.DNS: "DNS",
    Protocol.HTTP: "HTTP",
    Protocol.HTTP2: "HTTP/2",
    Protocol.TLS: "TLS",
    Protocol.WEBSOCKET: "WebSocket",
}

_FLAG_ORDER = ("syn", "ack", "fin", "rst", "psh", "urg", "ece", "cwr", "ns")
_FLAG_BITS = (
    ("fin", 0x01),
    ("syn", 0x02),
    ("rst", 0x04),
    ("psh", 0x08),
    ("ack", 0x10),
    ("urg", 0x20),
    ("ece", 0x40),
    ("cwr", 0x80),
)


@dataclass(frozen=True)
class TCPFlags:
    """TCP control flags."""

    syn: bool = False
    ack: bool = False
    fin: bool = False
    rst: bool = False
    psh: bool = False
    urg: bool = False
    ece: bool = False
    cwr: bool = False
    ns: bool = False

    def to_uint8(self) -> int:
        """Return the flags as the TCP header flag byte (NS is not included)."""
        return sum(bit for name, bit in _FLAG_BITS if getattr(self, name))

    def has(self, name: str) -> bool:
        """Report whether the named flag is set; unknown names are never set."""
        key = name.lower()
        return key in _FLAG_ORDER and getattr(self, key)

    def __str__(self) -> str:
        names = [name.upper() for name in _FLAG_ORDER if getattr(self, name)]
        if not names:
            return "[.]"
        return "[" + " ".join(names) + "]"


@dataclass
class Layer:
    """A protocol layer located within a packet's raw bytes."""

    protocol: Protocol = Protocol.UNKNOWN
    offset: int = 0
    length: int = 0
    data: Any = None


@dataclass(frozen=True)
class FiveTuple:
    """Addresses, ports and transport protocol identifying a flow."""

    src_ip: Optional[IPAddress] = None
    dst_ip: Optional[IPAddress] = None
    src_port: int = 0
    dst_port: int = 0
    protocol: Protocol = Protocol.UNKNOWN

    def __post_init__(self) -> None:
        object.__setattr__(self, "src_ip", _coerce_ip(self.src_ip))
        object.__setattr__(self, "dst_ip", _coerce_ip(self.dst_ip))

    def hash_value(self) -> int:
        """Return a 64-bit FNV-1a hash that is the same in both directions."""
        src_ip, dst_ip = self.src_ip, self.dst_ip
        src_port, dst_port = self.src_port, self.dst_port
        src_key = f"{_ip_string(src_ip)}:{src_port}"
        dst_key = f"{_ip_string(dst_ip)}:{dst_port}"
        if src_key > dst_key:
            src_ip, dst_ip = dst_ip, src_ip
            src_port, dst_port = dst_port, src_port

        h = _FNV_OFFSET
        for octet in _to16(src_ip) + _to16(dst_ip):
            h = ((h ^ octet) * _FNV_PRIME) & _MASK64
        for value in (src_port, dst_port, int(self.protocol)):
            h = ((h ^ value) * _FNV_PRIME) & _MASK64
        return h

    def reverse(self) -> "FiveTuple":
        """Return the tuple for the opposite direction."""
        return FiveTuple(
            src_ip=self.dst_ip,
            dst_ip=self.src_ip,
            src_port=self.dst_port,
            dst_port=self.src_port,
            protocol=self.protocol,
        )

    def __str__(self) -> str:
        return (
            f"{_ip_string(self.src_ip)}:{self.src_port} → "
            f"{_ip_string(self.dst_ip)}:{self.dst_port} ({str(self.protocol)})"
        )


@dataclass
class DNSQuestion:
    """A question from a DNS message."""

    name: str = ""
    type: int = 0
    rr_class: int = 0


@dataclass
class DNSResourceRecord:
    """A resource record from a DNS message."""

    name: str = ""
    type: int = 0
    rr_class: int = 0
    ttl: int = 0
    data: bytes = b""
    data_string: str = ""


@dataclass
class DNSInfo:
    """Parsed DNS message."""

    transaction_id: int = 0
    is_response: bool = False
    opcode: int = 0
    authoritative: bool = False
    truncated: bool = False
    recursion_desired: bool = False
    recursion_available: bool = False
    response_code: int = 0
    questions: List[DNSQuestion] = field(default_factory=list)
    answers: List[DNSResourceRecord] = field(default_factory=list)
    authority: List[DNSResourceRecord] = field(default_factory=list)
    additional: List[DNSResourceRecord] = field(default_factory=list)


@dataclass
class Packet:
    """A captured network packet and what was decoded from it."""

    index: int = 0
    timestamp: Optional[datetime] = None
    length: int = 0
    captured_len: int = 0
    original_len: int = 0
    capture_len: int = 0
    file_offset: int = 0
    layers: List[Layer] = field(default_factory=list)
    raw_data: bytes = b""
    data: bytes = b""
    payload: bytes = b""

    src_ip: Optional[IPAddress] = None
    dst_ip: Optional[IPAddress] = None
    src_port: int = 0
    dst_port: int = 0
    protocol: Protocol = Protocol.UNKNOWN
    tcp_flags: TCPFlags = field(default_factory=TCPFlags)

    seq_num: int = 0
    ack_num: int = 0
    ttl: int = 0

    app_protocol: Protocol = Protocol.UNKNOWN
    app_info: str = ""
    application_protocol: str = ""

    http_info: Any = None
    http2_frames: List[Any] = field(default_factory=list)
    tls_info: Any = None
    dns_info: Optional[DNSInfo] = None

    websocket_handshake: Any = None
    websocket_frames: List[Any] = field(default_factory=list)

    grpc_messages: List[Any] = field(default_factory=list)

    tls_decrypted: bool = False
    decrypted_payload: bytes = b""

    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.src_ip = _coerce_ip(self.src_ip)
        self.dst_ip = _coerce_ip(self.dst_ip)

    def five_tuple(self) -> FiveTuple:
        """Return the flow tuple of this packet."""
        return FiveTuple(
            src_ip=self.src_ip,
            dst_ip=self.dst_ip,
            src_port=self.src_port,
            dst_port=self.dst_port,
            protocol=self.protocol,
        )

    def flow_hash(self) -> int:
        """Return the direction-independent hash of this packet's flow."""
        return self.five_tuple().hash_value()

    def summary(self) -> str:
        """Return a one-line description of the packet."""
        if self.app_info:
            return self.app_info
        proto = str(self.protocol)
        if self.protocol == Protocol.TCP:
            return f"{proto} {self.src_port} → {self.dst_port} [{self.tcp_flags}]"
        if self.protocol == Protocol.UDP:
            return f"{proto} {self.src_port} → {self.dst_port} len={self.captured_len}"
        if self.protocol in (Protocol.ICMP, Protocol.ICMPV6):
            return proto
        return f"{_ip_string(self.src_ip)} → {_ip_string(self.dst_ip)}"


def ip_to_bytes(ip: Union[str, IPAddress, None]) -> bytes:
    """Return an address as 16 bytes; IPv4 becomes IPv4-mapped IPv6."""
    return _to16(_coerce_ip(ip)).ljust(16, b"\x00")


def bytes_to_ip(b: bytes) -> IPAddress:
    """Turn 16 bytes back into an address, IPv4 if they are IPv4-mapped."""
    if len(b) != 16:
        raise ValueError(f"expected 16 bytes, got {len(b)}")
    if bytes(b[:12]) == _V4_MAPPED_PREFIX:
        return ipaddress.IPv4Address(bytes(b[12:16]))
    return ipaddress.IPv6Address(bytes(b))


def ports_to_bytes(src: int, dst: int) -> bytes:
    """Pack two ports into 4 big-endian bytes."""
    return struct.pack(">HH", src, dst)


def bytes_to_ports(b: bytes) -> Tuple[int, int]:
    """Unpack two ports; input shorter than 4 bytes gives (0, 0)."""
    if len(b) < 4:
        return 0, 0
    src, dst = struct.unpack(">HH", bytes(b[:4]))
    return src, dst