"""Tracking of TCP connections and UDP flows."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Any, Dict, List, Optional

from wiretap.packet import FiveTuple, Packet, Protocol, TCPFlags


class ConnectionState(IntEnum):
    """State of a tracked TCP connection."""

    NEW = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3
    RESET = 4

    @classmethod
    def _missing_(cls, value: object) -> Optional["ConnectionState"]:
        if isinstance(value, int):
            member = int.__new__(cls, value)
            member._name_ = f"UNKNOWN_{value}"
            member._value_ = value
            return member
        return None

    def __str__(self) -> str:
        return _STATE_NAMES.get(int(self), "UNKNOWN")

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


_STATE_NAMES = {
    ConnectionState.NEW: "NEW",
    ConnectionState.OPEN: "OPEN",
    ConnectionState.CLOSING: "CLOSING",
    ConnectionState.CLOSED: "CLOSED",
    ConnectionState.RESET: "RESET",
}


class StreamDirection(IntEnum):
    """Direction of a unidirectional stream."""

    CLIENT_TO_SERVER = 0
    SERVER_TO_CLIENT = 1

    def __str__(self) -> str:
        if self is StreamDirection.CLIENT_TO_SERVER:
            return "client→server"
        return "server→client"

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


@dataclass(eq=False)
class Stream:
    """One direction of a TCP connection's payload."""

    id: int = 0
    direction: StreamDirection = StreamDirection.CLIENT_TO_SERVER
    data: bytearray = field(default_factory=bytearray)
    next_seq: int = 0
    bytes_seen: int = 0
    gap_count: int = 0
    overlap_size: int = 0
    packet_indices: List[int] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def append(self, data: bytes, seq: int) -> None:
        """Append payload that starts at sequence number ``seq``."""
        with self._lock:
            self.data.extend(data)
            self.bytes_seen += len(data)
            self.next_seq = (seq + len(data)) & 0xFFFFFFFF

    def reset(self) -> None:
        """Discard collected data and counters."""
        with self._lock:
            self.data = bytearray()
            self.bytes_seen = 0
            self.gap_count = 0
            self.overlap_size = 0


@dataclass(eq=False)
class Connection:
    """A tracked TCP connection or UDP flow."""

    id: int
    five_tuple: FiveTuple
    state: ConnectionState = ConnectionState.NEW
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    first_packet: int = 0
    last_packet: int = 0
    packet_count: int = 0
    bytes_sent: int = 0
    bytes_received: int = 0
    app_protocol: Protocol = Protocol.UNKNOWN
    client_stream: Stream = field(
        default_factory=lambda: Stream(direction=StreamDirection.CLIENT_TO_SERVER)
    )
    server_stream: Stream = field(
        default_factory=lambda: Stream(direction=StreamDirection.SERVER_TO_CLIENT)
    )
    http_conversations: List[Any] = field(default_factory=list)
    tls_info: Any = None
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def add_packet(self, pkt: Packet) -> None:
        """Account for another packet belonging to this connection."""
        with self._lock:
            self.last_seen = pkt.timestamp
            self.last_packet = pkt.index
            self.packet_count += 1
            if pkt.protocol == Protocol.TCP:
                self._update_tcp_state(pkt.tcp_flags)
            if self._is_client_to_server(pkt):
                self.bytes_sent += pkt.captured_len
            else:
                self.bytes_received += pkt.captured_len

    def _update_tcp_state(self, flags: TCPFlags) -> None:
        if flags.rst:
            self.state = ConnectionState.RESET
        elif flags.fin:
            if self.state == ConnectionState.CLOSING:
                self.state = ConnectionState.CLOSED
            else:
                self.state = ConnectionState.CLOSING
        elif flags.syn and flags.ack:
            self.state = ConnectionState.OPEN
        elif flags.syn:
            self.state = ConnectionState.NEW

    def _is_client_to_server(self, pkt: Packet) -> bool:
        return pkt.src_ip == self.five_tuple.src_ip and pkt.src_port == self.five_tuple.src_port

    def duration(self) -> timedelta:
        """Time from the first packet to the end, or to the last packet seen."""
        with self._lock:
            end = self.end_time if self.end_time is not None else self.last_seen
            if end is None or self.start_time is None:
                return timedelta(0)
            return end - self.start_time

    def total_bytes(self) -> int:
        """Bytes transferred in both directions."""
        with self._lock:
            return self.bytes_sent + self.bytes_received


def new_connection(conn_id: int, pkt: Packet) -> Connection:
    """Start a connection from its first packet."""
    return Connection(
        id=conn_id,
        five_tuple=pkt.five_tuple(),
        state=ConnectionState.NEW,
        start_time=pkt.timestamp,
        last_seen=pkt.timestamp,
        first_packet=pkt.index,
        last_packet=pkt.index,
        packet_count=1,
    )


class ConnectionTracker:
    """Keeps connections by identifier and by flow hash."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connections: Dict[int, Connection] = {}
        self._by_hash: Dict[int, Connection] = {}
        self._next_id = 1

    def get_or_create(self, pkt: Packet) -> Connection:
        """Return the packet's connection, creating it if it is new."""
        flow_hash = pkt.flow_hash()
        with self._lock:
            conn = self._by_hash.get(flow_hash)
            if conn is not None:
                return conn
            conn = new_connection(self._next_id, pkt)
            self._next_id += 1
            self._connections[conn.id] = conn
            self._by_hash[flow_hash] = conn
            return conn

    def get(self, conn_id: int) -> Optional[Connection]:
        """Return a connection by identifier, or None."""
        with self._lock:
            return self._connections.get(conn_id)

    def get_by_flow(self, flow_hash: int) -> Optional[Connection]:
        """Return a connection by flow hash, or None."""
        with self._lock:
            return self._by_hash.get(flow_hash)

    def all(self) -> List[Connection]:
        """Return every tracked connection."""
        with self._lock:
            return list(self._connections.values())

    def count(self) -> int:
        """Return the number of tracked connections."""
        with self._lock:
            return len(self._connections)

    def clear(self) -> None:
        """Forget every connection."""
        with self._lock:
            self._connections = {}
            self._by_hash = {}

    def __len__(self) -> int:
        return self.count()