"""DNS message dissector and display helpers."""

from __future__ import annotations

import ipaddress
import struct
from typing import Callable, List, Tuple, TypeVar

from wiretap.dissector import (
    Dissector,
    DissectorError,
    IncompleteDataError,
    InvalidProtocolError,
)
from wiretap.packet import DNSInfo, DNSQuestion, DNSResourceRecord, Packet

DNS_HEADER_SIZE = 12
DNS_PORT = 53
DNS_MAX_NAME_LEN = 255

DNS_OPCODE_QUERY = 0
DNS_OPCODE_IQUERY = 1
DNS_OPCODE_STATUS = 2
DNS_OPCODE_NOTIFY = 4
DNS_OPCODE_UPDATE = 5

DNS_RCODE_NOERROR = 0
DNS_RCODE_FORMERR = 1
DNS_RCODE_SERVFAIL = 2
DNS_RCODE_NXDOMAIN = 3
DNS_RCODE_NOTIMP = 4
DNS_RCODE_REFUSED = 5

DNS_TYPE_A = 1
DNS_TYPE_NS = 2
DNS_TYPE_CNAME = 5
DNS_TYPE_SOA = 6
DNS_TYPE_PTR = 12
DNS_TYPE_MX = 15
DNS_TYPE_TXT = 16
DNS_TYPE_AAAA = 28
DNS_TYPE_SRV = 33

_TYPE_NAMES = {
    DNS_TYPE_A: "A",
    DNS_TYPE_NS: "NS",
    DNS_TYPE_CNAME: "CNAME",
    DNS_TYPE_SOA: "SOA",
    DNS_TYPE_PTR: "PTR",
    DNS_TYPE_MX: "MX",
    DNS_TYPE_TXT: "TXT",
    DNS_TYPE_AAAA: "AAAA",
    DNS_TYPE_SRV: "SRV",
}

_CLASS_NAMES = {1: "IN", 3: "CH", 4: "HS", 255: "ANY"}

_RCODE_NAMES = {
    DNS_RCODE_NOERROR: "NOERROR",
    DNS_RCODE_FORMERR: "FORMERR",
    DNS_RCODE_SERVFAIL: "SERVFAIL",
    DNS_RCODE_NXDOMAIN: "NXDOMAIN",
    DNS_RCODE_NOTIMP: "NOTIMP",
    DNS_RCODE_REFUSED: "REFUSED",
}

_T = TypeVar("_T")


def _hex_dump(raw: bytes) -> str:
    return " ".join(f"{b:02x}" for b in raw)


class DNSDissector(Dissector):
    """Parses DNS messages."""

    def name(self) -> str:
        return "DNS"

    def detect(self, data: bytes) -> bool:
        if len(data) < DNS_HEADER_SIZE:
            return False
        flags, qd_count = struct.unpack_from(">HH", data, 2)
        opcode = (flags >> 11) & 0x0F
        if opcode > DNS_OPCODE_UPDATE:
            return False
        if qd_count > 100:
            return False
        is_response = bool(flags & 0x8000)
        if not is_response and qd_count == 0:
            return False
        return True

    def parse(self, data: bytes, pkt: Packet) -> None:
        data = bytes(data)
        if len(data) < DNS_HEADER_SIZE:
            raise IncompleteDataError()

        tid, flags, qd_count, an_count, ns_count, ar_count = struct.unpack_from(
            ">6H", data, 0
        )
        info = DNSInfo(
            transaction_id=tid,
            is_response=bool(flags & 0x8000),
            opcode=(flags >> 11) & 0x0F,
            authoritative=bool(flags & 0x0400),
            truncated=bool(flags & 0x0200),
            recursion_desired=bool(flags & 0x0100),
            recursion_available=bool(flags & 0x0080),
            response_code=flags & 0x000F,
        )

        offset = DNS_HEADER_SIZE
        offset = self._collect(data, offset, qd_count, self._parse_question, info.questions)
        offset = self._collect(data, offset, an_count, self._parse_record, info.answers)
        offset = self._collect(data, offset, ns_count, self._parse_record, info.authority)
        self._collect(data, offset, ar_count, self._parse_record, info.additional)

        pkt.application_protocol = "DNS"
        pkt.dns_info = info

    @staticmethod
    def _collect(
        data: bytes,
        offset: int,
        count: int,
        parser: Callable[[bytes, int], Tuple[_T, int]],
        out: List[_T],
    ) -> int:
        for _ in range(count):
            if offset >= len(data):
                break
            try:
                item, offset = parser(data, offset)
            except DissectorError:
                break
            out.append(item)
        return offset

    def _parse_question(self, data: bytes, offset: int) -> Tuple[DNSQuestion, int]:
        name, pos = self.parse_name(data, offset)
        if pos + 4 > len(data):
            raise IncompleteDataError()
        qtype, qclass = struct.unpack_from(">HH", data, pos)
        return DNSQuestion(name=name, type=qtype, rr_class=qclass), pos + 4

    def _parse_record(self, data: bytes, offset: int) -> Tuple[DNSResourceRecord, int]:
        name, pos = self.parse_name(data, offset)
        if pos + 10 > len(data):
            raise IncompleteDataError()
        rtype, rclass, ttl, rd_len = struct.unpack_from(">HHIH", data, pos)
        pos += 10
        if pos + rd_len > len(data):
            raise IncompleteDataError()
        record = DNSResourceRecord(
            name=name,
            type=rtype,
            rr_class=rclass,
            ttl=ttl,
            data=data[pos : pos + rd_len],
            data_string=self._format_rdata(rtype, data, pos, rd_len),
        )
        return record, pos + rd_len

    def parse_name(self, data: bytes, offset: int) -> Tuple[str, int]:
        """Read a possibly compressed name; return it and the offset after it.

        Raises :class:`IncompleteDataError` when the data ends early and
        :class:`InvalidProtocolError` for pointer loops or bad labels.
        """
        data = bytes(data)
        labels: List[bytes] = []
        visited = set()
        final_offset = offset

        while True:
            if offset >= len(data):
                raise IncompleteDataError()
            length = data[offset]

            if length & 0xC0 == 0xC0:
                if offset + 1 >= len(data):
                    raise IncompleteDataError()
                ptr = struct.unpack_from(">H", data, offset)[0] & 0x3FFF
                if ptr in visited:
                    raise InvalidProtocolError()
                visited.add(ptr)
                if final_offset == offset:
                    final_offset = offset + 2
                offset = ptr
                continue

            if length == 0:
                if final_offset == offset:
                    final_offset = offset + 1
                break

            if length > 63 or offset + 1 + length > len(data):
                raise InvalidProtocolError()

            labels.append(data[offset + 1 : offset + 1 + length])
            offset += 1 + length
            if final_offset < offset:
                final_offset = offset

        name = b".".join(labels).decode("utf-8", errors="replace")
        return name, final_offset

    def _try_name(self, data: bytes, offset: int):
        try:
            return self.parse_name(data, offset)[0]
        except DissectorError:
            return None

    def _format_rdata(self, rr_type: int, data: bytes, offset: int, length: int) -> str:
        if offset + length > len(data):
            return f"(invalid data, len={length})"
        rdata = data[offset : offset + length]

        if rr_type == DNS_TYPE_A and length == 4:
            return str(ipaddress.IPv4Address(rdata))
        if rr_type == DNS_TYPE_AAAA and length == 16:
            address = ipaddress.IPv6Address(rdata)
            mapped = address.ipv4_mapped
            return str(mapped) if mapped is not None else str(address)
        if rr_type in (DNS_TYPE_CNAME, DNS_TYPE_NS, DNS_TYPE_PTR):
            name = self._try_name(data, offset)
            if name is not None:
                return name
        elif rr_type == DNS_TYPE_MX and length >= 2:
            pref = struct.unpack_from(">H", rdata, 0)[0]
            name = self._try_name(data, offset + 2)
            if name is not None:
                return f"{pref} {name}"
        elif rr_type == DNS_TYPE_TXT:
            parts = []
            pos = 0
            while pos < length:
                txt_len = rdata[pos]
                pos += 1
                if pos + txt_len > length:
                    break
                parts.append(rdata[pos : pos + txt_len].decode("utf-8", errors="replace"))
                pos += txt_len
            return " ".join(parts)
        elif rr_type == DNS_TYPE_SRV and length >= 6:
            priority, weight, port = struct.unpack_from(">HHH", rdata, 0)
            name = self._try_name(data, offset + 6)
            if name is not None:
                return f"{priority} {weight} {port} {name}"

        return _hex_dump(rdata)


def dns_type_name(rr_type: int) -> str:
    """Name of a DNS record type, e.g. ``A`` or ``TYPE999``."""
    return _TYPE_NAMES.get(rr_type, f"TYPE{rr_type}")


def dns_class_name(rr_class: int) -> str:
    """Name of a DNS class, e.g. ``IN`` or ``CLASS99``."""
    return _CLASS_NAMES.get(rr_class, f"CLASS{rr_class}")


def dns_rcode_name(rcode: int) -> str:
    """Name of a DNS response code, e.g. ``NXDOMAIN`` or ``RCODE99``."""
    return _RCODE_NAMES.get(rcode, f"RCODE{rcode}")


def format_dns_query(dns: DNSInfo) -> str:
    """One-line description of a DNS query."""
    if not dns.questions:
        return "DNS Query (no questions)"
    q = dns.questions[0]
    return f"DNS Query: {q.name} {dns_type_name(q.type)}"


def format_dns_response(dns: DNSInfo) -> str:
    """Multi-line description of a DNS response and its answers."""
    lines = [f"DNS Response: {dns_rcode_name(dns.response_code)}"]
    lines.extend(
        f"  {a.name} {dns_type_name(a.type)} {a.data_string}" for a in dns.answers
    )
    return "\n".join(lines)