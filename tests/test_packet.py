import ipaddress

import pytest

from wiretap.packet import (
    DNSInfo,
    FiveTuple,
    Packet,
    Protocol,
    TCPFlags,
    bytes_to_ip,
    bytes_to_ports,
    ip_to_bytes,
    ports_to_bytes,
)


def _tuple(src="192.168.1.1", dst="192.168.1.2", sport=12345, dport=80):
    return FiveTuple(src_ip=src, dst_ip=dst, src_port=sport, dst_port=dport, protocol=Protocol.TCP)


def test_packet_five_tuple():
    pkt = Packet(src_ip="192.168.1.1", dst_ip="192.168.1.2", src_port=12345, dst_port=80, protocol=Protocol.TCP)
    ft = pkt.five_tuple()
    assert ft.src_ip == ipaddress.ip_address("192.168.1.1")
    assert ft.dst_ip == ipaddress.ip_address("192.168.1.2")
    assert ft.src_port == 12345
    assert ft.dst_port == 80
    assert ft.protocol == Protocol.TCP


def test_five_tuple_hash():
    ft = _tuple()
    assert ft.hash_value() != 0
    assert ft.hash_value() == _tuple().hash_value()
    assert ft.hash_value() == _tuple("192.168.1.2", "192.168.1.1", 80, 12345).hash_value()
    assert ft.hash_value() != _tuple(src="192.168.1.3").hash_value()
    assert 0 <= ft.hash_value() < 2**64


def test_five_tuple_hash_mapped_ipv4_equals_ipv4():
    assert _tuple(src="::ffff:192.168.1.1").hash_value() == _tuple().hash_value()


def test_five_tuple_reverse():
    ft = _tuple()
    rev = ft.reverse()
    assert rev.src_ip == ft.dst_ip
    assert rev.dst_ip == ft.src_ip
    assert rev.src_port == ft.dst_port
    assert rev.dst_port == ft.src_port
    assert rev.reverse() == ft


def test_five_tuple_str():
    assert str(_tuple()) == "192.168.1.1:12345 → 192.168.1.2:80 (TCP)"


@pytest.mark.parametrize(
    "proto, want",
    [
        (Protocol.TCP, "TCP"),
        (Protocol.UDP, "UDP"),
        (Protocol.ICMP, "ICMP"),
        (Protocol.HTTP2, "HTTP/2"),
        (Protocol(255), "Unknown"),
    ],
)
def test_protocol_str(proto, want):
    assert str(proto) == want


@pytest.mark.parametrize(
    "flags, want",
    [
        (TCPFlags(syn=True), "[SYN]"),
        (TCPFlags(syn=True, ack=True), "[SYN ACK]"),
        (TCPFlags(fin=True, ack=True), "[ACK FIN]"),
        (TCPFlags(rst=True), "[RST]"),
        (TCPFlags(), "[.]"),
    ],
)
def test_tcp_flags_str(flags, want):
    assert str(flags) == want


@pytest.mark.parametrize(
    "flags, want",
    [
        (TCPFlags(syn=True), 0x02),
        (TCPFlags(ack=True), 0x10),
        (TCPFlags(syn=True, ack=True), 0x12),
        (TCPFlags(fin=True), 0x01),
        (TCPFlags(rst=True), 0x04),
    ],
)
def test_tcp_flags_to_uint8(flags, want):
    assert flags.to_uint8() == want


def test_tcp_flags_has():
    flags = TCPFlags(syn=True, ack=True)
    assert flags.has("SYN")
    assert flags.has("ack")
    assert not flags.has("FIN")
    assert not flags.has("BOGUS")


def test_dns_info_fields():
    query = DNSInfo(is_response=False, transaction_id=1234)
    response = DNSInfo(is_response=True, transaction_id=1234)
    assert query.is_response is False
    assert response.is_response is True
    assert query.transaction_id == 1234
    assert query.questions == []


def test_ip_to_bytes_ipv4_mapped():
    b = ip_to_bytes("192.168.1.1")
    assert len(b) == 16
    assert b[10] == 0xFF and b[11] == 0xFF
    assert list(b[12:]) == [192, 168, 1, 1]


def test_bytes_to_ip_ipv4():
    raw = bytes(10) + b"\xff\xff" + bytes([192, 168, 1, 1])
    assert bytes_to_ip(raw) == ipaddress.IPv4Address("192.168.1.1")


def test_bytes_to_ip_ipv6():
    raw = bytes([0x20, 0x01]) + bytes(13) + b"\x01"
    assert bytes_to_ip(raw) == ipaddress.IPv6Address("2001::1")


def test_bytes_to_ip_wrong_length():
    with pytest.raises(ValueError):
        bytes_to_ip(b"\x00\x01")


def test_ip_bytes_round_trip_ipv6():
    ip = ipaddress.IPv6Address("fe80::1234")
    assert bytes_to_ip(ip_to_bytes(ip)) == ip


def test_ports_round_trip():
    assert ports_to_bytes(1234, 443) == b"\x04\xd2\x01\xbb"
    assert bytes_to_ports(ports_to_bytes(1234, 443)) == (1234, 443)


def test_bytes_to_ports_short_input():
    assert bytes_to_ports(b"\x00") == (0, 0)


def test_packet_summary():
    pkt = Packet(protocol=Protocol.TCP, src_port=1234, dst_port=80, tcp_flags=TCPFlags(syn=True))
    assert pkt.summary() == "TCP 1234 → 80 [[SYN]]"

    pkt.protocol = Protocol.UDP
    pkt.captured_len = 42
    assert pkt.summary() == "UDP 1234 → 80 len=42"

    pkt.protocol = Protocol.ICMP
    assert pkt.summary() == "ICMP"

    pkt.protocol = Protocol.ARP
    pkt.src_ip = ipaddress.ip_address("10.0.0.1")
    pkt.dst_ip = ipaddress.ip_address("10.0.0.2")
    assert pkt.summary() == "10.0.0.1 → 10.0.0.2"

    pkt.app_info = "GET /index.html"
    assert pkt.summary() == "GET /index.html"


def test_packet_flow_hash_matches_tuple():
    pkt = Packet(src_ip="10.0.0.1", dst_ip="10.0.0.2", src_port=1, dst_port=2, protocol=Protocol.UDP)
    assert pkt.flow_hash() == pkt.five_tuple().hash_value()