import pytest

from wiretap.dissector import (
    Dissector,
    DissectorError,
    DissectorRegistry,
    IncompleteDataError,
    InvalidProtocolError,
    UnsupportedMethodError,
)
from wiretap.dns import DNSDissector
from wiretap.packet import Packet


class _PrefixDissector(Dissector):
    def __init__(self, label, prefix, error=None):
        self._label = label
        self._prefix = prefix
        self._error = error

    def name(self):
        return self._label

    def detect(self, data):
        return bytes(data).startswith(self._prefix)

    def parse(self, data, pkt):
        if self._error is not None:
            raise self._error
        pkt.application_protocol = self._label
        pkt.app_info = bytes(data).decode()


def _dns_query():
    return (
        b"\x00\x01\x01\x00\x00\x01\x00\x00\x00\x00\x00\x00"
        b"\x07example\x03com\x00\x00\x01\x00\x01"
    )


def test_dissector_is_abstract():
    with pytest.raises(TypeError):
        Dissector()


def test_error_hierarchy_and_messages():
    assert issubclass(InvalidProtocolError, DissectorError)
    assert issubclass(IncompleteDataError, DissectorError)
    assert issubclass(UnsupportedMethodError, DissectorError)
    assert str(InvalidProtocolError()) == "invalid protocol data"
    assert str(IncompleteDataError()) == "incomplete data for parsing"
    assert str(UnsupportedMethodError()) == "unsupported method"


def test_list_keeps_registration_order():
    registry = DissectorRegistry()
    registry.register(_PrefixDissector("alpha", b"A"))
    registry.register(_PrefixDissector("beta", b"B"))
    registry.register(DNSDissector())
    assert registry.list() == ["alpha", "beta", "DNS"]
    assert len(registry) == 3


def test_constructor_accepts_dissectors():
    registry = DissectorRegistry([_PrefixDissector("one", b"1")])
    assert registry.list() == ["one"]


def test_get_by_name():
    alpha = _PrefixDissector("alpha", b"A")
    registry = DissectorRegistry([alpha])
    assert registry.get("alpha") is alpha
    assert registry.get("Unknown") is None


def test_detect_returns_first_match():
    first = _PrefixDissector("first", b"X")
    second = _PrefixDissector("second", b"XY")
    registry = DissectorRegistry([first, second])
    assert registry.detect(b"XYZ") is first
    assert registry.detect(b"nothing") is None


def test_parse_uses_matching_dissector():
    registry = DissectorRegistry([_PrefixDissector("alpha", b"A"), _PrefixDissector("beta", b"B")])
    pkt = Packet()
    used = registry.parse(b"Bravo", pkt)
    assert used is registry.get("beta")
    assert pkt.application_protocol == "beta"
    assert pkt.app_info == "Bravo"


def test_parse_without_match_leaves_packet():
    registry = DissectorRegistry([_PrefixDissector("alpha", b"A")])
    pkt = Packet()
    assert registry.parse(b"zzz", pkt) is None
    assert pkt.application_protocol == ""


def test_parse_propagates_errors():
    registry = DissectorRegistry([_PrefixDissector("bad", b"!", error=IncompleteDataError())])
    with pytest.raises(IncompleteDataError):
        registry.parse(b"!data", Packet())


def test_registry_with_dns():
    registry = DissectorRegistry([_PrefixDissector("alpha", b"GET"), DNSDissector()])
    pkt = Packet()
    used = registry.parse(_dns_query(), pkt)
    assert used.name() == "DNS"
    assert pkt.application_protocol == "DNS"
    assert pkt.dns_info.questions[0].name == "example.com"