# wiretap

Data models and protocol dissectors for analysing network traffic that has
already been captured and decoded down to its payload bytes.

## What is in the package

| Module | Contents |
| --- | --- |
| `wiretap.packet` | `Packet`, `FiveTuple`, `TCPFlags`, `Protocol`, `Layer`, `DNSInfo`, `DNSQuestion`, `DNSResourceRecord`, and the helpers `ip_to_bytes`, `bytes_to_ip`, `ports_to_bytes`, `bytes_to_ports` |
| `wiretap.connection` | `Connection`, `ConnectionState`, `ConnectionTracker`, `Stream`, `StreamDirection`, `new_connection` |
| `wiretap.http_types` | `HTTPVersion`, `HTTPMethod`, `HTTPRequest`, `HTTPResponse`, `HTTPConversation`, `Header`, `HTTP2Frame`, `HTTP2FrameType`, `HTTP2FrameFlags`, `HTTP2Headers`, `HTTP2Settings` |
| `wiretap.websocket_types` | `WebSocketOpcode`, `WebSocketHandshake`, `WebSocketFrame` |
| `wiretap.tls_types` | `TLSVersion`, `TLSContentType`, `TLSHandshakeType`, `TLSCipherSuite`, `TLSClientHello`, `TLSServerHello`, `TLSExtension`, `TLSInfo`, `TLSCertificateInfo`, `tls_certificate_info` |
| `wiretap.grpc_types` | `GRPCStatus`, `GRPCMessage`, `GRPCStream` |
| `wiretap.dissector` | the `Dissector` base class, `DissectorRegistry`, and the errors `DissectorError`, `InvalidProtocolError`, `IncompleteDataError`, `UnsupportedMethodError` |
| `wiretap.dns` | `DNSDissector` and the display helpers `dns_type_name`, `dns_class_name`, `dns_rcode_name`, `format_dns_query`, `format_dns_response` |
| `wiretap.grpc` | `GRPCDissector`, `default_grpc_dissector`, `configure_grpc_dissector`, `is_valid_utf8`, `fields_to_json`, and the errors `InvalidGRPCFrameError`, `GRPCFrameTooLargeError`, `ProtoNotFoundError` |

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Tracking connections

`FiveTuple.hash_value()` gives the same 64-bit hash in both directions, so
packets from either side of a conversation are assigned to the same
`Connection`. Addresses may be given as strings, bytes or `ipaddress`
objects; IPv4-mapped IPv6 addresses are stored as IPv4.

```python
from datetime import datetime, timedelta
from wiretap.packet import Packet, Protocol, TCPFlags
from wiretap.connection import ConnectionTracker

tracker = ConnectionTracker()
start = datetime.now()
syn = Packet(
    index=1,
    timestamp=start,
    src_ip="10.0.0.1",
    dst_ip="10.0.0.2",
    src_port=1234,
    dst_port=80,
    protocol=Protocol.TCP,
    captured_len=60,
    tcp_flags=TCPFlags(syn=True),
)
conn = tracker.get_or_create(syn)
print(conn.five_tuple, conn.state)   # 10.0.0.1:1234 → 10.0.0.2:80 (TCP) NEW

syn_ack = Packet(
    index=2,
    timestamp=start + timedelta(milliseconds=5),
    src_ip="10.0.0.2",
    dst_ip="10.0.0.1",
    src_port=80,
    dst_port=1234,
    protocol=Protocol.TCP,
    captured_len=60,
    tcp_flags=TCPFlags(syn=True, ack=True),
)
same = tracker.get_or_create(syn_ack)   # same connection as before
same.add_packet(syn_ack)
print(same.state, same.total_bytes())   # OPEN 60
```

`Connection.add_packet` only moves the state on TCP flags (RST → RESET,
FIN → CLOSING then CLOSED, SYN+ACK → OPEN, SYN → NEW) and counts captured
bytes as sent or received by comparing the source with the connection's
first packet. It does not add the first packet's bytes; the packet passed to
`get_or_create` only starts the connection.

## Dissectors

A dissector has `name()`, `detect(data)` and `parse(data, pkt)`. `parse`
stores its results on the `Packet` and raises a `DissectorError` subclass
when the data cannot be parsed.

`DissectorRegistry` keeps dissectors in the order they were registered. It
starts empty (or with the iterable passed to it). `detect` returns the first
dissector that accepts the data. `parse` runs that dissector and returns it,
or returns `None` when none matched.

```python
from wiretap.dissector import DissectorRegistry
from wiretap.dns import DNSDissector
from wiretap.grpc import GRPCDissector

registry = DissectorRegistry([DNSDissector(), GRPCDissector()])
print(registry.list())   # ['DNS', 'gRPC']
```

### DNS

```python
from wiretap.dns import DNSDissector, format_dns_query
from wiretap.packet import Packet

payload = (
    bytes.fromhex("000101000001000000000000")   # header: id 1, RD, one question
    + b"\x07example\x03com\x00"
    + b"\x00\x01\x00\x01"                      # type A, class IN
)

dissector = DNSDissector()
pkt = Packet()
if dissector.detect(payload):
    dissector.parse(payload, pkt)
    print(format_dns_query(pkt.dns_info))   # DNS Query: example.com A
```

Names may use compression pointers; pointer loops raise
`InvalidProtocolError`. Record data is shown as addresses for A and AAAA,
as names for CNAME, NS and PTR, and in readable form for MX, TXT and SRV.
All other types are shown as a hex dump. If a question or record cannot be
read, parsing of its section stops there; the records read so far are kept.

### gRPC

```python
from wiretap.grpc import GRPCDissector, fields_to_json
from wiretap.packet import Packet

frame_bytes = b"\x00\x00\x00\x00\x07" + b"\x0a\x05hello"

dissector = GRPCDissector()
pkt = Packet()
dissector.parse(frame_bytes, pkt)
for message in pkt.grpc_messages:
    print(message.summary())                      # gRPC message (7 bytes)
    print(fields_to_json(message.decoded_fields))  # {"field_1": "hello"}, indented
```

Without a schema, `decode_protobuf` keys fields by number. Length-delimited
fields become text when they are printable UTF-8. Otherwise they become a
nested field dictionary if they decode as one, and raw bytes if not.
Repeated fields become lists. Frames over 16 MiB are refused. `parse` raises
`IncompleteDataError` when no complete frame is present.

Compiled descriptor sets (`.pb` files holding a `FileDescriptorSet` or a
single `FileDescriptorProto`) can be loaded with
`GRPCDissector.load_proto_file`. `GRPCDissector.load_proto_dir` loads every
`.pb` file under a directory tree and prints a warning to stderr for files it
cannot load. After that, `decode_with_schema(data, "package.Message")`
returns a dictionary keyed by field name. It raises `ProtoNotFoundError` for
an unknown message name and `InvalidProtocolError` for malformed data.
`configure_grpc_dissector(proto_dirs, proto_files)` builds a new shared
instance with these descriptors, which `default_grpc_dissector()` then
returns.

### TLS certificates

`tls_certificate_info(cert)` takes a `cryptography.x509.Certificate`. It
returns a `TLSCertificateInfo` with subject and issuer names, SANs, validity
dates and flags, key and signature algorithms, and SHA-1 and SHA-256
fingerprints.

## What the package does not do

- It does not capture packets or read capture files. `Packet` objects are
  built by the caller.
- It has no command-line program and no interactive viewer.
- It has only DNS and gRPC dissectors. The HTTP, HTTP/2, WebSocket and TLS
  modules hold data types only; nothing here parses those protocols or
  decrypts TLS.
- It does not reassemble TCP streams. `Stream.append` just appends payload
  in arrival order.
- It has no plugin system.