import pytest

from wiretap.websocket_types import WebSocketFrame, WebSocketHandshake, WebSocketOpcode


@pytest.mark.parametrize(
    "opcode, expected",
    [
        (WebSocketOpcode.CONTINUATION, "Continuation"),
        (WebSocketOpcode.TEXT, "Text"),
        (WebSocketOpcode.BINARY, "Binary"),
        (WebSocketOpcode.CLOSE, "Close"),
        (WebSocketOpcode.PING, "Ping"),
        (WebSocketOpcode.PONG, "Pong"),
        (WebSocketOpcode(0x3), "Unknown(3)"),
        (WebSocketOpcode(0xB), "Unknown(11)"),
    ],
)
def test_opcode_string(opcode, expected):
    assert str(opcode) == expected


@pytest.mark.parametrize(
    "opcode, is_ctrl",
    [
        (WebSocketOpcode.CONTINUATION, False),
        (WebSocketOpcode.TEXT, False),
        (WebSocketOpcode.BINARY, False),
        (WebSocketOpcode.CLOSE, True),
        (WebSocketOpcode.PING, True),
        (WebSocketOpcode.PONG, True),
        (WebSocketOpcode(0x7), False),
        (WebSocketOpcode(0x8), True),
    ],
)
def test_opcode_is_control(opcode, is_ctrl):
    assert opcode.is_control() is is_ctrl


@pytest.mark.parametrize(
    "handshake, expected",
    [
        (
            WebSocketHandshake(headers={"Sec-WebSocket-Key": "dGhlIHNhbXBsZSBub25jZQ=="}),
            "dGhlIHNhbXBsZSBub25jZQ==",
        ),
        (WebSocketHandshake(key="fallback-key"), "fallback-key"),
        (
            WebSocketHandshake(headers={"Sec-WebSocket-Key": "header-key"}, key="field-key"),
            "header-key",
        ),
        (WebSocketHandshake(), ""),
    ],
)
def test_sec_websocket_key(handshake, expected):
    assert handshake.sec_websocket_key() == expected


@pytest.mark.parametrize(
    "handshake, expected",
    [
        (WebSocketHandshake(headers={"Sec-WebSocket-Protocol": "graphql-ws"}), "graphql-ws"),
        (WebSocketHandshake(protocol="chat"), "chat"),
        (
            WebSocketHandshake(
                headers={"Sec-WebSocket-Protocol": "header-proto"}, protocol="field-proto"
            ),
            "header-proto",
        ),
    ],
)
def test_sec_websocket_protocol(handshake, expected):
    assert handshake.sec_websocket_protocol() == expected


def test_frame_opcode_type():
    assert WebSocketFrame(opcode=0x1).opcode_type() == WebSocketOpcode.TEXT


@pytest.mark.parametrize(
    "opcode, is_text, is_binary, is_close, is_ping, is_pong, is_ctrl",
    [
        (0x0, False, False, False, False, False, False),
        (0x1, True, False, False, False, False, False),
        (0x2, False, True, False, False, False, False),
        (0x8, False, False, True, False, False, True),
        (0x9, False, False, False, True, False, True),
        (0xA, False, False, False, False, True, True),
    ],
)
def test_frame_type_checks(opcode, is_text, is_binary, is_close, is_ping, is_pong, is_ctrl):
    frame = WebSocketFrame(opcode=opcode)
    assert frame.is_text() is is_text
    assert frame.is_binary() is is_binary
    assert frame.is_close() is is_close
    assert frame.is_ping() is is_ping
    assert frame.is_pong() is is_pong
    assert frame.is_control() is is_ctrl


@pytest.mark.parametrize(
    "frame, expected",
    [
        (
            WebSocketFrame(opcode=WebSocketOpcode.TEXT, payload_length=5, payload=b"hello"),
            'WebSocket Text: "hello"',
        ),
        (
            WebSocketFrame(
                opcode=WebSocketOpcode.TEXT,
                payload_length=100,
                payload=b"this is a very long message that exceeds fifty characters "
                b"in length and should be truncated",
            ),
            'WebSocket Text: "this is a very long message that exceeds fifty cha..."',
        ),
        (
            WebSocketFrame(opcode=WebSocketOpcode.BINARY, payload_length=256),
            "WebSocket Binary (256 bytes)",
        ),
        (WebSocketFrame(opcode=WebSocketOpcode.PING), "WebSocket Ping"),
        (
            WebSocketFrame(opcode=WebSocketOpcode.CLOSE, payload_length=2),
            "WebSocket Close (2 bytes)",
        ),
    ],
)
def test_frame_summary(frame, expected):
    assert frame.summary() == expected


def test_frame_summary_escapes_quotes_and_newlines():
    frame = WebSocketFrame(opcode=WebSocketOpcode.TEXT, payload=b'say "hi"\n')
    assert frame.summary() == 'WebSocket Text: "say \\"hi\\"\\n"'


@pytest.mark.parametrize(
    "frame, expected",
    [
        (WebSocketFrame(opcode=WebSocketOpcode.CLOSE, payload=b"\x03\xe8"), 1000),
        (WebSocketFrame(opcode=WebSocketOpcode.CLOSE, payload=b"\x03\xe9"), 1001),
        (WebSocketFrame(opcode=WebSocketOpcode.TEXT, payload=b"\x03\xe8"), 0),
        (WebSocketFrame(opcode=WebSocketOpcode.CLOSE, payload=b"\x03"), 0),
        (WebSocketFrame(opcode=WebSocketOpcode.CLOSE), 0),
    ],
)
def test_frame_close_code(frame, expected):
    assert frame.close_code() == expected


@pytest.mark.parametrize(
    "frame, expected",
    [
        (WebSocketFrame(opcode=WebSocketOpcode.CLOSE, payload=b"\x03\xe8goodbye"), "goodbye"),
        (WebSocketFrame(opcode=WebSocketOpcode.CLOSE, payload=b"\x03\xe8"), ""),
        (WebSocketFrame(opcode=WebSocketOpcode.TEXT, payload=b"hello"), ""),
        (WebSocketFrame(opcode=WebSocketOpcode.CLOSE), ""),
    ],
)
def test_frame_close_reason(frame, expected):
    assert frame.close_reason() == expected


def test_frame_text_payload():
    assert WebSocketFrame(payload=b"hello world").text_payload() == "hello world"
    assert WebSocketFrame().text_payload() == ""