"""gRPC message dissector with schema-less and descriptor-based protobuf decoding."""

from __future__ import annotations

import base64
import json
import struct
import sys
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from google.protobuf import descriptor_pb2, descriptor_pool
from google.protobuf.descriptor import Descriptor, FieldDescriptor
from google.protobuf.message import DecodeError

from wiretap.dissector import (
    Dissector,
    DissectorError,
    IncompleteDataError,
    InvalidProtocolError,
)
from wiretap.grpc_types import GRPCMessage
from wiretap.packet import Packet

GRPC_FLAG_COMPRESSED = 0x01
GRPC_HEADER_SIZE = 5
GRPC_MAX_FRAME = 16 * 1024 * 1024

_WIRE_VARINT = 0
_WIRE_FIXED64 = 1
_WIRE_BYTES = 2
_WIRE_START_GROUP = 3
_WIRE_FIXED32 = 5

_MAX_INT32 = (1 << 31) - 1
_UNSET = object()


class InvalidGRPCFrameError(DissectorError):
    """A gRPC length-prefixed frame is malformed."""

    default_message = "invalid gRPC frame"


class GRPCFrameTooLargeError(DissectorError):
    """A gRPC frame announces more than the 16 MiB limit."""

    default_message = "gRPC frame too large"


class ProtoNotFoundError(DissectorError):
    """No loaded descriptor defines the requested message type."""

    default_message = "protobuf descriptor not found"


def _consume_varint(data: bytes, pos: int) -> Optional[Tuple[int, int]]:
    """Read a varint at ``pos``; return (value, bytes used) or None on error."""
    result = 0
    for i in range(10):
        if pos + i >= len(data):
            return None
        byte = data[pos + i]
        if i == 9 and byte > 1:
            return None
        result |= (byte & 0x7F) << (7 * i)
        if byte < 0x80:
            return result, i + 1
    return None


def _consume_tag(data: bytes, pos: int) -> Optional[Tuple[int, int, int]]:
    decoded = _consume_varint(data, pos)
    if decoded is None:
        return None
    value, used = decoded
    number = value >> 3
    if number < 1 or number > _MAX_INT32:
        return None
    return number, value & 0x7, used


def _consume_fixed(data: bytes, pos: int, size: int) -> Optional[bytes]:
    if pos + size > len(data):
        return None
    return data[pos : pos + size]


def _consume_bytes(data: bytes, pos: int) -> Optional[Tuple[bytes, int]]:
    decoded = _consume_varint(data, pos)
    if decoded is None:
        return None
    length, used = decoded
    start = pos + used
    if length > len(data) - start:
        return None
    return data[start : start + length], used + length


def _to_signed(value: int, bits: int) -> int:
    value &= (1 << bits) - 1
    return value - (1 << bits) if value >> (bits - 1) else value


def is_valid_utf8(data: bytes) -> bool:
    """True when the bytes look like printable text in valid UTF-8."""
    data = bytes(data)
    for byte in data:
        if byte < 0x20 and byte not in (0x09, 0x0A, 0x0D):
            return False
        if byte >= 0x80:
            return "\ufffd" not in data.decode("utf-8", errors="replace")
    return True


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return value


def fields_to_json(fields: Dict[int, Any]) -> str:
    """Render decoded fields as indented JSON keyed ``field_<n>``."""
    named = {f"field_{number}": value for number, value in fields.items()}
    try:
        return json.dumps(_jsonable(named), indent=2, sort_keys=True, ensure_ascii=False)
    except (TypeError, ValueError):
        return "{}"


def _is_repeated(field: FieldDescriptor) -> bool:
    if hasattr(field, "is_repeated"):
        return bool(field.is_repeated)
    return field.label == FieldDescriptor.LABEL_REPEATED


def _varint_field_value(field: FieldDescriptor, value: int) -> Any:
    kind = field.type
    if kind == FieldDescriptor.TYPE_BOOL:
        return value != 0
    if kind in (
        FieldDescriptor.TYPE_ENUM,
        FieldDescriptor.TYPE_INT32,
        FieldDescriptor.TYPE_SINT32,
        FieldDescriptor.TYPE_SFIXED32,
    ):
        return _to_signed(value, 32)
    if kind in (
        FieldDescriptor.TYPE_INT64,
        FieldDescriptor.TYPE_SINT64,
        FieldDescriptor.TYPE_SFIXED64,
    ):
        return _to_signed(value, 64)
    if kind in (FieldDescriptor.TYPE_UINT32, FieldDescriptor.TYPE_FIXED32):
        return value & 0xFFFFFFFF
    if kind in (FieldDescriptor.TYPE_UINT64, FieldDescriptor.TYPE_FIXED64):
        return value & 0xFFFFFFFFFFFFFFFF
    return _UNSET


def _fixed64_field_value(field: FieldDescriptor, raw: bytes) -> Any:
    if field.type == FieldDescriptor.TYPE_DOUBLE:
        return struct.unpack("<d", raw)[0]
    if field.type == FieldDescriptor.TYPE_SFIXED64:
        return struct.unpack("<q", raw)[0]
    return struct.unpack("<Q", raw)[0]


def _fixed32_field_value(field: FieldDescriptor, raw: bytes) -> Any:
    if field.type == FieldDescriptor.TYPE_FLOAT:
        return struct.unpack("<f", raw)[0]
    if field.type == FieldDescriptor.TYPE_SFIXED32:
        return struct.unpack("<i", raw)[0]
    return struct.unpack("<I", raw)[0]


def _skip_unknown(data: bytes, pos: int, wire_type: int) -> int:
    if wire_type == _WIRE_VARINT:
        decoded = _consume_varint(data, pos)
        used = decoded[1] if decoded is not None else None
    elif wire_type == _WIRE_FIXED64:
        used = 8 if _consume_fixed(data, pos, 8) is not None else None
    elif wire_type == _WIRE_BYTES:
        decoded_bytes = _consume_bytes(data, pos)
        used = decoded_bytes[1] if decoded_bytes is not None else None
    elif wire_type == _WIRE_FIXED32:
        used = 4 if _consume_fixed(data, pos, 4) is not None else None
    else:
        raise InvalidProtocolError(f"unknown wire type: {wire_type}")
    if used is None:
        raise InvalidProtocolError("invalid field value")
    return used


def _unmarshal(data: bytes, message: Descriptor) -> Dict[str, Any]:
    """Decode wire-format bytes against a message descriptor into a dict."""
    result: Dict[str, Any] = {}
    pos = 0
    while pos < len(data):
        tag = _consume_tag(data, pos)
        if tag is None:
            raise InvalidProtocolError("invalid tag")
        number, wire_type, used = tag
        pos += used

        field = message.fields_by_number.get(number)
        if field is None:
            pos += _skip_unknown(data, pos, wire_type)
            continue

        value: Any = _UNSET
        if wire_type == _WIRE_VARINT:
            decoded = _consume_varint(data, pos)
            if decoded is None:
                raise InvalidProtocolError("invalid varint")
            value = _varint_field_value(field, decoded[0])
            pos += decoded[1]
        elif wire_type == _WIRE_FIXED64:
            raw = _consume_fixed(data, pos, 8)
            if raw is None:
                raise InvalidProtocolError("invalid fixed64")
            value = _fixed64_field_value(field, raw)
            pos += 8
        elif wire_type == _WIRE_BYTES:
            decoded_bytes = _consume_bytes(data, pos)
            if decoded_bytes is None:
                raise InvalidProtocolError("invalid bytes")
            raw, used = decoded_bytes
            if field.type == FieldDescriptor.TYPE_MESSAGE:
                try:
                    value = _unmarshal(raw, field.message_type)
                except DissectorError:
                    value = _UNSET
            elif field.type == FieldDescriptor.TYPE_STRING:
                value = raw.decode("utf-8", errors="replace")
            else:
                value = bytes(raw)
            pos += used
        elif wire_type == _WIRE_FIXED32:
            raw = _consume_fixed(data, pos, 4)
            if raw is None:
                raise InvalidProtocolError("invalid fixed32")
            value = _fixed32_field_value(field, raw)
            pos += 4
        else:
            raise InvalidProtocolError(f"unsupported wire type: {wire_type}")

        if value is _UNSET:
            continue
        if _is_repeated(field):
            result.setdefault(field.name, []).append(value)
        else:
            result[field.name] = value
    return result


class GRPCDissector(Dissector):
    """Parses gRPC length-prefixed messages and decodes their protobuf payloads."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._pool = descriptor_pool.DescriptorPool()
        self._types: Dict[str, Descriptor] = {}
        self._proto_dirs: List[str] = []

    def name(self) -> str:
        return "gRPC"

    @property
    def proto_dirs(self) -> List[str]:
        """Directories configured for descriptor lookup."""
        with self._lock:
            return list(self._proto_dirs)

    def set_proto_dirs(self, dirs: Iterable[str]) -> None:
        """Replace the directories searched for descriptors."""
        with self._lock:
            self._proto_dirs = list(dirs)

    def add_proto_dir(self, directory: str) -> None:
        """Add a directory to search for descriptors."""
        with self._lock:
            self._proto_dirs.append(directory)

    def detect(self, data: bytes) -> bool:
        data = bytes(data)
        if b"application/grpc" in data:
            return True
        if len(data) >= GRPC_HEADER_SIZE and data[0] <= 0x01:
            length = struct.unpack_from(">I", data, 1)[0]
            if 0 < length <= GRPC_MAX_FRAME and len(data) >= GRPC_HEADER_SIZE + length:
                return True
        return False

    def parse(self, data: bytes, pkt: Packet) -> None:
        messages = list(self._parse_frames(bytes(data)))
        if not messages:
            raise IncompleteDataError()
        pkt.application_protocol = "gRPC"
        pkt.grpc_messages = messages
        pkt.app_info = messages[0].summary()

    def _parse_frames(self, data: bytes):
        offset = 0
        while offset < len(data):
            try:
                msg, consumed = self._parse_frame(data, offset)
            except DissectorError:
                return
            if consumed == 0:
                return
            yield msg
            offset += consumed

    def _parse_frame(self, data: bytes, offset: int) -> Tuple[GRPCMessage, int]:
        if len(data) - offset < GRPC_HEADER_SIZE:
            raise IncompleteDataError()
        flags = data[offset]
        length = struct.unpack_from(">I", data, offset + 1)[0]
        if length > GRPC_MAX_FRAME:
            raise GRPCFrameTooLargeError()
        total = GRPC_HEADER_SIZE + length
        if len(data) - offset < total:
            raise IncompleteDataError()
        payload = data[offset + GRPC_HEADER_SIZE : offset + total]
        msg = GRPCMessage(
            compressed=bool(flags & GRPC_FLAG_COMPRESSED),
            length=length,
            payload=payload,
            decoded_fields=self.decode_protobuf(payload),
        )
        return msg, total

    def decode_protobuf(self, data: bytes) -> Dict[int, Any]:
        """Decode protobuf wire data without a schema, keyed by field number."""
        data = bytes(data)
        fields: Dict[int, Any] = {}
        pos = 0
        while pos < len(data):
            tag = _consume_tag(data, pos)
            if tag is None:
                break
            number, wire_type, used = tag
            pos += used

            if wire_type == _WIRE_VARINT:
                decoded = _consume_varint(data, pos)
                if decoded is None:
                    break
                value, consumed = decoded
            elif wire_type == _WIRE_FIXED64:
                raw = _consume_fixed(data, pos, 8)
                if raw is None:
                    break
                value, consumed = struct.unpack("<Q", raw)[0], 8
            elif wire_type == _WIRE_BYTES:
                decoded_bytes = _consume_bytes(data, pos)
                if decoded_bytes is None:
                    break
                raw, consumed = decoded_bytes
                if is_valid_utf8(raw):
                    value = raw.decode("utf-8", errors="replace")
                else:
                    nested = self.decode_protobuf(raw)
                    value = nested if nested else bytes(raw)
            elif wire_type == _WIRE_FIXED32:
                raw = _consume_fixed(data, pos, 4)
                if raw is None:
                    break
                value, consumed = struct.unpack("<I", raw)[0], 4
            else:
                # Groups are deprecated; unknown wire types end decoding.
                break

            if consumed == 0:
                break
            pos += consumed

            if number in fields:
                existing = fields[number]
                if isinstance(existing, list):
                    existing.append(value)
                else:
                    fields[number] = [existing, value]
            else:
                fields[number] = value
        return fields

    def load_proto_file(self, path: str) -> None:
        """Load a serialized FileDescriptorSet (or single FileDescriptorProto).

        Raises OSError when the file cannot be read and ValueError when it
        holds no descriptor.
        """
        raw = Path(path).read_bytes()
        try:
            files = list(descriptor_pb2.FileDescriptorSet.FromString(raw).file)
        except DecodeError:
            try:
                files = [descriptor_pb2.FileDescriptorProto.FromString(raw)]
            except DecodeError as exc:
                raise ValueError(f"parse proto descriptor: {exc}") from exc

        with self._lock:
            for file_proto in files:
                try:
                    self._pool.AddSerializedFile(file_proto.SerializeToString())
                    file_desc = self._pool.FindFileByName(file_proto.name)
                except Exception:  # the pool rejects unresolvable or conflicting files
                    continue
                for message in file_desc.message_types_by_name.values():
                    self._types[message.full_name] = message

    def load_proto_dir(self, directory: str) -> None:
        """Load every ``.pb`` descriptor file under a directory tree."""
        root = Path(directory)
        root.stat()
        candidates = [root] if root.is_file() else sorted(root.rglob("*"))
        for path in candidates:
            if path.is_file() and str(path).endswith(".pb"):
                try:
                    self.load_proto_file(str(path))
                except (OSError, ValueError) as exc:
                    print(f"Warning: failed to load {path}: {exc}", file=sys.stderr)

    def decode_with_schema(self, data: bytes, message_name: str) -> Dict[str, Any]:
        """Decode a message using a loaded descriptor, keyed by field name."""
        with self._lock:
            message = self._types.get(message_name)
            if message is None:
                raise ProtoNotFoundError(
                    f"protobuf descriptor not found: {message_name}"
                )
            try:
                return _unmarshal(bytes(data), message)
            except DissectorError as exc:
                raise InvalidProtocolError(f"unmarshal: {exc}") from exc


_default_lock = threading.Lock()
_default_dissector = GRPCDissector()


def default_grpc_dissector() -> GRPCDissector:
    """The shared gRPC dissector instance."""
    global _default_dissector
    with _default_lock:
        if _default_dissector is None:
            _default_dissector = GRPCDissector()
        return _default_dissector


def configure_grpc_dissector(
    proto_dirs: Optional[Iterable[str]], proto_files: Optional[Iterable[str]]
) -> None:
    """Build a new shared dissector loaded with the given descriptors."""
    global _default_dissector
    dissector = GRPCDissector()
    for directory in proto_dirs or ():
        dissector.load_proto_dir(directory)
    for path in proto_files or ():
        dissector.load_proto_file(path)
    with _default_lock:
        _default_dissector = dissector