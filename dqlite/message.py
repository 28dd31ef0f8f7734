"""Encoding and decoding of wire protocol messages."""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Iterator, Optional

from dqlite.constants import ValueType
from dqlite.errors import EndOfRows, MessageError, RowsPart
from dqlite.store import NodeInfo, NodeRole

WORD_SIZE = 8
"""Size in bytes of a message word; bodies are always word aligned."""

HEADER_SIZE = WORD_SIZE
"""Size in bytes of a message header."""

_WORD_BITS = WORD_SIZE * 8
_MARKER_PART = 0xEE
_MARKER_DONE = 0xFF

_HEADER = struct.Struct("<IBBH")

_TYPE_NAMES = {
    ValueType.INTEGER: "INTEGER",
    ValueType.FLOAT: "FLOAT",
    ValueType.BLOB: "BLOB",
    ValueType.TEXT: "TEXT",
    ValueType.NULL: "NULL",
    ValueType.UNIX_TIME: "TIME",
    ValueType.ISO8601: "TIME",
    ValueType.BOOLEAN: "BOOL",
}

_ISO8601 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})"
    r"(?:[ T](\d{2}):(\d{2})"
    r"(?::(\d{2})(?:\.(\d+))?(?:([+-])(\d{2}):(\d{2}))?)?)?"
)

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def _padding(size: int) -> int:
    return (-size) % WORD_SIZE


def _pack(fmt: str, value: Any) -> bytes:
    try:
        return struct.pack(fmt, value)
    except struct.error as exc:
        raise MessageError(f"cannot encode {value!r}: {exc}") from None


def _value_type(value: Any) -> ValueType:
    if isinstance(value, bool):
        return ValueType.BOOLEAN
    if isinstance(value, int):
        return ValueType.INTEGER
    if isinstance(value, float):
        return ValueType.FLOAT
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueType.BLOB
    if isinstance(value, str):
        return ValueType.TEXT
    if value is None:
        return ValueType.NULL
    if isinstance(value, datetime):
        return ValueType.ISO8601
    raise TypeError(f"unsupported value type: {type(value).__name__}")


def _format_time(value: datetime) -> str:
    if value.tzinfo is None or value.utcoffset() is None:
        value = value.astimezone()
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    seconds = int(value.utcoffset().total_seconds())
    sign = "-" if seconds < 0 else "+"
    hours, rest = divmod(abs(seconds), 3600)
    return f"{text}{sign}{hours:02d}:{rest // 60:02d}"


def _parse_time(value: str) -> datetime:
    if value == "":
        return _ZERO_TIME
    if value.endswith("Z"):
        value = value[:-1]
    match = _ISO8601.fullmatch(value)
    if match is None:
        raise MessageError(f"cannot parse time {value!r}")
    year, month, day, hour, minute, second, fraction, sign, tz_h, tz_m = match.groups()
    tz = timezone.utc
    if sign is not None:
        offset = timedelta(hours=int(tz_h), minutes=int(tz_m))
        tz = timezone(-offset if sign == "-" else offset)
    micro = int((fraction or "0")[:6].ljust(6, "0"))
    try:
        parsed = datetime(
            int(year),
            int(month),
            int(day),
            int(hour or 0),
            int(minute or 0),
            int(second or 0),
            micro,
            tzinfo=tz,
        )
    except ValueError as exc:
        raise MessageError(f"cannot parse time {value!r}: {exc}") from None
    return parsed.astimezone()


class Message:
    """A single request or response, reusable across encodes and decodes."""

    def __init__(self, initial_size: int) -> None:
        if initial_size % WORD_SIZE:
            raise ValueError("initial buffer size is not aligned to word boundary")
        self._body = bytearray(initial_size)
        self.offset = 0
        self.words = 0
        self.mtype = 0
        self.flags = 0
        self.extra = 0

    @property
    def body(self) -> bytes:
        """A copy of the whole body buffer."""
        return bytes(self._body)

    def reset(self) -> None:
        """Clear the message so it can be used to encode or decode again."""
        self.words = 0
        self.mtype = 0
        self.flags = 0
        self.extra = 0
        self.offset = 0

    def rewind(self) -> None:
        """Move the body offset back to the start."""
        self.offset = 0

    def _reserve(self, size: int) -> None:
        needed = self.offset + size
        length = len(self._body) or WORD_SIZE
        while needed > length:
            length *= 2
        if length > len(self._body):
            self._body.extend(bytes(length - len(self._body)))

    def _write(self, data: bytes) -> None:
        self._reserve(len(data))
        self._body[self.offset : self.offset + len(data)] = data
        self.offset += len(data)

    def put_blob(self, value: bytes) -> None:
        """Append a length-prefixed, padded byte string."""
        data = bytes(value)
        self.put_uint64(len(data))
        self._write(data + bytes(_padding(len(data))))

    def put_string(self, value: str) -> None:
        """Append a nul-terminated, padded string."""
        data = value.encode("utf-8", "surrogateescape") + b"\0"
        self._write(data + bytes(_padding(len(data))))

    def put_uint8(self, value: int) -> None:
        self._write(_pack("<B", value))

    def put_uint16(self, value: int) -> None:
        self._write(_pack("<H", value))

    def put_uint32(self, value: int) -> None:
        self._write(_pack("<I", value))

    def put_uint64(self, value: int) -> None:
        self._write(_pack("<Q", value))

    def put_int64(self, value: int) -> None:
        self._write(_pack("<q", value))

    def put_float64(self, value: float) -> None:
        self._write(_pack("<d", value))

    def put_named_values(self, values: Iterable[Any]) -> None:
        """Encode statement parameters, in order, as binding values."""
        values = list(values)
        if not values:
            return
        if len(values) > 0xFF:
            raise MessageError(f"too many parameters: {len(values)}")
        codes = [_value_type(value) for value in values]
        self.put_uint8(len(values))
        for code in codes:
            self.put_uint8(code)
        self._write(bytes(_padding(self.offset)))
        for value, code in zip(values, codes):
            if code is ValueType.INTEGER:
                self.put_int64(value)
            elif code is ValueType.FLOAT:
                self.put_float64(value)
            elif code is ValueType.BOOLEAN:
                self.put_uint64(1 if value else 0)
            elif code is ValueType.BLOB:
                self.put_blob(value)
            elif code is ValueType.TEXT:
                self.put_string(value)
            elif code is ValueType.NULL:
                self.put_int64(0)
            else:
                self.put_string(_format_time(value))

    def put_header(self, mtype: int) -> None:
        """Finalize the message with the given type, sizing it from the body."""
        if self.offset <= 0:
            raise MessageError("static offset is not positive")
        if self.offset % WORD_SIZE:
            raise MessageError("static body is not aligned")
        self.mtype = int(mtype)
        self.flags = 0
        self.extra = 0
        self.words = self.offset // WORD_SIZE

    def encode_header(self) -> bytes:
        """Return the wire header of a finalized message."""
        if self.words == 0:
            raise MessageError("empty message body")
        return _HEADER.pack(self.words, self.mtype, self.flags, self.extra)

    def decode_header(self, data: bytes) -> None:
        """Reset the message and load a header received from the wire."""
        if len(data) != HEADER_SIZE:
            raise MessageError(f"header must be {HEADER_SIZE} bytes, got {len(data)}")
        self.reset()
        self.words, self.mtype, self.flags, self.extra = _HEADER.unpack(data)

    def payload(self) -> bytes:
        """Return the encoded body bytes to send."""
        return bytes(self._body[: self.offset])

    def load_body(self, data: bytes) -> None:
        """Load a received body whose size matches the decoded header."""
        size = self.words * WORD_SIZE
        if len(data) != size:
            raise MessageError(f"body has {len(data)} bytes, header says {size}")
        if size > len(self._body):
            self._body.extend(bytes(size - len(self._body)))
        self._body[:size] = data
        self.offset = 0

    def get_header(self) -> tuple[int, int]:
        """Return the message type and its flags."""
        return self.mtype, self.flags

    def _short(self) -> MessageError:
        return MessageError(
            f"short message: type={self.mtype} words={self.words} off={self.offset}"
        )

    def _take(self, size: int) -> bytes:
        if self.offset + size > self.words * WORD_SIZE:
            raise self._short()
        chunk = bytes(self._body[self.offset : self.offset + size])
        self.offset += size
        return chunk

    def get_string(self) -> str:
        size = self.words * WORD_SIZE
        if self.offset >= size:
            raise self._short()
        end = self._body.find(0, self.offset, size)
        if end < 0:
            raise MessageError("no string found")
        value = self._body[self.offset : end].decode("utf-8", "surrogateescape")
        length = end - self.offset + 1
        self.offset += length + _padding(length)
        return value

    def get_blob(self) -> bytes:
        size = self.get_uint64()
        data = self._take(size)
        self._take(_padding(size))
        return data

    def get_uint8(self) -> int:
        return self._take(1)[0]

    def get_uint16(self) -> int:
        return struct.unpack("<H", self._take(2))[0]

    def get_uint32(self) -> int:
        return struct.unpack("<I", self._take(4))[0]

    def get_uint64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def get_int64(self) -> int:
        return struct.unpack("<q", self._take(8))[0]

    def get_float64(self) -> float:
        return struct.unpack("<d", self._take(8))[0]

    def _get_node(self) -> NodeInfo:
        node_id = self.get_uint64()
        address = self.get_string()
        role = NodeRole(self.get_uint64())
        return NodeInfo(id=node_id, address=address, role=role)

    def get_nodes(self) -> list[NodeInfo]:
        return [self._get_node() for _ in range(self.get_uint64())]

    def get_result(self) -> "Result":
        last_insert_id = self.get_uint64()
        rows_affected = self.get_uint64()
        return Result(last_insert_id=last_insert_id, rows_affected=rows_affected)

    def get_rows(self) -> "Rows":
        columns = [self.get_string() for _ in range(self.get_uint64())]
        return Rows(columns, self)

    def get_files(self) -> "Files":
        return Files(self.get_uint64(), self)

    def has_been_consumed(self) -> bool:
        return self.offset == self.words * WORD_SIZE

    def last_byte(self) -> int:
        size = self.words * WORD_SIZE
        if size == 0:
            raise MessageError("empty message body")
        return self._body[size - 1]


@dataclass(frozen=True)
class Result:
    """Outcome of a statement execution."""

    last_insert_id: int
    rows_affected: int


class Rows:
    """A result set encoded in a response message body."""

    def __init__(self, columns: list[str], message: Message) -> None:
        self.columns = list(columns)
        self._message = message
        self._types: Optional[list[int]] = None

    def _read_types(self, peek: bool) -> list[int]:
        if peek and self._types is not None:
            return self._types
        if self._types is None:
            self._types = [0] * len(self.columns)
        types = self._types
        header_bits = len(types) * 4
        header_size = (header_bits + (-header_bits) % _WORD_BITS) // _WORD_BITS * WORD_SIZE
        message = self._message
        for i in range(header_size):
            slot = message.get_uint8()
            if slot in (_MARKER_PART, _MARKER_DONE):
                if peek:
                    message.offset -= i + 1
                raise RowsPart() if slot == _MARKER_PART else EndOfRows()
            index = i * 2
            if index < len(types):
                types[index] = slot & 0x0F
            if index + 1 < len(types):
                types[index + 1] = slot >> 4
        if peek:
            message.offset -= header_size
        return types

    def _decode(self, code: int) -> Any:
        message = self._message
        if code == ValueType.INTEGER:
            return message.get_int64()
        if code == ValueType.FLOAT:
            return message.get_float64()
        if code == ValueType.BLOB:
            return message.get_blob()
        if code == ValueType.TEXT:
            return message.get_string()
        if code == ValueType.NULL:
            message.get_uint64()
            return None
        if code == ValueType.UNIX_TIME:
            return datetime.fromtimestamp(message.get_int64(), timezone.utc).astimezone()
        if code == ValueType.ISO8601:
            return _parse_time(message.get_string())
        if code == ValueType.BOOLEAN:
            return message.get_int64() != 0
        raise MessageError(f"unknown data type: {code}")

    def next(self) -> list[Any]:
        """Decode the next row.

        Raises RowsPart when this message's batch is exhausted and more rows
        follow in another response, and EndOfRows when the result set ends.
        """
        types = self._read_types(peek=False)
        return [self._decode(code) for code in types]

    def close(self) -> bool:
        """Reset the message; return True if it carried the end of the result set.

        Raises MessageError if the message ends without a row marker.
        """
        message = self._message
        try:
            if message.has_been_consumed():
                return False
            slot = message.last_byte()
            if slot == _MARKER_DONE:
                return True
            if slot == _MARKER_PART:
                return False
            raise MessageError("unexpected end of message")
        finally:
            message.reset()

    def column_types(self) -> list[str]:
        """Return the database type names of the columns without consuming a row.

        Types seen on earlier rows stay available after the last row.
        """
        try:
            types = self._read_types(peek=True)
        except (RowsPart, EndOfRows):
            types = self._types or []
        names = []
        for code in types:
            name = _TYPE_NAMES.get(code)
            if name is None:
                raise MessageError(f"unknown data type: {code}")
            names.append(name)
        return names


class Files:
    """A set of files encoded in a response message body."""

    def __init__(self, count: int, message: Message) -> None:
        self._remaining = count
        self._message = message

    def __iter__(self) -> Iterator[tuple[str, bytes]]:
        message = self._message
        while self._remaining:
            self._remaining -= 1
            name = message.get_string()
            length = message.get_uint64()
            yield name, message._take(length)

    def close(self) -> None:
        """Reset the underlying message."""
        self._message.reset()