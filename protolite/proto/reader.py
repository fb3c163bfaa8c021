"""Cursor-based byte source for protobuf wire data."""

from __future__ import annotations

import struct

from .errors import DecodeError, TruncatedMessageError
from .varint import decode_varint, to_signed, zigzag_decode
from .wire import WireType, split_tag


class Reader:
    """Reads protobuf wire values from an in-memory buffer.

    ``pos`` is the cursor and ``len`` the end boundary; nothing is read at
    or beyond ``len``. Byte and string results are copies, so the reader
    keeps no reference to caller memory once decoding is done.
    """

    def __init__(self, data: bytes | bytearray | memoryview, pos: int = 0, end: int | None = None) -> None:
        self.buf = memoryview(data).cast("B")
        self.pos = pos
        self.len = len(self.buf) if end is None else end
        if self.len > len(self.buf):
            raise TruncatedMessageError(f"end {self.len} beyond buffer of {len(self.buf)} bytes")

    @classmethod
    def create(cls, data: Reader | bytes | bytearray | memoryview) -> Reader:
        if isinstance(data, Reader):
            return data
        return cls(data)

    @property
    def remaining(self) -> int:
        return self.len - self.pos

    def _take(self, count: int) -> memoryview:
        if count < 0 or self.pos + count > self.len:
            raise TruncatedMessageError(
                f"need {count} bytes at offset {self.pos}, only {self.len - self.pos} available"
            )
        chunk = self.buf[self.pos : self.pos + count]
        self.pos += count
        return chunk

    def _varint(self) -> int:
        value, self.pos = decode_varint(self.buf, self.pos, self.len)
        return value

    def tag(self) -> tuple[int, int]:
        """Read a tag, returning (field number, wire type)."""
        tag = self._varint()
        if tag > 0xFFFFFFFF:
            raise DecodeError(f"tag {tag} exceeds 32 bits")
        number, wire_type = split_tag(tag)
        if number == 0:
            raise DecodeError(f"invalid field number 0 at offset {self.pos}")
        return number, wire_type

    def uint32(self) -> int:
        return self._varint() & 0xFFFFFFFF

    def int32(self) -> int:
        return to_signed(self._varint(), 32)

    def sint32(self) -> int:
        return zigzag_decode(self._varint() & 0xFFFFFFFF)

    def uint64(self) -> int:
        return self._varint()

    def int64(self) -> int:
        return to_signed(self._varint(), 64)

    def sint64(self) -> int:
        return zigzag_decode(self._varint())

    def fixed32(self) -> int:
        return struct.unpack("<I", self._take(4))[0]

    def sfixed32(self) -> int:
        return struct.unpack("<i", self._take(4))[0]

    def fixed64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def sfixed64(self) -> int:
        return struct.unpack("<q", self._take(8))[0]

    def float(self) -> float:
        return struct.unpack("<f", self._take(4))[0]

    def double(self) -> float:
        return struct.unpack("<d", self._take(8))[0]

    def bool(self) -> bool:
        return self._varint() != 0

    def bytes(self) -> bytes:
        length = self._varint()
        return bytes(self._take(length))

    def string(self) -> str:
        data = self.bytes()
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"invalid UTF-8 in string field: {e}") from e

    def skip(self, count: int) -> Reader:
        self._take(count)
        return self

    def skip_type(self, wire_type: int) -> Reader:
        """Advance past one value of ``wire_type`` without interpreting it."""
        if wire_type == WireType.VARINT:
            self._varint()
        elif wire_type == WireType.FIXED64:
            self.skip(8)
        elif wire_type == WireType.LENGTH_DELIMITED:
            self.skip(self._varint())
        elif wire_type == WireType.START_GROUP:
            while True:
                _, inner = self.tag()
                if inner == WireType.END_GROUP:
                    break
                self.skip_type(inner)
        elif wire_type == WireType.FIXED32:
            self.skip(4)
        elif wire_type == WireType.END_GROUP:
            raise DecodeError(f"unmatched end-group tag at offset {self.pos}")
        else:
            raise DecodeError(f"invalid wire type {wire_type} at offset {self.pos}")
        return self
