"""Append-only byte sink for protobuf wire data."""

from __future__ import annotations

import struct

from .errors import EncodeError
from .varint import encode_varint, zigzag_encode
from .wire import make_tag

_INT_RANGES: dict[str, tuple[int, int]] = {
    "int32": (-(1 << 31), 1 << 31),
    "uint32": (0, 1 << 32),
    "int64": (-(1 << 63), 1 << 63),
    "uint64": (0, 1 << 64),
}


def _check_int(value: int, kind: str) -> int:
    if not isinstance(value, int):
        raise EncodeError(f"{kind} value must be an integer, got {type(value).__name__}")
    low, high = _INT_RANGES[kind]
    if not low <= value < high:
        raise EncodeError(f"{value} out of range for {kind}")
    return value


class Writer:
    """Growable byte buffer with nested length-delimited framing.

    Every write method returns the writer so calls can be chained:

        writer.tag(1, WireType.LENGTH_DELIMITED).string("hello")

    ``fork()`` opens a sub-region whose length is not yet known and
    ``ldelim()`` closes it, prefixing the region with its byte count.
    Forks nest, so embedded messages need no sizing pre-pass.
    """

    def __init__(self) -> None:
        self._buf = bytearray()
        self._forks: list[bytearray] = []

    def __len__(self) -> int:
        return len(self._buf)

    def _varint(self, value: int) -> Writer:
        self._buf.extend(encode_varint(value))
        return self

    def tag(self, field_number: int, wire_type: int) -> Writer:
        return self._varint(make_tag(field_number, wire_type))

    def uint32(self, value: int) -> Writer:
        return self._varint(_check_int(value, "uint32"))

    def int32(self, value: int) -> Writer:
        return self._varint(_check_int(value, "int32"))

    def sint32(self, value: int) -> Writer:
        return self._varint(zigzag_encode(_check_int(value, "int32")))

    def uint64(self, value: int) -> Writer:
        return self._varint(_check_int(value, "uint64"))

    def int64(self, value: int) -> Writer:
        return self._varint(_check_int(value, "int64"))

    def sint64(self, value: int) -> Writer:
        return self._varint(zigzag_encode(_check_int(value, "int64")))

    def fixed32(self, value: int) -> Writer:
        self._buf.extend(struct.pack("<I", _check_int(value, "uint32")))
        return self

    def sfixed32(self, value: int) -> Writer:
        self._buf.extend(struct.pack("<i", _check_int(value, "int32")))
        return self

    def fixed64(self, value: int) -> Writer:
        self._buf.extend(struct.pack("<Q", _check_int(value, "uint64")))
        return self

    def sfixed64(self, value: int) -> Writer:
        self._buf.extend(struct.pack("<q", _check_int(value, "int64")))
        return self

    def float(self, value: float) -> Writer:
        try:
            self._buf.extend(struct.pack("<f", value))
        except (OverflowError, struct.error) as e:
            raise EncodeError(f"{value!r} cannot be encoded as float: {e}") from e
        return self

    def double(self, value: float) -> Writer:
        try:
            self._buf.extend(struct.pack("<d", value))
        except struct.error as e:
            raise EncodeError(f"{value!r} cannot be encoded as double: {e}") from e
        return self

    def bool(self, value: bool) -> Writer:
        self._buf.append(1 if value else 0)
        return self

    def string(self, value: str) -> Writer:
        if not isinstance(value, str):
            raise EncodeError(f"string value expected, got {type(value).__name__}")
        return self.bytes(value.encode("utf-8"))

    def bytes(self, value: bytes | bytearray | memoryview) -> Writer:
        if isinstance(value, str):
            raise EncodeError("bytes value expected, got str")
        self._varint(len(value))
        self._buf.extend(value)
        return self

    def raw(self, value: bytes | bytearray | memoryview) -> Writer:
        """Append bytes verbatim, without a length prefix."""
        self._buf.extend(value)
        return self

    def fork(self) -> Writer:
        """Start a length-delimited sub-region."""
        self._forks.append(self._buf)
        self._buf = bytearray()
        return self

    def ldelim(self) -> Writer:
        """Close the innermost fork, prefixing it with its length."""
        if not self._forks:
            raise EncodeError("ldelim() called without a matching fork()")
        region = self._buf
        self._buf = self._forks.pop()
        self._varint(len(region))
        self._buf.extend(region)
        return self

    def reset(self) -> Writer:
        self._buf = bytearray()
        self._forks.clear()
        return self

    def finish(self) -> bytes:
        """Return the encoded bytes."""
        if self._forks:
            raise EncodeError(f"{len(self._forks)} fork(s) still open")
        return bytes(self._buf)
