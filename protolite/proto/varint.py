"""Base-128 varint and zig-zag encoding."""

from .errors import EncodeError, MalformedVarintError

MAX_VARINT_LEN = 10

_UINT64_MASK = (1 << 64) - 1


def encode_varint(value: int) -> bytes:
    """Encode an integer as a protobuf varint.

    Negative values are written as their 64-bit two's complement, which is
    how protobuf encodes negative int32/int64 fields (always 10 bytes).
    """
    if value < -(1 << 63) or value > _UINT64_MASK:
        raise EncodeError(f"{value} does not fit in 64 bits")

    value &= _UINT64_MASK
    out = bytearray()
    while value > 0x7F:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def decode_varint(data: bytes | bytearray | memoryview, pos: int = 0, end: int | None = None) -> tuple[int, int]:
    """Decode a varint starting at ``pos``.

    Returns:
        Tuple of (unsigned value, position after the varint).
    """
    if end is None:
        end = len(data)

    result = 0
    shift = 0
    for i in range(MAX_VARINT_LEN):
        if pos + i >= end:
            raise MalformedVarintError("varint runs past end of buffer")
        byte = data[pos + i]
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result & _UINT64_MASK, pos + i + 1
        shift += 7

    raise MalformedVarintError(f"varint longer than {MAX_VARINT_LEN} bytes")


def varint_size(value: int) -> int:
    """Number of bytes ``encode_varint(value)`` produces."""
    value &= _UINT64_MASK
    size = 1
    while value > 0x7F:
        value >>= 7
        size += 1
    return size


def zigzag_encode(value: int) -> int:
    """Map a signed 64-bit integer onto an unsigned one, keeping small magnitudes small."""
    return ((value << 1) ^ (value >> 63)) & _UINT64_MASK


def zigzag_decode(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


def to_signed(value: int, bits: int) -> int:
    """Interpret the low ``bits`` bits of ``value`` as two's complement."""
    value &= (1 << bits) - 1
    if value & (1 << (bits - 1)):
        value -= 1 << bits
    return value


def to_unsigned(value: int, bits: int) -> int:
    return value & ((1 << bits) - 1)
