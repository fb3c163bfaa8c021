"""Wire tags and the protobuf scalar type table."""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from .errors import SchemaError

MAX_FIELD_NUMBER = (1 << 29) - 1
RESERVED_FIELD_NUMBERS = range(19000, 20000)


class WireType(IntEnum):
    """The 3-bit tag suffix describing how a value is laid out on the wire."""

    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    START_GROUP = 3
    END_GROUP = 4
    FIXED32 = 5


def make_tag(field_number: int, wire_type: int) -> int:
    return (field_number << 3) | wire_type


def split_tag(tag: int) -> tuple[int, int]:
    """Split a tag into (field number, wire type)."""
    return tag >> 3, tag & 7


def check_field_number(number: int) -> None:
    """Raise SchemaError if ``number`` cannot be used as a field number."""
    if not 1 <= number <= MAX_FIELD_NUMBER:
        raise SchemaError(f"Field number {number} out of range 1..{MAX_FIELD_NUMBER}")
    if number in RESERVED_FIELD_NUMBERS:
        raise SchemaError(f"Field number {number} is reserved for the protobuf implementation")


@dataclass(frozen=True, slots=True)
class ScalarType:
    """How a scalar protobuf type is written, read and defaulted."""

    name: str
    wire_type: WireType
    default: Any
    method: str  # Writer/Reader method name
    packable: bool = True
    bits: int | None = None  # integer width, None for non-integers
    signed: bool = False


SCALAR_TYPES: dict[str, ScalarType] = {
    "double": ScalarType("double", WireType.FIXED64, 0.0, "double"),
    "float": ScalarType("float", WireType.FIXED32, 0.0, "float"),
    "int32": ScalarType("int32", WireType.VARINT, 0, "int32", bits=32, signed=True),
    "int64": ScalarType("int64", WireType.VARINT, 0, "int64", bits=64, signed=True),
    "uint32": ScalarType("uint32", WireType.VARINT, 0, "uint32", bits=32),
    "uint64": ScalarType("uint64", WireType.VARINT, 0, "uint64", bits=64),
    "sint32": ScalarType("sint32", WireType.VARINT, 0, "sint32", bits=32, signed=True),
    "sint64": ScalarType("sint64", WireType.VARINT, 0, "sint64", bits=64, signed=True),
    "fixed32": ScalarType("fixed32", WireType.FIXED32, 0, "fixed32", bits=32),
    "fixed64": ScalarType("fixed64", WireType.FIXED64, 0, "fixed64", bits=64),
    "sfixed32": ScalarType("sfixed32", WireType.FIXED32, 0, "sfixed32", bits=32, signed=True),
    "sfixed64": ScalarType("sfixed64", WireType.FIXED64, 0, "sfixed64", bits=64, signed=True),
    "bool": ScalarType("bool", WireType.VARINT, False, "bool"),
    "string": ScalarType("string", WireType.LENGTH_DELIMITED, "", "string", packable=False),
    "bytes": ScalarType("bytes", WireType.LENGTH_DELIMITED, b"", "bytes", packable=False),
}

# Enums travel as int32 varints
ENUM_TYPE = ScalarType("enum", WireType.VARINT, 0, "int32", bits=32, signed=True)

LONG_TYPES = frozenset(name for name, t in SCALAR_TYPES.items() if t.bits == 64)
FLOAT_TYPES = frozenset(["double", "float"])


def is_scalar(type_name: str) -> bool:
    return type_name in SCALAR_TYPES


def is_packable(type_name: str) -> bool:
    """Only numeric scalars and enums may use packed encoding."""
    if type_name == "enum":
        return True
    scalar = SCALAR_TYPES.get(type_name)
    return scalar is not None and scalar.packable
