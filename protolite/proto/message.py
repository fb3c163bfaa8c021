"""Base classes for protolite message and enum types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any, ClassVar, Self

from . import codec, convert
from .errors import SchemaError
from .reader import Reader
from .types import Cardinality, EnumDescriptor, MessageDescriptor
from .wire import SCALAR_TYPES
from .writer import Writer

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .convert import ConversionOptions
    from .registry import SchemaRegistry


@dataclass(frozen=True)
class ProtoFieldInfo:
    """Metadata for a protolite message field."""

    number: int
    type: str
    label: Cardinality = Cardinality.SINGULAR
    packed: bool = False
    default: Any = None
    type_name: str | None = None
    name: str | None = None  # schema name when it differs from the attribute


# Sentinel for missing default
_MISSING: Any = object()


def proto_field(
    number: int,
    type: str,
    *,
    label: str = "singular",
    packed: bool = False,
    default: Any = _MISSING,
    type_name: str | None = None,
    name: str | None = None,
) -> Any:
    """Define a message field with wire metadata.

    Args:
        number: The field number used in wire tags.
        type: Scalar type name ("int32", "string", ...), "enum" or "message".
        label: "singular", "optional", "required" or "repeated".
        packed: Use packed encoding (repeated numeric fields only).
        default: Declared default value. Fields with explicit presence still
            start out as None; the declared default is what they read as.
        type_name: Full name of the enum or message type.
        name: Schema field name, if different from the attribute name.

    Returns:
        A dataclass field with protolite metadata attached.
    """
    cardinality = Cardinality(label)
    info = ProtoFieldInfo(
        number=number,
        type=type,
        label=cardinality,
        packed=packed,
        default=None if default is _MISSING else default,
        type_name=type_name,
        name=name,
    )
    metadata = {"protolite": info}

    if cardinality == Cardinality.REPEATED:
        return field(default_factory=list, metadata=metadata)
    if type == "message" or cardinality != Cardinality.SINGULAR:
        return field(default=None, metadata=metadata)
    if default is not _MISSING:
        return field(default=default, metadata=metadata)
    if type == "enum":
        return field(default=0, metadata=metadata)
    if type not in SCALAR_TYPES:
        raise SchemaError(f"Unknown field type {type!r}")
    return field(default=SCALAR_TYPES[type].default, metadata=metadata)


class Message:
    """Base class for message types.

    Subclasses are @dataclass decorated, declare their fields with
    proto_field(), and are registered with a SchemaRegistry, which attaches
    the field table the codec works from.

    Example:
        registry = SchemaRegistry()

        @registry.message("demo.Point")
        @dataclass
        class Point(Message):
            x: int = proto_field(1, "sint32")
            y: int = proto_field(2, "sint32")
            label: str | None = proto_field(3, "string", label="optional")
    """

    _descriptor: ClassVar[MessageDescriptor]
    _registry: ClassVar[SchemaRegistry | None] = None

    @classmethod
    def descriptor(cls) -> MessageDescriptor:
        try:
            return cls.__dict__["_descriptor"]
        except KeyError:
            raise SchemaError(f"{cls.__name__} is not registered with a SchemaRegistry") from None

    @classmethod
    def create(cls, **properties: Any) -> Self:
        return cls(**properties)

    def encode(self, writer: Writer | None = None) -> Writer:
        """Encode this message into ``writer`` (or a new writer).

        A caller's writer is left unchanged if encoding fails.
        """
        scratch = codec.encode_message(self, Writer(), self._registry)
        if writer is None:
            return scratch
        return writer.raw(scratch.finish())

    def encode_delimited(self, writer: Writer | None = None) -> Writer:
        """Encode this message prefixed with its length."""
        data = codec.encode_message(self, Writer(), self._registry).finish()
        if writer is None:
            writer = Writer()
        return writer.bytes(data)

    def to_bytes(self) -> bytes:
        return self.encode().finish()

    @classmethod
    def decode(cls, data: Reader | bytes | bytearray | memoryview, length: int | None = None) -> Self:
        """Decode a message from a reader or buffer.

        Args:
            data: Reader or bytes to decode from.
            length: Message length if known; defaults to the rest of the buffer.
        """
        return codec.decode_message(cls, Reader.create(data), length, cls._registry)

    @classmethod
    def decode_delimited(cls, data: Reader | bytes | bytearray | memoryview) -> Self:
        reader = Reader.create(data)
        return codec.decode_message(cls, reader, reader.uint64(), cls._registry)

    @classmethod
    def verify(cls, obj: Any) -> str | None:
        """Check a plain object against this schema; returns the problem or None."""
        return convert.verify(cls.descriptor(), obj, cls._registry)

    @classmethod
    def from_object(cls, obj: Mapping[str, Any] | Self) -> Self:
        return convert.from_object(cls, obj, cls._registry)

    def to_object(self, options: ConversionOptions | None = None, **kwargs: Any) -> dict[str, Any]:
        """Convert to a plain dict; keyword arguments override ``options``."""
        if options is None:
            options = convert.ConversionOptions(**kwargs)
        elif kwargs:
            options = options.replace(**kwargs)
        return convert.to_object(self, options, self._registry)

    def to_json(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dict."""
        return convert.to_object(self, convert.ConversionOptions.for_json(), self._registry)


class ProtoEnum(IntEnum):
    """Base class for protocol enums.

    Enums are open: numbers without a member decode to plain ints.

    Example:
        @registry.enum("demo.Color")
        class Color(ProtoEnum):
            RED = 0
            GREEN = 1
    """

    @classmethod
    def descriptor(cls) -> EnumDescriptor:
        try:
            return cls.__dict__["_descriptor"]
        except KeyError:
            raise SchemaError(f"{cls.__name__} is not registered with a SchemaRegistry") from None

    @classmethod
    def coerce(cls, value: int) -> Self | int:
        try:
            return cls(value)
        except ValueError:
            return value
