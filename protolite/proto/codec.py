"""Schema-driven encode and decode of messages.

Both directions walk the message's field table (MessageDescriptor) and
dispatch per field on its declared type. Nested message and enum types are
resolved through the SchemaRegistry the message class was registered with.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .errors import EncodeError, MissingFieldError, TruncatedMessageError
from .types import Cardinality, FieldDescriptor
from .wire import WireType

if TYPE_CHECKING:
    from .message import Message
    from .reader import Reader
    from .registry import SchemaRegistry
    from .writer import Writer

logger = logging.getLogger(__name__)


def _write_scalar(fd: FieldDescriptor, value: Any, writer: Writer) -> None:
    method = getattr(writer, fd.scalar.method)
    try:
        method(int(value) if fd.is_enum else value)
    except EncodeError as e:
        raise EncodeError(f"{fd.name}: {e}") from e


def _write_value(fd: FieldDescriptor, value: Any, writer: Writer, registry: SchemaRegistry) -> None:
    if fd.is_message:
        writer.tag(fd.number, WireType.LENGTH_DELIMITED).fork()
        encode_message(value, writer, registry)
        writer.ldelim()
    else:
        writer.tag(fd.number, fd.scalar.wire_type)
        _write_scalar(fd, value, writer)


def encode_message(message: Message, writer: Writer, registry: SchemaRegistry | None = None) -> Writer:
    """Append ``message``'s fields to ``writer`` in ascending field number order."""
    descriptor = message.descriptor()
    if registry is None:
        registry = message._registry

    for fd in descriptor.fields:
        value = getattr(message, fd.attr)

        if fd.is_repeated:
            if not value:
                continue
            if fd.packed:
                writer.tag(fd.number, WireType.LENGTH_DELIMITED).fork()
                for item in value:
                    _write_scalar(fd, item, writer)
                writer.ldelim()
            else:
                for item in value:
                    _write_value(fd, item, writer, registry)
            continue

        if value is None:
            if fd.cardinality == Cardinality.REQUIRED:
                raise EncodeError(f"{descriptor.full_name}: required field {fd.name} is not set")
            continue

        if not fd.has_presence and fd.is_default(value):
            continue

        _write_value(fd, value, writer, registry)

    return writer


def _read_scalar(fd: FieldDescriptor, reader: Reader, registry: SchemaRegistry) -> Any:
    value = getattr(reader, fd.scalar.method)()
    if fd.is_enum:
        return registry.lookup_enum(fd.type_name).coerce(value)
    return value


def _read_packed(fd: FieldDescriptor, reader: Reader, registry: SchemaRegistry, out: list[Any]) -> None:
    length = reader.uint64()
    end = reader.pos + length
    if end > reader.len:
        raise TruncatedMessageError(f"{fd.name}: packed field length {length} exceeds buffer")
    while reader.pos < end:
        out.append(_read_scalar(fd, reader, registry))
    if reader.pos != end:
        raise TruncatedMessageError(f"{fd.name}: packed element overran its field")


def decode_message(
    cls: type[Message],
    reader: Reader,
    length: int | None = None,
    registry: SchemaRegistry | None = None,
) -> Message:
    """Decode one message of type ``cls`` from ``reader``.

    Args:
        cls: The registered message class to build.
        reader: Source positioned at the start of the message.
        length: Message length if known; otherwise reads to ``reader.len``.
        registry: Registry for nested types, defaults to the class's registry.

    Raises:
        TruncatedMessageError: A field or the message overruns its boundary.
        MalformedVarintError: A varint is too long or cut off.
        MissingFieldError: A required field is absent.
    """
    descriptor = cls.descriptor()
    if registry is None:
        registry = cls._registry

    end = reader.len if length is None else reader.pos + length
    if end > reader.len:
        raise TruncatedMessageError(
            f"{descriptor.full_name}: length {length} exceeds the {reader.len - reader.pos} bytes left"
        )

    values: dict[str, Any] = {}
    while reader.pos < end:
        number, wire_type = reader.tag()
        fd = descriptor.field_by_number(number)

        if fd is None:
            logger.debug("%s: skipping unknown field %d (wire type %d)", descriptor.full_name, number, wire_type)
            reader.skip_type(wire_type)
            continue

        if fd.is_repeated:
            items = values.setdefault(fd.attr, [])
            if wire_type == WireType.LENGTH_DELIMITED and fd.scalar is not None and fd.scalar.packable:
                _read_packed(fd, reader, registry, items)
                continue
            if wire_type == fd.wire_type:
                items.append(_read_value(fd, reader, registry))
                continue
        elif wire_type == fd.wire_type:
            values[fd.attr] = _read_value(fd, reader, registry)
            continue

        logger.debug(
            "%s: field %s arrived with wire type %d, expected %d; skipping",
            descriptor.full_name,
            fd.name,
            wire_type,
            fd.wire_type,
        )
        reader.skip_type(wire_type)

    if reader.pos > end:
        raise TruncatedMessageError(f"{descriptor.full_name}: last field overran the message boundary")

    for fd in descriptor.fields:
        if fd.cardinality == Cardinality.REQUIRED and fd.attr not in values:
            raise MissingFieldError(f"{descriptor.full_name}: missing required field {fd.name}")

    return cls(**values)


def _read_value(fd: FieldDescriptor, reader: Reader, registry: SchemaRegistry) -> Any:
    if fd.is_message:
        return decode_message(registry.lookup_message(fd.type_name), reader, reader.uint64(), registry)
    return _read_scalar(fd, reader, registry)
