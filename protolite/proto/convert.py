"""Plain-object conversion: verify, from_object and to_object.

Plain objects are dicts keyed by schema field name, the shape JSON
loaders and RPC layers hand around. ``verify`` is a non-throwing gate a
caller may run first; ``from_object`` is always permissive about scalar
representations and only rejects shape mismatches.
"""

from __future__ import annotations

import base64
import binascii
import dataclasses
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .errors import TypeMismatchError
from .types import Cardinality, FieldDescriptor, MessageDescriptor
from .varint import to_signed, to_unsigned
from .wire import FLOAT_TYPES, LONG_TYPES

if TYPE_CHECKING:
    from .message import Message
    from .registry import SchemaRegistry

_NON_FINITE = {"NaN": math.nan, "Infinity": math.inf, "-Infinity": -math.inf}
_DECIMAL = re.compile(r"-?[0-9]+")


@dataclass(frozen=True)
class HighLowPair:
    """A 64-bit integer split into two 32-bit halves, as JavaScript Longs are."""

    low: int
    high: int
    unsigned: bool = False

    def to_int(self) -> int:
        value = ((self.high & 0xFFFFFFFF) << 32) | (self.low & 0xFFFFFFFF)
        return value if self.unsigned else to_signed(value, 64)


# Int64Input = int | DecimalString | HighLowPair
Int64Input = int | str | HighLowPair


def coerce_int64(value: Any, unsigned: bool = False) -> int:
    """Resolve any Int64Input variant to a Python int within 64 bits."""
    match value:
        case bool():
            raise TypeMismatchError("integer|Long expected, got bool")
        case int():
            result = value
        case float() if value.is_integer():
            result = int(value)
        case str():
            if not _DECIMAL.fullmatch(value.strip()):
                raise TypeMismatchError(f"{value!r} is not a decimal integer")
            result = int(value)
        case HighLowPair():
            result = value.to_int()
        case {"low": int(low), "high": int(high)}:
            result = HighLowPair(low, high, bool(value.get("unsigned", unsigned))).to_int()
        case _:
            raise TypeMismatchError(f"integer|Long expected, got {type(value).__name__}")

    return to_unsigned(result, 64) if unsigned else to_signed(result, 64)


@dataclass(frozen=True)
class ConversionOptions:
    """Controls how to_object renders a message.

    Attributes:
        defaults: Include fields that hold their default value.
        arrays: Emit empty lists for empty repeated fields.
        longs: ``int`` or ``str`` for 64-bit integer fields.
        enums: ``int`` or ``str`` (schema value name) for enum fields.
        bytes: ``bytes``, ``str`` (base64) or ``list`` (of ints) for bytes fields.
        json: Render NaN and infinities as strings.
    """

    defaults: bool = False
    arrays: bool = False
    longs: type = int
    enums: type = int
    bytes: type = bytes
    json: bool = False

    def __post_init__(self) -> None:
        if self.longs not in (int, str):
            raise ValueError(f"longs must be int or str, not {self.longs!r}")
        if self.enums not in (int, str):
            raise ValueError(f"enums must be int or str, not {self.enums!r}")
        if self.bytes not in (bytes, str, list):
            raise ValueError(f"bytes must be bytes, str or list, not {self.bytes!r}")

    @classmethod
    def for_json(cls) -> ConversionOptions:
        return cls(longs=str, enums=str, bytes=str, json=True)

    def replace(self, **changes: Any) -> ConversionOptions:
        return dataclasses.replace(self, **changes)


# verify


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _verify_scalar(fd: FieldDescriptor, value: Any, registry: SchemaRegistry) -> str | None:
    t = fd.type
    if fd.is_enum:
        descriptor = registry.lookup_enum(fd.type_name).descriptor()
        # enums are open, any int32 is acceptable
        if _is_int(value) and -(1 << 31) <= value < (1 << 31):
            return None
        if isinstance(value, str) and descriptor.number_of(value) is not None:
            return None
        return "enum value expected"
    if t in LONG_TYPES:
        if _is_int(value) or isinstance(value, HighLowPair):
            return None
        if isinstance(value, str) and _DECIMAL.fullmatch(value.strip()):
            return None
        if isinstance(value, Mapping) and _is_int(value.get("low")) and _is_int(value.get("high")):
            return None
        return "integer|Long expected"
    if t in FLOAT_TYPES:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return None
        if isinstance(value, str) and value in _NON_FINITE:
            return None
        return "number expected"
    if t == "bool":
        return None if isinstance(value, bool) else "boolean expected"
    if t == "string":
        return None if isinstance(value, str) else "string expected"
    if t == "bytes":
        if isinstance(value, (bytes, bytearray, memoryview, str)):
            return None
        if isinstance(value, (list, tuple)) and all(_is_int(b) and 0 <= b <= 255 for b in value):
            return None
        return "buffer expected"
    return None if _is_int(value) else "integer expected"


def _verify_value(fd: FieldDescriptor, value: Any, registry: SchemaRegistry) -> str | None:
    if fd.is_message:
        cls = registry.lookup_message(fd.type_name)
        if isinstance(value, cls):
            value = to_object(value, ConversionOptions(), registry)
        error = verify(cls.descriptor(), value, registry)
        return f"{fd.name}.{error}" if error else None
    error = _verify_scalar(fd, value, registry)
    return f"{fd.name}: {error}" if error else None


def verify(descriptor: MessageDescriptor, obj: Any, registry: SchemaRegistry) -> str | None:
    """Check a plain object against a message schema without raising.

    Returns:
        None if ``obj`` is acceptable, otherwise a description of the first
        offending field, dot-separated for nested messages.
    """
    if not isinstance(obj, Mapping):
        return "object expected"

    for fd in descriptor.fields:
        value = obj.get(fd.name)
        if value is None:
            if fd.cardinality == Cardinality.REQUIRED:
                return f"{fd.name}: required field missing"
            continue
        if fd.is_repeated:
            if not isinstance(value, (list, tuple)):
                return f"{fd.name}: array expected"
            for item in value:
                error = _verify_value(fd, item, registry)
                if error:
                    return error
        else:
            error = _verify_value(fd, value, registry)
            if error:
                return error
    return None


# from_object


def _coerce_scalar(fd: FieldDescriptor, value: Any, registry: SchemaRegistry, path: str) -> Any:
    t = fd.type
    try:
        if fd.is_enum:
            enum_cls = registry.lookup_enum(fd.type_name)
            if isinstance(value, str) and not _DECIMAL.fullmatch(value.strip()):
                number = enum_cls.descriptor().number_of(value)
                if number is None:
                    raise TypeMismatchError(f"{path}: unknown {fd.type_name} value {value!r}")
                return enum_cls.coerce(number)
            return enum_cls.coerce(to_signed(int(value), 32))
        if t in LONG_TYPES:
            return coerce_int64(value, unsigned=not fd.scalar.signed)
        if t in FLOAT_TYPES:
            if isinstance(value, str) and value in _NON_FINITE:
                return _NON_FINITE[value]
            return float(value)
        if t == "bool":
            return bool(value)
        if t == "string":
            return str(value)
        if t == "bytes":
            if isinstance(value, str):
                return base64.b64decode(value, validate=True)
            return bytes(value)
        number = int(float(value)) if isinstance(value, str) else int(value)
        if fd.scalar.signed:
            return to_signed(number, 32)
        return to_unsigned(number, 32)
    except TypeMismatchError:
        raise
    except (TypeError, ValueError, OverflowError, binascii.Error) as e:
        raise TypeMismatchError(f"{path}: cannot convert {value!r} to {t}: {e}") from e


def _coerce_value(fd: FieldDescriptor, value: Any, registry: SchemaRegistry, path: str) -> Any:
    if fd.is_message:
        cls = registry.lookup_message(fd.type_name)
        if not isinstance(value, (Mapping, cls)):
            raise TypeMismatchError(f"{path}: object expected")
        return from_object(cls, value, registry)
    return _coerce_scalar(fd, value, registry, path)


def from_object(cls: type[Message], obj: Any, registry: SchemaRegistry | None = None) -> Message:
    """Build a message from a plain object, coercing scalars to their field types.

    Raises:
        TypeMismatchError: A value's shape contradicts the schema, or a scalar
            cannot be converted at all.
    """
    if isinstance(obj, cls):
        return obj
    descriptor = cls.descriptor()
    if registry is None:
        registry = cls._registry
    if not isinstance(obj, Mapping):
        raise TypeMismatchError(f".{descriptor.full_name}: object expected")

    values: dict[str, Any] = {}
    for fd in descriptor.fields:
        value = obj.get(fd.name)
        if value is None:
            continue
        path = f".{descriptor.full_name}.{fd.name}"
        if fd.is_repeated:
            if not isinstance(value, (list, tuple)):
                raise TypeMismatchError(f"{path}: array expected")
            values[fd.attr] = [_coerce_value(fd, item, registry, path) for item in value]
        else:
            values[fd.attr] = _coerce_value(fd, value, registry, path)
    return cls(**values)


# to_object


def _render_scalar(fd: FieldDescriptor, value: Any, options: ConversionOptions, registry: SchemaRegistry) -> Any:
    t = fd.type
    if fd.is_enum:
        if options.enums is str:
            name = registry.lookup_enum(fd.type_name).descriptor().name_of(int(value))
            return int(value) if name is None else name
        return int(value)
    if t in LONG_TYPES:
        return str(value) if options.longs is str else int(value)
    if t in FLOAT_TYPES:
        if options.json and not math.isfinite(value):
            return "NaN" if math.isnan(value) else ("Infinity" if value > 0 else "-Infinity")
        return value
    if t == "bytes":
        if options.bytes is str:
            return base64.b64encode(value).decode("ascii")
        if options.bytes is list:
            return list(value)
        return bytes(value)
    return value


def _render_value(fd: FieldDescriptor, value: Any, options: ConversionOptions, registry: SchemaRegistry) -> Any:
    if fd.is_message:
        return to_object(value, options, registry)
    return _render_scalar(fd, value, options, registry)


def _default_value(fd: FieldDescriptor, options: ConversionOptions, registry: SchemaRegistry) -> Any:
    if fd.is_message:
        return None
    return _render_scalar(fd, fd.type_default, options, registry)


def to_object(message: Message, options: ConversionOptions, registry: SchemaRegistry | None = None) -> dict[str, Any]:
    """Render a message as a plain dict keyed by field name."""
    descriptor = message.descriptor()
    if registry is None:
        registry = message._registry

    result: dict[str, Any] = {}
    for fd in descriptor.fields:
        value = getattr(message, fd.attr)

        if fd.is_repeated:
            if value:
                result[fd.name] = [_render_value(fd, item, options, registry) for item in value]
            elif options.arrays or options.defaults:
                result[fd.name] = []
            continue

        if value is None:
            if options.defaults:
                result[fd.name] = _default_value(fd, options, registry)
            continue

        if not fd.has_presence and not options.defaults and fd.is_default(value):
            continue

        result[fd.name] = _render_value(fd, value, options, registry)
    return result
