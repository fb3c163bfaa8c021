"""Runtime type descriptors for protolite messages.

These dataclasses are the field tables the codec walks to encode, decode,
verify and convert messages. They are built once per message class when the
class is registered and never change afterwards.
"""

import math
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .errors import SchemaError
from .wire import ENUM_TYPE, SCALAR_TYPES, ScalarType, WireType, check_field_number, is_packable


class Cardinality(StrEnum):
    """How many values a field holds and how its presence is tracked."""

    SINGULAR = "singular"  # implicit presence, default value is not emitted
    OPTIONAL = "optional"  # explicit presence, None means absent
    REQUIRED = "required"
    REPEATED = "repeated"


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Describes one field of a message."""

    number: int
    name: str
    type: str  # scalar type name, "enum" or "message"
    cardinality: Cardinality = Cardinality.SINGULAR
    packed: bool = False
    default: Any = None
    type_name: str | None = None  # full name of the enum or message type
    attr: str = ""  # Python attribute, defaults to name

    def __post_init__(self) -> None:
        check_field_number(self.number)
        if not self.attr:
            object.__setattr__(self, "attr", self.name)
        if self.type in ("enum", "message"):
            if not self.type_name:
                raise SchemaError(f"{self.name}: {self.type} field needs a type_name")
        elif self.type not in SCALAR_TYPES:
            raise SchemaError(f"{self.name}: unknown field type {self.type!r}")
        if self.packed and not (self.is_repeated and is_packable(self.type)):
            raise SchemaError(f"{self.name}: only repeated numeric fields can be packed")

    @property
    def is_repeated(self) -> bool:
        return self.cardinality == Cardinality.REPEATED

    @property
    def is_message(self) -> bool:
        return self.type == "message"

    @property
    def is_enum(self) -> bool:
        return self.type == "enum"

    @property
    def has_presence(self) -> bool:
        """True when an unset field is represented by None."""
        return self.is_message or self.cardinality in (Cardinality.OPTIONAL, Cardinality.REQUIRED)

    @property
    def scalar(self) -> ScalarType | None:
        """The scalar codec for this field's values, None for messages."""
        if self.is_enum:
            return ENUM_TYPE
        return SCALAR_TYPES.get(self.type)

    @property
    def wire_type(self) -> WireType:
        if self.is_message:
            return WireType.LENGTH_DELIMITED
        return self.scalar.wire_type

    @property
    def type_default(self) -> Any:
        """The value an absent field reads as."""
        if self.default is not None:
            return self.default
        if self.is_message:
            return None
        return self.scalar.default

    def is_default(self, value: Any) -> bool:
        """True when an implicit-presence field holding ``value`` is left off the wire."""
        default = self.type_default
        if isinstance(value, float) and value == 0.0 and default == 0.0:
            # -0.0 equals 0.0 but is a distinct value
            return math.copysign(1.0, value) == math.copysign(1.0, default)
        return value == default


@dataclass(frozen=True, slots=True)
class MessageDescriptor:
    """Describes a message type with its fields ordered by number."""

    full_name: str
    fields: tuple[FieldDescriptor, ...]
    _by_number: dict[int, FieldDescriptor] = field(init=False, repr=False, compare=False)
    _by_name: dict[str, FieldDescriptor] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.fields, key=lambda f: f.number))
        by_number: dict[int, FieldDescriptor] = {}
        by_name: dict[str, FieldDescriptor] = {}
        for f in ordered:
            if f.number in by_number:
                raise SchemaError(
                    f"{self.full_name}: field number {f.number} used by both "
                    f"{by_number[f.number].name} and {f.name}"
                )
            if f.name in by_name:
                raise SchemaError(f"{self.full_name}: duplicate field name {f.name}")
            by_number[f.number] = f
            by_name[f.name] = f
        object.__setattr__(self, "fields", ordered)
        object.__setattr__(self, "_by_number", by_number)
        object.__setattr__(self, "_by_name", by_name)

    def field_by_number(self, number: int) -> FieldDescriptor | None:
        return self._by_number.get(number)

    def field_by_name(self, name: str) -> FieldDescriptor | None:
        return self._by_name.get(name)


@dataclass(frozen=True, slots=True)
class EnumDescriptor:
    """Describes an enum type."""

    full_name: str
    values: tuple[tuple[str, int], ...]

    def name_of(self, number: int) -> str | None:
        """Schema name of the first value numbered ``number``."""
        for name, value in self.values:
            if value == number:
                return name
        return None

    def number_of(self, name: str) -> int | None:
        for value_name, value in self.values:
            if value_name == name:
                return value
        return None
