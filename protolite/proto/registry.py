"""Explicit schema registry resolving type references between messages."""

import dataclasses
import logging
from collections.abc import Callable, Iterator, Mapping
from typing import TypeVar

from .errors import SchemaError
from .message import Message, ProtoEnum, ProtoFieldInfo
from .types import EnumDescriptor, FieldDescriptor, MessageDescriptor

logger = logging.getLogger(__name__)

TMessage = TypeVar("TMessage", bound=type[Message])
TEnum = TypeVar("TEnum", bound=type[ProtoEnum])


def _normalize(name: str) -> str:
    return name.lstrip(".")


def build_descriptor(cls: type[Message], full_name: str) -> MessageDescriptor:
    """Build the field table for a @dataclass message class."""
    if not dataclasses.is_dataclass(cls):
        raise SchemaError(f"{cls.__name__} must be a @dataclass to be registered")

    fields: list[FieldDescriptor] = []
    for f in dataclasses.fields(cls):
        info = f.metadata.get("protolite")
        if not isinstance(info, ProtoFieldInfo):
            continue
        fields.append(
            FieldDescriptor(
                number=info.number,
                name=info.name or f.name,
                type=info.type,
                cardinality=info.label,
                packed=info.packed,
                default=info.default,
                type_name=_normalize(info.type_name) if info.type_name else None,
                attr=f.name,
            )
        )
    return MessageDescriptor(full_name=full_name, fields=tuple(fields))


class SchemaRegistry:
    """Maps fully qualified type names to message and enum classes.

    A registry is created once (generated modules create one each) and
    passed by reference; message classes keep a reference to the registry
    they were registered with and resolve nested types through it.

    Example:
        registry = SchemaRegistry()

        @registry.message("google.protobuf.Timestamp")
        @dataclass
        class Timestamp(Message):
            seconds: int = proto_field(1, "int64")
            nanos: int = proto_field(2, "int32")
    """

    def __init__(self) -> None:
        self._messages: dict[str, type[Message]] = {}
        self._enums: dict[str, type[ProtoEnum]] = {}

    def __contains__(self, name: str) -> bool:
        name = _normalize(name)
        return name in self._messages or name in self._enums

    def __len__(self) -> int:
        return len(self._messages) + len(self._enums)

    def _check_free(self, name: str) -> None:
        if name in self:
            raise SchemaError(f"{name} is already registered")

    def register_message(self, cls: type[Message], full_name: str) -> None:
        full_name = _normalize(full_name)
        self._check_free(full_name)
        if not issubclass(cls, Message):
            raise SchemaError(f"{cls.__name__} must subclass Message")
        cls._descriptor = build_descriptor(cls, full_name)
        cls._registry = self
        self._messages[full_name] = cls
        logger.debug("registered message %s (%d fields)", full_name, len(cls._descriptor.fields))

    def register_enum(self, cls: type[ProtoEnum], full_name: str, names: Mapping[str, str] | None = None) -> None:
        """Register an enum; ``names`` maps member names to differing schema names."""
        full_name = _normalize(full_name)
        self._check_free(full_name)
        if not issubclass(cls, ProtoEnum):
            raise SchemaError(f"{cls.__name__} must subclass ProtoEnum")
        names = names or {}
        unknown = set(names) - set(cls.__members__)
        if unknown:
            raise SchemaError(f"{full_name}: no members named {', '.join(sorted(unknown))}")
        cls._descriptor = EnumDescriptor(full_name, tuple((names.get(m.name, m.name), m.value) for m in cls))
        self._enums[full_name] = cls
        logger.debug("registered enum %s", full_name)

    def message(self, full_name: str) -> Callable[[TMessage], TMessage]:
        """Class decorator registering a message type under ``full_name``."""

        def decorator(cls: TMessage) -> TMessage:
            self.register_message(cls, full_name)
            return cls

        return decorator

    def enum(self, full_name: str, names: Mapping[str, str] | None = None) -> Callable[[TEnum], TEnum]:
        """Class decorator registering an enum type under ``full_name``."""

        def decorator(cls: TEnum) -> TEnum:
            self.register_enum(cls, full_name, names)
            return cls

        return decorator

    def lookup_message(self, name: str) -> type[Message]:
        try:
            return self._messages[_normalize(name)]
        except KeyError:
            raise SchemaError(f"Unknown message type {name}") from None

    def lookup_enum(self, name: str) -> type[ProtoEnum]:
        try:
            return self._enums[_normalize(name)]
        except KeyError:
            raise SchemaError(f"Unknown enum type {name}") from None

    def messages(self) -> Iterator[tuple[str, type[Message]]]:
        return iter(self._messages.items())

    def enums(self) -> Iterator[tuple[str, type[ProtoEnum]]]:
        return iter(self._enums.items())

    def include(self, other: "SchemaRegistry") -> None:
        """Make every type of ``other`` resolvable through this registry.

        The included classes stay bound to their own registry; this only
        adds name lookups, so shared types are not registered twice.
        """
        for name, cls in other.messages():
            if self._messages.get(name, cls) is not cls:
                raise SchemaError(f"{name} is already registered")
            self._messages[name] = cls
        for name, enum_cls in other.enums():
            if self._enums.get(name, enum_cls) is not enum_cls:
                raise SchemaError(f"{name} is already registered")
            self._enums[name] = enum_cls
