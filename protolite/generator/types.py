"""Type definitions for schema parsing and code generation."""

from dataclasses import dataclass, field
from typing import Any

from dataclasses_json import DataClassJsonMixin


@dataclass
class ProtoOption(DataClassJsonMixin):
    """Represents an `option name = value` on a file, message, field or enum."""

    name: str
    value: Any


@dataclass
class ProtoEnumValue(DataClassJsonMixin):
    """Represents a single enum value."""

    name: str
    number: int
    options: list[ProtoOption] = field(default_factory=list)


@dataclass
class ProtoEnum(DataClassJsonMixin):
    """Represents an enum type definition.

    full_name and py_name are filled in by the parser once the enclosing
    package and messages are known.
    """

    name: str
    values: list[ProtoEnumValue]
    options: list[ProtoOption] = field(default_factory=list)
    full_name: str = ""
    py_name: str = ""


@dataclass
class ProtoField(DataClassJsonMixin):
    """Represents a message field.

    The parser sets `type` and `label` from the source text; resolution
    fills in the remaining attributes:
    - kind: "scalar", "enum" or "message"
    - type_name: full name of the referenced enum/message
    - cardinality: "singular", "optional", "required" or "repeated"
    """

    name: str
    number: int
    type: str
    label: str | None = None
    options: list[ProtoOption] = field(default_factory=list)
    kind: str = ""
    type_name: str | None = None
    cardinality: str = ""
    packed: bool = False
    default: Any = None

    def option(self, name: str, default: Any = None) -> Any:
        for opt in self.options:
            if opt.name == name:
                return opt.value
        return default


@dataclass
class ProtoReserved(DataClassJsonMixin):
    """Reserved field numbers (inclusive ranges) and names."""

    ranges: list[tuple[int, int]] = field(default_factory=list)
    names: list[str] = field(default_factory=list)


@dataclass
class ProtoMessage(DataClassJsonMixin):
    """Represents a message type definition, including nested types."""

    name: str
    fields: list[ProtoField] = field(default_factory=list)
    messages: list["ProtoMessage"] = field(default_factory=list)
    enums: list[ProtoEnum] = field(default_factory=list)
    options: list[ProtoOption] = field(default_factory=list)
    reserved: ProtoReserved = field(default_factory=ProtoReserved)
    full_name: str = ""
    py_name: str = ""


@dataclass
class ProtoMethod(DataClassJsonMixin):
    """Represents an rpc method of a service."""

    name: str
    input_type: str
    output_type: str
    client_streaming: bool = False
    server_streaming: bool = False


@dataclass
class ProtoService(DataClassJsonMixin):
    """Represents a service definition. Services are recorded, not compiled."""

    name: str
    methods: list[ProtoMethod] = field(default_factory=list)
    full_name: str = ""


@dataclass
class ProtoFile(DataClassJsonMixin):
    """Represents one parsed .proto file."""

    syntax: str = "proto2"
    package: str | None = None
    imports: list[str] = field(default_factory=list)
    options: list[ProtoOption] = field(default_factory=list)
    messages: list[ProtoMessage] = field(default_factory=list)
    enums: list[ProtoEnum] = field(default_factory=list)
    services: list[ProtoService] = field(default_factory=list)
    path: str | None = None


@dataclass
class Schema(DataClassJsonMixin):
    """A resolved set of proto files, dependencies first."""

    files: list[ProtoFile]

    def all_messages(self) -> list[ProtoMessage]:
        """Every message, nested ones included, in definition order."""
        result: list[ProtoMessage] = []

        def walk(messages: list[ProtoMessage]) -> None:
            for message in messages:
                result.append(message)
                walk(message.messages)

        for proto_file in self.files:
            walk(proto_file.messages)
        return result

    def all_enums(self) -> list[ProtoEnum]:
        result: list[ProtoEnum] = []
        for proto_file in self.files:
            result.extend(proto_file.enums)
        for message in self.all_messages():
            result.extend(message.enums)
        return result

    def all_services(self) -> list[ProtoService]:
        return [service for proto_file in self.files for service in proto_file.services]

