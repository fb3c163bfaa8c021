"""Tests for SchemaRegistry, message descriptors and proto_field."""

from dataclasses import dataclass

import pytest

from protolite.proto import (
    Cardinality,
    FieldDescriptor,
    Message,
    MessageDescriptor,
    ProtoEnum,
    SchemaError,
    SchemaRegistry,
    proto_field,
)


def describe_schema_registry():
    def registers_and_looks_up_types(expect):
        registry = SchemaRegistry()

        @registry.enum("demo.Mode")
        class Mode(ProtoEnum):
            OFF = 0
            ON = 1

        @registry.message("demo.Switch")
        @dataclass
        class Switch(Message):
            mode: Mode | int = proto_field(1, "enum", type_name="demo.Mode")

        expect(registry.lookup_message("demo.Switch")) == Switch
        expect(registry.lookup_message(".demo.Switch")) == Switch
        expect(registry.lookup_enum("demo.Mode")) == Mode
        expect("demo.Switch" in registry) == True
        expect(len(registry)) == 2
        expect(dict(registry.messages())) == {"demo.Switch": Switch}
        expect(Switch._registry is registry) == True

    def raises_for_unknown_names():
        registry = SchemaRegistry()
        with pytest.raises(SchemaError):
            registry.lookup_message("demo.Missing")
        with pytest.raises(SchemaError):
            registry.lookup_enum("demo.Missing")

    def rejects_duplicate_names():
        registry = SchemaRegistry()

        @registry.message("demo.Empty")
        @dataclass
        class Empty(Message):
            pass

        with pytest.raises(SchemaError):

            @registry.message("demo.Empty")
            @dataclass
            class Other(Message):
                pass

    def rejects_classes_that_are_not_dataclasses():
        registry = SchemaRegistry()
        with pytest.raises(SchemaError):

            @registry.message("demo.Plain")
            class Plain(Message):
                pass

    def rejects_duplicate_field_numbers():
        registry = SchemaRegistry()
        with pytest.raises(SchemaError):

            @registry.message("demo.Clash")
            @dataclass
            class Clash(Message):
                a: int = proto_field(1, "int32")
                b: int = proto_field(1, "int32")

    def includes_other_registries(expect):
        base = SchemaRegistry()

        @base.message("demo.Base")
        @dataclass
        class Base(Message):
            pass

        registry = SchemaRegistry()
        registry.include(base)
        registry.include(base)
        expect(registry.lookup_message("demo.Base")) == Base
        expect(Base._registry is base) == True

    def rejects_conflicting_includes():
        first = SchemaRegistry()
        second = SchemaRegistry()

        @first.message("demo.Same")
        @dataclass
        class One(Message):
            pass

        @second.message("demo.Same")
        @dataclass
        class Two(Message):
            pass

        with pytest.raises(SchemaError):
            first.include(second)

    def keeps_registries_independent(expect):
        first = SchemaRegistry()
        second = SchemaRegistry()

        @first.message("demo.Only")
        @dataclass
        class Only(Message):
            pass

        expect("demo.Only" in second) == False


def describe_message_descriptor():
    def orders_fields_by_number(expect):
        descriptor = MessageDescriptor(
            full_name="demo.M",
            fields=(FieldDescriptor(3, "c", "int32"), FieldDescriptor(1, "a", "string")),
        )
        expect([f.number for f in descriptor.fields]) == [1, 3]
        expect(descriptor.field_by_name("c").number) == 3
        expect(descriptor.field_by_number(2)) == None

    def rejects_packed_strings():
        with pytest.raises(SchemaError):
            FieldDescriptor(1, "s", "string", Cardinality.REPEATED, packed=True)

    def rejects_unknown_types():
        with pytest.raises(SchemaError):
            FieldDescriptor(1, "x", "int128")

    def requires_type_name_for_messages():
        with pytest.raises(SchemaError):
            FieldDescriptor(1, "m", "message")

    def builds_from_dataclass_fields(expect):
        registry = SchemaRegistry()

        @registry.message("demo.Renamed")
        @dataclass
        class Renamed(Message):
            class_: str = proto_field(1, "string", name="class")
            items: list[int] = proto_field(2, "uint32", label="repeated", packed=True)

        descriptor = Renamed.descriptor()
        field = descriptor.field_by_name("class")
        expect(field.attr) == "class_"
        expect(descriptor.field_by_number(2).packed) == True
        expect(descriptor.field_by_number(2).cardinality) == Cardinality.REPEATED


def describe_message():
    def requires_registration():
        @dataclass
        class Loose(Message):
            value: int = proto_field(1, "int32")

        with pytest.raises(SchemaError):
            Loose.descriptor()

    def uses_field_defaults(expect):
        registry = SchemaRegistry()

        @registry.message("demo.Defaults")
        @dataclass
        class Defaults(Message):
            text: str = proto_field(1, "string")
            data: bytes = proto_field(2, "bytes")
            ratio: float = proto_field(3, "float")
            maybe: int | None = proto_field(4, "int32", label="optional")
            values: list[int] = proto_field(5, "int32", label="repeated")

        message = Defaults.create()
        expect(message.text) == ""
        expect(message.data) == b""
        expect(message.ratio) == 0.0
        expect(message.maybe) == None
        expect(message.values) == []
        expect(Defaults().values is Defaults().values) == False

    def rejects_unknown_field_types():
        with pytest.raises(SchemaError):
            proto_field(1, "varchar")


def describe_proto_enum():
    def coerces_known_and_unknown_numbers(expect):
        class Level(ProtoEnum):
            LOW = 0
            HIGH = 1

        expect(Level.coerce(1)) == Level.HIGH
        expect(Level.coerce(9)) == 9

    def keeps_schema_names_for_renamed_members(expect):
        registry = SchemaRegistry()

        @registry.enum("demo.Word", names={"None_": "None", "name_": "name"})
        class Word(ProtoEnum):
            OK = 0
            None_ = 1
            name_ = 2

        descriptor = Word.descriptor()
        expect(descriptor.values) == (("OK", 0), ("None", 1), ("name", 2))
        expect(descriptor.name_of(1)) == "None"
        expect(descriptor.number_of("name")) == 2
        expect(descriptor.number_of("name_")) == None
        expect(descriptor.name_of(7)) == None

    def rejects_names_for_missing_members():
        registry = SchemaRegistry()

        class Word(ProtoEnum):
            OK = 0

        with pytest.raises(SchemaError):
            registry.register_enum(Word, "demo.Word", {"Missing_": "Missing"})

    def requires_registration_for_descriptor():
        class Loose(ProtoEnum):
            A = 0

        with pytest.raises(SchemaError):
            Loose.descriptor()
