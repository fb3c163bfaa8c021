"""Tests for schema-driven message encoding and decoding."""

import logging
import math
from dataclasses import dataclass

import pytest

from protolite.proto import (
    EncodeError,
    MalformedVarintError,
    Message,
    MissingFieldError,
    ProtoEnum,
    SchemaRegistry,
    TruncatedMessageError,
    Writer,
    proto_field,
)

registry = SchemaRegistry()


@registry.enum("test.Color")
class Color(ProtoEnum):
    RED = 0
    GREEN = 1
    BLUE = 2


@registry.message("test.StringReverseRequest")
@dataclass
class StringReverseRequest(Message):
    user_string: str = proto_field(1, "string")


@registry.message("test.Inner")
@dataclass
class Inner(Message):
    value: int = proto_field(1, "int32")
    label: str = proto_field(2, "string")


@registry.message("test.Outer")
@dataclass
class Outer(Message):
    inner: Inner | None = proto_field(1, "message", type_name="test.Inner")
    children: list[Inner] = proto_field(2, "message", label="repeated", type_name="test.Inner")
    numbers: list[int] = proto_field(3, "int32", label="repeated", packed=True)
    deltas: list[int] = proto_field(4, "sint64", label="repeated")
    color: Color | int = proto_field(5, "enum", type_name="test.Color")
    tags: list[str] = proto_field(6, "string", label="repeated")
    ratio: float = proto_field(7, "double")
    big: int = proto_field(8, "uint64")
    flag: bool = proto_field(9, "bool")
    blob: bytes = proto_field(10, "bytes")


@registry.message("test.Legacy")
@dataclass
class Legacy(Message):
    id: int | None = proto_field(1, "int32", label="required")
    name: str | None = proto_field(2, "string", label="optional", default="anon")
    count: int | None = proto_field(3, "fixed32", label="optional")


@registry.message("test.Defaulted")
@dataclass
class Defaulted(Message):
    level: int = proto_field(1, "int32", default=5)
    scale: float = proto_field(2, "double", default=1.5)


HELLO = bytes.fromhex("0a0568656c6c6f")


def describe_encode():
    def encodes_string_field(expect):
        expect(StringReverseRequest(user_string="hello").to_bytes()) == HELLO

    def encodes_empty_message_to_nothing(expect):
        expect(Outer().to_bytes()) == b""
        expect(StringReverseRequest().to_bytes()) == b""

    def suppresses_default_values(expect):
        expect(Outer(flag=False, ratio=0.0, big=0, blob=b"", color=Color.RED).to_bytes()) == b""

    def writes_negative_zero(expect):
        data = Outer(ratio=-0.0).to_bytes()
        expect(data[0]) == 0x39
        expect(len(data)) == 9

    def writes_fields_in_number_order(expect):
        data = Outer(flag=True, inner=Inner(value=1)).to_bytes()
        expect(data.hex()) == "0a0208014801"

    def packs_repeated_numbers(expect):
        expect(Outer(numbers=[1, 2, 300]).to_bytes().hex()) == "1a040102ac02"

    def writes_unpacked_repeated_values_one_tag_each(expect):
        expect(Outer(deltas=[-1, 1]).to_bytes().hex()) == "20012002"

    def writes_enum_as_varint(expect):
        expect(Outer(color=Color.BLUE).to_bytes().hex()) == "2802"
        expect(Outer(color=7).to_bytes().hex()) == "2807"

    def writes_present_optional_defaults(expect):
        expect(Legacy(id=0, name="").to_bytes().hex()) == "08001200"

    def rejects_missing_required_field():
        with pytest.raises(EncodeError):
            Legacy(name="x").to_bytes()

    def rejects_out_of_range_values():
        with pytest.raises(EncodeError):
            Inner(value=2**31).to_bytes()

    def encodes_delimited(expect):
        data = StringReverseRequest(user_string="hello").encode_delimited().finish()
        expect(data) == b"\x07" + HELLO

    def leaves_caller_writer_untouched_on_failure(expect):
        writer = Writer().raw(b"\x01")
        with pytest.raises(EncodeError):
            Outer(inner=Inner(value=2**31)).encode(writer)
        with pytest.raises(EncodeError):
            Outer(inner=Inner(value=2**31)).encode_delimited(writer)
        expect(writer.finish()) == b"\x01"

    def appends_to_caller_writer(expect):
        writer = Writer().raw(b"\x01")
        StringReverseRequest(user_string="hello").encode_delimited(writer)
        expect(writer.finish()) == b"\x01\x07" + HELLO

    def describe_declared_defaults():
        def skips_value_equal_to_declared_default(expect):
            expect(Defaulted().to_bytes()) == b""
            expect(Defaulted(level=5, scale=1.5).to_bytes()) == b""

        def writes_zero_when_default_differs(expect):
            data = Defaulted(level=0).to_bytes()
            expect(data.hex()) == "0800"
            expect(Defaulted.decode(data)) == Defaulted(level=0)

        def round_trips_through_to_object(expect):
            expect(Defaulted(level=0).to_object()) == {"level": 0}
            expect(Defaulted().to_object()) == {}
            expect(Defaulted.from_object(Defaulted(level=0, scale=0.0).to_object())) == Defaulted(level=0, scale=0.0)

    def keeps_negative_zero_in_to_object(expect):
        ratio = Outer(ratio=-0.0).to_object()["ratio"]
        expect(math.copysign(1.0, ratio)) == -1.0
        expect("ratio" in Outer(ratio=0.0).to_object()) == False


def describe_decode():
    def decodes_string_field(expect):
        expect(StringReverseRequest.decode(HELLO)) == StringReverseRequest(user_string="hello")

    def decodes_empty_input_to_defaults(expect):
        message = Outer.decode(b"")
        expect(message) == Outer()
        expect(message.inner) == None
        expect(message.numbers) == []

    def round_trips_every_field_kind(expect):
        message = Outer(
            inner=Inner(value=-5, label="in"),
            children=[Inner(value=1), Inner(label="two")],
            numbers=[0, -1, 2**31 - 1, -(2**31)],
            deltas=[-(2**63), 2**63 - 1],
            color=Color.GREEN,
            tags=["a", "", "c"],
            ratio=0.25,
            big=2**64 - 1,
            flag=True,
            blob=b"\x00\xff",
        )
        expect(Outer.decode(message.to_bytes())) == message

    def decodes_enum_members(expect):
        message = Outer.decode(bytes.fromhex("2801"))
        expect(message.color) == Color.GREEN
        expect(isinstance(message.color, Color)) == True

    def keeps_unknown_enum_numbers(expect):
        message = Outer.decode(bytes.fromhex("2807"))
        expect(message.color) == 7
        expect(isinstance(message.color, Color)) == False

    def accepts_packed_data_for_unpacked_field(expect):
        expect(Outer.decode(bytes.fromhex("22020102")).deltas) == [-1, 1]

    def accepts_unpacked_data_for_packed_field(expect):
        expect(Outer.decode(bytes.fromhex("18051806")).numbers) == [5, 6]

    def keeps_last_singular_occurrence(expect):
        data = HELLO + bytes.fromhex("0a03627965")
        expect(StringReverseRequest.decode(data).user_string) == "bye"

    def leaves_optional_fields_unset(expect):
        message = Legacy.decode(bytes.fromhex("0801"))
        expect(message.id) == 1
        expect(message.name) == None
        expect(Legacy.descriptor().field_by_name("name").type_default) == "anon"

    def rejects_missing_required_field():
        with pytest.raises(MissingFieldError):
            Legacy.decode(bytes.fromhex("1201" + "61"))

    def decodes_with_explicit_length(expect):
        data = HELLO + b"\x08\x01"
        expect(StringReverseRequest.decode(data, len(HELLO)).user_string) == "hello"

    def decodes_delimited(expect):
        message = StringReverseRequest.decode_delimited(b"\x07" + HELLO)
        expect(message.user_string) == "hello"

    def describe_unknown_fields():
        def skips_every_wire_type(expect):
            unknown = (
                bytes.fromhex("1001")  # varint, field 2
                + b"\x19" + b"\x00" * 8  # fixed64, field 3
                + bytes.fromhex("2202abcd")  # length-delimited, field 4
                + bytes.fromhex("2b08012c")  # group, field 5
                + b"\x35" + b"\x00" * 4  # fixed32, field 6
            )
            expect(StringReverseRequest.decode(unknown + HELLO).user_string) == "hello"
            expect(StringReverseRequest.decode(HELLO + unknown).user_string) == "hello"

        def skips_known_field_with_wrong_wire_type(expect):
            data = b"\x08\x01" + HELLO
            expect(StringReverseRequest.decode(data).user_string) == "hello"

        def logs_skipped_fields(expect, caplog):
            with caplog.at_level(logging.DEBUG, logger="protolite.proto.codec"):
                StringReverseRequest.decode(bytes.fromhex("1001") + HELLO)
            expect("skipping unknown field 2" in caplog.text) == True

    def describe_truncation():
        def raises_on_cut_string():
            with pytest.raises(TruncatedMessageError):
                StringReverseRequest.decode(HELLO[:-1])

        def raises_on_nested_length_past_end():
            with pytest.raises(TruncatedMessageError):
                Outer.decode(bytes.fromhex("0a050801"))

        def raises_on_packed_length_past_end():
            with pytest.raises(TruncatedMessageError):
                Outer.decode(bytes.fromhex("1a0501"))

        def raises_when_length_exceeds_buffer():
            with pytest.raises(TruncatedMessageError):
                StringReverseRequest.decode(HELLO, len(HELLO) + 1)

        def raises_when_field_overruns_message():
            with pytest.raises(TruncatedMessageError):
                StringReverseRequest.decode(HELLO, 3)

        def raises_on_overlong_varint():
            with pytest.raises(MalformedVarintError):
                Outer.decode(b"\x40" + b"\xff" * 11)

        def raises_on_cut_fixed64():
            with pytest.raises(TruncatedMessageError):
                Outer.decode(b"\x39\x00\x00")

        def raises_on_lengths_beyond_32_bits():
            with pytest.raises(TruncatedMessageError):
                Outer.decode(b"\x0a\x80\x80\x80\x80\x10")
            with pytest.raises(TruncatedMessageError):
                Outer.decode(b"\x1a\x80\x80\x80\x80\x10")
            with pytest.raises(TruncatedMessageError):
                StringReverseRequest.decode_delimited(b"\x80\x80\x80\x80\x10" + HELLO)

    def keeps_nan(expect):
        message = Outer.decode(Outer(ratio=math.nan).to_bytes())
        expect(math.isnan(message.ratio)) == True
