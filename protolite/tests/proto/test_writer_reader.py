"""Tests for the wire-level Writer and Reader."""

import math

import pytest

from protolite.proto import DecodeError, EncodeError, Reader, TruncatedMessageError, WireType, Writer


def describe_writer():
    def writes_tag_and_string(expect):
        data = Writer().tag(1, WireType.LENGTH_DELIMITED).string("hello").finish()
        expect(data.hex()) == "0a0568656c6c6f"

    def writes_negative_int32_as_ten_bytes(expect):
        expect(len(Writer().int32(-1).finish())) == 10

    def writes_sint32_zigzag(expect):
        expect(Writer().sint32(-1).finish()) == b"\x01"
        expect(Writer().sint64(-2).finish()) == b"\x03"

    def writes_fixed_width_little_endian(expect):
        expect(Writer().fixed32(1).finish()) == b"\x01\x00\x00\x00"
        expect(Writer().sfixed64(-1).finish()) == b"\xff" * 8
        expect(Writer().double(1.0).finish()) == b"\x00\x00\x00\x00\x00\x00\xf0\x3f"

    def writes_bool(expect):
        expect(Writer().bool(True).bool(False).finish()) == b"\x01\x00"

    def writes_bytes_with_length(expect):
        expect(Writer().bytes(b"\x00\xff").finish()) == b"\x02\x00\xff"

    def tracks_length(expect):
        writer = Writer().uint32(300)
        expect(len(writer)) == 2

    def rejects_out_of_range_values():
        with pytest.raises(EncodeError):
            Writer().uint32(-1)
        with pytest.raises(EncodeError):
            Writer().int32(2**31)
        with pytest.raises(EncodeError):
            Writer().uint64(2**64)
        with pytest.raises(EncodeError):
            Writer().fixed32(2**32)

    def rejects_wrong_value_types():
        with pytest.raises(EncodeError):
            Writer().int32("1")
        with pytest.raises(EncodeError):
            Writer().string(b"bytes")
        with pytest.raises(EncodeError):
            Writer().bytes("text")

    def rejects_float_overflow():
        with pytest.raises(EncodeError):
            Writer().float(1e300)

    def describe_fork():
        def prefixes_region_with_length(expect):
            writer = Writer().tag(1, WireType.LENGTH_DELIMITED).fork()
            writer.tag(1, WireType.VARINT).uint32(150)
            expect(writer.ldelim().finish().hex()) == "0a03089601"

        def nests(expect):
            writer = Writer().fork().fork().raw(b"abc").ldelim().ldelim()
            expect(writer.finish()) == b"\x04\x03abc"

        def refuses_to_finish_with_open_fork():
            with pytest.raises(EncodeError):
                Writer().fork().finish()

        def refuses_ldelim_without_fork():
            with pytest.raises(EncodeError):
                Writer().ldelim()

        def reset_discards_everything(expect):
            writer = Writer().uint32(1).fork().uint32(2)
            expect(writer.reset().finish()) == b""


def describe_reader():
    def reads_tag_and_string(expect):
        reader = Reader(bytes.fromhex("0a0568656c6c6f"))
        expect(reader.tag()) == (1, WireType.LENGTH_DELIMITED)
        expect(reader.string()) == "hello"
        expect(reader.remaining) == 0

    def reads_signed_values(expect):
        expect(Reader(Writer().int32(-5).finish()).int32()) == -5
        expect(Reader(Writer().int64(-(2**63)).finish()).int64()) == -(2**63)
        expect(Reader(Writer().sint32(-(2**31)).finish()).sint32()) == -(2**31)
        expect(Reader(Writer().sfixed32(-7).finish()).sfixed32()) == -7

    def reads_uint32_from_wide_varint(expect):
        expect(Reader(Writer().int64(-1).finish()).uint32()) == 0xFFFFFFFF

    def reads_floats(expect):
        expect(Reader(Writer().float(0.5).finish()).float()) == 0.5
        expect(math.isnan(Reader(Writer().double(math.nan).finish()).double())) == True

    def returns_copies_of_bytes(expect):
        data = bytearray(Writer().bytes(b"abc").finish())
        value = Reader(data).bytes()
        data[1] = 0
        expect(value) == b"abc"

    def honours_end_boundary():
        reader = Reader(b"\x01\x02\x03\x04", end=2)
        reader.skip(2)
        with pytest.raises(TruncatedMessageError):
            reader.skip(1)

    def rejects_end_beyond_buffer():
        with pytest.raises(TruncatedMessageError):
            Reader(b"\x00", end=2)

    def raises_on_truncated_fixed():
        with pytest.raises(TruncatedMessageError):
            Reader(b"\x00\x00").fixed32()

    def raises_on_truncated_length_delimited():
        with pytest.raises(TruncatedMessageError):
            Reader(b"\x05abc").bytes()

    def rejects_invalid_utf8():
        with pytest.raises(DecodeError):
            Reader(b"\x02\xc3\x28").string()

    def rejects_field_number_zero():
        with pytest.raises(DecodeError):
            Reader(b"\x00").tag()

    def create_passes_readers_through(expect):
        reader = Reader(b"")
        expect(Reader.create(reader) is reader) == True

    def describe_skip_type():
        @pytest.mark.parametrize(
            ("wire_type", "payload"),
            [
                (WireType.VARINT, b"\x96\x01"),
                (WireType.FIXED64, b"\x00" * 8),
                (WireType.LENGTH_DELIMITED, b"\x03abc"),
                (WireType.FIXED32, b"\x00" * 4),
            ],
        )
        def skips_one_value(expect, wire_type, payload):
            reader = Reader(payload + b"\x08\x01")
            reader.skip_type(wire_type)
            expect(reader.tag()) == (1, WireType.VARINT)

        def skips_nested_groups(expect):
            # field 2 group containing a varint and a nested group
            group = b"\x13" + b"\x08\x01" + b"\x1b" + b"\x1c" + b"\x14"
            reader = Reader(group + b"\x08\x01")
            reader.tag()
            reader.skip_type(WireType.START_GROUP)
            expect(reader.tag()) == (1, WireType.VARINT)

        def rejects_stray_end_group():
            with pytest.raises(DecodeError):
                Reader(b"").skip_type(WireType.END_GROUP)

        def rejects_invalid_wire_type():
            with pytest.raises(DecodeError):
                Reader(b"\x00").skip_type(7)
