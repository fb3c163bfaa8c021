"""Schema parser using Lark, with type resolution and validation."""

import logging
import os
from pathlib import Path
from typing import Any, TypeVar

from lark import Lark, Token
from lark.exceptions import UnexpectedInput, VisitError
from lark.visitors import Transformer

from protolite.proto.errors import SchemaError
from protolite.proto.wire import check_field_number, is_packable, is_scalar

from .types import (
    ProtoEnum,
    ProtoEnumValue,
    ProtoField,
    ProtoFile,
    ProtoMessage,
    ProtoMethod,
    ProtoOption,
    ProtoReserved,
    ProtoService,
    Schema,
)

logger = logging.getLogger(__name__)

_g_parser: Lark | None = None


class ValidationError(RuntimeError):
    """Raised when schema validation fails."""


class _Ranges(list):
    pass


class _Names(list):
    pass


class _Reserved(ProtoReserved):
    pass


class _Extensions:
    pass


class _Syntax(str):
    pass


class _Package(str):
    pass


class _Import(str):
    pass


TFilter = TypeVar("TFilter", bound=object)


def _filter(args: list[Any], class_type: type[TFilter]) -> list[TFilter]:
    return [v for v in args if isinstance(v, class_type)]


def _find_one(args: list[Any], class_type: type[TFilter]) -> TFilter | None:
    filtered = _filter(args, class_type)
    if len(filtered) > 1:
        raise ValidationError(f"Found more than one {class_type.__name__.lstrip('_').lower()} statement")
    return filtered[0] if filtered else None


def _tokens(args: list[Any], token_type: str) -> list[Token]:
    return [a for a in args if isinstance(a, Token) and a.type == token_type]


def _unquote(text: str) -> str:
    """Strip the quotes from a string literal and resolve escapes."""
    body = text[1:-1]
    return body.encode("latin-1", "backslashreplace").decode("unicode_escape")


class TreeTransformer(Transformer):
    """Transform parse tree into schema types."""

    def start(self, args: list[Any]) -> ProtoFile:
        syntax = _find_one(args, _Syntax)
        package = _find_one(args, _Package)
        return ProtoFile(
            syntax=str(syntax) if syntax else "proto2",
            package=str(package) if package else None,
            imports=[str(i) for i in _filter(args, _Import)],
            options=_filter(args, ProtoOption),
            messages=_filter(args, ProtoMessage),
            enums=_filter(args, ProtoEnum),
            services=_filter(args, ProtoService),
        )

    def syntax(self, args: list[Any]) -> _Syntax:
        value = _unquote(args[0])
        if value not in ("proto2", "proto3"):
            raise ValidationError(f"Unsupported syntax {value!r}")
        return _Syntax(value)

    def package(self, args: list[Any]) -> _Package:
        return _Package(args[0])

    def import_stmt(self, args: list[Any]) -> _Import:
        return _Import(_unquote(_tokens(args, "STRING")[0]))

    def full_ident(self, args: list[Any]) -> str:
        return ".".join(str(t) for t in _tokens(args, "IDENT"))

    def type_ref(self, args: list[Any]) -> str:
        prefix = "." if _tokens(args, "DOT") else ""
        return prefix + [a for a in args if not isinstance(a, Token) or a.type != "DOT"][0]

    def custom_option(self, args: list[Any]) -> str:
        name = [a for a in args if not isinstance(a, Token) or a.type != "DOT"][0]
        return f"({name})"

    def option_name(self, args: list[Any]) -> str:
        return ".".join(str(a) for a in args if not (isinstance(a, Token) and a.type == "DOT"))

    def option_stmt(self, args: list[Any]) -> ProtoOption:
        return ProtoOption(name=args[0], value=args[1])

    def field_option(self, args: list[Any]) -> ProtoOption:
        return ProtoOption(name=args[0], value=args[1])

    def field_options(self, args: list[Any]) -> list[ProtoOption]:
        return list(args)

    def hex_const(self, args: list[Any]) -> int:
        return int(args[0], 16)

    def number_const(self, args: list[Any]) -> int | float:
        text = str(args[0])
        try:
            return int(text)
        except ValueError:
            return float(text)

    def string_const(self, args: list[Any]) -> str:
        return _unquote(args[0])

    def ident_const(self, args: list[Any]) -> Any:
        sign = "-" if _tokens(args, "MINUS") else ""
        name = sign + [a for a in args if not isinstance(a, Token)][0]
        if name in ("true", "false"):
            return name == "true"
        return name

    def aggregate_const(self, args: list[Any]) -> str:
        return "".join(str(a) for a in args).strip()

    def field(self, args: list[Any]) -> ProtoField:
        label = _tokens(args, "LABEL")
        names = _tokens(args, "IDENT")
        options = [o for a in args if isinstance(a, list) for o in a]
        type_ref = [a for a in args if isinstance(a, str) and not isinstance(a, Token)][0]
        return ProtoField(
            name=str(names[0]),
            number=int(_tokens(args, "INT")[0]),
            type=type_ref,
            label=str(label[0]) if label else None,
            options=options,
        )

    def range(self, args: list[Any]) -> tuple[int, int]:
        start = int(args[0])
        if len(args) == 1:
            return (start, start)
        end = args[1]
        return (start, (1 << 29) - 1 if end.type == "MAX" else int(end))

    def ranges(self, args: list[Any]) -> _Ranges:
        return _Ranges(args)

    def field_names(self, args: list[Any]) -> _Names:
        return _Names(_unquote(a) for a in args)

    def reserved(self, args: list[Any]) -> _Reserved:
        value = args[0]
        if isinstance(value, _Names):
            return _Reserved(names=list(value))
        return _Reserved(ranges=list(value))

    def extensions(self, args: list[Any]) -> _Extensions:
        return _Extensions()

    def message(self, args: list[Any]) -> ProtoMessage:
        reserved = ProtoReserved()
        for r in _filter(args, _Reserved):
            reserved.ranges.extend(r.ranges)
            reserved.names.extend(r.names)
        return ProtoMessage(
            name=str(args[0]),
            fields=_filter(args, ProtoField),
            messages=_filter(args, ProtoMessage),
            enums=_filter(args, ProtoEnum),
            options=_filter(args, ProtoOption),
            reserved=reserved,
        )

    def enum_value(self, args: list[Any]) -> ProtoEnumValue:
        options = [o for a in args if isinstance(a, list) for o in a]
        return ProtoEnumValue(name=str(args[0]), number=int(args[1]), options=options)

    def enum(self, args: list[Any]) -> ProtoEnum:
        return ProtoEnum(
            name=str(args[0]),
            values=_filter(args, ProtoEnumValue),
            options=_filter(args, ProtoOption),
        )

    def rpc(self, args: list[Any]) -> ProtoMethod:
        streams: list[bool] = []
        types: list[str] = []
        pending_stream = False
        for a in args[1:]:
            if isinstance(a, Token) and a.type == "STREAM":
                pending_stream = True
            elif isinstance(a, str) and not isinstance(a, Token):
                types.append(a)
                streams.append(pending_stream)
                pending_stream = False
        return ProtoMethod(
            name=str(args[0]),
            input_type=types[0],
            output_type=types[1],
            client_streaming=streams[0],
            server_streaming=streams[1],
        )

    def rpc_body(self, args: list[Any]) -> list[ProtoOption]:
        return _filter(args, ProtoOption)

    def service(self, args: list[Any]) -> ProtoService:
        return ProtoService(name=str(args[0]), methods=_filter(args, ProtoMethod))


def _get_parser() -> Lark:
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/protodef.lark", encoding="utf-8") as f:
            grammar = f.read()
        _g_parser = Lark(grammar)
    return _g_parser


def parse_text(text: str, path: str | None = None) -> ProtoFile:
    """Parse one schema file without resolving its types."""
    try:
        tree = _get_parser().parse(text)
        proto_file = TreeTransformer().transform(tree)
    except UnexpectedInput as e:
        raise ValidationError(f"{path or '<text>'}: invalid syntax at line {e.line}, column {e.column}") from e
    except VisitError as e:
        if isinstance(e.orig_exc, ValidationError):
            raise e.orig_exc from None
        raise
    proto_file.path = path
    return proto_file


# Resolution


def _assign_names(proto_file: ProtoFile) -> None:
    prefix = f"{proto_file.package}." if proto_file.package else ""

    def walk_enum(enum: ProtoEnum, full_scope: str, py_scope: str) -> None:
        enum.full_name = full_scope + enum.name
        enum.py_name = py_scope + enum.name

    def walk_message(message: ProtoMessage, full_scope: str, py_scope: str) -> None:
        message.full_name = full_scope + message.name
        message.py_name = py_scope + message.name
        for enum in message.enums:
            walk_enum(enum, message.full_name + ".", message.py_name + ".")
        for nested in message.messages:
            walk_message(nested, message.full_name + ".", message.py_name + ".")

    for enum in proto_file.enums:
        walk_enum(enum, prefix, "")
    for message in proto_file.messages:
        walk_message(message, prefix, "")
    for service in proto_file.services:
        service.full_name = prefix + service.name


class _Resolver:
    """Resolves field type references and validates a set of files."""

    def __init__(self, files: list[ProtoFile]):
        self.files = files
        self.messages: dict[str, ProtoMessage] = {}
        self.enums: dict[str, ProtoEnum] = {}
        for proto_file in files:
            _assign_names(proto_file)
        schema = Schema(files=files)
        for message in schema.all_messages():
            self._declare(message.full_name)
            self.messages[message.full_name] = message
        for enum in schema.all_enums():
            self._declare(enum.full_name)
            self.enums[enum.full_name] = enum

    def _declare(self, name: str) -> None:
        if name in self.messages or name in self.enums:
            raise ValidationError(f"{name} is already defined")

    def lookup(self, ref: str, scope: str) -> str:
        """Find the full name ``ref`` refers to from within ``scope``.

        Relative names are searched for from the innermost scope outward,
        the way protoc resolves them.
        """
        if ref.startswith("."):
            candidates = [ref[1:]]
        else:
            parts = scope.split(".") if scope else []
            candidates = [".".join(parts[:i] + [ref]) for i in range(len(parts), -1, -1)]

        for candidate in candidates:
            if candidate in self.messages or candidate in self.enums:
                return candidate
        raise ValidationError(f"Unknown type {ref} referenced from {scope or '<root>'}")

    def resolve(self) -> Schema:
        for proto_file in self.files:
            for enum in proto_file.enums:
                self._check_enum(enum, proto_file)
            for message in proto_file.messages:
                self._resolve_message(message, proto_file)
            for service in proto_file.services:
                scope = proto_file.package or ""
                for method in service.methods:
                    for attr in ("input_type", "output_type"):
                        name = self.lookup(getattr(method, attr), scope)
                        if name not in self.messages:
                            raise ValidationError(f"{service.full_name}.{method.name}: {name} is not a message")
                        setattr(method, attr, name)
        return Schema(files=self.files)

    def _check_enum(self, enum: ProtoEnum, proto_file: ProtoFile) -> None:
        if not enum.values:
            raise ValidationError(f"{enum.full_name} must have at least one value")
        if proto_file.syntax == "proto3" and enum.values[0].number != 0:
            raise ValidationError(f"{enum.full_name}: first value must be zero in proto3")
        seen: set[str] = set()
        for value in enum.values:
            if value.name in seen:
                raise ValidationError(f"{enum.full_name}: duplicate value name {value.name}")
            seen.add(value.name)
            if not -(1 << 31) <= value.number < (1 << 31):
                raise ValidationError(f"{enum.full_name}.{value.name}: {value.number} is not an int32")

    def _resolve_message(self, message: ProtoMessage, proto_file: ProtoFile) -> None:
        for enum in message.enums:
            self._check_enum(enum, proto_file)
        for nested in message.messages:
            self._resolve_message(nested, proto_file)

        numbers: dict[int, str] = {}
        names: set[str] = set()
        for f in message.fields:
            where = f"{message.full_name}.{f.name}"
            try:
                check_field_number(f.number)
            except SchemaError as e:
                raise ValidationError(f"{where}: {e}") from e
            if f.number in numbers:
                raise ValidationError(f"{where}: field number {f.number} already used by {numbers[f.number]}")
            if f.name in names:
                raise ValidationError(f"{where}: duplicate field name")
            for low, high in message.reserved.ranges:
                if low <= f.number <= high:
                    raise ValidationError(f"{where}: field number {f.number} is reserved")
            if f.name in message.reserved.names:
                raise ValidationError(f"{where}: field name is reserved")
            numbers[f.number] = f.name
            names.add(f.name)
            self._resolve_field(f, message, proto_file)

    def _resolve_field(self, f: ProtoField, message: ProtoMessage, proto_file: ProtoFile) -> None:
        where = f"{message.full_name}.{f.name}"
        proto3 = proto_file.syntax == "proto3"

        if is_scalar(f.type):
            f.kind = "scalar"
            f.type_name = None
        else:
            f.type_name = self.lookup(f.type, message.full_name)
            f.kind = "message" if f.type_name in self.messages else "enum"

        if f.label == "repeated":
            f.cardinality = "repeated"
        elif f.label == "required":
            if proto3:
                raise ValidationError(f"{where}: required fields are not allowed in proto3")
            f.cardinality = "required"
        elif f.label == "optional" or not proto3:
            f.cardinality = "optional"
        else:
            f.cardinality = "singular"

        packable = is_packable("enum" if f.kind == "enum" else f.type) and f.kind != "message"
        packed = f.option("packed")
        if packed is not None:
            if not isinstance(packed, bool):
                raise ValidationError(f"{where}: packed must be true or false")
            if packed and not (f.cardinality == "repeated" and packable):
                raise ValidationError(f"{where}: only repeated numeric fields can be packed")
            f.packed = packed
        else:
            f.packed = proto3 and f.cardinality == "repeated" and packable

        default = f.option("default")
        if default is not None:
            if proto3:
                raise ValidationError(f"{where}: explicit defaults are not allowed in proto3")
            if f.cardinality == "repeated" or f.kind == "message":
                raise ValidationError(f"{where}: default not allowed on {f.cardinality} {f.kind} fields")
            f.default = self._convert_default(f, default, where)
        elif f.kind == "enum" and f.cardinality != "repeated":
            # an unset enum reads as its first declared value
            first = self.enums[f.type_name].values[0].number
            if first != 0:
                f.default = first

    def _convert_default(self, f: ProtoField, value: Any, where: str) -> Any:
        if f.kind == "enum":
            enum = self.enums[f.type_name]
            for v in enum.values:
                if v.name == value:
                    return v.number
            raise ValidationError(f"{where}: {value!r} is not a value of {enum.full_name}")
        if f.type == "bool":
            if not isinstance(value, bool):
                raise ValidationError(f"{where}: default must be true or false")
            return value
        if f.type == "string":
            return str(value)
        if f.type == "bytes":
            try:
                return str(value).encode("latin-1")
            except UnicodeEncodeError as e:
                raise ValidationError(f"{where}: invalid bytes default: {e}") from e
        if f.type in ("double", "float"):
            if isinstance(value, str) and value.lstrip("-") in ("inf", "nan"):
                return float(value)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"{where}: default must be a number")
            return float(value)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{where}: default must be an integer")
        return value


def resolve(files: list[ProtoFile]) -> Schema:
    """Resolve type references across ``files`` and validate them."""
    schema = _Resolver(files).resolve()
    logger.info(
        "resolved %d file(s): %d messages, %d enums",
        len(schema.files),
        len(schema.all_messages()),
        len(schema.all_enums()),
    )
    return schema


def parse(text: str) -> Schema:
    """Parse and resolve a self-contained schema (imports are not followed)."""
    return resolve([parse_text(text)])


def _find_import(name: str, search_paths: list[Path]) -> Path:
    for directory in search_paths:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    raise ValidationError(f"Import {name} not found in {', '.join(str(p) for p in search_paths)}")


def parse_file(path: str | os.PathLike[str], include_paths: list[str] | tuple[str, ...] = ()) -> Schema:
    """Parse a schema file and, recursively, the files it imports.

    Imports are looked up relative to the importing file's directory first,
    then in each include path. Files are returned dependencies first.
    """
    root = Path(path)
    search_paths = [root.parent, *(Path(p) for p in include_paths)]
    loaded: dict[Path, ProtoFile] = {}
    ordered: list[ProtoFile] = []
    in_progress: set[Path] = set()

    def load(file_path: Path) -> None:
        key = file_path.resolve()
        if key in loaded:
            return
        if key in in_progress:
            raise ValidationError(f"Import cycle through {file_path}")
        in_progress.add(key)
        logger.debug("parsing %s", file_path)
        proto_file = parse_text(file_path.read_text(encoding="utf-8"), str(file_path))
        for name in proto_file.imports:
            load(_find_import(name, search_paths))
        in_progress.discard(key)
        loaded[key] = proto_file
        ordered.append(proto_file)

    load(root)
    return resolve(ordered)
