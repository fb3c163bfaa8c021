"""Python code generator for protolite schemas."""

import keyword
import math
import os
import sys
from types import ModuleType

from jinja2 import Environment, PackageLoader

from protolite.proto.message import Message

from .parser import ValidationError
from .types import ProtoEnum, ProtoField, Schema

env = Environment(
    loader=PackageLoader("protolite.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("python.py.j2")

# Map protobuf scalar types to Python type annotations
PYTHON_TYPE_MAP = {
    "double": "float",
    "float": "float",
    "int32": "int",
    "int64": "int",
    "uint32": "int",
    "uint64": "int",
    "sint32": "int",
    "sint64": "int",
    "fixed32": "int",
    "fixed64": "int",
    "sfixed32": "int",
    "sfixed64": "int",
    "bool": "bool",
    "string": "str",
    "bytes": "bytes",
}

# Attribute names a field cannot take without shadowing Message behaviour
RESERVED_ATTRS = frozenset(keyword.kwlist) | frozenset(
    name for name in dir(Message) if not name.startswith("__")
)

RESERVED_MEMBERS = frozenset(keyword.kwlist) | frozenset(["name", "value", "coerce", "descriptor", "mro"])


def attr_name(name: str) -> str:
    """Python attribute for a schema field name."""
    return f"{name}_" if name in RESERVED_ATTRS else name


def member_name(name: str) -> str:
    """Python enum member for a schema enum value name."""
    return f"{name}_" if name in RESERVED_MEMBERS else name


def enum_names(enum: ProtoEnum) -> str:
    """Decorator argument mapping escaped members back to their schema names."""
    renamed = [(member_name(v.name), v.name) for v in enum.values if member_name(v.name) != v.name]
    if not renamed:
        return ""
    items = ", ".join(f'"{member}": "{name}"' for member, name in renamed)
    return f", names={{{items}}}"


def _literal(value: object) -> str:
    """Python source for a default value."""
    if isinstance(value, float) and not math.isfinite(value):
        return f'float("{value}")'
    return repr(value)


class _Namer:
    """Maps full type names to the Python names generated for them."""

    def __init__(self, schema: Schema):
        self.py_names = {m.full_name: m.py_name for m in schema.all_messages()}
        self.py_names.update({e.full_name: e.py_name for e in schema.all_enums()})

    def annotation(self, f: ProtoField) -> str:
        if f.kind == "scalar":
            element = PYTHON_TYPE_MAP[f.type]
        elif f.kind == "enum":
            element = f"{self.py_names[f.type_name]} | int"
        else:
            element = self.py_names[f.type_name]

        if f.cardinality == "repeated":
            return f"list[{element}]"
        if f.kind == "message" or f.cardinality in ("optional", "required"):
            return f"{element} | None"
        return element

    def field_line(self, f: ProtoField) -> str:
        field_type = f.type if f.kind == "scalar" else f.kind
        args = [str(f.number), f'"{field_type}"']
        if f.cardinality != "singular":
            args.append(f'label="{f.cardinality}"')
        if f.packed:
            args.append("packed=True")
        if f.default is not None:
            args.append(f"default={_literal(f.default)}")
        if f.type_name:
            args.append(f'type_name="{f.type_name}"')
        attr = attr_name(f.name)
        if attr != f.name:
            args.append(f'name="{f.name}"')
        return f"{attr}: {self.annotation(f)} = proto_field({', '.join(args)})"


def _check_top_level(schema: Schema) -> None:
    seen: dict[str, str] = {}
    for proto_file in schema.files:
        for item in [*proto_file.enums, *proto_file.messages]:
            if item.py_name in seen:
                raise ValidationError(
                    f"{item.full_name} and {seen[item.py_name]} would both be generated as {item.py_name}"
                )
            seen[item.py_name] = item.full_name


def render(schema: Schema, runtime_import: str = "protolite.proto") -> str:
    """Render a resolved schema to Python source code."""
    _check_top_level(schema)
    namer = _Namer(schema)
    sources = [os.path.basename(f.path) for f in schema.files if f.path]

    return template.render(
        sources=", ".join(sources) or "schema",
        enums=[e for f in schema.files for e in f.enums],
        messages=[m for f in schema.files for m in f.messages],
        runtime_import=runtime_import,
        member_name=member_name,
        enum_names=enum_names,
        field_line=namer.field_line,
    )


def load(source: str, module_name: str = "protolite_generated") -> ModuleType:
    """Execute generated source as a new module and return it.

    Only pass source produced by render(): the code runs with full
    interpreter privileges. The module is placed in sys.modules so
    dataclasses can resolve its string annotations.
    """
    module = ModuleType(module_name)
    sys.modules[module_name] = module
    exec(compile(source, f"<{module_name}>", "exec"), module.__dict__)
    return module
