"""Command-line interface for protolite code generation and inspection."""

from __future__ import annotations

import json
import logging
import sys
from typing import TYPE_CHECKING, Any, NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from protolite.generator import parse_file, python
from protolite.generator.parser import ValidationError
from protolite.proto.errors import ProtoliteError

if TYPE_CHECKING:
    from protolite.generator.types import ProtoMessage, Schema
    from protolite.proto.message import Message

err_console = Console(stderr=True)


def _fail(message: str) -> NoReturn:
    err_console.print(f"[bold red]error:[/bold red] {escape(message)}", highlight=False)
    sys.exit(1)


def _load_schema(input_file: str, include: tuple[str, ...]) -> Schema:
    try:
        return parse_file(input_file, include)
    except (OSError, ValidationError, ProtoliteError) as e:
        _fail(str(e))


def _message_type(input_file: str, include: tuple[str, ...], name: str) -> type[Message]:
    schema = _load_schema(input_file, include)
    module = python.load(python.render(schema), "protolite_cli_schema")
    try:
        return module.registry.lookup_message(name)
    except ProtoliteError as e:
        _fail(str(e))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """protolite protocol buffers toolkit."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_time=False)],
        )


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input .proto file")
@click.option("--output", "-o", "output_file", required=True, help="Output Python module")
@click.option("--include", "-I", multiple=True, help="Additional import search directory")
@click.option(
    "--runtime-import",
    "runtime_import",
    default="protolite.proto",
    show_default=True,
    help="Module the generated code imports the runtime from",
)
def gen(input_file: str, output_file: str, include: tuple[str, ...], runtime_import: str) -> None:
    """Generate Python message classes from a schema file."""
    schema = _load_schema(input_file, include)
    try:
        generated_file = python.render(schema, runtime_import=runtime_import)
    except ValidationError as e:
        _fail(str(e))

    with open(output_file, "w", encoding="utf-8") as f:
        f.write(generated_file)


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input .proto file")
@click.option("--include", "-I", multiple=True, help="Additional import search directory")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(input_file: str, include: tuple[str, ...], output_json: bool) -> None:
    """Display the messages, enums and services of a schema."""
    schema = _load_schema(input_file, include)

    if output_json:
        _output_json(schema)
    else:
        _output_plain(schema)


def _fields_json(message: ProtoMessage) -> list[dict[str, Any]]:
    return [
        {
            "name": f.name,
            "number": f.number,
            "type": f.type_name or f.type,
            "cardinality": f.cardinality,
            "packed": f.packed,
        }
        for f in message.fields
    ]


def _output_json(schema: Schema) -> None:
    """Output schema info as JSON."""
    data: dict[str, Any] = {
        "files": [
            {"path": f.path, "syntax": f.syntax, "package": f.package} for f in schema.files
        ],
        "messages": {m.full_name: _fields_json(m) for m in schema.all_messages()},
        "enums": {e.full_name: {v.name: v.number for v in e.values} for e in schema.all_enums()},
        "services": {
            s.full_name: {
                m.name: {"input": m.input_type, "output": m.output_type} for m in s.methods
            }
            for s in schema.all_services()
        },
    }
    print(json.dumps(data, indent=2))


def _output_plain(schema: Schema) -> None:
    """Output schema info using rich text formatting."""
    console = Console()

    console.print("[bold cyan]Files[/bold cyan]")
    file_table = Table(show_header=False, box=None, padding=(0, 2, 0, 2))
    file_table.add_column("Path", style="white")
    file_table.add_column("Syntax", style="dim")
    file_table.add_column("Package", style="green")
    for f in schema.files:
        file_table.add_row(f.path or "<text>", f.syntax, f.package or "")
    console.print(file_table)
    console.print()

    for message in schema.all_messages():
        console.print(f"[bold cyan]message[/bold cyan] {message.full_name}")
        table = Table(show_header=True, box=None, padding=(0, 2, 0, 2))
        table.add_column("#", style="yellow", justify="right")
        table.add_column("Name", style="white")
        table.add_column("Type", style="green")
        table.add_column("Label", style="dim")
        for f in message.fields:
            label = f"{f.cardinality}, packed" if f.packed else f.cardinality
            table.add_row(str(f.number), f.name, f.type_name or f.type, label)
        console.print(table)
        console.print()

    enums = schema.all_enums()
    if enums:
        console.print("[bold cyan]Enums[/bold cyan]")
        enum_table = Table(show_header=False, box=None, padding=(0, 2, 0, 2))
        enum_table.add_column("Name", style="white")
        enum_table.add_column("Values", style="dim")
        for enum in enums:
            values = ", ".join(f"{v.name}={v.number}" for v in enum.values)
            enum_table.add_row(enum.full_name, values)
        console.print(enum_table)
        console.print()

    for service in schema.all_services():
        console.print(f"[bold cyan]service[/bold cyan] {service.full_name}")
        for method in service.methods:
            arg = f"stream {method.input_type}" if method.client_streaming else method.input_type
            ret = f"stream {method.output_type}" if method.server_streaming else method.output_type
            console.print(f"  rpc {method.name}({arg}) returns ({ret})", highlight=False)
        console.print()


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input .proto file")
@click.option("--include", "-I", multiple=True, help="Additional import search directory")
@click.option("--message", "-m", "message_name", required=True, help="Full message type name")
@click.option("--raw", is_flag=True, help="Write raw bytes instead of hex")
@click.option("--strict", is_flag=True, help="Reject input that needs coercion")
def encode(
    input_file: str, include: tuple[str, ...], message_name: str, raw: bool, strict: bool
) -> None:
    """Encode a JSON object read from stdin."""
    message_type = _message_type(input_file, include, message_name)
    try:
        obj = json.loads(sys.stdin.read())
    except json.JSONDecodeError as e:
        _fail(f"invalid JSON input: {e}")

    if strict:
        problem = message_type.verify(obj)
        if problem is not None:
            _fail(problem)

    try:
        data = message_type.from_object(obj).to_bytes()
    except ProtoliteError as e:
        _fail(str(e))

    if raw:
        with click.open_file("-", "wb") as stdout:
            stdout.write(data)
            stdout.flush()
    else:
        print(data.hex())


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input .proto file")
@click.option("--include", "-I", multiple=True, help="Additional import search directory")
@click.option("--message", "-m", "message_name", required=True, help="Full message type name")
@click.option("--raw", is_flag=True, help="Read raw bytes instead of hex")
def decode(input_file: str, include: tuple[str, ...], message_name: str, raw: bool) -> None:
    """Decode a message read from stdin and print it as JSON."""
    message_type = _message_type(input_file, include, message_name)
    if raw:
        with click.open_file("-", "rb") as stdin:
            data = stdin.read()
    else:
        try:
            data = bytes.fromhex("".join(sys.stdin.read().split()))
        except ValueError as e:
            _fail(f"invalid hex input: {e}")

    try:
        message = message_type.decode(data)
    except ProtoliteError as e:
        _fail(str(e))

    print(json.dumps(message.to_json(), indent=2))


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
