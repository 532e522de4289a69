"""Command-line interface for protosynth code generation."""

from __future__ import annotations

import json
import logging
import sys
from typing import TYPE_CHECKING

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from protosynth.generator.adapter import adapt
from protosynth.generator.errors import ProtoSchemaBuilderError
from protosynth.generator.host import HostModel, load_model
from protosynth.generator.processor import (
    DiagnosticKind,
    GenerationUnit,
    ProtoSchemaProcessor,
    build_unit,
)
from protosynth.generator.sinks import DirectorySink
from protosynth.generator.types import FieldSpec, MapType, MessageDef, ScalarType

if TYPE_CHECKING:
    from protosynth.generator.types import ProtoSchemaModel

_STYLES = {
    DiagnosticKind.ERROR: "bold red",
    DiagnosticKind.WARNING: "yellow",
    DiagnosticKind.NOTE: "dim",
}


def _setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load(input_file: str) -> HostModel:
    with open(input_file, encoding="utf-8") as f:
        return load_model(f.read())


@click.group()
def cli() -> None:
    """Protobuf schema and marshaller generator for annotated types."""


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input host model (JSON)")
@click.option("--output", "-o", "output_path", required=True, help="Output directory")
@click.option("--debug", is_flag=True, default=False, help="Report debug notes")
def gen(input_file: str, output_path: str, debug: bool) -> None:
    """Generate schema files and initializers for every entry point."""
    _setup_logging(debug)
    model = _load(input_file)

    processor = ProtoSchemaProcessor(DirectorySink(output_path), debug=debug)
    artifacts = processor.process(model)

    console = Console(stderr=True)
    for diagnostic in processor.messager.diagnostics:
        console.print(f"{diagnostic.kind}: {diagnostic}", style=_STYLES[diagnostic.kind])

    for artifact in artifacts:
        print(f"Generated {artifact.initializer_name} ({artifact.schema_file_name})")

    if processor.messager.has_errors:
        sys.exit(1)


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input host model (JSON)")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(input_file: str, output_json: bool) -> None:
    """Display the schemas each entry point would generate."""
    _setup_logging(False)
    universe = adapt(_load(input_file))

    units: list[GenerationUnit] = []
    errors: dict[str, str] = {}
    for entry in universe.entry_points():
        try:
            units.append(build_unit(entry, universe))
        except ProtoSchemaBuilderError as e:
            errors[entry.name] = str(e)

    if output_json:
        _output_json(units, errors)
    else:
        _output_plain(units, errors)

    if errors:
        sys.exit(1)


def _field_type(f: FieldSpec, model: ProtoSchemaModel) -> str:
    if isinstance(f.type, MapType):
        value = f.type.value
        if isinstance(value, ScalarType):
            value_name = value.kind.value
        else:
            value_name = model.type_name(value.name)
        return f"map<{f.type.key.value}, {value_name}>"
    if isinstance(f.type, ScalarType):
        return f.type.kind.value
    return model.type_name(f.type.name)


def _output_json(units: list[GenerationUnit], errors: dict[str, str]) -> None:
    """Output schema info as JSON."""
    data: dict = {"schemas": {}, "errors": errors}

    for unit in units:
        model = unit.model
        messages = {}
        enums = {}
        for d in model.walk():
            if isinstance(d, MessageDef):
                if d.is_map_entry:
                    continue
                messages[d.full_name] = [
                    {
                        "name": f.name,
                        "number": f.number,
                        "cardinality": f.cardinality.value,
                        "type": _field_type(f, model),
                    }
                    for f in d.fields
                ]
            else:
                enums[d.full_name] = {v.name: v.number for v in d.values}

        data["schemas"][unit.entry.name] = {
            "file_name": model.file_name,
            "package": model.package,
            "initializer": unit.initializer.fqn,
            "imports": model.imports,
            "messages": messages,
            "enums": enums,
        }

    print(json.dumps(data, indent=2))


def _output_plain(units: list[GenerationUnit], errors: dict[str, str]) -> None:
    """Output schema info using rich text formatting."""
    console = Console()

    for unit in units:
        model = unit.model
        console.print(f"[bold cyan]{model.file_name}[/bold cyan] [dim]({unit.entry.name})[/dim]")

        info_table = Table(show_header=False, box=None, padding=(0, 2, 0, 2))
        info_table.add_column("Label", style="dim")
        info_table.add_column("Value", style="white")
        info_table.add_row("Initializer", unit.initializer.fqn)
        info_table.add_row("Package", model.package or "-")
        if model.imports:
            info_table.add_row("Imports", ", ".join(model.imports))
        console.print(info_table)

        field_table = Table(show_header=True, box=None, padding=(0, 2, 0, 2))
        field_table.add_column("Type", style="white")
        field_table.add_column("Field", style="white")
        field_table.add_column("#", style="green", justify="right")
        field_table.add_column("Cardinality", style="dim")
        field_table.add_column("Field type", style="yellow")

        for d in model.walk():
            if isinstance(d, MessageDef):
                if d.is_map_entry:
                    continue
                for f in d.fields:
                    field_table.add_row(
                        d.full_name,
                        f.name,
                        str(f.number),
                        f.cardinality.value,
                        _field_type(f, model),
                    )
            else:
                for v in d.values:
                    field_table.add_row(d.full_name, v.name, str(v.number), "enum", "")

        console.print(field_table)
        console.print()

    for message in errors.values():
        console.print(f"[bold red]error[/bold red]: {message}", highlight=False)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
