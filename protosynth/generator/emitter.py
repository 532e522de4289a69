"""Rendering of the schema text and the generated initializer module."""

import logging
import math

from jinja2 import Environment, PackageLoader

from .errors import EmissionError
from .manifest import SERVICE_NAME, ServiceRegistrationManifest
from .model import SchemaAnnotation, TypeDescriptor
from .naming import InitializerName
from .sinks import OutputSink
from .types import (
    AccessKind,
    Binding,
    Cardinality,
    Definition,
    EnumBinding,
    EnumConstant,
    EnumDef,
    EnumType,
    FieldBinding,
    FieldSpec,
    GeneratedArtifactSet,
    MapType,
    MarshallerBinding,
    MessageType,
    ProtoSchemaModel,
    ScalarKind,
    ScalarType,
    WriteKind,
    wire_kind,
)

logger = logging.getLogger(__name__)

env = Environment(
    loader=PackageLoader("protosynth.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("initializer.py.j2")

INDENT = "    "

LABELS = {
    Cardinality.REQUIRED: "required",
    Cardinality.OPTIONAL: "optional",
    Cardinality.REPEATED: "repeated",
    Cardinality.MAP: "repeated",
}

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def _escape(text: str) -> str:
    return "".join(_ESCAPES.get(c, c) for c in text)


def quote(text: str) -> str:
    """Double-quoted literal, valid both in Python and in schema text."""
    return f'"{_escape(text)}"'


def make_string_literal(text: str, indent: str = "") -> str:
    """Split `text` into one implicitly concatenated string segment per line."""
    if not text:
        return '""'
    return f"\n{indent}".join(quote(line) for line in text.splitlines(keepends=True))


def schema_resource_path(config: SchemaAnnotation, file_name: str) -> str | None:
    """Path of the external schema resource, or None when the schema is embedded."""
    if config.schema_file_path is None:
        return None
    base = config.schema_file_path.lstrip("/").replace(".", "/").strip("/")
    return f"{base}/{file_name}" if base else file_name


# Schema text


def _type_ref(t: ScalarType | MessageType | EnumType, model: ProtoSchemaModel) -> str:
    if isinstance(t, ScalarType):
        return t.kind.value
    return model.type_name(t.name)


def _default_literal(f: FieldSpec) -> str:
    assert f.default_value is not None
    if isinstance(f.type, ScalarType):
        if f.type.kind in (ScalarKind.STRING, ScalarKind.BYTES):
            return quote(f.default_value)
        if f.type.kind == ScalarKind.BOOL:
            return f.default_value.strip().lower()
        return f.default_value.strip()
    return f.default_value


def _field_line(f: FieldSpec, model: ProtoSchemaModel) -> str:
    if isinstance(f.type, MapType):
        assert f.map_entry is not None
        type_name = f.map_entry.local_name
    else:
        type_name = _type_ref(f.type, model)

    line = f"{LABELS[f.cardinality]} {type_name} {f.name} = {f.number}"
    if f.default_value is not None:
        line += f" [default = {_default_literal(f)}]"
    return line + ";"


def _definition_lines(d: Definition, model: ProtoSchemaModel) -> list[str]:
    if isinstance(d, EnumDef):
        return [
            f"enum {d.local_name} {{",
            *[f"{INDENT}{v.name} = {v.number};" for v in d.values],
            "}",
        ]

    blocks = [_definition_lines(n, model) for n in d.nested]
    if d.fields:
        blocks.append([_field_line(f, model) for f in d.fields])

    lines = [f"message {d.local_name} {{"]
    for i, block in enumerate(blocks):
        if i:
            lines.append("")
        lines.extend(f"{INDENT}{line}" if line else "" for line in block)
    lines.append("}")
    return lines


def render_schema(model: ProtoSchemaModel) -> str:
    """Render the schema model as proto2 text."""
    sections = [
        [f"// File name: {model.file_name}", f"// Generated from : {model.origin}"],
        ['syntax = "proto2";'],
    ]
    if model.package:
        sections.append([f"package {model.package};"])
    if model.imports:
        sections.append([f"import {quote(name)};" for name in model.imports])
    sections.extend(_definition_lines(d, model) for d in model.definitions)

    return "\n\n".join("\n".join(section) for section in sections) + "\n"


# Initializer source


class _Symbols:
    """Module aliases of the generated initializer, in order of first use."""

    def __init__(self) -> None:
        self.aliases: dict[str, str] = {}

    def ref(self, td: TypeDescriptor) -> str:
        module = td.package
        if td.in_unnamed_package:
            # A type of the unnamed package lives in the module named after its outermost type
            module = td.local_path.partition(".")[0]
        alias = self.aliases.setdefault(module, f"_m{len(self.aliases)}")
        return f"{alias}.{td.local_path}"

    @property
    def imports(self) -> list[tuple[str, str]]:
        return list(self.aliases.items())


def _py_literal(value: object, model: ProtoSchemaModel, symbols: _Symbols) -> str:
    if isinstance(value, EnumConstant):
        enum_def = model.by_type[value.type_name]
        assert enum_def.source is not None
        return f"{symbols.ref(enum_def.source)}.{value.constant}"
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, float) and not math.isfinite(value):
        return f'float("{value}")'
    return repr(value)


def _value_args(t: ScalarType | MessageType | EnumType, model: ProtoSchemaModel) -> list[str]:
    args = [quote(wire_kind(t))]
    if not isinstance(t, ScalarType):
        args.append(quote(model.qualified_type_name(t.name)))
    return args


def _read_expr(fb: FieldBinding, model: ProtoSchemaModel) -> str:
    f = fb.field
    name = quote(f.name or "")
    if isinstance(f.type, MapType):
        args = [name, quote(f.type.key.value), quote(wire_kind(f.type.value)), fb.map_factory]
        if not isinstance(f.type.value, ScalarType):
            args.append(quote(model.qualified_type_name(f.type.value.name)))
        return f"reader.read_map({', '.join(str(a) for a in args)})"

    value_args = _value_args(f.type, model)
    if f.cardinality == Cardinality.REPEATED:
        args = [name, value_args[0], str(fb.collection_factory), *value_args[1:]]
        return f"reader.read_collection({', '.join(args)})"
    return f"reader.read({', '.join([name, *value_args])})"


def _gen_read_from(
    b: MarshallerBinding, model: ProtoSchemaModel, symbols: _Symbols
) -> str:
    lines: list[str] = []
    for fb in b.fields:
        if fb.write == WriteKind.NONE:
            continue
        lines.append(f"f_{fb.field.name} = {_read_expr(fb, model)}")

    args = ", ".join(f"f_{fb.field.name}" for fb in b.parameter_fields)
    target = symbols.ref(b.target)
    if b.factory is None or b.factory.is_constructor:
        lines.append(f"obj = {target}({args})")
    else:
        lines.append(f"obj = {target}.{b.factory.member}({args})")

    for fb in b.mutator_fields:
        if fb.write == WriteKind.ATTRIBUTE:
            statement = f"obj.{fb.write_member} = f_{fb.field.name}"
        else:
            statement = f"obj.{fb.write_member}(f_{fb.field.name})"
        if fb.field.cardinality == Cardinality.OPTIONAL:
            lines.append(f"if f_{fb.field.name} is not None:")
            statement = INDENT + statement
        lines.append(statement)

    lines.append("return obj")
    return "\n".join(lines)


def _gen_write_to(b: MarshallerBinding, model: ProtoSchemaModel, symbols: _Symbols) -> str:
    lines: list[str] = []
    for fb in b.fields:
        f = fb.field
        local = f"f_{f.name}"
        if fb.read.kind == AccessKind.ATTRIBUTE:
            lines.append(f"{local} = obj.{fb.read.member}")
        else:
            lines.append(f"{local} = obj.{fb.read.member}()")

        if fb.default is not None:
            lines.append(f"if {local} is None:")
            lines.append(f"{INDENT}{local} = {_py_literal(fb.default, model, symbols)}")

        name = quote(f.name or "")
        if isinstance(f.type, MapType):
            args = [name, quote(f.type.key.value), quote(wire_kind(f.type.value)), local]
            if not isinstance(f.type.value, ScalarType):
                args.append(quote(model.qualified_type_name(f.type.value.name)))
            lines.append(f"writer.write_map({', '.join(args)})")
        else:
            value_args = _value_args(f.type, model)
            method = "write_collection" if f.cardinality == Cardinality.REPEATED else "write"
            args = [name, value_args[0], local, *value_args[1:]]
            lines.append(f"writer.{method}({', '.join(args)})")

    if not lines:
        lines.append("pass")
    return "\n".join(lines)


def _enum_values(b: EnumBinding) -> str:
    pairs = ", ".join(f"({number}, {quote(constant)})" for number, constant in b.values)
    if len(b.values) == 1:
        pairs += ","
    return f"({pairs})"


def render_initializer(
    entry: TypeDescriptor,
    model: ProtoSchemaModel,
    bindings: list[Binding],
    initializer: InitializerName,
    schema_text: str,
    resource_path: str | None,
) -> str:
    """Render the Python module holding the marshallers and the initializer class."""
    symbols = _Symbols()
    # Resolve the entry first so its package gets the first alias
    entry_ref = symbols.ref(entry)
    uses_collections = any(
        (fb.collection_factory or fb.map_factory or "").startswith("collections.")
        for b in bindings
        if isinstance(b, MarshallerBinding)
        for fb in b.fields
    )

    # Bodies are generated before rendering so every alias is known for the imports
    bodies = {}
    for b in bindings:
        symbols.ref(b.target)
        if isinstance(b, MarshallerBinding):
            bodies[b.marshaller_name] = (
                _gen_read_from(b, model, symbols),
                _gen_write_to(b, model, symbols),
            )

    return template.render(
        entry=entry,
        entry_ref=entry_ref,
        origin=model.origin,
        file_name=model.file_name,
        initializer=initializer,
        bindings=bindings,
        bodies=bodies,
        imports=symbols.imports,
        uses_collections=uses_collections,
        schema_literal=make_string_literal(schema_text),
        resource_path=resource_path,
        is_enum=lambda b: isinstance(b, EnumBinding),
        ref=symbols.ref,
        quote=quote,
        enum_values=_enum_values,
    )


class ArtifactEmitter:
    """Renders the artifacts of one generation unit and writes them to a sink."""

    def __init__(self, sink: OutputSink, manifest: ServiceRegistrationManifest) -> None:
        self.sink = sink
        self.manifest = manifest

    def render(
        self,
        entry: TypeDescriptor,
        model: ProtoSchemaModel,
        bindings: list[Binding],
        initializer: InitializerName,
    ) -> GeneratedArtifactSet:
        assert entry.schema is not None
        schema_text = render_schema(model)
        resource_path = schema_resource_path(entry.schema, model.file_name)
        source = render_initializer(
            entry, model, bindings, initializer, schema_text, resource_path
        )
        return GeneratedArtifactSet(
            schema_file_name=model.file_name,
            schema_text=schema_text,
            initializer_name=initializer.fqn,
            initializer_path=initializer.path,
            initializer_source=source,
            schema_resource_path=resource_path,
            service=entry.schema.service,
        )

    def write(self, artifacts: GeneratedArtifactSet, element: str | None = None) -> None:
        """Write everything, but only once no output path conflicts."""
        if artifacts.schema_resource_path is not None and self.sink.has_written(
            artifacts.schema_resource_path
        ):
            package, _, name = artifacts.schema_resource_path.rpartition("/")
            raise EmissionError(
                f"Package {package.replace('/', '.')} already contains "
                f"a resource file named {name}",
                element,
            )
        if self.sink.has_written(artifacts.initializer_path):
            raise EmissionError(
                f"Attempting to generate a class that already exists: {artifacts.initializer_name}",
                element,
            )

        if artifacts.schema_resource_path is not None:
            self.sink.write(artifacts.schema_resource_path, artifacts.schema_text)
        self.sink.write(artifacts.initializer_path, artifacts.initializer_source)
        logger.info("Generated %s", artifacts.initializer_name)

        if artifacts.service:
            self.manifest.add_provider(SERVICE_NAME, artifacts.initializer_name)
