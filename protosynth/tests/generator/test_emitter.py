"""Tests for schema text and initializer rendering."""

import pytest

from protosynth.generator.emitter import (
    ArtifactEmitter,
    make_string_literal,
    quote,
    render_schema,
    schema_resource_path,
)
from protosynth.generator.errors import EmissionError
from protosynth.generator.manifest import ServiceRegistrationManifest
from protosynth.generator.model import SchemaAnnotation
from protosynth.generator.processor import build_unit
from protosynth.generator.sinks import MemorySink


def _unit(host, *types, entry="p.T", **schema):
    universe = host.universe(host.entry(entry, **schema), *types)
    return build_unit(universe.get(entry), universe)


def _render(host, *types, entry="p.T", **schema):
    unit = _unit(host, *types, entry=entry, **schema)
    emitter = ArtifactEmitter(MemorySink(), ServiceRegistrationManifest())
    return emitter.render(unit.entry, unit.model, unit.bindings, unit.initializer)


def _simple_types(host):
    return (
        host.message("p.A", host.field("x", "int32", 1)),
        host.message("p.B", host.field("y", "string", 1)),
    )


def describe_quote():
    def escapes_special_characters(expect):
        expect(quote('say "hi"\n')) == '"say \\"hi\\"\\n"'
        expect(quote("a\\b\tc\r")) == '"a\\\\b\\tc\\r"'


def describe_make_string_literal():
    def splits_text_into_one_segment_per_line(expect):
        expect(make_string_literal("a\nb\n")) == '"a\\n"\n"b\\n"'
        expect(make_string_literal("a\nb", "  ")) == '"a\\n"\n  "b"'

    def renders_empty_text(expect):
        expect(make_string_literal("")) == '""'


def describe_schema_resource_path():
    def embeds_the_schema_by_default(expect):
        expect(schema_resource_path(SchemaAnnotation(), "T.proto")) == None

    def normalizes_the_configured_path(expect):
        cases = {
            "/proto": "proto/T.proto",
            "com.acme.proto": "com/acme/proto/T.proto",
            "schemas/": "schemas/T.proto",
            "/": "T.proto",
        }
        for path, expected in cases.items():
            config = SchemaAnnotation(schema_file_path=path)
            expect(schema_resource_path(config, "T.proto")) == expected


def describe_render_schema():
    def renders_messages_in_selection_order(expect, host):
        unit = _unit(host, *_simple_types(host), classes=["p.A", "p.B"])
        expect(render_schema(unit.model)) == (
            "// File name: T.proto\n"
            "// Generated from : p.T\n"
            "\n"
            'syntax = "proto2";\n'
            "\n"
            "message A {\n"
            "    optional int32 x = 1;\n"
            "}\n"
            "\n"
            "message B {\n"
            "    optional string y = 1;\n"
            "}\n"
        )

    def renders_everything_a_schema_can_hold(expect, host):
        universe = host.universe(
            host.entry("p.Library", classes=["p.Book", "p.Genre"], schemaPackageName="lib"),
            host.message(
                "p.Book",
                host.field("title", "string", 1, required=True),
                host.field("tags", "list[str]", 2),
                host.field("genre", "Genre", 3, defaultValue="FICTION"),
                host.field("counts", "map<string, int32>", 4),
                host.field("price", "c.Money", 5),
                host.field("flag", "bool", 6, defaultValue="TRUE"),
                host.field("note", "string", 7, defaultValue='say "hi"'),
            ),
            host.enum("p.Genre", host.value("FICTION", 0), host.value("SCIENCE", 1)),
            imported=(host.imported("common.proto", ("c.Money", "common.Money", "message")),),
        )
        unit = build_unit(universe.get("p.Library"), universe)
        expect(render_schema(unit.model)) == (
            "// File name: Library.proto\n"
            "// Generated from : p.Library\n"
            "\n"
            'syntax = "proto2";\n'
            "\n"
            "package lib;\n"
            "\n"
            'import "common.proto";\n'
            "\n"
            "message Book {\n"
            "    message CountsEntry {\n"
            "        optional string key = 1;\n"
            "        optional int32 value = 2;\n"
            "    }\n"
            "\n"
            "    required string title = 1;\n"
            "    repeated string tags = 2;\n"
            "    optional Genre genre = 3 [default = FICTION];\n"
            "    repeated CountsEntry counts = 4;\n"
            "    optional common.Money price = 5;\n"
            "    optional bool flag = 6 [default = true];\n"
            '    optional string note = 7 [default = "say \\"hi\\""];\n'
            "}\n"
            "\n"
            "enum Genre {\n"
            "    FICTION = 0;\n"
            "    SCIENCE = 1;\n"
            "}\n"
        )

    def renders_nested_types_before_fields(expect, host):
        universe = host.universe(
            host.entry("p.T", classes=["p.Outer", "p.Outer.Kind"]),
            host.message("p.Outer", host.field("kind", "Kind", 1)),
            host.enum(
                "p.Outer.Kind",
                host.value("A", 0),
                package="p",
                nesting="member",
                enclosing="p.Outer",
            ),
        )
        unit = build_unit(universe.get("p.T"), universe)
        expect(render_schema(unit.model)).includes(
            "message Outer {\n"
            "    enum Kind {\n"
            "        A = 0;\n"
            "    }\n"
            "\n"
            "    optional Outer.Kind kind = 1;\n"
            "}\n"
        )


def describe_render_initializer():
    def generates_marshallers_and_the_initializer(expect, host):
        source = _render(host, *_simple_types(host), classes=["p.A", "p.B"]).initializer_source

        expect(source).includes("import p as _m0\n")
        expect(source).includes(
            "from protosynth.runtime import EnumMarshaller, MessageMarshaller\n"
        )
        expect(source).includes(
            "class AMarshaller(MessageMarshaller):\n"
            '    type_name = "A"\n'
            "    target = _m0.A\n"
            "\n"
            "    def read_from(self, reader):\n"
            '        f_x = reader.read("x", "int32")\n'
            "        obj = _m0.A()\n"
            "        if f_x is not None:\n"
            "            obj.x = f_x\n"
            "        return obj\n"
            "\n"
            "    def write_to(self, writer, obj):\n"
            "        f_x = obj.x\n"
            '        writer.write("x", "int32", f_x)\n'
        )
        expect(source).includes("class TImpl(_m0.T):\n")
        expect(source).includes(
            "    def register_marshallers(self, ctx):\n"
            "        ctx.register_marshaller(AMarshaller())\n"
            "        ctx.register_marshaller(BMarshaller())\n"
        )
        compile(source, "TImpl.py", "exec")

    def embeds_the_schema_text(expect, host):
        artifacts = _render(host, *_simple_types(host), classes=["p.A"])
        expect(artifacts.schema_resource_path) == None
        expect(artifacts.initializer_source).includes(
            "    PROTO_SCHEMA = (\n"
            '        "// File name: T.proto\\n"\n'
            '        "// Generated from : p.T\\n"\n'
        )
        expect(artifacts.initializer_source).includes("        return self.PROTO_SCHEMA\n")

    def references_schema_resources(expect, host):
        artifacts = _render(host, *_simple_types(host), classes=["p.A"], schemaFilePath="/proto")
        source = artifacts.initializer_source
        expect(artifacts.schema_resource_path) == "proto/T.proto"
        expect(source).includes(", read_resource_text\n")
        expect(source).includes('    PROTO_SCHEMA_PATH = "proto/T.proto"\n')
        expect(source).includes(
            "        return read_resource_text(self.PROTO_SCHEMA_PATH, __package__)\n"
        )
        compile(source, "TImpl.py", "exec")

    def qualifies_type_names_with_the_schema_package(expect, host):
        source = _render(
            host, *_simple_types(host), classes=["p.A"], schemaPackageName="sample"
        ).initializer_source
        expect(source).includes('    type_name = "sample.A"\n')

    def generates_enum_marshallers(expect, host):
        source = _render(
            host,
            host.enum("q.Color", host.value("RED", 0)),
            host.enum("q.Size", host.value("S", 0), host.value("L", 2)),
            classes=["q.Color", "q.Size"],
        ).initializer_source
        expect(source).includes("import p as _m0\nimport q as _m1\n")
        expect(source).includes(
            "class ColorMarshaller(EnumMarshaller):\n"
            '    type_name = "Color"\n'
            "    target = _m1.Color\n"
            '    values = ((0, "RED"),)\n'
        )
        expect(source).includes('    values = ((0, "S"), (2, "L"))\n')
        compile(source, "TImpl.py", "exec")

    def generates_factory_calls_and_containers(expect, host):
        source = _render(
            host,
            host.message(
                "p.A",
                host.getter("getX", "int32", 1, required=True),
                host.getter("getTags", "list[str]", 2, collectionImplementation="deque"),
                host.getter("getScores", "map<string, Score>", 3),
                host.field("color", "Color", 4, defaultValue="VERT"),
                host.factory_method("create", "tags", "x"),
            ),
            host.message("p.Score", host.field("value", "double", 1)),
            host.enum("p.Color", host.value("RED", 0), host.value("GREEN", 1, name="VERT")),
            classes=["p.A", "p.Score", "p.Color"],
        ).initializer_source
        expect(source).includes("import collections\n")
        expect(source).includes(
            "    def read_from(self, reader):\n"
            '        f_tags = reader.read_collection("tags", "string", collections.deque)\n'
            '        f_x = reader.read("x", "int32")\n'
            '        f_color = reader.read("color", "enum", "Color")\n'
            "        obj = _m0.A.create(f_tags, f_x)\n"
            "        if f_color is not None:\n"
            "            obj.color = f_color\n"
            "        return obj\n"
        )
        expect(source).includes(
            "        f_scores = obj.getScores()\n"
            '        writer.write_map("scores", "string", "message", f_scores, "Score")\n'
            "        f_color = obj.color\n"
            "        if f_color is None:\n"
            "            f_color = _m0.Color.GREEN\n"
            '        writer.write("color", "enum", f_color, "Color")\n'
        )
        compile(source, "TImpl.py", "exec")

    def imports_unnamed_package_types_from_their_own_modules(expect, host):
        source = _render(
            host,
            host.message("Loose", host.field("x", "int32", 1)),
            host.message(
                "Loose.Part",
                host.field("y", "int32", 1),
                package="",
                nesting="member",
                enclosing="Loose",
                modifiers=["static"],
            ),
            entry="Init",
            classes=["Loose", "Loose.Part"],
        ).initializer_source
        expect(source).includes("import Init as _m0\nimport Loose as _m1\n")
        expect(source).includes("    target = _m1.Loose\n")
        expect(source).includes("    target = _m1.Loose.Part\n")
        expect(source).includes("class InitImpl(_m0.Init):\n")
        compile(source, "InitImpl.py", "exec")

    def generates_empty_marshallers(expect, host):
        source = _render(
            host, host.message("p.Empty"), classes=["p.Empty"]
        ).initializer_source
        expect(source).includes("    def write_to(self, writer, obj):\n        pass\n")
        compile(source, "TImpl.py", "exec")


def describe_artifact_emitter():
    def writes_the_initializer_and_registers_it(expect, host):
        sink = MemorySink()
        manifest = ServiceRegistrationManifest()
        unit = _unit(host, *_simple_types(host), classes=["p.A"])
        emitter = ArtifactEmitter(sink, manifest)

        emitter.write(emitter.render(unit.entry, unit.model, unit.bindings, unit.initializer))

        expect(list(sink.files)) == ["p/TImpl.py"]
        expect(manifest.providers()) == ["p.TImpl"]

    def writes_schema_resources(expect, host):
        sink = MemorySink()
        unit = _unit(host, *_simple_types(host), classes=["p.A"], schemaFilePath="proto")
        emitter = ArtifactEmitter(sink, ServiceRegistrationManifest())

        artifacts = emitter.render(unit.entry, unit.model, unit.bindings, unit.initializer)
        emitter.write(artifacts)

        expect(sorted(sink.files)) == ["p/TImpl.py", "proto/T.proto"]
        expect(sink.files["proto/T.proto"]) == artifacts.schema_text

    def skips_registration_when_service_is_disabled(expect, host):
        manifest = ServiceRegistrationManifest()
        unit = _unit(host, *_simple_types(host), classes=["p.A"], service=False)
        emitter = ArtifactEmitter(MemorySink(), manifest)

        emitter.write(emitter.render(unit.entry, unit.model, unit.bindings, unit.initializer))

        expect(manifest.providers()) == []

    def refuses_to_generate_a_class_twice(expect, host):
        unit = _unit(host, *_simple_types(host), classes=["p.A"])
        emitter = ArtifactEmitter(MemorySink(), ServiceRegistrationManifest())
        artifacts = emitter.render(unit.entry, unit.model, unit.bindings, unit.initializer)
        emitter.write(artifacts, "p.T")

        with pytest.raises(EmissionError) as exinfo:
            emitter.write(artifacts, "p.T")
        expect(exinfo.value.message) == (
            "Attempting to generate a class that already exists: p.TImpl"
        )
        expect(exinfo.value.element) == "p.T"

    def refuses_to_overwrite_a_generated_resource(expect, host):
        sink = MemorySink()
        sink.write("proto/T.proto", "")
        unit = _unit(host, *_simple_types(host), classes=["p.A"], schemaFilePath="proto")
        emitter = ArtifactEmitter(sink, ServiceRegistrationManifest())
        artifacts = emitter.render(unit.entry, unit.model, unit.bindings, unit.initializer)

        with pytest.raises(EmissionError) as exinfo:
            emitter.write(artifacts)
        expect(exinfo.value.message) == (
            "Package proto already contains a resource file named T.proto"
        )
        expect(list(sink.files)) == ["proto/T.proto"]
