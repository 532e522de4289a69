"""Tests for the serialization context."""

import enum

import pytest

from protosynth.runtime import (
    ContextError,
    EnumMarshaller,
    MarshallingError,
    MessageMarshaller,
    SerializationContext,
    SerializationContextInitializer,
    load_initializers,
    read_resource_text,
)


class Color(enum.Enum):
    RED = 0
    GREEN = 1


class Point:
    pass


class ColorMarshaller(EnumMarshaller):
    type_name = "geo.Color"
    target = Color
    values = ((0, "RED"), (5, "GREEN"))


class PointMarshaller(MessageMarshaller):
    type_name = "geo.Point"
    target = Point

    def read_from(self, reader):
        return Point()

    def write_to(self, writer, obj):
        pass


class GeoInitializer(SerializationContextInitializer):
    def get_proto_file_name(self):
        return "geo.proto"

    def get_proto_file(self):
        return 'syntax = "proto2";\n'

    def register_schema(self, ctx):
        ctx.register_proto_file(self.get_proto_file_name(), self.get_proto_file())

    def register_marshallers(self, ctx):
        ctx.register_marshaller(ColorMarshaller())
        ctx.register_marshaller(PointMarshaller())


def describe_serialization_context():
    def registers_initializers(expect):
        ctx = SerializationContext()
        ctx.register_initializer(GeoInitializer())

        expect(ctx.proto_files) == {"geo.proto": 'syntax = "proto2";\n'}
        expect(ctx.get_proto_file("geo.proto")) == 'syntax = "proto2";\n'
        expect(ctx.can_marshall("geo.Point")) == True
        expect(ctx.can_marshall(Color)) == True
        expect(ctx.can_marshall("geo.Line")) == False
        expect(type(ctx.get_marshaller(Point))) == PointMarshaller
        expect(type(ctx.get_marshaller("geo.Color"))) == ColorMarshaller

    def rejects_unknown_lookups(expect):
        ctx = SerializationContext()

        with pytest.raises(ContextError) as exinfo:
            ctx.get_proto_file("geo.proto")
        expect(str(exinfo.value)) == "Schema file geo.proto is not registered"

        with pytest.raises(ContextError) as exinfo:
            ctx.get_marshaller("geo.Point")
        expect(str(exinfo.value)).includes("No marshaller registered for 'geo.Point'")

    def replaces_schema_files_by_name(expect):
        ctx = SerializationContext()
        ctx.register_proto_file("geo.proto", "old")
        ctx.register_proto_file("geo.proto", "new")
        expect(ctx.proto_files) == {"geo.proto": "new"}


def describe_enum_marshaller():
    def decodes_wire_numbers(expect):
        marshaller = ColorMarshaller()
        expect(marshaller.decode(5)) == Color.GREEN
        expect(marshaller.decode(0)) == Color.RED
        expect(marshaller.decode(1)) == None

    def encodes_constants(expect):
        marshaller = ColorMarshaller()
        expect(marshaller.encode(Color.GREEN)) == 5
        expect(marshaller.encode("RED")) == 0

    def rejects_unknown_constants(expect):
        with pytest.raises(MarshallingError) as exinfo:
            ColorMarshaller().encode("BLUE")
        expect(str(exinfo.value)) == "'BLUE' is not a value of geo.Color"


def describe_message_marshaller():
    def requires_read_and_write_methods(expect):
        class Incomplete(MessageMarshaller):
            type_name = "geo.Incomplete"
            target = Point

            def read_from(self, reader):
                return Point()

        with pytest.raises(TypeError) as exinfo:
            Incomplete()
        expect(str(exinfo.value)).includes("write_to")


def describe_read_resource_text():
    def reads_package_data(expect, tmp_path, monkeypatch, isolated_modules):
        package = tmp_path / "geo_schemas"
        package.mkdir()
        (package / "__init__.py").write_text("")
        (package / "geo.proto").write_text("schema")
        monkeypatch.syspath_prepend(str(tmp_path))

        expect(read_resource_text("geo_schemas/geo.proto")) == "schema"
        expect(read_resource_text("geo.proto", "geo_schemas")) == "schema"

    def needs_a_package_for_bare_file_names(expect):
        with pytest.raises(ContextError):
            read_resource_text("geo.proto")


def describe_load_initializers():
    def instantiates_listed_initializers(expect, tmp_path, monkeypatch, isolated_modules):
        package = tmp_path / "geo_generated"
        package.mkdir()
        (package / "__init__.py").write_text("")
        (package / "GeoImpl.py").write_text(
            "from protosynth.runtime import SerializationContextInitializer\n"
            "\n"
            "\n"
            "class GeoImpl(SerializationContextInitializer):\n"
            "    def get_proto_file_name(self):\n"
            '        return "geo.proto"\n'
            "\n"
            "    def get_proto_file(self):\n"
            '        return ""\n'
            "\n"
            "    def register_schema(self, ctx):\n"
            "        pass\n"
            "\n"
            "    def register_marshallers(self, ctx):\n"
            "        pass\n"
        )
        monkeypatch.syspath_prepend(str(tmp_path))

        initializers = load_initializers("# generated\ngeo_generated.GeoImpl\n\n")

        expect(len(initializers)) == 1
        expect(initializers[0].get_proto_file_name()) == "geo.proto"

    def ignores_blank_and_comment_lines(expect):
        expect(load_initializers("\n# nothing here\n")) == []
