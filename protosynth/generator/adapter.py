"""Normalize host descriptor records into engine type descriptors.

This is a pure data transform. Nothing is validated here beyond what is
needed to build the records: a declared type that does not parse is kept as
raw text and reported later by the schema builder against its member.
"""

from typing import Any

from .host import HostAnnotation, HostMember, HostModel, HostType
from .model import (
    EnumValueAnnotation,
    FieldAnnotation,
    ImportedType,
    MemberDescriptor,
    MemberKind,
    Modifier,
    NestingKind,
    Parameter,
    SchemaAnnotation,
    TypeDescriptor,
    TypeKind,
    TypeUniverse,
)
from .typeexpr import TypeExpressionError, parse_type

PROTO_FIELD = "ProtoField"
PROTO_FACTORY = "ProtoFactory"
PROTO_ENUM_VALUE = "ProtoEnumValue"
PROTO_NAME = "ProtoName"
PROTO_MESSAGE = "ProtoMessage"
PROTO_ENUM = "ProtoEnum"
PROTO_SCHEMA = "ProtoSchema"

TYPE_NAME_ANNOTATIONS = (PROTO_NAME, PROTO_MESSAGE, PROTO_ENUM)

_MODIFIERS = frozenset(m.value for m in Modifier)


def _find(annotations: list[HostAnnotation], name: str) -> HostAnnotation | None:
    for annotation in annotations:
        if annotation.name == name:
            return annotation
    return None


def _arg(annotation: HostAnnotation, *names: str, default: Any = None) -> Any:
    for name in names:
        if name in annotation.arguments:
            return annotation.arguments[name]
    return default


def _str_or_none(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return default


def _names(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def _modifiers(values: list[str]) -> frozenset[Modifier]:
    return frozenset(Modifier(v) for v in values if v in _MODIFIERS)


def adapt_field(annotation: HostAnnotation) -> FieldAnnotation:
    """Extract field metadata from a `ProtoField` annotation."""
    return FieldAnnotation(
        number=_int_or_none(_arg(annotation, "number", "value")),
        name=_str_or_none(_arg(annotation, "name")),
        default_value=_str_or_none(_arg(annotation, "defaultValue")),
        required=_bool(_arg(annotation, "required"), False),
        type=_str_or_none(_arg(annotation, "type")),
        key_type=_str_or_none(_arg(annotation, "keyType")),
        value_type=_str_or_none(_arg(annotation, "valueType")),
        collection_implementation=_str_or_none(_arg(annotation, "collectionImplementation")),
        map_implementation=_str_or_none(_arg(annotation, "mapImplementation")),
    )


def adapt_enum_value(annotation: HostAnnotation) -> EnumValueAnnotation:
    """Extract enum value metadata from a `ProtoEnumValue` annotation."""
    return EnumValueAnnotation(
        number=_int_or_none(_arg(annotation, "number", "value")),
        name=_str_or_none(_arg(annotation, "name")),
    )


def adapt_schema(annotation: HostAnnotation) -> SchemaAnnotation:
    """Extract generation unit configuration from a `ProtoSchema` annotation."""
    return SchemaAnnotation(
        classes=_names(_arg(annotation, "classes")),
        packages=_names(_arg(annotation, "packages")),
        class_name=_str_or_none(_arg(annotation, "className")),
        schema_file_name=_str_or_none(_arg(annotation, "schemaFileName")),
        schema_file_path=_str_or_none(_arg(annotation, "schemaFilePath")),
        schema_package_name=_str_or_none(_arg(annotation, "schemaPackageName")),
        auto_import_classes=_bool(_arg(annotation, "autoImportClasses"), True),
        service=_bool(_arg(annotation, "service"), True),
    )


def adapt_member(member: HostMember) -> MemberDescriptor:
    type_ref = None
    if member.type:
        try:
            type_ref = parse_type(member.type)
        except TypeExpressionError:
            type_ref = None

    field_ann = _find(member.annotations, PROTO_FIELD)
    enum_value_ann = _find(member.annotations, PROTO_ENUM_VALUE)

    return MemberDescriptor(
        name=member.name,
        kind=MemberKind(member.kind),
        type_expr=member.type,
        type_ref=type_ref,
        modifiers=_modifiers(member.modifiers),
        parameters=tuple(Parameter(p.name, p.type) for p in member.parameters),
        field=adapt_field(field_ann) if field_ann else None,
        enum_value=adapt_enum_value(enum_value_ann) if enum_value_ann else None,
        factory=_find(member.annotations, PROTO_FACTORY) is not None,
    )


def _enclosing_chain(host_type: HostType, by_name: dict[str, HostType]) -> tuple[str, ...]:
    chain: list[str] = []
    current = host_type.enclosing
    while current and current not in chain:
        chain.append(current)
        outer = by_name.get(current)
        current = outer.enclosing if outer else None
    return tuple(reversed(chain))


def adapt_type(host_type: HostType, by_name: dict[str, HostType]) -> TypeDescriptor:
    members = tuple(adapt_member(m) for m in host_type.members)

    proto_name = None
    for annotation_name in TYPE_NAME_ANNOTATIONS:
        annotation = _find(host_type.annotations, annotation_name)
        if annotation:
            proto_name = _str_or_none(_arg(annotation, "value", "name")) or proto_name

    schema_ann = _find(host_type.annotations, PROTO_SCHEMA)

    annotated = any(_find(host_type.annotations, n) for n in TYPE_NAME_ANNOTATIONS) or any(
        m.field is not None or m.enum_value is not None for m in members
    )

    return TypeDescriptor(
        name=host_type.name,
        simple_name=host_type.name.rsplit(".", 1)[-1],
        package=host_type.package,
        kind=TypeKind(host_type.kind),
        nesting=NestingKind(host_type.nesting),
        enclosing=_enclosing_chain(host_type, by_name),
        modifiers=_modifiers(host_type.modifiers),
        supertypes=tuple(host_type.supertypes),
        members=members,
        proto_name=proto_name,
        schema=adapt_schema(schema_ann) if schema_ann else None,
        annotated=annotated,
    )


def adapt(host: HostModel) -> TypeUniverse:
    """Build the type universe for one invocation."""
    by_name = {t.name: t for t in host.types}
    universe = TypeUniverse()

    for host_type in host.types:
        universe.types[host_type.name] = adapt_type(host_type, by_name)

    for schema in host.imported_schemas:
        for imported in schema.types:
            universe.imported[imported.name] = ImportedType(
                name=imported.name,
                proto_name=imported.proto_name,
                file_name=schema.file_name,
                is_enum=imported.kind == "enum",
            )

    return universe
