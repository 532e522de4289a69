"""Type definitions for schema building and code generation."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum, auto
from typing import Any

from .model import ImportedType, MemberDescriptor, TypeDescriptor


class ScalarKind(StrEnum):
    """Protobuf scalar value types."""

    DOUBLE = auto()
    FLOAT = auto()
    INT32 = auto()
    INT64 = auto()
    UINT32 = auto()
    UINT64 = auto()
    SINT32 = auto()
    SINT64 = auto()
    FIXED32 = auto()
    FIXED64 = auto()
    SFIXED32 = auto()
    SFIXED64 = auto()
    BOOL = auto()
    STRING = auto()
    BYTES = auto()


class Cardinality(StrEnum):
    REQUIRED = auto()
    OPTIONAL = auto()
    REPEATED = auto()
    MAP = auto()


# Declared element type names recognized as scalars. Java and Python
# spellings follow the Java mapping (int -> int32, float -> float).
SCALAR_ALIASES: dict[str, ScalarKind] = {
    **{k.value: k for k in ScalarKind},
    "float32": ScalarKind.FLOAT,
    "float64": ScalarKind.DOUBLE,
    "boolean": ScalarKind.BOOL,
    "Boolean": ScalarKind.BOOL,
    "java.lang.Boolean": ScalarKind.BOOL,
    "byte": ScalarKind.INT32,
    "Byte": ScalarKind.INT32,
    "short": ScalarKind.INT32,
    "Short": ScalarKind.INT32,
    "char": ScalarKind.INT32,
    "int": ScalarKind.INT32,
    "Integer": ScalarKind.INT32,
    "java.lang.Integer": ScalarKind.INT32,
    "long": ScalarKind.INT64,
    "Long": ScalarKind.INT64,
    "java.lang.Long": ScalarKind.INT64,
    "Float": ScalarKind.FLOAT,
    "java.lang.Float": ScalarKind.FLOAT,
    "Double": ScalarKind.DOUBLE,
    "java.lang.Double": ScalarKind.DOUBLE,
    "str": ScalarKind.STRING,
    "String": ScalarKind.STRING,
    "java.lang.String": ScalarKind.STRING,
    "bytearray": ScalarKind.BYTES,
}

INTEGRAL_KINDS = frozenset(
    [
        ScalarKind.INT32,
        ScalarKind.INT64,
        ScalarKind.UINT32,
        ScalarKind.UINT64,
        ScalarKind.SINT32,
        ScalarKind.SINT64,
        ScalarKind.FIXED32,
        ScalarKind.FIXED64,
        ScalarKind.SFIXED32,
        ScalarKind.SFIXED64,
    ]
)

UNSIGNED_KINDS = frozenset(
    [ScalarKind.UINT32, ScalarKind.UINT64, ScalarKind.FIXED32, ScalarKind.FIXED64]
)

FLOATING_KINDS = frozenset([ScalarKind.FLOAT, ScalarKind.DOUBLE])

MAP_KEY_KINDS = INTEGRAL_KINDS | {ScalarKind.BOOL, ScalarKind.STRING}


def scalar_kind(name: str) -> ScalarKind | None:
    """Look up the scalar kind of a declared type name."""
    return SCALAR_ALIASES.get(name)


def parse_scalar_default(kind: ScalarKind, text: str) -> Any:
    """Convert a default value literal to a Python value.

    Raises ValueError when the literal does not fit the kind.
    """
    if kind == ScalarKind.STRING:
        return text
    if kind == ScalarKind.BYTES:
        return text.encode("utf-8")

    literal = text.strip()
    if kind == ScalarKind.BOOL:
        if literal.lower() not in ("true", "false"):
            raise ValueError(f"{text!r} is not a boolean literal")
        return literal.lower() == "true"

    if kind in FLOATING_KINDS:
        return float(literal)

    try:
        value = int(literal)
    except ValueError:
        value = int(literal, 0)
    if kind in UNSIGNED_KINDS and value < 0:
        raise ValueError(f"{text!r} is negative but {kind} is unsigned")
    return value


@dataclass(frozen=True)
class ScalarType:
    kind: ScalarKind


@dataclass(frozen=True)
class MessageType:
    """Reference to a message by the fully-qualified name of its source type."""

    name: str


@dataclass(frozen=True)
class EnumType:
    """Reference to an enum by the fully-qualified name of its source type."""

    name: str


@dataclass(frozen=True)
class MapType:
    key: ScalarKind
    value: "ScalarType | MessageType | EnumType"


FieldType = ScalarType | MessageType | EnumType | MapType


def wire_kind(t: ScalarType | MessageType | EnumType) -> str:
    """Kind string handed to the runtime reader/writer."""
    if isinstance(t, ScalarType):
        return t.kind.value
    if isinstance(t, EnumType):
        return "enum"
    return "message"


@dataclass(eq=False)
class FieldSpec:
    """A field of a message definition.

    `name` is left unset by the builder and assigned by the naming resolver.
    """

    number: int
    type: FieldType
    cardinality: Cardinality
    property_name: str
    member: MemberDescriptor | None = None
    declaring_type: str | None = None
    name_override: str | None = None
    default_value: str | None = None
    collection_implementation: str | None = None
    map_implementation: str | None = None
    map_entry: "MessageDef | None" = field(default=None, repr=False)
    name: str | None = None

    @property
    def preferred_name(self) -> str:
        return self.name_override or self.property_name

    @property
    def element(self) -> str:
        """Name of the source entity this field is reported against."""
        if self.member and self.declaring_type:
            return f"{self.declaring_type}.{self.member.name}"
        return self.property_name


@dataclass(eq=False)
class EnumValueSpec:
    number: int
    constant: str
    declaring_type: str
    name_override: str | None = None
    name: str | None = None

    @property
    def preferred_name(self) -> str:
        return self.name_override or self.constant

    @property
    def element(self) -> str:
        return f"{self.declaring_type}.{self.constant}"


@dataclass(eq=False)
class EnumDef:
    source: TypeDescriptor
    values: list[EnumValueSpec] = field(default_factory=list)
    local_name: str | None = None
    full_name: str | None = None
    parent: "MessageDef | None" = field(default=None, repr=False)
    marshaller_name: str | None = None

    @property
    def element(self) -> str:
        return self.source.name


@dataclass(eq=False)
class MessageDef:
    """A message definition.

    Synthesized map entries have no source type; `map_entry_for` points back
    at the map field they were built for.
    """

    source: TypeDescriptor | None
    fields: list[FieldSpec] = field(default_factory=list)
    nested: list["MessageDef | EnumDef"] = field(default_factory=list)
    local_name: str | None = None
    full_name: str | None = None
    parent: "MessageDef | None" = field(default=None, repr=False)
    map_entry_for: FieldSpec | None = field(default=None, repr=False)
    marshaller_name: str | None = None

    @property
    def is_map_entry(self) -> bool:
        return self.map_entry_for is not None

    @property
    def element(self) -> str:
        if self.source is not None:
            return self.source.name
        if self.map_entry_for is not None:
            return self.map_entry_for.element
        return self.local_name or "<anonymous>"


Definition = MessageDef | EnumDef


@dataclass(eq=False)
class ProtoSchemaModel:
    """The schema of one generation unit."""

    file_name: str
    origin: str
    package: str | None = None
    # Source type definitions in build order (selected, then auto-imported)
    ordered: list[Definition] = field(default_factory=list)
    # Top-level definitions, filled by the naming resolver
    definitions: list[Definition] = field(default_factory=list)
    by_type: dict[str, Definition] = field(default_factory=dict)
    imports: list[str] = field(default_factory=list)
    imported: dict[str, ImportedType] = field(default_factory=dict)

    def walk(self) -> Iterator[Definition]:
        """All definitions, depth first, in emission order."""

        def _walk(defs: list[Definition]) -> Iterator[Definition]:
            for d in defs:
                yield d
                if isinstance(d, MessageDef):
                    yield from _walk(d.nested)

        return _walk(self.definitions)

    def qualified_name(self, d: Definition) -> str:
        """Full schema name including the package."""
        if self.package:
            return f"{self.package}.{d.full_name}"
        return d.full_name or ""

    def type_name(self, source_name: str) -> str:
        """Schema name used to reference a type from a field declaration."""
        if source_name in self.imported:
            return self.imported[source_name].proto_name
        return self.by_type[source_name].full_name or ""

    def qualified_type_name(self, source_name: str) -> str:
        if source_name in self.imported:
            return self.imported[source_name].proto_name
        return self.qualified_name(self.by_type[source_name])


class AccessKind(StrEnum):
    ATTRIBUTE = auto()
    METHOD = auto()


class WriteKind(StrEnum):
    PARAMETER = auto()
    ATTRIBUTE = auto()
    METHOD = auto()
    NONE = auto()


@dataclass(frozen=True)
class Accessor:
    kind: AccessKind
    member: str


@dataclass(frozen=True)
class EnumConstant:
    """Default value naming a constant of a source enum."""

    type_name: str
    constant: str


@dataclass
class FieldBinding:
    field: FieldSpec
    read: Accessor
    write: WriteKind
    write_member: str | None = None
    position: int | None = None
    default: Any = None
    collection_factory: str | None = None
    map_factory: str | None = None


@dataclass(frozen=True)
class FactoryBinding:
    member: str
    is_constructor: bool
    parameters: tuple[str, ...]


@dataclass
class MarshallerBinding:
    message: MessageDef
    target: TypeDescriptor
    type_name: str
    marshaller_name: str
    factory: FactoryBinding | None = None
    fields: list[FieldBinding] = field(default_factory=list)

    @property
    def parameter_fields(self) -> list[FieldBinding]:
        return [f for f in self.fields if f.write == WriteKind.PARAMETER]

    @property
    def mutator_fields(self) -> list[FieldBinding]:
        return [f for f in self.fields if f.write in (WriteKind.ATTRIBUTE, WriteKind.METHOD)]


@dataclass
class EnumBinding:
    enum: EnumDef
    target: TypeDescriptor
    type_name: str
    marshaller_name: str
    values: list[tuple[int, str]] = field(default_factory=list)


Binding = MarshallerBinding | EnumBinding


@dataclass(frozen=True)
class GeneratedArtifactSet:
    """Everything one generation unit produces."""

    schema_file_name: str
    schema_text: str
    initializer_name: str
    initializer_path: str
    initializer_source: str
    schema_resource_path: str | None = None
    service: bool = True
