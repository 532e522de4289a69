"""Engine-internal type descriptors.

Built once per invocation by the adapter and never mutated afterwards. All
downstream components reference these records; none of them own one.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum, auto

# Reserved TypeRef name for `T[]`
ARRAY = "[]"


class TypeKind(StrEnum):
    CLASS = auto()
    INTERFACE = auto()
    ENUM = auto()


class NestingKind(StrEnum):
    TOP_LEVEL = auto()
    MEMBER = auto()
    LOCAL = auto()
    ANONYMOUS = auto()


class MemberKind(StrEnum):
    FIELD = auto()
    METHOD = auto()
    CONSTRUCTOR = auto()
    ENUM_CONSTANT = auto()


class Modifier(StrEnum):
    ABSTRACT = auto()
    FINAL = auto()
    STATIC = auto()


@dataclass(frozen=True, slots=True)
class TypeRef:
    """A parsed type expression."""

    name: str
    args: tuple["TypeRef", ...] = ()

    @property
    def is_array(self) -> bool:
        return self.name == ARRAY

    def __str__(self) -> str:
        if self.is_array:
            return f"{self.args[0]}[]"
        if self.args:
            return f"{self.name}<{', '.join(str(a) for a in self.args)}>"
        return self.name


@dataclass(frozen=True, slots=True)
class FieldAnnotation:
    """Serialization metadata of a message field."""

    number: int | None
    name: str | None = None
    default_value: str | None = None
    required: bool = False
    type: str | None = None
    key_type: str | None = None
    value_type: str | None = None
    collection_implementation: str | None = None
    map_implementation: str | None = None


@dataclass(frozen=True, slots=True)
class EnumValueAnnotation:
    """Serialization metadata of an enum constant."""

    number: int | None
    name: str | None = None


@dataclass(frozen=True, slots=True)
class SchemaAnnotation:
    """Configuration of one schema generation unit, read from its entry type."""

    classes: tuple[str, ...] = ()
    packages: tuple[str, ...] = ()
    class_name: str | None = None
    schema_file_name: str | None = None
    schema_file_path: str | None = None
    schema_package_name: str | None = None
    auto_import_classes: bool = True
    service: bool = True


@dataclass(frozen=True, slots=True)
class Parameter:
    name: str
    type: str | None = None


@dataclass(frozen=True, slots=True)
class MemberDescriptor:
    """A member of a type together with its serialization metadata."""

    name: str
    kind: MemberKind
    type_expr: str | None = None
    type_ref: TypeRef | None = None
    modifiers: frozenset[Modifier] = frozenset()
    parameters: tuple[Parameter, ...] = ()
    field: FieldAnnotation | None = None
    enum_value: EnumValueAnnotation | None = None
    factory: bool = False

    @property
    def is_static(self) -> bool:
        return Modifier.STATIC in self.modifiers

    @property
    def is_final(self) -> bool:
        return Modifier.FINAL in self.modifiers

    @property
    def is_abstract(self) -> bool:
        return Modifier.ABSTRACT in self.modifiers

    @property
    def property_name(self) -> str:
        """Bean-style property name: `getFooBar` -> `fooBar`, `get_foo` -> `foo`."""
        if self.kind != MemberKind.METHOD:
            return self.name

        for prefix in ("get_", "is_"):
            if self.name.startswith(prefix) and len(self.name) > len(prefix):
                return self.name[len(prefix) :]

        for prefix in ("get", "is"):
            rest = self.name[len(prefix) :]
            if self.name.startswith(prefix) and rest and rest[0].isupper():
                # getURL -> URL, as java.beans.Introspector.decapitalize does
                if len(rest) > 1 and rest[1].isupper():
                    return rest
                return rest[0].lower() + rest[1:]

        return self.name


@dataclass(frozen=True, slots=True)
class TypeDescriptor:
    """A class, interface or enum of the host model."""

    name: str
    simple_name: str
    package: str
    kind: TypeKind
    nesting: NestingKind = NestingKind.TOP_LEVEL
    enclosing: tuple[str, ...] = ()
    modifiers: frozenset[Modifier] = frozenset()
    supertypes: tuple[str, ...] = ()
    members: tuple[MemberDescriptor, ...] = ()
    proto_name: str | None = None
    schema: SchemaAnnotation | None = None
    annotated: bool = False

    @property
    def is_enum(self) -> bool:
        return self.kind == TypeKind.ENUM

    @property
    def is_interface(self) -> bool:
        return self.kind == TypeKind.INTERFACE

    @property
    def is_abstract(self) -> bool:
        return Modifier.ABSTRACT in self.modifiers

    @property
    def is_final(self) -> bool:
        return Modifier.FINAL in self.modifiers

    @property
    def is_static(self) -> bool:
        return Modifier.STATIC in self.modifiers

    @property
    def in_unnamed_package(self) -> bool:
        return not self.package

    @property
    def enclosing_type(self) -> str | None:
        return self.enclosing[-1] if self.enclosing else None

    @property
    def local_path(self) -> str:
        """Name relative to the package, e.g. `Outer.Inner`."""
        if self.package:
            return self.name[len(self.package) + 1 :]
        return self.name

    def members_of(self, kind: MemberKind) -> list[MemberDescriptor]:
        return [m for m in self.members if m.kind == kind]


@dataclass(frozen=True, slots=True)
class ImportedType:
    """A type declared by an already registered schema file."""

    name: str
    proto_name: str
    file_name: str
    is_enum: bool = False


@dataclass
class TypeUniverse:
    """Arena of every type descriptor known to one invocation."""

    types: dict[str, TypeDescriptor] = field(default_factory=dict)
    imported: dict[str, ImportedType] = field(default_factory=dict)

    def __contains__(self, name: str) -> bool:
        return name in self.types

    def __iter__(self) -> Iterator[TypeDescriptor]:
        return iter(self.types.values())

    def __len__(self) -> int:
        return len(self.types)

    def get(self, name: str) -> TypeDescriptor | None:
        return self.types.get(name)

    def candidates(self) -> list[TypeDescriptor]:
        """Types carrying any recognized serialization annotation."""
        return [t for t in self.types.values() if t.annotated]

    def entry_points(self) -> list[TypeDescriptor]:
        """Types configuring a schema generation unit."""
        return [t for t in self.types.values() if t.schema is not None]

    def resolve(self, name: str, context: TypeDescriptor) -> str | None:
        """Resolve a type name as written inside `context`.

        Tries nested types of the context and its enclosing types (innermost
        first), then the context's package, then the name as fully qualified.
        Returns the fully-qualified name of a known or imported type.
        """
        scopes = [context.name, *reversed(context.enclosing)]
        if context.package:
            scopes.append(context.package)
        for scope in scopes:
            candidate = f"{scope}.{name}"
            if candidate in self.types or candidate in self.imported:
                return candidate
        if name in self.types or name in self.imported:
            return name
        return None

    def supertypes_of(self, td: TypeDescriptor) -> list[TypeDescriptor]:
        """All known supertypes, breadth first, each listed once."""
        result: list[TypeDescriptor] = []
        seen = {td.name}
        queue = list(td.supertypes)
        while queue:
            name = queue.pop(0)
            if name in seen:
                continue
            seen.add(name)
            sup = self.types.get(name)
            if sup is None:
                continue
            result.append(sup)
            queue.extend(sup.supertypes)
        return result

    def is_subtype(self, td: TypeDescriptor, names: frozenset[str] | set[str]) -> bool:
        """Check whether `td` extends or implements any of `names`, transitively."""
        if any(s in names for s in td.supertypes):
            return True
        return any(any(s in names for s in sup.supertypes) for sup in self.supertypes_of(td))
