"""Schema-visible names for definitions, fields, marshallers and initializers."""

import re
from dataclasses import dataclass

from .errors import NameCollisionError, SchemaValidationError
from .model import TypeDescriptor
from .selection import is_valid_package_name
from .types import Definition, EnumDef, MessageDef, ProtoSchemaModel

NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

SCHEMA_FILE_SUFFIX = ".proto"


@dataclass(frozen=True)
class InitializerName:
    """Name of the generated initializer class and the module it lives in."""

    package: str
    class_name: str

    @property
    def fqn(self) -> str:
        if self.package:
            return f"{self.package}.{self.class_name}"
        return self.class_name

    @property
    def path(self) -> str:
        if self.package:
            return f"{self.package.replace('.', '/')}/{self.class_name}.py"
        return f"{self.class_name}.py"


def initializer_name(entry: TypeDescriptor) -> InitializerName:
    class_name = entry.schema.class_name if entry.schema else None
    return InitializerName(entry.package, class_name or f"{entry.simple_name}Impl")


def schema_file_name(entry: TypeDescriptor) -> str:
    name = entry.schema.schema_file_name if entry.schema else None
    if name is None:
        return f"{entry.simple_name}{SCHEMA_FILE_SUFFIX}"
    if not name.endswith(SCHEMA_FILE_SUFFIX) or "/" in name:
        raise SchemaValidationError(
            f"'schemaFileName' must be a plain file name ending in {SCHEMA_FILE_SUFFIX} "
            f": \"{name}\"",
            entry.name,
        )
    return name


def schema_package(entry: TypeDescriptor) -> str | None:
    name = entry.schema.schema_package_name if entry.schema else None
    if name is not None and not is_valid_package_name(name):
        raise SchemaValidationError(
            f"'schemaPackageName' is not a valid package name : \"{name}\"", entry.name
        )
    return name


def camel_case(name: str) -> str:
    """`foo_bar` and `fooBar` -> `FooBar`."""
    return "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)


def _check_name(name: str, what: str, element: str) -> str:
    if not NAME_PATTERN.fullmatch(name):
        raise SchemaValidationError(f"Invalid Protobuf {what} name {name!r}", element)
    return name


class _Scope:
    """One protobuf symbol scope: the file or a message body."""

    def __init__(self, description: str) -> None:
        self.description = description
        self.symbols: dict[str, str] = {}

    def add(self, name: str, element: str) -> None:
        other = self.symbols.get(name)
        if other is not None:
            raise NameCollisionError(
                f"Name {name!r} is already used by {other} in {self.description}", element
            )
        self.symbols[name] = element


class NamingResolver:
    """Assigns every name of a built schema model.

    Source types nested in a type that is itself a message of this schema are
    moved under that message; everything else becomes a top-level definition.
    """

    def __init__(self, model: ProtoSchemaModel) -> None:
        self.model = model

    def resolve(self) -> ProtoSchemaModel:
        self._place_definitions()

        for d in self.model.definitions:
            self._assign(d, None)

        self._check_scopes()
        self._assign_marshaller_names()
        return self.model

    def _place_definitions(self) -> None:
        self.model.definitions = []
        for d in self.model.ordered:
            assert d.source is not None
            enclosing = d.source.enclosing_type
            parent = self.model.by_type.get(enclosing) if enclosing else None
            if isinstance(parent, MessageDef):
                d.parent = parent
                parent.nested.append(d)
            else:
                self.model.definitions.append(d)

    def _assign(self, d: Definition, parent: str | None) -> None:
        if d.source is not None:
            local = d.source.proto_name or d.source.simple_name
        else:
            assert isinstance(d, MessageDef) and d.map_entry_for is not None
            local = f"{camel_case(d.map_entry_for.name or '')}Entry"

        d.local_name = _check_name(local, "type", d.element)
        d.full_name = f"{parent}.{local}" if parent else local

        if isinstance(d, EnumDef):
            for value in d.values:
                value.name = _check_name(value.preferred_name, "enum value", value.element)
            return

        for f in d.fields:
            f.name = _check_name(f.preferred_name, "field", f.element)
        for nested in d.nested:
            self._assign(nested, d.full_name)

    def _check_scopes(self) -> None:
        file_scope = _Scope(f"file {self.model.file_name}")
        for d in self.model.definitions:
            file_scope.add(d.local_name or "", d.element)
        for d in self.model.definitions:
            if isinstance(d, EnumDef):
                for value in d.values:
                    file_scope.add(value.name or "", value.element)

        for d in self.model.walk():
            if not isinstance(d, MessageDef):
                continue
            scope = _Scope(f"message {d.full_name}")
            for f in d.fields:
                scope.add(f.name or "", f.element)
            for nested in d.nested:
                scope.add(nested.local_name or "", nested.element)
            for nested in d.nested:
                if isinstance(nested, EnumDef):
                    for value in nested.values:
                        scope.add(value.name or "", value.element)

    def _assign_marshaller_names(self) -> None:
        used: set[str] = set()
        for d in self.model.walk():
            if isinstance(d, MessageDef) and d.is_map_entry:
                continue
            base = (d.full_name or "").replace(".", "_")
            name = f"{base}Marshaller"
            # Distinct schema names can flatten to the same class name; number the later ones
            suffix = 2
            while name in used:
                name = f"{base}{suffix}Marshaller"
                suffix += 1
            used.add(name)
            d.marshaller_name = name
