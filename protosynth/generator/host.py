"""Host-supplied type descriptor records.

These mirror the JSON document a host (compiler plugin, build tool, test)
hands to the generator. Kinds and modifiers are plain strings and annotation
arguments are untyped; the adapter turns them into the engine's frozen
descriptors.
"""

from dataclasses import dataclass, field
from typing import Any

from dataclasses_json import DataClassJsonMixin


@dataclass
class HostAnnotation(DataClassJsonMixin):
    """An annotation attached to a type or member."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class HostParameter(DataClassJsonMixin):
    """A parameter of a constructor or method."""

    name: str
    type: str | None = None


@dataclass
class HostMember(DataClassJsonMixin):
    """A field, method, constructor or enum constant.

    `type` is the declared element type: the field type, or the return type
    for methods.
    """

    name: str
    kind: str
    type: str | None = None
    modifiers: list[str] = field(default_factory=list)
    parameters: list[HostParameter] = field(default_factory=list)
    annotations: list[HostAnnotation] = field(default_factory=list)


@dataclass
class HostType(DataClassJsonMixin):
    """A class, interface or enum."""

    name: str
    kind: str = "class"
    package: str = ""
    modifiers: list[str] = field(default_factory=list)
    nesting: str = "top_level"
    enclosing: str | None = None
    supertypes: list[str] = field(default_factory=list)
    members: list[HostMember] = field(default_factory=list)
    annotations: list[HostAnnotation] = field(default_factory=list)


@dataclass
class HostImportedType(DataClassJsonMixin):
    """A type already declared by a previously registered schema file."""

    name: str
    proto_name: str
    kind: str = "message"


@dataclass
class HostImportedSchema(DataClassJsonMixin):
    """A previously registered schema file that generated schemas may import."""

    file_name: str
    package: str | None = None
    types: list[HostImportedType] = field(default_factory=list)


@dataclass
class HostModel(DataClassJsonMixin):
    """Everything the host knows about one compilation unit."""

    types: list[HostType] = field(default_factory=list)
    imported_schemas: list[HostImportedSchema] = field(default_factory=list)


def load_model(text: str) -> HostModel:
    """Decode a host model from its JSON text."""
    return HostModel.from_json(text)
